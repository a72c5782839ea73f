import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from budget_insights.models.transaction import Transaction


class InsightType(str, Enum):
    SPENDING_INCREASE = "spending_increase"
    BUDGET_RECOMMENDATION = "budget_recommendation"
    UNUSUAL_EXPENSE = "unusual_expense"
    POSITIVE_REINFORCEMENT = "positive_reinforcement"


class RuleContext(BaseModel):
    """Everything a rule may look at for one user, one category, one month."""

    user_id: str
    category_id: str
    category_name: str
    transactions: List[Transaction] = Field(default_factory=list)
    current_month: datetime.date = Field(default_factory=datetime.date.today)
    current_budget: Optional[float] = None


class SpendingIncreaseMetadata(BaseModel):
    category_id: str
    category_name: str
    current_amount: float
    previous_amount: float
    percent_change: int
    transaction_count_current: int
    transaction_count_previous: int
    current_month: str
    previous_month: str


class BudgetRecommendationMetadata(BaseModel):
    category_id: str
    category_name: str
    three_month_average: float
    recommended_budget: int
    calculation_explanation: str
    months_analyzed: List[str]


class UnusualExpenseMetadata(BaseModel):
    category_id: str
    category_name: str
    transaction_amount: float
    category_average: float
    standard_deviation: float
    std_devs_from_mean: float
    transaction_id: str
    transaction_date: str


class PositiveReinforcementMetadata(BaseModel):
    category_id: str
    category_name: str
    budget_amount: float
    actual_spending: float
    savings_amount: int
    percent_under_budget: int
    current_month: str


InsightMetadata = Union[
    SpendingIncreaseMetadata,
    BudgetRecommendationMetadata,
    UnusualExpenseMetadata,
    PositiveReinforcementMetadata,
]


class Insight(BaseModel):
    user_id: str
    type: InsightType
    priority: int = Field(ge=1, le=5)
    title: str
    description: str
    metadata: InsightMetadata


class CategoryBudget(BaseModel):
    id: str
    name: str
    budget: Optional[float] = None


class GenerateInsightsRequest(BaseModel):
    user_id: str
    current_month: datetime.date = Field(default_factory=datetime.date.today)
    categories: List[CategoryBudget]
    transactions: List[Transaction] = Field(default_factory=list)


class CategoryFailure(BaseModel):
    category_id: str
    error_code: str
    message: str
