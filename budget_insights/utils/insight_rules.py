"""
Insight rules for a single spending category.

Every rule takes a RuleContext and returns an Insight, or None when there
is not enough history or a policy check says the insight is not worth
showing. Rules never touch storage; the caller persists and dedupes.

Order of execution (see execute_rules_for_category):
    1. detect_spending_increase        priority 4
    2. recommend_budget_limit          priority 3
    3. flag_unusual_expense            priority 5
    4. generate_positive_reinforcement priority 2
"""
from __future__ import annotations

import logging
import math
from datetime import date
from decimal import Decimal
from typing import Any, Callable, List, Optional, Tuple

from budget_insights.core.exceptions import DataQualityError
from budget_insights.models.insight import (
    BudgetRecommendationMetadata,
    Insight,
    InsightType,
    PositiveReinforcementMetadata,
    RuleContext,
    SpendingIncreaseMetadata,
    UnusualExpenseMetadata,
)
from budget_insights.utils.spending_analysis import (
    describe_amounts,
    format_amount,
    month_label,
    monthly_total,
    percent_change,
    percent_of,
    round_half_up,
    shift_month,
    to_decimal,
    transactions_in_month,
)

logger = logging.getLogger(__name__)


# Spending increase
SPENDING_INCREASE_THRESHOLD_PERCENT = 20.0  # exclusive

# Budget recommendation
BUDGET_RECOMMENDATION_MIN_TRANSACTIONS = 5
BUDGET_RECOMMENDATION_WINDOW_MONTHS = 3
BUDGET_BUFFER_RATIO = 0.10
MIN_RECOMMENDED_BUDGET = 20
BUDGET_CLOSENESS_TOLERANCE = 0.15  # relative to the existing budget

# Unusual expense
UNUSUAL_EXPENSE_MIN_TRANSACTIONS = 10
UNUSUAL_EXPENSE_STD_DEV_MULTIPLE = 2.0  # exclusive

# Positive reinforcement
POSITIVE_REINFORCEMENT_MAX_USAGE_PERCENT = 90.0  # exclusive

PRIORITY_UNUSUAL_EXPENSE = 5
PRIORITY_SPENDING_INCREASE = 4
PRIORITY_BUDGET_RECOMMENDATION = 3
PRIORITY_POSITIVE_REINFORCEMENT = 2


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    return math.isfinite(float(value))


def validate_context(context: RuleContext) -> None:
    """Raise DataQualityError if any input could produce a wrong number."""
    if not isinstance(context.current_month, date):
        raise DataQualityError(
            "Reference month is not a calendar date",
            {"category_id": context.category_id, "current_month": repr(context.current_month)},
        )

    budget = context.current_budget
    if budget is not None and not _is_finite_number(budget):
        raise DataQualityError(
            "Budget is not a finite number",
            {"category_id": context.category_id, "budget": repr(budget)},
        )

    for txn in context.transactions:
        details = {"category_id": context.category_id, "transaction_id": txn.id}
        if not isinstance(txn.date, date):
            raise DataQualityError("Transaction has a malformed date", {**details, "date": repr(txn.date)})
        if not _is_finite_number(txn.amount):
            raise DataQualityError("Transaction amount is not a finite number", {**details, "amount": repr(txn.amount)})
        if txn.amount < 0:
            raise DataQualityError("Transaction amount is negative", {**details, "amount": txn.amount})


def detect_spending_increase(context: RuleContext) -> Optional[Insight]:
    """
    Month-over-month increase of more than 20% in this category.

    "Your Dining spending increased by 25% this month ($500 vs $400 last month).
     Consider reviewing recent expenses to see if this aligns with your goals."
    """
    validate_context(context)

    current_month = context.current_month
    previous_month = shift_month(current_month, -1)

    previous_total = monthly_total(context.transactions, previous_month)
    if previous_total <= 0:
        logger.debug(f"spending_increase skipped for {context.category_id}: no baseline in {month_label(previous_month)}")
        return None

    current_total = monthly_total(context.transactions, current_month)
    change = percent_change(current_total, previous_total)
    if change <= SPENDING_INCREASE_THRESHOLD_PERCENT:
        return None

    metadata = SpendingIncreaseMetadata(
        category_id=context.category_id,
        category_name=context.category_name,
        current_amount=current_total,
        previous_amount=previous_total,
        percent_change=round_half_up(change),
        transaction_count_current=len(transactions_in_month(context.transactions, current_month)),
        transaction_count_previous=len(transactions_in_month(context.transactions, previous_month)),
        current_month=month_label(current_month),
        previous_month=month_label(previous_month),
    )
    name = context.category_name

    return Insight(
        user_id=context.user_id,
        type=InsightType.SPENDING_INCREASE,
        priority=PRIORITY_SPENDING_INCREASE,
        title=f"{name} spending increased {metadata.percent_change}%",
        description=(
            f"Your {name} spending increased by {metadata.percent_change}% this month "
            f"(${format_amount(metadata.current_amount)} vs ${format_amount(metadata.previous_amount)} last month). "
            "Consider reviewing recent expenses to see if this aligns with your goals."
        ),
        metadata=metadata,
    )


def _is_close_to_budget(recommended: int, budget: float) -> bool:
    gap = abs(to_decimal(recommended) - to_decimal(budget))
    return gap < to_decimal(budget) * to_decimal(BUDGET_CLOSENESS_TOLERANCE)


def recommend_budget_limit(context: RuleContext) -> Optional[Insight]:
    """
    Suggest a budget of the 3-month average plus a 10% buffer.

    Months without activity count as zero spend. Nothing is suggested when the
    amount is too small to act on or the existing budget is already close.
    """
    validate_context(context)

    if len(context.transactions) < BUDGET_RECOMMENDATION_MIN_TRANSACTIONS:
        logger.debug(f"budget_recommendation skipped for {context.category_id}: only {len(context.transactions)} transactions")
        return None

    months = [shift_month(context.current_month, -i) for i in range(BUDGET_RECOMMENDATION_WINDOW_MONTHS)]
    totals = [to_decimal(monthly_total(context.transactions, month)) for month in months]

    average = sum(totals) / BUDGET_RECOMMENDATION_WINDOW_MONTHS
    recommended = round_half_up(average * (1 + to_decimal(BUDGET_BUFFER_RATIO)))

    if recommended < MIN_RECOMMENDED_BUDGET:
        logger.debug(f"budget_recommendation suppressed for {context.category_id}: {recommended} is too small")
        return None

    budget = context.current_budget
    if budget and budget > 0 and _is_close_to_budget(recommended, budget):
        logger.debug(f"budget_recommendation suppressed for {context.category_id}: budget {budget} already close")
        return None

    buffer_percent = round_half_up(BUDGET_BUFFER_RATIO * 100)
    three_month_average = round_half_up(average, 2)
    metadata = BudgetRecommendationMetadata(
        category_id=context.category_id,
        category_name=context.category_name,
        three_month_average=three_month_average,
        recommended_budget=recommended,
        calculation_explanation=(
            f"Based on 3-month average of ${format_amount(three_month_average)} + {buffer_percent}% buffer"
        ),
        months_analyzed=[month_label(month) for month in months],
    )
    name = context.category_name

    return Insight(
        user_id=context.user_id,
        type=InsightType.BUDGET_RECOMMENDATION,
        priority=PRIORITY_BUDGET_RECOMMENDATION,
        title=f"Consider a ${metadata.recommended_budget} budget for {name}",
        description=(
            f"Based on your 3-month average of ${format_amount(metadata.three_month_average)}, "
            f"consider setting a ${metadata.recommended_budget} budget for {name}. "
            f"This gives you a comfortable {buffer_percent}% buffer while keeping spending mindful."
        ),
        metadata=metadata,
    )


def flag_unusual_expense(context: RuleContext) -> Optional[Insight]:
    """Flag the largest expense when it sits more than 2 standard deviations above the mean."""
    validate_context(context)

    transactions = context.transactions
    if len(transactions) < UNUSUAL_EXPENSE_MIN_TRANSACTIONS:
        return None

    stats = describe_amounts([txn.amount for txn in transactions])
    if stats.standard_deviation == 0:
        return None

    # max() keeps the first of equal amounts, so ties resolve by input order
    candidate = max(transactions, key=lambda txn: txn.amount)
    std_devs = (candidate.amount - stats.mean) / stats.standard_deviation
    if std_devs <= UNUSUAL_EXPENSE_STD_DEV_MULTIPLE:
        logger.debug(f"unusual_expense skipped for {context.category_id}: max deviation {std_devs:.2f}")
        return None

    metadata = UnusualExpenseMetadata(
        category_id=context.category_id,
        category_name=context.category_name,
        transaction_amount=round_half_up(candidate.amount, 2),
        category_average=round_half_up(stats.mean, 2),
        standard_deviation=round_half_up(stats.standard_deviation, 2),
        std_devs_from_mean=round_half_up(std_devs, 1),
        transaction_id=candidate.id,
        transaction_date=candidate.date.isoformat(),
    )
    name = context.category_name
    amount = format_amount(metadata.transaction_amount)

    return Insight(
        user_id=context.user_id,
        type=InsightType.UNUSUAL_EXPENSE,
        priority=PRIORITY_UNUSUAL_EXPENSE,
        title=f"Unusual {name} expense: ${amount}",
        description=(
            f"We noticed an unusual {name} expense of ${amount} - much higher than your typical "
            f"${format_amount(metadata.category_average)}. "
            "You might want to review this transaction to make sure everything looks right."
        ),
        metadata=metadata,
    )


def generate_positive_reinforcement(context: RuleContext) -> Optional[Insight]:
    """Celebrate a month where spending stays under 90% of the budget."""
    validate_context(context)

    budget = context.current_budget
    if not budget or budget <= 0:
        return None

    if not transactions_in_month(context.transactions, context.current_month):
        return None

    spent = monthly_total(context.transactions, context.current_month)
    usage = percent_of(spent, budget)
    if usage >= POSITIVE_REINFORCEMENT_MAX_USAGE_PERCENT:
        return None

    metadata = PositiveReinforcementMetadata(
        category_id=context.category_id,
        category_name=context.category_name,
        budget_amount=float(budget),
        actual_spending=spent,
        savings_amount=round_half_up(to_decimal(budget) - to_decimal(spent)),
        percent_under_budget=round_half_up(100 - to_decimal(usage)),
        current_month=month_label(context.current_month),
    )
    name = context.category_name

    return Insight(
        user_id=context.user_id,
        type=InsightType.POSITIVE_REINFORCEMENT,
        priority=PRIORITY_POSITIVE_REINFORCEMENT,
        title=f"Great job on {name}!",
        description=(
            f"Great job on {name}! You're {metadata.percent_under_budget}% under budget this month, "
            f"saving ${metadata.savings_amount}. Keep up the excellent work!"
        ),
        metadata=metadata,
    )


Rule = Callable[[RuleContext], Optional[Insight]]

INSIGHT_RULES: Tuple[Rule, ...] = (
    detect_spending_increase,
    recommend_budget_limit,
    flag_unusual_expense,
    generate_positive_reinforcement,
)


def execute_rules_for_category(context: RuleContext) -> List[Insight]:
    insights: List[Insight] = []
    for rule in INSIGHT_RULES:
        insight = rule(context)
        if insight is not None:
            insights.append(insight)
    return insights
