import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class Transaction(BaseModel):
    id: str
    user_id: str
    category_id: str
    amount: float
    type: TransactionType = TransactionType.EXPENSE
    date: datetime.date
    notes: Optional[str] = None
    currency: str = "EUR"
    created_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )
