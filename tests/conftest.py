import itertools
from datetime import datetime, timezone

import pytest

from budget_insights.models.transaction import Transaction, TransactionType


@pytest.fixture
def make_transaction():
    """Factory for expense transactions with unique, predictable ids."""
    counter = itertools.count(1)

    def _make(amount, on, category_id="cat-1", user_id="user-1", type=TransactionType.EXPENSE, created_at=None):
        return Transaction(
            id=f"tx-{next(counter)}",
            user_id=user_id,
            category_id=category_id,
            amount=amount,
            type=type,
            date=on,
            currency="EUR",
            created_at=created_at or datetime(2025, 1, 1, tzinfo=timezone.utc),
        )

    return _make
