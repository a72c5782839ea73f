from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, List, Sequence, Union

from dateutil.relativedelta import relativedelta

from budget_insights.core.exceptions import DataQualityError
from budget_insights.models.transaction import Transaction


@dataclass(frozen=True)
class SpendingStats:
    """Mean and population standard deviation of a sample of amounts."""

    mean: float
    standard_deviation: float
    count: int


def shift_month(month: date, offset: int) -> date:
    """Return the first day of the month ``offset`` months away from ``month``."""
    return month.replace(day=1) + relativedelta(months=offset)


def month_label(month: date) -> str:
    return month.strftime("%Y-%m")


def transactions_in_month(transactions: Iterable[Transaction], month: date) -> List[Transaction]:
    # Bucketing is by the ledger date, never created_at
    return [
        txn for txn in transactions
        if txn.date.year == month.year and txn.date.month == month.month
    ]


def monthly_total(transactions: Iterable[Transaction], month: date) -> float:
    return round(sum(float(txn.amount) for txn in transactions_in_month(transactions, month)), 2)


def describe_amounts(values: Sequence[float]) -> SpendingStats:
    """
    Population statistics (divide by N) so repeated runs give identical numbers.
    A sample of identical values has a standard deviation of exactly 0.
    """
    if not values:
        raise DataQualityError("Cannot describe an empty sample of amounts")

    amounts = [float(v) for v in values]
    return SpendingStats(
        mean=statistics.fmean(amounts),
        standard_deviation=statistics.pstdev(amounts),
        count=len(amounts),
    )


def to_decimal(value: Union[float, Decimal]) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


# Percentages are computed in Decimal so that 600 vs 500 is exactly 20,
# not 20.000000000000004, and threshold comparisons stay exclusive.
def percent_of(part: float, whole: float) -> float:
    if whole == 0:
        raise DataQualityError("Cannot take a percentage of zero", {"part": part})
    return float(to_decimal(part) / to_decimal(whole) * 100)


def percent_change(current: float, previous: float) -> float:
    if previous == 0:
        raise DataQualityError("Percent change needs a non-zero baseline", {"current": current})
    return float((to_decimal(current) - to_decimal(previous)) / to_decimal(previous) * 100)


def round_half_up(value: Union[float, Decimal], ndigits: int = 0) -> Union[int, float]:
    """Round the way people expect (2.5 -> 3), not banker's rounding."""
    exponent = Decimal(1).scaleb(-ndigits)
    try:
        rounded = to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # quantize needs the result to fit in the context precision (28 digits)
        raise DataQualityError("Amount is too large to round", {"value": repr(value), "ndigits": ndigits})
    return int(rounded) if ndigits == 0 else float(rounded)


def format_amount(value: float) -> str:
    """Render a currency amount without dropping or inventing precision."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"
