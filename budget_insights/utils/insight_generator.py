"""
Insight generation across all categories of one user.

The rules engine works on one category at a time; this module fans it out,
keeps one bad category from sinking the others, and decides when a user is
due for a fresh run.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from budget_insights.core.config import settings
from budget_insights.core.exceptions import DataQualityError
from budget_insights.models.insight import CategoryBudget, CategoryFailure, Insight, RuleContext
from budget_insights.models.transaction import Transaction, TransactionType
from budget_insights.utils.insight_rules import execute_rules_for_category

logger = logging.getLogger(__name__)


@dataclass
class InsightBatch:
    user_id: str
    insights: List[Insight] = field(default_factory=list)
    failures: List[CategoryFailure] = field(default_factory=list)
    categories_processed: int = 0


class InsightGenerator:
    """Runs the category rules for every category a user has spending in."""

    def generate_for_user(
        self,
        user_id: str,
        categories: Iterable[CategoryBudget],
        transactions: Iterable[Transaction],
        current_month: date,
        budgets: Optional[Mapping[str, float]] = None,
    ) -> InsightBatch:
        budgets = dict(budgets or {})
        by_category: Dict[str, List[Transaction]] = defaultdict(list)
        for txn in transactions:
            if txn.type == TransactionType.EXPENSE:
                by_category[txn.category_id].append(txn)

        batch = InsightBatch(user_id=user_id)
        for category in categories:
            category_transactions = by_category.get(category.id)
            if not category_transactions:
                continue

            budget = budgets.get(category.id, category.budget)
            context = RuleContext(
                user_id=user_id,
                category_id=category.id,
                category_name=category.name,
                transactions=category_transactions,
                current_month=current_month,
                current_budget=budget,
            )
            try:
                batch.insights.extend(execute_rules_for_category(context))
            except DataQualityError as e:
                logger.error(f"Skipping category {category.id} for user {user_id}: {e.message} {e.details}")
                batch.failures.append(
                    CategoryFailure(category_id=category.id, error_code=e.error_code, message=e.message)
                )
                continue
            batch.categories_processed += 1

        # sorted() is stable, so equal priorities keep category then rule order
        batch.insights = sorted(batch.insights, key=lambda insight: insight.priority, reverse=True)
        logger.info(
            f"Generated {len(batch.insights)} insights for user {user_id} "
            f"({batch.categories_processed} categories, {len(batch.failures)} failed)"
        )
        return batch


def _as_utc(moment: datetime) -> datetime:
    return moment.replace(tzinfo=timezone.utc) if moment.tzinfo is None else moment


class InsightGenerationTracker:
    """
    In-process record of when each user last had insights generated.

    A user is due when they were never processed, or when the cache window
    has passed and enough new transactions were created since the last run.
    """

    def __init__(
        self,
        cache_ttl_seconds: int = settings.INSIGHT_CACHE_TTL_SECONDS,
        transaction_threshold: int = settings.REGENERATION_TRANSACTION_THRESHOLD,
    ) -> None:
        self._cache_ttl = timedelta(seconds=cache_ttl_seconds)
        self._transaction_threshold = transaction_threshold
        self._last_generated: Dict[str, datetime] = {}

    def last_generated(self, user_id: str) -> Optional[datetime]:
        return self._last_generated.get(user_id)

    def record_generation(self, user_id: str, at: Optional[datetime] = None) -> None:
        self._last_generated[user_id] = _as_utc(at or datetime.now(timezone.utc))

    def is_recent(self, user_id: str, now: Optional[datetime] = None) -> bool:
        last = self._last_generated.get(user_id)
        if last is None:
            return False
        now = _as_utc(now or datetime.now(timezone.utc))
        return now - last < self._cache_ttl

    def new_transaction_count(self, user_id: str, transactions: Iterable[Transaction]) -> int:
        last = self._last_generated.get(user_id)
        if last is None:
            return sum(1 for _ in transactions)
        return sum(1 for txn in transactions if _as_utc(txn.created_at) >= last)

    def should_generate(
        self,
        user_id: str,
        transactions: Iterable[Transaction],
        now: Optional[datetime] = None,
    ) -> bool:
        if user_id not in self._last_generated:
            return True
        if self.is_recent(user_id, now):
            return False
        return self.new_transaction_count(user_id, transactions) >= self._transaction_threshold
