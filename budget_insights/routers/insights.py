import logging
from typing import Dict

from fastapi import APIRouter, HTTPException, status

from budget_insights.core.exceptions import DataQualityError
from budget_insights.models.insight import GenerateInsightsRequest, RuleContext
from budget_insights.utils.insight_generator import InsightGenerationTracker, InsightGenerator
from budget_insights.utils.insight_rules import execute_rules_for_category

router = APIRouter()
logger = logging.getLogger(__name__)

insight_generator = InsightGenerator()
generation_tracker = InsightGenerationTracker()


@router.post("/category")
def generate_category_insights(context: RuleContext) -> Dict:
    """
    Run all insight rules for a single category and return whatever triggers.
    """
    try:
        insights = execute_rules_for_category(context)
    except DataQualityError as e:
        logger.error(f"Data quality fault for category {context.category_id}: {e.message} {e.details}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error_code": e.error_code, "message": e.message},
        )

    return {
        "insights": [insight.model_dump(mode="json") for insight in insights],
        "count": len(insights),
    }


@router.post("/generate")
def generate_user_insights(request: GenerateInsightsRequest, force: bool = False) -> Dict:
    """
    Generate insights for every category of a user.
    Skipped unless forced, when the user was processed recently or has too few
    new transactions since the last run.
    """
    user_id = request.user_id

    if not force and not generation_tracker.should_generate(user_id, request.transactions):
        last = generation_tracker.last_generated(user_id)
        logger.info(f"Insight generation skipped for user {user_id}, last run at {last}")
        return {
            "user_id": user_id,
            "skipped": True,
            "reason": "Insights were generated recently and not enough new transactions since",
            "insights": [],
            "count": 0,
        }

    batch = insight_generator.generate_for_user(
        user_id=user_id,
        categories=request.categories,
        transactions=request.transactions,
        current_month=request.current_month,
    )
    generation_tracker.record_generation(user_id)

    return {
        "user_id": user_id,
        "skipped": False,
        "insights": [insight.model_dump(mode="json") for insight in batch.insights],
        "count": len(batch.insights),
        "categories_processed": batch.categories_processed,
        "failures": [failure.model_dump() for failure in batch.failures],
    }
