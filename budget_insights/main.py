from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging

from budget_insights.core.config import settings
from budget_insights.routers import health, insights

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"Starting {settings.PROJECT_NAME}...")
    yield
    logger.info(f"Stopping {settings.PROJECT_NAME}...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan
)


# Root endpoint
@app.get("/")
def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME} API"}


# Register routers
app.include_router(health.router, prefix=f"{settings.API_PREFIX}", tags=["Health"])  # /api/health
app.include_router(insights.router, prefix=f"{settings.API_PREFIX}/insights", tags=["Insights"])
