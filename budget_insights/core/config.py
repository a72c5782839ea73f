from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App settings
    PROJECT_NAME: str = "BudgetInsights"
    API_PREFIX: str = "/api"
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # Insight regeneration
    INSIGHT_CACHE_TTL_SECONDS: int = Field(default=60 * 60)  # 1 hour
    REGENERATION_TRANSACTION_THRESHOLD: int = Field(default=10)


settings = Settings()
