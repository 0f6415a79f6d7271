from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )

    app_name: str = "trendradar"
    environment: str = Field(default="local", validation_alias=AliasChoices("ENVIRONMENT", "TRENDRADAR_ENVIRONMENT"))
    database_url: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/trendradar",
        validation_alias=AliasChoices("DATABASE_URL", "TRENDRADAR_DATABASE_URL"),
    )
    apify_token: str | None = Field(default=None, validation_alias=AliasChoices("APIFY_TOKEN", "TRENDRADAR_APIFY_TOKEN"))
    apify_actor_id: str = Field(
        default="clockworks/tiktok-scraper",
        validation_alias=AliasChoices("APIFY_ACTOR_ID", "TRENDRADAR_APIFY_ACTOR_ID"),
    )
    apify_webhook_secret: str | None = Field(
        default=None, validation_alias=AliasChoices("APIFY_WEBHOOK_SECRET", "TRENDRADAR_APIFY_WEBHOOK_SECRET")
    )
    webhook_signature_header: str = Field(
        default="x-apify-webhook-signature",
        validation_alias=AliasChoices("WEBHOOK_SIGNATURE_HEADER", "TRENDRADAR_WEBHOOK_SIGNATURE_HEADER"),
    )
    public_base_url: str | None = Field(default=None, validation_alias=AliasChoices("PUBLIC_BASE_URL", "TRENDRADAR_PUBLIC_BASE_URL"))
    scrape_results_per_page: int = Field(default=30, validation_alias=AliasChoices("SCRAPE_RESULTS_PER_PAGE", "TRENDRADAR_SCRAPE_RESULTS_PER_PAGE"))
    scrape_dataset_limit: int = Field(default=1000, validation_alias=AliasChoices("SCRAPE_DATASET_LIMIT", "TRENDRADAR_SCRAPE_DATASET_LIMIT"))
    scrape_job_timeout_minutes: int = Field(default=60, validation_alias=AliasChoices("SCRAPE_JOB_TIMEOUT_MINUTES", "TRENDRADAR_SCRAPE_JOB_TIMEOUT_MINUTES"))
    sweep_interval_minutes: int = Field(default=10, validation_alias=AliasChoices("SWEEP_INTERVAL_MINUTES", "TRENDRADAR_SWEEP_INTERVAL_MINUTES"))
    scheduler_enabled: bool = Field(default=True, validation_alias=AliasChoices("SCHEDULER_ENABLED", "TRENDRADAR_SCHEDULER_ENABLED"))
    celery_enabled: bool = Field(default=True, validation_alias=AliasChoices("CELERY_ENABLED", "TRENDRADAR_CELERY_ENABLED"))
    redis_url: str = Field(default="redis://redis:6379/0", validation_alias=AliasChoices("REDIS_URL", "TRENDRADAR_REDIS_URL"))
    telegram_bot_token: str | None = Field(default=None, validation_alias=AliasChoices("TELEGRAM_BOT_TOKEN", "TRENDRADAR_TELEGRAM_BOT_TOKEN"))
    telegram_chat_id: str | None = Field(default=None, validation_alias=AliasChoices("TELEGRAM_CHAT_ID", "TRENDRADAR_TELEGRAM_CHAT_ID"))

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("postgresql+"):
            return self.database_url
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url

    @property
    def webhook_url(self) -> str | None:
        if not self.public_base_url:
            return None
        return f"{self.public_base_url.rstrip('/')}/api/webhooks/apify"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
