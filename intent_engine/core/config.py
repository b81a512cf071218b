from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(env_file=".env", case_sensitive=True)

    DATABASE_URL: str
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Redis configuration for the dedupe fast path
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_DEDUPE_TTL: int = 86400  # 24 hours for (event_source, dedupe_key) lookups

    # Ingestion
    DEFAULT_EVENT_SOURCE: str = "website"
    METADATA_MAX_BYTES: int = 16 * 1024
    INGEST_DB_TIMEOUT_SECONDS: float = 5.0
    INGEST_RATE_LIMIT: str = "120/minute"

    # Shared secrets checked by the API key dependencies; empty disables the check
    INGEST_API_KEY: str = ""
    ADMIN_API_KEY: str = ""

    # Maintenance and qualification
    RECOMPUTE_DEFAULT_DAYS: int = 30
    SALES_TASK_DUE_HOURS: int = 24

    # CORS configuration, comma-separated origins
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8080"


settings = Settings()
