import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    app_name: str = "Fizyo Stok"
    environment: str = "development"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Backend endpoint and access key. Both may be missing at build time.
    database_url: str = ""
    secret_key: str = ""
    access_token_expire_minutes: int = 60 * 24

    cors_origins: str = "http://localhost:5173"
    bind_host: str = "0.0.0.0"
    port: int = 8000

    local_timezone: str = "Europe/Istanbul"
    query_stale_seconds: int = 300
    query_retry: int = 1
    history_limit: int = 100
    low_stock_threshold: int = 5
    large_quantity_threshold: int = 50

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()


def check_backend_config(settings: Settings | None = None) -> bool:
    settings = settings or get_settings()
    missing = [
        name
        for name, value in (("DATABASE_URL", settings.database_url), ("SECRET_KEY", settings.secret_key))
        if not value
    ]
    if missing:
        logger.error("Missing environment variables: %s. Please check your .env file.", ", ".join(missing))
        return False
    return True
