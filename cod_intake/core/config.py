# cod_intake/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Supabase Postgres connection string)

    Optional:
      - SHOPIFY_API_KEY / SHOPIFY_API_SECRET (needed for partial COD and
        merchant endpoints; authentication fails closed when unset)
      - region defaults used when a delivery address cannot be parsed
    """

    PROJECT_NAME: str = "COD Intake API"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Record store
    DATABASE_URL: str
    DB_CONNECT_TIMEOUT: int = 5
    DB_STATEMENT_TIMEOUT_MS: int = 5000

    # Shopify app credentials
    SHOPIFY_API_KEY: str = ""
    SHOPIFY_API_SECRET: str = ""
    SHOPIFY_API_VERSION: str = "2024-10"
    SHOPIFY_HTTP_TIMEOUT: float = 10.0

    # Order naming: COD-1001, COD-1002, ...
    ORDER_NAME_PREFIX: str = "COD-"
    ORDER_NUMBER_BASE: int = 1001
    ORDER_NAME_MAX_ATTEMPTS: int = 5

    DEFAULT_CURRENCY: str = "INR"

    # Region defaults for address parsing
    DEFAULT_CITY: str = "Mumbai"
    DEFAULT_PROVINCE: str = "Maharashtra"
    DEFAULT_POSTAL_CODE: str = "400001"
    POSTAL_CODE_LENGTH: int = 6
    DEFAULT_COUNTRY_CODE: str = "IN"

    # How many recent rows the normalized phone scan looks at
    CUSTOMER_SCAN_WINDOW: int = 50

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
