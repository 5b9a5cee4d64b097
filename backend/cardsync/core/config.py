from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Card Pricing API"
    DEBUG: bool = False

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "cardsync"
    POSTGRES_PASSWORD: str = "cardsync_secret"
    POSTGRES_DB: str = "cardsync"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # eBay Finding API
    EBAY_APP_ID: str = ""
    EBAY_FINDING_URL: str = "https://svcs.ebay.com/services/search/FindingService/v1"
    EBAY_CATEGORY_ID: str = "183050"  # Non-Sport Trading Card Singles
    EBAY_ENTRIES_PER_PAGE: int = 10
    EBAY_REQUEST_TIMEOUT_SEC: float = 8.0
    SEARCH_BRAND: str = "Marvel"

    # Request budget (shared by every fetch in the process)
    EBAY_MAX_REQUESTS_PER_HOUR: int = 70
    EBAY_MIN_REQUEST_INTERVAL_SEC: float = 3.0

    # Retry: 2s, 4s, 8s
    EBAY_MAX_RETRIES: int = 3
    EBAY_RETRY_BASE_DELAY_SEC: float = 2.0

    # Price cache
    PRICE_STALE_AFTER_HOURS: int = 24
    MAX_RECENT_SALES: int = 5
    # Stored with sales_count = -1 when a fetch could not complete.
    # Kept for rows written by earlier versions; never shown as a price.
    ERROR_SENTINEL_PRICE: Decimal = Decimal("0.02")

    # Scheduler
    PRICING_INTER_JOB_DELAY_SEC: float = 1.0
    PRICING_SWEEP_INTERVAL_SEC: int = 6 * 60 * 60
    PRICING_MAX_CARDS_PER_SWEEP: int = 25
    PRICING_TRENDING_LIMIT: int = 20
    PRICING_BACKGROUND_ENABLED: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
