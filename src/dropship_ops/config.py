"""Application configuration using pydantic-settings."""

from datetime import timedelta
from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dropship_ops.scoring.models import (
    DEFAULT_COMPETITOR_RANGES,
    DEFAULT_EXCLUDED_BRANDS,
    DEFAULT_EXCLUDED_CONDITIONS,
    CompetitorRange,
    DemandConfig,
    DiscoveryCriteria,
    MarginPolicy,
    PricingConfig,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "dropship-ops"
    debug: bool = False
    environment: str = "development"

    # Database (SQLite for local dev, PostgreSQL for prod)
    database_url: str = "sqlite+aiosqlite:///./dropship_ops.db"

    # Frontend
    frontend_url: str = "http://localhost:3000"

    # API
    api_prefix: str = "/api"

    # Marketplace data
    keepa_api_key: str = ""
    rainforest_api_key: str = ""
    amazon_domain: str = "amazon.com"

    # Discovery criteria
    min_price: Decimal = Decimal("3")
    max_price: Decimal = Decimal("25")
    min_reviews: int = 500
    min_rating: float = 3.5
    require_prime: bool = True
    excluded_brand_substrings: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_BRANDS)
    )
    excluded_condition_substrings: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_CONDITIONS)
    )

    # Demand gate
    max_acceptable_rank: int = 100_000
    max_volatility_fraction: float = 0.5
    prime_multiplier: float = 1.0
    trend_threshold_percent: float = 10.0

    # Pricing
    markup_percent: Decimal = Decimal("70")
    competitor_ranges: dict[str, CompetitorRange] = Field(
        default_factory=lambda: dict(DEFAULT_COMPETITOR_RANGES)
    )  # JSON, e.g. {"amazon": [1.82, 1.88]}
    minimum_competitor_markup: float = 1.80

    # Margin tracking
    min_margin_percent: float = 30.0
    grace_period_days: float = 7.0

    # Price sync
    sync_batch_size: int = 100

    def pricing_config(self) -> PricingConfig:
        """Build the pipeline configuration from these settings."""
        return PricingConfig(
            criteria=DiscoveryCriteria(
                min_price=self.min_price,
                max_price=self.max_price,
                min_reviews=self.min_reviews,
                min_rating=self.min_rating,
                require_prime=self.require_prime,
                excluded_brand_substrings=self.excluded_brand_substrings,
                excluded_condition_substrings=self.excluded_condition_substrings,
            ),
            demand=DemandConfig(
                max_acceptable_rank=self.max_acceptable_rank,
                max_volatility_fraction=self.max_volatility_fraction,
                prime_multiplier=self.prime_multiplier,
                trend_threshold_percent=self.trend_threshold_percent,
            ),
            markup_percent=self.markup_percent,
            competitor_ranges=self.competitor_ranges,
            minimum_competitor_markup=self.minimum_competitor_markup,
            margin=MarginPolicy(
                min_margin_percent=self.min_margin_percent,
                grace_period=timedelta(days=self.grace_period_days),
            ),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
