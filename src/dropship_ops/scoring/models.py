"""Data models for the discovery and pricing pipeline."""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator


class InvalidInput(ValueError):
    """Malformed numeric input to a pricing or scoring operation."""


class LifecycleStatus(str, Enum):
    """Listing state of a tracked product."""

    ACTIVE = "active"
    PAUSED = "paused"
    OUT_OF_STOCK = "out_of_stock"


class RejectionReason(str, Enum):
    """Discovery criteria, in the order they are evaluated."""

    OUT_OF_STOCK = "out of stock"
    PRICE = "price"
    RATING = "rating"
    REVIEWS = "reviews"
    PRIME = "prime"
    EXCLUDED_BRAND = "excluded brand"
    EXCLUDED_CONDITION = "excluded condition"


class AlertSeverity(str, Enum):
    """Severity of a margin alert."""

    WARNING = "warning"
    CRITICAL = "critical"


class DemandTrend(str, Enum):
    """Direction of the 30-day average sales rank against the 90-day one."""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


# Title words that mark a branded or licensed listing
DEFAULT_EXCLUDED_BRANDS: list[str] = [
    # Major brands
    "nike", "adidas", "apple", "samsung", "sony", "lg", "philips",
    "bose", "beats", "jbl", "anker", "logitech", "microsoft",
    # Brand indicators
    "branded", "official", "licensed", "authentic", "genuine",
    # Entertainment brands
    "disney", "marvel", "star wars", "pokemon", "nintendo",
]

DEFAULT_EXCLUDED_CONDITIONS: list[str] = ["refurbished", "renewed", "used", "open box"]


# --- Marketplace data ---


class ListingCandidate(BaseModel):
    """A raw marketplace listing considered for import."""

    identifier: str = Field(..., description="Marketplace item id (ASIN for Amazon)")
    title: str = Field("", description="Listing title, used for keyword exclusion")
    price: Decimal = Field(..., ge=0, description="Source price (USD)")
    rating: float = Field(0.0, ge=0, le=5, description="Average star rating (0-5)")
    review_count: int = Field(0, ge=0, description="Number of reviews")
    is_prime_eligible: bool = Field(False, description="Prime shipping available")
    availability_text: str = Field("", description="Free-text stock message")
    marketplace: str = Field("amazon", description="Marketplace the listing came from")


class DemandPoint(BaseModel):
    """A single sales-rank observation."""

    timestamp: datetime
    sales_rank: int = Field(..., ge=0)


class DemandSample(BaseModel):
    """Sales-rank history for one item, oldest first."""

    identifier: Optional[str] = None
    points: list[DemandPoint] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_ordering(self) -> "DemandSample":
        for previous, current in zip(self.points, self.points[1:]):
            if current.timestamp <= previous.timestamp:
                raise ValueError(
                    "demand points must be in strictly ascending timestamp order"
                )
        return self

    def __len__(self) -> int:
        return len(self.points)

    @property
    def ranks(self) -> list[int]:
        """Sales ranks in timestamp order."""
        return [p.sales_rank for p in self.points]

    def trailing(self, days: int = 90) -> "DemandSample":
        """Sub-sample covering the last `days` days before the newest point."""
        if not self.points:
            return self
        cutoff = self.points[-1].timestamp - timedelta(days=days)
        return DemandSample(
            identifier=self.identifier,
            points=[p for p in self.points if p.timestamp >= cutoff],
        )


class PriceObservation(BaseModel):
    """Fresh cost and stock data for a tracked product."""

    identifier: str
    cost_price: Decimal = Field(..., ge=0)
    availability_text: Optional[str] = Field(
        None, description="Stock message, None when the lookup did not report one"
    )
    marketplace: str = "amazon"


# --- Tracked state ---


class TrackedProduct(BaseModel):
    """A listed product whose margin is re-evaluated over time."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    title: str = ""
    cost_price: Decimal = Field(..., ge=0)
    list_price: Decimal = Field(..., ge=0)
    margin_below_threshold_since: Optional[AwareDatetime] = None
    lifecycle_status: LifecycleStatus = LifecycleStatus.ACTIVE
    last_checked_at: Optional[AwareDatetime] = None

    @property
    def is_degraded(self) -> bool:
        """Margin was below the minimum on the last evaluation."""
        return self.margin_below_threshold_since is not None


class MarginAlert(BaseModel):
    """Alert produced by the margin state machine."""

    product_id: str
    severity: AlertSeverity
    margin_percent: float
    threshold_percent: float
    message: str
    created_at: datetime
    auto_action: Optional[str] = None
    suggested_price: Optional[Decimal] = None


# --- Configuration ---


class DiscoveryCriteria(BaseModel):
    """Thresholds a listing must meet to be imported."""

    min_price: Decimal = Field(Decimal("3"), ge=0, description="Reject if price < this")
    max_price: Decimal = Field(Decimal("25"), ge=0, description="Reject if price > this")
    min_reviews: int = Field(500, ge=0, description="Reject if reviews < this")
    min_rating: float = Field(3.5, ge=0, le=5, description="Reject if rating < this")
    require_prime: bool = Field(True, description="Reject listings without Prime")
    excluded_brand_substrings: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_BRANDS),
        description="Case-insensitive substrings rejected in the title",
    )
    excluded_condition_substrings: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_CONDITIONS),
        description="Case-insensitive substrings rejected in title or availability",
    )

    @model_validator(mode="after")
    def _check_price_bounds(self) -> "DiscoveryCriteria":
        if self.min_price > self.max_price:
            raise ValueError("min_price must be <= max_price")
        return self


class DemandConfig(BaseModel):
    """Thresholds for the sales-rank demand gate."""

    max_acceptable_rank: int = Field(100_000, gt=0, description="Reject if avg rank > this")
    max_volatility_fraction: float = Field(
        0.5, ge=0, le=1, description="Reject if (max - min) / avg rank > this"
    )
    prime_multiplier: float = Field(
        1.0, gt=0, description="Score multiplier for Prime-eligible listings"
    )
    trend_threshold_percent: float = Field(
        10.0, ge=0, description="Rank change between windows that counts as a trend"
    )


class CompetitorRange(BaseModel):
    """Multiplier range for one competitor's display price."""

    low: float = Field(..., gt=0)
    high: float = Field(..., gt=0)

    @model_validator(mode="before")
    @classmethod
    def _from_pair(cls, data: Any) -> Any:
        if isinstance(data, (list, tuple)):
            if len(data) != 2:
                raise ValueError("competitor range must be a [min, max] pair")
            return {"low": data[0], "high": data[1]}
        return data

    @model_validator(mode="after")
    def _check_order(self) -> "CompetitorRange":
        if self.high < self.low:
            raise ValueError("competitor range max must be >= min")
        return self


DEFAULT_COMPETITOR_RANGES: dict[str, CompetitorRange] = {
    "amazon": CompetitorRange(low=1.82, high=1.88),
    "costco": CompetitorRange(low=1.80, high=1.85),
    "ebay": CompetitorRange(low=1.87, high=1.93),
    "sams": CompetitorRange(low=1.80, high=1.83),
}


class MarginPolicy(BaseModel):
    """Minimum margin and how long a product may stay below it."""

    min_margin_percent: float = Field(30.0, ge=0, le=100)
    grace_period: timedelta = Field(timedelta(days=7))

    @model_validator(mode="after")
    def _check_grace_period(self) -> "MarginPolicy":
        if self.grace_period < timedelta(0):
            raise ValueError("grace_period must not be negative")
        return self


class RefreshTier(BaseModel):
    """Price check interval for products at or above a list price."""

    min_price: Decimal = Field(..., ge=0)
    interval_days: int = Field(..., gt=0)


DEFAULT_REFRESH_TIERS: list[RefreshTier] = [
    RefreshTier(min_price=Decimal("20"), interval_days=1),
    RefreshTier(min_price=Decimal("10"), interval_days=3),
    RefreshTier(min_price=Decimal("0"), interval_days=7),
]


class PricingConfig(BaseModel):
    """Complete configuration for discovery, pricing and margin tracking."""

    criteria: DiscoveryCriteria = Field(default_factory=DiscoveryCriteria)
    demand: DemandConfig = Field(default_factory=DemandConfig)
    markup_percent: Decimal = Field(Decimal("70"), ge=0, description="Markup on cost")
    competitor_ranges: dict[str, CompetitorRange] = Field(
        default_factory=lambda: dict(DEFAULT_COMPETITOR_RANGES)
    )
    minimum_competitor_markup: float = Field(
        1.80, gt=0, description="Floor for any competitor display multiplier"
    )
    margin: MarginPolicy = Field(default_factory=MarginPolicy)
    refresh_tiers: list[RefreshTier] = Field(
        default_factory=lambda: list(DEFAULT_REFRESH_TIERS)
    )

    @model_validator(mode="after")
    def _check_competitor_ranges(self) -> "PricingConfig":
        for name, competitor_range in self.competitor_ranges.items():
            if competitor_range.low < self.minimum_competitor_markup:
                raise ValueError(
                    f"competitor_ranges.{name} min {competitor_range.low} is below "
                    f"minimum_competitor_markup {self.minimum_competitor_markup}"
                )
        return self
