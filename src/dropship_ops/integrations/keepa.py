"""Keepa API client for Amazon sales-rank and price history.

Provides the demand data for discovery:
- Sales rank (BSR) history -> DemandSample
- Current price, rating, reviews and Prime status -> ListingCandidate
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

import httpx

from dropship_ops.scoring.models import DemandPoint, DemandSample, ListingCandidate

logger = logging.getLogger(__name__)


class KeepaError(Exception):
    """Wrapper for Keepa API errors."""

    def __init__(self, message: str, tokens_left: int = -1, is_rate_limit: bool = False):
        super().__init__(message)
        self.tokens_left = tokens_left
        self.is_rate_limit = is_rate_limit


@dataclass
class HistoryPoint:
    """A single value in a Keepa history series."""

    timestamp: datetime
    value: int  # Cents for prices, rank for sales rank; -1 = no data


@dataclass
class ProductData:
    """Amazon product data from Keepa."""

    asin: str
    title: str
    brand: Optional[str]

    # Current prices (cents, -1 = unavailable)
    current_price_cents: int
    current_amazon_price_cents: int

    # Status flags
    is_prime_eligible: bool
    is_available: bool

    # Stats
    review_count: int
    rating: Optional[Decimal]  # 0-5 scale
    sales_rank: Optional[int]

    # History (oldest first)
    sales_rank_history: list[HistoryPoint]
    price_history: list[HistoryPoint]

    @property
    def current_price_dollars(self) -> Optional[Decimal]:
        """Current price in dollars, None if unavailable."""
        if self.current_price_cents < 0:
            return None
        return Decimal(self.current_price_cents) / 100

    def to_demand_sample(self) -> DemandSample:
        """Convert sales-rank history to a DemandSample.

        Points without a rank are dropped, and repeated timestamps keep the
        latest value.
        """
        by_time: dict[datetime, int] = {}
        for point in self.sales_rank_history:
            if point.value > 0:
                by_time[point.timestamp] = point.value

        return DemandSample(
            identifier=self.asin,
            points=[
                DemandPoint(timestamp=ts, sales_rank=rank)
                for ts, rank in sorted(by_time.items())
            ],
        )

    def to_listing_candidate(self) -> Optional[ListingCandidate]:
        """Convert to a ListingCandidate, None if there is no current price."""
        price = self.current_price_dollars
        if price is None:
            return None

        return ListingCandidate(
            identifier=self.asin,
            title=self.title,
            price=price,
            rating=float(self.rating) if self.rating is not None else 0.0,
            review_count=self.review_count,
            is_prime_eligible=self.is_prime_eligible,
            # Keepa has no stock message; report the offer state in words
            availability_text="In Stock" if self.is_available else "Currently unavailable",
            marketplace="amazon",
        )


@dataclass
class KeepaConfig:
    """Configuration for Keepa API access."""

    api_key: str
    domain: str = "1"  # 1 = amazon.com (US)
    timeout: int = 30
    history_days: int = 90

    def __post_init__(self):
        """Validate configuration."""
        if not self.api_key:
            raise ValueError("api_key is required")


class KeepaClient:
    """Client for Keepa API operations.

    Usage:
        config = KeepaConfig(api_key="your-api-key")
        with KeepaClient(config) as client:
            sample = client.get_demand_sample("B08N5WRWNW")
    """

    BASE_URL = "https://api.keepa.com"

    # Keepa time offset (minutes since 2011-01-01)
    KEEPA_EPOCH = datetime(2011, 1, 1)

    # Series indices in Keepa csv arrays
    PRICE_TYPE_AMAZON = 0
    PRICE_TYPE_NEW = 1
    PRICE_TYPE_SALES_RANK = 3
    PRICE_TYPE_BUY_BOX = 18

    def __init__(self, config: KeepaConfig, http_client: Optional[httpx.Client] = None):
        """Initialize client with configuration."""
        self.config = config
        self._client = http_client or httpx.Client(timeout=config.timeout)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self._client.close()

    def close(self):
        """Close the HTTP client."""
        self._client.close()

    def _keepa_time_to_datetime(self, keepa_minutes: int) -> datetime:
        """Convert Keepa time (minutes since 2011-01-01) to datetime."""
        return self.KEEPA_EPOCH + timedelta(minutes=keepa_minutes)

    def _parse_history(self, csv_data: Optional[list], series: int) -> list[HistoryPoint]:
        """Parse a Keepa csv series of [time, value, time, value, ...]."""
        if not csv_data or series >= len(csv_data) or not csv_data[series]:
            return []

        data = csv_data[series]
        history = []

        for i in range(0, len(data) - 1, 2):
            keepa_time = data[i]
            value = data[i + 1]

            if keepa_time is not None and value is not None:
                history.append(
                    HistoryPoint(
                        timestamp=self._keepa_time_to_datetime(keepa_time),
                        value=value if value >= 0 else -1,
                    )
                )

        return history

    def _parse_sales_rank_history(self, product: dict) -> list[HistoryPoint]:
        """Sales rank history, preferring the root category series."""
        history = self._parse_history(product.get("csv"), self.PRICE_TYPE_SALES_RANK)
        if history:
            return history

        # Newer responses key rank series by category id
        sales_ranks = product.get("salesRanks") or {}
        root = product.get("salesRankReference")
        series = sales_ranks.get(str(root)) if root is not None else None
        if series is None and sales_ranks:
            series = next(iter(sales_ranks.values()))
        return self._parse_history([series], 0) if series else []

    def _request(self, endpoint: str, params: dict) -> dict:
        """Make API request."""
        params["key"] = self.config.api_key

        response = self._client.get(
            f"{self.BASE_URL}/{endpoint}",
            params=params,
        )

        if response.status_code == 429:
            raise KeepaError(
                "Rate limit exceeded",
                tokens_left=0,
                is_rate_limit=True,
            )

        if response.status_code != 200:
            raise KeepaError(f"API error: {response.status_code} - {response.text}")

        data = response.json()

        if "error" in data:
            error = data["error"]
            raise KeepaError(
                f"Keepa error: {error.get('message', 'Unknown error')}",
                tokens_left=data.get("tokensLeft", -1),
            )

        return data

    def get_tokens_left(self) -> int:
        """Get remaining API tokens.

        Raises:
            KeepaError: If API call fails.
        """
        data = self._request("token", {"domain": self.config.domain})
        return data.get("tokensLeft", 0)

    def _parse_product(self, product: dict) -> ProductData:
        stats = product.get("stats", {})
        current = stats.get("current", [])

        def current_value(index: int) -> int:
            value = current[index] if len(current) > index else None
            return value if value is not None and value > 0 else -1

        amazon_price = current_value(self.PRICE_TYPE_AMAZON)
        new_price = current_value(self.PRICE_TYPE_NEW)
        buy_box_price = current_value(self.PRICE_TYPE_BUY_BOX)
        sales_rank = current_value(self.PRICE_TYPE_SALES_RANK)

        # Prefer buy box, then Amazon, then lowest new offer
        if buy_box_price > 0:
            current_price = buy_box_price
        elif amazon_price > 0:
            current_price = amazon_price
        else:
            current_price = new_price

        is_prime = bool(
            product.get("isPrimeExclusive")
            or stats.get("buyBoxIsFBA")
            or amazon_price > 0
        )

        # Rating is stored as integer (45 = 4.5 stars)
        rating_int = product.get("rating")
        rating = Decimal(rating_int) / 10 if rating_int else None

        return ProductData(
            asin=product.get("asin", ""),
            title=product.get("title", "") or "",
            brand=product.get("brand"),
            current_price_cents=current_price,
            current_amazon_price_cents=amazon_price,
            is_prime_eligible=is_prime,
            is_available=current_price > 0,
            review_count=product.get("reviewCount", 0) or 0,
            rating=rating,
            sales_rank=sales_rank if sales_rank > 0 else None,
            sales_rank_history=self._parse_sales_rank_history(product),
            price_history=self._parse_history(product.get("csv"), self.PRICE_TYPE_NEW),
        )

    def get_products(self, asins: list[str]) -> list[ProductData]:
        """Get product data for multiple ASINs.

        Args:
            asins: List of ASINs (max 100).

        Raises:
            KeepaError: If API call fails.
            ValueError: If more than 100 ASINs provided.
        """
        if len(asins) > 100:
            raise ValueError("Maximum 100 ASINs per request")

        if not asins:
            return []

        data = self._request(
            "product",
            {
                "domain": self.config.domain,
                "asin": ",".join(asins),
                "stats": str(self.config.history_days),
                "history": "1",
                "rating": "1",
            },
        )

        return [self._parse_product(p) for p in data.get("products", [])]

    def get_product(self, asin: str) -> Optional[ProductData]:
        """Get product data by ASIN, None if not found."""
        products = self.get_products([asin])
        return products[0] if products else None

    def get_demand_sample(self, asin: str) -> DemandSample:
        """Get the trailing sales-rank history for an ASIN.

        Returns an empty sample when Keepa has no record of the product.

        Raises:
            KeepaError: If API call fails.
        """
        product = self.get_product(asin)
        if product is None:
            logger.warning(f"Keepa has no data for {asin}")
            return DemandSample(identifier=asin)
        return product.to_demand_sample().trailing(self.config.history_days)

    def get_demand_samples(self, asins: list[str]) -> dict[str, DemandSample]:
        """Trailing sales-rank history for up to 100 ASINs, keyed by ASIN."""
        return {
            p.asin: p.to_demand_sample().trailing(self.config.history_days)
            for p in self.get_products(asins)
        }
