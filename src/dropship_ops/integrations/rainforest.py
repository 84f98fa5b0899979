"""Rainforest API client for Amazon search and product lookup.

- Keyword search -> ListingCandidate (discovery)
- Product lookup by ASIN -> ListingCandidate / PriceObservation (price sync)
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from dropship_ops.scoring.models import ListingCandidate, PriceObservation

logger = logging.getLogger(__name__)


class RainforestError(Exception):
    """Wrapper for Rainforest API errors."""

    def __init__(self, message: str, status_code: int = 0, is_rate_limit: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.is_rate_limit = is_rate_limit


@dataclass
class RainforestConfig:
    """Configuration for Rainforest API access."""

    api_key: str
    amazon_domain: str = "amazon.com"
    timeout: int = 30

    def __post_init__(self):
        """Validate configuration."""
        if not self.api_key:
            raise ValueError("api_key is required")


def _price_value(price: Any) -> Optional[Decimal]:
    """Extract a Decimal from a Rainforest price object ({"value": 12.99})."""
    if isinstance(price, dict):
        price = price.get("value")
    if price is None:
        return None
    try:
        value = Decimal(str(price))
    except InvalidOperation:
        return None
    return value if value > 0 else None


def _availability_raw(item: dict) -> str:
    availability = item.get("availability") or {}
    if isinstance(availability, dict):
        return availability.get("raw") or ""
    return str(availability)


class RainforestClient:
    """Client for Rainforest API operations.

    Usage:
        config = RainforestConfig(api_key="your-api-key")
        with RainforestClient(config) as client:
            candidates = client.search("silicone baking mat")
    """

    BASE_URL = "https://api.rainforestapi.com/request"

    def __init__(self, config: RainforestConfig, http_client: Optional[httpx.Client] = None):
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

    def _request(self, params: dict) -> dict:
        """Make API request."""
        params["api_key"] = self.config.api_key
        params["amazon_domain"] = self.config.amazon_domain

        response = self._client.get(self.BASE_URL, params=params)

        if response.status_code == 429:
            raise RainforestError(
                "Rate limit exceeded", status_code=429, is_rate_limit=True
            )

        if response.status_code != 200:
            raise RainforestError(
                f"API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        data = response.json()

        request_info = data.get("request_info") or {}
        if not request_info.get("success", False):
            raise RainforestError(
                f"Rainforest error: {request_info.get('message') or data.get('error') or 'Unknown error'}",
                status_code=response.status_code,
            )

        return data

    def _parse_search_result(self, item: dict) -> Optional[ListingCandidate]:
        price = _price_value(item.get("price"))
        asin = item.get("asin")
        if price is None or not asin:
            return None

        return ListingCandidate(
            identifier=asin,
            title=item.get("title", "") or "",
            price=price,
            rating=float(item.get("rating") or 0.0),
            review_count=int(item.get("ratings_total") or 0),
            is_prime_eligible=bool(item.get("is_prime", False)),
            availability_text=_availability_raw(item),
            marketplace="amazon",
        )

    def search(self, search_term: str, page: int = 1) -> list[ListingCandidate]:
        """Search Amazon and convert results to ListingCandidates.

        Results without an ASIN or a price are skipped, as are results that
        fail validation (pydantic errors are ValueErrors).

        Raises:
            RainforestError: If API call fails.
        """
        data = self._request(
            {"type": "search", "search_term": search_term, "page": str(page)}
        )

        candidates = []
        for item in data.get("search_results", []):
            try:
                candidate = self._parse_search_result(item)
            except ValueError as e:
                logger.warning(f"Skipping malformed search result {item.get('asin')}: {e}")
                continue
            if candidate is None:
                logger.debug(f"Skipping search result without price: {item.get('asin')}")
                continue
            candidates.append(candidate)

        logger.info(f"Rainforest search '{search_term}' returned {len(candidates)} candidates")
        return candidates

    def get_product(self, asin: str) -> Optional[ListingCandidate]:
        """Look up a product by ASIN, None if it has no buy box price.

        Raises:
            RainforestError: If API call fails or the product data is malformed.
        """
        data = self._request({"type": "product", "asin": asin})
        product = data.get("product") or {}
        buybox = product.get("buybox_winner") or {}

        price = _price_value(buybox.get("price"))
        if price is None:
            return None

        try:
            return ListingCandidate(
                identifier=product.get("asin", asin),
                title=product.get("title", "") or "",
                price=price,
                rating=float(product.get("rating") or 0.0),
                review_count=int(product.get("ratings_total") or 0),
                is_prime_eligible=bool(buybox.get("is_prime", False)),
                availability_text=_availability_raw(buybox) or _availability_raw(product),
                marketplace="amazon",
            )
        except ValueError as e:
            raise RainforestError(f"Malformed product data for {asin}: {e}") from e

    def get_price_observation(self, asin: str) -> Optional[PriceObservation]:
        """Current cost and stock message for a tracked ASIN."""
        candidate = self.get_product(asin)
        if candidate is None:
            return None
        return PriceObservation(
            identifier=candidate.identifier,
            cost_price=candidate.price,
            availability_text=candidate.availability_text or None,
            marketplace=candidate.marketplace,
        )
