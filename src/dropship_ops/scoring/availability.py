"""Stock detection from free-text availability messages.

Marketplaces do not use a fixed vocabulary for stock status, so each
marketplace gets its own strategy. The Amazon strategy is a keyword
heuristic: explicit out-of-stock phrases win, otherwise one of the
in-stock indicators must be present.
"""

from dataclasses import dataclass
from typing import Mapping, Protocol


class AvailabilityStrategy(Protocol):
    """Decides whether an availability message means the item can be bought."""

    def is_in_stock(self, availability_text: str) -> bool:
        ...


IN_STOCK_MARKERS: tuple[str, ...] = (
    "in stock",
    "available",
    "left in stock",
    "ships from",
)

OUT_OF_STOCK_MARKERS: tuple[str, ...] = (
    "out of stock",
    "currently unavailable",
    "unavailable",
    "not available",
    "no longer available",
    "discontinued",
    "sold out",
)


@dataclass(frozen=True)
class KeywordAvailability:
    """Case-insensitive substring matching over the availability message."""

    in_stock_markers: tuple[str, ...] = IN_STOCK_MARKERS
    out_of_stock_markers: tuple[str, ...] = OUT_OF_STOCK_MARKERS

    def is_in_stock(self, availability_text: str) -> bool:
        text = (availability_text or "").lower()
        if any(marker in text for marker in self.out_of_stock_markers):
            return False
        return any(marker in text for marker in self.in_stock_markers)


AMAZON_AVAILABILITY = KeywordAvailability()

MARKETPLACE_STRATEGIES: Mapping[str, AvailabilityStrategy] = {
    "amazon": AMAZON_AVAILABILITY,
}


def strategy_for(
    marketplace: str,
    strategies: Mapping[str, AvailabilityStrategy] = MARKETPLACE_STRATEGIES,
) -> AvailabilityStrategy:
    """Get the availability strategy for a marketplace.

    Unknown marketplaces fall back to the Amazon keyword heuristic.
    """
    return strategies.get(marketplace.lower(), AMAZON_AVAILABILITY)
