"""Core pricing calculations.

Formulas:
    List Price      = round2(Cost × (1 + Markup% / 100))
    Display Price   = round2(List Price × U(range min, range max))   per competitor
    Margin Amount   = List Price - Cost
    Margin %        = Margin Amount / List Price × 100

Margin is taken over the list price, not the cost. All money values are
Decimals rounded half-up to cents.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, ROUND_UP, Decimal
from typing import Mapping, Optional, Sequence, Union

from dropship_ops.scoring.models import (
    DEFAULT_REFRESH_TIERS,
    CompetitorRange,
    InvalidInput,
    RefreshTier,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

Number = Union[Decimal, float, int, str]
RandomSource = Union[random.Random, int, None]


@dataclass(frozen=True)
class MarginResult:
    """Profit on a single unit."""

    margin_amount: Decimal
    margin_percent: float


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without binary float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round2(value: Number) -> Decimal:
    """Round half-up to two decimal places (currency)."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_list_price(cost_price: Number, markup_percent: Number) -> Decimal:
    """Calculate our retail price from the source cost.

    Args:
        cost_price: Source cost (USD)
        markup_percent: Markup on cost (70 = 70%)

    Returns:
        List price rounded to cents

    Raises:
        InvalidInput: If cost or markup is negative
    """
    cost = to_decimal(cost_price)
    markup = to_decimal(markup_percent)
    if cost < 0:
        raise InvalidInput(f"Cost price must not be negative, got {cost}")
    if markup < 0:
        raise InvalidInput(f"Markup percent must not be negative, got {markup}")

    return round2(cost * (1 + markup / 100))


def resolve_rng(rng: RandomSource) -> random.Random:
    """Use a generator as-is, or build one from a seed (unseeded if None)."""
    if isinstance(rng, random.Random):
        return rng
    return random.Random(rng)


def compute_competitor_display_prices(
    list_price: Number,
    competitor_ranges: Mapping[str, Union[CompetitorRange, Sequence[float]]],
    rng: RandomSource = None,
    minimum_markup: Optional[float] = None,
) -> dict[str, Decimal]:
    """Generate "compare at" prices shown for each competitor.

    Each competitor price is drawn uniformly from
    [list_price × range min, list_price × range max], so our real price
    reads as a discount. Competitors are drawn in mapping order, which makes
    the output reproducible for a given seed.

    Args:
        list_price: Our list price
        competitor_ranges: Competitor name -> multiplier range
        rng: Random generator or integer seed (fresh unseeded generator if None)
        minimum_markup: Floor multiplier; lower draws are raised to it

    Returns:
        Competitor name -> display price

    Raises:
        InvalidInput: If list_price is negative
    """
    price = to_decimal(list_price)
    if price < 0:
        raise InvalidInput(f"List price must not be negative, got {price}")

    generator = resolve_rng(rng)
    floor = round2(price * to_decimal(minimum_markup)) if minimum_markup else None

    prices: dict[str, Decimal] = {}
    for name, bounds in competitor_ranges.items():
        if not isinstance(bounds, CompetitorRange):
            bounds = CompetitorRange.model_validate(bounds)

        multiplier = generator.uniform(bounds.low, bounds.high)
        display_price = round2(price * to_decimal(multiplier))

        if floor is not None and display_price < floor:
            logger.warning(
                f"{name} display price ${display_price} raised to minimum ${floor}"
            )
            display_price = floor

        prices[name] = display_price

    return prices


def highest_display_price(prices: Mapping[str, Decimal]) -> Optional[Decimal]:
    """Highest competitor price, used as the listing's compare-at price."""
    return max(prices.values()) if prices else None


def compute_margin(cost_price: Number, list_price: Number) -> MarginResult:
    """Calculate profit amount and margin percentage over list price.

    Args:
        cost_price: Source cost (USD)
        list_price: Our list price (USD)

    Returns:
        MarginResult; margin_percent is 0 when cost is 0

    Raises:
        InvalidInput: If either price is negative, or list price is zero
            while cost is positive
    """
    cost = to_decimal(cost_price)
    price = to_decimal(list_price)
    if cost < 0 or price < 0:
        raise InvalidInput(f"Prices must not be negative (cost={cost}, list={price})")

    amount = price - cost
    if cost == 0:
        return MarginResult(margin_amount=amount, margin_percent=0.0)
    if price == 0:
        raise InvalidInput(f"List price must be positive when cost is {cost}")

    return MarginResult(
        margin_amount=amount,
        margin_percent=float(amount / price * 100),
    )


def price_for_target_margin(cost_price: Number, target_margin_percent: Number) -> Decimal:
    """Smallest cent price whose margin over list price reaches the target.

    Price = Cost / (1 - Target% / 100), rounded up to the next cent.

    Raises:
        InvalidInput: If cost is negative or target is outside [0, 100)
    """
    cost = to_decimal(cost_price)
    target = to_decimal(target_margin_percent)
    if cost < 0:
        raise InvalidInput(f"Cost price must not be negative, got {cost}")
    if not 0 <= target < 100:
        raise InvalidInput(f"Target margin must be in [0, 100), got {target}")

    return (cost / (1 - target / 100)).quantize(CENTS, rounding=ROUND_UP)


def refresh_interval_days(
    list_price: Number,
    tiers: Sequence[RefreshTier] = DEFAULT_REFRESH_TIERS,
) -> int:
    """Days between price checks for a product at this list price.

    Pricier products are checked more often. The tier with the highest
    min_price not above the list price applies.
    """
    price = to_decimal(list_price)
    for tier in sorted(tiers, key=lambda t: t.min_price, reverse=True):
        if price >= tier.min_price:
            return tier.interval_days
    return max(t.interval_days for t in tiers) if tiers else 1


def is_stale(
    last_checked_at: Optional[datetime],
    list_price: Number,
    now: datetime,
    tiers: Sequence[RefreshTier] = DEFAULT_REFRESH_TIERS,
) -> bool:
    """Whether a product is due for a price check."""
    if last_checked_at is None:
        return True
    interval = timedelta(days=refresh_interval_days(list_price, tiers))
    return now - last_checked_at >= interval
