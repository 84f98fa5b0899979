"""Product Discovery Service - finds, qualifies and prices Amazon listings.

Orchestrates data from multiple sources:
- Rainforest: keyword search (price, rating, reviews, Prime, availability)
- Keepa: sales-rank history for the demand gate

Each candidate goes through Criteria Filter -> Demand Scorer -> Pricing,
and passing candidates are ranked by demand score.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from dropship_ops.integrations.keepa import KeepaClient, KeepaError
from dropship_ops.integrations.rainforest import RainforestClient, RainforestError
from dropship_ops.scoring.calculator import (
    MarginResult,
    RandomSource,
    compute_competitor_display_prices,
    compute_list_price,
    compute_margin,
    highest_display_price,
    resolve_rng,
)
from dropship_ops.scoring.demand import DemandScore, score_demand
from dropship_ops.scoring.filters import CriteriaResult, passes_discovery_criteria
from dropship_ops.scoring.models import (
    DemandSample,
    ListingCandidate,
    PricingConfig,
    TrackedProduct,
)

logger = logging.getLogger(__name__)

# Keepa accepts up to 100 ASINs per request
KEEPA_BATCH_SIZE = 100

DEMAND_REJECTION = "demand"


@dataclass
class PricedListing:
    """Prices computed for a listing at discovery time."""

    list_price: Decimal
    competitor_prices: dict[str, Decimal]
    compare_at_price: Optional[Decimal]
    margin: MarginResult


@dataclass
class DiscoveryOutcome:
    """Decision for one candidate."""

    candidate: ListingCandidate
    criteria: CriteriaResult
    demand: Optional[DemandScore] = None
    pricing: Optional[PricedListing] = None

    @property
    def passed(self) -> bool:
        """Candidate passed criteria and the demand gate and was priced."""
        return (
            self.criteria.passed
            and self.demand is not None
            and self.demand.passes_demand_gate
            and self.pricing is not None
        )

    @property
    def rejection(self) -> Optional[str]:
        """Reason code for a rejected candidate."""
        if not self.criteria.passed:
            return self.criteria.reason.value if self.criteria.reason else None
        if self.demand is None or not self.demand.passes_demand_gate:
            return DEMAND_REJECTION
        return None

    def to_tracked_product(self, now: datetime) -> TrackedProduct:
        """Create the TrackedProduct for an imported candidate."""
        if not self.passed:
            raise ValueError(f"Candidate {self.candidate.identifier} did not pass discovery")
        return TrackedProduct(
            identifier=self.candidate.identifier,
            title=self.candidate.title,
            cost_price=self.candidate.price,
            list_price=self.pricing.list_price,
            last_checked_at=now,
        )


def price_listing(
    cost_price: Decimal,
    config: PricingConfig | None = None,
    rng: RandomSource = None,
) -> PricedListing:
    """Compute list price, competitor display prices and margin for a cost.

    Raises:
        InvalidInput: If the cost is negative
    """
    if config is None:
        config = PricingConfig()

    list_price = compute_list_price(cost_price, config.markup_percent)
    competitor_prices = compute_competitor_display_prices(
        list_price,
        config.competitor_ranges,
        rng=rng,
        minimum_markup=config.minimum_competitor_markup,
    )
    return PricedListing(
        list_price=list_price,
        competitor_prices=competitor_prices,
        compare_at_price=highest_display_price(competitor_prices),
        margin=compute_margin(cost_price, list_price),
    )


def evaluate_candidate(
    candidate: ListingCandidate,
    demand: Optional[DemandSample],
    config: PricingConfig | None = None,
    rng: RandomSource = None,
) -> DiscoveryOutcome:
    """Run one candidate through criteria, demand gate and pricing.

    A missing demand sample counts as insufficient data.
    """
    if config is None:
        config = PricingConfig()

    criteria = passes_discovery_criteria(candidate, config.criteria)
    if not criteria.passed:
        return DiscoveryOutcome(candidate=candidate, criteria=criteria)

    demand_score = score_demand(
        demand or DemandSample(identifier=candidate.identifier),
        config.demand,
        is_prime_eligible=candidate.is_prime_eligible,
    )
    if not demand_score.passes_demand_gate:
        return DiscoveryOutcome(candidate=candidate, criteria=criteria, demand=demand_score)

    return DiscoveryOutcome(
        candidate=candidate,
        criteria=criteria,
        demand=demand_score,
        pricing=price_listing(candidate.price, config, rng),
    )


@dataclass
class DiscoveryReport:
    """Result of a discovery run."""

    outcomes: list[DiscoveryOutcome] = field(default_factory=list)

    @property
    def passed(self) -> list[DiscoveryOutcome]:
        """Passing outcomes, highest demand score first."""
        return sorted(
            (o for o in self.outcomes if o.passed),
            key=lambda o: o.demand.score,
            reverse=True,
        )

    @property
    def rejection_counts(self) -> Counter:
        """Rejected candidates per reason code."""
        return Counter(o.rejection for o in self.outcomes if not o.passed)


class DiscoveryService:
    """Service for discovering and pricing products.

    Usage:
        service = DiscoveryService(rainforest_client, keepa_client, config)
        report = service.discover(["silicone baking mat"], limit=50)
        for outcome in report.passed:
            print(outcome.candidate.title, outcome.pricing.list_price)
    """

    def __init__(
        self,
        search_client: RainforestClient,
        keepa_client: Optional[KeepaClient] = None,
        config: PricingConfig | None = None,
        rng: RandomSource = None,
    ):
        """Initialize with API clients.

        Args:
            search_client: Rainforest client for keyword search
            keepa_client: Keepa client for sales-rank history (optional; without
                it every candidate fails the demand gate)
            config: Pipeline configuration (uses defaults if None)
            rng: Random generator or seed for competitor display prices
        """
        self.search_client = search_client
        self.keepa_client = keepa_client
        self.config = config or PricingConfig()
        self.rng = resolve_rng(rng)

    def search_candidates(self, search_terms: list[str], limit: int = 50) -> list[ListingCandidate]:
        """Search each term and collect candidates, deduplicated by ASIN."""
        candidates: dict[str, ListingCandidate] = {}

        for term in search_terms:
            if len(candidates) >= limit:
                break
            try:
                results = self.search_client.search(term)
            except RainforestError as e:
                logger.warning(f"Failed to search for '{term}': {e}")
                continue

            for candidate in results:
                if candidate.identifier not in candidates:
                    candidates[candidate.identifier] = candidate

        return list(candidates.values())[:limit]

    def fetch_demand(self, asins: list[str]) -> dict[str, DemandSample]:
        """Sales-rank history for the given ASINs (empty if Keepa is not configured)."""
        if not self.keepa_client or not asins:
            if asins:
                logger.warning("Keepa client not configured - no demand data")
            return {}

        samples: dict[str, DemandSample] = {}
        for start in range(0, len(asins), KEEPA_BATCH_SIZE):
            batch = asins[start:start + KEEPA_BATCH_SIZE]
            try:
                samples.update(self.keepa_client.get_demand_samples(batch))
            except KeepaError as e:
                logger.warning(f"Failed to get Keepa data for {len(batch)} ASINs: {e}")
        return samples

    def evaluate(self, candidates: list[ListingCandidate]) -> DiscoveryReport:
        """Evaluate candidates, fetching demand only for those passing criteria."""
        report = DiscoveryReport()

        qualifying = [
            c.identifier
            for c in candidates
            if passes_discovery_criteria(c, self.config.criteria).passed
        ]
        samples = self.fetch_demand(qualifying)

        for candidate in candidates:
            report.outcomes.append(
                evaluate_candidate(
                    candidate,
                    samples.get(candidate.identifier),
                    self.config,
                    self.rng,
                )
            )

        logger.info(
            f"Evaluated {len(candidates)} candidates: {len(report.passed)} passed, "
            f"rejections {dict(report.rejection_counts)}"
        )
        return report

    def discover(self, search_terms: list[str], limit: int = 50) -> DiscoveryReport:
        """Search, qualify and price products for the given search terms."""
        logger.info(f"Discovering products for {len(search_terms)} terms (limit={limit})")
        candidates = self.search_candidates(search_terms, limit)
        if not candidates:
            logger.warning("No candidates found")
            return DiscoveryReport()
        return self.evaluate(candidates)

    def close(self):
        """Close API clients."""
        self.search_client.close()
        if self.keepa_client:
            self.keepa_client.close()
