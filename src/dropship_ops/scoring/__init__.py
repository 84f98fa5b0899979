"""Discovery and pricing decision pipeline."""

from dropship_ops.scoring.availability import (
    AvailabilityStrategy,
    KeywordAvailability,
    strategy_for,
)
from dropship_ops.scoring.calculator import (
    MarginResult,
    compute_competitor_display_prices,
    compute_list_price,
    compute_margin,
    highest_display_price,
    is_stale,
    price_for_target_margin,
    refresh_interval_days,
    round2,
)
from dropship_ops.scoring.demand import DemandScore, score_demand
from dropship_ops.scoring.filters import CriteriaResult, passes_discovery_criteria
from dropship_ops.scoring.margin import (
    MarginEvaluation,
    apply_price_observation,
    evaluate_margin_state,
)
from dropship_ops.scoring.models import (
    AlertSeverity,
    CompetitorRange,
    DemandConfig,
    DemandPoint,
    DemandSample,
    DemandTrend,
    DiscoveryCriteria,
    InvalidInput,
    LifecycleStatus,
    ListingCandidate,
    MarginAlert,
    MarginPolicy,
    PriceObservation,
    PricingConfig,
    RejectionReason,
    TrackedProduct,
)

__all__ = [
    # Models
    "AlertSeverity",
    "CompetitorRange",
    "DemandConfig",
    "DemandPoint",
    "DemandSample",
    "DemandTrend",
    "DiscoveryCriteria",
    "InvalidInput",
    "LifecycleStatus",
    "ListingCandidate",
    "MarginAlert",
    "MarginPolicy",
    "PriceObservation",
    "PricingConfig",
    "RejectionReason",
    "TrackedProduct",
    # Availability
    "AvailabilityStrategy",
    "KeywordAvailability",
    "strategy_for",
    # Criteria filter
    "CriteriaResult",
    "passes_discovery_criteria",
    # Demand scorer
    "DemandScore",
    "score_demand",
    # Calculator
    "MarginResult",
    "compute_competitor_display_prices",
    "compute_list_price",
    "compute_margin",
    "highest_display_price",
    "is_stale",
    "price_for_target_margin",
    "refresh_interval_days",
    "round2",
    # Margin state
    "MarginEvaluation",
    "apply_price_observation",
    "evaluate_margin_state",
]
