"""Demand scoring from sales-rank history.

Formulas:
    Avg Rank   = mean(sales_rank)
    Volatility = (max(sales_rank) - min(sales_rank)) / Avg Rank
    Score      = (Max Acceptable Rank / Avg Rank) × max(0, 1 - Volatility) × Prime Multiplier

Lower rank means more sales. The score is only used to rank candidates
against each other; the demand gate decides pass/fail:

    Gate = Avg Rank <= Max Acceptable Rank AND Volatility <= Max Volatility

The 30 and 90 day averages and the trend between them are reported
alongside and never affect the score or the gate. Windows end at the
newest point in the sample.
"""

from dataclasses import dataclass
from typing import Optional

from dropship_ops.scoring.models import DemandConfig, DemandSample, DemandTrend, InvalidInput

# Fewer points than this is not enough history to judge demand
MIN_DEMAND_POINTS = 2


@dataclass(frozen=True)
class DemandScore:
    """Demand assessment for one item."""

    score: float
    passes_demand_gate: bool
    avg_rank: Optional[float] = None
    volatility: Optional[float] = None
    insufficient_data: bool = False
    avg_rank_30d: Optional[float] = None
    avg_rank_90d: Optional[float] = None
    trend: DemandTrend = DemandTrend.STABLE


def _trailing_average(sample: DemandSample, days: int) -> Optional[float]:
    ranks = sample.trailing(days).ranks
    if not ranks:
        return None
    return sum(ranks) / len(ranks)


def rank_trend(
    avg_rank_30d: Optional[float],
    avg_rank_90d: Optional[float],
    threshold_percent: float = 10.0,
) -> DemandTrend:
    """Compare the recent average rank with the longer one.

    A 30-day average more than threshold_percent below the 90-day average
    is improving (rank is falling); more than threshold_percent above is
    declining.
    """
    if avg_rank_30d is None or not avg_rank_90d:
        return DemandTrend.STABLE

    change_percent = (avg_rank_90d - avg_rank_30d) / avg_rank_90d * 100
    if change_percent > threshold_percent:
        return DemandTrend.IMPROVING
    if change_percent < -threshold_percent:
        return DemandTrend.DECLINING
    return DemandTrend.STABLE


def score_demand(
    sample: DemandSample,
    config: DemandConfig | None = None,
    is_prime_eligible: bool = False,
) -> DemandScore:
    """Score an item's demand from its sales-rank history.

    Args:
        sample: Sales-rank history (not modified)
        config: Demand thresholds (uses defaults if None)
        is_prime_eligible: Apply the Prime multiplier to the score

    Returns:
        DemandScore; insufficient_data is set when the sample has fewer
        than two points

    Raises:
        InvalidInput: If the average rank is not positive
    """
    if config is None:
        config = DemandConfig()

    avg_30d = _trailing_average(sample, 30)
    avg_90d = _trailing_average(sample, 90)
    trend = rank_trend(avg_30d, avg_90d, config.trend_threshold_percent)

    ranks = sample.ranks
    if len(ranks) < MIN_DEMAND_POINTS:
        return DemandScore(
            score=0.0,
            passes_demand_gate=False,
            insufficient_data=True,
            avg_rank_30d=avg_30d,
            avg_rank_90d=avg_90d,
            trend=trend,
        )

    avg_rank = sum(ranks) / len(ranks)
    if avg_rank <= 0:
        raise InvalidInput(f"Average sales rank must be positive, got {avg_rank}")

    volatility = (max(ranks) - min(ranks)) / avg_rank

    passes = (
        avg_rank <= config.max_acceptable_rank
        and volatility <= config.max_volatility_fraction
    )

    # Clamped at 0 so a lower average rank never scores lower
    stability = max(0.0, 1 - volatility)
    prime_multiplier = config.prime_multiplier if is_prime_eligible else 1.0
    score = (config.max_acceptable_rank / avg_rank) * stability * prime_multiplier

    return DemandScore(
        score=score,
        passes_demand_gate=passes,
        avg_rank=avg_rank,
        volatility=volatility,
        avg_rank_30d=avg_30d,
        avg_rank_90d=avg_90d,
        trend=trend,
    )
