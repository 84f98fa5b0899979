"""Margin degradation tracking for listed products.

Each product is either Healthy (margin_below_threshold_since is None) or
Degraded (margin_below_threshold_since holds the time the margin first
dropped below the minimum):

    Healthy  -> Degraded   margin < minimum; warning alert
    Degraded -> Degraded   still below; once the grace period has elapsed the
                           product is paused with a critical alert
    Degraded -> Healthy    margin >= minimum; cleared silently
    Healthy  -> Healthy    no change

Pausing is terminal here: a paused product is never reactivated by a
recovered margin. Reactivation is a manual action.

All functions take `now` explicitly and return new TrackedProduct values;
inputs are never modified.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from dropship_ops.scoring.availability import AvailabilityStrategy, strategy_for
from dropship_ops.scoring.calculator import (
    MarginResult,
    compute_margin,
    price_for_target_margin,
)
from dropship_ops.scoring.models import (
    AlertSeverity,
    InvalidInput,
    LifecycleStatus,
    MarginAlert,
    MarginPolicy,
    PriceObservation,
    PricingConfig,
    TrackedProduct,
)

logger = logging.getLogger(__name__)

AUTO_ACTION_PAUSED = "paused"


@dataclass
class MarginEvaluation:
    """Updated product plus the alerts to deliver."""

    product: TrackedProduct
    alerts: list[MarginAlert] = field(default_factory=list)
    margin: Optional[MarginResult] = None

    @property
    def paused(self) -> bool:
        """The evaluation auto-paused the product."""
        return any(a.auto_action == AUTO_ACTION_PAUSED for a in self.alerts)


def _suggested_price(product: TrackedProduct, policy: MarginPolicy) -> Optional[Decimal]:
    if policy.min_margin_percent >= 100:
        return None
    return price_for_target_margin(product.cost_price, policy.min_margin_percent)


def evaluate_margin_state(
    product: TrackedProduct,
    new_margin_percent: float,
    policy: MarginPolicy | None = None,
    *,
    now: datetime,
) -> MarginEvaluation:
    """Apply one margin reading to a product's degradation state.

    Args:
        product: Current product state (not modified)
        new_margin_percent: Margin over list price from this evaluation
        policy: Minimum margin and grace period (uses defaults if None)
        now: Timezone-aware evaluation time; must not precede
            margin_below_threshold_since

    Returns:
        MarginEvaluation with the updated product and alerts to emit

    Raises:
        InvalidInput: If the margin is not a finite number, or `now` is naive
            or earlier than the start of the current degradation
    """
    if policy is None:
        policy = MarginPolicy()

    if not math.isfinite(new_margin_percent):
        raise InvalidInput(f"Margin percent must be finite, got {new_margin_percent}")

    if now.tzinfo is None or now.utcoffset() is None:
        raise InvalidInput(f"Evaluation time must be timezone-aware, got {now.isoformat()}")

    since = product.margin_below_threshold_since
    if since is not None and now < since:
        raise InvalidInput(
            f"Evaluation time {now.isoformat()} precedes degradation start "
            f"{since.isoformat()} for {product.identifier}"
        )

    threshold = policy.min_margin_percent

    # --- Recovered or still healthy ---

    if new_margin_percent >= threshold:
        if since is None:
            return MarginEvaluation(product=product)
        logger.info(
            f"Margin recovered for {product.identifier}: "
            f"{new_margin_percent:.1f}% >= {threshold:.1f}%"
        )
        return MarginEvaluation(
            product=product.model_copy(update={"margin_below_threshold_since": None})
        )

    # --- Newly degraded ---

    if since is None:
        alert = MarginAlert(
            product_id=product.identifier,
            severity=AlertSeverity.WARNING,
            margin_percent=new_margin_percent,
            threshold_percent=threshold,
            message=(
                f"Margin {new_margin_percent:.1f}% is below minimum {threshold:.1f}%"
            ),
            created_at=now,
            suggested_price=_suggested_price(product, policy),
        )
        return MarginEvaluation(
            product=product.model_copy(update={"margin_below_threshold_since": now}),
            alerts=[alert],
        )

    # --- Still degraded ---

    if product.lifecycle_status == LifecycleStatus.PAUSED:
        return MarginEvaluation(product=product)

    elapsed = now - since
    if elapsed < policy.grace_period:
        return MarginEvaluation(product=product)

    logger.warning(
        f"Pausing {product.identifier}: margin {new_margin_percent:.1f}% below "
        f"{threshold:.1f}% since {since.isoformat()}"
    )
    alert = MarginAlert(
        product_id=product.identifier,
        severity=AlertSeverity.CRITICAL,
        margin_percent=new_margin_percent,
        threshold_percent=threshold,
        message=(
            f"Margin {new_margin_percent:.1f}% has been below minimum "
            f"{threshold:.1f}% for {elapsed}; listing paused"
        ),
        created_at=now,
        auto_action=AUTO_ACTION_PAUSED,
        suggested_price=_suggested_price(product, policy),
    )
    return MarginEvaluation(
        product=product.model_copy(update={"lifecycle_status": LifecycleStatus.PAUSED}),
        alerts=[alert],
    )


def _next_status(
    current: LifecycleStatus,
    in_stock: Optional[bool],
) -> LifecycleStatus:
    if current == LifecycleStatus.PAUSED or in_stock is None:
        return current
    if not in_stock:
        return LifecycleStatus.OUT_OF_STOCK
    if current == LifecycleStatus.OUT_OF_STOCK:
        return LifecycleStatus.ACTIVE
    return current


def apply_price_observation(
    product: TrackedProduct,
    observation: PriceObservation,
    config: PricingConfig | None = None,
    *,
    now: datetime,
    availability: AvailabilityStrategy | None = None,
) -> MarginEvaluation:
    """Re-evaluate a tracked product against a fresh cost and stock reading.

    The list price is kept; the new cost moves the margin, which then goes
    through evaluate_margin_state. Stock moves the product between active
    and out_of_stock; a paused product keeps its status.

    Raises:
        InvalidInput: If the observation is for another product, or the
            margin cannot be evaluated
    """
    if config is None:
        config = PricingConfig()

    if observation.identifier != product.identifier:
        raise InvalidInput(
            f"Observation for {observation.identifier} applied to {product.identifier}"
        )

    in_stock: Optional[bool] = None
    if observation.availability_text is not None:
        if availability is None:
            availability = strategy_for(observation.marketplace)
        in_stock = availability.is_in_stock(observation.availability_text)

    margin = compute_margin(observation.cost_price, product.list_price)

    updated = product.model_copy(
        update={
            "cost_price": observation.cost_price,
            "lifecycle_status": _next_status(product.lifecycle_status, in_stock),
            "last_checked_at": now,
        }
    )
    if updated.lifecycle_status != product.lifecycle_status:
        logger.info(
            f"{product.identifier} status {product.lifecycle_status.value} -> "
            f"{updated.lifecycle_status.value}"
        )

    evaluation = evaluate_margin_state(
        updated, margin.margin_percent, config.margin, now=now
    )
    evaluation.margin = margin
    return evaluation
