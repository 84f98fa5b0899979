"""Discovery criteria for marketplace listings.

Checks run in a fixed order and the first failing check decides the
rejection reason, so the same listing always reports the same reason:

1. Availability (in stock)
2. Price within [min_price, max_price]
3. Rating >= min_rating
4. Reviews >= min_reviews
5. Prime eligibility (if required)
6. Excluded brand / condition substrings
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from dropship_ops.scoring.availability import AvailabilityStrategy, strategy_for
from dropship_ops.scoring.models import (
    DiscoveryCriteria,
    ListingCandidate,
    RejectionReason,
)


@dataclass(frozen=True)
class CriteriaResult:
    """Result of applying discovery criteria to a listing."""

    passed: bool
    reason: Optional[RejectionReason] = None
    detail: Optional[str] = None

    @classmethod
    def reject(cls, reason: RejectionReason, detail: str) -> "CriteriaResult":
        """Build a failing result."""
        return cls(passed=False, reason=reason, detail=detail)


def _first_match(text: str, substrings: Iterable[str]) -> Optional[str]:
    lowered = text.lower()
    for substring in substrings:
        needle = substring.strip().lower()
        if needle and needle in lowered:
            return substring
    return None


def passes_discovery_criteria(
    candidate: ListingCandidate,
    criteria: DiscoveryCriteria | None = None,
    availability: AvailabilityStrategy | None = None,
) -> CriteriaResult:
    """Decide whether a listing qualifies for import.

    Args:
        candidate: Listing to evaluate
        criteria: Discovery thresholds (uses defaults if None)
        availability: Stock strategy (picked from candidate.marketplace if None)

    Returns:
        CriteriaResult with the reason for the first failing check
    """
    if criteria is None:
        criteria = DiscoveryCriteria()
    if availability is None:
        availability = strategy_for(candidate.marketplace)

    # --- Availability ---

    if not availability.is_in_stock(candidate.availability_text):
        return CriteriaResult.reject(
            RejectionReason.OUT_OF_STOCK,
            f"Availability '{candidate.availability_text}' is not in stock",
        )

    # --- Price ---

    if candidate.price < criteria.min_price:
        return CriteriaResult.reject(
            RejectionReason.PRICE,
            f"Price ${candidate.price:.2f} < minimum ${criteria.min_price:.2f}",
        )

    if candidate.price > criteria.max_price:
        return CriteriaResult.reject(
            RejectionReason.PRICE,
            f"Price ${candidate.price:.2f} > maximum ${criteria.max_price:.2f}",
        )

    # --- Social proof ---

    if candidate.rating < criteria.min_rating:
        return CriteriaResult.reject(
            RejectionReason.RATING,
            f"Rating {candidate.rating} < minimum {criteria.min_rating}",
        )

    if candidate.review_count < criteria.min_reviews:
        return CriteriaResult.reject(
            RejectionReason.REVIEWS,
            f"Reviews {candidate.review_count} < minimum {criteria.min_reviews}",
        )

    # --- Shipping ---

    if criteria.require_prime and not candidate.is_prime_eligible:
        return CriteriaResult.reject(RejectionReason.PRIME, "Not Prime eligible")

    # --- Exclusions ---

    brand = _first_match(candidate.title, criteria.excluded_brand_substrings)
    if brand is not None:
        return CriteriaResult.reject(
            RejectionReason.EXCLUDED_BRAND,
            f"Title contains excluded brand '{brand}'",
        )

    condition = _first_match(
        f"{candidate.title}\n{candidate.availability_text}",
        criteria.excluded_condition_substrings,
    )
    if condition is not None:
        return CriteriaResult.reject(
            RejectionReason.EXCLUDED_CONDITION,
            f"Listing contains excluded condition '{condition}'",
        )

    return CriteriaResult(passed=True)
