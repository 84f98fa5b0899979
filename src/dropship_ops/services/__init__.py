"""Business logic services."""

from dropship_ops.services.discovery import (
    DiscoveryOutcome,
    DiscoveryReport,
    DiscoveryService,
    PricedListing,
    evaluate_candidate,
    price_listing,
)
from dropship_ops.services.pipeline import (
    PipelineResult,
    PipelineService,
    save_tracked_products,
)
from dropship_ops.services.price_sync import (
    PriceSyncResult,
    PriceSyncService,
    ProductLocks,
    save_evaluation,
)

__all__ = [
    # Discovery
    "DiscoveryOutcome",
    "DiscoveryReport",
    "DiscoveryService",
    "PricedListing",
    "evaluate_candidate",
    "price_listing",
    # Pipeline
    "PipelineResult",
    "PipelineService",
    "save_tracked_products",
    # Price sync
    "PriceSyncResult",
    "PriceSyncService",
    "ProductLocks",
    "save_evaluation",
]
