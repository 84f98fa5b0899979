"""External service integrations."""

from dropship_ops.integrations.keepa import (
    HistoryPoint,
    KeepaClient,
    KeepaConfig,
    KeepaError,
    ProductData,
)
from dropship_ops.integrations.rainforest import (
    RainforestClient,
    RainforestConfig,
    RainforestError,
)

__all__ = [
    # Keepa
    "HistoryPoint",
    "KeepaClient",
    "KeepaConfig",
    "KeepaError",
    "ProductData",
    # Rainforest
    "RainforestClient",
    "RainforestConfig",
    "RainforestError",
]
