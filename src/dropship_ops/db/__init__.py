"""Database module."""

from dropship_ops.db.base import get_db
from dropship_ops.db.models import MarginAlertRecord, TrackedProductRecord

__all__ = ["get_db", "MarginAlertRecord", "TrackedProductRecord"]
