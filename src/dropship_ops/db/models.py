"""Database models for tracked products and margin alerts."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Enum, Float, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from dropship_ops.db.base import Base
from dropship_ops.scoring.models import (
    AlertSeverity,
    LifecycleStatus,
    MarginAlert,
    TrackedProduct,
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; stored times are UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TrackedProductRecord(Base):
    """A listed product tracked by price sync."""

    __tablename__ = "tracked_products"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Product identification
    identifier: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(500), default="")
    marketplace: Mapped[str] = mapped_column(String(50), default="amazon")

    # Pricing
    cost_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    list_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    compare_at_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    competitor_prices: Mapped[dict[str, str]] = mapped_column(JSON, default=dict)
    margin_percent: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)

    # Discovery
    demand_score: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Margin state
    margin_below_threshold_since: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    lifecycle_status: Mapped[LifecycleStatus] = mapped_column(
        Enum(LifecycleStatus),
        default=LifecycleStatus.ACTIVE,
        index=True,
    )
    last_checked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    alerts: Mapped[list["MarginAlertRecord"]] = relationship(back_populates="product")

    def to_domain(self) -> TrackedProduct:
        """Convert to the pricing core's TrackedProduct."""
        return TrackedProduct(
            identifier=self.identifier,
            title=self.title or "",
            cost_price=self.cost_price,
            list_price=self.list_price,
            margin_below_threshold_since=_as_utc(self.margin_below_threshold_since),
            lifecycle_status=self.lifecycle_status,
            last_checked_at=_as_utc(self.last_checked_at),
        )

    def apply_domain(self, product: TrackedProduct) -> None:
        """Copy state written by the pricing core back onto this record."""
        self.cost_price = product.cost_price
        self.list_price = product.list_price
        self.margin_below_threshold_since = product.margin_below_threshold_since
        self.lifecycle_status = product.lifecycle_status
        self.last_checked_at = product.last_checked_at

    def __repr__(self) -> str:
        return f"<TrackedProduct {self.identifier}: {self.lifecycle_status.value}>"


class MarginAlertRecord(Base):
    """Margin alert emitted by the margin state machine."""

    __tablename__ = "margin_alerts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Product reference
    tracked_product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tracked_products.id"),
        index=True,
    )
    product_identifier: Mapped[str] = mapped_column(String(255), index=True)

    # Alert
    severity: Mapped[AlertSeverity] = mapped_column(Enum(AlertSeverity))
    margin_percent: Mapped[Decimal] = mapped_column(Numeric(10, 4))
    threshold_percent: Mapped[Decimal] = mapped_column(Numeric(10, 4))
    message: Mapped[str] = mapped_column(Text, default="")
    auto_action: Mapped[str | None] = mapped_column(String(50), nullable=True)
    suggested_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    # Relationships
    product: Mapped["TrackedProductRecord"] = relationship(back_populates="alerts")

    @classmethod
    def from_alert(cls, alert: MarginAlert, tracked_product_id: uuid.UUID) -> "MarginAlertRecord":
        """Build a record from a core MarginAlert."""
        return cls(
            tracked_product_id=tracked_product_id,
            product_identifier=alert.product_id,
            severity=alert.severity,
            margin_percent=Decimal(str(round(alert.margin_percent, 4))),
            threshold_percent=Decimal(str(alert.threshold_percent)),
            message=alert.message,
            auto_action=alert.auto_action,
            suggested_price=alert.suggested_price,
            created_at=alert.created_at,
        )

    def __repr__(self) -> str:
        return f"<MarginAlert {self.product_identifier}: {self.severity.value}>"
