"""Price Sync Service - periodic margin re-evaluation of tracked products.

For each product due for a price check:
1. Look up the current source cost and stock message
2. Apply it through the margin state machine
3. Persist the updated product and any margin alerts

Evaluations for the same product are serialized through a per-product lock,
so two overlapping sync cycles cannot apply readings out of order.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_ops.db.models import MarginAlertRecord, TrackedProductRecord
from dropship_ops.integrations.rainforest import RainforestError
from dropship_ops.scoring.calculator import is_stale
from dropship_ops.scoring.margin import MarginEvaluation, apply_price_observation
from dropship_ops.scoring.models import (
    InvalidInput,
    LifecycleStatus,
    PriceObservation,
    PricingConfig,
)

logger = logging.getLogger(__name__)


class PriceLookup(Protocol):
    """Source of fresh cost and stock data (RainforestClient in production)."""

    def get_price_observation(self, asin: str) -> Optional[PriceObservation]:
        ...


class ProductLocks:
    """Per-product asyncio locks shared by every sync cycle of a process."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, identifier: str) -> asyncio.Lock:
        """Get (or create) the lock for a product."""
        lock = self._locks.get(identifier)
        if lock is None:
            lock = self._locks[identifier] = asyncio.Lock()
        return lock


@dataclass
class PriceSyncResult:
    """Result of a price sync run."""

    processed: int = 0
    updated: int = 0
    missing: int = 0
    errors: int = 0
    paused: int = 0
    alerts: list[MarginAlertRecord] = field(default_factory=list)
    error_details: list[str] = field(default_factory=list)


async def save_evaluation(
    record: TrackedProductRecord,
    evaluation: MarginEvaluation,
    session: AsyncSession,
) -> list[MarginAlertRecord]:
    """Write an evaluation back to the database.

    Returns:
        Alert records added to the session.
    """
    record.apply_domain(evaluation.product)
    if evaluation.margin is not None:
        record.margin_percent = Decimal(str(round(evaluation.margin.margin_percent, 4)))

    alert_records = [
        MarginAlertRecord.from_alert(alert, record.id) for alert in evaluation.alerts
    ]
    session.add_all(alert_records)

    await session.flush()
    return alert_records


class PriceSyncService:
    """Service for running price sync cycles.

    Usage:
        service = PriceSyncService(rainforest_client, db_session, config, locks)
        result = await service.run_price_sync(limit=100)
    """

    def __init__(
        self,
        lookup: PriceLookup,
        db_session: AsyncSession,
        config: PricingConfig | None = None,
        locks: ProductLocks | None = None,
    ):
        """Initialize price sync service.

        Args:
            lookup: Client returning PriceObservations by ASIN.
            db_session: Async database session.
            config: Pipeline configuration (uses defaults if None).
            locks: Lock registry shared with other sync cycles in this process.
        """
        self.lookup = lookup
        self.session = db_session
        self.config = config or PricingConfig()
        self.locks = locks or ProductLocks()

    async def get_due_products(
        self,
        now: datetime,
        limit: int = 100,
        force: bool = False,
    ) -> list[TrackedProductRecord]:
        """Products due for a price check, least recently checked first.

        Paused products are skipped; reactivating them is a manual action.
        """
        result = await self.session.execute(
            select(TrackedProductRecord)
            .where(TrackedProductRecord.lifecycle_status != LifecycleStatus.PAUSED)
            .order_by(TrackedProductRecord.last_checked_at.asc())
        )
        records = result.scalars().all()

        due = [
            r
            for r in records
            if force
            or is_stale(r.to_domain().last_checked_at, r.list_price, now, self.config.refresh_tiers)
        ]
        return due[:limit]

    async def apply_observation(
        self,
        record: TrackedProductRecord,
        observation: PriceObservation,
        now: datetime,
    ) -> tuple[MarginEvaluation, list[MarginAlertRecord]]:
        """Apply one observation to a product under its lock and commit it.

        The record is reloaded inside the lock, so a cycle that waited sees
        what the previous holder committed.

        Raises:
            InvalidInput: If the observation cannot be applied.
        """
        async with self.locks.lock_for(record.identifier):
            await self.session.refresh(record)
            evaluation = apply_price_observation(
                record.to_domain(), observation, self.config, now=now
            )
            alerts = await save_evaluation(record, evaluation, self.session)
            await self.session.commit()

        for alert in alerts:
            logger.info(f"Margin alert for {record.identifier}: {alert.message}")
        return evaluation, alerts

    async def run_price_sync(
        self,
        limit: int = 100,
        now: Optional[datetime] = None,
        force: bool = False,
    ) -> PriceSyncResult:
        """Run one sync cycle over the products that are due.

        Args:
            limit: Maximum products to check.
            now: Cycle time (defaults to the current UTC time).
            force: Check every non-paused product regardless of staleness.
        """
        now = now or datetime.now(timezone.utc)
        result = PriceSyncResult()

        records = await self.get_due_products(now, limit=limit, force=force)
        logger.info(f"Starting price sync for {len(records)} products")

        for record in records:
            result.processed += 1
            try:
                observation = await asyncio.to_thread(
                    self.lookup.get_price_observation, record.identifier
                )
                if observation is None:
                    result.missing += 1
                    logger.warning(f"No price available for {record.identifier}")
                    continue

                evaluation, alerts = await self.apply_observation(record, observation, now)
            except (RainforestError, InvalidInput) as e:
                result.errors += 1
                result.error_details.append(f"{record.identifier}: {e}")
                logger.warning(f"Price sync failed for {record.identifier}: {e}")
                continue

            result.updated += 1
            result.alerts.extend(alerts)
            if evaluation.paused:
                result.paused += 1

        logger.info(
            f"Price sync complete - processed: {result.processed}, "
            f"updated: {result.updated}, paused: {result.paused}, errors: {result.errors}"
        )
        return result
