"""Import Pipeline Service - orchestrates discovery and persistence.

Takes discovery outcomes and creates TrackedProduct records for the ones that
passed, so price sync can start tracking their margin.

Usage:
    service = PipelineService(discovery_service, db_session)
    result = await service.run_pipeline(["silicone baking mat"], limit=50)
    print(f"Imported {result.saved_count} of {result.passed_count} passing products")
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_ops.db.models import TrackedProductRecord
from dropship_ops.scoring.models import LifecycleStatus
from dropship_ops.services.discovery import DiscoveryOutcome, DiscoveryService

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Result of a pipeline run."""

    discovered_count: int = 0
    passed_count: int = 0
    rejected_count: int = 0
    saved_count: int = 0
    existing_count: int = 0
    rejections: dict[str, int] = field(default_factory=dict)
    outcomes: list[DiscoveryOutcome] = field(default_factory=list)

    @property
    def pass_rate(self) -> float:
        """Fraction of discovered candidates that passed."""
        if self.discovered_count == 0:
            return 0.0
        return self.passed_count / self.discovered_count


async def save_tracked_products(
    outcomes: list[DiscoveryOutcome],
    session: AsyncSession,
    now: Optional[datetime] = None,
) -> tuple[list[TrackedProductRecord], int]:
    """Create tracked products for passing outcomes.

    Products already tracked keep their prices and margin state (price sync
    owns them); only their title and demand score are refreshed.

    Returns:
        Tuple of (new records, number of already-tracked products)
    """
    now = now or datetime.now(timezone.utc)
    created: list[TrackedProductRecord] = []
    existing_count = 0

    for outcome in outcomes:
        if not outcome.passed:
            continue

        result = await session.execute(
            select(TrackedProductRecord).where(
                TrackedProductRecord.identifier == outcome.candidate.identifier
            )
        )
        existing = result.scalar_one_or_none()

        if existing:
            existing.title = outcome.candidate.title
            existing.demand_score = outcome.demand.score
            existing_count += 1
            continue

        product = outcome.to_tracked_product(now)
        pricing = outcome.pricing
        record = TrackedProductRecord(
            identifier=product.identifier,
            title=product.title,
            marketplace=outcome.candidate.marketplace,
            cost_price=product.cost_price,
            list_price=product.list_price,
            compare_at_price=pricing.compare_at_price,
            competitor_prices={k: str(v) for k, v in pricing.competitor_prices.items()},
            margin_percent=Decimal(str(round(pricing.margin.margin_percent, 4))),
            demand_score=outcome.demand.score,
            lifecycle_status=LifecycleStatus.ACTIVE,
            last_checked_at=product.last_checked_at,
        )
        session.add(record)
        created.append(record)

    await session.flush()
    return created, existing_count


class PipelineService:
    """Service for running the import pipeline.

    Orchestrates:
    1. Discovery (Rainforest search, Keepa demand, criteria, pricing)
    2. Persistence (new TrackedProduct records)
    """

    def __init__(
        self,
        discovery_service: DiscoveryService,
        db_session: AsyncSession,
    ):
        """Initialize pipeline service.

        Args:
            discovery_service: Service for discovering products.
            db_session: Async database session.
        """
        self.discovery = discovery_service
        self.session = db_session

    async def import_outcomes(
        self,
        outcomes: list[DiscoveryOutcome],
        now: Optional[datetime] = None,
    ) -> PipelineResult:
        """Count and save already-evaluated outcomes (no search step)."""
        result = PipelineResult(outcomes=outcomes)
        result.discovered_count = len(outcomes)
        result.passed_count = sum(1 for o in outcomes if o.passed)
        result.rejected_count = result.discovered_count - result.passed_count

        rejections: dict[str, int] = {}
        for outcome in outcomes:
            if not outcome.passed:
                rejections[outcome.rejection] = rejections.get(outcome.rejection, 0) + 1
        result.rejections = rejections

        created, existing = await save_tracked_products(outcomes, self.session, now)
        result.saved_count = len(created)
        result.existing_count = existing

        logger.info(
            f"Imported {result.saved_count} products "
            f"({result.existing_count} already tracked, {result.rejected_count} rejected)"
        )
        return result

    async def run_pipeline(
        self,
        search_terms: list[str],
        limit: int = 50,
        now: Optional[datetime] = None,
    ) -> PipelineResult:
        """Run the full pipeline: discover -> save.

        Args:
            search_terms: Amazon search terms.
            limit: Maximum candidates to evaluate.
            now: Import time (defaults to the current UTC time).
        """
        report = self.discovery.discover(search_terms, limit=limit)
        if not report.outcomes:
            logger.warning("No products discovered")
            return PipelineResult()

        return await self.import_outcomes(report.outcomes, now)

    async def get_tracked_products(
        self,
        status: Optional[LifecycleStatus] = None,
        limit: int = 20,
    ) -> list[TrackedProductRecord]:
        """Tracked products by demand score, optionally filtered by status."""
        query = select(TrackedProductRecord)
        if status is not None:
            query = query.where(TrackedProductRecord.lifecycle_status == status)
        query = query.order_by(TrackedProductRecord.demand_score.desc()).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())
