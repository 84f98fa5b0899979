"""Tracked Products API endpoints.

Endpoints for viewing tracked products and feeding them fresh prices.

Endpoints:
- GET /products/tracked - list tracked products (filterable by status)
- GET /products/{id} - get a tracked product
- POST /products/{id}/observations - apply a price observation
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_ops.api.routers.alerts import MarginAlertResponse
from dropship_ops.api.routers.discovery import get_pricing_config
from dropship_ops.db.base import get_db
from dropship_ops.db.models import TrackedProductRecord
from dropship_ops.scoring.margin import apply_price_observation
from dropship_ops.scoring.models import (
    InvalidInput,
    LifecycleStatus,
    PriceObservation,
    PricingConfig,
)
from dropship_ops.services.price_sync import ProductLocks, save_evaluation

router = APIRouter(prefix="/products", tags=["tracked"])


class TrackedProductListItem(BaseModel):
    """Tracked product list item response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    identifier: str
    title: str
    cost_price: Decimal
    list_price: Decimal
    margin_percent: Decimal | None
    demand_score: float | None
    lifecycle_status: LifecycleStatus
    last_checked_at: datetime | None


class TrackedProductListResponse(BaseModel):
    """Response for list of tracked products."""

    items: list[TrackedProductListItem]
    total: int
    limit: int
    offset: int


class TrackedProductResponse(BaseModel):
    """Full tracked product response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    identifier: str
    title: str
    marketplace: str

    # Pricing
    cost_price: Decimal
    list_price: Decimal
    compare_at_price: Decimal | None
    competitor_prices: dict[str, Decimal]
    margin_percent: Decimal | None

    # Discovery
    demand_score: float | None

    # Margin state
    margin_below_threshold_since: datetime | None
    lifecycle_status: LifecycleStatus
    last_checked_at: datetime | None

    # Timestamps
    created_at: datetime
    updated_at: datetime


class ObservationRequest(BaseModel):
    """Fresh cost and stock data for a product."""

    cost_price: Decimal = Field(..., ge=0)
    availability_text: Optional[str] = Field(
        None, description="Stock message; omit to leave the stock status unchanged"
    )
    observed_at: Optional[datetime] = Field(
        None, description="Observation time (defaults to now; naive times are UTC)"
    )

    @field_validator("observed_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ObservationResponse(BaseModel):
    """Product state after applying an observation."""

    product: TrackedProductResponse
    margin_percent: float | None
    alerts: list[MarginAlertResponse]


async def _get_record(db: AsyncSession, product_id: UUID) -> TrackedProductRecord:
    result = await db.execute(
        select(TrackedProductRecord).where(TrackedProductRecord.id == product_id)
    )
    record = result.scalar_one_or_none()

    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tracked product not found",
        )

    return record


@router.get("/tracked", response_model=TrackedProductListResponse)
async def list_tracked_products(
    lifecycle_status: LifecycleStatus | None = Query(
        None,
        alias="status",
        description="Filter by status (active, paused, out_of_stock)",
    ),
    limit: int = Query(20, ge=1, le=100, description="Maximum number of results"),
    offset: int = Query(0, ge=0, description="Number of results to skip"),
    db: AsyncSession = Depends(get_db),
) -> TrackedProductListResponse:
    """List tracked products with optional filtering.

    Results are sorted by demand score descending.
    """
    query = select(TrackedProductRecord)
    count_query = select(func.count()).select_from(TrackedProductRecord)

    if lifecycle_status:
        query = query.where(TrackedProductRecord.lifecycle_status == lifecycle_status)
        count_query = count_query.where(
            TrackedProductRecord.lifecycle_status == lifecycle_status
        )

    total = (await db.execute(count_query)).scalar_one()

    query = query.order_by(desc(TrackedProductRecord.demand_score))
    query = query.offset(offset).limit(limit)

    result = await db.execute(query)
    products = result.scalars().all()

    return TrackedProductListResponse(
        items=[TrackedProductListItem.model_validate(p) for p in products],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{product_id}", response_model=TrackedProductResponse)
async def get_tracked_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> TrackedProductRecord:
    """Get details for a specific tracked product."""
    return await _get_record(db, product_id)


@router.post("/{product_id}/observations", response_model=ObservationResponse)
async def apply_observation(
    product_id: UUID,
    observation: ObservationRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    config: PricingConfig = Depends(get_pricing_config),
) -> ObservationResponse:
    """Apply a fresh cost (and optionally stock message) to a product.

    Recomputes the margin against the current list price and runs the
    margin state machine; any alerts are stored and returned.
    """
    record = await _get_record(db, product_id)
    now = observation.observed_at or datetime.now(timezone.utc)
    locks: ProductLocks = request.app.state.product_locks

    async with locks.lock_for(record.identifier):
        # Another request may have committed while this one waited
        await db.refresh(record)
        try:
            evaluation = apply_price_observation(
                record.to_domain(),
                PriceObservation(
                    identifier=record.identifier,
                    cost_price=observation.cost_price,
                    availability_text=observation.availability_text,
                    marketplace=record.marketplace,
                ),
                config,
                now=now,
            )
        except InvalidInput as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(e),
            )

        alerts = await save_evaluation(record, evaluation, db)
        await db.commit()

    await db.refresh(record)

    return ObservationResponse(
        product=TrackedProductResponse.model_validate(record),
        margin_percent=evaluation.margin.margin_percent if evaluation.margin else None,
        alerts=[MarginAlertResponse.model_validate(a) for a in alerts],
    )
