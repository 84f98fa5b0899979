"""Margin Alerts API endpoints.

Endpoints:
- GET /alerts - list margin alerts, newest first
- POST /alerts/{id}/resolve - mark an alert handled
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_ops.db.base import get_db
from dropship_ops.db.models import MarginAlertRecord
from dropship_ops.scoring.models import AlertSeverity

router = APIRouter(prefix="/alerts", tags=["alerts"])


class MarginAlertResponse(BaseModel):
    """Margin alert response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tracked_product_id: UUID
    product_identifier: str
    severity: AlertSeverity
    margin_percent: Decimal
    threshold_percent: Decimal
    message: str
    auto_action: str | None
    suggested_price: Decimal | None
    is_resolved: bool
    created_at: datetime


@router.get("", response_model=list[MarginAlertResponse])
async def list_alerts(
    severity: AlertSeverity | None = Query(None, description="Filter by severity"),
    include_resolved: bool = Query(False, description="Include resolved alerts"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of results"),
    db: AsyncSession = Depends(get_db),
) -> list[MarginAlertRecord]:
    """List margin alerts, newest first."""
    query = select(MarginAlertRecord)

    if severity:
        query = query.where(MarginAlertRecord.severity == severity)
    if not include_resolved:
        query = query.where(MarginAlertRecord.is_resolved.is_(False))

    query = query.order_by(desc(MarginAlertRecord.created_at)).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


@router.post("/{alert_id}/resolve", response_model=MarginAlertResponse)
async def resolve_alert(
    alert_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> MarginAlertRecord:
    """Mark an alert as handled."""
    result = await db.execute(
        select(MarginAlertRecord).where(MarginAlertRecord.id == alert_id)
    )
    alert = result.scalar_one_or_none()

    if not alert:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found",
        )

    alert.is_resolved = True
    await db.flush()
    return alert
