"""Discovery and pricing API endpoints.

Stateless endpoints that run the pricing core on request data.

Endpoints:
- POST /discovery/evaluate - run a listing through criteria, demand gate and pricing
- POST /pricing/quote - list price, competitor display prices and margin for a cost
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, ValidationError

from dropship_ops.config import get_settings
from dropship_ops.scoring.calculator import price_for_target_margin
from dropship_ops.scoring.models import (
    DemandPoint,
    DemandSample,
    DemandTrend,
    InvalidInput,
    ListingCandidate,
    PricingConfig,
)
from dropship_ops.services.discovery import PricedListing, evaluate_candidate, price_listing

router = APIRouter(tags=["discovery"])


def get_pricing_config() -> PricingConfig:
    """Dependency for the configured pricing pipeline."""
    return get_settings().pricing_config()


class EvaluateRequest(BaseModel):
    """Listing plus its sales-rank history."""

    candidate: ListingCandidate
    demand_points: list[DemandPoint] = Field(
        default_factory=list, description="Sales-rank history, oldest first"
    )
    seed: Optional[int] = Field(None, description="Seed for competitor display prices")


class DemandResponse(BaseModel):
    """Demand score details."""

    score: float
    passes_demand_gate: bool
    avg_rank: Optional[float]
    volatility: Optional[float]
    insufficient_data: bool
    avg_rank_30d: Optional[float]
    avg_rank_90d: Optional[float]
    trend: DemandTrend


class PricingResponse(BaseModel):
    """Prices computed for a listing."""

    cost_price: Decimal
    list_price: Decimal
    competitor_prices: dict[str, Decimal]
    compare_at_price: Optional[Decimal]
    margin_amount: Decimal
    margin_percent: float

    @classmethod
    def from_listing(cls, cost_price: Decimal, listing: PricedListing) -> "PricingResponse":
        return cls(
            cost_price=cost_price,
            list_price=listing.list_price,
            competitor_prices=listing.competitor_prices,
            compare_at_price=listing.compare_at_price,
            margin_amount=listing.margin.margin_amount,
            margin_percent=listing.margin.margin_percent,
        )


class EvaluateResponse(BaseModel):
    """Discovery decision for one listing."""

    identifier: str
    passed: bool
    rejection: Optional[str]
    detail: Optional[str]
    demand: Optional[DemandResponse]
    pricing: Optional[PricingResponse]
    evaluated_at: datetime


class QuoteRequest(BaseModel):
    """Cost to price."""

    cost_price: Decimal = Field(..., ge=0)
    markup_percent: Optional[Decimal] = Field(
        None, ge=0, description="Override the configured markup"
    )
    seed: Optional[int] = None


class QuoteResponse(PricingResponse):
    """Quote plus the price that restores the minimum margin."""

    min_margin_percent: float
    min_margin_price: Decimal


@router.post("/discovery/evaluate", response_model=EvaluateResponse)
async def evaluate_listing(
    request: EvaluateRequest,
    config: PricingConfig = Depends(get_pricing_config),
) -> EvaluateResponse:
    """Run one listing through the discovery pipeline."""
    try:
        sample = DemandSample(
            identifier=request.candidate.identifier,
            points=request.demand_points,
        )
        outcome = evaluate_candidate(request.candidate, sample, config, rng=request.seed)
    except (InvalidInput, ValidationError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    demand = None
    if outcome.demand is not None:
        demand = DemandResponse(
            score=outcome.demand.score,
            passes_demand_gate=outcome.demand.passes_demand_gate,
            avg_rank=outcome.demand.avg_rank,
            volatility=outcome.demand.volatility,
            insufficient_data=outcome.demand.insufficient_data,
            avg_rank_30d=outcome.demand.avg_rank_30d,
            avg_rank_90d=outcome.demand.avg_rank_90d,
            trend=outcome.demand.trend,
        )

    pricing = None
    if outcome.pricing is not None:
        pricing = PricingResponse.from_listing(request.candidate.price, outcome.pricing)

    return EvaluateResponse(
        identifier=request.candidate.identifier,
        passed=outcome.passed,
        rejection=outcome.rejection,
        detail=outcome.criteria.detail,
        demand=demand,
        pricing=pricing,
        evaluated_at=datetime.now().astimezone(),
    )


@router.post("/pricing/quote", response_model=QuoteResponse)
async def quote_price(
    request: QuoteRequest,
    config: PricingConfig = Depends(get_pricing_config),
) -> QuoteResponse:
    """Price a cost with the configured markup and competitor ranges."""
    if request.markup_percent is not None:
        config = config.model_copy(update={"markup_percent": request.markup_percent})

    try:
        listing = price_listing(request.cost_price, config, rng=request.seed)
        min_margin_price = price_for_target_margin(
            request.cost_price, config.margin.min_margin_percent
        )
    except InvalidInput as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    base = PricingResponse.from_listing(request.cost_price, listing)
    return QuoteResponse(
        **base.model_dump(),
        min_margin_percent=config.margin.min_margin_percent,
        min_margin_price=min_margin_price,
    )
