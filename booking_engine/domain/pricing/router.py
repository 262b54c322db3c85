"""Pricing router - FastAPI endpoints for settings, quotes and payouts"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...clock import Clock
from ...database import get_db
from ...dependencies import get_clock, get_settings_store
from .calculator import PricingSettings
from .schemas import (
    BatchPayoutRequest,
    BatchPayoutResponse,
    PriceBreakdownResponse,
    PricingSettingsResponse,
    PricingSettingsUpdate,
    QuoteRequest,
)
from .service import PricingService
from .settings import SettingsStore, settings_to_values

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pricing", tags=["Pricing"])


def get_pricing_service(
    db: Session = Depends(get_db),
    settings_store: SettingsStore = Depends(get_settings_store),
    clock: Clock = Depends(get_clock),
) -> PricingService:
    """Dependency injection for PricingService"""
    return PricingService(db, settings_store, clock)


def _settings_response(settings: PricingSettings) -> PricingSettingsResponse:
    return PricingSettingsResponse(**settings_to_values(settings))


# ============================================================================
# SETTINGS
# ============================================================================


@router.get("/settings", response_model=PricingSettingsResponse)
async def get_pricing_settings(service: PricingService = Depends(get_pricing_service)):
    return _settings_response(service.get_settings())


@router.put("/settings", response_model=PricingSettingsResponse)
async def update_pricing_settings(
    data: PricingSettingsUpdate,
    service: PricingService = Depends(get_pricing_service),
):
    """Change settings for bookings created from now on; existing bookings keep their prices"""
    return _settings_response(service.update_settings(data))


# ============================================================================
# CALCULATIONS
# ============================================================================


@router.post("/quote", response_model=PriceBreakdownResponse)
async def quote_price(data: QuoteRequest, service: PricingService = Depends(get_pricing_service)):
    """Price preview; nothing is persisted"""
    return PriceBreakdownResponse(**service.quote(data).model_dump())


@router.post("/payouts/batch", response_model=BatchPayoutResponse)
async def batch_payout(
    data: BatchPayoutRequest,
    service: PricingService = Depends(get_pricing_service),
):
    """Sum of a provider's completed-job payouts over an optional date range"""
    totals = service.batch_payout(data.provider_id, data.start_date, data.end_date)
    return BatchPayoutResponse(
        provider_id=data.provider_id,
        start_date=data.start_date,
        end_date=data.end_date,
        **totals.model_dump(),
    )
