"""Provider router - FastAPI endpoints for provider matching and job lists"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from .schemas import EligibleProviderResponse, ProviderBookingResponse
from .service import ProviderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/providers", tags=["Providers"])


def get_provider_service(db: Session = Depends(get_db)) -> ProviderService:
    """Dependency injection for ProviderService"""
    return ProviderService(db)


@router.get("/eligible", response_model=list[EligibleProviderResponse])
async def get_eligible_providers(
    town: str = Query(...),
    suburb: str = Query(...),
    service_id: Optional[int] = Query(None),
    service: ProviderService = Depends(get_provider_service),
):
    """Ranked candidates for a job location, best first"""
    matches = service.find_ranked_candidates(town, suburb, service_id)
    return [
        EligibleProviderResponse(
            provider_id=m.provider.id,
            full_name=m.provider.full_name,
            suburb=m.provider.suburb,
            tier=m.tier,
            max_distance_tier=m.provider.max_distance_tier,
            rating=m.provider.rating or 0.0,
            total_jobs_completed=m.provider.total_jobs_completed or 0,
        )
        for m in matches
    ]


@router.get("/{provider_id}/bookings", response_model=list[ProviderBookingResponse])
async def get_provider_bookings(
    provider_id: int,
    status: Optional[str] = Query(None),
    service: ProviderService = Depends(get_provider_service),
):
    """Jobs assigned to a provider, soonest first"""
    bookings = service.get_provider_bookings(provider_id, status)
    return [
        ProviderBookingResponse(
            id=b.id,
            public_id=b.public_id,
            client_id=b.client_id,
            service_id=b.service_id,
            booking_date=b.booking_date.isoformat(),
            booking_time=b.booking_time,
            duration_minutes=b.duration_minutes,
            location_town=b.location_town,
            location_suburb=b.location_suburb,
            special_instructions=b.special_instructions,
            emergency_booking=b.emergency_booking,
            status=b.status,
            assignment_status=b.assignment_status,
            net_payout=float(b.net_payout),
        )
        for b in bookings
    ]
