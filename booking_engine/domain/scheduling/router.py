"""Schedule router - FastAPI endpoints for recurring schedules"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...clock import Clock
from ...database import get_db
from ...dependencies import get_clock
from ..bookings.router import get_booking_service
from ..bookings.service import BookingService
from .schemas import ExpandResponse, ScheduleCreate, ScheduleCreatedResponse, ScheduleResponse
from .service import ScheduleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedules", tags=["Schedules"])


def get_schedule_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    booking_service: BookingService = Depends(get_booking_service),
) -> ScheduleService:
    """Dependency injection for ScheduleService"""
    return ScheduleService(db, booking_service=booking_service, clock=clock)


@router.post("", response_model=ScheduleCreatedResponse, status_code=201)
async def create_schedule(
    data: ScheduleCreate,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Create a schedule and generate its first bookings"""
    schedule = service.create_schedule(data)
    booking_ids = service.expand_schedule(schedule.id)
    return ScheduleCreatedResponse(
        schedule=ScheduleResponse.model_validate(schedule), booking_ids=booking_ids
    )


@router.get("/{schedule_id}", response_model=ScheduleResponse)
async def get_schedule(schedule_id: int, service: ScheduleService = Depends(get_schedule_service)):
    return service.get_schedule(schedule_id)


@router.post("/{schedule_id}/expand", response_model=ExpandResponse)
async def expand_schedule(
    schedule_id: int, service: ScheduleService = Depends(get_schedule_service)
):
    """Generate bookings for upcoming occurrences that have none yet"""
    return ExpandResponse(schedule_id=schedule_id, booking_ids=service.expand_schedule(schedule_id))


@router.post("/{schedule_id}/cancel", response_model=ScheduleResponse)
async def cancel_schedule(
    schedule_id: int, service: ScheduleService = Depends(get_schedule_service)
):
    """Stop generating bookings; existing bookings are not touched"""
    return service.cancel_schedule(schedule_id)
