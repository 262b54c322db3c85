"""Booking router - FastAPI endpoints for the booking lifecycle"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...clock import Clock
from ...database import get_db
from ...dependencies import get_clock, get_dispatcher, get_settings_store
from ...services.notification_service import NotificationDispatcher
from ..entitlements.service import Consumed, Exhausted, NotEntitled
from ..pricing.settings import SettingsStore
from .schemas import (
    AssignmentResponse,
    BookingCreate,
    BookingResponse,
    BookingResultResponse,
    CancelRequest,
    EntitlementOutcome,
    ManualAssignRequest,
    ReassignRequest,
    StatusChangeResponse,
    TransitionRequest,
)
from .service import AssignmentResult, BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    settings_store: SettingsStore = Depends(get_settings_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> BookingService:
    """Dependency injection for BookingService, priced against the current settings snapshot"""
    return BookingService(
        db, clock=clock, settings=settings_store.snapshot(), dispatcher=dispatcher
    )


def _assignment_response(result: AssignmentResult) -> AssignmentResponse:
    return AssignmentResponse(
        booking_id=result.booking_id,
        provider_id=result.provider_id,
        status=result.status,
        assignment_status=result.assignment_status,
        tier=result.tier,
        already_assigned=result.already_assigned,
    )


def _entitlement_outcome(result) -> EntitlementOutcome:
    if isinstance(result, Consumed):
        return EntitlementOutcome(outcome="consumed", remaining=result.remaining)
    if isinstance(result, Exhausted):
        return EntitlementOutcome(
            outcome="exhausted", remaining=0, reason=f"{result.used}/{result.allowed} used"
        )
    if isinstance(result, NotEntitled):
        return EntitlementOutcome(outcome="not_entitled", reason=result.reason)
    raise TypeError(f"Unexpected entitlement result {result!r}")


# ============================================================================
# QUEUES
# ============================================================================


@router.get("/manual-review", response_model=list[BookingResponse])
async def get_manual_review_queue(service: BookingService = Depends(get_booking_service)):
    """Pending bookings automatic matching could not place"""
    return service.get_manual_review_queue()


# ============================================================================
# CORE OPERATIONS
# ============================================================================


@router.post("", response_model=BookingResultResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    service: BookingService = Depends(get_booking_service),
):
    """Create a booking, consume entitlement if any and attempt automatic assignment"""
    result = service.create_booking(data)
    return BookingResultResponse(
        booking=BookingResponse.model_validate(result.booking),
        entitlement=_entitlement_outcome(result.entitlement),
        assignment=_assignment_response(result.assignment),
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: int, service: BookingService = Depends(get_booking_service)):
    return service.get_booking(booking_id)


@router.get("/{booking_id}/history", response_model=list[StatusChangeResponse])
async def get_booking_history(
    booking_id: int, service: BookingService = Depends(get_booking_service)
):
    """Status changes of a booking, oldest first"""
    return service.get_history(booking_id)


# ============================================================================
# ASSIGNMENT
# ============================================================================


@router.post("/{booking_id}/assign", response_model=AssignmentResponse)
async def attempt_assignment(
    booking_id: int, service: BookingService = Depends(get_booking_service)
):
    """Run automatic matching; a booking that already has a provider is returned unchanged"""
    return _assignment_response(service.attempt_assignment(booking_id))


@router.post("/{booking_id}/reassign", response_model=AssignmentResponse)
async def reassign_booking(
    booking_id: int,
    data: ReassignRequest,
    service: BookingService = Depends(get_booking_service),
):
    """Release the current provider and match again, or escalate to manual review"""
    return _assignment_response(
        service.reassign_or_escalate(booking_id, outcome=data.outcome, reason=data.reason)
    )


@router.post("/{booking_id}/manual-assign", response_model=AssignmentResponse)
async def manual_assign(
    booking_id: int,
    data: ManualAssignRequest,
    service: BookingService = Depends(get_booking_service),
):
    """Dispatcher assigns a chosen provider"""
    return _assignment_response(service.manual_assign(booking_id, data.provider_id))


# ============================================================================
# LIFECYCLE
# ============================================================================


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    data: CancelRequest,
    service: BookingService = Depends(get_booking_service),
):
    return service.cancel_booking(booking_id, reason=data.reason)


@router.post("/{booking_id}/transitions", response_model=BookingResponse)
async def transition_booking(
    booking_id: int,
    data: TransitionRequest,
    service: BookingService = Depends(get_booking_service),
):
    """Apply accept, decline, start, complete or cancel"""
    return service.transition(booking_id, data.event, reason=data.reason)
