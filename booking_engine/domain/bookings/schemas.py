"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_booking_time
from .state_machine import USER_EVENTS


class BookingCreate(BaseModel):
    """Schema for creating a new booking. Location defaults to the client's own."""

    client_id: int
    service_id: int
    booking_date: date
    booking_time: str
    duration_minutes: Optional[int] = Field(None, gt=0)
    location_town: Optional[str] = None
    location_suburb: Optional[str] = None
    special_instructions: Optional[str] = None
    emergency_booking: bool = False

    @field_validator("booking_time")
    @classmethod
    def validate_time(cls, v):
        return validate_booking_time(v)


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: int
    public_id: str
    client_id: int
    service_id: int
    provider_id: Optional[int] = None
    booking_date: date
    booking_time: str
    duration_minutes: int
    location_town: str
    location_suburb: str
    special_instructions: Optional[str] = None
    emergency_booking: bool
    status: str
    assignment_status: str
    acceptance_deadline: datetime
    is_weekend: bool
    covered_by_package: bool
    base_price: Decimal
    total_amount: Decimal
    platform_commission: Decimal
    taxable_amount: Decimal
    income_tax: Decimal
    withholding_tax: Decimal
    weekend_bonus: Decimal
    net_payout: Decimal
    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    booking_id: int
    provider_id: Optional[int] = None
    status: str
    assignment_status: str
    tier: Optional[int] = None
    already_assigned: bool = False


class EntitlementOutcome(BaseModel):
    outcome: str  # consumed, not_entitled, exhausted
    remaining: Optional[int] = None
    reason: Optional[str] = None


class BookingResultResponse(BaseModel):
    """Schema for the result of booking creation"""

    booking: BookingResponse
    entitlement: EntitlementOutcome
    assignment: AssignmentResponse


class ManualAssignRequest(BaseModel):
    provider_id: int


class ReassignRequest(BaseModel):
    outcome: str = "rejected"
    reason: Optional[str] = None

    @field_validator("outcome")
    @classmethod
    def validate_outcome(cls, v):
        if v not in ("rejected", "expired"):
            raise ValueError("Outcome must be 'rejected' or 'expired'")
        return v


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class TransitionRequest(BaseModel):
    event: str
    reason: Optional[str] = None

    @field_validator("event")
    @classmethod
    def validate_event(cls, v):
        allowed = sorted(e.value for e in USER_EVENTS)
        if v not in allowed:
            raise ValueError(f"Event must be one of: {', '.join(allowed)}")
        return v


class StatusChangeResponse(BaseModel):
    id: int
    from_status: Optional[str] = None
    to_status: str
    event: str
    reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
