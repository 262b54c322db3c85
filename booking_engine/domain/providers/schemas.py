"""Provider domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel


class EligibleProviderResponse(BaseModel):
    """A candidate provider with its distance tier, in selection order"""

    provider_id: int
    full_name: Optional[str] = None
    suburb: Optional[str] = None
    tier: int
    max_distance_tier: int
    rating: float
    total_jobs_completed: int


class ProviderBookingResponse(BaseModel):
    """Schema for a job on a provider's list"""

    id: int
    public_id: str
    client_id: int
    service_id: int
    booking_date: str
    booking_time: str
    duration_minutes: int
    location_town: str
    location_suburb: str
    special_instructions: Optional[str] = None
    emergency_booking: bool
    status: str
    assignment_status: str
    net_payout: float
