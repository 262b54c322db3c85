"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import validate_booking_time, validate_day_of_week, validate_frequency


class ScheduleCreate(BaseModel):
    """Schema for creating a recurring schedule. Location defaults to the client's own."""

    client_id: int
    service_id: int
    frequency: str
    day_of_week: int
    booking_time: str
    start_date: date
    end_date: Optional[date] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    location_town: Optional[str] = None
    location_suburb: Optional[str] = None
    special_instructions: Optional[str] = None
    emergency_booking: bool = False

    @field_validator("frequency")
    @classmethod
    def check_frequency(cls, v):
        return validate_frequency(v)

    @field_validator("day_of_week")
    @classmethod
    def check_day_of_week(cls, v):
        return validate_day_of_week(v)

    @field_validator("booking_time")
    @classmethod
    def check_booking_time(cls, v):
        return validate_booking_time(v)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class OccurrenceResponse(BaseModel):
    occurrence_date: date
    booking_id: Optional[int] = None

    class Config:
        from_attributes = True


class ScheduleResponse(BaseModel):
    """Schema for schedule response"""

    id: int
    client_id: int
    service_id: int
    frequency: str
    day_of_week: int
    booking_time: str
    start_date: date
    end_date: Optional[date] = None
    duration_minutes: int
    location_town: str
    location_suburb: str
    special_instructions: Optional[str] = None
    emergency_booking: bool
    is_active: bool
    cancelled_at: Optional[datetime] = None
    occurrences: list[OccurrenceResponse] = []

    class Config:
        from_attributes = True


class ExpandResponse(BaseModel):
    schedule_id: int
    booking_ids: list[int]


class ScheduleCreatedResponse(BaseModel):
    schedule: ScheduleResponse
    booking_ids: list[int]
