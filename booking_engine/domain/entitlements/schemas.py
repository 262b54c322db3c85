"""Entitlement domain schemas - Pydantic models for validation"""

from datetime import date
from typing import Optional

from pydantic import BaseModel


class ConsumeRequest(BaseModel):
    """Schema for consuming one unit of a client's entitlement"""

    client_id: int
    service_id: int


class EntitlementResultResponse(BaseModel):
    """Outcome of a consumption attempt: consumed, not_entitled or exhausted"""

    outcome: str
    remaining: Optional[int] = None
    used: Optional[int] = None
    allowed: Optional[int] = None
    package_id: Optional[int] = None
    reason: Optional[str] = None


class ServiceUsageResponse(BaseModel):
    service_id: int
    package_id: int
    used_count: int
    allowed_count: int
    remaining: int
    cycle_days: int


class ActivatePackageRequest(BaseModel):
    """Schema for binding a package to a client"""

    package_id: int
    start_date: Optional[date] = None


class ActivePackageResponse(BaseModel):
    id: int
    client_id: int
    package_id: int
    start_date: date
    expiry_date: date
    status: str

    class Config:
        from_attributes = True
