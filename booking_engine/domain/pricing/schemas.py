"""Pricing domain schemas - Pydantic models for validation"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class PricingSettingsResponse(BaseModel):
    weekend_client_markup_percentage: float
    weekend_provider_bonus_amount: float
    commission_standard_rate: float
    commission_emergency_rate: float
    commission_subscription_fee: float
    income_tax_rate: float
    withholding_tax_rate: float


class PricingSettingsUpdate(BaseModel):
    """Schema for changing platform pricing settings; omitted fields keep their value"""

    weekend_client_markup_percentage: Optional[float] = Field(None, ge=0)
    weekend_provider_bonus_amount: Optional[float] = Field(None, ge=0)
    commission_standard_rate: Optional[float] = Field(None, ge=0, le=1)
    commission_emergency_rate: Optional[float] = Field(None, ge=0, le=1)
    commission_subscription_fee: Optional[float] = Field(None, ge=0)
    income_tax_rate: Optional[float] = Field(None, ge=0, le=1)
    withholding_tax_rate: Optional[float] = Field(None, ge=0, le=1)


class QuoteRequest(BaseModel):
    """Price preview for a prospective booking. Give a service or a base price."""

    service_id: Optional[int] = None
    base_price: Optional[Decimal] = Field(None, ge=0)
    booking_date: date
    emergency_booking: bool = False
    covered_by_package: bool = False

    @model_validator(mode="after")
    def check_price_source(self):
        if self.service_id is None and self.base_price is None:
            raise ValueError("Either service_id or base_price is required")
        return self


class PriceBreakdownResponse(BaseModel):
    base_price: Decimal
    client_price: Decimal
    gross_amount: Decimal
    platform_commission: Decimal
    taxable_amount: Decimal
    income_tax: Decimal
    withholding_tax: Decimal
    weekend_bonus: Decimal
    net_payout: Decimal
    is_weekend: bool
    is_emergency: bool
    covered_by_package: bool


class BatchPayoutRequest(BaseModel):
    provider_id: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class BatchPayoutResponse(BaseModel):
    provider_id: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    jobs: int
    gross_amount: Decimal
    platform_commission: Decimal
    taxable_amount: Decimal
    income_tax: Decimal
    withholding_tax: Decimal
    weekend_bonus: Decimal
    net_payout: Decimal
