"""Pricing service - Quotes, settings changes and provider payout batches"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...clock import Clock
from ...errors import NotFoundError, ValidationError
from ...models import Booking
from ..bookings.repository import BookingRepository
from ..providers.repository import ProviderRepository
from .calculator import (
    PayoutTotals,
    PriceBreakdown,
    PricingSettings,
    aggregate_payouts,
    calculate_price,
    is_weekend_date,
)
from .schemas import PricingSettingsUpdate, QuoteRequest
from .settings import SettingsStore

logger = logging.getLogger(__name__)


def stored_breakdown(booking: Booking) -> PriceBreakdown:
    """The breakdown frozen on a booking at creation"""
    gross = booking.base_price if booking.covered_by_package else booking.total_amount
    return PriceBreakdown(
        base_price=booking.base_price,
        client_price=booking.total_amount,
        gross_amount=gross,
        platform_commission=booking.platform_commission,
        taxable_amount=booking.taxable_amount,
        income_tax=booking.income_tax,
        withholding_tax=booking.withholding_tax,
        weekend_bonus=booking.weekend_bonus,
        net_payout=booking.net_payout,
        is_weekend=booking.is_weekend,
        is_emergency=booking.emergency_booking,
        covered_by_package=booking.covered_by_package,
    )


class PricingService:
    """Service layer for pricing business logic"""

    def __init__(self, db: Session, settings_store: SettingsStore, clock: Optional[Clock] = None):
        self.db = db
        self.settings_store = settings_store
        self.clock = clock or Clock()

    def get_settings(self) -> PricingSettings:
        return self.settings_store.snapshot()

    def update_settings(self, data: PricingSettingsUpdate) -> PricingSettings:
        changes = data.model_dump(exclude_none=True)
        if not changes:
            raise ValidationError("No pricing settings given")
        return self.settings_store.update(**changes)

    def quote(self, data: QuoteRequest) -> PriceBreakdown:
        """Price a prospective booking without persisting anything"""
        if data.service_id is not None:
            service = BookingRepository.get_service_by_id(self.db, data.service_id)
            if not service:
                raise NotFoundError("Service", data.service_id)
            base_price = service.price_one_off
        else:
            base_price = data.base_price

        return calculate_price(
            base_price,
            is_emergency=data.emergency_booking,
            is_weekend=is_weekend_date(data.booking_date, self.clock),
            settings=self.settings_store.snapshot(),
            covered_by_package=data.covered_by_package,
        )

    def batch_payout(
        self,
        provider_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> PayoutTotals:
        """Totals over a provider's completed jobs, using the amounts frozen on each booking"""
        if not ProviderRepository.get_provider_by_id(self.db, provider_id):
            raise NotFoundError("Provider", provider_id)
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date must not be after end_date")

        bookings = BookingRepository.get_completed_bookings(
            self.db, provider_id, start_date, end_date
        )
        totals = aggregate_payouts(stored_breakdown(b) for b in bookings)
        logger.info(
            f"💰 Payout batch for provider {provider_id}: {totals.jobs} job(s), "
            f"net N${totals.net_payout}"
        )
        return totals
