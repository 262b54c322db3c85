"""
Schedule service - Business logic for recurring schedules

A schedule only ever creates bookings; it never changes them afterwards. The
schedule -> booking link lives in schedule_occurrences, one row per occurrence
date, which also makes repeated expansion safe.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...clock import Clock
from ...config import RECURRING_HORIZON_MONTHS, RECURRING_MAX_OCCURRENCES
from ...errors import NotFoundError, ValidationError
from ...models import RecurringSchedule
from ..bookings.repository import BookingRepository
from ..bookings.schemas import BookingCreate
from ..bookings.service import BookingService
from .expander import horizon_end, occurrence_dates
from .repository import ScheduleRepository
from .schemas import ScheduleCreate

logger = logging.getLogger(__name__)


class ScheduleService:
    """Service layer for recurring schedule business logic"""

    def __init__(
        self,
        db: Session,
        booking_service: Optional[BookingService] = None,
        clock: Optional[Clock] = None,
        horizon_months: int = RECURRING_HORIZON_MONTHS,
        max_occurrences: int = RECURRING_MAX_OCCURRENCES,
    ):
        self.db = db
        self.clock = clock or Clock()
        self.bookings = booking_service or BookingService(db, clock=self.clock)
        self.horizon_months = horizon_months
        self.max_occurrences = max_occurrences
        self.repo = ScheduleRepository()

    def get_schedule(self, schedule_id: int) -> RecurringSchedule:
        schedule = self.repo.get_schedule_by_id(self.db, schedule_id)
        if not schedule:
            raise NotFoundError("Schedule", schedule_id)
        return schedule

    def create_schedule(self, data: ScheduleCreate) -> RecurringSchedule:
        """Store a schedule template; call expand_schedule to generate its bookings"""
        client = BookingRepository.get_client_by_id(self.db, data.client_id)
        if not client:
            raise NotFoundError("Client", data.client_id)
        service = BookingRepository.get_service_by_id(self.db, data.service_id)
        if not service:
            raise NotFoundError("Service", data.service_id)
        if not service.is_active:
            raise ValidationError(f"Service {service.id} is not available for booking")

        schedule = self.repo.create_schedule(
            self.db,
            client_id=data.client_id,
            service_id=data.service_id,
            frequency=data.frequency,
            day_of_week=data.day_of_week,
            booking_time=data.booking_time,
            start_date=data.start_date,
            end_date=data.end_date,
            duration_minutes=data.duration_minutes or service.duration_minutes,
            location_town=data.location_town or client.town,
            location_suburb=data.location_suburb or client.suburb,
            special_instructions=data.special_instructions,
            emergency_booking=data.emergency_booking,
            is_active=True,
        )
        logger.info(
            f"📅 Schedule {schedule.id} created: {schedule.frequency} from {schedule.start_date} "
            f"for client {schedule.client_id}"
        )
        return schedule

    def upcoming_dates(self, schedule: RecurringSchedule) -> list[date]:
        today = self.clock.today()
        return occurrence_dates(
            schedule.frequency,
            schedule.day_of_week,
            schedule.start_date,
            schedule.end_date,
            today,
            horizon_end(today, self.horizon_months),
            self.max_occurrences,
        )

    def expand_schedule(self, schedule_id: int) -> list[int]:
        """
        Create a booking for every upcoming occurrence that does not have one yet.

        Returns:
            IDs of the bookings created by this call
        """
        schedule = self.get_schedule(schedule_id)
        if not schedule.is_active:
            logger.info(f"⏸️ Schedule {schedule_id} is cancelled, nothing to expand")
            return []

        template = {
            "client_id": schedule.client_id,
            "service_id": schedule.service_id,
            "booking_time": schedule.booking_time,
            "duration_minutes": schedule.duration_minutes,
            "location_town": schedule.location_town,
            "location_suburb": schedule.location_suburb,
            "special_instructions": schedule.special_instructions,
            "emergency_booking": schedule.emergency_booking,
        }
        dates = self.upcoming_dates(schedule)
        existing = self.repo.get_occurrence_dates(self.db, schedule_id)

        created = []
        for occurrence_date in dates:
            if occurrence_date in existing:
                continue

            # A claimed date is never booked twice, so claim before creating the booking
            try:
                occurrence = self.repo.claim_occurrence(self.db, schedule_id, occurrence_date)
            except IntegrityError:
                self.db.rollback()
                logger.info(
                    f"ℹ️ Schedule {schedule_id} occurrence on {occurrence_date} "
                    f"already claimed by another expansion"
                )
                continue
            occurrence_id = occurrence.id

            try:
                result = self.bookings.create_booking(
                    BookingCreate(booking_date=occurrence_date, **template)
                )
            except Exception as e:
                self.db.rollback()
                logger.error(
                    f"❌ Failed to create booking for schedule {schedule_id} on "
                    f"{occurrence_date}: {e}"
                )
                self.repo.release_occurrence(self.db, occurrence_id)
                raise

            self.repo.attach_booking(self.db, occurrence_id, result.booking.id)
            created.append(result.booking.id)

        logger.info(
            f"✅ Schedule {schedule_id} expanded: {len(created)} new booking(s) "
            f"out of {len(dates)} upcoming date(s)"
        )
        return created

    def cancel_schedule(self, schedule_id: int) -> RecurringSchedule:
        """Stop future generation. Bookings already generated are left as they are."""
        schedule = self.get_schedule(schedule_id)
        if not schedule.is_active:
            return schedule

        schedule.is_active = False
        schedule.cancelled_at = self.clock.now()
        self.db.commit()
        self.db.refresh(schedule)
        logger.info(f"🛑 Schedule {schedule_id} cancelled")
        return schedule
