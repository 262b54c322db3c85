"""Provider repository - Database operations for the provider directory"""

from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...models import Booking, Provider

# Statuses in which a booking occupies the provider's calendar
BUSY_STATUSES = ("assigned", "accepted", "in_progress")


class ProviderRepository:
    """Repository for provider database operations"""

    @staticmethod
    def get_provider_by_id(db: Session, provider_id: int) -> Optional[Provider]:
        """Get a provider by ID"""
        return db.query(Provider).filter(Provider.id == provider_id).first()

    @staticmethod
    def get_candidate_providers(db: Session, town: str) -> list[Provider]:
        """Verified, active, available providers based in the town (case-insensitive)"""
        return (
            db.query(Provider)
            .options(selectinload(Provider.services))
            .filter(
                func.lower(func.trim(Provider.town)) == town.strip().lower(),
                Provider.active.is_(True),
                Provider.available.is_(True),
                Provider.verified.is_(True),
            )
            .order_by(Provider.id)
            .all()
        )

    @staticmethod
    def get_busy_bookings(
        db: Session,
        provider_ids: Iterable[int],
        booking_date: date,
        exclude_booking_id: Optional[int] = None,
    ) -> list[Booking]:
        """Bookings holding a slot on the given day for any of the providers"""
        provider_ids = list(provider_ids)
        if not provider_ids:
            return []

        query = db.query(Booking).filter(
            Booking.provider_id.in_(provider_ids),
            Booking.booking_date == booking_date,
            Booking.status.in_(BUSY_STATUSES),
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.all()

    @staticmethod
    def get_provider_bookings(
        db: Session, provider_id: int, status: Optional[str] = None
    ) -> list[Booking]:
        """Bookings assigned to a provider, soonest first"""
        query = db.query(Booking).filter(Booking.provider_id == provider_id)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.booking_date.asc(), Booking.booking_time.asc()).all()
