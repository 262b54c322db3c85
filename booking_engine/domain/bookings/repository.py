"""Booking repository - Database operations for bookings and their audit trail"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    Booking,
    BookingAssignmentAttempt,
    BookingStatusChange,
    Client,
    Service,
)
from .state_machine import AssignmentStatus, BookingStatus


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking_by_id(db: Session, booking_id: int) -> Optional[Booking]:
        """Get a booking by ID"""
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_client_by_id(db: Session, client_id: int) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id).first()

    @staticmethod
    def get_service_by_id(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def assign_provider_if_unassigned(
        db: Session,
        booking_id: int,
        provider_id: int,
        assignment_status: str,
        now: datetime,
    ) -> bool:
        """
        Set the provider only while the booking is still pending with no provider.
        Returns False when another writer assigned or moved it first.
        """
        updated = (
            db.query(Booking)
            .filter(
                Booking.id == booking_id,
                Booking.provider_id.is_(None),
                Booking.status == BookingStatus.PENDING.value,
            )
            .update(
                {
                    Booking.provider_id: provider_id,
                    Booking.status: BookingStatus.ASSIGNED.value,
                    Booking.assignment_status: assignment_status,
                    Booking.assigned_at: now,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def flag_manual_assignment(db: Session, booking_id: int) -> bool:
        """Mark a still-unassigned pending booking for human dispatch"""
        updated = (
            db.query(Booking)
            .filter(
                Booking.id == booking_id,
                Booking.provider_id.is_(None),
                Booking.status == BookingStatus.PENDING.value,
            )
            .update(
                {Booking.assignment_status: AssignmentStatus.MANUAL_ASSIGNMENT_REQUIRED.value},
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def release_provider(db: Session, booking_id: int, provider_id: int) -> bool:
        """Take an assigned booking back from its provider; the deadline is left alone"""
        updated = (
            db.query(Booking)
            .filter(
                Booking.id == booking_id,
                Booking.provider_id == provider_id,
                Booking.status == BookingStatus.ASSIGNED.value,
            )
            .update(
                {
                    Booking.provider_id: None,
                    Booking.status: BookingStatus.PENDING.value,
                    Booking.assignment_status: AssignmentStatus.PENDING_ASSIGNMENT.value,
                    Booking.assigned_at: None,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def change_status(db: Session, booking_id: int, expected_status: str, values: dict) -> bool:
        """Compare-and-set on the current status"""
        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.status == expected_status)
            .update(values, synchronize_session=False)
        )
        return updated == 1

    @staticmethod
    def add_status_change(
        db: Session,
        booking_id: int,
        from_status: Optional[str],
        to_status: str,
        event: str,
        now: datetime,
        reason: Optional[str] = None,
    ) -> BookingStatusChange:
        change = BookingStatusChange(
            booking_id=booking_id,
            from_status=from_status,
            to_status=to_status,
            event=event,
            reason=reason,
            created_at=now,
        )
        db.add(change)
        return change

    @staticmethod
    def get_status_history(db: Session, booking_id: int) -> list[BookingStatusChange]:
        return (
            db.query(BookingStatusChange)
            .filter(BookingStatusChange.booking_id == booking_id)
            .order_by(BookingStatusChange.id.asc())
            .all()
        )

    @staticmethod
    def add_assignment_attempt(
        db: Session, booking_id: int, provider_id: int, outcome: str, now: datetime
    ) -> BookingAssignmentAttempt:
        attempt = BookingAssignmentAttempt(
            booking_id=booking_id, provider_id=provider_id, outcome=outcome, created_at=now
        )
        db.add(attempt)
        return attempt

    @staticmethod
    def get_failed_provider_ids(db: Session, booking_id: int) -> set[int]:
        """Providers that already held this booking and let it go"""
        rows = (
            db.query(BookingAssignmentAttempt.provider_id)
            .filter(BookingAssignmentAttempt.booking_id == booking_id)
            .all()
        )
        return {r.provider_id for r in rows}

    @staticmethod
    def get_manual_review_queue(db: Session) -> list[Booking]:
        """Pending bookings automatic matching gave up on, oldest first"""
        return (
            db.query(Booking)
            .filter(
                Booking.status == BookingStatus.PENDING.value,
                Booking.assignment_status == AssignmentStatus.MANUAL_ASSIGNMENT_REQUIRED.value,
            )
            .order_by(Booking.created_at.asc(), Booking.id.asc())
            .all()
        )

    @staticmethod
    def get_expired_assignments(
        db: Session, now: datetime, held_since: datetime, limit: int = 100
    ) -> list[Booking]:
        """
        Assigned bookings past their acceptance deadline whose current provider
        has also held them since before held_since
        """
        return (
            db.query(Booking)
            .filter(
                Booking.status == BookingStatus.ASSIGNED.value,
                Booking.acceptance_deadline < now,
                Booking.assigned_at <= held_since,
            )
            .order_by(Booking.acceptance_deadline.asc(), Booking.id.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_completed_bookings(
        db: Session,
        provider_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Booking]:
        """A provider's completed jobs, by booking date within an inclusive range"""
        query = db.query(Booking).filter(
            Booking.provider_id == provider_id,
            Booking.status == BookingStatus.COMPLETED.value,
        )
        if start_date:
            query = query.filter(Booking.booking_date >= start_date)
        if end_date:
            query = query.filter(Booking.booking_date <= end_date)
        return query.order_by(Booking.booking_date.asc(), Booking.id.asc()).all()
