"""Schedule repository - Database operations for recurring schedules"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import RecurringSchedule, ScheduleOccurrence


class ScheduleRepository:
    """Repository for recurring schedule database operations"""

    @staticmethod
    def get_schedule_by_id(db: Session, schedule_id: int) -> Optional[RecurringSchedule]:
        return db.query(RecurringSchedule).filter(RecurringSchedule.id == schedule_id).first()

    @staticmethod
    def get_active_schedules(db: Session) -> list[RecurringSchedule]:
        return (
            db.query(RecurringSchedule)
            .filter(RecurringSchedule.is_active.is_(True))
            .order_by(RecurringSchedule.id.asc())
            .all()
        )

    @staticmethod
    def create_schedule(db: Session, **kwargs) -> RecurringSchedule:
        schedule = RecurringSchedule(**kwargs)
        db.add(schedule)
        db.commit()
        db.refresh(schedule)
        return schedule

    @staticmethod
    def get_occurrence_dates(db: Session, schedule_id: int) -> set[date]:
        """Dates that already have a generated booking"""
        rows = (
            db.query(ScheduleOccurrence.occurrence_date)
            .filter(ScheduleOccurrence.schedule_id == schedule_id)
            .all()
        )
        return {r.occurrence_date for r in rows}

    @staticmethod
    def get_occurrences(db: Session, schedule_id: int) -> list[ScheduleOccurrence]:
        return (
            db.query(ScheduleOccurrence)
            .filter(ScheduleOccurrence.schedule_id == schedule_id)
            .order_by(ScheduleOccurrence.occurrence_date.asc())
            .all()
        )

    @staticmethod
    def claim_occurrence(db: Session, schedule_id: int, occurrence_date: date) -> ScheduleOccurrence:
        """
        Reserve an occurrence date before its booking exists.

        Raises:
            IntegrityError: If another expansion already claimed the date
        """
        occurrence = ScheduleOccurrence(schedule_id=schedule_id, occurrence_date=occurrence_date)
        db.add(occurrence)
        db.commit()
        return occurrence

    @staticmethod
    def attach_booking(db: Session, occurrence_id: int, booking_id: int) -> None:
        db.query(ScheduleOccurrence).filter(ScheduleOccurrence.id == occurrence_id).update(
            {ScheduleOccurrence.booking_id: booking_id}, synchronize_session=False
        )
        db.commit()

    @staticmethod
    def release_occurrence(db: Session, occurrence_id: int) -> None:
        """Drop a claim whose booking could not be created"""
        db.query(ScheduleOccurrence).filter(ScheduleOccurrence.id == occurrence_id).delete(
            synchronize_session=False
        )
        db.commit()
