"""Entitlement repository - Database operations for packages and usage records"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import (
    ActivePackage,
    Client,
    EntitlementCounter,
    PackageEntitlement,
    SubscriptionPackage,
    UsageRecord,
)


class EntitlementRepository:
    """Repository for entitlement database operations"""

    @staticmethod
    def get_active_package(db: Session, client_id: int, today: date) -> Optional[ActivePackage]:
        """The client's current package: status active, started and not yet expired"""
        return (
            db.query(ActivePackage)
            .filter(
                ActivePackage.client_id == client_id,
                ActivePackage.status == "active",
                ActivePackage.start_date <= today,
                ActivePackage.expiry_date >= today,
            )
            .order_by(ActivePackage.start_date.desc(), ActivePackage.id.desc())
            .first()
        )

    @staticmethod
    def get_client(db: Session, client_id: int) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id).first()

    @staticmethod
    def get_package(db: Session, package_id: int) -> Optional[SubscriptionPackage]:
        """Get a subscription package by ID"""
        return db.query(SubscriptionPackage).filter(SubscriptionPackage.id == package_id).first()

    @staticmethod
    def get_entitlement(db: Session, package_id: int, service_id: int) -> Optional[PackageEntitlement]:
        """The package's allowance for one service"""
        return (
            db.query(PackageEntitlement)
            .filter(
                PackageEntitlement.package_id == package_id,
                PackageEntitlement.service_id == service_id,
            )
            .first()
        )

    @staticmethod
    def get_entitlements(db: Session, package_id: int) -> list[PackageEntitlement]:
        """All allowances of a package"""
        return (
            db.query(PackageEntitlement)
            .filter(PackageEntitlement.package_id == package_id)
            .order_by(PackageEntitlement.service_id)
            .all()
        )

    @staticmethod
    def lock_counter(
        db: Session, client_id: int, package_id: int, service_id: int
    ) -> EntitlementCounter:
        """
        Get (creating on first use) the counter row for a key and lock it FOR UPDATE.
        Two first-time creators race on the unique constraint; the loser rolls back
        and re-reads, so nothing else may be pending in the session when this runs.
        """
        def _select():
            return (
                db.query(EntitlementCounter)
                .filter(
                    EntitlementCounter.client_id == client_id,
                    EntitlementCounter.package_id == package_id,
                    EntitlementCounter.service_id == service_id,
                )
                .with_for_update()
                .populate_existing()
                .first()
            )

        counter = _select()
        if counter:
            return counter

        try:
            db.add(
                EntitlementCounter(
                    client_id=client_id, package_id=package_id, service_id=service_id, version=0
                )
            )
            db.commit()
        except IntegrityError:
            db.rollback()  # Created concurrently; the row exists now

        return _select()

    @staticmethod
    def count_usage(
        db: Session, client_id: int, package_id: int, service_id: int, since: datetime
    ) -> int:
        """Usage records for the key with used_at inside the rolling window"""
        return (
            db.query(func.count(UsageRecord.id))
            .filter(
                UsageRecord.client_id == client_id,
                UsageRecord.package_id == package_id,
                UsageRecord.service_id == service_id,
                UsageRecord.used_at >= since,
            )
            .scalar()
            or 0
        )

    @staticmethod
    def add_usage_record(
        db: Session,
        client_id: int,
        package_id: int,
        service_id: int,
        used_at: datetime,
        booking_id: Optional[int] = None,
    ) -> UsageRecord:
        """Append a usage record (flushed, not committed)"""
        record = UsageRecord(
            client_id=client_id,
            package_id=package_id,
            service_id=service_id,
            used_at=used_at,
            booking_id=booking_id,
        )
        db.add(record)
        db.flush()
        return record

    @staticmethod
    def bump_counter(db: Session, counter_id: int, seen_version: int, now: datetime) -> bool:
        """Compare-and-set the counter version. False means someone else moved it first."""
        updated = (
            db.query(EntitlementCounter)
            .filter(EntitlementCounter.id == counter_id, EntitlementCounter.version == seen_version)
            .update(
                {
                    EntitlementCounter.version: EntitlementCounter.version + 1,
                    EntitlementCounter.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def attach_booking(db: Session, usage_record_id: int, booking_id: int) -> None:
        """Link a usage record to the booking it paid for"""
        db.query(UsageRecord).filter(UsageRecord.id == usage_record_id).update(
            {UsageRecord.booking_id: booking_id}, synchronize_session=False
        )

    @staticmethod
    def delete_usage_record(db: Session, usage_record_id: int) -> None:
        db.query(UsageRecord).filter(UsageRecord.id == usage_record_id).delete(
            synchronize_session=False
        )

    @staticmethod
    def supersede_active_packages(db: Session, client_id: int) -> int:
        """Mark every active package of the client as superseded"""
        return (
            db.query(ActivePackage)
            .filter(ActivePackage.client_id == client_id, ActivePackage.status == "active")
            .update({ActivePackage.status: "superseded"}, synchronize_session=False)
        )
