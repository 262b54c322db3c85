"""
Entitlement Ledger

Consumes a client's package quota for a service, one use per booking.

Usage is counted over a rolling window: records with used_at >= now - cycle_days
for the same (client, package, service). The check and the append run under a
per-key lock in this process and under a row lock plus version compare-and-set
on the entitlement_counters row in the database, so concurrent bookings can
never push usage past quantity_per_cycle.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Union

from sqlalchemy.orm import Session

from ...clock import Clock
from ...config import ENTITLEMENT_MAX_RETRIES
from ...errors import ConcurrentModificationError, NotFoundError, ValidationError
from ...models import ActivePackage
from ...shared.locks import KeyedLock
from .repository import EntitlementRepository

logger = logging.getLogger(__name__)

# One lock table per process, shared by every ledger instance
_consumption_locks = KeyedLock()


@dataclass(frozen=True)
class Consumed:
    remaining: int
    package_id: int
    usage_record_id: int


@dataclass(frozen=True)
class NotEntitled:
    reason: str


@dataclass(frozen=True)
class Exhausted:
    used: int
    allowed: int
    package_id: int


EntitlementResult = Union[Consumed, NotEntitled, Exhausted]


@dataclass(frozen=True)
class ServiceUsage:
    service_id: int
    package_id: int
    used_count: int
    allowed_count: int
    cycle_days: int

    @property
    def remaining(self) -> int:
        return max(0, self.allowed_count - self.used_count)


class EntitlementLedger:
    """Service for package entitlement checks and consumption"""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        max_retries: int = ENTITLEMENT_MAX_RETRIES,
        locks: Optional[KeyedLock] = None,
    ):
        self.db = db
        self.clock = clock or Clock()
        self.max_retries = max_retries
        self.locks = locks or _consumption_locks
        self.repo = EntitlementRepository()

    def try_consume(
        self, client_id: int, service_id: int, booking_id: Optional[int] = None
    ) -> EntitlementResult:
        """Use one unit of the client's allowance for the service, if there is one left"""
        active = self.repo.get_active_package(self.db, client_id, self.clock.today())
        if not active:
            return NotEntitled(reason="No active package found")

        entitlement = self.repo.get_entitlement(self.db, active.package_id, service_id)
        if not entitlement:
            return NotEntitled(reason="Service not included in the active package")

        key = (client_id, active.package_id, service_id)
        with self.locks.hold(key):
            for attempt in range(1, self.max_retries + 1):
                try:
                    return self._consume_locked(
                        client_id,
                        active.package_id,
                        service_id,
                        entitlement.quantity_per_cycle,
                        entitlement.cycle_days,
                        booking_id,
                    )
                except ConcurrentModificationError:
                    self.db.rollback()
                    logger.warning(
                        f"⚠️ Entitlement counter for {key} moved underneath us "
                        f"(attempt {attempt}/{self.max_retries})"
                    )

        logger.error(f"❌ Giving up on entitlement consumption for {key}")
        raise ConcurrentModificationError(f"Entitlement usage for {key} kept changing, retry later")

    def _consume_locked(
        self,
        client_id: int,
        package_id: int,
        service_id: int,
        quantity_per_cycle: int,
        cycle_days: int,
        booking_id: Optional[int],
    ) -> EntitlementResult:
        counter = self.repo.lock_counter(self.db, client_id, package_id, service_id)
        seen_version = counter.version

        now = self.clock.now()
        window_start = now - timedelta(days=cycle_days)
        used = self.repo.count_usage(self.db, client_id, package_id, service_id, window_start)

        if used >= quantity_per_cycle:
            self.db.rollback()
            logger.info(
                f"🚫 Entitlement exhausted for client {client_id}, service {service_id} "
                f"({used}/{quantity_per_cycle} in {cycle_days} days)"
            )
            return Exhausted(used=used, allowed=quantity_per_cycle, package_id=package_id)

        record = self.repo.add_usage_record(
            self.db, client_id, package_id, service_id, now, booking_id
        )
        if not self.repo.bump_counter(self.db, counter.id, seen_version, now):
            raise ConcurrentModificationError("Entitlement counter version changed")

        self.db.commit()
        remaining = quantity_per_cycle - used - 1
        logger.info(
            f"✅ Entitlement consumed for client {client_id}, service {service_id} "
            f"({remaining} remaining)"
        )
        return Consumed(remaining=remaining, package_id=package_id, usage_record_id=record.id)

    def attach_booking(self, usage_record_id: int, booking_id: int) -> None:
        """Link a consumed unit to its booking (caller commits)"""
        self.repo.attach_booking(self.db, usage_record_id, booking_id)

    def revert(self, usage_record_id: int) -> None:
        """Give back a unit whose booking was never persisted"""
        self.repo.delete_usage_record(self.db, usage_record_id)
        self.db.commit()
        logger.warning(f"↩️ Reverted usage record {usage_record_id}")

    def usage_summary(self, client_id: int) -> list[ServiceUsage]:
        """Used and allowed counts for every service of the client's active package"""
        active = self.repo.get_active_package(self.db, client_id, self.clock.today())
        if not active:
            return []

        now = self.clock.now()
        summary = []
        for entitlement in self.repo.get_entitlements(self.db, active.package_id):
            used = self.repo.count_usage(
                self.db,
                client_id,
                active.package_id,
                entitlement.service_id,
                now - timedelta(days=entitlement.cycle_days),
            )
            summary.append(
                ServiceUsage(
                    service_id=entitlement.service_id,
                    package_id=active.package_id,
                    used_count=used,
                    allowed_count=entitlement.quantity_per_cycle,
                    cycle_days=entitlement.cycle_days,
                )
            )
        return summary

    def activate_package(
        self, client_id: int, package_id: int, start_date: Optional[date] = None
    ) -> ActivePackage:
        """Bind a package to a client, superseding whatever was active before"""
        if not self.repo.get_client(self.db, client_id):
            raise NotFoundError("Client", client_id)
        package = self.repo.get_package(self.db, package_id)
        if not package:
            raise NotFoundError("Package", package_id)
        if not package.is_active:
            raise ValidationError(f"Package {package_id} is no longer offered")

        today = self.clock.today()
        start = start_date or today
        if start > today:
            raise ValidationError(f"Package start date {start} is in the future")
        superseded = self.repo.supersede_active_packages(self.db, client_id)
        active = ActivePackage(
            client_id=client_id,
            package_id=package_id,
            start_date=start,
            expiry_date=start + timedelta(days=package.duration_days),
            status="active",
        )
        self.db.add(active)
        self.db.commit()
        self.db.refresh(active)

        logger.info(
            f"📦 Package {package_id} activated for client {client_id} until {active.expiry_date}"
            f" ({superseded} superseded)"
        )
        return active
