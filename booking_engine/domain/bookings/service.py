"""
Booking service - Business logic for the booking lifecycle

Creation consults the entitlement ledger first, prices the booking against the
settings snapshot it was given, freezes the result on the row and then tries to
assign a provider. Every later change goes through the state machine and is a
compare-and-set on the row, so two writers can never both win.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...clock import Clock
from ...config import ACCEPTANCE_WINDOW_HOURS
from ...errors import (
    ConcurrentModificationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ...models import Booking, BookingStatusChange, Provider
from ...services.notification_service import (
    ASSIGNMENT_FAILED,
    BOOKING_CREATED,
    BOOKING_STATUS_CHANGED,
    PROVIDER_ASSIGNED,
    NotificationDispatcher,
    NotificationEvent,
    OutboxDispatcher,
)
from ..entitlements.service import Consumed, EntitlementLedger, EntitlementResult
from ..locations.graph import LocationGraph
from ..locations.repository import LocationRepository
from ..pricing.calculator import PricingSettings, calculate_price, is_weekend_date
from ..providers.directory import ProviderDirectory, TimeSlot
from ..providers.repository import ProviderRepository
from ..providers.selector import NoEligibleProvider, select_provider
from .repository import BookingRepository
from .schemas import BookingCreate
from .state_machine import (
    TIMESTAMP_FIELDS,
    USER_EVENTS,
    AssignmentStatus,
    BookingEvent,
    BookingStatus,
    next_status,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentResult:
    booking_id: int
    provider_id: Optional[int]
    status: str
    assignment_status: str
    tier: Optional[int] = None
    already_assigned: bool = False

    @property
    def assigned(self) -> bool:
        return self.provider_id is not None


@dataclass(frozen=True)
class BookingResult:
    booking: Booking
    entitlement: EntitlementResult
    assignment: AssignmentResult


class BookingService:
    """Service layer for booking business logic"""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        settings: Optional[PricingSettings] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        graph: Optional[LocationGraph] = None,
        ledger: Optional[EntitlementLedger] = None,
    ):
        self.db = db
        self.clock = clock or Clock()
        self.settings = settings or PricingSettings()
        self.dispatcher = dispatcher or OutboxDispatcher(db)
        self.repo = BookingRepository()
        self.ledger = ledger or EntitlementLedger(db, clock=self.clock)
        self._graph = graph

    @property
    def graph(self) -> LocationGraph:
        if self._graph is None:
            self._graph = LocationRepository.load_graph(self.db)
        return self._graph

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.repo.get_booking_by_id(self.db, booking_id)
        if not booking:
            raise NotFoundError("Booking", booking_id)
        return booking

    def get_history(self, booking_id: int) -> list[BookingStatusChange]:
        self.get_booking(booking_id)
        return self.repo.get_status_history(self.db, booking_id)

    def get_manual_review_queue(self) -> list[Booking]:
        return self.repo.get_manual_review_queue(self.db)

    # ========================================================================
    # CREATION
    # ========================================================================

    def create_booking(self, data: BookingCreate) -> BookingResult:
        """Price, persist and try to auto-assign a new booking"""
        client = self.repo.get_client_by_id(self.db, data.client_id)
        if not client:
            raise NotFoundError("Client", data.client_id)
        service = self.repo.get_service_by_id(self.db, data.service_id)
        if not service:
            raise NotFoundError("Service", data.service_id)
        if not service.is_active:
            raise ValidationError(f"Service {service.id} is not available for booking")

        location_town = data.location_town or client.town
        location_suburb = data.location_suburb or client.suburb
        duration = data.duration_minutes or service.duration_minutes
        list_price = service.price_one_off

        logger.info(
            f"📥 Creating booking for client {data.client_id}, service {data.service_id} "
            f"on {data.booking_date} {data.booking_time}"
        )

        # Entitlement first: it decides whether the client pays at all
        entitlement = self.ledger.try_consume(data.client_id, data.service_id)
        covered = isinstance(entitlement, Consumed)

        is_weekend = is_weekend_date(data.booking_date, self.clock)
        breakdown = calculate_price(
            list_price,
            is_emergency=data.emergency_booking,
            is_weekend=is_weekend,
            settings=self.settings,
            covered_by_package=covered,
        )

        now = self.clock.now()
        booking = Booking(
            client_id=data.client_id,
            service_id=data.service_id,
            booking_date=data.booking_date,
            booking_time=data.booking_time,
            duration_minutes=duration,
            location_town=location_town,
            location_suburb=location_suburb,
            special_instructions=data.special_instructions,
            emergency_booking=data.emergency_booking,
            status=BookingStatus.PENDING.value,
            assignment_status=AssignmentStatus.PENDING_ASSIGNMENT.value,
            acceptance_deadline=now + timedelta(hours=ACCEPTANCE_WINDOW_HOURS),
            is_weekend=breakdown.is_weekend,
            covered_by_package=breakdown.covered_by_package,
            base_price=breakdown.base_price,
            total_amount=breakdown.client_price,
            platform_commission=breakdown.platform_commission,
            taxable_amount=breakdown.taxable_amount,
            income_tax=breakdown.income_tax,
            withholding_tax=breakdown.withholding_tax,
            weekend_bonus=breakdown.weekend_bonus,
            net_payout=breakdown.net_payout,
            created_at=now,
        )

        try:
            self.db.add(booking)
            self.db.flush()
            if covered:
                self.ledger.attach_booking(entitlement.usage_record_id, booking.id)
            self.repo.add_status_change(
                self.db, booking.id, None, BookingStatus.PENDING.value, BookingEvent.CREATE.value, now
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to persist booking for client {data.client_id}: {e}")
            if covered:
                self.ledger.revert(entitlement.usage_record_id)
            raise

        logger.info(
            f"✅ Booking {booking.id} created: total N${booking.total_amount} "
            f"(covered={covered}, weekend={is_weekend})"
        )
        self._emit(BOOKING_CREATED, booking)

        try:
            assignment = self.attempt_assignment(booking.id)
        except ConcurrentModificationError:
            logger.warning(f"⚠️ Assignment of booking {booking.id} raced, retrying once")
            assignment = self.attempt_assignment(booking.id)

        self.db.refresh(booking)
        return BookingResult(booking=booking, entitlement=entitlement, assignment=assignment)

    # ========================================================================
    # ASSIGNMENT
    # ========================================================================

    def attempt_assignment(
        self, booking_id: int, exclude_provider_ids: Iterable[int] = ()
    ) -> AssignmentResult:
        """
        Match a pending booking to the best eligible provider.

        A booking that already has a provider is returned as-is with no write.
        With no eligible provider the booking stays pending and is flagged
        manual_assignment_required.
        """
        booking = self.get_booking(booking_id)
        if booking.provider_id is not None:
            logger.info(
                f"ℹ️ Booking {booking_id} already assigned to provider {booking.provider_id}"
            )
            return self._assignment_result(booking, already_assigned=True)

        if booking.status != BookingStatus.PENDING.value:
            raise InvalidTransitionError(booking.status, BookingEvent.ASSIGN.value)

        excluded = self.repo.get_failed_provider_ids(self.db, booking_id) | set(exclude_provider_ids)
        directory = ProviderDirectory(self.db, self.graph)
        matches = directory.find_eligible(
            booking.location_town,
            booking.location_suburb,
            service_id=booking.service_id,
            exclude_provider_ids=excluded,
            slot=TimeSlot(
                booking.booking_date, booking.booking_time, booking.duration_minutes, booking.id
            ),
        )
        selection = select_provider(matches)

        if isinstance(selection, NoEligibleProvider):
            return self._escalate(booking, selection.reason)

        now = self.clock.now()
        won = self.repo.assign_provider_if_unassigned(
            self.db,
            booking_id,
            selection.provider_id,
            AssignmentStatus.AUTO_ASSIGNED.value,
            now,
        )
        if not won:
            self.db.rollback()
            current = self.get_booking(booking_id)
            if current.provider_id is not None:
                logger.info(
                    f"ℹ️ Booking {booking_id} was assigned concurrently to provider "
                    f"{current.provider_id}"
                )
                return self._assignment_result(current, already_assigned=True)
            raise ConcurrentModificationError(
                f"Booking {booking_id} changed while assigning a provider"
            )

        self.repo.add_status_change(
            self.db,
            booking_id,
            BookingStatus.PENDING.value,
            BookingStatus.ASSIGNED.value,
            BookingEvent.ASSIGN.value,
            now,
        )
        self.db.commit()

        logger.info(
            f"✅ Booking {booking_id} auto-assigned to provider {selection.provider_id} "
            f"(tier {selection.tier}, rating {selection.rating}, "
            f"{selection.total_jobs_completed} jobs)"
        )
        self._emit(PROVIDER_ASSIGNED, booking)
        return self._assignment_result(booking, tier=selection.tier)

    def _escalate(self, booking: Booking, reason: str) -> AssignmentResult:
        """Leave the booking pending and flag it for human dispatch"""
        if not self.repo.flag_manual_assignment(self.db, booking.id):
            self.db.rollback()
            current = self.get_booking(booking.id)
            if current.provider_id is not None:
                return self._assignment_result(current, already_assigned=True)
            raise ConcurrentModificationError(
                f"Booking {booking.id} changed while flagging it for manual assignment"
            )
        self.db.commit()

        logger.warning(f"⚠️ Booking {booking.id} needs manual assignment: {reason}")
        self._emit(ASSIGNMENT_FAILED, booking, reason=reason)
        return self._assignment_result(booking)

    def reassign_or_escalate(
        self, booking_id: int, outcome: str = "expired", reason: Optional[str] = None
    ) -> AssignmentResult:
        """
        Take an assigned booking back from a provider who did not accept it and
        run matching again without every provider that already let it go.
        The acceptance deadline is not touched.
        """
        booking = self.get_booking(booking_id)
        if booking.status != BookingStatus.ASSIGNED.value or booking.provider_id is None:
            raise InvalidTransitionError(booking.status, BookingEvent.RELEASE.value)

        previous_provider_id = booking.provider_id
        now = self.clock.now()
        if not self.repo.release_provider(self.db, booking_id, previous_provider_id):
            self.db.rollback()
            raise ConcurrentModificationError(
                f"Booking {booking_id} changed while releasing provider {previous_provider_id}"
            )

        self.repo.add_assignment_attempt(self.db, booking_id, previous_provider_id, outcome, now)
        self.repo.add_status_change(
            self.db,
            booking_id,
            BookingStatus.ASSIGNED.value,
            BookingStatus.PENDING.value,
            BookingEvent.RELEASE.value,
            now,
            reason=reason or f"Provider {previous_provider_id} {outcome}",
        )
        self.db.commit()

        logger.info(
            f"🔄 Booking {booking_id} released by provider {previous_provider_id} ({outcome}), "
            f"looking for another provider"
        )
        return self.attempt_assignment(booking_id)

    def manual_assign(self, booking_id: int, provider_id: int) -> AssignmentResult:
        """Dispatcher puts a chosen provider on a pending booking"""
        booking = self.get_booking(booking_id)
        provider: Optional[Provider] = ProviderRepository.get_provider_by_id(self.db, provider_id)
        if not provider:
            raise NotFoundError("Provider", provider_id)
        if not provider.active or not provider.verified:
            raise ValidationError(f"Provider {provider_id} must be active and verified")

        if booking.provider_id is not None:
            raise InvalidTransitionError(
                booking.status, BookingEvent.ASSIGN.value, "booking already has a provider"
            )
        if booking.status != BookingStatus.PENDING.value:
            raise InvalidTransitionError(booking.status, BookingEvent.ASSIGN.value)

        now = self.clock.now()
        won = self.repo.assign_provider_if_unassigned(
            self.db, booking_id, provider_id, AssignmentStatus.ASSIGNED.value, now
        )
        if not won:
            self.db.rollback()
            raise ConcurrentModificationError(
                f"Booking {booking_id} changed while assigning provider {provider_id}"
            )

        self.repo.add_status_change(
            self.db,
            booking_id,
            BookingStatus.PENDING.value,
            BookingStatus.ASSIGNED.value,
            BookingEvent.ASSIGN.value,
            now,
            reason="Manual assignment",
        )
        self.db.commit()

        logger.info(f"👤 Booking {booking_id} manually assigned to provider {provider_id}")
        self._emit(PROVIDER_ASSIGNED, booking)
        return self._assignment_result(booking)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def transition(self, booking_id: int, event, reason: Optional[str] = None) -> Booking:
        """Apply a user event (accept, decline, start, complete, cancel)"""
        try:
            event = BookingEvent(event)
        except ValueError:
            raise ValidationError(f"Unknown booking event '{event}'")
        if event not in USER_EVENTS:
            raise ValidationError(
                f"Event '{event.value}' is applied through the assignment operations"
            )

        booking = self.get_booking(booking_id)
        current = booking.status
        target = next_status(current, event, has_provider=booking.provider_id is not None)

        now = self.clock.now()
        values = {Booking.status: target.value}
        stamp = TIMESTAMP_FIELDS.get(target)
        if stamp:
            values[getattr(Booking, stamp)] = now
        if target == BookingStatus.CANCELLED:
            values[Booking.cancellation_reason] = reason

        if not self.repo.change_status(self.db, booking_id, current, values):
            self.db.rollback()
            raise ConcurrentModificationError(
                f"Booking {booking_id} left status '{current}' before '{event.value}' was applied"
            )

        if target == BookingStatus.COMPLETED:
            self.db.query(Provider).filter(Provider.id == booking.provider_id).update(
                {Provider.total_jobs_completed: Provider.total_jobs_completed + 1},
                synchronize_session=False,
            )

        self.repo.add_status_change(
            self.db, booking_id, current, target.value, event.value, now, reason=reason
        )
        self.db.commit()

        logger.info(f"🔀 Booking {booking_id}: {current} -> {target.value} ({event.value})")
        self._emit(BOOKING_STATUS_CHANGED, booking, from_status=current, event=event.value)
        return booking

    def cancel_booking(self, booking_id: int, reason: Optional[str] = None) -> Booking:
        """Cancel a booking. Consumed entitlement is not given back."""
        return self.transition(booking_id, BookingEvent.CANCEL, reason=reason)

    # ========================================================================
    # HELPERS
    # ========================================================================

    @staticmethod
    def _assignment_result(
        booking: Booking, tier: Optional[int] = None, already_assigned: bool = False
    ) -> AssignmentResult:
        return AssignmentResult(
            booking_id=booking.id,
            provider_id=booking.provider_id,
            status=booking.status,
            assignment_status=booking.assignment_status,
            tier=tier,
            already_assigned=already_assigned,
        )

    def _emit(self, event_type: str, booking: Booking, **extra) -> None:
        payload = {
            "booking_id": booking.id,
            "public_id": booking.public_id,
            "client_id": booking.client_id,
            "provider_id": booking.provider_id,
            "status": booking.status,
            "assignment_status": booking.assignment_status,
            "booking_date": booking.booking_date.isoformat(),
            "booking_time": booking.booking_time,
            **extra,
        }
        self.dispatcher.emit(
            NotificationEvent(
                event_type=event_type,
                booking_id=booking.id,
                payload=payload,
                created_at=self.clock.now(),
            )
        )
