from datetime import timedelta
from decimal import Decimal

import pytest

from booking_engine.domain.bookings.repository import BookingRepository
from booking_engine.domain.bookings.schemas import BookingCreate
from booking_engine.domain.bookings.service import BookingService
from booking_engine.domain.entitlements.service import Consumed, NotEntitled
from booking_engine.domain.pricing.calculator import PricingSettings
from booking_engine.errors import InvalidTransitionError, NotFoundError, ValidationError
from booking_engine.models import (
    BookingAssignmentAttempt,
    BookingStatusChange,
    UsageRecord,
)
from booking_engine.services.notification_service import (
    ASSIGNMENT_FAILED,
    BOOKING_CREATED,
    BOOKING_STATUS_CHANGED,
    PROVIDER_ASSIGNED,
)
from conftest import MONDAY, NOW, SATURDAY


def request_for(windhoek, booking_date=MONDAY, booking_time="09:00", **kwargs):
    return BookingCreate(
        client_id=windhoek["client"].id,
        service_id=windhoek["service"].id,
        booking_date=booking_date,
        booking_time=booking_time,
        **kwargs,
    )


def history_events(db, booking_id):
    rows = (
        db.query(BookingStatusChange)
        .filter(BookingStatusChange.booking_id == booking_id)
        .order_by(BookingStatusChange.id)
        .all()
    )
    return [(r.from_status, r.to_status, r.event) for r in rows]


# ============================================================================
# CREATION
# ============================================================================


def test_saturday_booking_is_priced_and_auto_assigned(db, seed, windhoek, booking_service, dispatcher):
    seed.provider("Eros", rating=4.8, jobs=12)
    best = seed.provider("Klein Windhoek", rating=4.8, jobs=30)

    result = booking_service.create_booking(request_for(windhoek, booking_date=SATURDAY))
    booking = result.booking

    assert isinstance(result.entitlement, NotEntitled)
    assert booking.is_weekend is True
    assert booking.total_amount == Decimal("120.00")
    assert booking.platform_commission == Decimal("18.00")
    assert booking.net_payout == Decimal("123.44")

    assert result.assignment.provider_id == best.id
    assert result.assignment.tier == 1
    assert booking.status == "assigned"
    assert booking.assignment_status == "auto_assigned"
    assert booking.provider_id == best.id
    assert booking.acceptance_deadline == NOW + timedelta(hours=24)
    assert booking.assigned_at == NOW

    assert history_events(db, booking.id) == [
        (None, "pending", "create"),
        ("pending", "assigned", "assign"),
    ]
    assert [e.event_type for e in dispatcher.events] == [BOOKING_CREATED, PROVIDER_ASSIGNED]


def test_booking_defaults_to_client_location_and_service_duration(windhoek, booking_service):
    booking = booking_service.create_booking(request_for(windhoek)).booking

    assert (booking.location_town, booking.location_suburb) == ("Windhoek", "Olympia")
    assert booking.duration_minutes == 120
    assert booking.booking_time == "09:00"


def test_no_eligible_provider_flags_manual_assignment(db, seed, windhoek, booking_service, dispatcher):
    seed.provider("Katutura", max_tier=2)  # tier 3 away

    result = booking_service.create_booking(request_for(windhoek))

    assert result.assignment.provider_id is None
    assert result.booking.status == "pending"
    assert result.booking.assignment_status == "manual_assignment_required"
    assert dispatcher.of_type(ASSIGNMENT_FAILED)[0].booking_id == result.booking.id
    assert [b.id for b in booking_service.get_manual_review_queue()] == [result.booking.id]


def test_package_covered_booking_is_free_to_the_client(db, seed, windhoek, booking_service):
    package = seed.package(windhoek["service"], quantity=1)
    seed.active_package(windhoek["client"], package)

    first = booking_service.create_booking(request_for(windhoek))
    second = booking_service.create_booking(request_for(windhoek, booking_time="14:00"))

    assert isinstance(first.entitlement, Consumed)
    assert first.booking.covered_by_package is True
    assert first.booking.total_amount == Decimal("0.00")
    assert first.booking.platform_commission == Decimal("50.00")
    usage = db.query(UsageRecord).one()
    assert usage.booking_id == first.booking.id

    assert second.booking.covered_by_package is False
    assert second.booking.total_amount == Decimal("100.00")


def test_prices_are_frozen_at_creation(seed, windhoek, db, clock, dispatcher):
    first = BookingService(db, clock=clock, settings=PricingSettings(), dispatcher=dispatcher)
    booking = first.create_booking(request_for(windhoek, booking_date=SATURDAY)).booking

    pricier = PricingSettings(weekend_markup_percentage=50, weekend_bonus_amount=10)
    second = BookingService(db, clock=clock, settings=pricier, dispatcher=dispatcher)
    later = second.create_booking(request_for(windhoek, booking_date=SATURDAY)).booking

    db.refresh(booking)
    assert booking.total_amount == Decimal("120.00")
    assert later.total_amount == Decimal("150.00")
    assert later.weekend_bonus == Decimal("10.00")


def test_unknown_client_or_service_is_not_found(windhoek, booking_service):
    with pytest.raises(NotFoundError):
        booking_service.create_booking(request_for(windhoek).model_copy(update={"client_id": 999}))
    with pytest.raises(NotFoundError):
        booking_service.create_booking(request_for(windhoek).model_copy(update={"service_id": 999}))


def test_inactive_service_cannot_be_booked(seed, windhoek, booking_service):
    retired = seed.service(name="Retired", is_active=False)

    with pytest.raises(ValidationError):
        booking_service.create_booking(
            request_for(windhoek).model_copy(update={"service_id": retired.id})
        )


# ============================================================================
# ASSIGNMENT
# ============================================================================


def test_assignment_is_idempotent(db, seed, windhoek, booking_service, dispatcher):
    provider = seed.provider("Eros")
    booking = booking_service.create_booking(request_for(windhoek)).booking
    history_before = history_events(db, booking.id)
    events_before = len(dispatcher.events)

    first = booking_service.attempt_assignment(booking.id)
    second = booking_service.attempt_assignment(booking.id)

    assert first.provider_id == second.provider_id == provider.id
    assert first.already_assigned and second.already_assigned
    assert history_events(db, booking.id) == history_before
    assert len(dispatcher.events) == events_before


def test_losing_the_assignment_race_returns_the_winner(db, seed, windhoek, booking_service):
    booking = booking_service.create_booking(request_for(windhoek)).booking
    assert booking.provider_id is None
    other = seed.provider("Eros")

    # Another request assigns between our read and our write
    assert BookingRepository.assign_provider_if_unassigned(
        db, booking.id, other.id, "auto_assigned", NOW
    )
    assert not BookingRepository.assign_provider_if_unassigned(
        db, booking.id, other.id + 1, "auto_assigned", NOW
    )
    db.commit()

    result = booking_service.attempt_assignment(booking.id)
    assert result.provider_id == other.id
    assert result.already_assigned


def test_busy_provider_is_skipped_for_overlapping_booking(seed, windhoek, booking_service):
    closest = seed.provider("Olympia", rating=5.0)
    backup = seed.provider("Eros")

    first = booking_service.create_booking(request_for(windhoek, booking_time="09:00"))
    overlapping = booking_service.create_booking(request_for(windhoek, booking_time="10:00"))
    later = booking_service.create_booking(request_for(windhoek, booking_time="13:00"))

    assert first.assignment.provider_id == closest.id
    assert overlapping.assignment.provider_id == backup.id
    assert later.assignment.provider_id == closest.id


def test_assigning_a_cancelled_booking_is_an_invalid_transition(windhoek, booking_service):
    booking = booking_service.create_booking(request_for(windhoek)).booking
    booking_service.cancel_booking(booking.id, reason="Changed plans")

    with pytest.raises(InvalidTransitionError):
        booking_service.attempt_assignment(booking.id)


def test_reassign_excludes_failed_providers_then_escalates(db, seed, windhoek, booking_service):
    first_choice = seed.provider("Eros", rating=5.0)
    second_choice = seed.provider("Klein Windhoek", rating=4.0)
    booking = booking_service.create_booking(request_for(windhoek)).booking
    deadline = booking.acceptance_deadline
    assert booking.provider_id == first_choice.id

    again = booking_service.reassign_or_escalate(booking.id, outcome="rejected")
    assert again.provider_id == second_choice.id
    assert again.status == "assigned"

    last = booking_service.reassign_or_escalate(booking.id, outcome="expired")
    assert last.provider_id is None
    assert last.status == "pending"
    assert last.assignment_status == "manual_assignment_required"

    db.refresh(booking)
    assert booking.acceptance_deadline == deadline
    attempts = db.query(BookingAssignmentAttempt).order_by(BookingAssignmentAttempt.id).all()
    assert [(a.provider_id, a.outcome) for a in attempts] == [
        (first_choice.id, "rejected"),
        (second_choice.id, "expired"),
    ]


def test_reassign_requires_an_assigned_booking(windhoek, booking_service):
    booking = booking_service.create_booking(request_for(windhoek)).booking

    with pytest.raises(InvalidTransitionError):
        booking_service.reassign_or_escalate(booking.id)


def test_manual_assignment_from_review_queue(db, seed, windhoek, booking_service):
    booking = booking_service.create_booking(request_for(windhoek)).booking
    far_away = seed.provider("Ludwigsdorf", max_tier=0)

    result = booking_service.manual_assign(booking.id, far_away.id)

    assert result.provider_id == far_away.id
    assert result.status == "assigned"
    assert result.assignment_status == "assigned"
    assert booking_service.get_manual_review_queue() == []


def test_manual_assignment_needs_a_verified_active_provider(seed, windhoek, booking_service):
    booking = booking_service.create_booking(request_for(windhoek)).booking
    unverified = seed.provider("Eros", verified=False)

    with pytest.raises(ValidationError):
        booking_service.manual_assign(booking.id, unverified.id)
    with pytest.raises(NotFoundError):
        booking_service.manual_assign(booking.id, 999)


def test_manual_assignment_does_not_override_a_provider(seed, windhoek, booking_service):
    seed.provider("Eros")
    other = seed.provider("Ludwigsdorf")
    booking = booking_service.create_booking(request_for(windhoek)).booking

    with pytest.raises(InvalidTransitionError):
        booking_service.manual_assign(booking.id, other.id)


# ============================================================================
# LIFECYCLE
# ============================================================================


def test_full_lifecycle_stamps_timestamps(db, seed, windhoek, booking_service, clock, dispatcher):
    provider = seed.provider("Eros", jobs=7)
    booking = booking_service.create_booking(request_for(windhoek)).booking

    clock.advance(hours=1)
    booking_service.transition(booking.id, "accept")
    clock.advance(days=5)
    booking_service.transition(booking.id, "start")
    clock.advance(hours=2)
    booking = booking_service.transition(booking.id, "complete")

    assert booking.status == "completed"
    assert booking.accepted_at == NOW + timedelta(hours=1)
    assert booking.started_at == NOW + timedelta(days=5, hours=1)
    assert booking.completed_at == NOW + timedelta(days=5, hours=3)
    db.refresh(provider)
    assert provider.total_jobs_completed == 8
    assert len(dispatcher.of_type(BOOKING_STATUS_CHANGED)) == 3
    assert history_events(db, booking.id)[-1] == ("in_progress", "completed", "complete")


@pytest.mark.parametrize("events", [["accept", "start"], ["accept", "start", "complete"]])
def test_cancel_after_start_is_rejected(seed, windhoek, booking_service, events):
    seed.provider("Eros")
    booking = booking_service.create_booking(request_for(windhoek)).booking
    for event in events:
        booking_service.transition(booking.id, event)

    with pytest.raises(InvalidTransitionError):
        booking_service.cancel_booking(booking.id)


def test_cancel_records_reason_and_keeps_entitlement_spent(db, seed, windhoek, booking_service):
    package = seed.package(windhoek["service"], quantity=1)
    seed.active_package(windhoek["client"], package)
    booking = booking_service.create_booking(request_for(windhoek)).booking

    cancelled = booking_service.cancel_booking(booking.id, reason="Client travelling")

    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_at == NOW
    assert cancelled.cancellation_reason == "Client travelling"
    assert db.query(UsageRecord).count() == 1


def test_assignment_events_are_not_accepted_as_transitions(windhoek, booking_service):
    booking = booking_service.create_booking(request_for(windhoek)).booking

    with pytest.raises(ValidationError):
        booking_service.transition(booking.id, "assign")
    with pytest.raises(ValidationError):
        booking_service.transition(booking.id, "teleport")


def test_accepting_an_unassigned_booking_is_rejected(windhoek, booking_service):
    booking = booking_service.create_booking(request_for(windhoek)).booking

    with pytest.raises(InvalidTransitionError):
        booking_service.transition(booking.id, "accept")
