import asyncio
import json
from datetime import date

import httpx
import pytest

from booking_engine.domain.bookings.schemas import BookingCreate
from booking_engine.domain.bookings.service import BookingService
from booking_engine.domain.pricing.calculator import PricingSettings
from booking_engine.domain.scheduling.schemas import ScheduleCreate
from booking_engine.domain.scheduling.service import ScheduleService
from booking_engine.models import Booking, NotificationOutbox
from booking_engine.services.notification_service import (
    BOOKING_CREATED,
    NotificationEvent,
    OutboxDispatcher,
)
from booking_engine.worker import (
    dispatch_notifications_task,
    expand_recurring_schedules_task,
    sweep_expired_assignments_task,
)
from conftest import MONDAY, NOW


@pytest.fixture
def ctx(session_factory, clock, settings_store, dispatcher):
    return {
        "session_factory": session_factory,
        "clock": clock,
        "settings_store": settings_store,
        "dispatcher": dispatcher,
    }


def new_booking(booking_service, windhoek):
    return booking_service.create_booking(
        BookingCreate(
            client_id=windhoek["client"].id,
            service_id=windhoek["service"].id,
            booking_date=MONDAY,
            booking_time="09:00",
        )
    ).booking


# ============================================================================
# EXPIRED ASSIGNMENT SWEEP
# ============================================================================


def test_sweep_reassigns_then_escalates(db, seed, windhoek, booking_service, clock, ctx):
    first = seed.provider("Eros", rating=5.0)
    second = seed.provider("Klein Windhoek", rating=4.0)
    booking = new_booking(booking_service, windhoek)
    assert booking.provider_id == first.id

    clock.advance(hours=25)
    swept = asyncio.run(sweep_expired_assignments_task(ctx))
    assert swept == {"checked": 1, "reassigned": 1, "escalated": 0, "failed": 0}
    db.refresh(booking)
    assert booking.provider_id == second.id

    # The new provider gets a full window of their own
    assert asyncio.run(sweep_expired_assignments_task(ctx))["checked"] == 0

    clock.advance(hours=24)
    swept = asyncio.run(sweep_expired_assignments_task(ctx))
    assert swept == {"checked": 1, "reassigned": 0, "escalated": 1, "failed": 0}
    db.refresh(booking)
    assert booking.status == "pending"
    assert booking.assignment_status == "manual_assignment_required"


def test_sweep_ignores_bookings_inside_their_window(seed, windhoek, booking_service, clock, ctx):
    seed.provider("Eros")
    new_booking(booking_service, windhoek)

    clock.advance(hours=23)

    assert asyncio.run(sweep_expired_assignments_task(ctx))["checked"] == 0


def test_sweep_leaves_accepted_bookings_alone(seed, windhoek, booking_service, clock, ctx):
    seed.provider("Eros")
    booking = new_booking(booking_service, windhoek)
    booking_service.transition(booking.id, "accept")

    clock.advance(days=3)

    assert asyncio.run(sweep_expired_assignments_task(ctx))["checked"] == 0


# ============================================================================
# RECURRING EXPANSION
# ============================================================================


def test_expand_task_generates_bookings_for_active_schedules(db, windhoek, booking_service, clock, ctx):
    schedules = ScheduleService(db, booking_service=booking_service, clock=clock)
    schedule = schedules.create_schedule(
        ScheduleCreate(
            client_id=windhoek["client"].id,
            service_id=windhoek["service"].id,
            frequency="bi-weekly",
            day_of_week=1,
            booking_time="10:00",
            start_date=date(2026, 3, 9),
            end_date=date(2026, 4, 30),
        )
    )
    stopped = schedules.create_schedule(
        ScheduleCreate(
            client_id=windhoek["client"].id,
            service_id=windhoek["service"].id,
            frequency="weekly",
            day_of_week=5,
            booking_time="10:00",
            start_date=date(2026, 3, 1),
        )
    )
    schedules.cancel_schedule(stopped.id)

    result = asyncio.run(expand_recurring_schedules_task(ctx))

    assert result == {"schedules": 1, "bookings_created": 4, "failed": 0}
    assert asyncio.run(expand_recurring_schedules_task(ctx))["bookings_created"] == 0
    dates = sorted(b.booking_date for b in db.query(Booking).all())
    assert dates == [date(2026, 3, 9), date(2026, 3, 23), date(2026, 4, 6), date(2026, 4, 20)]
    assert schedule.is_active


# ============================================================================
# NOTIFICATION OUTBOX
# ============================================================================


def outbox_service(db, clock):
    return BookingService(
        db, clock=clock, settings=PricingSettings(), dispatcher=OutboxDispatcher(db)
    )


def test_outbox_dispatcher_queues_events(db, windhoek, clock):
    booking = new_booking(outbox_service(db, clock), windhoek)

    rows = db.query(NotificationOutbox).order_by(NotificationOutbox.id).all()
    assert [r.event_type for r in rows] == ["booking_created", "assignment_failed"]
    assert all(r.status == "pending" and r.booking_id == booking.id for r in rows)
    assert rows[0].payload["booking_date"] == MONDAY.isoformat()
    assert rows[0].created_at == NOW


async def relay_with(ctx, handler):
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        ctx["http_client"] = http_client
        return await dispatch_notifications_task(ctx)


def test_dispatch_delivers_pending_rows(db, windhoek, clock, ctx):
    new_booking(outbox_service(db, clock), windhoek)
    ctx["webhook_url"] = "https://notify.example.test/events"
    received = []

    def handler(request):
        received.append(json.loads(request.content))
        return httpx.Response(202)

    result = asyncio.run(relay_with(ctx, handler))

    assert result == {"dispatched": 2, "failed": 0}
    assert [r["event_type"] for r in received] == ["booking_created", "assignment_failed"]
    db.expire_all()
    rows = db.query(NotificationOutbox).all()
    assert {r.status for r in rows} == {"dispatched"}
    assert {r.dispatched_at for r in rows} == {NOW}

    assert asyncio.run(relay_with(ctx, handler)) == {"dispatched": 0, "failed": 0}


def test_dispatch_keeps_rejected_rows_pending(db, clock, ctx):
    OutboxDispatcher(db).emit(
        NotificationEvent(event_type=BOOKING_CREATED, booking_id=None, payload={}, created_at=NOW)
    )
    ctx["webhook_url"] = "https://notify.example.test/events"

    result = asyncio.run(relay_with(ctx, lambda request: httpx.Response(503)))

    assert result == {"dispatched": 0, "failed": 1}
    db.expire_all()
    row = db.query(NotificationOutbox).one()
    assert (row.status, row.attempts, row.last_error) == ("pending", 1, "HTTP 503")


def test_dispatch_is_skipped_without_webhook(ctx):
    ctx["webhook_url"] = None

    assert asyncio.run(dispatch_notifications_task(ctx)) == {
        "dispatched": 0,
        "failed": 0,
        "skipped": True,
    }
