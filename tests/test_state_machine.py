import pytest

from booking_engine.domain.bookings.state_machine import (
    TERMINAL_STATUSES,
    BookingEvent,
    BookingStatus,
    allowed_events,
    next_status,
)
from booking_engine.errors import InvalidTransitionError


@pytest.mark.parametrize(
    "current, event, expected",
    [
        ("pending", "assign", "assigned"),
        ("assigned", "accept", "accepted"),
        ("accepted", "start", "in_progress"),
        ("in_progress", "complete", "completed"),
        ("assigned", "release", "pending"),
        ("pending", "cancel", "cancelled"),
        ("assigned", "decline", "declined"),
        ("accepted", "cancel", "cancelled"),
    ],
)
def test_legal_transitions(current, event, expected):
    assert next_status(current, event) == BookingStatus(expected)


@pytest.mark.parametrize("current", ["in_progress", "completed"])
def test_cancel_after_work_started_is_rejected(current):
    with pytest.raises(InvalidTransitionError) as exc_info:
        next_status(current, BookingEvent.CANCEL)

    assert exc_info.value.current_status == current
    assert exc_info.value.event == "cancel"


def test_in_progress_only_moves_to_completed():
    assert allowed_events("in_progress") == [BookingEvent.COMPLETE]


@pytest.mark.parametrize("status", sorted(s.value for s in TERMINAL_STATUSES))
def test_terminal_statuses_accept_no_events(status):
    assert allowed_events(status) == []
    for event in BookingEvent:
        with pytest.raises(InvalidTransitionError):
            next_status(status, event)


def test_same_state_event_is_not_a_no_op():
    with pytest.raises(InvalidTransitionError):
        next_status("assigned", "assign")


def test_accept_requires_a_provider():
    with pytest.raises(InvalidTransitionError, match="no provider"):
        next_status("assigned", "accept", has_provider=False)


def test_cannot_skip_acceptance():
    with pytest.raises(InvalidTransitionError):
        next_status("assigned", "start")
    with pytest.raises(InvalidTransitionError):
        next_status("pending", "accept")
