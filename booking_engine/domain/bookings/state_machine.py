"""
Booking State Machine

    pending --assign--> assigned --accept--> accepted --start--> in_progress --complete--> completed
       |                   |  ^                 |
       |                   |  +--release--+     |
       +--cancel/decline---+------------------- +--> cancelled / declined

- cancelled, declined and completed are terminal
- in_progress only moves forward to completed
- release (assigned -> pending) is used when a provider lets a job go and the
  booking goes back into matching; it is not exposed as a user event
"""

from enum import Enum
from typing import Optional

from ...errors import InvalidTransitionError


class BookingStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DECLINED = "declined"


class AssignmentStatus(str, Enum):
    PENDING_ASSIGNMENT = "pending_assignment"
    AUTO_ASSIGNED = "auto_assigned"
    MANUAL_ASSIGNMENT_REQUIRED = "manual_assignment_required"
    ASSIGNED = "assigned"  # Set by a dispatcher


class BookingEvent(str, Enum):
    CREATE = "create"  # History only, never a transition
    ASSIGN = "assign"
    ACCEPT = "accept"
    DECLINE = "decline"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    RELEASE = "release"


TRANSITIONS: dict[tuple[BookingStatus, BookingEvent], BookingStatus] = {
    (BookingStatus.PENDING, BookingEvent.ASSIGN): BookingStatus.ASSIGNED,
    (BookingStatus.PENDING, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.PENDING, BookingEvent.DECLINE): BookingStatus.DECLINED,
    (BookingStatus.ASSIGNED, BookingEvent.ACCEPT): BookingStatus.ACCEPTED,
    (BookingStatus.ASSIGNED, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.ASSIGNED, BookingEvent.DECLINE): BookingStatus.DECLINED,
    (BookingStatus.ASSIGNED, BookingEvent.RELEASE): BookingStatus.PENDING,
    (BookingStatus.ACCEPTED, BookingEvent.START): BookingStatus.IN_PROGRESS,
    (BookingStatus.ACCEPTED, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.ACCEPTED, BookingEvent.DECLINE): BookingStatus.DECLINED,
    (BookingStatus.IN_PROGRESS, BookingEvent.COMPLETE): BookingStatus.COMPLETED,
}

# Events a caller may fire through the generic transition entry point.
# Assignment and release go through the assignment operations instead.
USER_EVENTS = frozenset(
    {
        BookingEvent.ACCEPT,
        BookingEvent.DECLINE,
        BookingEvent.START,
        BookingEvent.COMPLETE,
        BookingEvent.CANCEL,
    }
)

TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.DECLINED}
)

# A booking in one of these must have a provider
PROVIDER_REQUIRED_STATUSES = frozenset(
    {BookingStatus.ACCEPTED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED}
)

# Lifecycle timestamp column stamped when entering a status
TIMESTAMP_FIELDS = {
    BookingStatus.ASSIGNED: "assigned_at",
    BookingStatus.ACCEPTED: "accepted_at",
    BookingStatus.IN_PROGRESS: "started_at",
    BookingStatus.COMPLETED: "completed_at",
    BookingStatus.CANCELLED: "cancelled_at",
}


def next_status(current, event, has_provider: Optional[bool] = None) -> BookingStatus:
    """
    Resolve the status reached by applying an event.

    Raises:
        InvalidTransitionError: If the event is not legal from the current status,
            or the target status needs a provider and the booking has none
    """
    current = BookingStatus(current)
    event = BookingEvent(event)

    target = TRANSITIONS.get((current, event))
    if target is None:
        raise InvalidTransitionError(current.value, event.value)

    if has_provider is False and target in PROVIDER_REQUIRED_STATUSES:
        raise InvalidTransitionError(current.value, event.value, "booking has no provider")

    return target


def allowed_events(current) -> list[BookingEvent]:
    current = BookingStatus(current)
    return [event for (status, event) in TRANSITIONS if status == current]
