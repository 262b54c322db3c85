"""Domain errors raised by the booking engine.

Expected outcomes (no eligible provider, entitlement exhausted, not entitled)
are returned as typed results, not raised. Only integrity problems end up here.
"""

from typing import Optional


class BookingEngineError(Exception):
    """Base class for booking engine errors"""

    pass


class NotFoundError(BookingEngineError):
    """Raised when a referenced record does not exist"""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ValidationError(BookingEngineError):
    """Raised when domain input is well-formed but not acceptable"""

    pass


class InvalidTransitionError(BookingEngineError):
    """Raised when a booking event is not legal from the booking's current status"""

    def __init__(self, current_status: str, event: str, detail: Optional[str] = None):
        self.current_status = current_status
        self.event = event
        message = f"Cannot apply '{event}' to a booking in status '{current_status}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ConcurrentModificationError(BookingEngineError):
    """Raised when an optimistic precondition fails because another writer got there first"""

    pass
