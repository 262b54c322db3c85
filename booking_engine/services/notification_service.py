"""
Booking Notification Service
Emits booking events as data (booking created, provider assigned, assignment
failed, status changed). Delivery over email/SMS/push belongs to the surrounding
product: events are written to the notification_outbox table and relayed to its
webhook by the worker.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol

import httpx
from sqlalchemy.orm import Session

from ..models import NotificationOutbox

logger = logging.getLogger(__name__)

BOOKING_CREATED = "booking_created"
PROVIDER_ASSIGNED = "provider_assigned"
ASSIGNMENT_FAILED = "assignment_failed"
BOOKING_STATUS_CHANGED = "booking_status_changed"


@dataclass(frozen=True)
class NotificationEvent:
    event_type: str
    booking_id: Optional[int]
    payload: dict = field(default_factory=dict)
    created_at: Optional[datetime] = None


class NotificationDispatcher(Protocol):
    def emit(self, event: NotificationEvent) -> None: ...


class OutboxDispatcher:
    """Writes events to the outbox table in their own commit"""

    def __init__(self, db: Session):
        self.db = db

    def emit(self, event: NotificationEvent) -> None:
        row = NotificationOutbox(
            event_type=event.event_type,
            booking_id=event.booking_id,
            payload=event.payload,
            status="pending",
            attempts=0,
            created_at=event.created_at or datetime.utcnow(),
        )
        try:
            self.db.add(row)
            self.db.commit()
            logger.info(f"📨 Queued {event.event_type} for booking {event.booking_id}")
        except Exception as e:
            # Fire-and-forget: the booking decision is already committed
            self.db.rollback()
            logger.error(f"❌ Failed to queue {event.event_type} for booking {event.booking_id}: {e}")


class InMemoryDispatcher:
    """Collects events in a list; used by tests and dry runs"""

    def __init__(self):
        self.events: list[NotificationEvent] = []

    def emit(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[NotificationEvent]:
        return [e for e in self.events if e.event_type == event_type]


async def relay_outbox(
    db: Session,
    client: httpx.AsyncClient,
    webhook_url: str,
    now: datetime,
    batch_size: int = 100,
) -> dict:
    """
    POST pending outbox rows to the notification webhook, oldest first

    Args:
        db: Database session
        client: HTTP client used for delivery
        webhook_url: Endpoint of the surrounding product's notification service
        now: Dispatch timestamp recorded on delivered rows
        batch_size: Maximum rows handled in one call

    Returns:
        Dict with dispatched and failed counts
    """
    rows = (
        db.query(NotificationOutbox)
        .filter(NotificationOutbox.status == "pending")
        .order_by(NotificationOutbox.id.asc())
        .limit(batch_size)
        .all()
    )

    result = {"dispatched": 0, "failed": 0}
    for row in rows:
        row.attempts = (row.attempts or 0) + 1
        body = {
            "id": row.id,
            "event_type": row.event_type,
            "booking_id": row.booking_id,
            "payload": row.payload,
            "created_at": row.created_at.isoformat() if row.created_at else None,
        }
        try:
            response = await client.post(webhook_url, json=body, timeout=10.0)
            if 200 <= response.status_code < 300:
                row.status = "dispatched"
                row.dispatched_at = now
                row.last_error = None
                result["dispatched"] += 1
            else:
                row.last_error = f"HTTP {response.status_code}"
                result["failed"] += 1
                logger.warning(
                    f"⚠️ Notification {row.id} rejected by webhook: {response.status_code}"
                )
        except httpx.HTTPError as e:
            row.last_error = str(e)
            result["failed"] += 1
            logger.error(f"❌ Notification {row.id} delivery failed: {e}")
        db.commit()

    if rows:
        logger.info(
            f"📬 Outbox relay: {result['dispatched']} dispatched, {result['failed']} failed"
        )
    return result
