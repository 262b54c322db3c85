"""FastAPI dependencies shared by the domain routers"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .clock import Clock
from .database import SessionLocal, get_db
from .domain.pricing.settings import SettingsStore
from .services.notification_service import NotificationDispatcher, OutboxDispatcher


def get_clock(request: Request) -> Clock:
    clock = getattr(request.app.state, "clock", None)
    if clock is None:
        clock = Clock()
        request.app.state.clock = clock
    return clock


def get_settings_store(request: Request) -> SettingsStore:
    """Process-wide settings store created at start-up"""
    store = getattr(request.app.state, "settings_store", None)
    if store is None:
        store = SettingsStore(SessionLocal)
        store.load()
        request.app.state.settings_store = store
    return store


def get_dispatcher(db: Session = Depends(get_db)) -> NotificationDispatcher:
    return OutboxDispatcher(db)
