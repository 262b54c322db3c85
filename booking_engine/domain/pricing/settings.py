"""
Platform pricing settings store

Owns the "current settings" lifecycle: loading from the platform_settings
table, validated updates, and notifying subscribers. Pricing never reads the
store directly; callers take a snapshot() and pass it in, so an update never
changes a calculation already under way or a booking already priced.
"""

import logging
from threading import Lock
from typing import Callable

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session, sessionmaker

from ...errors import ValidationError
from ...models import PlatformSetting
from .calculator import CommissionRates, PricingSettings

logger = logging.getLogger(__name__)

# platform_settings key -> (section, field) in PricingSettings
SETTING_KEYS = {
    "weekend_client_markup_percentage": (None, "weekend_markup_percentage"),
    "weekend_provider_bonus_amount": (None, "weekend_bonus_amount"),
    "commission_standard_rate": ("commission_rates", "standard_rate"),
    "commission_emergency_rate": ("commission_rates", "emergency_rate"),
    "commission_subscription_fee": ("commission_rates", "subscription_fee"),
    "income_tax_rate": (None, "income_tax_rate"),
    "withholding_tax_rate": (None, "withholding_tax_rate"),
}

SettingsListener = Callable[[PricingSettings], None]


def settings_from_values(values: dict) -> PricingSettings:
    """Build a snapshot from platform_settings key/value pairs; unknown keys are ignored"""
    top = {}
    rates = {}
    for key, value in values.items():
        if key not in SETTING_KEYS:
            continue
        section, field = SETTING_KEYS[key]
        if section == "commission_rates":
            rates[field] = value
        else:
            top[field] = value
    return PricingSettings(commission_rates=CommissionRates(**rates), **top)


def settings_to_values(settings: PricingSettings) -> dict:
    values = {}
    for key, (section, field) in SETTING_KEYS.items():
        source = getattr(settings, section) if section else settings
        values[key] = getattr(source, field)
    return values


class SettingsStore:
    """Current pricing settings with update/notify lifecycle"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self._lock = Lock()
        self._current = PricingSettings()
        self._listeners: list[SettingsListener] = []

    def load(self) -> PricingSettings:
        """(Re)read the settings table, falling back to configured defaults"""
        db: Session = self.session_factory()
        try:
            rows = db.query(PlatformSetting).all()
            values = {row.key: row.value for row in rows}
        finally:
            db.close()

        try:
            snapshot = settings_from_values(values)
        except PydanticValidationError as e:
            logger.error(f"❌ Stored pricing settings are invalid, keeping defaults: {e}")
            snapshot = PricingSettings()

        with self._lock:
            self._current = snapshot
        logger.info(f"⚙️ Pricing settings loaded: {settings_to_values(snapshot)}")
        return snapshot

    def snapshot(self) -> PricingSettings:
        with self._lock:
            return self._current

    def update(self, **changes) -> PricingSettings:
        """Validate, persist and publish new values keyed by platform_settings key"""
        unknown = set(changes) - set(SETTING_KEYS)
        if unknown:
            raise ValidationError(f"Unknown pricing settings: {', '.join(sorted(unknown))}")

        with self._lock:
            merged = {**settings_to_values(self._current), **changes}
            try:
                snapshot = settings_from_values(merged)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid pricing settings: {e}") from e

            db: Session = self.session_factory()
            try:
                for key, value in changes.items():
                    row = db.query(PlatformSetting).filter(PlatformSetting.key == key).first()
                    if row:
                        row.value = value
                    else:
                        db.add(PlatformSetting(key=key, value=value))
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

            self._current = snapshot
            listeners = list(self._listeners)

        logger.info(f"⚙️ Pricing settings updated: {changes}")
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"❌ Pricing settings listener failed: {e}")
        return snapshot

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        """Register for update notifications; returns an unsubscribe callable"""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
