"""Injectable time source.

Timestamps are stored as naive UTC datetimes. Calendar questions ("is this a
weekend", "has this package expired") are answered in the configured local
timezone.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from .config import LOCAL_TIMEZONE


class Clock:
    """System clock"""

    def __init__(self, tz_name: str = LOCAL_TIMEZONE):
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        """Current time as naive UTC"""
        return datetime.now(timezone.utc).replace(tzinfo=None)

    def today(self) -> date:
        """Current calendar date in the local timezone"""
        return self.now().replace(tzinfo=timezone.utc).astimezone(self.tz).date()

    def local_date(self, value) -> date:
        """Calendar date of a date or datetime, read in the local timezone.

        Naive datetimes are taken to be UTC.
        """
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value.astimezone(self.tz).date()
        return value


class FixedClock(Clock):
    """Clock frozen at a given instant; used by tests and replays"""

    def __init__(self, current: datetime, tz_name: str = LOCAL_TIMEZONE):
        super().__init__(tz_name)
        if current.tzinfo is not None:
            current = current.astimezone(timezone.utc).replace(tzinfo=None)
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current
