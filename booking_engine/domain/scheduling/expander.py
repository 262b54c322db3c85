"""
Recurring Schedule Expander

Turns a schedule template into concrete booking dates:
- weekly / bi-weekly: every 7 / 14 days from the first date on or after the
  start date that falls on the schedule's day of week
- monthly: start date + n months (day clamped to the end of short months)

Only dates strictly after today are produced, up to the end date or the
horizon (whichever is sooner), at most `limit` of them.
"""

from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from ...shared.validators import validate_day_of_week, validate_frequency

STEP_DAYS = {"weekly": 7, "bi-weekly": 14}


def day_of_week(value: date) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday"""
    return (value.weekday() + 1) % 7


def first_matching_day(start: date, target_day: int) -> date:
    """First date on or after start that falls on target_day (0 = Sunday)"""
    return start + timedelta(days=(target_day - day_of_week(start)) % 7)


def horizon_end(today: date, months: int) -> date:
    return today + relativedelta(months=months)


def occurrence_dates(
    frequency: str,
    target_day: int,
    start_date: date,
    end_date: Optional[date],
    today: date,
    horizon: date,
    limit: int,
) -> list[date]:
    """Upcoming occurrence dates of a schedule, oldest first"""
    validate_frequency(frequency)
    validate_day_of_week(target_day)

    last = min(end_date, horizon) if end_date else horizon
    dates: list[date] = []
    if limit <= 0 or start_date > last:
        return dates

    if frequency == "monthly":
        n = 0
        while len(dates) < limit:
            current = start_date + relativedelta(months=n)
            if current > last:
                break
            if current > today:
                dates.append(current)
            n += 1
        return dates

    step = timedelta(days=STEP_DAYS[frequency])
    current = first_matching_day(start_date, target_day)
    while current <= last and len(dates) < limit:
        if current > today:
            dates.append(current)
        current += step
    return dates
