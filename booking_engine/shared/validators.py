"""Shared validation utilities"""

import re
from datetime import time
from typing import Optional

FREQUENCIES = ("weekly", "bi-weekly", "monthly")


def normalize_place(value: Optional[str]) -> Optional[str]:
    """
    Normalize a town or suburb name for comparisons.

    Args:
        value: Place name as typed by a user or stored in the location map

    Returns:
        Case-folded name with surrounding and repeated whitespace removed
    """
    if value is None:
        return None
    return re.sub(r"\s+", " ", value).strip().casefold()


def validate_booking_time(value: str) -> str:
    """
    Validate a wall-clock booking time.

    Args:
        value: Time string in HH:MM (24h) format

    Returns:
        Zero-padded HH:MM string

    Raises:
        ValueError: If the time is not a valid HH:MM value
    """
    if not value:
        raise ValueError("Booking time is required")

    match = re.match(r"^(\d{1,2}):(\d{2})$", value.strip())
    if not match:
        raise ValueError("Booking time must be in HH:MM format")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError("Booking time must be a valid 24-hour time")

    return f"{hours:02d}:{minutes:02d}"


def parse_booking_time(value: str) -> time:
    """Parse a validated HH:MM string into a time"""
    hours, minutes = validate_booking_time(value).split(":")
    return time(int(hours), int(minutes))


def validate_frequency(value: str) -> str:
    """Validate a recurring schedule frequency"""
    if value not in FREQUENCIES:
        raise ValueError(f"Frequency must be one of: {', '.join(FREQUENCIES)}")
    return value


def validate_day_of_week(value: int) -> int:
    """Validate a day of week where 0 is Sunday and 6 is Saturday"""
    if value < 0 or value > 6:
        raise ValueError("Day of week must be between 0 (Sunday) and 6 (Saturday)")
    return value
