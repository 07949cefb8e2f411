"""Timezone handling"""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from field_tools.config.settings import get_settings


def get_timezone():
    """Get the configured timezone"""
    settings = get_settings()
    return ZoneInfo(settings.timezone)


def now() -> datetime:
    """Current time in the configured timezone (naive datetime)"""
    return datetime.now(get_timezone()).replace(tzinfo=None)


def last_occurrence_of_hour(hour: int, reference: datetime | None = None) -> datetime:
    """
    Most recent moment the wall clock read ``hour:00`` (inclusive of now)

    Args:
        hour: Hour of day (0-23)
        reference: Reference time, defaults to now()

    Returns:
        Naive local datetime
    """
    reference = reference or now()
    candidate = reference.replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate > reference:
        candidate -= timedelta(days=1)
    return candidate


def next_occurrence_of_hour(hour: int, reference: datetime | None = None) -> datetime:
    """Next moment the wall clock reads ``hour:00`` (strictly after reference)"""
    return last_occurrence_of_hour(hour, reference) + timedelta(days=1)
