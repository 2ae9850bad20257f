"""Time utilities for consistent timestamp and calendar-date handling."""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Return the current calendar date in UTC.

    Rate tables and promo validity windows are keyed by UTC date.
    """
    return utc_now().date()


def as_date(value: date | datetime | str) -> date:
    """Normalise a date, datetime or ISO string to a calendar date.

    Timezone-aware datetimes are converted to UTC first so that the
    calendar day matches the one used for rate lookups.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value) if "T" in value else date.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value
