"""Date and timestamp helpers shared across the tracker."""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

MILLISECONDS_THRESHOLD = 1e12
FUTURE_TOLERANCE = timedelta(hours=24)


def utc_now() -> datetime:
    """Current UTC timestamp."""

    return datetime.now(tz=UTC)


def from_iso(value: str) -> datetime:
    """Parse ISO datetime and ensure timezone-aware UTC fallback."""

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def parse_iso_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` (or the date part of an ISO datetime)."""

    if len(value) == 10:
        return date.fromisoformat(value)
    return from_iso(value).date()


def parse_api_timestamp(value: object, *, now: datetime | None = None) -> datetime:
    """Normalize an epoch timestamp in seconds or milliseconds to aware UTC.

    Values below ``1e12`` are treated as seconds. Strings holding integers are accepted.
    Raises ``ValueError`` for anything that is not a plausible submission time.
    """

    if isinstance(value, bool) or value is None:
        raise ValueError(f"Invalid timestamp {value!r}")
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError as error:
            raise ValueError(f"Invalid timestamp {value!r}: not a number") from error
    elif isinstance(value, int | float):
        number = float(value)
    else:
        raise ValueError(f"Invalid timestamp type {type(value).__name__}")

    if number != number or number < 0:  # NaN or negative
        raise ValueError(f"Invalid timestamp {value!r}")

    seconds = number if number < MILLISECONDS_THRESHOLD else number / 1000.0
    try:
        parsed = datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError) as error:
        raise ValueError(f"Timestamp {value!r} is out of range") from error
    reference = now or utc_now()
    if parsed > reference + FUTURE_TOLERANCE:
        raise ValueError(f"Timestamp {value!r} is in the future ({parsed.isoformat()})")
    return parsed


def business_date(now: datetime, timezone: ZoneInfo) -> date:
    """Calendar date of ``now`` in the user's timezone."""

    return now.astimezone(timezone).date()


def start_of_day(day: date, timezone: ZoneInfo) -> datetime:
    """Midnight of ``day`` in ``timezone`` as an aware UTC datetime."""

    return datetime.combine(day, time.min, tzinfo=timezone).astimezone(UTC)
