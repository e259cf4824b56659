"""
Time range parsing and normalization.

All instants handled by hostmon are normalized to one fixed reference offset
before they are compared or persisted. This module parses RFC 3339 bounds,
applies the reference offset and computes the default current-day range.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from hostmon.errors import InvalidArgumentError

_OFFSET_RE = re.compile(r"^(?P<sign>[+-])(?P<hours>\d{2}):(?P<minutes>\d{2})$")

# date-time production of RFC 3339 section 5.6
_RFC3339_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?P<fraction>\.\d+)?(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)

# Inclusive end of day: midnight + 24h minus the smallest datetime unit
END_OF_DAY = timedelta(days=1) - timedelta(microseconds=1)


@dataclass(frozen=True)
class TimeRange:
    """An inclusive time range; a None bound is unconstrained."""

    start: datetime | None
    end: datetime | None

    def contains(self, instant: datetime) -> bool:
        """Check whether an instant falls inside the range."""
        if self.start is not None and instant < self.start:
            return False
        return not (self.end is not None and instant > self.end)


def parse_utc_offset(text: str) -> timezone:
    """
    Parse a '+HH:MM' / '-HH:MM' offset into a fixed timezone.

    Raises:
        ValueError: If the text is not a valid offset.
    """
    match = _OFFSET_RE.match(text.strip())
    if match is None:
        raise ValueError(f"Invalid UTC offset: {text!r}. Expected '+HH:MM' or '-HH:MM'")

    hours = int(match["hours"])
    minutes = int(match["minutes"])
    if hours > 23 or minutes > 59:
        raise ValueError(f"UTC offset out of range: {text!r}")

    delta = timedelta(hours=hours, minutes=minutes)
    if match["sign"] == "-":
        delta = -delta
    return timezone(delta)


def normalize(instant: datetime, reference_tz: timezone) -> datetime:
    """
    Convert an aware datetime to the reference offset.

    Raises:
        ValueError: If the datetime is naive.
        OverflowError: If the instant falls outside the datetime range once
            shifted to the reference offset.
    """
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError("timestamp has no UTC offset")
    return instant.astimezone(reference_tz)


def parse_rfc3339(value: str) -> datetime:
    """
    Parse an RFC 3339 date-time string.

    Only the full 'YYYY-MM-DDTHH:MM:SS[.frac](Z|+HH:MM|-HH:MM)' form is
    accepted. Fractional seconds beyond microseconds are truncated.

    Raises:
        ValueError: With a diagnostic when the text is not RFC 3339.
    """
    text = value.strip()
    if not text:
        raise ValueError("value is empty")

    match = _RFC3339_RE.match(text)
    if match is None:
        raise ValueError(
            f"{value!r} is not an RFC 3339 date-time "
            "(expected YYYY-MM-DDTHH:MM:SS[.frac] followed by Z or +HH:MM)"
        )

    fraction = (match["fraction"] or "")[:7]
    offset = match["offset"]
    if offset in ("Z", "z"):
        offset = "+00:00"
    return datetime.fromisoformat(f"{match['date']}T{match['time']}{fraction}{offset}")


def current_day(reference_tz: timezone, now: datetime | None = None) -> TimeRange:
    """
    Return the current calendar day in the reference offset.

    The range starts at the most recent midnight and ends one microsecond
    before the next one.
    """
    if now is None:
        now = datetime.now(reference_tz)
    local_now = normalize(now, reference_tz)
    start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return TimeRange(start=start, end=start + END_OF_DAY)


def _parse_bound(field_name: str, value: str | None, reference_tz: timezone) -> datetime:
    if value is None:
        raise InvalidArgumentError(
            f"{field_name} is required when the other bound is given",
            details={"field": field_name},
        )
    try:
        return normalize(parse_rfc3339(value), reference_tz)
    except (ValueError, OverflowError) as e:
        raise InvalidArgumentError(
            f"Invalid {field_name} format, expected RFC 3339: {e}",
            details={"field": field_name, "value": value, "error": str(e)},
        ) from e


def parse_time_range(
    start_time: str | None,
    end_time: str | None,
    reference_tz: timezone,
    *,
    now: datetime | None = None,
) -> TimeRange:
    """
    Turn raw query parameters into a validated, normalized TimeRange.

    When both bounds are absent (None or empty) the current day is used.
    Otherwise both must parse as RFC 3339.

    Args:
        start_time: Raw start bound text.
        end_time: Raw end bound text.
        reference_tz: Offset every bound is normalized to.
        now: Override of the current instant for the default range.

    Returns:
        The normalized inclusive TimeRange.

    Raises:
        InvalidArgumentError: If a bound is malformed or start is after end.
    """
    start_time = start_time or None
    end_time = end_time or None

    if start_time is None and end_time is None:
        return current_day(reference_tz, now)

    start = _parse_bound("start_time", start_time, reference_tz)
    end = _parse_bound("end_time", end_time, reference_tz)

    if start > end:
        raise InvalidArgumentError(
            "start_time must not be after end_time",
            details={"start_time": start.isoformat(), "end_time": end.isoformat()},
        )

    return TimeRange(start=start, end=end)
