from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from threading import Lock
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ValidationError

Clock = Callable[[], datetime]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# PUBLIC_INTERFACE
def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
class MonotonicClock:
    """
    Clock whose readings strictly increase across calls.

    When the underlying source returns a value that is not after the previous
    reading (coarse system clocks, rapid successive calls), the previous
    reading plus one microsecond is returned instead.
    """

    def __init__(self, source: Optional[Clock] = None) -> None:
        self._source = source or utcnow
        self._lock = Lock()
        self._last: Optional[datetime] = None

    def __call__(self) -> datetime:
        with self._lock:
            now = self._source()
            if self._last is not None and now <= self._last:
                now = self._last + timedelta(microseconds=1)
            self._last = now
            return now


# PUBLIC_INTERFACE
def resolve_timezone(name: Optional[str]) -> tzinfo:
    """
    Return the tzinfo for an IANA zone name. 'UTC' (or empty) maps to timezone.utc.

    Raises:
        ValidationError if the zone is unknown.
    """
    if not name or name.strip().upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise ValidationError(f"Unknown timezone: {name}") from e


def _to_utc(value: datetime, raw: str) -> datetime:
    try:
        return value.astimezone(timezone.utc)
    except OverflowError as e:
        raise ValidationError(f"Date out of range: {raw}") from e


# PUBLIC_INTERFACE
def parse_bound(value: Optional[str], tz: tzinfo, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a history range bound into an aware UTC datetime.

    - None/blank returns None.
    - 'YYYY-MM-DD' is the first instant of that day in tz, or the last instant
      when end_of_day is True.
    - ISO8601 datetimes are accepted; naive ones are read in tz. A trailing 'Z' is allowed.

    Raises:
        ValidationError on malformed input or when the instant has no UTC representation.
    """
    if value is None or not value.strip():
        return None
    s = value.strip()
    if len(s) == 10:
        try:
            d = date.fromisoformat(s)
        except ValueError as e:
            raise ValidationError(f"Invalid date: {value}. Use YYYY-MM-DD or an ISO8601 datetime") from e
        local = datetime.combine(d, time.max if end_of_day else time.min, tzinfo=tz)
        return _to_utc(local, value)

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value}. Use YYYY-MM-DD or an ISO8601 datetime") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return _to_utc(parsed, value)
