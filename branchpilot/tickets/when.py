"""Due-time resolution: turn a human-entered 'when' into a UTC instant.

Accepted shapes (optionally followed by whitespace and an IANA zone name):

- full ISO timestamp, with or without offset: 2025-08-12T09:30:00, 2025-08-12T09:30:00-05:00
- date only (midnight in the zone): 2025-08-12
- date plus hour and minute: 2025-08-12T09:30

An explicit offset always wins over any zone name. Without one, the zone is
the explicit name, then the fallback zone, then the host's local zone.
"""

import re
from datetime import UTC, datetime, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from branchpilot.errors import InvalidTimezoneError, WhenParseError

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATE_HOUR_MINUTE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}$")


@lru_cache(maxsize=256)
def _load_zone(name: str) -> ZoneInfo | None:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None


def is_valid_timezone(name: str) -> bool:
    """True if name is a known IANA zone (results are cached)."""
    return bool(name) and _load_zone(name) is not None


def _fromisoformat(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_naive(expr: str) -> datetime | None:
    """Try full timestamp, then date only, then date + HH:MM."""
    dt = _fromisoformat(expr)
    if dt is not None:
        return dt
    if _DATE_ONLY_RE.match(expr):
        try:
            return datetime.strptime(expr, "%Y-%m-%d")
        except ValueError:
            return None
    if _DATE_HOUR_MINUTE_RE.match(expr):
        try:
            return datetime.strptime(expr, "%Y-%m-%dT%H:%M")
        except ValueError:
            return None
    return None


def _split_zone(when: str) -> tuple[str, str | None]:
    parts = when.split()
    if len(parts) == 2 and _fromisoformat(when) is None:
        return parts[0], parts[1]
    if len(parts) > 2:
        raise WhenParseError(when)
    return when, None


def _localize(dt: datetime, zone: tzinfo | None) -> datetime:
    if zone is None:
        # Naive datetime interpreted in the host's local zone
        return dt.astimezone()
    return dt.replace(tzinfo=zone)


def to_utc_iso(dt: datetime) -> str:
    """Format an aware datetime as UTC ISO-8601 with milliseconds and Z."""
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_when_to_utc_iso(when: str, fallback_zone: str | None = None) -> str:
    """Resolve a 'when' expression to a UTC ISO-8601 instant.

    Args:
        when: Raw expression, e.g. "2025-08-12T09:30 Europe/London".
        fallback_zone: Zone used when the expression names none (ticket
            timezone or configured default). None means host local zone.

    Returns:
        Instant like "2025-08-12T08:30:00.000Z".

    Raises:
        InvalidTimezoneError: An explicit (or fallback) zone is not a valid IANA zone.
        WhenParseError: The expression matches none of the accepted shapes.
    """
    raw = when
    when = (when or "").strip()
    if not when:
        raise WhenParseError(raw)

    expr, zone_name = _split_zone(when)

    dt = _parse_naive(expr)
    if dt is not None and dt.tzinfo is not None:
        return to_utc_iso(dt)

    zone: tzinfo | None = None
    name = zone_name or fallback_zone
    if name:
        zone = _load_zone(name)
        if zone is None:
            raise InvalidTimezoneError(name, raw)

    if dt is None:
        raise WhenParseError(raw)
    return to_utc_iso(_localize(dt, zone))
