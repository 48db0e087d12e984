"""Wall-clock abstraction.

Deadline and quota rules depend on "now". Services receive a Clock instead of
calling datetime.now() so tests can pin time.
"""

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from padelbook.core.config import settings
from padelbook.core.errors import InvalidWindow

FACILITY_TZ = ZoneInfo(settings.facility_timezone)


class Clock:
    """Returns the current instant as an aware UTC datetime."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock(Clock):
    """A clock frozen at a given instant. Can be moved forward explicitly."""

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            raise ValueError("FixedClock requires an aware datetime")
        self._instant = instant.astimezone(UTC)

    def now(self) -> datetime:
        return self._instant

    def advance(self, **kwargs) -> None:
        self._instant += timedelta(**kwargs)


system_clock = Clock()


def get_clock() -> Clock:
    """FastAPI dependency. Overridden in tests."""
    return system_clock


def parse_instant(value: str) -> datetime:
    """Parse an ISO 8601 instant from a query string. Without an offset it is read as facility local time."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise InvalidWindow(f"Invalid instant: {value!r}.") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=FACILITY_TZ)
    return parsed
