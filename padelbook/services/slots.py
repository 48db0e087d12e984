"""Slot generation for court planning.

Pure calculation module with no database or FastAPI dependencies.
A day is tiled from 00:00 with 90-minute windows, except windows starting
between 12:00 and 14:00 which last 60 minutes (lunch-hour turnover). The last
window is cut at 23:59:59.999 when it would cross midnight.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo

from padelbook.core.clock import FACILITY_TZ

SLOT_MINUTES = 90
LUNCH_SLOT_MINUTES = 60
LUNCH_START = time(12, 0)
LUNCH_END = time(14, 0)
END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class TimeSlot:
    start: datetime
    end: datetime
    duration_minutes: int

    @property
    def label(self) -> str:
        return self.start.strftime("%H:%M")

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open interval overlap, same test as the availability checker."""
        return self.start < end and self.end > start


def slot_duration_at(start: time) -> int:
    """Nominal window length for a window starting at `start` (local time)."""
    if LUNCH_START <= start < LUNCH_END:
        return LUNCH_SLOT_MINUTES
    return SLOT_MINUTES


def generate_day_slots(day: date, tz: tzinfo = FACILITY_TZ) -> list[TimeSlot]:
    """Return the ordered bookable windows for `day`, in facility local time.

    Window lengths are real elapsed minutes, so on a DST change day the grid
    after the switch starts on shifted wall-clock labels.
    """
    slots: list[TimeSlot] = []
    # Arithmetic and comparisons in UTC: aware datetimes sharing a tzinfo
    # compare and subtract on wall-clock values.
    current = datetime.combine(day, time(0, 0), tzinfo=tz).astimezone(UTC)
    day_end = datetime.combine(day, END_OF_DAY, tzinfo=tz).astimezone(UTC)

    while current < day_end:
        duration = slot_duration_at(current.astimezone(tz).time())
        end = current + timedelta(minutes=duration)

        if end > day_end:
            end = day_end
            duration = int((end - current).total_seconds() // 60)
            if duration > 0:
                slots.append(TimeSlot(current.astimezone(tz), end.astimezone(tz), duration))
            break

        slots.append(TimeSlot(current.astimezone(tz), end.astimezone(tz), duration))
        current = end

    return slots


def is_canonical_window(start: datetime, duration_minutes: int, tz: tzinfo = FACILITY_TZ) -> bool:
    """True if (start, duration) is exactly one of the generated windows of its day."""
    local_start = start.astimezone(tz)
    return any(
        slot.start == local_start and slot.duration_minutes == duration_minutes
        for slot in generate_day_slots(local_start.date(), tz)
    )


def slot_availability(
    slots: list[TimeSlot],
    now: datetime,
    booked_intervals: list[tuple[datetime, datetime]],
    blocked_intervals: list[tuple[datetime, datetime]],
) -> list[dict]:
    """Annotate windows for the planning grid.

    Returns a list of dicts with keys: start, end, label, duration_minutes,
    is_past, is_blocked, is_booked, is_available.
    """
    annotated: list[dict] = []
    for slot in slots:
        is_past = slot.start <= now
        is_blocked = any(slot.overlaps(b_start, b_end) for b_start, b_end in blocked_intervals)
        is_booked = any(slot.overlaps(b_start, b_end) for b_start, b_end in booked_intervals)
        annotated.append(
            {
                "start": slot.start,
                "end": slot.end,
                "label": slot.label,
                "duration_minutes": slot.duration_minutes,
                "is_past": is_past,
                "is_blocked": is_blocked,
                "is_booked": is_booked,
                "is_available": not (is_past or is_blocked or is_booked),
            }
        )
    return annotated
