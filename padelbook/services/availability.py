"""Court availability.

A court/time window is free when the court is active, no active time-block
covers it and no other confirmed reservation on the court overlaps it.
Overlap is half-open: [start, end) against [other_start, other_end).
The checker answers yes/no; callers turn a "no" into a Conflict.
"""

from datetime import UTC, date, datetime, time, timedelta, tzinfo

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from padelbook.core.clock import FACILITY_TZ
from padelbook.models.member import Court
from padelbook.models.reservation import Reservation, ReservationStatus, TimeBlock


def window_end(starts_at: datetime, duration_minutes: int) -> datetime:
    """End instant in UTC. Elapsed time, so a window across a DST change keeps its length."""
    return starts_at.astimezone(UTC) + timedelta(minutes=duration_minutes)


def block_interval(block: TimeBlock, tz: tzinfo = FACILITY_TZ) -> tuple[datetime, datetime]:
    """The block's [start, end) as aware datetimes. An end at or before the start means midnight."""
    start = datetime.combine(block.block_date, block.start_time, tzinfo=tz)
    end = datetime.combine(block.block_date, block.end_time, tzinfo=tz)
    if block.end_time <= block.start_time:
        end = datetime.combine(block.block_date + timedelta(days=1), time(0, 0), tzinfo=tz)
    return start, end


def _local_dates(start: datetime, end: datetime, tz: tzinfo) -> list[date]:
    first = start.astimezone(tz).date()
    last = (end - timedelta(microseconds=1)).astimezone(tz).date()
    days = [first]
    while days[-1] < last:
        days.append(days[-1] + timedelta(days=1))
    return days


async def active_time_blocks(db: AsyncSession, court_id: int | None, days: list[date]) -> list[TimeBlock]:
    """Active blocks on the given dates that apply to the court (court-scoped or global)."""
    scope = TimeBlock.court_id.is_(None)
    if court_id is not None:
        scope = or_(TimeBlock.court_id == court_id, TimeBlock.court_id.is_(None))

    result = await db.execute(
        select(TimeBlock)
        .where(TimeBlock.is_active.is_(True), TimeBlock.block_date.in_(days), scope)
        .order_by(TimeBlock.block_date, TimeBlock.start_time)
    )
    return list(result.scalars().all())


async def find_blocking_time_block(
    db: AsyncSession, court_id: int, start: datetime, end: datetime, tz: tzinfo = FACILITY_TZ
) -> TimeBlock | None:
    for block in await active_time_blocks(db, court_id, _local_dates(start, end, tz)):
        block_start, block_end = block_interval(block, tz)
        if block_start < end and block_end > start:
            return block
    return None


async def find_overlapping_reservation(
    db: AsyncSession,
    court_id: int,
    start: datetime,
    end: datetime,
    excluding_reservation_id: int | None = None,
) -> Reservation | None:
    query = select(Reservation).where(
        Reservation.court_id == court_id,
        Reservation.status == ReservationStatus.CONFIRMED,
        Reservation.starts_at < end,
        Reservation.ends_at > start,
    )
    if excluding_reservation_id is not None:
        query = query.where(Reservation.id != excluding_reservation_id)

    result = await db.execute(query.order_by(Reservation.starts_at).limit(1))
    return result.scalars().first()


async def is_available(
    db: AsyncSession,
    court_id: int,
    starts_at: datetime,
    duration_minutes: int,
    excluding_reservation_id: int | None = None,
) -> bool:
    """Check, in order: court active, no time-block, no overlapping confirmed reservation."""
    court = await db.get(Court, court_id)
    if court is None or not court.is_active:
        return False

    end = window_end(starts_at, duration_minutes)

    if await find_blocking_time_block(db, court_id, starts_at, end) is not None:
        return False

    overlapping = await find_overlapping_reservation(db, court_id, starts_at, end, excluding_reservation_id)
    return overlapping is None
