"""Court routes: list, day planning grid and availability checks."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from padelbook.core.clock import Clock, get_clock, parse_instant
from padelbook.core.config import settings
from padelbook.core.database import get_db
from padelbook.core.dependencies import get_current_member
from padelbook.core.errors import NotFound
from padelbook.models.member import Court, Member
from padelbook.models.reservation import Reservation, ReservationStatus
from padelbook.schemas import AvailabilityOut, CourtOut, DaySlotsOut, SlotOut
from padelbook.services.availability import active_time_blocks, block_interval, is_available
from padelbook.services.slots import generate_day_slots, slot_availability

router = APIRouter(prefix="/courts", tags=["courts"])


async def _get_court(db: AsyncSession, court_id: int) -> Court:
    court = await db.get(Court, court_id)
    if court is None:
        raise NotFound(f"Court {court_id} not found.")
    return court


@router.get("", response_model=list[CourtOut])
async def list_courts(
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Court).order_by(Court.number))
    return result.scalars().all()


@router.get("/{court_id}/slots", response_model=DaySlotsOut)
async def get_day_slots(
    court_id: int,
    query_date: date = Query(..., alias="date", description="Date in YYYY-MM-DD format"),
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """The day's windows with their state. A court under maintenance shows every window blocked."""
    court = await _get_court(db, court_id)
    slots = generate_day_slots(query_date)
    day_start, day_end = slots[0].start, slots[-1].end

    booked_result = await db.execute(
        select(Reservation.starts_at, Reservation.ends_at).where(
            Reservation.court_id == court.id,
            Reservation.status == ReservationStatus.CONFIRMED,
            Reservation.starts_at < day_end,
            Reservation.ends_at > day_start,
        )
    )
    booked = [(row.starts_at, row.ends_at) for row in booked_result]

    if court.is_active:
        blocked = [block_interval(b) for b in await active_time_blocks(db, court.id, [query_date])]
    else:
        blocked = [(day_start, day_end)]

    annotated = slot_availability(slots, clock.now(), booked, blocked)
    return DaySlotsOut(
        court_id=court.id,
        court_name=court.name,
        date=query_date,
        slots=[SlotOut(**slot) for slot in annotated],
    )


@router.get("/{court_id}/availability", response_model=AvailabilityOut)
async def check_availability(
    court_id: int,
    start: str = Query(..., description="ISO 8601 start instant with offset"),
    duration_minutes: int = Query(90, gt=0, le=settings.max_reservation_minutes),
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    court = await _get_court(db, court_id)
    starts_at = parse_instant(start)
    free = await is_available(db, court.id, starts_at, duration_minutes)
    return AvailabilityOut(court_id=court.id, start=starts_at, duration_minutes=duration_minutes, is_available=free)
