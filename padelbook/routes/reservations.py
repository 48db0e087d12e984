"""Reservation routes: planning list, create, cancel/withdraw and composition edits.

Every write goes through run_in_transaction so the rule checks and the write
commit together or not at all.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from padelbook.core.clock import Clock, get_clock, parse_instant
from padelbook.core.database import get_db, run_in_transaction
from padelbook.core.dependencies import get_current_member
from padelbook.models.member import Member
from padelbook.models.reservation import Reservation, ReservationParticipant, ReservationStatus
from padelbook.schemas import (
    CancellationOut,
    CompositionUpdate,
    ReservationCreate,
    ReservationOut,
    TicketReplacement,
)
from padelbook.services.admission import create_reservation
from padelbook.services.mutation import cancel_participation, update_composition

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.get("", response_model=list[ReservationOut])
async def list_reservations(
    start: str | None = Query(None, description="ISO 8601 instant, defaults to now"),
    end: str | None = Query(None, description="ISO 8601 instant"),
    mine: bool = Query(False, description="Only reservations I organize or take part in"),
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Confirmed reservations for the planning grid, nearest first."""
    query = select(Reservation).where(
        Reservation.status == ReservationStatus.CONFIRMED,
        Reservation.ends_at > (parse_instant(start) if start else clock.now()),
    )
    if end is not None:
        query = query.where(Reservation.starts_at < parse_instant(end))
    if mine:
        query = query.where(
            or_(
                Reservation.organizer_id == member.id,
                Reservation.id.in_(
                    select(ReservationParticipant.reservation_id).where(ReservationParticipant.member_id == member.id)
                ),
            )
        )

    result = await db.execute(query.order_by(Reservation.starts_at, Reservation.court_id).limit(500))
    return result.scalars().all()


@router.post("", response_model=ReservationOut, status_code=status.HTTP_201_CREATED)
async def create(
    body: ReservationCreate,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    member_id = member.id
    return await run_in_transaction(
        db,
        lambda: create_reservation(
            db,
            organizer_id=member_id,
            court_id=body.court_id,
            starts_at=body.starts_at,
            duration_minutes=body.duration_minutes,
            ticket_count=body.ticket_count,
            member_ids=body.member_ids,
            mode=body.mode,
            clock=clock,
        ),
    )


@router.post("/{reservation_id}/cancel", response_model=CancellationOut)
async def cancel(
    reservation_id: int,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Organizer: cancel the whole reservation. Participant: withdraw (which cancels it)."""
    member_id = member.id
    result = await run_in_transaction(
        db,
        lambda: cancel_participation(db, reservation_id=reservation_id, acting_member_id=member_id, clock=clock),
    )
    return CancellationOut(
        reservation=ReservationOut.model_validate(result.reservation),
        outcome=result.outcome,
        tickets_restored=result.tickets_restored,
    )


@router.patch("/{reservation_id}", response_model=ReservationOut)
async def update(
    reservation_id: int,
    body: CompositionUpdate,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    member_id = member.id
    return await run_in_transaction(
        db,
        lambda: update_composition(
            db,
            reservation_id=reservation_id,
            acting_member_id=member_id,
            ticket_count=body.ticket_count,
            member_ids=body.member_ids,
            clock=clock,
        ),
    )


@router.post("/{reservation_id}/replace-tickets", response_model=ReservationOut)
async def replace_tickets(
    reservation_id: int,
    body: TicketReplacement,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Swap every ticket for a real participant. All tickets go back to the organizer."""
    member_id = member.id
    return await run_in_transaction(
        db,
        lambda: update_composition(
            db,
            reservation_id=reservation_id,
            acting_member_id=member_id,
            ticket_count=0,
            member_ids=body.member_ids,
            clock=clock,
        ),
    )

