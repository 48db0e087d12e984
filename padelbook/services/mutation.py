"""Changes to existing reservations: cancellation, withdrawal and composition edits.

A confirmed reservation always fills its 4 slots. Anything that would leave it
short (a participant withdrawing) cancels the whole reservation in one step:
status, participant links and the organizer's tickets move together.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from padelbook.core.clock import Clock
from padelbook.core.config import settings
from padelbook.core.errors import (
    DeadlinePassed,
    Forbidden,
    InsufficientTickets,
    InvalidComposition,
    InvalidWindow,
    NotFound,
)
from padelbook.models.member import Member
from padelbook.models.reservation import Reservation, ReservationParticipant, ReservationStatus
from padelbook.services import quota, tickets
from padelbook.services.admission import check_composition, lock_members

logger = logging.getLogger(__name__)


class CancellationOutcome(enum.StrEnum):
    CANCELLED = "cancelled"
    WITHDRAWN = "withdrawn"
    ALREADY_CANCELLED = "already_cancelled"


@dataclass
class CancellationResult:
    reservation: Reservation
    outcome: CancellationOutcome
    tickets_restored: int = 0


async def lock_reservation(db: AsyncSession, reservation_id: int) -> Reservation:
    result = await db.execute(
        select(Reservation)
        .where(Reservation.id == reservation_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    reservation = result.scalar_one_or_none()
    if reservation is None:
        raise NotFound(f"Reservation {reservation_id} not found.")
    return reservation


async def cancel_reservation(
    db: AsyncSession, reservation: Reservation, *, clock: Clock, reason: str
) -> CancellationResult:
    """Cancel the whole reservation: status, links and ticket restore in one go.

    The caller holds the reservation lock. `tickets_consumed` is kept as
    history on the cancelled row.
    """
    reservation.status = ReservationStatus.CANCELLED
    reservation.cancelled_at = clock.now()
    reservation.cancellation_reason = reason
    reservation.participants.clear()
    await db.flush()

    restored = reservation.tickets_consumed
    if restored:
        await tickets.restore_for_cancellation(db, reservation.organizer_id, reservation.id, restored)

    logger.info("Reservation %s cancelled (%s), %s ticket(s) restored", reservation.id, reason, restored)
    return CancellationResult(reservation, CancellationOutcome.CANCELLED, restored)


async def withdraw_participant(
    db: AsyncSession, reservation: Reservation, member_id: int, *, clock: Clock, reason: str
) -> CancellationResult:
    """Remove one non-organizer participant, cancelling the reservation if that leaves a slot empty."""
    remaining_slots = len(reservation.participants) - 1 + reservation.tickets_consumed
    if remaining_slots < settings.slots_per_reservation:
        logger.info("Member %s withdrew from reservation %s, cancelling it", member_id, reservation.id)
        return await cancel_reservation(db, reservation, clock=clock, reason=reason)

    reservation.participants = [p for p in reservation.participants if p.member_id != member_id]
    await db.flush()
    logger.info("Member %s withdrew from reservation %s", member_id, reservation.id)
    return CancellationResult(reservation, CancellationOutcome.WITHDRAWN)


async def cancel_participation(
    db: AsyncSession, *, reservation_id: int, acting_member_id: int, clock: Clock
) -> CancellationResult:
    """Organizer cancels the reservation, or a participant withdraws from it.

    Allowed any time before the reservation starts; the modification deadline
    does not apply here.
    """
    reservation = await lock_reservation(db, reservation_id)
    is_organizer = reservation.organizer_id == acting_member_id

    if not reservation.is_confirmed:
        if is_organizer:
            return CancellationResult(reservation, CancellationOutcome.ALREADY_CANCELLED)
        raise Forbidden("You are not part of this reservation.")

    if not is_organizer and acting_member_id not in reservation.member_ids:
        raise Forbidden("You are not part of this reservation.")

    if reservation.starts_at <= clock.now():
        raise InvalidWindow("This reservation has already started and can no longer be cancelled.")

    await lock_members(db, [reservation.organizer_id, *reservation.member_ids])

    if is_organizer:
        return await cancel_reservation(db, reservation, clock=clock, reason="cancelled_by_organizer")
    return await withdraw_participant(
        db, reservation, acting_member_id, clock=clock, reason="participant_withdrew"
    )


async def admin_cancel_reservation(
    db: AsyncSession, *, reservation_id: int, acting_member_id: int, clock: Clock, reason: str | None = None
) -> CancellationResult:
    """Administrative cancellation: no start-time restriction, tickets restored."""
    acting_member = await db.get(Member, acting_member_id)
    if acting_member is None or not acting_member.is_admin:
        raise Forbidden("Only administrators can cancel other members' reservations.")

    reservation = await lock_reservation(db, reservation_id)
    if not reservation.is_confirmed:
        return CancellationResult(reservation, CancellationOutcome.ALREADY_CANCELLED)

    await lock_members(db, [reservation.organizer_id, *reservation.member_ids])
    logger.info("Admin %s cancels reservation %s", acting_member_id, reservation.id)
    return await cancel_reservation(db, reservation, clock=clock, reason=reason or "cancelled_by_admin")


async def update_composition(
    db: AsyncSession,
    *,
    reservation_id: int,
    acting_member_id: int,
    ticket_count: int,
    member_ids: list[int],
    clock: Clock,
) -> Reservation:
    """Change the tickets/participants mix of a ticket-using reservation.

    Past the modification deadline the edit is refused and the tickets already
    consumed stay consumed. Every non-organizer in the new composition is
    re-checked against the quota, with this reservation left out of their
    count.
    """
    reservation = await lock_reservation(db, reservation_id)

    if reservation.organizer_id != acting_member_id:
        raise Forbidden("Only the organizer can modify this reservation.")
    if not reservation.is_confirmed:
        raise Forbidden("This reservation has been cancelled.")
    if not reservation.uses_tickets:
        raise InvalidComposition("Only reservations using tickets can be modified. Cancel and book again instead.")

    deadline = reservation.starts_at - timedelta(minutes=settings.modification_deadline_minutes)
    if clock.now() > deadline:
        logger.warning(
            "Edit of reservation %s refused past the deadline, %s ticket(s) forfeited",
            reservation.id,
            reservation.tickets_consumed,
        )
        raise DeadlinePassed(tickets_forfeited=reservation.tickets_consumed)

    old_count = reservation.tickets_consumed
    members = await lock_members(db, [reservation.organizer_id, *reservation.member_ids, *member_ids])

    organizer = members[reservation.organizer_id]
    if organizer.is_suspended:
        raise Forbidden("Your account is currently blocked. Please contact an administrator.")

    composition = check_composition(ticket_count, member_ids, organizer.id, members)

    available = organizer.ticket_balance + old_count
    if composition.ticket_count > available:
        raise InsufficientTickets(
            f"Not enough tickets. Balance after restoring this reservation: {available}, "
            f"required: {composition.ticket_count}."
        )

    await quota.ensure_participants_within_quota(
        db,
        [members[mid] for mid in composition.member_ids],
        organizer_id=organizer.id,
        clock=clock,
        excluding_reservation_id=reservation.id,
    )

    # Links are replaced wholesale; old rows go before new ones hit the unique pair.
    reservation.participants = []
    await db.flush()
    reservation.participants = [ReservationParticipant(member=members[mid]) for mid in composition.member_ids]
    reservation.tickets_consumed = composition.ticket_count
    await db.flush()

    await tickets.apply_composition_change(db, organizer.id, reservation.id, old_count, composition.ticket_count)

    logger.info(
        "Reservation %s recomposed: %s -> %s ticket(s), members %s",
        reservation.id,
        old_count,
        composition.ticket_count,
        list(composition.member_ids),
    )
    return reservation
