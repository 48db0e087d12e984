"""Reservation quota.

A member may hold at most `max_active_reservations` active reservations,
counted across both roles: as organizer, or as participant of someone else's
reservation. Active means confirmed and not yet started. When the quota is
reached the engine also reports who the member is sharing those reservations
with, so the rejection message tells them what is holding them up.
"""

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from padelbook.core.clock import Clock
from padelbook.core.config import settings
from padelbook.core.errors import Forbidden, NotFound, QuotaExceeded
from padelbook.models.member import Member
from padelbook.models.reservation import Reservation, ReservationParticipant, ReservationStatus

logger = logging.getLogger(__name__)


class QuotaReason(enum.StrEnum):
    BLOCKED = "blocked"
    QUOTA_REACHED = "quota_reached"


class ReservationRole(enum.StrEnum):
    ORGANIZER = "organizer"
    PARTICIPANT = "participant"


@dataclass(frozen=True)
class CoOccupant:
    member_id: int
    name: str
    role: ReservationRole
    starts_at: datetime

    def as_dict(self) -> dict:
        return {"name": self.name, "role": self.role.value, "starts_at": self.starts_at.isoformat()}


@dataclass
class QuotaStatus:
    member_id: int
    allowed: bool
    active_count: int
    co_occupants: list[CoOccupant] = field(default_factory=list)
    reason: QuotaReason | None = None


@dataclass(frozen=True)
class ActiveReservation:
    reservation: Reservation
    role: ReservationRole


async def active_reservations(
    db: AsyncSession,
    member_id: int,
    now: datetime,
    excluding_reservation_id: int | None = None,
) -> list[ActiveReservation]:
    """Confirmed, not-yet-started reservations of a member, nearest first.

    A member who organizes a reservation is also one of its participants; it
    is counted once, as organizer.
    """
    as_organizer = select(Reservation).where(
        Reservation.organizer_id == member_id,
        Reservation.status == ReservationStatus.CONFIRMED,
        Reservation.starts_at >= now,
    )
    as_participant = (
        select(Reservation)
        .join(ReservationParticipant, ReservationParticipant.reservation_id == Reservation.id)
        .where(
            ReservationParticipant.member_id == member_id,
            Reservation.organizer_id != member_id,
            Reservation.status == ReservationStatus.CONFIRMED,
            Reservation.starts_at >= now,
        )
    )
    if excluding_reservation_id is not None:
        as_organizer = as_organizer.where(Reservation.id != excluding_reservation_id)
        as_participant = as_participant.where(Reservation.id != excluding_reservation_id)

    organized = (await db.execute(as_organizer)).scalars().all()
    joined = (await db.execute(as_participant)).scalars().all()

    active = [ActiveReservation(r, ReservationRole.ORGANIZER) for r in organized]
    active += [ActiveReservation(r, ReservationRole.PARTICIPANT) for r in joined]
    active.sort(key=lambda a: (a.reservation.starts_at, a.reservation.id))
    return active


def co_occupants_of(member_id: int, active: Iterable[ActiveReservation], limit: int) -> list[CoOccupant]:
    """The other people sharing the member's active reservations."""
    found: list[CoOccupant] = []
    for item in active:
        reservation = item.reservation
        if item.role == ReservationRole.PARTICIPANT:
            found.append(
                CoOccupant(
                    reservation.organizer_id,
                    reservation.organizer.full_name,
                    ReservationRole.ORGANIZER,
                    reservation.starts_at,
                )
            )
        for participant in reservation.participants:
            if participant.member_id in (member_id, reservation.organizer_id):
                continue
            found.append(
                CoOccupant(
                    participant.member_id,
                    participant.member.full_name,
                    ReservationRole.PARTICIPANT,
                    reservation.starts_at,
                )
            )
    return found[:limit]


async def evaluate(
    db: AsyncSession,
    member_id: int,
    *,
    clock: Clock,
    excluding_reservation_id: int | None = None,
) -> QuotaStatus:
    """Can this member take on one more reservation?"""
    member = await db.get(Member, member_id)
    if member is None:
        raise NotFound(f"Member {member_id} not found.")

    active = await active_reservations(db, member_id, clock.now(), excluding_reservation_id)
    count = len(active)

    if member.is_suspended:
        return QuotaStatus(member_id, allowed=False, active_count=count, reason=QuotaReason.BLOCKED)

    if count >= settings.max_active_reservations:
        return QuotaStatus(
            member_id,
            allowed=False,
            active_count=count,
            co_occupants=co_occupants_of(member_id, active, settings.max_co_occupants_reported),
            reason=QuotaReason.QUOTA_REACHED,
        )

    return QuotaStatus(member_id, allowed=True, active_count=count)


def organizer_quota_error(status: QuotaStatus) -> QuotaExceeded:
    message = (
        f"You already have {status.active_count} active reservation(s). "
        f"Maximum {settings.max_active_reservations} simultaneous reservations."
    )
    names = list(dict.fromkeys(c.name for c in status.co_occupants))
    if names:
        message += f" You have reservations with: {', '.join(names)}."
    return QuotaExceeded(
        message,
        active_count=status.active_count,
        co_occupants=[c.as_dict() for c in status.co_occupants],
    )


async def ensure_participants_within_quota(
    db: AsyncSession,
    members: Iterable[Member],
    *,
    organizer_id: int,
    clock: Clock,
    excluding_reservation_id: int | None = None,
) -> None:
    """Check every non-organizer member; raise on the first blocked member, or list all over quota.

    The organizer is never checked here: on creation they went through the
    organizer check already, on an edit their own reservation must not count
    against them.
    """
    over_quota: list[tuple[Member, QuotaStatus]] = []
    for member in members:
        if member.id == organizer_id:
            continue
        status = await evaluate(db, member.id, clock=clock, excluding_reservation_id=excluding_reservation_id)
        if status.reason == QuotaReason.BLOCKED:
            raise Forbidden(f"{member.full_name} is blocked and cannot take part in reservations.")
        if not status.allowed:
            over_quota.append((member, status))

    if over_quota:
        lines = "; ".join(f"{m.full_name}: {s.active_count} active reservation(s)" for m, s in over_quota)
        logger.info("Participants over quota: %s", [m.id for m, _ in over_quota])
        raise QuotaExceeded(
            f"These participants already reached the limit of {settings.max_active_reservations} "
            f"active reservations: {lines}. Please choose other participants.",
            active_count=max(s.active_count for _, s in over_quota),
            co_occupants=[c.as_dict() for _, s in over_quota for c in s.co_occupants][
                : settings.max_co_occupants_reported
            ],
            members=[{"id": m.id, "name": m.full_name, "active_count": s.active_count} for m, s in over_quota],
        )
