"""Reservation admission.

All creation rules live here, separate from the route handlers. Rules run in
a fixed order and the first failure aborts the whole operation with its own
error kind:

1. organizer not blocked
2. composition valid (counts, organizer included, no duplicates, known members)
3. court exists and is active
4. start strictly in the future
5. enough tickets (ticket mode)
6. organizer within quota
7. every other participant within quota
8. court/time window free

Rows are locked in a fixed order (members by id, then the court) before any
rule is evaluated, so the checks and the insert see a state no concurrent
admission can change underneath them.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from padelbook.core.clock import Clock
from padelbook.core.config import settings
from padelbook.core.errors import (
    Conflict,
    Forbidden,
    InsufficientTickets,
    InvalidComposition,
    InvalidWindow,
    NotFound,
    ResourceInactive,
)
from padelbook.models.member import Court, Member
from padelbook.models.reservation import Reservation, ReservationParticipant, ReservationStatus
from padelbook.services import quota, tickets
from padelbook.services.availability import is_available, window_end
from padelbook.services.composition import Composition, CompositionMode, build_composition, require_organizer
from padelbook.services.slots import is_canonical_window

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionPolicy:
    """Which admission rules an administrator chose to bypass.

    Court maintenance has no bypass: an inactive court can never be booked.
    """

    skip_date_check: bool = False
    skip_quota_check: bool = False
    skip_availability_check: bool = False

    @property
    def is_override(self) -> bool:
        return self.skip_date_check or self.skip_quota_check or self.skip_availability_check


STRICT = AdmissionPolicy()
ADMIN_OVERRIDE = AdmissionPolicy(skip_date_check=True, skip_quota_check=True, skip_availability_check=True)


# ---------------------------------------------------------------------------
# Row locks
# ---------------------------------------------------------------------------


async def lock_members(db: AsyncSession, member_ids: Iterable[int]) -> dict[int, Member]:
    """SELECT ... FOR UPDATE the given members, in id order. Unknown ids are simply absent."""
    ids = sorted(set(member_ids))
    if not ids:
        return {}
    result = await db.execute(
        select(Member)
        .where(Member.id.in_(ids))
        .order_by(Member.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return {m.id: m for m in result.scalars().all()}


async def lock_court(db: AsyncSession, court_id: int) -> Court | None:
    result = await db.execute(
        select(Court).where(Court.id == court_id).with_for_update().execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def check_organizer(organizer: Member | None, organizer_id: int) -> Member:
    if organizer is None:
        raise NotFound(f"Member {organizer_id} not found.")
    if organizer.is_suspended:
        raise Forbidden("Your account is currently blocked. Please contact an administrator.")
    return organizer


def check_composition(
    ticket_count: int,
    member_ids: list[int],
    organizer_id: int,
    members: dict[int, Member],
    mode: CompositionMode | None = None,
) -> Composition:
    composition = build_composition(ticket_count, member_ids, mode)
    require_organizer(composition, organizer_id)
    unknown = [mid for mid in composition.member_ids if mid not in members]
    if unknown:
        raise InvalidComposition(f"Unknown participant(s): {', '.join(str(u) for u in unknown)}.")
    return composition


def check_court(court: Court | None, court_id: int) -> Court:
    if court is None:
        raise NotFound(f"Court {court_id} not found.")
    if not court.is_active:
        raise ResourceInactive(f"Court {court.number} ({court.name}) is under maintenance and cannot be booked.")
    return court


def check_window(starts_at: datetime, duration_minutes: int, now: datetime, policy: AdmissionPolicy) -> None:
    if duration_minutes <= 0:
        raise InvalidWindow("The reservation must last at least one minute.")
    if duration_minutes > settings.max_reservation_minutes:
        raise InvalidWindow(f"A reservation cannot last more than {settings.max_reservation_minutes} minutes.")
    if policy.skip_date_check:
        return
    if starts_at <= now:
        raise InvalidWindow()
    if settings.enforce_slot_grid and not is_canonical_window(starts_at, duration_minutes):
        raise InvalidWindow("Reservations must match one of the court's time slots.")


def check_ticket_balance(balance: int, ticket_count: int) -> None:
    if ticket_count > balance:
        raise InsufficientTickets(f"Not enough tickets. Current balance: {balance}, required: {ticket_count}.")


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def create_reservation(
    db: AsyncSession,
    *,
    organizer_id: int,
    court_id: int,
    starts_at: datetime,
    duration_minutes: int,
    ticket_count: int,
    member_ids: list[int],
    clock: Clock,
    mode: CompositionMode | None = None,
    policy: AdmissionPolicy = STRICT,
    acting_member_id: int | None = None,
) -> Reservation:
    """Validate and insert a reservation. Flushes, does not commit.

    `acting_member_id` is who asked for it; any bypass in `policy` requires
    them to be an administrator.
    """
    if policy.is_override:
        acting = await db.get(Member, acting_member_id) if acting_member_id is not None else None
        if acting is None or not acting.is_admin:
            raise Forbidden("Only administrators can bypass booking rules.")

    if starts_at.tzinfo is None:
        raise InvalidWindow("The start time must include a timezone.")

    now = clock.now()
    members = await lock_members(db, [organizer_id, *member_ids])

    # 1-2
    organizer = check_organizer(members.get(organizer_id), organizer_id)
    composition = check_composition(ticket_count, member_ids, organizer_id, members, mode)

    # 3
    court = check_court(await lock_court(db, court_id), court_id)

    # 4-5
    check_window(starts_at, duration_minutes, now, policy)
    check_ticket_balance(organizer.ticket_balance, composition.ticket_count)

    # 6-7
    if not policy.skip_quota_check:
        organizer_status = await quota.evaluate(db, organizer.id, clock=clock)
        if not organizer_status.allowed:
            raise quota.organizer_quota_error(organizer_status)
        await quota.ensure_participants_within_quota(
            db, [members[mid] for mid in composition.member_ids], organizer_id=organizer.id, clock=clock
        )

    # 8
    if not policy.skip_availability_check and not await is_available(db, court.id, starts_at, duration_minutes):
        raise Conflict("This court is already booked or blocked at this date and time.")

    reservation = Reservation(
        organizer=organizer,
        court=court,
        starts_at=starts_at,
        ends_at=window_end(starts_at, duration_minutes),
        duration_minutes=duration_minutes,
        status=ReservationStatus.CONFIRMED,
        tickets_consumed=composition.ticket_count,
        participants=[ReservationParticipant(member=members[mid]) for mid in composition.member_ids],
    )
    db.add(reservation)
    await db.flush()

    if composition.ticket_count:
        await tickets.debit_for_reservation(db, organizer.id, reservation.id, composition.ticket_count)

    logger.info(
        "Reservation %s created by member %s on court %s at %s (%s ticket(s)%s)",
        reservation.id,
        organizer.id,
        court.id,
        starts_at.isoformat(),
        composition.ticket_count,
        ", override" if policy.is_override else "",
    )
    return reservation
