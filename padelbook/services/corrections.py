"""Quota correction.

Brings members back under the active-reservation limit after the limit was
lowered or data was imported: for each member over the limit, keep the
nearest reservations and give up the rest. An organized reservation is
cancelled outright (tickets restored); a joined one is left, which cancels it
as it can no longer fill its 4 slots.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from padelbook.core.clock import Clock
from padelbook.core.config import settings
from padelbook.models.member import Member
from padelbook.services.admission import lock_members
from padelbook.services.mutation import cancel_reservation, lock_reservation, withdraw_participant
from padelbook.services.quota import ReservationRole, active_reservations

logger = logging.getLogger(__name__)


@dataclass
class QuotaCorrection:
    member_id: int
    name: str
    active_count: int
    kept: list[int] = field(default_factory=list)
    cancelled: list[int] = field(default_factory=list)
    withdrawn: list[int] = field(default_factory=list)


async def correct_quota_overruns(db: AsyncSession, *, clock: Clock, dry_run: bool = False) -> list[QuotaCorrection]:
    """Return one entry per member found over the limit. With dry_run nothing is written."""
    limit = settings.max_active_reservations
    now = clock.now()
    corrections: list[QuotaCorrection] = []

    member_ids = (await db.execute(select(Member.id).order_by(Member.id))).scalars().all()
    for member_id in member_ids:
        active = await active_reservations(db, member_id, now)
        if len(active) <= limit:
            continue

        member = await db.get(Member, member_id)
        correction = QuotaCorrection(member_id, member.full_name, len(active))
        correction.kept = [a.reservation.id for a in active[:limit]]
        logger.warning("Member %s holds %s active reservations, limit %s", member_id, len(active), limit)

        for item in active[limit:]:
            if item.role == ReservationRole.ORGANIZER:
                correction.cancelled.append(item.reservation.id)
            else:
                correction.withdrawn.append(item.reservation.id)
            if dry_run:
                continue

            reservation = await lock_reservation(db, item.reservation.id)
            if not reservation.is_confirmed:
                continue
            await lock_members(db, [reservation.organizer_id, *reservation.member_ids])
            if item.role == ReservationRole.ORGANIZER:
                await cancel_reservation(db, reservation, clock=clock, reason="quota_correction")
            else:
                await withdraw_participant(db, reservation, member_id, clock=clock, reason="quota_correction")

        corrections.append(correction)

    logger.info(
        "Quota correction%s: %s member(s) affected", " (dry run)" if dry_run else "", len(corrections)
    )
    return corrections
