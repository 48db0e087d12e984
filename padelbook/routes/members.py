"""Current member routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from padelbook.core.clock import Clock, get_clock
from padelbook.core.config import settings
from padelbook.core.database import get_db
from padelbook.core.dependencies import get_current_member
from padelbook.models.member import Member
from padelbook.schemas import CoOccupantOut, MemberOut, MeOut, QuotaOut
from padelbook.services import quota

router = APIRouter(tags=["members"])


@router.get("/me", response_model=MeOut)
async def get_me(
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Profile, ticket balance and whether the member can take on another reservation."""
    status = await quota.evaluate(db, member.id, clock=clock)
    return MeOut(
        member=MemberOut.model_validate(member),
        quota=QuotaOut(
            allowed=status.allowed,
            active_count=status.active_count,
            max_active=settings.max_active_reservations,
            reason=status.reason,
            co_occupants=[
                CoOccupantOut(name=c.name, role=c.role, starts_at=c.starts_at) for c in status.co_occupants
            ],
        ),
    )
