"""Administration routes: overrides, court maintenance, time-blocks, members and tickets.

Every endpoint requires the admin or superadmin role.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from padelbook.core.clock import Clock, get_clock
from padelbook.core.database import get_db, run_in_transaction
from padelbook.core.dependencies import require_admin
from padelbook.core.errors import NotFound
from padelbook.models.member import Court, Member
from padelbook.models.reservation import Reservation, ReservationStatus, TimeBlock
from padelbook.schemas import (
    AdminReservationCreate,
    CancellationOut,
    CourtOut,
    CourtUpdate,
    MemberOut,
    QuotaCorrectionOut,
    ReservationOut,
    TicketGrant,
    TicketLedgerOut,
    TicketTransactionOut,
    TimeBlockIn,
    TimeBlockOut,
    TimeBlockUpdate,
)
from padelbook.services.admission import AdmissionPolicy, create_reservation
from padelbook.services.corrections import correct_quota_overruns
from padelbook.services.mutation import admin_cancel_reservation
from padelbook.services.tickets import get_ticket_balance, grant_tickets, list_transactions

router = APIRouter(prefix="/admin", tags=["admin"])


async def _get_member(db: AsyncSession, member_id: int) -> Member:
    member = await db.get(Member, member_id)
    if member is None:
        raise NotFound(f"Member {member_id} not found.")
    return member


async def _get_court(db: AsyncSession, court_id: int) -> Court:
    court = await db.get(Court, court_id)
    if court is None:
        raise NotFound(f"Court {court_id} not found.")
    return court


async def _get_time_block(db: AsyncSession, block_id: int) -> TimeBlock:
    block = await db.get(TimeBlock, block_id)
    if block is None:
        raise NotFound(f"Time block {block_id} not found.")
    return block


# ---------------------------------------------------------------------------
# Reservations
# ---------------------------------------------------------------------------


@router.post("/reservations", response_model=ReservationOut, status_code=status.HTTP_201_CREATED)
async def create_reservation_as_admin(
    body: AdminReservationCreate,
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Book on behalf of a member, optionally bypassing date, quota and availability rules."""
    admin_id = admin.id
    policy = AdmissionPolicy(
        skip_date_check=body.skip_date_check,
        skip_quota_check=body.skip_quota_check,
        skip_availability_check=body.skip_availability_check,
    )
    return await run_in_transaction(
        db,
        lambda: create_reservation(
            db,
            organizer_id=body.organizer_id,
            court_id=body.court_id,
            starts_at=body.starts_at,
            duration_minutes=body.duration_minutes,
            ticket_count=body.ticket_count,
            member_ids=body.member_ids,
            mode=body.mode,
            clock=clock,
            policy=policy,
            acting_member_id=admin_id,
        ),
    )


@router.get("/reservations", response_model=list[ReservationOut])
async def list_reservations(
    reservation_status: ReservationStatus | None = Query(None, alias="status"),
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """The last 100 reservations, most recent start first."""
    query = select(Reservation)
    if reservation_status is not None:
        query = query.where(Reservation.status == reservation_status)
    result = await db.execute(query.order_by(Reservation.starts_at.desc()).limit(100))
    return result.scalars().all()


@router.delete("/reservations/{reservation_id}", response_model=CancellationOut)
async def cancel_reservation_as_admin(
    reservation_id: int,
    reason: str | None = Query(None, max_length=200),
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    admin_id = admin.id
    result = await run_in_transaction(
        db,
        lambda: admin_cancel_reservation(
            db, reservation_id=reservation_id, acting_member_id=admin_id, clock=clock, reason=reason
        ),
    )
    return CancellationOut(
        reservation=ReservationOut.model_validate(result.reservation),
        outcome=result.outcome,
        tickets_restored=result.tickets_restored,
    )


@router.post("/quota-corrections", response_model=list[QuotaCorrectionOut])
async def run_quota_correction(
    dry_run: bool = Query(False),
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Cancel reservations beyond the quota, keeping each member's nearest ones."""
    corrections = await run_in_transaction(db, lambda: correct_quota_overruns(db, clock=clock, dry_run=dry_run))
    return [QuotaCorrectionOut.model_validate(c) for c in corrections]


# ---------------------------------------------------------------------------
# Courts
# ---------------------------------------------------------------------------


@router.patch("/courts/{court_id}", response_model=CourtOut)
async def update_court(
    court_id: int,
    body: CourtUpdate,
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Rename a court or put it in (or out of) maintenance. Existing reservations are kept."""
    court = await _get_court(db, court_id)
    if body.name is not None:
        court.name = body.name
    if body.is_active is not None:
        court.is_active = body.is_active
    await db.flush()
    return court


# ---------------------------------------------------------------------------
# Time blocks
# ---------------------------------------------------------------------------


@router.get("/time-blocks", response_model=list[TimeBlockOut])
async def list_time_blocks(
    include_inactive: bool = Query(False),
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(TimeBlock)
    if not include_inactive:
        query = query.where(TimeBlock.is_active.is_(True))
    result = await db.execute(query.order_by(TimeBlock.block_date, TimeBlock.start_time))
    return result.scalars().all()


@router.post("/time-blocks", response_model=TimeBlockOut, status_code=status.HTTP_201_CREATED)
async def create_time_block(
    body: TimeBlockIn,
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    court = await _get_court(db, body.court_id) if body.court_id is not None else None
    block = TimeBlock(
        court=court,
        block_date=body.block_date,
        start_time=body.start_time,
        end_time=body.end_time,
        reason=body.reason,
        is_active=True,
    )
    db.add(block)
    await db.flush()
    return block


@router.patch("/time-blocks/{block_id}", response_model=TimeBlockOut)
async def update_time_block(
    block_id: int,
    body: TimeBlockUpdate,
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    block = await _get_time_block(db, block_id)
    changes = body.model_dump(exclude_unset=True)
    if "court_id" in changes:
        court_id = changes.pop("court_id")
        block.court = await _get_court(db, court_id) if court_id is not None else None
    for field, value in changes.items():
        setattr(block, field, value)
    await db.flush()
    return block


@router.delete("/time-blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_time_block(
    block_id: int,
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    block = await _get_time_block(db, block_id)
    await db.delete(block)
    await db.flush()


# ---------------------------------------------------------------------------
# Members and tickets
# ---------------------------------------------------------------------------


@router.get("/members", response_model=list[MemberOut])
async def list_members(
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Member).order_by(Member.last_name, Member.first_name))
    return result.scalars().all()


@router.post("/members/{member_id}/block", response_model=MemberOut)
async def block_member(
    member_id: int,
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Withdraw booking rights. Existing reservations are kept."""
    member = await _get_member(db, member_id)
    member.is_blocked = True
    await db.flush()
    return member


@router.post("/members/{member_id}/unblock", response_model=MemberOut)
async def unblock_member(
    member_id: int,
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    member = await _get_member(db, member_id)
    member.is_blocked = False
    await db.flush()
    return member


@router.get("/members/{member_id}/tickets", response_model=TicketLedgerOut)
async def get_member_tickets(
    member_id: int,
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    member = await _get_member(db, member_id)
    balance = await get_ticket_balance(db, member.id)
    transactions = await list_transactions(db, member.id)
    return TicketLedgerOut(
        member_id=member.id,
        balance=balance,
        transactions=[TicketTransactionOut.model_validate(t) for t in transactions],
    )


@router.post(
    "/members/{member_id}/tickets",
    response_model=TicketTransactionOut,
    status_code=status.HTTP_201_CREATED,
)
async def grant_member_tickets(
    member_id: int,
    body: TicketGrant,
    admin: Member = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Grant tickets, or withdraw them with a negative amount. The balance never goes below zero."""
    if body.amount == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Amount must not be zero")
    return await run_in_transaction(db, lambda: grant_tickets(db, member_id, body.amount, body.description))
