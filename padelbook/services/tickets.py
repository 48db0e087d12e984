"""Ticket service for managing member ticket balances.

The balance is cached on Member.ticket_balance for fast reads.
The authoritative audit trail is the ticket_transactions table.
All mutations go through this service to keep the cache in sync.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from padelbook.core.errors import InsufficientTickets, NotFound
from padelbook.models.member import Member
from padelbook.models.ticket import TicketTransaction, TicketTransactionType

logger = logging.getLogger(__name__)


async def get_ticket_balance(db: AsyncSession, member_id: int) -> int:
    result = await db.execute(select(Member.ticket_balance).where(Member.id == member_id))
    balance = result.scalar_one_or_none()
    return balance or 0


async def _apply(
    db: AsyncSession,
    member_id: int,
    amount: int,
    txn_type: TicketTransactionType,
    reservation_id: int | None,
    description: str,
) -> TicketTransaction:
    """Core ticket mutation: adjust balance and record a transaction.

    Uses SELECT ... FOR UPDATE on the member row to prevent race conditions.
    """
    result = await db.execute(
        select(Member).where(Member.id == member_id).with_for_update().execution_options(populate_existing=True)
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise NotFound(f"Member {member_id} not found.")

    new_balance = member.ticket_balance + amount
    if new_balance < 0:
        raise InsufficientTickets(
            f"Not enough tickets. Current balance: {member.ticket_balance}, required: {-amount}."
        )
    member.ticket_balance = new_balance

    txn = TicketTransaction(
        member_id=member_id,
        amount=amount,
        balance_after=new_balance,
        transaction_type=txn_type,
        reservation_id=reservation_id,
        description=description,
    )
    db.add(txn)
    await db.flush()
    logger.info("Tickets %+d for member %s (%s), balance %s", amount, member_id, txn_type.value, new_balance)
    return txn


async def debit_for_reservation(db: AsyncSession, member_id: int, reservation_id: int, count: int) -> TicketTransaction:
    return await _apply(
        db,
        member_id,
        amount=-count,
        txn_type=TicketTransactionType.RESERVATION_DEBIT,
        reservation_id=reservation_id,
        description=f"{count} ticket(s) for reservation #{reservation_id}",
    )


async def restore_for_cancellation(
    db: AsyncSession, member_id: int, reservation_id: int, count: int
) -> TicketTransaction:
    return await _apply(
        db,
        member_id,
        amount=count,
        txn_type=TicketTransactionType.CANCELLATION_RESTORE,
        reservation_id=reservation_id,
        description=f"Tickets restored on cancellation of reservation #{reservation_id}",
    )


async def apply_composition_change(
    db: AsyncSession,
    member_id: int,
    reservation_id: int,
    old_count: int,
    new_count: int,
) -> TicketTransaction | None:
    """Restore the old consumption and take the new one as a single net movement.

    Returns None when the ticket count does not change.
    """
    net = old_count - new_count
    if net == 0:
        return None
    return await _apply(
        db,
        member_id,
        amount=net,
        txn_type=TicketTransactionType.COMPOSITION_CHANGE,
        reservation_id=reservation_id,
        description=f"Reservation #{reservation_id} changed from {old_count} to {new_count} ticket(s)",
    )


async def grant_tickets(db: AsyncSession, member_id: int, amount: int, description: str) -> TicketTransaction:
    """Grant (or with a negative amount, withdraw) tickets. Admin action."""
    return await _apply(
        db,
        member_id,
        amount=amount,
        txn_type=TicketTransactionType.GRANT if amount > 0 else TicketTransactionType.ADMIN_ADJUSTMENT,
        reservation_id=None,
        description=description,
    )


async def list_transactions(db: AsyncSession, member_id: int, limit: int = 50) -> list[TicketTransaction]:
    result = await db.execute(
        select(TicketTransaction)
        .where(TicketTransaction.member_id == member_id)
        .order_by(TicketTransaction.created_at.desc(), TicketTransaction.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
