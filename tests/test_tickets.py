"""Ticket ledger tests."""

import pytest

from padelbook.core.errors import InsufficientTickets, NotFound
from padelbook.models.ticket import TicketTransactionType
from padelbook.services.tickets import (
    apply_composition_change,
    get_ticket_balance,
    grant_tickets,
    list_transactions,
)


@pytest.mark.asyncio
async def test_grant_updates_balance_and_ledger(db, make_member):
    member = await make_member("Paul")

    txn = await grant_tickets(db, member.id, 5, "Carnet de 5")

    assert txn.transaction_type == TicketTransactionType.GRANT
    assert txn.balance_after == 5
    assert await get_ticket_balance(db, member.id) == 5


@pytest.mark.asyncio
async def test_negative_grant_is_an_adjustment(db, make_member):
    member = await make_member("Paul", tickets=4)

    txn = await grant_tickets(db, member.id, -3, "Correction")

    assert txn.transaction_type == TicketTransactionType.ADMIN_ADJUSTMENT
    assert member.ticket_balance == 1


@pytest.mark.asyncio
async def test_balance_never_goes_negative(db, make_member):
    member = await make_member("Paul", tickets=1)

    with pytest.raises(InsufficientTickets):
        await grant_tickets(db, member.id, -2, "Correction")
    assert member.ticket_balance == 1


@pytest.mark.asyncio
async def test_unknown_member(db):
    with pytest.raises(NotFound):
        await grant_tickets(db, 4242, 1, "Nobody")


@pytest.mark.asyncio
async def test_balance_of_unknown_member_is_zero(db):
    assert await get_ticket_balance(db, 4242) == 0


@pytest.mark.asyncio
async def test_composition_change_nets_the_difference(db, courts, players, book, at):
    marie, paul = players[:2]
    reservation = await book(marie, courts[0], at(1, 10, 30), members=[marie, paul], tickets=2)
    assert marie.ticket_balance == 1

    txn = await apply_composition_change(db, marie.id, reservation.id, old_count=2, new_count=1)

    assert txn.amount == 1
    assert txn.transaction_type == TicketTransactionType.COMPOSITION_CHANGE
    assert marie.ticket_balance == 2


@pytest.mark.asyncio
async def test_composition_change_without_difference_writes_nothing(db, courts, players, book, at):
    marie, paul = players[:2]
    reservation = await book(marie, courts[0], at(1, 10, 30), members=[marie, paul], tickets=2)
    before = await list_transactions(db, marie.id)

    assert await apply_composition_change(db, marie.id, reservation.id, old_count=2, new_count=2) is None
    assert len(await list_transactions(db, marie.id)) == len(before)


@pytest.mark.asyncio
async def test_ledger_sums_to_balance(db, courts, players, book, at):
    marie, paul = players[:2]
    await grant_tickets(db, marie.id, 3, "Carnet")
    await book(marie, courts[0], at(1, 10, 30), members=[marie, paul], tickets=2)

    ledger = await list_transactions(db, marie.id)

    # Marie starts with 3 tickets outside the ledger
    assert 3 + sum(t.amount for t in ledger) == marie.ticket_balance == 4
    assert ledger[0].transaction_type == TicketTransactionType.RESERVATION_DEBIT
