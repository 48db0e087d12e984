"""Availability checker tests: maintenance, time-blocks, overlaps and double-booking."""

import random
from datetime import time

import pytest
from sqlalchemy import select

from padelbook.core.errors import Conflict
from padelbook.models import Reservation, ReservationStatus, TimeBlock
from padelbook.services.availability import block_interval, is_available


async def _block(db, court, day, start, end, is_active=True):
    block = TimeBlock(
        court=court, block_date=day, start_time=start, end_time=end, reason="Tournoi", is_active=is_active
    )
    db.add(block)
    await db.commit()
    return block


@pytest.mark.asyncio
async def test_empty_court_is_available(db, courts, at):
    assert await is_available(db, courts[0].id, at(1, 10, 30), 90)


@pytest.mark.asyncio
async def test_unknown_court_is_not_available(db, courts, at):
    assert not await is_available(db, 999, at(1, 10, 30), 90)


@pytest.mark.asyncio
async def test_inactive_court_is_not_available(db, courts, at):
    courts[1].is_active = False
    await db.commit()
    assert not await is_available(db, courts[1].id, at(1, 10, 30), 90)


@pytest.mark.asyncio
async def test_overlapping_reservation(db, courts, players, book, at):
    organizer = players[0]
    await book(organizer, courts[0], at(1, 10, 30), members=[organizer], tickets=3)

    assert not await is_available(db, courts[0].id, at(1, 10, 30), 90)
    assert not await is_available(db, courts[0].id, at(1, 11, 0), 60)
    assert not await is_available(db, courts[0].id, at(1, 9, 30), 90)
    # Other court untouched
    assert await is_available(db, courts[1].id, at(1, 10, 30), 90)


@pytest.mark.asyncio
async def test_adjacent_windows_do_not_overlap(db, courts, players, book, at):
    organizer = players[0]
    await book(organizer, courts[0], at(1, 10, 30), members=[organizer], tickets=3)

    assert await is_available(db, courts[0].id, at(1, 9, 0), 90)
    assert await is_available(db, courts[0].id, at(1, 12, 0), 60)


@pytest.mark.asyncio
async def test_cancelled_reservation_frees_the_window(db, courts, players, book, at):
    organizer = players[0]
    reservation = await book(organizer, courts[0], at(1, 10, 30), members=[organizer], tickets=3)
    reservation.status = ReservationStatus.CANCELLED
    await db.commit()

    assert await is_available(db, courts[0].id, at(1, 10, 30), 90)


@pytest.mark.asyncio
async def test_excluding_reservation(db, courts, players, book, at):
    organizer = players[0]
    reservation = await book(organizer, courts[0], at(1, 10, 30), members=[organizer], tickets=3)

    assert await is_available(db, courts[0].id, at(1, 10, 30), 90, excluding_reservation_id=reservation.id)


@pytest.mark.asyncio
async def test_court_time_block(db, courts, at):
    await _block(db, courts[0], at(1, 0).date(), time(17, 0), time(20, 0))

    assert not await is_available(db, courts[0].id, at(1, 18, 30), 90)
    assert await is_available(db, courts[1].id, at(1, 18, 30), 90)


@pytest.mark.asyncio
async def test_time_block_boundaries_are_half_open(db, courts, at):
    await _block(db, courts[0], at(1, 0).date(), time(17, 0), time(20, 0))

    assert await is_available(db, courts[0].id, at(1, 20, 0), 90)
    assert await is_available(db, courts[0].id, at(1, 14, 0), 90)


@pytest.mark.asyncio
async def test_global_time_block_applies_to_every_court(db, courts, at):
    await _block(db, None, at(1, 0).date(), time(12, 0), time(14, 0))

    for court in courts:
        assert not await is_available(db, court.id, at(1, 12, 0), 60)


@pytest.mark.asyncio
async def test_inactive_time_block_is_ignored(db, courts, at):
    await _block(db, courts[0], at(1, 0).date(), time(17, 0), time(20, 0), is_active=False)
    assert await is_available(db, courts[0].id, at(1, 18, 30), 90)


@pytest.mark.asyncio
async def test_time_block_until_midnight(db, courts, at):
    block = await _block(db, courts[0], at(1, 0).date(), time(21, 30), time(0, 0))
    _, end = block_interval(block)
    assert end == at(2, 0)
    assert not await is_available(db, courts[0].id, at(1, 23, 0), 59)


@pytest.mark.asyncio
async def test_repeated_checks_agree(db, courts, players, book, at):
    organizer = players[0]
    await book(organizer, courts[0], at(1, 10, 30), members=[organizer], tickets=3)

    for start in (at(1, 9, 0), at(1, 10, 30), at(1, 12, 0)):
        first = await is_available(db, courts[0].id, start, 90)
        second = await is_available(db, courts[0].id, start, 90)
        assert first == second


@pytest.mark.asyncio
async def test_random_attempts_never_double_book(db, courts, make_member, book, at):
    rng = random.Random(20260601)
    accepted = 0

    for _ in range(60):
        organizer = await make_member("Rand", tickets=3)
        court = rng.choice(courts[:2])
        start = at(rng.randint(1, 2), rng.randint(8, 20), rng.choice([0, 30]))
        duration = rng.choice([60, 90, 120])
        try:
            await book(organizer, court, start, members=[organizer], tickets=3, duration_minutes=duration)
            accepted += 1
        except Conflict:
            continue

    rows = (
        await db.execute(select(Reservation).where(Reservation.status == ReservationStatus.CONFIRMED))
    ).scalars().all()
    assert len(rows) == accepted > 0

    by_court: dict[int, list[Reservation]] = {}
    for row in rows:
        by_court.setdefault(row.court_id, []).append(row)
    for reservations in by_court.values():
        reservations.sort(key=lambda r: r.starts_at)
        for previous, current in zip(reservations, reservations[1:]):
            assert previous.ends_at <= current.starts_at
