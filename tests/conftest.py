"""Shared test fixtures.

Each test gets a fresh in-memory SQLite database built from the ORM metadata,
a clock pinned to Monday 1 June 2026, 08:00 facility time, and factories for
members, courts and reservations.
"""

import itertools
from datetime import datetime, time, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from padelbook.core.auth import create_identity_token
from padelbook.core.clock import FACILITY_TZ, FixedClock, get_clock
from padelbook.core.database import get_db
from padelbook.main import app
from padelbook.models import Base, Court, Member, MemberRole, Reservation
from padelbook.services.admission import ADMIN_OVERRIDE, create_reservation

NOW = datetime(2026, 6, 1, 8, 0, tzinfo=FACILITY_TZ)

_member_seq = itertools.count(1)


def at(days: int, hour: int, minute: int = 0) -> datetime:
    """A facility-local instant `days` after the pinned date."""
    return datetime.combine(NOW.date() + timedelta(days=days), time(hour, minute), tzinfo=FACILITY_TZ)


@pytest.fixture(name="at")
def at_fixture():
    return at


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
async def client(session_factory, clock):
    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_member(db):
    async def _make(first_name: str = "Player", tickets: int = 0, **overrides) -> Member:
        n = next(_member_seq)
        data = {
            "external_key": f"member-{n}@example.com",
            "email": f"member-{n}@example.com",
            "first_name": first_name,
            "last_name": f"N{n}",
            "ticket_balance": tickets,
            "role": MemberRole.MEMBER,
        }
        data.update(overrides)
        member = Member(**data)
        db.add(member)
        await db.flush()
        return member

    return _make


@pytest.fixture
async def courts(db):
    created = [
        Court(number=1, name="Court Central", is_active=True),
        Court(number=2, name="Court Est", is_active=True),
        Court(number=3, name="Court Ouest", is_active=True),
    ]
    db.add_all(created)
    await db.commit()
    return created


@pytest.fixture
async def players(make_member, db):
    """An organizer with 3 tickets and five other members."""
    organizer = await make_member("Marie", tickets=3)
    others = [await make_member(name) for name in ("Paul", "Lea", "Hugo", "Ines", "Theo")]
    await db.commit()
    return [organizer, *others]


@pytest.fixture
async def admin(make_member, db):
    member = await make_member("Admin", role=MemberRole.ADMIN)
    await db.commit()
    return member


@pytest.fixture
def book(db, clock):
    """Insert a reservation through the admission controller with every rule applied."""

    async def _book(
        organizer: Member,
        court: Court,
        starts_at: datetime,
        members: list[Member] | None = None,
        tickets: int = 0,
        duration_minutes: int = 90,
        **kwargs,
    ) -> Reservation:
        members = members if members is not None else [organizer]
        reservation = await create_reservation(
            db,
            organizer_id=organizer.id,
            court_id=court.id,
            starts_at=starts_at,
            duration_minutes=duration_minutes,
            ticket_count=tickets,
            member_ids=[m.id for m in members],
            clock=clock,
            **kwargs,
        )
        await db.commit()
        return reservation

    return _book


@pytest.fixture
def force_book(book, admin):
    """Like `book`, but bypassing date, quota and availability rules (admin override)."""

    async def _force(*args, **kwargs) -> Reservation:
        return await book(*args, policy=ADMIN_OVERRIDE, acting_member_id=admin.id, **kwargs)

    return _force


@pytest.fixture
def headers_for():
    def _headers(member: Member) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_identity_token(member.external_key)}"}

    return _headers
