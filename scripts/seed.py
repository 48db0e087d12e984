"""Seed the database with the club's courts and test members.

Run with: python -m scripts.seed
Creates the three padel courts, one administrator and a handful of members.
Safe to run twice: existing courts and members are left alone.
"""

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from padelbook.core.database import async_session_factory, engine
from padelbook.models import Base, Court, Member, MemberRole

logger = logging.getLogger(__name__)

COURTS = [
    {"number": 1, "name": "Court Central"},
    {"number": 2, "name": "Court Est"},
    {"number": 3, "name": "Court Ouest"},
]

MEMBERS = [
    {
        "external_key": "admin@padelbook.test",
        "email": "admin@padelbook.test",
        "first_name": "Test",
        "last_name": "Admin",
        "role": MemberRole.ADMIN,
        "ticket_balance": 10,
    },
    {
        "external_key": "alice@padelbook.test",
        "email": "alice@padelbook.test",
        "first_name": "Alice",
        "last_name": "Martin",
        "ticket_balance": 3,
    },
    {
        "external_key": "bruno@padelbook.test",
        "email": "bruno@padelbook.test",
        "first_name": "Bruno",
        "last_name": "Petit",
        "ticket_balance": 3,
    },
    {
        "external_key": "chloe@padelbook.test",
        "email": "chloe@padelbook.test",
        "first_name": "Chloé",
        "last_name": "Durand",
        "ticket_balance": 0,
    },
    {
        "external_key": "david@padelbook.test",
        "email": "david@padelbook.test",
        "first_name": "David",
        "last_name": "Moreau",
        "ticket_balance": 1,
    },
]


async def ensure_courts_exist(db: AsyncSession) -> int:
    """Create any missing reference court. Returns how many were created."""
    result = await db.execute(select(Court.number))
    existing = set(result.scalars().all())
    created = 0
    for court_data in COURTS:
        if court_data["number"] in existing:
            continue
        db.add(Court(is_active=True, **court_data))
        created += 1
    await db.flush()
    return created


async def ensure_members_exist(db: AsyncSession) -> int:
    result = await db.execute(select(Member.external_key))
    existing = set(result.scalars().all())
    created = 0
    for member_data in MEMBERS:
        if member_data["external_key"] in existing:
            continue
        db.add(Member(**member_data))
        created += 1
    await db.flush()
    return created


async def seed():
    # Create tables (in dev; production would use migrations)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        courts = await ensure_courts_exist(db)
        members = await ensure_members_exist(db)
        await db.commit()

    logger.info("Seeded %s court(s) and %s member(s)", courts, members)
    print(f"Seeded: {courts} court(s), {members} member(s)")
    print("  Identity tokens use the member email as subject, e.g. admin@padelbook.test")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())
