"""Sample member data for local runs of the rule engine.

Usage:
    python -m app.scripts.seed
"""

import asyncio
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.core.config import settings
from app.models import Member
from app.repositories.rule_repository import RuleRepository


def _birth_date_years_ago(years: int, days_offset: int = 0) -> str:
    """dd-Mon-yyyy birth date, as stored by the member directory."""
    today = date.today()
    try:
        born = today.replace(year=today.year - years)
    except ValueError:  # 29 Feb
        born = today.replace(year=today.year - years, day=28)
    return (born + timedelta(days=days_offset)).strftime("%d-%b-%Y")


SAMPLE_MEMBERS = [
    {
        "member_id": "m-0001",
        "name": "Tan Wei Ming",
        "email": "weiming@example.com",
        "membership_category": "active",
        "birth_date": _birth_date_years_ago(45),
        "senator_id": "SEN-10233",
    },
    {
        "member_id": "m-0002",
        "name": "Nur Aisyah",
        "email": "aisyah@example.com",
        "membership_category": "active",
        "birth_date": _birth_date_years_ago(40),
    },
    {
        "member_id": "m-0003",
        "name": "Rajesh Kumar",
        "email": "rajesh@example.com",
        "membership_category": "active",
        # turns 40 tomorrow
        "birth_date": _birth_date_years_ago(40, days_offset=1),
    },
    {
        "member_id": "m-0004",
        "name": "Lim Mei Ling",
        "email": "meiling@example.com",
        "membership_category": None,
        "birth_date": _birth_date_years_ago(27),
    },
    {
        "member_id": "m-0005",
        "name": "Ahmad Faizal",
        "email": "faizal@example.com",
        "membership_category": "associate",
        "birth_date": "not a date",
    },
]


async def seed():
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with session_maker() as session:
        print("Seeding sample members and default rules")

        # Change logs reference members by id only; clear both for re-runs
        await session.execute(text("TRUNCATE TABLE rule_change_logs, members"))

        now = datetime.now(timezone.utc)
        for data in SAMPLE_MEMBERS:
            session.add(Member(registered_at=now - timedelta(days=3), **data))

        inserted = await RuleRepository(session).seed_if_empty()
        await session.commit()
        print(f"Inserted {len(SAMPLE_MEMBERS)} members and {inserted} rules")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
