"""Seed a local CourseWatch database with demo users, offerings and activity logs.

Creates (idempotent):
  1. One manager and two facilitators
  2. One module and one class
  3. Two course offerings, one per facilitator
  4. Activity logs for alternate weeks of the first offering, so the
     compliance scan has something to report

Usage:
    COURSEWATCH_LOCAL_MODE=1 python scripts/seed_demo_data.py [--weeks 6]
"""

import argparse
import asyncio
from datetime import date, timedelta

from coursewatch.config import settings
from coursewatch.db.engine import create_db_engine, create_session_factory, create_tables
from coursewatch.db.models.activity_log import ActivityLogRow
from coursewatch.db.models.course_offering import ClassRow, CourseOfferingRow, ModuleRow
from coursewatch.db.models.user import UserRow

USERS = [
    ("usr_manager01", "manager@example.edu", "Morgan Manager", "manager"),
    ("usr_facil01", "facilitator1@example.edu", "Avery Facilitator", "facilitator"),
    ("usr_facil02", "facilitator2@example.edu", "Jordan Facilitator", "facilitator"),
]


async def seed(weeks: int) -> None:
    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)
    if "sqlite" in db_url:
        await create_tables(engine)
    session_factory = create_session_factory(engine)

    async with session_factory() as session:
        print("1. Users...")
        for user_id, email, name, role in USERS:
            if await session.get(UserRow, user_id) is None:
                session.add(UserRow(user_id=user_id, email=email, display_name=name, role=role))
                print(f"   -> Created {role} {user_id}")

        print("2. Module and class...")
        if await session.get(ModuleRow, "mod_web101") is None:
            session.add(ModuleRow(module_id="mod_web101", name="Web Development", code="WEB101"))
        if await session.get(ClassRow, "cls_2026j") is None:
            start = settings.term_start_date or date.today() - timedelta(weeks=weeks)
            session.add(ClassRow(
                class_id="cls_2026j", name="2026-J", start_date=start, end_date=start + timedelta(weeks=12)
            ))

        print("3. Course offerings...")
        for allocation_id, facilitator_id in (("alloc_web_a", "usr_facil01"), ("alloc_web_b", "usr_facil02")):
            if await session.get(CourseOfferingRow, allocation_id) is None:
                session.add(CourseOfferingRow(
                    allocation_id=allocation_id,
                    module_id="mod_web101",
                    class_id="cls_2026j",
                    trimester="T1",
                    intake="FT",
                    facilitator_id=facilitator_id,
                ))
                print(f"   -> Created {allocation_id} for {facilitator_id}")
        await session.flush()

        print("4. Activity logs...")
        for week in range(1, weeks + 1, 2):
            log_id = f"log_web_a_w{week}"
            if await session.get(ActivityLogRow, log_id) is None:
                session.add(ActivityLogRow(
                    log_id=log_id, allocation_id="alloc_web_a", week_number=week, attendance=[True, True, False]
                ))
                print(f"   -> Week {week} logged for alloc_web_a")

        await session.commit()

    await engine.dispose()
    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed CourseWatch demo data")
    parser.add_argument("--weeks", type=int, default=6, help="Weeks of history to seed (default: 6)")
    args = parser.parse_args()
    asyncio.run(seed(args.weeks))
