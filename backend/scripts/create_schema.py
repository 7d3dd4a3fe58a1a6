"""Create the ProTrack tables and seed the default shift targets.

Existing tables and targets are left untouched, so the script is safe to
re-run after a deploy.
"""

import asyncio
import pathlib
import sys

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from sqlalchemy import select

from protrack.core.db import SessionLocal, engine
from protrack.models import Base, ShiftTarget

DEFAULT_SHIFT_TARGETS = [
    ("BIG_BAG", "MORNING", 25),
    ("BIG_BAG", "AFTERNOON", 25),
    ("BIG_BAG", "NIGHT", 20),
    ("50KG", "MORNING", 15),
    ("50KG", "AFTERNOON", 15),
    ("50KG", "NIGHT", 10),
]


async def main():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Tables created (existing ones kept)")

    async with SessionLocal() as session, session.begin():
        existing = {
            (platform, shift)
            for platform, shift in (
                await session.execute(select(ShiftTarget.platform, ShiftTarget.shift))
            ).all()
        }
        added = 0
        for platform, shift, trucks in DEFAULT_SHIFT_TARGETS:
            if (platform, shift) in existing:
                continue
            session.add(ShiftTarget(platform=platform, shift=shift, target_trucks=trucks))
            added += 1
    print(f"Seeded {added} shift targets")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
