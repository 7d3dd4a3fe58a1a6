import asyncio
import pathlib
import sys

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from sqlalchemy import text

from protrack.core.config import settings
from protrack.core.db import SessionLocal


async def main():
    print("JWT_ISSUER:", settings.JWT_ISSUER)
    print("JWT_AUDIENCE:", settings.JWT_AUDIENCE)
    print("DB_POOL_SIZE:", settings.DB_POOL_SIZE)
    print("DB_ISOLATION_LEVEL:", settings.DB_ISOLATION_LEVEL)
    print("PLANT_TIMEZONE:", settings.PLANT_TIMEZONE)
    print("INDUSTRIAL_DAY_START_HOUR:", settings.INDUSTRIAL_DAY_START_HOUR)
    print("LOW_STOCK_THRESHOLD:", settings.LOW_STOCK_THRESHOLD)
    print("REDIS_ENABLED:", settings.REDIS_ENABLED)
    # Check MySQL session isolation level as seen by SQLAlchemy
    async with SessionLocal() as s:
        r = await s.execute(text("SELECT @@transaction_isolation"))
        print("MySQL @@transaction_isolation:", r.scalar())

if __name__ == "__main__":
    asyncio.run(main())
