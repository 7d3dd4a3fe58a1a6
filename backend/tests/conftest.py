import os
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

# Ensure required environment variables are present before settings import
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("REDIS_ENABLED", "false")

# Add the backend directory so `protrack` package imports resolve during tests
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.append(str(BACKEND_DIR))

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from protrack.models import Base, ProductionLog, Profile, ShippingProgram  # noqa: E402
from protrack.services.access import RequestContext  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'protrack.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def operator_big_bag():
    return RequestContext(user_id="op-bb", role="operator", platform_assignment="BIG_BAG")


@pytest.fixture
def operator_50kg():
    return RequestContext(user_id="op-50", role="operator", platform_assignment="50KG")


@pytest.fixture
def admin_ctx():
    return RequestContext(user_id="admin-1", role="admin", platform_assignment="BOTH")


async def add_program(session, file_number, *, count=12, quantity="264", platform="BIG_BAG", **extra):
    program = ShippingProgram(
        file_number=file_number,
        platform_section=platform,
        contract_count=count,
        planned_count=count,
        planned_quantity=Decimal(quantity),
        **extra,
    )
    session.add(program)
    await session.commit()
    return program


async def add_log(
    session,
    *,
    created_at,
    trucks=1,
    tonnage="22",
    shift="MORNING",
    platform="BIG_BAG",
    category="EXPORT",
    file_number=None,
    user_id="op-bb",
):
    log = ProductionLog(
        created_at=created_at,
        user_id=user_id,
        category=category,
        shift=shift,
        article_code="4301",
        platform=platform,
        truck_count=trucks,
        units_per_truck=20,
        weight_per_unit=Decimal("1.1"),
        total_tonnage=Decimal(tonnage),
        file_number=file_number,
    )
    session.add(log)
    await session.commit()
    return log


def make_profile(user_id="op-bb", role="operator", platform_assignment="BIG_BAG"):
    return Profile(
        id=user_id,
        username=user_id,
        full_name=user_id.upper(),
        role=role,
        platform_assignment=platform_assignment,
        active_flag="Y",
        created_at=datetime(2024, 1, 1),
    )
