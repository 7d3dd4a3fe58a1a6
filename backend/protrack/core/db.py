"""Async engine, session dependency and the write-transaction helper."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.exc import ResourceClosedError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession, async_sessionmaker, create_async_engine

from protrack.core.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
    isolation_level=settings.DB_ISOLATION_LEVEL,
    echo=settings.DEBUG,
)

SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an async database session."""

    async with SessionLocal() as session:
        yield session


async def _tune_mysql_session(conn: AsyncConnection) -> tuple[int, int]:
    """Switch the connection to write-path settings; returns the values to restore."""

    lock_wait = (
        await conn.exec_driver_sql("SELECT @@SESSION.innodb_lock_wait_timeout")
    ).scalar_one()
    max_exec = (await conn.exec_driver_sql("SELECT @@SESSION.max_execution_time")).scalar_one()
    for statement in (
        "SET SESSION TRANSACTION ISOLATION LEVEL REPEATABLE READ",
        f"SET SESSION innodb_lock_wait_timeout = {settings.INNODB_LOCK_WAIT_TIMEOUT_SEC}",
        f"SET SESSION MAX_EXECUTION_TIME = {settings.SELECT_MAX_EXECUTION_TIME_MS}",
    ):
        await conn.exec_driver_sql(statement)
    return int(lock_wait), int(max_exec)


async def _restore_mysql_session(conn: AsyncConnection, lock_wait: int, max_exec: int) -> None:
    try:
        for statement in (
            f"SET SESSION TRANSACTION ISOLATION LEVEL {settings.DB_ISOLATION_LEVEL}",
            f"SET SESSION innodb_lock_wait_timeout = {lock_wait}",
            f"SET SESSION MAX_EXECUTION_TIME = {max_exec}",
        ):
            await conn.exec_driver_sql(statement)
    except ResourceClosedError:
        # Closed by a retry-induced rollback; the overrides went with it.
        pass


@asynccontextmanager
async def repeatable_read_transaction(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """One transaction for a whole write: log row, ledger adjustment, audit row.

    On MySQL the block runs at REPEATABLE READ with a bounded lock wait so a
    contended dossier row fails fast instead of stalling the operator. Other
    dialects (the SQLite database used by the test suite) get a plain
    transaction.
    """

    if session.get_bind().dialect.name != "mysql":
        if session.in_transaction():
            await session.rollback()
        async with session.begin():
            yield session
        return

    # ``AsyncSession.connection()`` is a coroutine; await it and close by hand.
    conn = await session.connection()
    try:
        lock_wait, max_exec = await _tune_mysql_session(conn)
        if session.in_transaction():
            await session.rollback()
        try:
            async with session.begin():
                yield session
        finally:
            await _restore_mysql_session(conn, lock_wait, max_exec)
    finally:
        await conn.close()
