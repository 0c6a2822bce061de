"""Test configuration and fixtures for tableql."""

import asyncio
import os
import sys
from typing import AsyncGenerator

import pytest
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tests.models import Base

# Try to load environment variables from .env file
load_dotenv()


@pytest.fixture(scope="session", autouse=True)
def event_loop_policy():
    """Set event loop policy for Windows compatibility."""
    if sys.platform.startswith("win"):
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    yield asyncio.get_event_loop_policy()


@pytest.fixture(scope="function")
async def engine():
    """Create a test database engine for each test function.

    TABLEQL_TEST_DATABASE_URL selects an external database (e.g. PostgreSQL via
    asyncpg); otherwise an in-memory SQLite database is used.
    """
    test_db_url = os.getenv('TABLEQL_TEST_DATABASE_URL')
    if test_db_url:
        engine = create_async_engine(
            test_db_url,
            echo=False,
            pool_size=1,
            max_overflow=0,
            pool_pre_ping=False,
        )
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        is_external_db = True
    else:
        engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        is_external_db = False

    yield engine

    if is_external_db:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a new database session for each test function."""
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session


@pytest.fixture(scope="function")
def sql_statements(engine):
    """Collect every SQL statement executed on the engine during the test."""
    from sqlalchemy import event

    statements: list = []

    def _capture(conn, cursor, statement, parameters, context, executemany):  # noqa: ANN001
        statements.append(str(statement))

    event.listen(engine.sync_engine, "before_cursor_execute", _capture)
    yield statements
    event.remove(engine.sync_engine, "before_cursor_execute", _capture)


# Import fixtures from fixtures module
from tests.fixtures import (  # noqa: E402,F401
    sample_users,
    sample_posts,
    sample_comments,
    populated_db,
)
