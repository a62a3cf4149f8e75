"""Pytest configuration and fixtures."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tenant_escalation.models.database import Base
from tests.fakes import RecordingSender, StaticDirectory, full_directory


@pytest.fixture
def directory():
    return StaticDirectory(full_directory())


@pytest.fixture
def sender():
    return RecordingSender()


@pytest_asyncio.fixture
async def session_factory():
    """Session factory over a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()
