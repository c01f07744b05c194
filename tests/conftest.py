"""Shared fixtures: in-memory SQLite database and seeded deal data."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from dealflow.core.database import Base
from dealflow.models import Deal, Profile


# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def file_engine(tmp_path):
    """File-backed engine with a connection per session.

    Needed wherever workflow tasks write concurrently with the caller's
    session; the in-memory engine shares a single connection.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'dealflow.db'}",
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_provider(test_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_session(session_provider):
    """Create a test database session."""
    async with session_provider() as session:
        yield session


@pytest.fixture
async def seeded(session_provider):
    """A client with an assigned broker, a second broker and one deal."""
    async with session_provider() as session:
        broker = Profile(id="broker-1", email="broker@example.com", role="broker")
        other_broker = Profile(id="broker-2", email="broker2@example.com", role="broker")
        retired_broker = Profile(
            id="broker-3", email="old@example.com", role="broker", account_status="inactive"
        )
        session.add_all([broker, other_broker, retired_broker])
        await session.flush()

        client = Profile(
            id="client-1",
            email="client@example.com",
            first_name="Ada",
            assigned_broker="broker-1",
        )
        session.add(client)
        await session.flush()

        deal = Deal(id="deal-1", name="Bridging loan", type="bridging_finance", user_id="client-1")
        session.add(deal)
        await session.commit()

    return {"deal_id": "deal-1", "client_id": "client-1", "broker_id": "broker-1"}
