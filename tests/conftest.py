"""Shared pytest fixtures for all test suites."""

import os
import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import date
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from backend.app.approval.state_machine import PlanApprovalMachine
from backend.app.approval.subscription import ChangeBus
from backend.app.db.inmemory import InMemoryGroupRepository, InMemoryVoteStore
from backend.app.db.models import Base
from backend.app.models.common import utc_now
from backend.app.models.group import Group, GroupMember

LEADER_ID = "alice"
MEMBER_IDS = ("bob", "carol")


def make_group(
    leader_id: str = LEADER_ID,
    member_ids: tuple[str, ...] = MEMBER_IDS,
    group_id: uuid.UUID | None = None,
) -> Group:
    """Build a group whose first member is the leader."""
    members = [GroupMember(user_id=uid, name=uid.title()) for uid in (leader_id, *member_ids)]
    return Group(
        group_id=group_id or uuid.uuid4(),
        group_name="Lisbon Long Weekend",
        destination="Lisbon",
        start_date=date(2026, 11, 1),
        end_date=date(2026, 11, 4),
        leader_id=leader_id,
        leader_name=leader_id.title(),
        members=members,
        created_at=utc_now(),
    )


@pytest.fixture
def group_factory() -> Callable[..., Group]:
    return make_group


@pytest.fixture
def trip_group() -> Group:
    """Three-member group led by alice."""
    return make_group()


@pytest.fixture
def change_bus() -> ChangeBus:
    """Bus shared by the in-memory vote store and group repository."""
    return ChangeBus()


@pytest.fixture
def group_repo(trip_group: Group, change_bus: ChangeBus) -> InMemoryGroupRepository:
    repo = InMemoryGroupRepository(bus=change_bus)
    repo.put(trip_group)
    return repo


@pytest.fixture
def vote_store(change_bus: ChangeBus) -> InMemoryVoteStore:
    return InMemoryVoteStore(bus=change_bus, poll_interval=0.05)


@pytest.fixture
def machine(
    vote_store: InMemoryVoteStore, group_repo: InMemoryGroupRepository
) -> PlanApprovalMachine:
    return PlanApprovalMachine(vote_store, group_repo)


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with all tables created.

    A file rather than :memory: so separate sessions see the same database.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'approval.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def sqlite_session(sqlite_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSession(sqlite_engine, expire_on_commit=False) as session:
        yield session


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.

    Usage:
        @pytest.mark.postgres
        async def test_something(postgres_engine):
            async with AsyncSession(postgres_engine) as session:
                # ... test code
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    # Ensure it's a postgres URL
    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    # Convert to async driver if needed
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(
        database_url,
        poolclass=NullPool,
        echo=False,
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup: drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def postgres_session(postgres_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create async session for PostgreSQL integration tests."""
    async with AsyncSession(postgres_engine, expire_on_commit=False) as session:
        yield session
        await session.rollback()
