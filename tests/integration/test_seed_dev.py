"""Integration tests for dev seeding helper."""

import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from backend.app.approval.subscription import ChangeBus
from backend.app.db.models import GroupMember, GroupTrip
from backend.app.db.seed_dev import DEV_GROUP_ID, DEV_LEADER, DEV_MEMBERS, seed_dev_group
from backend.app.db.sql_repositories import SqlGroupRepository


def test_dev_group_id_is_fixed() -> None:
    """Test the demo group has a stable ID for local bearer tokens."""
    assert DEV_GROUP_ID == uuid.UUID("00000000-0000-0000-0000-0000000000a1")


def test_dev_leader_is_not_listed_twice() -> None:
    """Test the leader is seeded once, separately from the other members."""
    member_ids = [user_id for user_id, _ in DEV_MEMBERS]

    assert DEV_LEADER[0] not in member_ids
    assert len(set(member_ids)) == len(member_ids)


@pytest.mark.asyncio
async def test_seed_creates_dev_group(sqlite_engine: AsyncEngine) -> None:
    """Test seeding creates the demo group led by the dev leader."""
    await seed_dev_group(sqlite_engine)

    async with AsyncSession(sqlite_engine, expire_on_commit=False) as session:
        group = await SqlGroupRepository(session, bus=ChangeBus()).get_group(DEV_GROUP_ID)

    assert group is not None
    assert group.leader_id == DEV_LEADER[0]
    assert group.members[0].user_id == DEV_LEADER[0]
    assert {m.user_id for m in group.members} == {DEV_LEADER[0], *(u for u, _ in DEV_MEMBERS)}


@pytest.mark.asyncio
async def test_seed_is_idempotent(sqlite_engine: AsyncEngine) -> None:
    """Test running the seed twice leaves one group with three members."""
    await seed_dev_group(sqlite_engine)
    await seed_dev_group(sqlite_engine)

    async with AsyncSession(sqlite_engine, expire_on_commit=False) as session:
        groups = await session.scalar(select(func.count()).select_from(GroupTrip))
        members = await session.scalar(
            select(func.count())
            .select_from(GroupMember)
            .where(GroupMember.group_id == DEV_GROUP_ID)
        )
        group = await SqlGroupRepository(session, bus=ChangeBus()).get_group(DEV_GROUP_ID)

    assert groups == 1
    assert members == 3
    assert group is not None
    assert group.total_members == 3
