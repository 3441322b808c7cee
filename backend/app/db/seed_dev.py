"""Dev seeding helper: a demo group matching the stub bearer tokens."""

import asyncio
import uuid
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from backend.app.db.engine import get_async_engine
from backend.app.db.models import GroupMember, GroupTrip
from backend.app.models.common import utc_now

# Fixed IDs usable as "Authorization: Bearer <user_id>:<name>"
DEV_GROUP_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
DEV_LEADER = ("dev-leader", "Dev Leader")
DEV_MEMBERS = [("dev-member-1", "Dev Member One"), ("dev-member-2", "Dev Member Two")]


async def seed_dev_group(engine: AsyncEngine | None = None) -> None:
    """Seed a three-member demo group led by DEV_LEADER.

    This function is idempotent - safe to run multiple times.

    Args:
        engine: Engine to seed (the configured database by default)
    """
    async with AsyncSession(engine or get_async_engine(), expire_on_commit=False) as session:
        result = await session.execute(select(GroupTrip).where(GroupTrip.group_id == DEV_GROUP_ID))
        group = result.scalar_one_or_none()

        if not group:
            print(f"Creating dev group with id {DEV_GROUP_ID}...")
            session.add(
                GroupTrip(
                    group_id=DEV_GROUP_ID,
                    group_name="Dev Trip",
                    destination="Lisbon",
                    start_date=date(2026, 11, 1),
                    end_date=date(2026, 11, 5),
                    leader_id=DEV_LEADER[0],
                    leader_name=DEV_LEADER[1],
                    created_at=utc_now(),
                )
            )
        else:
            print(f"Dev group already exists: {group.group_name}")

        member_result = await session.execute(
            select(GroupMember.user_id).where(GroupMember.group_id == DEV_GROUP_ID)
        )
        existing = set(member_result.scalars().all())

        for user_id, name in [DEV_LEADER, *DEV_MEMBERS]:
            if user_id in existing:
                continue
            print(f"Adding dev member {user_id}...")
            session.add(
                GroupMember(
                    id=uuid.uuid4(),
                    group_id=DEV_GROUP_ID,
                    user_id=user_id,
                    name=name,
                    joined_at=utc_now(),
                )
            )

        await session.commit()
        print("✅ Dev seeding complete")


if __name__ == "__main__":
    asyncio.run(seed_dev_group())
