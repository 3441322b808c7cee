"""SQL implementations of repository interfaces."""

import logging
import uuid
from collections.abc import Callable
from datetime import date
from typing import Any

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.approval.errors import PersistenceError
from backend.app.approval.subscription import (
    ChangeBus,
    get_change_bus,
    subscribe_status,
    subscribe_votes,
)
from backend.app.db.models import GroupMember as GroupMemberDB
from backend.app.db.models import GroupTrip, PlanApproval
from backend.app.db.repositories import (
    GroupRepository,
    SnapshotCallback,
    StatusCallback,
    Unsubscribe,
)
from backend.app.models.approval import Vote
from backend.app.models.common import VoteChoice, utc_now
from backend.app.models.group import Group, GroupMember

logger = logging.getLogger(__name__)

_UPSERT_INSERTS: dict[str, Callable[..., Any]] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _upsert_insert(dialect_name: str) -> Callable[..., Any]:
    """Dialect insert construct supporting ON CONFLICT DO UPDATE."""
    try:
        return _UPSERT_INSERTS[dialect_name]
    except KeyError:
        raise PersistenceError(f"Vote upsert not supported on {dialect_name}") from None


class SqlVoteStore:
    """SQL implementation of VoteStore over the plan_approval table."""

    def __init__(
        self,
        session: AsyncSession,
        bus: ChangeBus | None = None,
        poll_interval: float = 3.0,
    ) -> None:
        self._session = session
        self._bus = bus or get_change_bus()
        self._poll_interval = poll_interval

    async def upsert_vote(
        self,
        group_id: uuid.UUID,
        user_id: str,
        user_name: str,
        vote: VoteChoice,
        comment: str | None = None,
    ) -> Vote:
        """Create or replace the member's vote.

        A single INSERT ... ON CONFLICT (group_id, user_id) DO UPDATE, so two
        writes racing for the same member resolve as last-write-wins instead
        of a unique-constraint failure. id and created_at of an existing row
        are kept.
        """
        now = utc_now()

        try:
            insert = _upsert_insert(self._session.get_bind().dialect.name)
            stmt = insert(PlanApproval).values(
                [
                    {
                        "id": str(uuid.uuid4()),
                        "group_id": group_id,
                        "user_id": user_id,
                        "user_name": user_name,
                        "vote": vote.value,
                        "comment": comment or None,
                        "created_at": now,
                        "updated_at": now,
                    }
                ]
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["group_id", "user_id"],
                set_={
                    "user_name": stmt.excluded.user_name,
                    "vote": stmt.excluded.vote,
                    "comment": stmt.excluded.comment,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            result = await self._session.scalars(
                stmt.returning(PlanApproval),
                execution_options={"populate_existing": True},
            )
            stored = Vote.from_row(result.one())
            await self._session.commit()
        except (SQLAlchemyError, ValidationError) as e:
            await self._session.rollback()
            logger.error(f"[vote_store] upsert failed group_id={group_id} user_id={user_id}: {e}")
            raise PersistenceError(f"Failed to store vote: {type(e).__name__}") from e

        self._bus.publish(group_id)
        return stored

    async def list_votes(self, group_id: uuid.UUID) -> list[Vote]:
        """Return all current votes for the group."""
        try:
            result = await self._session.execute(
                select(PlanApproval)
                .where(PlanApproval.group_id == group_id)
                .order_by(PlanApproval.created_at)
                .execution_options(populate_existing=True)
            )
            return [Vote.from_row(row) for row in result.scalars().all()]
        except (SQLAlchemyError, ValidationError) as e:
            await self._session.rollback()
            raise PersistenceError(f"Failed to read votes: {type(e).__name__}") from e

    async def clear_votes(self, group_id: uuid.UUID) -> None:
        """Delete every vote for the group."""
        try:
            await self._session.execute(
                delete(PlanApproval).where(PlanApproval.group_id == group_id)
            )
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.error(f"[vote_store] clear failed group_id={group_id}: {e}")
            raise PersistenceError(f"Failed to clear votes: {type(e).__name__}") from e

        self._bus.publish(group_id)

    async def subscribe(self, group_id: uuid.UUID, on_change: SnapshotCallback) -> Unsubscribe:
        """Deliver the full vote list whenever the group's votes change."""
        return await subscribe_votes(
            self.list_votes, self._bus, group_id, on_change, poll_interval=self._poll_interval
        )

    async def subscribe_status(
        self, group_id: uuid.UUID, groups: GroupRepository, on_status: StatusCallback
    ) -> Unsubscribe:
        """Deliver the ApprovalStatus, recomputed from current membership."""
        return await subscribe_status(
            self.list_votes,
            groups.get_group,
            self._bus,
            group_id,
            on_status,
            poll_interval=self._poll_interval,
        )


class SqlGroupRepository:
    """SQL implementation of GroupRepository."""

    def __init__(self, session: AsyncSession, bus: ChangeBus | None = None) -> None:
        self._session = session
        self._bus = bus or get_change_bus()

    async def create_group(
        self,
        *,
        group_name: str,
        destination: str,
        start_date: date,
        end_date: date,
        description: str | None,
        leader: GroupMember,
    ) -> Group:
        """Create a group with the leader as its first member."""
        group_id = uuid.uuid4()
        group_row = GroupTrip(
            group_id=group_id,
            group_name=group_name,
            destination=destination,
            start_date=start_date,
            end_date=end_date,
            description=description,
            leader_id=leader.user_id,
            leader_name=leader.name,
            created_at=utc_now(),
        )
        self._session.add(group_row)
        self._session.add(self._member_row(group_id, leader))

        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise PersistenceError(f"Failed to create group: {type(e).__name__}") from e

        group = await self.get_group(group_id)
        if group is None:
            raise PersistenceError(f"Group {group_id} missing after create")
        return group

    async def get_group(self, group_id: uuid.UUID) -> Group | None:
        """Get group by ID."""
        try:
            result = await self._session.execute(
                select(GroupTrip).where(GroupTrip.group_id == group_id)
            )
            group_row = result.scalar_one_or_none()

            if group_row is None:
                return None

            members = await self._session.execute(
                select(GroupMemberDB)
                .where(GroupMemberDB.group_id == group_id)
                .order_by(GroupMemberDB.joined_at, GroupMemberDB.user_id)
            )
            return Group.from_row(group_row, members.scalars().all())
        except (SQLAlchemyError, ValidationError) as e:
            await self._session.rollback()
            raise PersistenceError(f"Failed to read group: {type(e).__name__}") from e

    async def add_member(self, group_id: uuid.UUID, member: GroupMember) -> Group | None:
        """Add a member to the group."""
        group = await self.get_group(group_id)

        if group is None:
            return None

        if group.is_member(member.user_id):
            return group

        self._session.add(self._member_row(group_id, member))

        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise PersistenceError(f"Failed to add member: {type(e).__name__}") from e

        self._bus.publish(group_id)
        return await self.get_group(group_id)

    @staticmethod
    def _member_row(group_id: uuid.UUID, member: GroupMember) -> GroupMemberDB:
        return GroupMemberDB(
            id=uuid.uuid4(),
            group_id=group_id,
            user_id=member.user_id,
            name=member.name,
            email=member.email,
            joined_at=utc_now(),
        )
