"""Repository protocol interfaces for data access."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol
from uuid import UUID

from backend.app.models.approval import ApprovalStatus, Vote
from backend.app.models.common import VoteChoice
from backend.app.models.group import Group, GroupMember

SnapshotCallback = Callable[[list[Vote]], None]
StatusCallback = Callable[[ApprovalStatus], None]
Unsubscribe = Callable[[], None]


class VoteStore(Protocol):
    """Store owning all plan votes, one per (group_id, user_id)."""

    async def upsert_vote(
        self,
        group_id: UUID,
        user_id: str,
        user_name: str,
        vote: VoteChoice,
        comment: str | None = None,
    ) -> Vote:
        """Create or replace the member's vote.

        Args:
            group_id: Group ID
            user_id: Voting member
            user_name: Display name recorded with the vote
            vote: agree or request_changes
            comment: Optional free-text comment

        Returns:
            The stored vote

        Raises:
            PersistenceError: On connectivity or constraint failure
        """
        ...

    async def list_votes(self, group_id: UUID) -> list[Vote]:
        """Return all current votes for the group.

        Raises:
            PersistenceError: If the votes could not be read
        """
        ...

    async def clear_votes(self, group_id: UUID) -> None:
        """Delete every vote for the group.

        Callers are responsible for restricting this to the group leader.

        Raises:
            PersistenceError: If the votes could not be deleted
        """
        ...

    async def subscribe(self, group_id: UUID, on_change: SnapshotCallback) -> Unsubscribe:
        """Deliver the full vote list whenever the group's votes change.

        Delivery is at-least-once and every delivery is a full snapshot.

        Args:
            group_id: Group ID
            on_change: Called with the current votes

        Returns:
            Function that stops delivery
        """
        ...

    async def subscribe_status(
        self, group_id: UUID, groups: "GroupRepository", on_status: StatusCallback
    ) -> Unsubscribe:
        """Deliver the ApprovalStatus whenever the group's votes or members change.

        The member count is re-read from groups on every delivery.

        Raises:
            GroupNotFoundError: If the group does not exist
        """
        ...


class GroupRepository(Protocol):
    """Repository for groups and their membership."""

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
        ...

    async def get_group(self, group_id: UUID) -> Group | None:
        """Get group by ID, or None if it does not exist."""
        ...

    async def add_member(self, group_id: UUID, member: GroupMember) -> Group | None:
        """Add a member (no-op if already a member).

        Returns:
            Updated group, or None if the group does not exist
        """
        ...


@dataclass
class RetryAfter:
    """Rate limit retry-after information."""

    seconds: int


class RateLimiter(Protocol):
    """Rate limiter interface."""

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            RetryAfter if over quota, None if allowed
        """
        ...
