"""In-memory implementations of repository interfaces."""

import uuid
from datetime import date, datetime, timedelta

from backend.app.approval.errors import PersistenceError
from backend.app.approval.subscription import ChangeBus, subscribe_status, subscribe_votes
from backend.app.db.repositories import (
    GroupRepository,
    RetryAfter,
    SnapshotCallback,
    StatusCallback,
    Unsubscribe,
)
from backend.app.models.approval import Vote
from backend.app.models.common import VoteChoice, utc_now
from backend.app.models.group import Group, GroupMember


class InMemoryVoteStore:
    """In-memory implementation of VoteStore."""

    def __init__(self, bus: ChangeBus | None = None, poll_interval: float = 3.0) -> None:
        """Initialize store.

        Args:
            bus: Change bus to publish writes to (a private one by default)
            poll_interval: Fallback poll interval for subscriptions, in seconds
        """
        self._votes: dict[tuple[uuid.UUID, str], Vote] = {}
        self._bus = bus or ChangeBus()
        self._poll_interval = poll_interval
        self._failures: list[PersistenceError] = []

    @property
    def bus(self) -> ChangeBus:
        return self._bus

    def fail_next_writes(self, count: int = 1, message: str = "vote store unavailable") -> None:
        """Make the next `count` writes raise PersistenceError."""
        self._failures.extend(PersistenceError(message) for _ in range(count))

    def _check_failure(self) -> None:
        if self._failures:
            raise self._failures.pop(0)

    async def upsert_vote(
        self,
        group_id: uuid.UUID,
        user_id: str,
        user_name: str,
        vote: VoteChoice,
        comment: str | None = None,
    ) -> Vote:
        """Create or replace the member's vote."""
        self._check_failure()

        now = utc_now()
        existing = self._votes.get((group_id, user_id))

        record = Vote(
            id=existing.id if existing else str(uuid.uuid4()),
            group_id=group_id,
            user_id=user_id,
            user_name=user_name,
            vote=vote,
            comment=comment or None,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )

        self._votes[(group_id, user_id)] = record
        self._bus.publish(group_id)
        return record

    async def list_votes(self, group_id: uuid.UUID) -> list[Vote]:
        """Return all current votes for the group."""
        return [v for (gid, _), v in self._votes.items() if gid == group_id]

    async def clear_votes(self, group_id: uuid.UUID) -> None:
        """Delete every vote for the group."""
        self._check_failure()

        for key in [k for k in self._votes if k[0] == group_id]:
            del self._votes[key]

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


class InMemoryGroupRepository:
    """In-memory implementation of GroupRepository."""

    def __init__(self, bus: ChangeBus | None = None) -> None:
        """Initialize repository.

        Args:
            bus: Change bus to publish membership changes to (a private one by default)
        """
        self._groups: dict[uuid.UUID, Group] = {}
        self._bus = bus or ChangeBus()

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
        group = Group(
            group_id=uuid.uuid4(),
            group_name=group_name,
            destination=destination,
            start_date=start_date,
            end_date=end_date,
            description=description,
            leader_id=leader.user_id,
            leader_name=leader.name,
            members=[leader],
            created_at=utc_now(),
        )
        self._groups[group.group_id] = group
        return group

    async def get_group(self, group_id: uuid.UUID) -> Group | None:
        """Get group by ID."""
        return self._groups.get(group_id)

    async def add_member(self, group_id: uuid.UUID, member: GroupMember) -> Group | None:
        """Add a member to the group."""
        group = self._groups.get(group_id)

        if group is None:
            return None

        if group.is_member(member.user_id):
            return group

        updated = group.model_copy(update={"members": [*group.members, member]})
        self._groups[group_id] = updated
        self._bus.publish(group_id)
        return updated

    def put(self, group: Group) -> None:
        """Store a fully-formed group as-is."""
        self._groups[group.group_id] = group


class InMemoryRateLimiter:
    """In-memory implementation of RateLimiter using fixed window."""

    def __init__(self, max_requests: int, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._windows: dict[str, tuple[datetime, int]] = {}

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available."""
        # Get or create window
        if key in self._windows:
            window_start, count = self._windows[key]

            # Check if window expired
            if now >= window_start + timedelta(seconds=self._window_seconds):
                # New window
                self._windows[key] = (now, 1)
                return None

            # Within same window
            if count >= self._max_requests:
                # Over quota
                seconds_remaining = int(
                    (window_start + timedelta(seconds=self._window_seconds) - now).total_seconds()
                )
                return RetryAfter(seconds=max(1, seconds_remaining))

            # Increment count
            self._windows[key] = (window_start, count + 1)
            return None
        else:
            # First request
            self._windows[key] = (now, 1)
            return None
