"""Vote snapshot subscriptions.

Two independent triggers feed the same apply function:

- push: a ChangeBus signal published after every successful vote write or
  membership change
- poll: a periodic re-fetch, in case a push is never delivered

Deliveries are full snapshots and are deduplicated by content, so it does
not matter which trigger fired or how often.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, Generic, TypeVar
from uuid import UUID

from backend.app.approval.aggregator import aggregate, fingerprint, status_key
from backend.app.approval.errors import ApprovalError, GroupNotFoundError
from backend.app.db.repositories import SnapshotCallback, StatusCallback, Unsubscribe
from backend.app.models.approval import ApprovalStatus, Vote
from backend.app.models.group import Group

logger = logging.getLogger(__name__)

T = TypeVar("T")

ChangeListener = Callable[[UUID], None]


class ChangeBus:
    """Process-local pub/sub of "group changed" signals, keyed by group."""

    def __init__(self) -> None:
        self._listeners: dict[UUID, list[ChangeListener]] = defaultdict(list)

    def listen(self, group_id: UUID, listener: ChangeListener) -> Unsubscribe:
        """Register a listener for one group.

        Returns:
            Function that removes the listener
        """
        self._listeners[group_id].append(listener)

        def remove() -> None:
            listeners = self._listeners.get(group_id)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[group_id]

        return remove

    def publish(self, group_id: UUID) -> None:
        """Signal every listener of the group that its votes or members changed."""
        for listener in list(self._listeners.get(group_id, ())):
            listener(group_id)

    def listener_count(self, group_id: UUID) -> int:
        return len(self._listeners.get(group_id, ()))


_change_bus: ChangeBus | None = None


def get_change_bus() -> ChangeBus:
    """Get the process-wide change bus."""
    global _change_bus
    if _change_bus is None:
        _change_bus = ChangeBus()
    return _change_bus


class VoteSubscription(Generic[T]):
    """Delivers distinct snapshots (vote lists by default) for one group."""

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        on_change: Callable[[T], None],
        *,
        poll_interval: float,
        key: Callable[[T], Hashable] | None = None,
        group_id: UUID | None = None,
    ) -> None:
        """Initialize subscription.

        Args:
            fetch: Coroutine returning the current snapshot
            on_change: Called with each distinct snapshot
            poll_interval: Seconds between fallback polls
            key: Content key used for deduplication (vote fingerprint by default)
            group_id: Group ID, for logging
        """
        self._fetch = fetch
        self._on_change = on_change
        self._poll_interval = poll_interval
        self._key: Callable[[Any], Hashable] = key if key is not None else fingerprint
        self._group_id = group_id
        self._wake = asyncio.Event()
        self._last: Hashable | None = None
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    def notify(self, _group_id: UUID | None = None) -> None:
        """Push trigger: wake the loop for an immediate re-fetch."""
        self._wake.set()

    def apply(self, snapshot: T) -> bool:
        """Deliver the snapshot unless identical in content to the last one.

        Returns:
            True if on_change was called
        """
        key = self._key(snapshot)
        if key == self._last:
            return False
        self._last = key
        self._on_change(snapshot)
        return True

    async def refresh(self) -> bool:
        """Fetch the current snapshot and apply it."""
        snapshot = await self._fetch()
        return self.apply(snapshot)

    async def start(self) -> None:
        """Deliver the initial snapshot and start the trigger loop.

        Raises:
            ApprovalError: If the initial snapshot could not be fetched
        """
        await self.refresh()
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while not self._closed:
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()

            if self._closed:
                break

            try:
                await self.refresh()
            except ApprovalError as e:
                logger.warning(
                    f"[approval_feed] group_id={self._group_id} refresh failed, "
                    f"retrying next cycle: {e}"
                )
            except Exception:
                logger.exception(
                    f"[approval_feed] group_id={self._group_id} unexpected error in "
                    f"refresh, retrying next cycle"
                )

    def close(self) -> None:
        """Stop delivering snapshots."""
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            self._task = None

    @property
    def closed(self) -> bool:
        return self._closed


async def _subscribe(
    subscription: VoteSubscription[Any], bus: ChangeBus, group_id: UUID
) -> Unsubscribe:
    stop_listening = bus.listen(group_id, subscription.notify)

    try:
        await subscription.start()
    except Exception:
        stop_listening()
        subscription.close()
        raise

    def unsubscribe() -> None:
        stop_listening()
        subscription.close()

    return unsubscribe


async def subscribe_votes(
    fetch: Callable[[UUID], Awaitable[list[Vote]]],
    bus: ChangeBus,
    group_id: UUID,
    on_change: SnapshotCallback,
    *,
    poll_interval: float,
) -> Unsubscribe:
    """Subscribe to a group's votes through push and poll.

    Args:
        fetch: Store read, e.g. store.list_votes
        bus: Change bus the store publishes to
        group_id: Group ID
        on_change: Called with each distinct snapshot
        poll_interval: Seconds between fallback polls

    Returns:
        Function that stops delivery
    """

    async def fetch_group_votes() -> list[Vote]:
        return await fetch(group_id)

    subscription: VoteSubscription[list[Vote]] = VoteSubscription(
        fetch_group_votes, on_change, poll_interval=poll_interval, group_id=group_id
    )
    return await _subscribe(subscription, bus, group_id)


async def subscribe_status(
    fetch_votes: Callable[[UUID], Awaitable[list[Vote]]],
    fetch_group: Callable[[UUID], Awaitable[Group | None]],
    bus: ChangeBus,
    group_id: UUID,
    on_status: StatusCallback,
    *,
    poll_interval: float,
) -> Unsubscribe:
    """Subscribe to a group's ApprovalStatus through push and poll.

    Membership is re-read on every delivery, so a member joining changes
    total_members (and possibly is_fixed) even when no vote changed.

    Raises:
        GroupNotFoundError: If the group does not exist on subscribe
        PersistenceError: If the initial snapshot could not be fetched
    """

    async def fetch_status() -> ApprovalStatus:
        group = await fetch_group(group_id)
        if group is None:
            raise GroupNotFoundError(f"Group {group_id} not found")
        votes = await fetch_votes(group_id)
        return aggregate(votes, group.total_members)

    subscription: VoteSubscription[ApprovalStatus] = VoteSubscription(
        fetch_status, on_status, poll_interval=poll_interval, key=status_key, group_id=group_id
    )
    return await _subscribe(subscription, bus, group_id)
