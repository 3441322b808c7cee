"""Optimistic vote reconciliation.

The locally held ApprovalStatus is one of three values:

- Confirmed(status): nothing in flight
- Pending(status, snapshot, token): a vote is shown before the store has
  confirmed it; snapshot is the last known-good status to restore on failure
- RolledBack(status, error): the last submission failed and status is the
  restored snapshot

Transitions are pure functions so they can be tested without a UI or an
event loop. OptimisticVoteReconciler drives them against a
PlanApprovalMachine and a status subscription that recounts members on
every delivery.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Union
from uuid import UUID

from backend.app.approval.aggregator import StatusKey, aggregate, status_key
from backend.app.approval.errors import VoteTimeoutError
from backend.app.approval.state_machine import PlanApprovalMachine, ensure_vote_allowed
from backend.app.config import get_settings
from backend.app.db.repositories import GroupRepository, Unsubscribe, VoteStore
from backend.app.models.approval import ApprovalStatus, Vote, VoteOutcome
from backend.app.models.common import VoteChoice, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Confirmed:
    status: ApprovalStatus


@dataclass(frozen=True)
class Pending:
    status: ApprovalStatus
    snapshot: ApprovalStatus
    token: str


@dataclass(frozen=True)
class RolledBack:
    status: ApprovalStatus
    error: BaseException


ReconcileState = Union[Confirmed, Pending, RolledBack]


def splice_vote(status: ApprovalStatus, vote: Vote) -> ApprovalStatus:
    """Replace the voter's entry (or add one) and recompute the counts."""
    approvals = [a for a in status.approvals if a.user_id != vote.user_id]
    approvals.append(vote)
    return aggregate(approvals, status.total_members)


def begin_vote(state: ReconcileState, provisional: Vote, token: str) -> Pending:
    """Show a provisional vote immediately.

    If another submission is already pending, its snapshot is kept: it is
    still the last state the store confirmed.
    """
    snapshot = state.snapshot if isinstance(state, Pending) else state.status
    return Pending(status=splice_vote(state.status, provisional), snapshot=snapshot, token=token)


def settle_success(state: ReconcileState, token: str) -> ReconcileState:
    """Keep the optimistic status once the store accepted the vote.

    Settlements for a superseded token leave the state unchanged.
    """
    if isinstance(state, Pending) and state.token == token:
        return Confirmed(status=state.status)
    return state


def settle_failure(state: ReconcileState, token: str, error: BaseException) -> ReconcileState:
    """Restore the pre-action snapshot after a failed submission.

    Settlements for a superseded token leave the state unchanged.
    """
    if isinstance(state, Pending) and state.token == token:
        return RolledBack(status=state.snapshot, error=error)
    return state


def apply_snapshot(state: ReconcileState | None, status: ApprovalStatus) -> ReconcileState:
    """Adopt an authoritative status.

    The store's snapshot always wins over optimistic state. While a vote is
    pending it also becomes the snapshot a failure rolls back to.
    """
    if isinstance(state, Pending):
        return Pending(status=status, snapshot=status, token=state.token)
    return Confirmed(status=status)


class OptimisticVoteReconciler:
    """One member's view of a group's approval status."""

    def __init__(
        self,
        machine: PlanApprovalMachine,
        group_id: UUID,
        user_id: str,
        user_name: str,
        *,
        submit_timeout: float | None = None,
    ) -> None:
        """Initialize reconciler.

        Args:
            machine: State machine used to submit votes
            group_id: Group being viewed
            user_id: Member voting from this view
            user_name: Member's display name
            submit_timeout: Seconds before an unconfirmed vote counts as failed
                (defaults to the vote_submit_timeout_sec setting)
        """
        self._machine = machine
        self._group_id = group_id
        self._user_id = user_id
        self._user_name = user_name
        if submit_timeout is None:
            submit_timeout = get_settings().vote_submit_timeout_sec
        self._submit_timeout = submit_timeout
        self._state: ReconcileState | None = None
        self._last_key: StatusKey | None = None

    @property
    def state(self) -> ReconcileState | None:
        return self._state

    @property
    def view(self) -> ApprovalStatus | None:
        """Status to render, or None before the first load."""
        return self._state.status if self._state is not None else None

    async def load(self) -> ApprovalStatus:
        """Fetch the authoritative status from the state machine."""
        status = await self._machine.get_status(self._group_id)
        self._last_key = status_key(status)
        self._state = apply_snapshot(self._state, status)
        return status

    async def attach(self, store: VoteStore, groups: GroupRepository) -> Unsubscribe:
        """Follow the group's approval status as votes and membership change.

        Returns:
            Function that stops following
        """
        if self._state is None:
            await self.load()
        return await store.subscribe_status(self._group_id, groups, self.apply_status)

    def apply_status(self, status: ApprovalStatus) -> bool:
        """Adopt an authoritative status from the store.

        Returns:
            False if it matched the last one applied
        """
        if self._state is None:
            raise RuntimeError("load() must be called before applying snapshots")

        key = status_key(status)
        if key == self._last_key:
            return False

        self._last_key = key
        self._state = apply_snapshot(self._state, status)
        return True

    async def on_snapshot(self, votes: list[Vote]) -> bool:
        """Apply a full vote snapshot, counting members as of now.

        Returns:
            False if the resulting status matched the last one applied
        """
        if self._state is None:
            raise RuntimeError("load() must be called before applying snapshots")

        total = await self._machine.member_count(self._group_id)
        return self.apply_status(aggregate(votes, total))

    async def submit(self, vote: VoteChoice, comment: str | None = None) -> VoteOutcome:
        """Show the vote immediately, then confirm it with the store.

        Raises:
            PlanLockedError: If the plan is fixed (the store is not called)
            VoteTimeoutError: If the store did not answer in time
            ApprovalError: Any other refusal or persistence failure
        """
        if self._state is None:
            raise RuntimeError("load() must be called before submitting votes")

        ensure_vote_allowed(self._state.status)

        token = uuid.uuid4().hex
        now = utc_now()
        provisional = Vote(
            id=f"temp-{token}",
            group_id=self._group_id,
            user_id=self._user_id,
            user_name=self._user_name,
            vote=vote,
            comment=comment or None,
            created_at=now,
            updated_at=now,
        )
        self._state = begin_vote(self._state, provisional, token)

        # Shielded: a timeout stops waiting but never cancels the write itself
        task = asyncio.ensure_future(
            self._machine.cast_vote(self._group_id, self._user_id, self._user_name, vote, comment)
        )
        task.add_done_callback(self._log_late_result)

        try:
            outcome = await asyncio.wait_for(asyncio.shield(task), timeout=self._submit_timeout)
        except asyncio.TimeoutError as e:
            error = VoteTimeoutError(
                f"Vote not confirmed within {self._submit_timeout:g}s"
            )
            self._state = settle_failure(self._state, token, error)
            raise error from e
        except Exception as e:
            self._state = settle_failure(self._state, token, e)
            raise

        self._state = settle_success(self._state, token)
        return outcome

    def _log_late_result(self, task: "asyncio.Future[VoteOutcome]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.info(
                f"[reconciler] group_id={self._group_id} user_id={self._user_id} "
                f"submission finished with {type(error).__name__}"
            )
