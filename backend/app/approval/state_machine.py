"""Plan approval state machine.

A plan is either editable or fixed, and the state is never stored: it is
recomputed from the vote set on every call.

    editable --(last member agrees)--> fixed
    fixed    --(leader unlocks)------> editable   (all votes cleared)

While fixed, every vote is refused, including the leader's own. The
leader's only privilege is unlock.
"""

import time
from collections.abc import Awaitable
from typing import TypeVar
from uuid import UUID

from backend.app.approval.aggregator import aggregate
from backend.app.approval.errors import (
    AuthorizationError,
    GroupNotFoundError,
    PersistenceError,
    PlanLockedError,
)
from backend.app.db.repositories import GroupRepository, VoteStore
from backend.app.models.approval import ApprovalStatus, VoteOutcome
from backend.app.models.common import PlanState, VoteChoice
from backend.app.models.group import Group
from backend.app.utils.logging import StructuredApprovalLogger
from backend.app.utils.metrics import PrometheusApprovalMetrics

T = TypeVar("T")


def ensure_vote_allowed(status: ApprovalStatus) -> None:
    """Refuse votes on a fixed plan.

    Raises:
        PlanLockedError: If the plan is fixed
    """
    if status.is_fixed:
        raise PlanLockedError()


def ensure_can_unlock(group: Group, caller_id: str) -> None:
    """Only the group leader may unlock.

    Raises:
        AuthorizationError: If the caller is not the leader
    """
    if not group.is_leader(caller_id):
        raise AuthorizationError("Only the group leader can unlock the plan")


class PlanApprovalMachine:
    """Governs votes and unlocks for group plans."""

    def __init__(
        self,
        votes: VoteStore,
        groups: GroupRepository,
        *,
        metrics: PrometheusApprovalMetrics | None = None,
        log: StructuredApprovalLogger | None = None,
    ) -> None:
        """Initialize state machine.

        Args:
            votes: Vote store (source of truth for the lock state)
            groups: Group repository (membership and leader)
            metrics: Metrics sink
            log: Structured logger
        """
        self._votes = votes
        self._groups = groups
        self._metrics = metrics or PrometheusApprovalMetrics()
        self._log = log or StructuredApprovalLogger()

    async def get_status(self, group_id: UUID) -> ApprovalStatus:
        """Return the current approval status of the group's plan.

        Raises:
            GroupNotFoundError: If the group does not exist
            PersistenceError: If the votes could not be read
        """
        group = await self._load_group(group_id)
        return await self._status_for(group)

    async def member_count(self, group_id: UUID) -> int:
        """Current number of group members.

        Raises:
            GroupNotFoundError: If the group does not exist
        """
        group = await self._load_group(group_id)
        return group.total_members

    async def cast_vote(
        self,
        group_id: UUID,
        user_id: str,
        user_name: str,
        vote: VoteChoice,
        comment: str | None = None,
    ) -> VoteOutcome:
        """Record a member's vote, locking the plan if everyone agreed.

        Raises:
            GroupNotFoundError: If the group does not exist
            AuthorizationError: If the caller is not a member
            PlanLockedError: If the plan is already fixed
            PersistenceError: If the vote could not be stored
        """
        group = await self._load_group(group_id)

        if not group.is_member(user_id):
            self._reject_vote(group_id, user_id, vote, "not_member")
            raise AuthorizationError("Only group members can vote on the plan")

        before = await self._status_for(group)

        try:
            ensure_vote_allowed(before)
        except PlanLockedError:
            self._reject_vote(group_id, user_id, vote, "locked")
            raise

        try:
            stored = await self._timed(
                "upsert_vote",
                self._votes.upsert_vote(group_id, user_id, user_name, vote, comment),
            )
        except PersistenceError as e:
            self._reject_vote(group_id, user_id, vote, "persistence_error", str(e))
            raise

        after = await self._status_for(group)
        transitioned = before.state != after.state

        self._metrics.inc_vote(vote.value, "accepted")
        self._log.log_vote(group_id, user_id, vote.value, "accepted")

        if transitioned:
            self._record_transition(group_id, before.state, after.state, user_id)

        return VoteOutcome(vote=stored, status=after, transitioned=transitioned)

    async def unlock(self, group_id: UUID, caller_id: str) -> ApprovalStatus:
        """Clear every vote, returning the plan to editable.

        Raises:
            GroupNotFoundError: If the group does not exist
            AuthorizationError: If the caller is not the leader
            PersistenceError: If the votes could not be cleared
        """
        group = await self._load_group(group_id)

        try:
            ensure_can_unlock(group, caller_id)
        except AuthorizationError:
            self._metrics.inc_unlock("forbidden")
            self._log.log_unlock(group_id, caller_id, "forbidden")
            raise

        before = await self._status_for(group)

        try:
            await self._timed("clear_votes", self._votes.clear_votes(group_id))
        except PersistenceError:
            self._metrics.inc_unlock("persistence_error")
            self._log.log_unlock(group_id, caller_id, "persistence_error")
            raise

        after = aggregate([], group.total_members)

        self._metrics.inc_unlock("accepted")
        self._log.log_unlock(group_id, caller_id, "accepted")

        if before.state != after.state:
            self._record_transition(group_id, before.state, after.state, caller_id)

        return after

    async def _load_group(self, group_id: UUID) -> Group:
        group = await self._groups.get_group(group_id)
        if group is None:
            raise GroupNotFoundError(f"Group {group_id} not found")
        return group

    async def _status_for(self, group: Group) -> ApprovalStatus:
        votes = await self._timed("list_votes", self._votes.list_votes(group.group_id))
        return aggregate(votes, group.total_members)

    async def _timed(self, operation: str, call: Awaitable[T]) -> T:
        start = time.perf_counter()
        outcome = "error"
        try:
            result = await call
            outcome = "success"
            return result
        finally:
            latency_ms = (time.perf_counter() - start) * 1000
            self._metrics.record_store_latency(operation, outcome, latency_ms)

    def _reject_vote(
        self,
        group_id: UUID,
        user_id: str,
        vote: VoteChoice,
        reason: str,
        detail: str | None = None,
    ) -> None:
        self._metrics.inc_vote(vote.value, reason)
        self._log.log_vote(group_id, user_id, vote.value, reason, error_reason=detail)

    def _record_transition(
        self, group_id: UUID, from_state: PlanState, to_state: PlanState, user_id: str
    ) -> None:
        self._metrics.inc_transition(from_state.value, to_state.value)
        self._log.log_transition(group_id, from_state, to_state, user_id)
