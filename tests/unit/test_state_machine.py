"""Unit tests for the plan approval state machine."""

import uuid

import pytest

from backend.app.approval.aggregator import aggregate
from backend.app.approval.errors import (
    AuthorizationError,
    GroupNotFoundError,
    PersistenceError,
    PlanLockedError,
)
from backend.app.approval.state_machine import (
    PlanApprovalMachine,
    ensure_can_unlock,
    ensure_vote_allowed,
)
from backend.app.db.inmemory import InMemoryVoteStore
from backend.app.models.common import PlanState, VoteChoice
from backend.app.models.group import Group


async def agree_all(machine: PlanApprovalMachine, group: Group) -> None:
    for member in group.members:
        await machine.cast_vote(group.group_id, member.user_id, member.name, VoteChoice.agree)


def test_ensure_vote_allowed_passes_when_editable() -> None:
    """Test votes are allowed on an editable plan."""
    ensure_vote_allowed(aggregate([], 3))


def test_ensure_can_unlock_refuses_member(trip_group: Group) -> None:
    """Test only the leader passes the unlock guard."""
    ensure_can_unlock(trip_group, "alice")

    with pytest.raises(AuthorizationError, match="leader"):
        ensure_can_unlock(trip_group, "bob")


@pytest.mark.asyncio
async def test_initial_status_is_editable(machine: PlanApprovalMachine, trip_group: Group) -> None:
    """Test a fresh group has no votes and every member pending."""
    status = await machine.get_status(trip_group.group_id)

    assert status.state == PlanState.editable
    assert status.total_members == 3
    assert status.pending_count == 3


@pytest.mark.asyncio
async def test_vote_updates_counts(machine: PlanApprovalMachine, trip_group: Group) -> None:
    """Test a single vote is stored and counted."""
    outcome = await machine.cast_vote(
        trip_group.group_id, "bob", "Bob", VoteChoice.request_changes, "Hotel is too far out"
    )

    assert outcome.vote.user_id == "bob"
    assert outcome.vote.comment == "Hotel is too far out"
    assert outcome.status.disagreed_count == 1
    assert outcome.status.pending_count == 2
    assert outcome.transitioned is False


@pytest.mark.asyncio
async def test_last_agree_fixes_plan(machine: PlanApprovalMachine, trip_group: Group) -> None:
    """Test the vote completing unanimous agreement locks the plan."""
    await machine.cast_vote(trip_group.group_id, "alice", "Alice", VoteChoice.agree)
    await machine.cast_vote(trip_group.group_id, "bob", "Bob", VoteChoice.agree)

    outcome = await machine.cast_vote(trip_group.group_id, "carol", "Carol", VoteChoice.agree)

    assert outcome.transitioned is True
    assert outcome.status.is_fixed is True
    assert outcome.status.state == PlanState.fixed


@pytest.mark.asyncio
async def test_revote_replaces_previous_vote(
    machine: PlanApprovalMachine, trip_group: Group, vote_store: InMemoryVoteStore
) -> None:
    """Test changing a vote keeps one record per member."""
    first = await machine.cast_vote(
        trip_group.group_id, "bob", "Bob", VoteChoice.request_changes, "Add a beach day"
    )
    second = await machine.cast_vote(trip_group.group_id, "bob", "Bob", VoteChoice.agree)

    votes = await vote_store.list_votes(trip_group.group_id)

    assert len(votes) == 1
    assert second.vote.id == first.vote.id
    assert second.vote.comment is None
    assert second.status.agreed_count == 1
    assert second.status.disagreed_count == 0


@pytest.mark.asyncio
async def test_vote_refused_while_fixed(machine: PlanApprovalMachine, trip_group: Group) -> None:
    """Test no member can change a vote once the plan is fixed."""
    await agree_all(machine, trip_group)

    with pytest.raises(PlanLockedError, match="plan is locked"):
        await machine.cast_vote(trip_group.group_id, "bob", "Bob", VoteChoice.request_changes)


@pytest.mark.asyncio
async def test_leader_vote_refused_while_fixed(
    machine: PlanApprovalMachine, trip_group: Group, vote_store: InMemoryVoteStore
) -> None:
    """Test the leader has no exemption from the lock."""
    await agree_all(machine, trip_group)
    before = await vote_store.list_votes(trip_group.group_id)

    with pytest.raises(PlanLockedError):
        await machine.cast_vote(trip_group.group_id, "alice", "Alice", VoteChoice.request_changes)

    assert await vote_store.list_votes(trip_group.group_id) == before


@pytest.mark.asyncio
async def test_non_member_cannot_vote(machine: PlanApprovalMachine, trip_group: Group) -> None:
    """Test votes from outside the group are refused."""
    with pytest.raises(AuthorizationError, match="members"):
        await machine.cast_vote(trip_group.group_id, "mallory", "Mallory", VoteChoice.agree)

    status = await machine.get_status(trip_group.group_id)
    assert status.approvals == []


@pytest.mark.asyncio
async def test_leader_unlock_clears_votes(machine: PlanApprovalMachine, trip_group: Group) -> None:
    """Test unlock returns the plan to editable with no votes."""
    await agree_all(machine, trip_group)

    status = await machine.unlock(trip_group.group_id, "alice")

    assert status.state == PlanState.editable
    assert status.approvals == []
    assert status.pending_count == trip_group.total_members

    reloaded = await machine.get_status(trip_group.group_id)
    assert reloaded == status


@pytest.mark.asyncio
async def test_non_leader_unlock_refused(machine: PlanApprovalMachine, trip_group: Group) -> None:
    """Test a member cannot unlock and the votes stay in place."""
    await agree_all(machine, trip_group)

    with pytest.raises(AuthorizationError):
        await machine.unlock(trip_group.group_id, "bob")

    status = await machine.get_status(trip_group.group_id)
    assert status.is_fixed is True
    assert len(status.approvals) == 3


@pytest.mark.asyncio
async def test_voting_resumes_after_unlock(machine: PlanApprovalMachine, trip_group: Group) -> None:
    """Test members can vote again after the leader unlocks."""
    await agree_all(machine, trip_group)
    await machine.unlock(trip_group.group_id, "alice")

    outcome = await machine.cast_vote(
        trip_group.group_id, "carol", "Carol", VoteChoice.request_changes, "Swap day 2 and 3"
    )

    assert outcome.status.disagreed_count == 1
    assert outcome.status.pending_count == 2


@pytest.mark.asyncio
async def test_leader_can_unlock_editable_plan(
    machine: PlanApprovalMachine, trip_group: Group
) -> None:
    """Test unlock on an editable plan simply clears the votes."""
    await machine.cast_vote(trip_group.group_id, "bob", "Bob", VoteChoice.agree)

    status = await machine.unlock(trip_group.group_id, "alice")

    assert status.approvals == []
    assert status.is_fixed is False


@pytest.mark.asyncio
async def test_persistence_failure_propagates(
    machine: PlanApprovalMachine, trip_group: Group, vote_store: InMemoryVoteStore
) -> None:
    """Test a store failure surfaces and leaves no vote behind."""
    vote_store.fail_next_writes()

    with pytest.raises(PersistenceError):
        await machine.cast_vote(trip_group.group_id, "bob", "Bob", VoteChoice.agree)

    assert await vote_store.list_votes(trip_group.group_id) == []


@pytest.mark.asyncio
async def test_failed_unlock_keeps_plan_fixed(
    machine: PlanApprovalMachine, trip_group: Group, vote_store: InMemoryVoteStore
) -> None:
    """Test a failed clear leaves the plan fixed."""
    await agree_all(machine, trip_group)
    vote_store.fail_next_writes()

    with pytest.raises(PersistenceError):
        await machine.unlock(trip_group.group_id, "alice")

    assert (await machine.get_status(trip_group.group_id)).is_fixed is True


@pytest.mark.asyncio
async def test_unknown_group(machine: PlanApprovalMachine) -> None:
    """Test operations on a missing group raise GroupNotFoundError."""
    missing = uuid.uuid4()

    with pytest.raises(GroupNotFoundError):
        await machine.get_status(missing)

    with pytest.raises(GroupNotFoundError):
        await machine.cast_vote(missing, "alice", "Alice", VoteChoice.agree)

    with pytest.raises(GroupNotFoundError):
        await machine.unlock(missing, "alice")
