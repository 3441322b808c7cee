"""Unit tests for vote and group models."""

import uuid
from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from backend.app.models.approval import ApprovalStatus, Vote
from backend.app.models.common import PlanState, VoteChoice, ensure_utc
from backend.app.models.group import Group, GroupMember

GROUP_ID = uuid.UUID("44444444-4444-4444-4444-444444444444")


def vote_row(**overrides: object) -> dict[str, object]:
    row: dict[str, object] = {
        "id": "approval-1",
        "group_id": str(GROUP_ID),
        "user_id": "bob",
        "user_name": "Bob",
        "vote": "agree",
        "comment": None,
        "created_at": "2026-05-01T10:00:00+00:00",
        "updated_at": "2026-05-01T10:05:00+00:00",
    }
    row.update(overrides)
    return row


def test_from_row_parses_persisted_record() -> None:
    """Test a plan_approval row becomes a typed Vote."""
    vote = Vote.from_row(vote_row())

    assert vote.group_id == GROUP_ID
    assert vote.vote == VoteChoice.agree
    assert vote.updated_at == datetime(2026, 5, 1, 10, 5, tzinfo=timezone.utc)


def test_from_row_rejects_unknown_vote_value() -> None:
    """Test an unexpected vote value fails instead of being coerced."""
    with pytest.raises(ValidationError):
        Vote.from_row(vote_row(vote="maybe"))


def test_from_row_rejects_missing_column() -> None:
    """Test a row missing a required column fails fast."""
    row = vote_row()
    del row["user_id"]

    with pytest.raises(ValidationError):
        Vote.from_row(row)


def test_from_row_accepts_attribute_objects() -> None:
    """Test ORM-style objects are read through their attributes."""

    class Row:
        id = "approval-2"
        group_id = GROUP_ID
        user_id = "carol"
        user_name = "Carol"
        vote = "request_changes"
        comment = "Add a museum day"
        created_at = datetime(2026, 5, 1, 10, 0)
        updated_at = datetime(2026, 5, 1, 10, 0)

    vote = Vote.from_row(Row())

    assert vote.vote == VoteChoice.request_changes
    assert vote.comment == "Add a museum day"


def test_naive_timestamps_are_treated_as_utc() -> None:
    """Test naive datetimes (SQLite) compare equal to aware UTC ones."""
    naive = datetime(2026, 5, 1, 10, 0)

    vote = Vote.from_row(vote_row(created_at=naive, updated_at=naive))

    assert vote.created_at.tzinfo is not None
    assert vote.created_at == datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert ensure_utc(naive) == vote.updated_at


def test_vote_is_immutable() -> None:
    """Test votes cannot be mutated in place."""
    vote = Vote.from_row(vote_row())

    with pytest.raises(ValidationError):
        vote.vote = VoteChoice.request_changes  # type: ignore[misc]


def test_status_serializes_state() -> None:
    """Test the derived state is included in JSON output."""
    status = ApprovalStatus(
        approvals=[],
        total_members=2,
        agreed_count=0,
        disagreed_count=0,
        pending_count=2,
        approval_percentage=0.0,
        is_fixed=False,
    )

    assert status.model_dump()["state"] == PlanState.editable
    assert '"state":"editable"' in status.model_dump_json()


def test_status_rejects_percentage_above_one() -> None:
    with pytest.raises(ValidationError):
        ApprovalStatus(
            approvals=[],
            total_members=1,
            agreed_count=1,
            disagreed_count=0,
            pending_count=0,
            approval_percentage=1.5,
            is_fixed=True,
        )


def test_group_rejects_end_before_start() -> None:
    """Test a trip cannot end before it starts."""
    with pytest.raises(ValidationError, match="end_date"):
        Group(
            group_id=GROUP_ID,
            group_name="Backwards Trip",
            destination="Porto",
            start_date=date(2026, 6, 10),
            end_date=date(2026, 6, 1),
            leader_id="alice",
            leader_name="Alice",
            created_at=datetime(2026, 5, 1, tzinfo=timezone.utc),
        )


def test_group_membership_helpers() -> None:
    """Test leader and member lookups."""
    group = Group(
        group_id=GROUP_ID,
        group_name="Porto",
        destination="Porto",
        start_date=date(2026, 6, 1),
        end_date=date(2026, 6, 3),
        leader_id="alice",
        leader_name="Alice",
        members=[
            GroupMember(user_id="alice", name="Alice"),
            GroupMember(user_id="bob", name="Bob"),
        ],
        created_at=datetime(2026, 5, 1, tzinfo=timezone.utc),
    )

    assert group.total_members == 2
    assert group.is_member("bob") is True
    assert group.is_member("carol") is False
    assert group.is_leader("alice") is True
    assert group.is_leader("bob") is False
