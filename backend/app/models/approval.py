"""Approval models - plan votes and the status derived from them."""

from collections.abc import Mapping
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from backend.app.models.common import PlanState, VoteChoice, ensure_utc


class Vote(BaseModel):
    """One member's vote on a group plan.

    At most one vote exists per (group_id, user_id); re-voting replaces it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    group_id: UUID
    user_id: str = Field(..., min_length=1)
    user_name: str
    vote: VoteChoice
    comment: str | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        """Store all timestamps as aware UTC."""
        return ensure_utc(v)

    @classmethod
    def from_row(cls, row: Any) -> "Vote":
        """Deserialize a persisted plan_approval row.

        Accepts either a mapping (column name -> value) or an ORM object.
        Missing or mistyped columns raise pydantic.ValidationError instead of
        being coerced to defaults.
        """
        if isinstance(row, Mapping):
            return cls.model_validate(dict(row))
        return cls.model_validate(row, from_attributes=True)


class ApprovalStatus(BaseModel):
    """Approval projection computed from (votes, total_members).

    Never persisted; recompute it whenever the vote set changes.
    """

    model_config = ConfigDict(frozen=True)

    approvals: list[Vote]
    total_members: int = Field(..., ge=0)
    agreed_count: int = Field(..., ge=0)
    disagreed_count: int = Field(..., ge=0)
    pending_count: int = Field(..., ge=0)
    approval_percentage: float = Field(..., ge=0.0, le=1.0)
    is_fixed: bool

    @computed_field  # type: ignore[prop-decorator]
    @property
    def state(self) -> PlanState:
        """Lock state implied by is_fixed."""
        return PlanState.fixed if self.is_fixed else PlanState.editable

    def vote_for(self, user_id: str) -> Vote | None:
        """Return the given member's vote, if any."""
        for approval in self.approvals:
            if approval.user_id == user_id:
                return approval
        return None


class VoteOutcome(BaseModel):
    """Result of a successful vote: the stored vote and the new status."""

    vote: Vote
    status: ApprovalStatus
    transitioned: bool = Field(
        False, description="True when this vote moved the plan from editable to fixed"
    )
