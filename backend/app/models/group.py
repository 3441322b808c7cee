"""Group models - travel groups, their leader and members."""

from collections.abc import Iterable
from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from backend.app.models.common import ensure_utc


class GroupMember(BaseModel):
    """A user's membership in a group."""

    user_id: str = Field(..., min_length=1)
    name: str
    email: str | None = None


class Group(BaseModel):
    """A collaborative travel-planning group with one leader."""

    group_id: UUID
    group_name: str = Field(..., min_length=1)
    destination: str
    start_date: date
    end_date: date
    description: str | None = None
    leader_id: str = Field(..., min_length=1)
    leader_name: str
    members: list[GroupMember] = Field(default_factory=list)
    created_at: datetime

    @field_validator("end_date")
    @classmethod
    def validate_end_after_start(cls, v: date, info: ValidationInfo) -> date:
        """Ensure end_date >= start_date."""
        if "start_date" in info.data and v < info.data["start_date"]:
            raise ValueError("end_date must be >= start_date")
        return v

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def total_members(self) -> int:
        return len(self.members)

    def is_member(self, user_id: str) -> bool:
        return any(m.user_id == user_id for m in self.members)

    def is_leader(self, user_id: str) -> bool:
        return self.leader_id == user_id

    @classmethod
    def from_row(cls, row: Any, member_rows: Iterable[Any]) -> "Group":
        """Deserialize a group_trip row and its group_member rows."""
        members = [GroupMember.model_validate(m, from_attributes=True) for m in member_rows]
        data = {
            "group_id": row.group_id,
            "group_name": row.group_name,
            "destination": row.destination,
            "start_date": row.start_date,
            "end_date": row.end_date,
            "description": row.description,
            "leader_id": row.leader_id,
            "leader_name": row.leader_name,
            "members": members,
            "created_at": row.created_at,
        }
        return cls.model_validate(data)
