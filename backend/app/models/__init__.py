"""Models package - re-exports for convenience."""

from backend.app.models.approval import ApprovalStatus, Vote, VoteOutcome
from backend.app.models.common import PlanState, VoteChoice
from backend.app.models.group import Group, GroupMember

__all__ = [
    # Common
    "VoteChoice",
    "PlanState",
    # Approval
    "Vote",
    "ApprovalStatus",
    "VoteOutcome",
    # Group
    "Group",
    "GroupMember",
]
