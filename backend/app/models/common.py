"""Common types and enums shared across all models."""

from datetime import datetime, timezone
from enum import Enum


class VoteChoice(str, Enum):
    """A member's position on the shared group plan."""

    agree = "agree"
    request_changes = "request_changes"


class PlanState(str, Enum):
    """Lock state of a group plan, always derived from the vote set."""

    editable = "editable"
    fixed = "fixed"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
