"""Approval status aggregation.

Pure functions over a vote set: no I/O, no clock, no shared state. The
same votes and member count always give the same ApprovalStatus.
"""

from collections.abc import Iterable, Sequence

from backend.app.models.approval import ApprovalStatus, Vote
from backend.app.models.common import VoteChoice

Fingerprint = tuple[tuple[str, str, str, str | None, str], ...]
StatusKey = tuple[int, Fingerprint]


def latest_votes(votes: Iterable[Vote]) -> list[Vote]:
    """Collapse the input to one vote per user.

    Keeps the record with the latest updated_at for each user_id; on equal
    timestamps the one appearing later in the input wins. Output is ordered
    by created_at, then user_id.
    """
    by_user: dict[str, Vote] = {}
    for vote in votes:
        current = by_user.get(vote.user_id)
        if current is None or vote.updated_at >= current.updated_at:
            by_user[vote.user_id] = vote

    return sorted(by_user.values(), key=lambda v: (v.created_at, v.user_id))


def aggregate(votes: Sequence[Vote], total_members: int) -> ApprovalStatus:
    """Derive counts and the lock decision from votes and group size.

    Args:
        votes: Current votes for one group, in any order, possibly with
            duplicate user_ids
        total_members: Number of members in the group

    Returns:
        ApprovalStatus for the group

    Raises:
        ValueError: If total_members is negative
    """
    if total_members < 0:
        raise ValueError(f"total_members must be >= 0, got {total_members}")

    approvals = latest_votes(votes)

    agreed_count = sum(1 for v in approvals if v.vote == VoteChoice.agree)
    disagreed_count = sum(1 for v in approvals if v.vote == VoteChoice.request_changes)
    pending_count = max(0, total_members - len(approvals))

    if total_members > 0:
        approval_percentage = min(1.0, agreed_count / total_members)
    else:
        approval_percentage = 0.0

    # total_members > 0 guards against 0 == 0 locking an empty group
    is_fixed = total_members > 0 and agreed_count == total_members

    return ApprovalStatus(
        approvals=approvals,
        total_members=total_members,
        agreed_count=agreed_count,
        disagreed_count=disagreed_count,
        pending_count=pending_count,
        approval_percentage=approval_percentage,
        is_fixed=is_fixed,
    )


def fingerprint(votes: Iterable[Vote]) -> Fingerprint:
    """Content key for a vote snapshot, independent of order and record ids."""
    return tuple(
        (
            str(v.group_id),
            v.user_id,
            v.vote.value,
            v.comment,
            v.updated_at.isoformat(),
        )
        for v in latest_votes(votes)
    )


def status_key(status: ApprovalStatus) -> StatusKey:
    """Content key for a status: the member count plus its votes."""
    return (status.total_members, fingerprint(status.approvals))
