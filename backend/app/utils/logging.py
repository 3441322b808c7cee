"""Structured logging for the plan approval workflow."""

import logging
from typing import Any
from uuid import UUID

from backend.app.models.common import PlanState

logger = logging.getLogger(__name__)


class StructuredApprovalLogger:
    """Structured logger for votes, unlocks and lock transitions."""

    def log_vote(
        self,
        group_id: UUID,
        user_id: str,
        vote: str,
        outcome: str,
        error_reason: str | None = None,
    ) -> None:
        """Log a vote attempt with structured data."""
        log_data: dict[str, Any] = {
            "group_id": str(group_id),
            "user_id": user_id,
            "vote": vote,
            "outcome": outcome,
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Plan vote: {vote} - {outcome}"

        if outcome == "accepted":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

    def log_unlock(self, group_id: UUID, user_id: str, outcome: str) -> None:
        """Log an unlock attempt with structured data."""
        log_data: dict[str, Any] = {
            "group_id": str(group_id),
            "user_id": user_id,
            "outcome": outcome,
        }

        log_msg = f"Plan unlock - {outcome}"

        if outcome == "accepted":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

    def log_transition(
        self, group_id: UUID, from_state: PlanState, to_state: PlanState, user_id: str
    ) -> None:
        """Log a lock state change."""
        log_data: dict[str, Any] = {
            "group_id": str(group_id),
            "from_state": from_state.value,
            "to_state": to_state.value,
            "user_id": user_id,
        }

        logger.info(
            f"Plan state: {from_state.value} -> {to_state.value}",
            extra={"structured": log_data},
        )
