"""Plan approval endpoints - status, votes, unlock and the SSE status feed."""

import asyncio
import logging
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from backend.app.api.auth import get_current_context
from backend.app.api.dependencies import (
    enforce_rate_limit,
    get_approval_machine,
    get_group_repository,
    get_vote_store,
)
from backend.app.api.errors import to_http_exception
from backend.app.approval.errors import ApprovalError, GroupNotFoundError
from backend.app.approval.state_machine import PlanApprovalMachine
from backend.app.config import get_settings
from backend.app.db.context import RequestContext
from backend.app.db.repositories import GroupRepository, VoteStore
from backend.app.models.approval import ApprovalStatus, VoteOutcome
from backend.app.models.common import VoteChoice

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups/{group_id}/approval", tags=["approval"])


class CastVoteRequest(BaseModel):
    """Request body for POST /groups/{group_id}/approval/votes."""

    vote: VoteChoice
    comment: str | None = Field(None, max_length=2000)


@router.get("", response_model=ApprovalStatus)
async def get_approval_status(
    group_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    machine: Annotated[PlanApprovalMachine, Depends(get_approval_machine)],
) -> ApprovalStatus:
    """Current approval status of the group's plan."""
    try:
        return await machine.get_status(group_id)
    except ApprovalError as e:
        raise to_http_exception(e) from e


@router.post(
    "/votes",
    response_model=VoteOutcome,
    dependencies=[Depends(enforce_rate_limit)],
)
async def cast_vote(
    group_id: uuid.UUID,
    request: CastVoteRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    machine: Annotated[PlanApprovalMachine, Depends(get_approval_machine)],
) -> VoteOutcome:
    """Cast or replace the caller's vote.

    Returns 423 when the plan is fixed; the leader must unlock first.
    """
    try:
        outcome = await machine.cast_vote(
            group_id, ctx.user_id, ctx.user_name, request.vote, request.comment
        )
    except ApprovalError as e:
        raise to_http_exception(e) from e

    logger.info(
        f"[POST /groups/{group_id}/approval/votes] user_id={ctx.user_id} "
        f"vote={request.vote.value} state={outcome.status.state.value}"
    )
    return outcome


@router.post(
    "/unlock",
    response_model=ApprovalStatus,
    dependencies=[Depends(enforce_rate_limit)],
)
async def unlock_plan(
    group_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    machine: Annotated[PlanApprovalMachine, Depends(get_approval_machine)],
) -> ApprovalStatus:
    """Clear all votes (leader only), returning the plan to editable."""
    try:
        return await machine.unlock(group_id, ctx.user_id)
    except ApprovalError as e:
        raise to_http_exception(e) from e


async def approval_event_stream(
    store: VoteStore,
    groups: GroupRepository,
    group_id: uuid.UUID,
    *,
    heartbeat_sec: float,
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncGenerator[str, None]:
    """Generate SSE events: one approval_status per distinct status.

    Membership is re-read on every delivery, so a member joining mid-stream
    changes total_members in the next event.

    Args:
        store: Vote store to subscribe to
        groups: Group repository the member count is read from
        group_id: Group being watched
        heartbeat_sec: Seconds of silence before a heartbeat is sent
        is_disconnected: Returns True once the client has gone away
    """
    queue: asyncio.Queue[ApprovalStatus] = asyncio.Queue()
    unsubscribe = await store.subscribe_status(group_id, groups, queue.put_nowait)

    try:
        while not await is_disconnected():
            try:
                status = await asyncio.wait_for(queue.get(), timeout=heartbeat_sec)
            except asyncio.TimeoutError:
                yield "event: heartbeat\n"
                yield f'data: {{"ts": "{datetime.now(timezone.utc).isoformat()}"}}\n\n'
                continue

            yield "event: approval_status\n"
            yield f"data: {status.model_dump_json()}\n\n"
    finally:
        unsubscribe()


@router.get("/stream")
async def stream_approval_status(
    group_id: uuid.UUID,
    request: Request,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    groups: Annotated[GroupRepository, Depends(get_group_repository)],
    store: Annotated[VoteStore, Depends(get_vote_store)],
) -> StreamingResponse:
    """Stream approval status snapshots via SSE."""
    try:
        if await groups.get_group(group_id) is None:
            raise GroupNotFoundError(f"Group {group_id} not found")
    except ApprovalError as e:
        raise to_http_exception(e) from e

    return StreamingResponse(
        approval_event_stream(
            store,
            groups,
            group_id,
            heartbeat_sec=get_settings().approval_stream_heartbeat_sec,
            is_disconnected=request.is_disconnected,
        ),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
