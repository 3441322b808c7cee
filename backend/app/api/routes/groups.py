"""Group endpoints - create, fetch and join travel groups."""

import logging
import uuid
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, ValidationInfo, field_validator

from backend.app.api.auth import get_current_context
from backend.app.api.dependencies import enforce_rate_limit, get_group_repository
from backend.app.api.errors import to_http_exception
from backend.app.approval.errors import GroupNotFoundError, PersistenceError
from backend.app.db.context import RequestContext
from backend.app.db.repositories import GroupRepository
from backend.app.models.group import Group, GroupMember

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["groups"])


class CreateGroupRequest(BaseModel):
    """Request body for POST /groups."""

    group_name: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    description: str | None = None

    @field_validator("end_date")
    @classmethod
    def validate_end_after_start(cls, v: date, info: ValidationInfo) -> date:
        """Ensure end_date >= start_date."""
        if "start_date" in info.data and v < info.data["start_date"]:
            raise ValueError("end_date must be >= start_date")
        return v


class JoinGroupRequest(BaseModel):
    """Request body for POST /groups/{group_id}/members."""

    email: str | None = None


@router.post(
    "",
    response_model=Group,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_rate_limit)],
)
async def create_group(
    request: CreateGroupRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    groups: Annotated[GroupRepository, Depends(get_group_repository)],
) -> Group:
    """Create a group led by the caller."""
    leader = GroupMember(user_id=ctx.user_id, name=ctx.user_name)

    try:
        group = await groups.create_group(
            group_name=request.group_name,
            destination=request.destination,
            start_date=request.start_date,
            end_date=request.end_date,
            description=request.description,
            leader=leader,
        )
    except PersistenceError as e:
        raise to_http_exception(e) from e

    logger.info(f"[POST /groups] group_id={group.group_id} leader_id={ctx.user_id}")
    return group


@router.get("/{group_id}", response_model=Group)
async def get_group(
    group_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    groups: Annotated[GroupRepository, Depends(get_group_repository)],
) -> Group:
    """Fetch a group with its members."""
    try:
        group = await groups.get_group(group_id)
    except PersistenceError as e:
        raise to_http_exception(e) from e

    if group is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")

    return group


@router.post(
    "/{group_id}/members",
    response_model=Group,
    dependencies=[Depends(enforce_rate_limit)],
)
async def join_group(
    group_id: uuid.UUID,
    request: JoinGroupRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    groups: Annotated[GroupRepository, Depends(get_group_repository)],
) -> Group:
    """Add the caller to the group (no-op if already a member)."""
    member = GroupMember(user_id=ctx.user_id, name=ctx.user_name, email=request.email)

    try:
        group = await groups.add_member(group_id, member)
    except PersistenceError as e:
        raise to_http_exception(e) from e

    if group is None:
        raise to_http_exception(GroupNotFoundError(f"Group {group_id} not found"))

    logger.info(f"[POST /groups/{group_id}/members] user_id={ctx.user_id}")
    return group
