"""FastAPI dependencies wiring stores, the state machine and rate limits."""

from typing import Annotated

import redis
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.auth import get_current_context
from backend.app.approval.state_machine import PlanApprovalMachine
from backend.app.config import get_settings
from backend.app.db.context import RequestContext
from backend.app.db.engine import get_session
from backend.app.db.inmemory import InMemoryRateLimiter
from backend.app.db.repositories import GroupRepository, RateLimiter, VoteStore
from backend.app.db.sql_repositories import SqlGroupRepository, SqlVoteStore
from backend.app.middleware.ratelimit import RateLimitMiddleware, create_default_bucket_map
from backend.app.ratelimit import RedisRateLimiter


async def get_vote_store(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> VoteStore:
    """Vote store bound to the request's session."""
    return SqlVoteStore(session, poll_interval=get_settings().approval_poll_interval_sec)


async def get_group_repository(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> GroupRepository:
    """Group repository bound to the request's session."""
    return SqlGroupRepository(session)


async def get_approval_machine(
    votes: Annotated[VoteStore, Depends(get_vote_store)],
    groups: Annotated[GroupRepository, Depends(get_group_repository)],
) -> PlanApprovalMachine:
    """State machine over the request's stores."""
    return PlanApprovalMachine(votes, groups)


_rate_limiters: dict[str, RateLimiter] | None = None


def get_rate_limiters() -> dict[str, RateLimiter]:
    """Get process-wide rate limiters per bucket (Redis when configured)."""
    global _rate_limiters
    if _rate_limiters is None:
        settings = get_settings()
        quotas = {"vote": settings.vote_ops_per_min, "crud": settings.crud_ops_per_min}
        if settings.redis_url:
            client = redis.from_url(settings.redis_url, decode_responses=True)  # type: ignore[no-untyped-call]
            _rate_limiters = {
                bucket: RedisRateLimiter(client, max_requests=quota)
                for bucket, quota in quotas.items()
            }
        else:
            _rate_limiters = {
                bucket: InMemoryRateLimiter(max_requests=quota)
                for bucket, quota in quotas.items()
            }
    return _rate_limiters


async def enforce_rate_limit(
    request: Request,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    limiters: Annotated[dict[str, RateLimiter], Depends(get_rate_limiters)],
) -> None:
    """Reject write requests over the caller's quota with 429."""
    middleware = RateLimitMiddleware(limiters, create_default_bucket_map())
    allowed, retry_after = middleware.check_rate_limit(request.url.path, ctx)

    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(retry_after)},
        )
