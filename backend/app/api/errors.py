"""Translation of approval workflow errors into HTTP responses."""

from fastapi import HTTPException, status

from backend.app.approval.errors import (
    ApprovalError,
    AuthorizationError,
    GroupNotFoundError,
    PersistenceError,
    PlanLockedError,
)


def to_http_exception(error: ApprovalError) -> HTTPException:
    """Map a domain error to the HTTPException the API returns for it."""
    if isinstance(error, GroupNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")

    # PlanLockedError before AuthorizationError: it is a subclass
    if isinstance(error, PlanLockedError):
        return HTTPException(status_code=status.HTTP_423_LOCKED, detail=str(error))

    if isinstance(error, AuthorizationError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))

    if isinstance(error, PersistenceError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vote store unavailable, please retry",
        )

    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
