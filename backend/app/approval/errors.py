"""Error taxonomy for the plan approval workflow."""


class ApprovalError(Exception):
    """Base class for approval workflow errors."""

    pass


class PersistenceError(ApprovalError):
    """The vote store could not complete a read or write."""

    pass


class VoteTimeoutError(PersistenceError):
    """A vote submission did not complete within the allowed time."""

    pass


class AuthorizationError(ApprovalError):
    """The caller is not allowed to perform this operation."""

    pass


class PlanLockedError(AuthorizationError):
    """A vote was attempted while the plan is fixed."""

    def __init__(self, message: str = "plan is locked") -> None:
        super().__init__(message)


class GroupNotFoundError(ApprovalError):
    """The referenced group does not exist."""

    pass
