"""Request context carrying the caller's identity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """Authenticated caller.

    user_id is the identity provider's uid; user_name is the display name
    recorded with the caller's votes and memberships.
    """

    user_id: str
    user_name: str
