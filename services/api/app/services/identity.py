"""Caller identity handed over by the upstream identity provider.

The API never inspects credentials: an auth proxy in front of it verifies
the session and forwards the user id, display name and avatar.
"""

from dataclasses import dataclass

from app.errors import AuthRequiredError


@dataclass(frozen=True)
class CallerIdentity:
    id: str | None = None
    name: str | None = None
    avatar_url: str | None = None
    authenticated: bool = False

    @property
    def viewer_id(self) -> str | None:
        """Id to personalize reads with, or None for anonymous callers."""
        return self.id if self.authenticated and self.id else None


ANONYMOUS = CallerIdentity()


def require_authenticated(caller: CallerIdentity | None) -> CallerIdentity:
    """Return the caller if it is a known user, else raise AuthRequiredError."""
    if caller is None or not caller.authenticated or not caller.id:
        raise AuthRequiredError()
    return caller
