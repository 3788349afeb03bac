"""
Session model: the client's record of an authenticated identity and its
validity window.
"""

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    """Roles issued by the backend in the `rol` claim."""

    ADMIN = "admin"
    KIOSCO = "kiosco"


DEFAULT_ROLE = Role.ADMIN


class AuthState(str, Enum):
    """Observable states of the SessionManager."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRY_WARNING = "expiry_warning"


@dataclass(frozen=True)
class Session:
    """
    Authenticated identity decoded from a bearer token.

    Sessions are replaced, never patched. Timestamps are epoch
    milliseconds.
    """

    user_id: int | str
    username: str
    role: str
    issued_at: int
    expires_at: int
    raw_token: str = field(repr=False)

    def is_valid(self, now_ms: int) -> bool:
        """A session is valid strictly before its expiry instant."""
        return now_ms < self.expires_at

    def time_remaining(self, now_ms: int) -> int:
        """Milliseconds until expiry, never negative."""
        return max(0, self.expires_at - now_ms)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def __repr__(self) -> str:
        return f"<Session user={self.username!r} role={self.role!r} expires_at={self.expires_at}>"
