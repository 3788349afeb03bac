"""
Role-based route guard.

Decides whether a navigation must be redirected, given the session state
and what the page declares about itself. The decision is a pure function;
RouteGuard wraps it with the "redirect once per navigation" flag.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Optional

from panel.config import Settings, get_settings
from panel.models.session import DEFAULT_ROLE, Role

if TYPE_CHECKING:
    from panel.services.session import SessionManager

logger = logging.getLogger(__name__)


ROUTE_ACCESS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        Role.ADMIN.value: ("/inicio", "/productos", "/pagina", "/estadisticas", "/usuarios"),
        Role.KIOSCO.value: ("/inicio",),
    }
)


@dataclass(frozen=True)
class PageAccess:
    """What a page declares about who may see it."""

    requires_auth: bool
    allowed_roles: Optional[tuple[str, ...]] = None
    redirect_to: Optional[str] = None

    @classmethod
    def protected(cls, *roles: str | Role) -> "PageAccess":
        """Page that needs a session, optionally limited to some roles."""
        allowed = tuple(_role_value(r) for r in roles) or None
        return cls(requires_auth=True, allowed_roles=allowed)

    @classmethod
    def public(cls, redirect_to: Optional[str] = None) -> "PageAccess":
        """Public-only page (login) that sends authenticated users elsewhere."""
        return cls(requires_auth=False, redirect_to=redirect_to)


def _role_value(role: str | Role) -> str:
    return role.value if isinstance(role, Role) else str(role).lower()


def allowed_paths(role: Optional[str], table: Mapping[str, Iterable[str]] = ROUTE_ACCESS) -> tuple[str, ...]:
    """Routes a role may visit. Roles missing from the table use admin's entry."""
    entry = table.get(role) if role else None
    if entry is None:
        entry = table[DEFAULT_ROLE.value]
    return tuple(entry)


def normalize_path(path: str) -> str:
    """Strip query, fragment and trailing slash: "/inicio/?x=1" -> "/inicio"."""
    path = path.split("?", 1)[0].split("#", 1)[0]
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def resolve_redirect(
    *,
    is_authenticated: bool,
    role: Optional[str],
    path: str,
    page: PageAccess,
    login_route: str = "/login",
    home_route: str = "/inicio",
    table: Mapping[str, Iterable[str]] = ROUTE_ACCESS,
) -> Optional[str]:
    """
    Return the path to redirect to, or None to stay.

    1. auth required, no valid session      -> login route
    2. page roles exclude the user's role   -> home route
    3. path not in the role's access table  -> home route
    4. public-only page, valid session      -> page.redirect_to or home
    5. otherwise                            -> None
    Rules 2 and 3 only apply to pages that require authentication.
    """
    path = normalize_path(path)

    if page.requires_auth and not is_authenticated:
        target = login_route
    elif page.requires_auth and page.allowed_roles is not None and (role or DEFAULT_ROLE.value) not in page.allowed_roles:
        target = home_route
    elif page.requires_auth and path not in allowed_paths(role, table):
        target = home_route
    elif not page.requires_auth and is_authenticated:
        target = page.redirect_to or home_route
    else:
        return None

    if normalize_path(target) == path:
        return None
    return target


class RouteGuard:
    """
    Stateful wrapper around resolve_redirect bound to a SessionManager.

    evaluate() redirects at most once until route_changed() is called, so
    state that settles asynchronously after the first decision cannot
    cause a redirect loop.
    """

    def __init__(
        self,
        sessions: "SessionManager",
        navigate: Callable[[str], Any],
        *,
        settings: Optional[Settings] = None,
        table: Mapping[str, Iterable[str]] = ROUTE_ACCESS,
    ):
        self.settings = settings or getattr(sessions, "settings", None) or get_settings()
        self._sessions = sessions
        self._navigate = navigate
        self._table = table
        self._has_redirected = False

    @property
    def has_redirected(self) -> bool:
        return self._has_redirected

    def evaluate(self, path: str, page: PageAccess) -> Optional[str]:
        """Apply the guard for the current page. Returns the redirect target, if any."""
        if self._sessions.is_loading or self._has_redirected:
            return None

        target = resolve_redirect(
            is_authenticated=self._sessions.is_authenticated,
            role=self._sessions.role,
            path=path,
            page=page,
            login_route=self.settings.login_route,
            home_route=self.settings.home_route,
            table=self._table,
        )
        if target is None:
            return None

        self._has_redirected = True
        logger.info("Redirecting %s -> %s (role=%s)", path, target, self._sessions.role)
        self._navigate(target)
        return target

    def route_changed(self) -> None:
        """Call when navigation completes; re-enables redirects."""
        self._has_redirected = False
