"""
Session manager: owns the authentication state of the running client.

State machine:
    UNAUTHENTICATED -> AUTHENTICATING -> AUTHENTICATED -> (EXPIRY_WARNING) -> UNAUTHENTICATED

Entering AUTHENTICATED arms two timers owned by the active session: a
warning at expires_at - warning window and a forced logout at expires_at.
Every exit path (logout, replacement, expiry, teardown) cancels them.
Timers need a running event loop; a session restored before the loop
starts arms them on `async with` or ensure_timers().

A login that is still waiting on the backend when logout(), teardown() or
a newer login() runs is discarded when its response arrives.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Optional

from pydantic import ValidationError

from panel.config import Settings, get_settings
from panel.exceptions import AuthError, InvalidCredentialsError, TokenDecodeError, TokenExpiredError
from panel.models.session import AuthState, Session
from panel.schemas.auth import LoginRequest
from panel.services.auth import AuthClient
from panel.services.timers import SessionTimers
from panel.services.token import load_session
from panel.services.token_store import TokenStore

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Su sesión ha expirado. Por favor, inicie sesión nuevamente."
SESSION_WARNING_MESSAGE = "Su sesión expirará en {minutes} minutos. Guarde su trabajo."


@dataclass(frozen=True)
class SessionNotice:
    """User-facing condition raised by the manager (warning, session_expired, error)."""

    kind: str
    message: str


Navigate = Callable[[str], Any]
NoticeHandler = Callable[[SessionNotice], Any]
StateListener = Callable[[AuthState], Any]


def format_time_remaining(milliseconds: int) -> str:
    """Format a countdown as "Xh Ym" for the navbar."""
    if milliseconds <= 0:
        return "0h 0m"
    hours, rest = divmod(milliseconds, 60 * 60 * 1000)
    return f"{hours}h {rest // (60 * 1000)}m"


def _credentials(value: LoginRequest | dict) -> LoginRequest:
    if isinstance(value, LoginRequest):
        return value
    try:
        return LoginRequest.model_validate(value)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
        raise InvalidCredentialsError(detail=f"missing or empty: {fields}") from e


class SessionManager:
    """
    Explicit owner of the client Session.

    Collaborators are injected:
        store      - persisted-token slot
        navigate   - host navigation function, called with a route path
        on_notice  - receives SessionNotice objects for the UI layer
        auth_client- performs the login HTTP call
        clock      - returns the wall clock in seconds (time.time)
        monotonic  - monotonic seconds for the countdown (time.monotonic)

    Typical lifetime:
        async with SessionManager(store, navigate=router.push) as sessions:
            ...
    """

    def __init__(
        self,
        store: TokenStore,
        *,
        navigate: Optional[Navigate] = None,
        on_notice: Optional[NoticeHandler] = None,
        auth_client: Optional[AuthClient] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self._store = store
        self._navigate = navigate
        self._on_notice = on_notice
        self._auth_client = auth_client or AuthClient(self.settings)
        self._clock = clock
        self._monotonic = monotonic

        self._state = AuthState.UNAUTHENTICATED
        self._session: Optional[Session] = None
        self._timers: Optional[SessionTimers] = None
        self._error: Optional[AuthError] = None
        self._decided = False
        self._listeners: list[StateListener] = []
        self._login_seq = 0
        # (monotonic seconds, wall ms) captured when the session began
        self._anchor: Optional[tuple[float, int]] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def is_loading(self) -> bool:
        """True until the first restore or login attempt has decided the state."""
        return not self._decided

    @property
    def is_authenticated(self) -> bool:
        return (
            self._session is not None
            and self._state in (AuthState.AUTHENTICATED, AuthState.EXPIRY_WARNING)
            and self._session.is_valid(self.now_ms())
        )

    @property
    def current_user(self) -> Optional[Session]:
        return self._session

    @property
    def role(self) -> Optional[str]:
        return self._session.role if self._session else None

    @property
    def error(self) -> Optional[AuthError]:
        return self._error

    @property
    def error_message(self) -> Optional[str]:
        return self._error.message if self._error else None

    def time_remaining(self) -> int:
        """
        Milliseconds left in the current session, floored at zero.

        Counted on the monotonic clock from the moment the session began,
        so it never goes up when the wall clock is adjusted.
        """
        if self._session is None or self._anchor is None:
            return 0
        started, wall_ms = self._anchor
        elapsed_ms = int((self._monotonic() - started) * 1000)
        return self._session.time_remaining(wall_ms + elapsed_ms)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state-change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def login(self, credentials: LoginRequest | dict) -> Optional[Session]:
        """
        Authenticate against the backend and start a session.

        Returns the new Session, or None when logout(), teardown() or a
        newer login() ran while this one was waiting on the backend.
        Raises an AuthError subclass (InvalidCredentialsError,
        NetworkError, TokenDecodeError, TokenExpiredError); the same error
        is kept on `self.error`.
        """
        self._login_seq += 1
        attempt = self._login_seq

        self._error = None
        self._set_state(AuthState.AUTHENTICATING)

        try:
            request = _credentials(credentials)
            response = await self._auth_client.login_check(request)
            session = load_session(response.token, self.now_ms())
        except AuthError as e:
            if attempt != self._login_seq:
                logger.info("Superseded login attempt failed: %s", e)
                return None
            self._fail(e)
            raise

        if attempt != self._login_seq:
            logger.info("Login for %s discarded, superseded while in flight", session.username)
            return None

        self._decided = True
        try:
            self._store.save(session.raw_token)
        except OSError:
            logger.exception("Could not persist token for %s", session.username)

        self._begin(session)
        logger.info("Login successful for %s (role=%s)", session.username, session.role)
        return session

    def logout(self) -> None:
        """End the session and navigate to the public landing route. Never raises."""
        self._login_seq += 1
        try:
            username = self._session.username if self._session else None
            self._drop_session(clear_store=True)
            self._error = None
            self._decided = True
            self._set_state(AuthState.UNAUTHENTICATED)
            logger.info("Logged out %s", username or "(no session)")
        except Exception:
            logger.exception("Error during logout")
        self._go(self.settings.public_route)

    def restore_session(self) -> AuthState:
        """
        Re-hydrate from the persisted token. Runs once; later calls only
        report the already-decided state. Safe to call before the event
        loop starts.
        """
        if self._decided:
            return self._state

        raw_token = self._store.load()
        if not raw_token:
            logger.debug("No persisted token, starting unauthenticated")
            self._decide(AuthState.UNAUTHENTICATED)
            return self._state

        try:
            session = load_session(raw_token, self.now_ms())
        except TokenExpiredError:
            logger.info("Persisted session expired, clearing storage")
            self._clear_store()
            self._decide(AuthState.UNAUTHENTICATED)
            return self._state
        except TokenDecodeError as e:
            logger.warning("Persisted token unreadable, clearing storage: %s", e)
            self._clear_store()
            self._decide(AuthState.UNAUTHENTICATED)
            return self._state

        self._begin(session)
        self._decided = True
        logger.info("Session restored for %s (%d ms remaining)", session.username, self.time_remaining())
        return self._state

    def ensure_timers(self) -> None:
        """Arm the active session's timers if they were deferred. Needs a running loop."""
        if self._session is None or self._timers is not None:
            return
        loop = asyncio.get_running_loop()
        if not self._session.is_valid(self.now_ms()):
            self._on_expiry(self._session)
            return
        self._timers = self._arm_timers(self._session, loop)

    def clear_error(self) -> None:
        self._error = None

    def teardown(self) -> None:
        """
        Cancel timers at process shutdown. The persisted token is kept so
        the next start can restore it.
        """
        self._login_seq += 1
        self._drop_session(clear_store=False)
        self._set_state(AuthState.UNAUTHENTICATED)

    async def __aenter__(self) -> "SessionManager":
        self.restore_session()
        self.ensure_timers()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.teardown()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin(self, session: Session) -> None:
        """Replace any active session with `session` and arm its timers."""
        self._drop_session(clear_store=False)

        self._session = session
        self._anchor = (self._monotonic(), self.now_ms())
        self._error = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, timers for %s deferred", session.username)
        else:
            self._timers = self._arm_timers(session, loop)
        self._set_state(AuthState.AUTHENTICATED)

    def _arm_timers(self, session: Session, loop: asyncio.AbstractEventLoop) -> SessionTimers:
        remaining = session.time_remaining(self.now_ms()) / 1000
        timers = SessionTimers(loop)
        timers.arm(
            "warning",
            remaining - self.settings.session_warning_seconds,
            partial(self._on_warning, session),
        )
        timers.arm("expiry", remaining, partial(self._on_expiry, session))
        return timers

    def _decide(self, state: AuthState) -> None:
        self._set_state(state)
        self._decided = True

    def _drop_session(self, clear_store: bool) -> None:
        if self._timers is not None:
            self._timers.cancel()
            self._timers = None
        self._session = None
        self._anchor = None
        if clear_store:
            self._clear_store()

    def _clear_store(self) -> None:
        try:
            self._store.clear()
        except OSError:
            logger.exception("Could not clear persisted token")

    def _fail(self, error: AuthError) -> None:
        logger.info("Login failed: %s", error)
        self._decided = True
        self._drop_session(clear_store=True)
        self._error = error
        self._set_state(AuthState.UNAUTHENTICATED)
        self._notice("error", error.message)

    def _on_warning(self, session: Session) -> None:
        if session is not self._session:
            return
        minutes = max(1, round(self.settings.session_warning_seconds / 60))
        logger.info("Session for %s expires in %d minutes", session.username, minutes)
        self._set_state(AuthState.EXPIRY_WARNING)
        self._notice("warning", SESSION_WARNING_MESSAGE.format(minutes=minutes))

    def _on_expiry(self, session: Session) -> None:
        if session is not self._session:
            return
        logger.info("Session for %s expired", session.username)
        self._drop_session(clear_store=True)
        self._error = TokenExpiredError(SESSION_EXPIRED_MESSAGE)
        self._set_state(AuthState.UNAUTHENTICATED)
        self._notice("session_expired", SESSION_EXPIRED_MESSAGE)
        self._go(self.settings.login_route)

    def _set_state(self, state: AuthState) -> None:
        if state == self._state:
            return
        logger.debug("Auth state %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session state listener failed")

    def _notice(self, kind: str, message: str) -> None:
        if self._on_notice is None:
            return
        try:
            self._on_notice(SessionNotice(kind, message))
        except Exception:
            logger.exception("Notice handler failed for %s", kind)

    def _go(self, path: str) -> None:
        if self._navigate is None:
            return
        try:
            self._navigate(path)
        except Exception:
            logger.exception("Navigation to %s failed", path)
