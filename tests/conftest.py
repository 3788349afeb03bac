"""
Shared test fixtures for the Panel Admin core test suite.
"""

import asyncio
import json
import time

import httpx
import jwt
import pytest
import pytest_asyncio

from panel.config import Settings
from panel.exceptions import ChannelConnectError
from panel.services.alerts import NotificationPermission
from panel.services.auth import AuthClient
from panel.services.session import SessionManager
from panel.services.token_store import MemoryTokenStore

SIGNING_KEY = "panel-tests-signing-key-0123456789abcdef"

CLEAN_CLOSE = object()
DROP = object()


class FakeChannel:
    """In-memory push channel fed through push(), close_clean() and drop()."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.emitted: list[tuple[str, dict]] = []
        self.closed = False

    def push(self, event, payload):
        self.queue.put_nowait((event, payload))

    def close_clean(self):
        self.queue.put_nowait(CLEAN_CLOSE)

    def drop(self):
        self.queue.put_nowait(DROP)

    async def events(self):
        while True:
            item = await self.queue.get()
            if item is CLEAN_CLOSE:
                return
            if item is DROP:
                raise ChannelConnectError(detail="connection dropped")
            yield item

    async def emit(self, event, payload=None):
        self.emitted.append((event, payload))

    async def close(self):
        self.closed = True


class FakeChannelFactory:
    """Returns the queued outcomes in order; refuses once they run out."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, str]] = []

    def add(self, *outcomes):
        self.outcomes.extend(outcomes)

    async def __call__(self, url, token):
        self.calls.append((url, token))
        outcome = self.outcomes.pop(0) if self.outcomes else ChannelConnectError(detail="refused")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeSound:
    def __init__(self):
        self.playing = False
        self.plays = 0
        self.stops = 0

    def play_loop(self):
        self.playing = True
        self.plays += 1

    def stop(self):
        self.playing = False
        self.stops += 1


class FakeDesktop:
    def __init__(self, permission=NotificationPermission.GRANTED, answer=NotificationPermission.GRANTED):
        self._permission = permission
        self.answer = answer
        self.requests = 0
        self.shown: list[dict] = []

    @property
    def permission(self):
        return self._permission

    async def request_permission(self):
        self.requests += 1
        self._permission = self.answer
        return self.answer

    def show(self, title, body, *, tag=None, icon=None):
        self.shown.append({"title": title, "body": body, "tag": tag, "icon": icon})


@pytest.fixture
def test_settings():
    """Settings for testing, isolated from any local .env file."""
    return Settings(
        _env_file=None,
        api_url="http://panel.test",
        token_file="/nonexistent/.panel_session",
        session_warning_seconds=600,
        reconnect_delay=2.0,
        reconnect_delay_max=10.0,
        reconnect_attempts=5,
    )


@pytest.fixture
def make_token():
    """Build a signed JWT with the backend's claim names."""

    def _make(*, user_id=7, usuario="kiosco1", rol="kiosco", iat=None, exp=None):
        now = int(time.time())
        payload = {
            "id": user_id,
            "usuario": usuario,
            "iat": now if iat is None else iat,
            "exp": now + 3600 if exp is None else exp,
        }
        if rol is not None:
            payload["rol"] = rol
        return jwt.encode(payload, SIGNING_KEY, algorithm="HS256")

    return _make


@pytest.fixture
def login_backend(test_settings):
    """
    Factory for an AuthClient backed by httpx.MockTransport.

    Usage: auth_client, requests = login_backend(200, {"token": ...})
    `response` may also be an exception instance to raise from the transport.
    """

    def _build(status_code=200, body=None, response=None):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if isinstance(response, Exception):
                raise response
            return httpx.Response(status_code, json=body if body is not None else {})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return AuthClient(test_settings, client=client), requests

    return _build


@pytest.fixture
def request_json():
    def _read(request: httpx.Request) -> dict:
        return json.loads(request.content)

    return _read


@pytest.fixture
def recorder():
    """Collects calls from navigate / notice callbacks."""

    class Recorder(list):
        def __call__(self, value):
            self.append(value)

    return Recorder


@pytest.fixture
def wait_until():
    async def _wait(predicate, timeout=1.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait


@pytest_asyncio.fixture
async def kiosk_sessions(test_settings, make_token):
    """SessionManager restored from a valid kiosco token."""
    sessions = SessionManager(MemoryTokenStore(make_token(rol="kiosco")), settings=test_settings)
    sessions.restore_session()
    yield sessions
    sessions.teardown()


@pytest.fixture
def fake_channel():
    return FakeChannel()


@pytest.fixture
def sound():
    return FakeSound()


@pytest.fixture
def desktop():
    return FakeDesktop()


@pytest.fixture
def channel_factory():
    return FakeChannelFactory


@pytest.fixture
def recorded_sleep():
    """asyncio.sleep replacement that records delays and only yields."""

    class RecordedSleep:
        def __init__(self):
            self.delays: list[float] = []

        async def __call__(self, delay):
            self.delays.append(delay)
            await asyncio.sleep(0)

    return RecordedSleep()


@pytest.fixture
def make_channel():
    return FakeChannel


@pytest.fixture
def make_desktop():
    return FakeDesktop
