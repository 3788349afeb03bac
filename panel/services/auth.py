"""
Client for the backend authentication endpoint.

POST /admin/loginCheck with {username, password, rememberMe}
    200 -> {token, usuario: {id, usuario, rol}, message}
    4xx -> {message}
"""

import logging

import httpx
from pydantic import ValidationError

from panel.config import Settings, get_settings
from panel.exceptions import InvalidCredentialsError, NetworkError, TokenDecodeError
from panel.schemas.auth import LoginRequest, LoginResponse

logger = logging.getLogger(__name__)


class AuthClient:
    """Posts credentials and returns the parsed login response."""

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self._client = client

    async def login_check(self, credentials: LoginRequest) -> LoginResponse:
        """
        Submit credentials.

        Raises:
            InvalidCredentialsError: the backend answered with a 4xx
            NetworkError: no answer, or a 5xx
            TokenDecodeError: a 200 without a usable token field
        """
        try:
            if self._client is not None:
                response = await self._post(self._client, credentials)
            else:
                async with httpx.AsyncClient(timeout=self.settings.request_timeout) as client:
                    response = await self._post(client, credentials)
        except httpx.HTTPError as e:
            logger.warning("Login request failed: %s", e)
            raise NetworkError(detail=str(e)) from e

        data = _json_or_empty(response)
        message = data.get("message")

        if response.status_code == httpx.codes.OK:
            try:
                return LoginResponse.model_validate(data)
            except ValidationError as e:
                raise TokenDecodeError(detail="login response has no token") from e

        if response.status_code >= 500:
            logger.error("Login endpoint returned %s: %s", response.status_code, message)
            raise NetworkError(message, detail=f"HTTP {response.status_code}")

        logger.info("Login rejected for %s (HTTP %s)", credentials.username, response.status_code)
        raise InvalidCredentialsError(message, detail=f"HTTP {response.status_code}")

    async def _post(self, client: httpx.AsyncClient, credentials: LoginRequest) -> httpx.Response:
        return await client.post(
            self.settings.login_url,
            json=credentials.to_payload(),
            timeout=self.settings.request_timeout,
        )


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
