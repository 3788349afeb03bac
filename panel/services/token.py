"""
Bearer token decoding.

The token is a standard three-segment JWT. Only the payload segment is
read: the backend is the sole authority on signatures, and it re-authorizes
every API call by role. Claims decoded here drive navigation convenience
only, never authorization.
"""

import logging

import jwt
from pydantic import ValidationError

from panel.exceptions import TokenDecodeError, TokenExpiredError
from panel.models.session import DEFAULT_ROLE, Session
from panel.schemas.auth import TokenClaims

logger = logging.getLogger(__name__)

_UNVERIFIED = {
    "verify_signature": False,
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
}


def decode_token(raw_token: str) -> TokenClaims:
    """
    Read the claims from a JWT without verifying its signature.

    Raises TokenDecodeError for anything that is not three base64url
    segments with a JSON payload carrying id, usuario, iat and exp.
    """
    if not raw_token or raw_token.count(".") != 2:
        raise TokenDecodeError(detail="token must have three dot-separated segments")

    try:
        payload = jwt.decode(raw_token, options=_UNVERIFIED)
    except jwt.PyJWTError as e:
        raise TokenDecodeError(detail=str(e)) from e

    try:
        return TokenClaims.model_validate(payload)
    except ValidationError as e:
        raise TokenDecodeError(detail=f"missing or invalid claims: {e.error_count()} error(s)") from e


def session_from_claims(claims: TokenClaims, raw_token: str) -> Session:
    """Build a Session from decoded claims. Missing role falls back to admin."""
    role = (claims.rol or DEFAULT_ROLE.value).strip().lower()
    return Session(
        user_id=claims.id,
        username=claims.usuario,
        role=role,
        issued_at=int(claims.iat * 1000),
        expires_at=int(claims.exp * 1000),
        raw_token=raw_token,
    )


def load_session(raw_token: str, now_ms: int) -> Session:
    """
    Decode a token and return a Session valid at `now_ms`.

    Raises TokenDecodeError or TokenExpiredError.
    """
    session = session_from_claims(decode_token(raw_token), raw_token)
    if not session.is_valid(now_ms):
        logger.debug("Token for %s expired at %s (now=%s)", session.username, session.expires_at, now_ms)
        raise TokenExpiredError(detail=f"exp={session.expires_at // 1000}")
    return session
