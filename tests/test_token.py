"""Tests for bearer token decoding."""

import base64
import json

import pytest

from panel.exceptions import TokenDecodeError, TokenExpiredError
from panel.services.token import decode_token, load_session, session_from_claims


def _segment(data: dict | str) -> str:
    raw = data if isinstance(data, str) else json.dumps(data)
    return base64.urlsafe_b64encode(raw.encode()).rstrip(b"=").decode()


HEADER = _segment({"alg": "HS256", "typ": "JWT"})


def test_decode_token_reads_claims(make_token):
    """Claims come back with the backend's names."""
    claims = decode_token(make_token(user_id=3, usuario="ana", rol="admin", iat=1700000000, exp=1700014400))
    assert claims.id == 3
    assert claims.usuario == "ana"
    assert claims.rol == "admin"
    assert claims.iat == 1700000000
    assert claims.exp == 1700014400


def test_decode_ignores_signature(make_token):
    """Only the payload is read; a tampered signature still decodes."""
    header, payload, _ = make_token().split(".")
    claims = decode_token(f"{header}.{payload}.c2lnbmF0dXJl")
    assert claims.usuario == "kiosco1"


@pytest.mark.parametrize(
    "token",
    [
        "",
        "not-a-token",
        "only.two",
        "a.b.c.d",
        f"{HEADER}.%%%%.c2ln",
        f"{HEADER}.{_segment('not json')}.c2ln",
    ],
)
def test_malformed_tokens_raise_decode_error(token):
    """Anything but a three-segment JWT is rejected."""
    with pytest.raises(TokenDecodeError):
        decode_token(token)


def test_missing_claims_raise_decode_error():
    """A payload without required claims is rejected."""
    token = f"{HEADER}.{_segment({'usuario': 'ana'})}.c2ln"
    with pytest.raises(TokenDecodeError):
        decode_token(token)


def test_session_from_claims_uses_milliseconds(make_token):
    """Claim seconds become Session milliseconds."""
    token = make_token(iat=1700000000, exp=1700003600)
    session = session_from_claims(decode_token(token), token)
    assert session.issued_at == 1700000000 * 1000
    assert session.expires_at == 1700003600 * 1000
    assert session.raw_token == token


def test_fractional_numeric_dates(make_token):
    """NumericDate values may carry fractions of a second."""
    token = make_token(iat=1700000000.25, exp=1700003600.5)
    session = session_from_claims(decode_token(token), token)
    assert session.issued_at == 1700000000250
    assert session.expires_at == 1700003600500
    assert isinstance(session.expires_at, int)


def test_missing_role_falls_back_to_admin(make_token):
    """A token without rol is treated as admin."""
    token = make_token(rol=None)
    assert session_from_claims(decode_token(token), token).role == "admin"


def test_role_is_normalized(make_token):
    """Role values are lowercased."""
    token = make_token(rol="KIOSCO")
    assert session_from_claims(decode_token(token), token).role == "kiosco"


def test_load_session_rejects_expired_token(make_token):
    """Expired tokens raise TokenExpiredError."""
    token = make_token(iat=1000, exp=2000)
    with pytest.raises(TokenExpiredError):
        load_session(token, now_ms=2000 * 1000 + 1)


def test_load_session_expiry_boundary_is_exclusive(make_token):
    """now == expires_at is already expired."""
    token = make_token(iat=1000, exp=2000)
    with pytest.raises(TokenExpiredError):
        load_session(token, now_ms=2000 * 1000)
    assert load_session(token, now_ms=2000 * 1000 - 1).username == "kiosco1"
