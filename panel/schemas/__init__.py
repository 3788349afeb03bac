"""
Pydantic schemas for backend payloads.
"""

from panel.schemas.auth import LoginRequest, LoginResponse, LoginUser, TokenClaims
from panel.schemas.order import OrderAcknowledgement, OrderPayload

__all__ = [
    "LoginRequest",
    "LoginResponse",
    "LoginUser",
    "TokenClaims",
    "OrderAcknowledgement",
    "OrderPayload",
]
