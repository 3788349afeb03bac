"""
Pydantic schemas for Authentication.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Credentials posted to /admin/loginCheck."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    remember_me: bool = Field(False, alias="rememberMe")

    def to_payload(self) -> dict:
        """Body in the backend's camelCase format."""
        return self.model_dump(by_alias=True)


class LoginUser(BaseModel):
    """User block returned next to the token. Field names match the backend."""

    id: int | str
    usuario: str
    rol: Optional[str] = None


class LoginResponse(BaseModel):
    """
    Successful /admin/loginCheck response.
    Backend returns {token, usuario: {id, usuario, rol}, message}.
    """

    token: str
    usuario: Optional[LoginUser] = None
    message: Optional[str] = None


class TokenClaims(BaseModel):
    """Claims read from the JWT payload segment. iat/exp are NumericDate seconds, possibly fractional."""

    model_config = ConfigDict(extra="allow")

    id: int | str
    usuario: str
    rol: Optional[str] = None
    iat: float
    exp: float
