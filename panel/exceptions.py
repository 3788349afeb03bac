"""
Custom exception hierarchy for the session and push-channel core.

Usage:
    from panel.exceptions import InvalidCredentialsError, NetworkError

    raise InvalidCredentialsError("Usuario o contraseña incorrectos")
    raise NetworkError(detail=str(exc))

Every failure coming out of httpx, PyJWT or websockets is converted to one
of these at the SessionManager / OrderNotifier boundary, so callers only
ever see a PanelError subclass. Each carries:
    kind     - stable machine-readable identifier
    message  - user-facing text
    detail   - optional extra info for logs
"""


class PanelError(Exception):
    """Base application error with a default message."""

    kind: str = "error"
    default_message: str = "Error inesperado"

    def __init__(self, message: str | None = None, detail: str | None = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class AuthError(PanelError):
    """Any failure of the authentication lifecycle."""

    kind = "auth_error"


class InvalidCredentialsError(AuthError):
    """The backend rejected the submitted credentials."""

    kind = "invalid_credentials"
    default_message = "Credenciales inválidas"


class NetworkError(AuthError):
    """The login request could not complete."""

    kind = "network_error"
    default_message = "Error de conexión con el servidor"


class TokenDecodeError(AuthError):
    """The bearer token is not a readable JWT payload."""

    kind = "token_decode_error"
    default_message = "Token de sesión inválido"


class TokenExpiredError(AuthError):
    """The bearer token decoded fine but its exp claim is in the past."""

    kind = "token_expired"
    default_message = "Su sesión ha expirado. Por favor, inicie sesión nuevamente."


class ChannelConnectError(PanelError):
    """The push channel could not be opened or dropped unexpectedly."""

    kind = "channel_connect_error"
    default_message = "No se pudo conectar al canal de pedidos"


class PermissionDeniedError(PanelError):
    """Desktop notification permission was refused."""

    kind = "permission_denied"
    default_message = "Permiso de notificaciones denegado"
