"""
Application configuration using Pydantic Settings.
Loads from environment variables and .env file.
"""

from functools import lru_cache
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Panel Admin"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Backend API
    api_url: str = "http://localhost:3001"
    login_path: str = "/admin/loginCheck"
    request_timeout: float = 30.0  # seconds

    # Session
    token_file: str = ".panel_session"
    session_warning_seconds: float = 600.0  # 10 minutes before expiry

    # Navigation targets
    public_route: str = "/"
    login_route: str = "/login"
    home_route: str = "/inicio"

    # Push channel (same origin as the API)
    push_url: Optional[str] = None  # overrides the derived ws:// URL
    push_path: str = "/ws"
    connect_timeout: float = 20.0
    reconnect_delay: float = 2.0
    reconnect_delay_max: float = 10.0
    reconnect_attempts: int = 5
    stable_connection_seconds: float = 10.0  # shorter-lived connections count as flapping

    # Desktop notifications
    notification_icon: str = "/panel/logo.jpg"

    @property
    def login_url(self) -> str:
        """Absolute URL of the authentication endpoint."""
        return self.api_url.rstrip("/") + self.login_path

    @property
    def push_channel_url(self) -> str:
        """Build the WebSocket URL for the order push channel."""
        if self.push_url:
            return self.push_url

        parts = urlsplit(self.api_url)
        scheme = "wss" if parts.scheme == "https" else "ws"
        path = parts.path.rstrip("/") + self.push_path
        return urlunsplit((scheme, parts.netloc, path, "", ""))


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
