"""Tests for application configuration."""

from panel.config import Settings


def test_settings_defaults():
    """Verify default settings load without errors."""
    settings = Settings(_env_file=None)
    assert settings.app_name == "Panel Admin"
    assert settings.api_url == "http://localhost:3001"
    assert settings.session_warning_seconds == 600
    assert settings.reconnect_attempts == 5
    assert settings.reconnect_delay == 2.0
    assert settings.reconnect_delay_max == 10.0
    assert settings.debug is False


def test_login_url():
    """Login URL joins the API base and login path."""
    settings = Settings(_env_file=None, api_url="https://api.example.com/")
    assert settings.login_url == "https://api.example.com/admin/loginCheck"


def test_push_channel_url_follows_api_origin():
    """http -> ws and https -> wss, same host and port."""
    assert Settings(_env_file=None, api_url="http://localhost:3001").push_channel_url == "ws://localhost:3001/ws"
    assert Settings(_env_file=None, api_url="https://api.example.com").push_channel_url == "wss://api.example.com/ws"


def test_push_channel_url_keeps_api_base_path():
    """The push URL keeps any base path of the API URL."""
    settings = Settings(_env_file=None, api_url="https://example.com/backend/", push_path="/socket")
    assert settings.push_channel_url == "wss://example.com/backend/socket"


def test_push_url_override():
    """An explicit PUSH_URL wins over the derived URL."""
    settings = Settings(_env_file=None, push_url="ws://push.internal:9000/feed")
    assert settings.push_channel_url == "ws://push.internal:9000/feed"


def test_settings_from_environment(monkeypatch):
    """Environment variables are read case-insensitively."""
    monkeypatch.setenv("API_URL", "http://backend:8080")
    monkeypatch.setenv("RECONNECT_ATTEMPTS", "3")
    settings = Settings(_env_file=None)
    assert settings.api_url == "http://backend:8080"
    assert settings.reconnect_attempts == 3
