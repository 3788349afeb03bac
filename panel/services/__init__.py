"""
Services package for the session lifecycle.
"""

from panel.services.session import SessionManager, SessionNotice, format_time_remaining
from panel.services.token_store import FileTokenStore, MemoryTokenStore

__all__ = [
    "FileTokenStore",
    "MemoryTokenStore",
    "SessionManager",
    "SessionNotice",
    "format_time_remaining",
]
