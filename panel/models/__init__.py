"""
In-memory domain models.
"""

from panel.models.alert import ConnectionStatus, PendingOrderAlert
from panel.models.session import AuthState, Role, Session

__all__ = [
    "AuthState",
    "ConnectionStatus",
    "PendingOrderAlert",
    "Role",
    "Session",
]
