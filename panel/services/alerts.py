"""
Host side-effect sinks used by the order notifier.

The notifier never talks to speakers or the OS notification center
directly; the host injects implementations of these protocols. The Null
variants are used when the host provides nothing.
"""

import logging
from enum import Enum
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class NotificationPermission(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    DEFAULT = "default"
    UNSUPPORTED = "unsupported"


class AlertSound(Protocol):
    """Looping audio cue for a pending order."""

    def play_loop(self) -> None:
        """Start the loop from the beginning, restarting it if already playing."""

    def stop(self) -> None:
        """Stop and rewind. Safe to call when nothing is playing."""


class DesktopNotifier(Protocol):
    """Native desktop notifications."""

    @property
    def permission(self) -> NotificationPermission: ...

    async def request_permission(self) -> NotificationPermission: ...

    def show(self, title: str, body: str, *, tag: Optional[str] = None, icon: Optional[str] = None) -> None: ...


class NullSound:
    def play_loop(self) -> None:
        logger.debug("No sound sink configured")

    def stop(self) -> None:
        pass


class NullDesktopNotifier:
    """Host without native notifications: the alert stays in-app only."""

    @property
    def permission(self) -> NotificationPermission:
        return NotificationPermission.UNSUPPORTED

    async def request_permission(self) -> NotificationPermission:
        return NotificationPermission.UNSUPPORTED

    def show(self, title: str, body: str, *, tag: Optional[str] = None, icon: Optional[str] = None) -> None:
        pass
