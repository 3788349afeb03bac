"""
Cancellable scheduled callbacks owned by a single session.
"""

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class SessionTimers:
    """
    Group of asyncio timer handles with guaranteed cancellation.

    Use as a context manager, or call cancel() on every exit path.
    After cancel() no armed callback can run.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._handles: dict[str, asyncio.TimerHandle] = {}

    def arm(self, name: str, delay: float, callback: Callable[[], None]) -> bool:
        """
        Schedule `callback` after `delay` seconds under `name`.

        A non-positive delay arms nothing and returns False. Re-arming a
        name cancels the previous handle.
        """
        self.disarm(name)
        if delay <= 0:
            logger.debug("Timer %s not armed (delay=%.3fs)", name, delay)
            return False

        loop = self._loop or asyncio.get_running_loop()

        def fire() -> None:
            self._handles.pop(name, None)
            callback()

        self._handles[name] = loop.call_later(delay, fire)
        logger.debug("Timer %s armed for %.3fs", name, delay)
        return True

    def disarm(self, name: str) -> None:
        handle = self._handles.pop(name, None)
        if handle is not None:
            handle.cancel()

    def cancel(self) -> None:
        """Cancel every pending handle."""
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def is_armed(self, name: str) -> bool:
        return name in self._handles

    def __enter__(self) -> "SessionTimers":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()
