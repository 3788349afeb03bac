"""
WebSocket package for real-time order notifications.

Provides:
- PushChannel: JSON event frames over a websockets client connection
- OrderNotifier: connection lifecycle, reconnection and the pending alert
"""

from panel.websocket.channel import PushChannel
from panel.websocket.notifier import OrderNotifier

__all__ = ["OrderNotifier", "PushChannel"]
