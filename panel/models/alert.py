"""
Push-channel state: connection status and the pending order alert.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ConnectionStatus(str, Enum):
    """Lifecycle of the single push connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class PendingOrderAlert:
    """The single in-flight, user-dismissible new-order alert."""

    order: dict[str, Any]
    visible: bool = True
    acknowledged: bool = False
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def order_id(self) -> Any:
        return self.order.get("id_pedido")

    @property
    def customer(self) -> str | None:
        return self.order.get("cliente")
