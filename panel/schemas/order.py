"""
Pydantic schemas for push-channel order events.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderPayload(BaseModel):
    """
    nuevo_pedido payload.

    Every field is optional and unknown keys are kept: the alert passes the
    raw order through, this model only gives typed access for display.
    """

    model_config = ConfigDict(extra="allow")

    id_pedido: Optional[int | str] = None
    cliente: Optional[str] = None
    monto_total: Optional[float | str] = None
    cantidad_productos: Optional[int] = None
    telefono_cliente: Optional[str] = None


class OrderAcknowledgement(BaseModel):
    """notificacion_recibida payload sent back to the server."""

    pedido_id: Optional[int | str]
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )
