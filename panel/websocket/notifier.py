"""
Real-time order notifier.

Owns the single push connection for an authenticated session and turns
`nuevo_pedido` events into one pending order alert with a looping sound
and an optional desktop notification.

Reconnection policy:
- failed connects retry after reconnect_delay, doubling up to
  reconnect_delay_max, until reconnect_attempts failures
- the counter resets to 0 on every successful connect
- a clean close by the server triggers one immediate, uncounted attempt;
  further clean closes of connections shorter than
  stable_connection_seconds back off like failures and give up after
  reconnect_attempts of them in a row
- on_foreground() makes one uncounted attempt when not connected
- reconnect() starts over with a fresh budget
"""

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

from pydantic import ValidationError

from panel.config import Settings, get_settings
from panel.exceptions import ChannelConnectError, PanelError, PermissionDeniedError
from panel.models.alert import ConnectionStatus, PendingOrderAlert
from panel.models.session import AuthState
from panel.schemas.order import OrderAcknowledgement, OrderPayload
from panel.services.alerts import (
    AlertSound,
    DesktopNotifier,
    NotificationPermission,
    NullDesktopNotifier,
    NullSound,
)
from panel.services.session import SessionManager
from panel.websocket.channel import PushChannel

logger = logging.getLogger(__name__)

EVENT_NEW_ORDER = "nuevo_pedido"
EVENT_CONNECTED = "connected"
EVENT_ERROR = "error"
EVENT_ACK = "notificacion_recibida"
EVENT_VERIFY = "verificar_pedidos"


class Channel(Protocol):
    def events(self) -> Any: ...

    async def emit(self, event: str, payload: dict | None = None) -> None: ...

    async def close(self) -> None: ...


ChannelFactory = Callable[[str, str], Awaitable[Channel]]


class OrderNotifier:
    """
    Push-channel client for new-order alerts.

    Host callbacks (all optional):
        on_alert          - a new PendingOrderAlert is visible
        on_refresh_orders - the host should reload its order listing
        on_status         - the ConnectionStatus changed
        on_error          - a PanelError the user should see (reported once)
    """

    def __init__(
        self,
        sessions: SessionManager,
        *,
        settings: Optional[Settings] = None,
        channel_factory: Optional[ChannelFactory] = None,
        sound: Optional[AlertSound] = None,
        desktop: Optional[DesktopNotifier] = None,
        on_alert: Optional[Callable[[PendingOrderAlert], Any]] = None,
        on_refresh_orders: Optional[Callable[[], Any]] = None,
        on_status: Optional[Callable[[ConnectionStatus], Any]] = None,
        on_error: Optional[Callable[[PanelError], Any]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or sessions.settings or get_settings()
        self._sessions = sessions
        self._channel_factory = channel_factory or self._open_default_channel
        self._sound = sound or NullSound()
        self._desktop = desktop or NullDesktopNotifier()
        self._on_alert = on_alert
        self._on_refresh_orders = on_refresh_orders
        self._on_status = on_status
        self._on_error = on_error
        self._sleep = sleep

        self._status = ConnectionStatus.DISCONNECTED
        self._attempts = 0
        self._alert: Optional[PendingOrderAlert] = None
        self._channel: Optional[Channel] = None
        self._task: Optional[asyncio.Task] = None
        self._wanted = False
        self._exhaustion_reported = False
        self._unstable_closes = 0

        self._unsubscribe = sessions.subscribe(self._on_session_state)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED

    @property
    def reconnect_attempts(self) -> int:
        return self._attempts

    @property
    def alert(self) -> Optional[PendingOrderAlert]:
        return self._alert

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the channel. No-op while connecting or connected."""
        if self._running():
            logger.debug("connect() ignored, channel already %s", self._status.value)
            return
        if not self._sessions.is_authenticated:
            logger.warning("connect() ignored, no authenticated session")
            return
        if self._attempts >= self.settings.reconnect_attempts:
            # manual reconnect after the budget ran out
            self._reset_attempts()
        self._unstable_closes = 0
        self._wanted = True
        self._start(free_attempt=False)

    async def reconnect(self) -> None:
        """Drop the current connection and start again with a fresh budget."""
        await self._stop_task()
        self._reset_attempts()
        self._wanted = False
        self._set_status(ConnectionStatus.DISCONNECTED)
        await self.connect()

    async def disconnect(self) -> None:
        """Close the channel and stop the alert sound. Always succeeds."""
        self._wanted = False
        await self._stop_task()
        self._stop_sound()
        self._reset_attempts()
        self._unstable_closes = 0
        self._set_status(ConnectionStatus.DISCONNECTED)
        logger.info("Push channel disconnected")

    def on_foreground(self) -> None:
        """Host view became visible again: retry once if not connected."""
        if not self._wanted or self._status == ConnectionStatus.CONNECTED:
            return
        if not self._sessions.is_authenticated:
            return
        logger.info("View in foreground, retrying push channel")
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._start(free_attempt=True)

    async def aclose(self) -> None:
        """Disconnect and stop following the session."""
        await self.disconnect()
        self._unsubscribe()

    async def __aenter__(self) -> "OrderNotifier":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Alert operations
    # ------------------------------------------------------------------

    def dismiss(self) -> None:
        """Stop the sound, clear the alert and ask the host to refresh its orders."""
        self._stop_sound()
        if self._alert is not None:
            logger.info("Alert for order %s dismissed", self._alert.order_id)
            self._alert.visible = False
        self._alert = None
        if self._on_refresh_orders is not None:
            _call_safely(self._on_refresh_orders)

    def acknowledge_and_view(self, handler: Callable[[dict], Any]) -> None:
        """Open the current order through `handler`, then dismiss."""
        self._stop_sound()
        alert = self._alert
        if alert is not None:
            alert.acknowledged = True
            _call_safely(handler, alert.order)
        self.dismiss()

    def stop_sound(self) -> None:
        """Silence the alert but keep it visible."""
        self._stop_sound()

    async def verify_orders(self) -> bool:
        """Ask the server to re-check pending orders. Returns False when offline."""
        if not self.is_connected or self._channel is None:
            return False
        try:
            await self._channel.emit(EVENT_VERIFY, {})
        except ChannelConnectError as e:
            logger.warning("verificar_pedidos not sent: %s", e)
            return False
        logger.debug("Manual order check requested")
        return True

    async def request_notification_permission(self) -> bool:
        """
        Ask the host for desktop-notification permission. Only call from a
        user action. Returns whether permission is now granted.
        """
        permission = self._desktop.permission
        if permission == NotificationPermission.GRANTED:
            return True
        if permission == NotificationPermission.UNSUPPORTED:
            logger.warning("Desktop notifications not supported on this host")
            return False
        if permission == NotificationPermission.DENIED:
            logger.warning("%s; alerts stay in-app only", PermissionDeniedError())
            return False

        try:
            permission = await self._desktop.request_permission()
        except Exception:
            logger.exception("Error requesting notification permission")
            return False

        if permission != NotificationPermission.GRANTED:
            logger.warning("%s (%s); alerts stay in-app only", PermissionDeniedError(), permission.value)
            return False
        logger.info("Desktop notification permission granted")
        return True

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------

    def _running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _start(self, free_attempt: bool) -> None:
        self._set_status(ConnectionStatus.CONNECTING)
        self._task = asyncio.get_running_loop().create_task(self._run(free_attempt))

    async def _run(self, free_attempt: bool) -> None:
        while True:
            counted = not free_attempt
            free_attempt = False

            session = self._sessions.current_user
            if session is None:
                self._set_status(ConnectionStatus.DISCONNECTED)
                return

            self._set_status(ConnectionStatus.CONNECTING)
            try:
                channel = await self._channel_factory(self.settings.push_channel_url, session.raw_token)
            except ChannelConnectError as e:
                if counted:
                    self._attempts += 1
                logger.warning(
                    "Push channel connect failed (attempt %d/%d): %s",
                    self._attempts,
                    self.settings.reconnect_attempts,
                    e,
                )
                if self._attempts >= self.settings.reconnect_attempts:
                    self._give_up(e)
                    return
                await self._sleep(self._backoff_delay())
                continue

            self._channel = channel
            self._reset_attempts()
            self._set_status(ConnectionStatus.CONNECTED)
            loop = asyncio.get_running_loop()
            opened_at = loop.time()
            try:
                server_closed = await self._listen(channel)
            finally:
                if self._channel is channel:
                    self._channel = None
                with contextlib.suppress(Exception):
                    await channel.close()

            if loop.time() - opened_at >= self.settings.stable_connection_seconds:
                self._unstable_closes = 0
            elif server_closed:
                self._unstable_closes += 1

            if server_closed and self._unstable_closes <= 1:
                logger.info("Server closed the push channel, reconnecting immediately")
                free_attempt = True
                continue
            if server_closed:
                if self._unstable_closes >= self.settings.reconnect_attempts:
                    self._give_up(ChannelConnectError(detail="server keeps closing the connection"))
                    return
                logger.warning(
                    "Server closed the push channel %d times in a row, backing off",
                    self._unstable_closes,
                )
                self._set_status(ConnectionStatus.CONNECTING)
                await self._sleep(self._backoff_delay(self._unstable_closes - 1))
                continue

            self._set_status(ConnectionStatus.CONNECTING)
            await self._sleep(self._backoff_delay())

    async def _listen(self, channel: Channel) -> bool:
        """Dispatch events until the channel ends. True if the server closed it cleanly."""
        try:
            async for event, payload in channel.events():
                await self._dispatch(channel, event, payload)
        except ChannelConnectError as e:
            logger.warning("Push channel dropped: %s", e)
            return False
        return True

    async def _dispatch(self, channel: Channel, event: str, payload: Any) -> None:
        if event == EVENT_NEW_ORDER:
            await self._handle_new_order(channel, payload)
        elif event == EVENT_CONNECTED:
            logger.info("Server confirmed push connection: %s", payload)
        elif event == EVENT_ERROR:
            logger.warning("Server reported push channel error: %s", payload)
        else:
            logger.debug("Ignoring push event %s", event)

    async def _handle_new_order(self, channel: Channel, payload: Any) -> None:
        if not isinstance(payload, dict):
            logger.warning("nuevo_pedido without an object payload ignored: %r", payload)
            return

        previous = self._alert
        if previous is not None and previous.visible:
            # last write wins; the replaced order is not acknowledged by the UI
            logger.warning(
                "Order %s replaces unacknowledged alert for order %s",
                payload.get("id_pedido"),
                previous.order_id,
            )

        alert = PendingOrderAlert(order=dict(payload))
        self._alert = alert
        logger.info("New order received: %s", alert.order_id)
        if self._on_alert is not None:
            _call_safely(self._on_alert, alert)

        self._play_sound()
        self._show_desktop_notification(alert)

        ack = OrderAcknowledgement(pedido_id=alert.order_id)
        try:
            await channel.emit(EVENT_ACK, ack.model_dump())
        except ChannelConnectError as e:
            logger.warning("Acknowledgement for order %s not sent: %s", alert.order_id, e)

    def _backoff_delay(self, failures: Optional[int] = None) -> float:
        if failures is None:
            failures = self._attempts
        exponent = max(failures - 1, 0)
        return min(self.settings.reconnect_delay * (2**exponent), self.settings.reconnect_delay_max)

    def _give_up(self, error: ChannelConnectError) -> None:
        logger.error("Maximum push channel reconnection attempts reached")
        self._set_status(ConnectionStatus.DISCONNECTED)
        if self._exhaustion_reported:
            return
        self._exhaustion_reported = True
        if self._on_error is not None:
            _call_safely(self._on_error, error)

    def _reset_attempts(self) -> None:
        self._attempts = 0
        self._exhaustion_reported = False

    async def _stop_task(self) -> None:
        task = self._teardown()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _teardown(self) -> Optional[asyncio.Task]:
        """Cancel the connection loop synchronously. Returns the task to await."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            return task
        return None

    def _on_session_state(self, state: AuthState) -> None:
        if state != AuthState.UNAUTHENTICATED:
            return
        if not self._wanted and self._task is None:
            return
        logger.info("Session ended, closing push channel")
        self._wanted = False
        self._teardown()
        self._stop_sound()
        self._alert = None
        self._reset_attempts()
        self._unstable_closes = 0
        self._set_status(ConnectionStatus.DISCONNECTED)

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def _set_status(self, status: ConnectionStatus) -> None:
        if status == self._status:
            return
        logger.debug("Push channel %s -> %s", self._status.value, status.value)
        self._status = status
        if self._on_status is not None:
            _call_safely(self._on_status, status)

    def _play_sound(self) -> None:
        try:
            self._sound.play_loop()
        except Exception as e:
            logger.warning("Could not play alert sound: %s", e)

    def _stop_sound(self) -> None:
        try:
            self._sound.stop()
        except Exception as e:
            logger.warning("Could not stop alert sound: %s", e)

    def _show_desktop_notification(self, alert: PendingOrderAlert) -> None:
        if self._desktop.permission != NotificationPermission.GRANTED:
            return
        try:
            order = OrderPayload.model_validate(alert.order)
        except ValidationError:
            order = OrderPayload(id_pedido=alert.order_id)
        try:
            self._desktop.show(
                "Nuevo Pedido",
                f"Pedido #{order.id_pedido} de {order.cliente or 'cliente'}",
                tag=f"pedido-{order.id_pedido}",
                icon=self.settings.notification_icon,
            )
        except Exception as e:
            logger.warning("Desktop notification failed: %s", e)

    async def _open_default_channel(self, url: str, token: str) -> Channel:
        return await PushChannel.open(url, token, timeout=self.settings.connect_timeout)


def _call_safely(callback: Callable[..., Any], *args: Any) -> None:
    try:
        callback(*args)
    except Exception:
        logger.exception("Host callback %r failed", callback)
