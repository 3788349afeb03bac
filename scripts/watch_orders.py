#!/usr/bin/env python3
"""
Watch Orders Script

Logs in to the panel backend and prints new-order alerts as they arrive
on the push channel. Useful for checking a kiosk's connectivity without
opening the web panel.

Usage:
    python scripts/watch_orders.py [--username USER] [--password PASSWORD] [--api-url URL]

If password is not provided, you will be prompted to enter it securely.
A persisted session is reused when it is still valid.
"""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from panel.config import get_settings  # noqa: E402
from panel.exceptions import AuthError  # noqa: E402
from panel.models.alert import PendingOrderAlert  # noqa: E402
from panel.services import FileTokenStore, SessionManager, SessionNotice, format_time_remaining  # noqa: E402
from panel.websocket import OrderNotifier  # noqa: E402

logger = logging.getLogger("watch_orders")


def print_alert(alert: PendingOrderAlert) -> None:
    order = alert.order
    print(
        f"[{alert.received_at:%H:%M:%S}] NUEVO PEDIDO #{order.get('id_pedido')} - "
        f"{order.get('cliente')} - ${order.get('monto_total')} "
        f"({order.get('cantidad_productos')} productos) tel. {order.get('telefono_cliente')}"
    )


def print_notice(notice: SessionNotice) -> None:
    print(f"[{notice.kind}] {notice.message}")


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.api_url:
        settings = settings.model_copy(update={"api_url": args.api_url})

    stopped = asyncio.Event()

    def on_navigate(path: str) -> None:
        # the session ended; nothing left to watch
        if path in (settings.login_route, settings.public_route):
            stopped.set()

    async with SessionManager(
        FileTokenStore(settings.token_file),
        navigate=on_navigate,
        on_notice=print_notice,
        settings=settings,
    ) as sessions:
        if not sessions.is_authenticated:
            username = args.username or input("Usuario: ")
            password = args.password or getpass.getpass("Contraseña: ")
            try:
                await sessions.login({"username": username, "password": password, "rememberMe": True})
            except AuthError as e:
                print(f"❌ {e.message}")
                return 1

        session = sessions.current_user
        print(f"✅ Sesión de {session.username} ({session.role}), expira en {format_time_remaining(sessions.time_remaining())}")

        notifier = OrderNotifier(
            sessions,
            on_alert=print_alert,
            on_error=lambda e: print(f"❌ {e.message}"),
        )
        async with notifier:
            print(f"Escuchando pedidos en {settings.push_channel_url} (Ctrl+C para salir)")
            await stopped.wait()
    return 0


def main():
    parser = argparse.ArgumentParser(description="Print new-order alerts from the panel push channel")
    parser.add_argument("--username", type=str, help="Panel username (prompted if not provided)")
    parser.add_argument("--password", type=str, help="Panel password (prompted if not provided)")
    parser.add_argument("--api-url", type=str, help="Backend URL (default: API_URL setting)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else get_settings().log_level.upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        print("\nBye")


if __name__ == "__main__":
    main()
