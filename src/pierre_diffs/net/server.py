"""WebSocket server hosting renderer sessions.

Each connection is one renderer session with its own ``RendererBridge``. Text
frames from the renderer are fed to ``RendererBridge.handle_message``; command
frames go back over the same socket.
"""

from __future__ import annotations

import asyncio
import signal
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from pierre_diffs.state.diff_state import DiffResult
from pierre_diffs.utils.error_handling import TransportError, log_network_error
from pierre_diffs.utils.logger import log

from .bridge import RendererBridge
from .protocol import DiffStyle, OverflowMode
from .server_config import ConnectionLimiter, ServerConfig

SessionHandler = Callable[[RendererBridge], Awaitable[None]]

# Close code for "try again later"
TRY_AGAIN_LATER = 1013

_SIGNALS_REGISTERED = False


class WebSocketTransport:
    """Bridge transport over a websockets connection."""

    def __init__(self, websocket):
        self.websocket = websocket

    async def send(self, message: str) -> None:
        try:
            await self.websocket.send(message)
        except ConnectionClosed as e:
            raise TransportError(f"Renderer connection closed: {e}") from e


def diff_session(
    result: DiffResult, diff_style: DiffStyle, overflow: OverflowMode, theme: str
) -> SessionHandler:
    """Session handler that shows ``result`` to every renderer that connects."""

    async def _show(bridge: RendererBridge) -> None:
        await bridge.sync_result(result, diff_style, overflow, theme)

    return _show


async def handle_renderer(
    websocket,
    *,
    on_session: Optional[SessionHandler] = None,
    limiter: Optional[ConnectionLimiter] = None,
    bridge_options: Optional[dict[str, Any]] = None,
) -> Optional[RendererBridge]:
    """Run one renderer session until the socket closes.

    ``on_session`` runs before any inbound frame is read, so whatever it sends
    is queued and goes out when the renderer reports ready.

    Returns:
        The session's bridge, or None if the connection was refused
    """
    peer = getattr(websocket, "remote_address", None)
    connection_id = f"{peer}#{id(websocket)}"

    if limiter is not None and not limiter.add_connection(connection_id):
        await websocket.close(code=TRY_AGAIN_LATER, reason="connection limit reached")
        return None

    log(f"[server] renderer connected: {peer}")
    bridge = RendererBridge(WebSocketTransport(websocket), **(bridge_options or {}))
    try:
        if on_session is not None:
            await on_session(bridge)
        async for message in websocket:
            await bridge.handle_message(message)
    except ConnectionClosed as e:
        host, port = _split_peer(peer)
        log_network_error(host, port, "receiving from", e)
    finally:
        if limiter is not None:
            limiter.remove_connection(connection_id)
        log(f"[server] renderer disconnected: {peer}")
    return bridge


def _split_peer(peer) -> tuple[str, Any]:
    if isinstance(peer, tuple) and len(peer) >= 2:
        return str(peer[0]), peer[1]
    return str(peer), "?"


def _register_signals(stop_event: asyncio.Event) -> None:
    global _SIGNALS_REGISTERED
    if _SIGNALS_REGISTERED:
        return

    loop = asyncio.get_running_loop()

    def _signal_handler(signum, _frame=None):
        loop.call_soon_threadsafe(stop_event.set)

    try:
        signal.signal(signal.SIGINT, _signal_handler)
        signal.signal(signal.SIGTERM, _signal_handler)
        _SIGNALS_REGISTERED = True
    except (OSError, ValueError) as e:
        log.error(f"[server] Failed to register signal handlers: {e}")


async def start_server(
    *,
    on_session: Optional[SessionHandler] = None,
    server_config: Optional[ServerConfig] = None,
    stop_event: Optional[asyncio.Event] = None,
    handle_signals: bool = True,
) -> None:
    """Serve renderer sessions until ``stop_event`` is set or a signal arrives.

    Args:
        on_session: Called with each new session's bridge
        server_config: Bind address, port and limits; defaults from config
        stop_event: Set it to shut the server down
        handle_signals: Install SIGINT/SIGTERM handlers that set ``stop_event``
    """
    server_config = server_config or ServerConfig()
    stop_event = stop_event or asyncio.Event()
    limiter = ConnectionLimiter(server_config.max_connections)

    if handle_signals:
        _register_signals(stop_event)

    async def _handler(websocket):
        await handle_renderer(websocket, on_session=on_session, limiter=limiter)

    host, port = server_config.bind_address, server_config.port
    async with websockets.serve(_handler, host, port, max_size=server_config.max_message_size):
        log.info(f"[server] listening on ws://{host}:{port}")
        try:
            await stop_event.wait()
        finally:
            log.info("[server] shutting down")
