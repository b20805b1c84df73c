"""Settings and connection accounting for the renderer WebSocket server."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from pierre_diffs.utils.config import config
from pierre_diffs.utils.logger import log


@dataclass
class ServerConfig:
    """Renderer server settings. Binds to localhost unless told otherwise."""

    bind_address: str = "127.0.0.1"
    port: Optional[int] = None
    max_connections: int = 4
    max_message_size: Optional[int] = None

    def __post_init__(self):
        if self.port is None:
            self.port = config.bridge_port
        if self.max_message_size is None:
            self.max_message_size = config.max_message_size

        if not self.bind_address:
            raise ValueError("bind_address cannot be empty")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"Port must be between 1 and 65535, got {self.port}")
        if self.max_connections < 1:
            raise ValueError(f"max_connections must be at least 1, got {self.max_connections}")
        if self.max_message_size < 1:
            raise ValueError(f"max_message_size must be positive, got {self.max_message_size}")

        if self.bind_address == "0.0.0.0":
            log.warning("[server] binding to all interfaces (0.0.0.0); file contents are exposed to the network")
        else:
            log.debug(f"[server] binding to {self.bind_address}")


class ConnectionLimiter:
    """Thread-safe cap on concurrent renderer sessions."""

    def __init__(self, max_connections: int = 4):
        self.max_connections = max_connections
        self._lock = threading.Lock()
        self._connection_ids: set[str] = set()

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._connection_ids)

    def add_connection(self, connection_id: str) -> bool:
        """Register a session if under the limit.

        Returns:
            True if the session was added, False if the limit is reached or
            the id is already registered
        """
        with self._lock:
            if len(self._connection_ids) >= self.max_connections:
                log.warning(
                    f"[server] connection limit reached ({self.max_connections}), rejecting {connection_id}"
                )
                return False
            if connection_id in self._connection_ids:
                log.warning(f"[server] duplicate connection id: {connection_id}")
                return False
            self._connection_ids.add(connection_id)
            log.debug(f"[server] session added: {connection_id} ({len(self._connection_ids)}/{self.max_connections})")
            return True

    def remove_connection(self, connection_id: str) -> None:
        with self._lock:
            if connection_id not in self._connection_ids:
                log.warning(f"[server] attempted to remove unknown session: {connection_id}")
                return
            self._connection_ids.remove(connection_id)
            log.debug(f"[server] session removed: {connection_id} ({len(self._connection_ids)}/{self.max_connections})")
