"""WebSocket transport: one outbound queue per connected socket."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from ..sync.messages import Message
from ..transport.base import Transport

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class WebSocketConnection:
    """A connected WebSocket client.

    Attributes:
        client_id: Unique identifier for this connection.
        loop: Event loop serving the socket.
        queue: Outbound wire payloads waiting to be written to the socket.
    """

    client_id: str
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    closed: bool = False


class WebSocketTransport(Transport):
    """Delivers messages to WebSocket connections through their queues.

    ``send`` may be called from any thread; payloads are handed to the
    connection's event loop and never block the caller.
    """

    def __init__(self, queue_size: int = 1000):
        super().__init__()
        self.queue_size = queue_size
        self._connections: dict[str, WebSocketConnection] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def open(self) -> WebSocketConnection:
        """Register a new connection. Must be called from its event loop."""
        conn = WebSocketConnection(
            client_id=uuid.uuid4().hex,
            loop=asyncio.get_running_loop(),
            queue=asyncio.Queue(maxsize=self.queue_size),
        )
        self._connections[conn.client_id] = conn
        logger.debug(f"WebSocket client connected: {conn.client_id}")
        return conn

    def close(self, conn: WebSocketConnection) -> None:
        """Unregister a connection and report the disconnect."""
        if conn.closed:
            return
        conn.closed = True
        self._connections.pop(conn.client_id, None)
        self._emit_disconnect(conn)

    def client_id(self, client: WebSocketConnection) -> str:
        return client.client_id

    def send(self, client: WebSocketConnection, message: Message) -> None:
        self.send_payload(client, message.to_dict())

    def send_payload(self, client: WebSocketConnection, payload: dict[str, Any]) -> None:
        """Queue a raw JSON payload for a connection."""
        if client.closed:
            return
        try:
            client.loop.call_soon_threadsafe(self._enqueue, client, payload)
        except RuntimeError as e:
            # Event loop already closed
            logger.warning(f"Dropping message for {client.client_id}: {e}")

    @staticmethod
    def _enqueue(client: WebSocketConnection, payload: dict[str, Any]) -> None:
        try:
            client.queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for {client.client_id}; message dropped")
