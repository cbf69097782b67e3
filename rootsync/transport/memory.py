"""In-process transport that keeps delivered messages in memory."""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from .. import codec
from ..sync.messages import Message
from .base import Transport

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class MemoryClient:
    """A client handle for the in-memory transport."""

    name: str
    inbox: deque[Message] = field(default_factory=deque)
    connected: bool = True


class MemoryTransport(Transport):
    """Transport for embedding the engine in-process.

    Messages sent to a client are appended to its inbox. Messages sent to a
    disconnected client are dropped.
    """

    def __init__(self) -> None:
        super().__init__()
        self._clients: dict[str, MemoryClient] = {}

    def connect(self, name: str) -> MemoryClient:
        """Create a client handle.

        Raises:
            ValueError: If a connected client already uses this name.
        """
        existing = self._clients.get(name)
        if existing is not None and existing.connected:
            raise ValueError(f"Client '{name}' is already connected")
        client = MemoryClient(name)
        self._clients[name] = client
        return client

    def disconnect(self, client: MemoryClient) -> None:
        """Mark a client as gone and notify disconnect handlers."""
        if not client.connected:
            return
        client.connected = False
        self._emit_disconnect(client)

    def client_id(self, client: MemoryClient) -> str:
        return client.name

    def send(self, client: MemoryClient, message: Message) -> None:
        if not client.connected:
            logger.debug(f"Dropping message for disconnected client {client.name}")
            return
        client.inbox.append(message)

    def payloads(self, client: MemoryClient) -> list[dict[str, Any]]:
        """Drain a client's inbox as wire dicts with decoded values."""
        payloads = []
        while client.inbox:
            payload = client.inbox.popleft().to_dict()
            if "value" in payload:
                payload["value"] = codec.decode(payload["value"])
            payloads.append(payload)
        return payloads

    def clear_messages(self) -> None:
        """Empty every client's inbox."""
        for client in self._clients.values():
            client.inbox.clear()

    async def next_message(self, client: MemoryClient, timeout: float | None = None) -> Message | None:
        """Wait for the next message for a client.

        Returns:
            The message, or None on timeout.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while not client.inbox:
            if deadline is not None and loop.time() >= deadline:
                return None
            await asyncio.sleep(0.01)
        return client.inbox.popleft()
