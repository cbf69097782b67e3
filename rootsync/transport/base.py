"""Base class for message transports."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable
from typing import Any

from ..sync.messages import Message

logger = logging.getLogger(__name__)

DisconnectHandler = Callable[[Any], None]

EVENTS = ("disconnect",)


class Transport(ABC):
    """Delivers protocol messages to client handles.

    Concrete transports own delivery failures: ``send`` must not block and
    must not raise for a client that went away.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[DisconnectHandler]] = {event: [] for event in EVENTS}

    @abstractmethod
    def send(self, client: Any, message: Message) -> None:
        """Deliver one message to one client."""
        pass

    @abstractmethod
    def client_id(self, client: Any) -> Hashable:
        """Stable identifier for a client handle."""
        pass

    def on(self, event: str, handler: DisconnectHandler) -> None:
        """Register an event handler.

        Args:
            event: Event name. Only ``"disconnect"`` is supported.
            handler: Called with the client handle.
        """
        if event not in self._handlers:
            raise ValueError(f"Unknown transport event '{event}'")
        self._handlers[event].append(handler)

    def _emit_disconnect(self, client: Any) -> None:
        logger.debug(f"Client disconnected: {self.client_id(client)}")
        for handler in list(self._handlers["disconnect"]):
            handler(client)
