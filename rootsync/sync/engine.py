"""Sync engine: routes root object changes to subscribed clients.

The engine owns a :class:`RootTable` and listens to its change batches.
Each change record becomes exactly one protocol message, broadcast to every
client linked to the record's root key in record order. Deleting a root key
outright sends ``finalize`` and drops all of that key's registrations.
"""

import logging
import threading
from collections.abc import Hashable
from typing import TYPE_CHECKING, Any

from .. import codec
from ..codec import UNDEFINED
from ..store import ChangeRecord, RootTable
from .messages import Message, Op
from .registry import SubscriberRegistry
from .translator import translate

if TYPE_CHECKING:
    from ..transport.base import Transport

logger = logging.getLogger(__name__)


class NoSuchKeyError(KeyError):
    """Raised when linking to a root key that has no current value."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"No such key: {self.key}"


class SyncEngine:
    """Broadcasts root object changes to linked clients.

    Batch processing, ``link``, ``unlink`` and disconnect handling are
    serialized under one lock, so a whole batch reaches every subscriber
    before any later batch or subscription change is applied.
    """

    def __init__(
        self,
        transport: "Transport",
        table: RootTable | None = None,
        value_codec: Any = codec,
    ):
        """Initialize the engine.

        Args:
            transport: Transport used to deliver messages.
            table: Existing root table to adopt. A new one is created if None.
            value_codec: Codec used to encode values for the wire.
        """
        self.transport = transport
        self.codec = value_codec
        self._table = table if table is not None else RootTable()
        self._registry = SubscriberRegistry()
        self._handles: dict[Hashable, Any] = {}
        self._lock = threading.RLock()

        self._table.observe(self._on_changes)
        transport.on("disconnect", self._on_disconnect)

    @property
    def data(self) -> RootTable:
        """The live root object table."""
        return self._table

    def link(self, client: Any, key: str) -> Message:
        """Subscribe a client to a root key and send it the current value.

        Args:
            client: Transport client handle.
            key: Root key to subscribe to.

        Returns:
            The ``init`` message sent to the client.

        Raises:
            NoSuchKeyError: If the key has no current value.
        """
        with self._lock:
            value = self._table.get(key, UNDEFINED)
            if value is UNDEFINED:
                raise NoSuchKeyError(key)

            client_id = self.transport.client_id(client)
            self._registry.add(client_id, key)
            self._handles[client_id] = client

            message = Message.init(key, self.codec.encode(value))
            self.transport.send(client, message)
            logger.debug(f"Linked client {client_id} to '{key}'")
            return message

    def unlink(self, client: Any, key: str) -> None:
        """Unsubscribe a client from a root key and send it ``closed``.

        Unlinking a pair that is not registered still sends ``closed``.
        """
        with self._lock:
            client_id = self.transport.client_id(client)
            self._registry.remove(client_id, key)
            self._forget_if_idle(client_id)

            self.transport.send(client, Message.closed(key))
            logger.debug(f"Unlinked client {client_id} from '{key}'")

    def subscribers(self, key: str) -> frozenset[Hashable]:
        """Ids of the clients currently linked to a key."""
        with self._lock:
            return self._registry.clients_for(key)

    def subscriptions(self, client: Any) -> frozenset[str]:
        """Keys a client is currently linked to."""
        with self._lock:
            return self._registry.keys_for(self.transport.client_id(client))

    def stats(self) -> dict[str, int]:
        """Counts of keys, linked keys, clients and registrations."""
        with self._lock:
            return {
                "key_count": len(self._table),
                "linked_key_count": len(self._registry.keys()),
                "client_count": len(self._registry.clients()),
                "registration_count": len(self._registry),
            }

    def close(self) -> None:
        """Stop observing the table."""
        self._table.unobserve(self._on_changes)

    def _on_changes(self, records: list[ChangeRecord]) -> None:
        with self._lock:
            for record in records:
                self._process(record)

    def _process(self, record: ChangeRecord) -> None:
        key = record.root_key
        if record.is_root_delete:
            message = Message.finalize(key)
        else:
            message = translate(record, self._table, self.codec)

        self._broadcast(key, message)

        if message.op is Op.FINALIZE:
            for client_id in self._registry.remove_key(key):
                self._forget_if_idle(client_id)
            logger.info(f"Root key '{key}' deleted; subscribers finalized")

    def _broadcast(self, key: str, message: Message) -> None:
        for client_id in self._registry.clients_for(key):
            self.transport.send(self._handles[client_id], message)

    def _on_disconnect(self, client: Any) -> None:
        with self._lock:
            client_id = self.transport.client_id(client)
            keys = self._registry.remove_client(client_id)
            self._handles.pop(client_id, None)
            if keys:
                logger.debug(f"Client {client_id} disconnected; dropped {len(keys)} link(s)")

    def _forget_if_idle(self, client_id: Hashable) -> None:
        if not self._registry.keys_for(client_id):
            self._handles.pop(client_id, None)
