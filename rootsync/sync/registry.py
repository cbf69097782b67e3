"""Bidirectional index of client subscriptions."""

from collections.abc import Hashable

ClientId = Hashable


class SubscriberRegistry:
    """Tracks which clients are linked to which root keys.

    Two maps are kept mutually consistent: a client appears under a key if
    and only if that key appears under the client. Entries whose set becomes
    empty are removed. Lookups never create entries.
    """

    def __init__(self) -> None:
        self._key_to_clients: dict[str, set[ClientId]] = {}
        self._client_to_keys: dict[ClientId, set[str]] = {}
        self._count = 0

    def __len__(self) -> int:
        """Number of (client, key) registrations."""
        return self._count

    def __contains__(self, edge: object) -> bool:
        if not isinstance(edge, tuple) or len(edge) != 2:
            return False
        client, key = edge
        return key in self._client_to_keys.get(client, ())

    def add(self, client: ClientId, key: str) -> bool:
        """Register ``client`` under ``key``.

        Returns:
            True if the registration is new.
        """
        if (client, key) in self:
            return False
        self._key_to_clients.setdefault(key, set()).add(client)
        self._client_to_keys.setdefault(client, set()).add(key)
        self._count += 1
        return True

    def remove(self, client: ClientId, key: str) -> bool:
        """Remove one registration. Removing a non-member is a no-op.

        Returns:
            True if a registration was removed.
        """
        if (client, key) not in self:
            return False
        self._drop_edges([(client, key)])
        return True

    def remove_client(self, client: ClientId) -> frozenset[str]:
        """Remove every registration of a client.

        Returns:
            The keys the client was registered for.
        """
        keys = self.keys_for(client)
        self._drop_edges([(client, key) for key in keys])
        return keys

    def remove_key(self, key: str) -> frozenset[ClientId]:
        """Remove every registration for a key.

        Returns:
            The clients that were registered for the key.
        """
        clients = self.clients_for(key)
        self._drop_edges([(client, key) for client in clients])
        return clients

    def clients_for(self, key: str) -> frozenset[ClientId]:
        """Snapshot of the clients registered for a key."""
        return frozenset(self._key_to_clients.get(key, ()))

    def keys_for(self, client: ClientId) -> frozenset[str]:
        """Snapshot of the keys a client is registered for."""
        return frozenset(self._client_to_keys.get(client, ()))

    def keys(self) -> frozenset[str]:
        """Keys with at least one registered client."""
        return frozenset(self._key_to_clients)

    def clients(self) -> frozenset[ClientId]:
        """Clients with at least one registration."""
        return frozenset(self._client_to_keys)

    def _drop_edges(self, edges: list[tuple[ClientId, str]]) -> None:
        # Resolve every affected set before touching either map; the loop
        # below only discards and deletes, so both sides change together.
        affected = [
            (client, key, self._key_to_clients[key], self._client_to_keys[client])
            for client, key in edges
            if (client, key) in self
        ]

        for client, key, clients, keys in affected:
            clients.discard(client)
            keys.discard(key)
            if not clients:
                self._key_to_clients.pop(key, None)
            if not keys:
                self._client_to_keys.pop(client, None)
        self._count -= len(affected)
