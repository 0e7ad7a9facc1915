"""In-process registry of live chat connections and the rooms they joined.

A room is keyed by group id and exists only while at least one connection is
in it. Joining a room is not an authorization decision; it only controls who
receives broadcasts.

The registry is process-local: a broadcast reaches only connections held by
this process. Running several workers needs an external pub/sub layered behind
``broadcast``.
"""
import asyncio
import logging
from typing import Any, Dict, Protocol, Set

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class RoomRegistry:
    """Maps connection id -> socket, connection id -> rooms and room -> connection ids.

    Designed for a single event loop; not thread-safe.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}
        self._rooms: Dict[str, Set[str]] = {}
        self._joined: Dict[str, Set[str]] = {}

    def register(self, connection_id: str, connection: Connection) -> None:
        self._connections[connection_id] = connection
        self._joined[connection_id] = set()
        logger.debug(f"Registered connection {connection_id}")

    def unregister(self, connection_id: str) -> Set[str]:
        """Forget a connection and remove it from every room. Returns the rooms it was in."""
        self._connections.pop(connection_id, None)
        rooms = self._joined.pop(connection_id, set())
        for group_id in rooms:
            members = self._rooms.get(group_id)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                del self._rooms[group_id]
        return rooms

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def join(self, connection_id: str, group_id: str) -> bool:
        if connection_id not in self._connections:
            return False
        self._rooms.setdefault(group_id, set()).add(connection_id)
        self._joined[connection_id].add(group_id)
        logger.debug(f"Connection {connection_id} joined room {group_id}")
        return True

    def leave(self, connection_id: str, group_id: str) -> bool:
        rooms = self._joined.get(connection_id)
        if not rooms or group_id not in rooms:
            return False
        rooms.discard(group_id)
        members = self._rooms.get(group_id, set())
        members.discard(connection_id)
        if not members:
            self._rooms.pop(group_id, None)
        logger.debug(f"Connection {connection_id} left room {group_id}")
        return True

    def members(self, group_id: str) -> Set[str]:
        return set(self._rooms.get(group_id, ()))

    def rooms_of(self, connection_id: str) -> Set[str]:
        return set(self._joined.get(connection_id, ()))

    async def send(self, connection_id: str, event: str, data: Any) -> bool:
        """Send one event to one connection. A connection that fails to receive is dropped."""
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.debug(f"Dropping {event} for closed connection {connection_id}")
            return False
        try:
            await connection.send_json({"event": event, "data": data})
            return True
        except Exception as e:
            logger.warning(f"Send of {event} to {connection_id} failed, dropping connection: {e}")
            self.unregister(connection_id)
            return False

    async def broadcast(self, group_id: str, event: str, data: Any) -> int:
        """Send an event to every connection in a room concurrently. Returns the number delivered."""
        connection_ids = self.members(group_id)
        if not connection_ids:
            return 0
        results = await asyncio.gather(
            *[self.send(cid, event, data) for cid in connection_ids]
        )
        delivered = sum(1 for ok in results if ok)
        logger.debug(f"Broadcast {event} to room {group_id}: {delivered}/{len(connection_ids)} delivered")
        return delivered
