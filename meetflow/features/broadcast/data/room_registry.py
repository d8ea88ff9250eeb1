import threading
from typing import Dict, List, Set
from uuid import UUID

from ..domain.interfaces import IConnection


class RoomRegistry:
    """
    Room table: job id -> connections subscribed to that job.
    All access goes through one lock; readers get snapshots, never the live sets.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._rooms: Dict[UUID, Dict[str, IConnection]] = {}
        self._memberships: Dict[str, Set[UUID]] = {}

    def join(self, connection: IConnection, job_id: UUID) -> None:
        with self._lock:
            self._rooms.setdefault(job_id, {})[connection.connection_id] = connection
            self._memberships.setdefault(connection.connection_id, set()).add(job_id)

    def leave(self, connection_id: str, job_id: UUID) -> bool:
        with self._lock:
            return self._remove(connection_id, job_id)

    def drop_connection(self, connection_id: str) -> int:
        """Removes the connection from every room. Returns the number of rooms left."""
        with self._lock:
            job_ids = list(self._memberships.get(connection_id, ()))
            for job_id in job_ids:
                self._remove(connection_id, job_id)
            return len(job_ids)

    def members(self, job_id: UUID) -> List[IConnection]:
        with self._lock:
            return list(self._rooms.get(job_id, {}).values())

    def rooms_for(self, connection_id: str) -> Set[UUID]:
        with self._lock:
            return set(self._memberships.get(connection_id, ()))

    def _remove(self, connection_id: str, job_id: UUID) -> bool:
        room = self._rooms.get(job_id)
        if not room or connection_id not in room:
            return False

        del room[connection_id]
        if not room:
            del self._rooms[job_id]

        joined = self._memberships.get(connection_id)
        if joined is not None:
            joined.discard(job_id)
            if not joined:
                del self._memberships[connection_id]
        return True
