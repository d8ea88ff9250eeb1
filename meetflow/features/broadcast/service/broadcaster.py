import logging
import threading
from typing import Dict, Optional
from uuid import UUID

from ..data.room_registry import RoomRegistry
from ..domain.interfaces import IConnection
from ..domain.models import ProgressEvent

logger = logging.getLogger(__name__)


class ProgressBroadcaster:
    """
    Fan-out of progress events to every connection in the job's room.

    1. Fire-and-forget: a failing connection is dropped, publish never raises.
    2. No replay: a (re)subscriber reads the Job Record, then gets live events only.
    3. At most one terminal event per job attempt for the lifetime of this broadcaster
       (a retried job starts a new attempt and may terminate again). A terminal event
       from an attempt older than one that already terminated is refused too.
    4. The error text only reaches the connections of the job's owner.
    """

    def __init__(self, registry: Optional[RoomRegistry] = None):
        self.registry = registry or RoomRegistry()
        self._terminal_lock = threading.Lock()
        # job -> highest attempt whose terminal event went out. One entry per job:
        # a retry overwrites it instead of adding another.
        self._terminal_sent: Dict[UUID, int] = {}

    def subscribe(self, connection: IConnection, job_id: UUID) -> None:
        self.registry.join(connection, job_id)
        logger.debug(f"{connection.connection_id} joined room {job_id}")

    def unsubscribe(self, connection: IConnection, job_id: UUID) -> None:
        self.registry.leave(connection.connection_id, job_id)

    def disconnect(self, connection: IConnection) -> None:
        left = self.registry.drop_connection(connection.connection_id)
        if left:
            logger.debug(f"{connection.connection_id} disconnected, left {left} room(s)")

    def has_terminal(self, job_id: UUID, attempt: int = 1) -> bool:
        with self._terminal_lock:
            return self._terminal_sent.get(job_id, 0) >= attempt

    def publish(self, event: ProgressEvent) -> int:
        """Returns the number of connections the event was handed to."""
        if event.is_terminal:
            with self._terminal_lock:
                if self._terminal_sent.get(event.job_id, 0) >= event.attempt:
                    logger.error(f"Refusing second terminal event for job {event.job_id} attempt {event.attempt} ({event.stage.value})")
                    return 0
                self._terminal_sent[event.job_id] = event.attempt

        public_payload = event.to_payload(include_error=False)
        owner_payload = event.to_payload(include_error=True)

        delivered = 0
        for connection in self.registry.members(event.job_id):
            is_owner = event.owner_id is not None and connection.owner_id == event.owner_id
            try:
                connection.send(event.name, owner_payload if is_owner else public_payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping connection {connection.connection_id}: send failed ({e})")
                self.registry.drop_connection(connection.connection_id)
        return delivered
