import logging
import queue
from typing import Any, Dict, List, Optional, Tuple

from meetflow.core.config.settings import settings
from ..domain.interfaces import IConnection

logger = logging.getLogger(__name__)

Message = Tuple[str, Dict[str, Any]]


class QueueConnection(IConnection):
    """
    In-process connection backed by a bounded queue.
    A consumer that falls behind loses events instead of slowing the producer;
    it resynchronises by reading the Job Record.
    """

    def __init__(self, connection_id: str, owner_id: Optional[str] = None, maxsize: Optional[int] = None):
        self._connection_id = connection_id
        self._owner_id = owner_id
        self._queue: "queue.Queue[Message]" = queue.Queue(maxsize=maxsize or settings.SUBSCRIBER_QUEUE_SIZE)
        self.dropped = 0

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    def send(self, event_name: str, payload: Dict[str, Any]) -> None:
        try:
            self._queue.put_nowait((event_name, payload))
        except queue.Full:
            self.dropped += 1
            logger.warning(f"Connection {self._connection_id} is full, dropped {event_name} for job {payload.get('jobId')}")

    def get(self, timeout: Optional[float] = None) -> Message:
        return self._queue.get(timeout=timeout)

    def drain(self) -> List[Message]:
        messages = []
        while True:
            try:
                messages.append(self._queue.get_nowait())
            except queue.Empty:
                return messages
