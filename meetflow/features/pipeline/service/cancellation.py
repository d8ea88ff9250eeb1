import threading
from typing import Dict
from uuid import UUID


class CancellationRegistry:
    """
    Per-job cancellation flags shared by the controller and the job flows.
    Backed by threading.Event, so a flag set on one thread is visible on every other.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._flags: Dict[UUID, threading.Event] = {}

    def _flag(self, job_id: UUID) -> threading.Event:
        with self._lock:
            return self._flags.setdefault(job_id, threading.Event())

    def request(self, job_id: UUID) -> None:
        self._flag(job_id).set()

    def is_set(self, job_id: UUID) -> bool:
        with self._lock:
            flag = self._flags.get(job_id)
        return flag is not None and flag.is_set()

    def clear(self, job_id: UUID) -> None:
        with self._lock:
            self._flags.pop(job_id, None)
