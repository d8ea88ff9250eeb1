import concurrent.futures
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional
from uuid import UUID

logger = logging.getLogger(__name__)


class IJobRunner(ABC):
    """Runs one sequential flow per job. Flows of different jobs run independently."""

    @abstractmethod
    def submit(self, job_id: UUID, flow: Callable[[], None]) -> None:
        pass

    @abstractmethod
    def wait(self, job_id: UUID, timeout: Optional[float] = None) -> bool:
        """Blocks until the job's latest flow finished. Returns False on timeout."""
        pass

    @abstractmethod
    def shutdown(self, wait: bool = True) -> None:
        pass


class ThreadedJobRunner(IJobRunner):
    """
    One worker thread per active job, bounded by max_workers.
    Flows only block on provider calls, never on a shared lock, so a slow job
    does not hold up the others.
    """

    def __init__(self, max_workers: int = 4):
        self._pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="pipeline-job"
        )
        self._futures: Dict[UUID, concurrent.futures.Future] = {}
        self._lock = threading.Lock()

    def submit(self, job_id: UUID, flow: Callable[[], None]) -> None:
        with self._lock:
            future = self._pool.submit(flow)
            self._futures[job_id] = future
        # Outside the lock: an already finished future runs the callback right here.
        future.add_done_callback(lambda done: self._forget(job_id, done))

    def wait(self, job_id: UUID, timeout: Optional[float] = None) -> bool:
        with self._lock:
            future = self._futures.get(job_id)
        if future is None:
            return True
        try:
            future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            return False
        return True

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def tracked_jobs(self) -> int:
        with self._lock:
            return len(self._futures)

    def _forget(self, job_id: UUID, future: concurrent.futures.Future) -> None:
        # A newer flow for the same job may have replaced this one.
        with self._lock:
            if self._futures.get(job_id) is future:
                del self._futures[job_id]


class InlineJobRunner(IJobRunner):
    """
    Runs each flow synchronously on the caller's thread.
    Used by scripts and tests that want deterministic, single-threaded execution.
    """

    def submit(self, job_id: UUID, flow: Callable[[], None]) -> None:
        flow()

    def wait(self, job_id: UUID, timeout: Optional[float] = None) -> bool:
        return True

    def shutdown(self, wait: bool = True) -> None:
        pass
