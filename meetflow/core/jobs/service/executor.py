# File: meetflow/core/jobs/service/executor.py
import concurrent.futures
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar
from uuid import UUID

from meetflow.core.enums import ErrorKind, Stage
from meetflow.core.errors import TransientError
from .retry import RetryPolicy, classify_error, with_retry

logger = logging.getLogger(__name__)

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")

ProgressCallback = Callable[[int], None]
AttemptSource = Callable[[UUID], Optional[int]]
StopCheck = Callable[[], bool]


@dataclass(frozen=True)
class StageError:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class StageResult:
    """
    Structured outcome of one executor call: exactly one of output / error / stale.
    """
    attempt: int
    output: Any = None
    error: Optional[StageError] = None
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.stale

    @classmethod
    def success(cls, attempt: int, output: Any) -> "StageResult":
        return cls(attempt=attempt, output=output)

    @classmethod
    def failure(cls, attempt: int, kind: ErrorKind, message: str) -> "StageResult":
        return cls(attempt=attempt, error=StageError(kind=kind, message=message))

    @classmethod
    def discarded(cls, attempt: int) -> "StageResult":
        return cls(attempt=attempt, stale=True)

class StageExecutor(ABC, Generic[InputT, OutputT]):
    """
    Wraps one slow, fallible external operation.

    - Retries transient errors with backoff, fails permanent ones immediately.
    - Bounds every provider call with `timeout_seconds`; a timeout counts as transient.
      Each bounded call gets its own daemon thread, so a hung call never delays
      the calls of other jobs. The abandoned call's result is dropped.
    - Never touches the Job Record and never raises: callers get a StageResult.
    - Drops results produced under an attempt number the job has moved past.
    - Stops retrying once `should_stop` reports true (job cancelled).
    """

    stage: Stage

    def __init__(self,
                 retry_policy: Optional[RetryPolicy] = None,
                 timeout_seconds: Optional[float] = None,
                 attempt_source: Optional[AttemptSource] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.timeout_seconds = timeout_seconds
        self.attempt_source = attempt_source
        self._sleep = sleep

    @abstractmethod
    def run(self, payload: InputT, on_progress: ProgressCallback) -> OutputT:
        """Performs one call against the provider. May raise."""
        pass

    def execute(self, job_id: UUID, payload: InputT, attempt: int,
                on_progress: Optional[ProgressCallback] = None,
                should_stop: Optional[StopCheck] = None) -> StageResult:
        operation = f"{self.stage.value} (job {job_id}, attempt {attempt})"
        report = on_progress or (lambda _progress: None)

        def should_continue() -> bool:
            if should_stop is not None and should_stop():
                return False
            return not self._is_stale(job_id, attempt)

        try:
            output = with_retry(
                lambda: self._call_with_timeout(payload, report),
                self.retry_policy,
                operation_name=operation,
                sleep=self._sleep,
                should_continue=should_continue,
            )
            result = StageResult.success(attempt, output)
        except Exception as e:
            kind = classify_error(e)
            message = getattr(e, "message", None) or str(e) or e.__class__.__name__
            result = StageResult.failure(attempt, kind, message)

        if self._is_stale(job_id, attempt):
            logger.warning(f"Discarding result of {operation}: a newer attempt exists.")
            return StageResult.discarded(attempt)
        return result

    def _call_with_timeout(self, payload: InputT, report: ProgressCallback) -> OutputT:
        if self.timeout_seconds is None:
            return self.run(payload, report)

        # The clock starts with the call itself: there is no shared queue to wait in.
        future: concurrent.futures.Future = concurrent.futures.Future()

        def call() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self.run(payload, report))
            except BaseException as e:
                future.set_exception(e)

        threading.Thread(target=call, name=f"{self.stage.value}-call", daemon=True).start()
        try:
            return future.result(timeout=self.timeout_seconds)
        except concurrent.futures.TimeoutError:
            logger.warning(f"{self.stage.value} call exceeded {self.timeout_seconds}s, abandoning it")
            raise TransientError(f"{self.stage.value} call timed out after {self.timeout_seconds}s")

    def _is_stale(self, job_id: UUID, attempt: int) -> bool:
        if self.attempt_source is None:
            return False
        current = self.attempt_source(job_id)
        return current is not None and current != attempt
