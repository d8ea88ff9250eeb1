"""Exception hierarchy shared by the job store, executors and the pipeline controller."""

from typing import Any

from meetflow.core.enums import ErrorKind


class MeetflowError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        error_code: Machine-readable identifier surfaced to API callers.
        context: Arbitrary key-value pairs describing the failure.
    """

    def __init__(self, message: str, error_code: str = "INTERNAL_ERROR", **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context


# --- Executor errors (raised by providers, converted to StageResult by executors) ---

class ExecutorError(MeetflowError):
    kind: ErrorKind = ErrorKind.PERMANENT

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, error_code=f"{self.kind.value.upper()}_ERROR", **context)


class TransientError(ExecutorError):
    """Timeout, rate limit or network failure. Retried inside the executor."""

    kind = ErrorKind.TRANSIENT


class PermanentError(ExecutorError):
    """Malformed or empty media, unsupported format, exhausted quota. Never retried."""

    kind = ErrorKind.PERMANENT


# --- Job store / controller errors ---

class JobNotFoundError(MeetflowError):
    def __init__(self, job_id: Any) -> None:
        super().__init__(f"Job {job_id} not found.", error_code="JOB_NOT_FOUND", job_id=str(job_id))


class JobStateError(MeetflowError):
    """The requested operation is not valid in the job's current state."""


class JobTerminalError(JobStateError):
    def __init__(self, job_id: Any, stage: Any) -> None:
        super().__init__(
            f"Job {job_id} is already terminal ({getattr(stage, 'value', stage)}).",
            error_code="JOB_TERMINAL",
            job_id=str(job_id),
        )


class JobNotRetryableError(JobStateError):
    def __init__(self, job_id: Any, stage: Any) -> None:
        super().__init__(
            f"Job {job_id} can only be retried after a failure (current stage: {getattr(stage, 'value', stage)}).",
            error_code="JOB_NOT_RETRYABLE",
            job_id=str(job_id),
        )


class InvalidTransitionError(JobStateError):
    def __init__(self, source: Any, target: Any) -> None:
        super().__init__(
            f"Transition {getattr(source, 'value', source)} -> {getattr(target, 'value', target)} is not allowed.",
            error_code="INVALID_TRANSITION",
        )


class StaleAttemptError(MeetflowError):
    """A write was attempted on behalf of a superseded attempt."""

    def __init__(self, job_id: Any, attempt: int, current_attempt: int) -> None:
        super().__init__(
            f"Attempt {attempt} of job {job_id} was superseded by attempt {current_attempt}.",
            error_code="STALE_ATTEMPT",
            job_id=str(job_id),
        )
        self.attempt = attempt
        self.current_attempt = current_attempt


class SourceMissingError(MeetflowError):
    """The input artifact needed to resume a job is gone. The caller must re-upload."""

    def __init__(self, job_id: Any, file_ref: str) -> None:
        super().__init__(
            f"Source file for job {job_id} is no longer available. Please re-upload the recording.",
            error_code="SOURCE_MISSING",
            job_id=str(job_id),
            file_ref=file_ref,
        )
