"""
Pure transition functions over JobRecord.

Every function returns a new record (or raises) and performs no I/O, so the
repository can run them inside a single read-modify-write transaction.
"""
from datetime import datetime
from typing import Dict, Optional

from meetflow.core.enums import Stage, StageStatus, PIPELINE_ORDER
from meetflow.core.errors import (
    InvalidTransitionError,
    JobNotRetryableError,
    JobTerminalError,
    StaleAttemptError,
)
from meetflow.core.jobs.domain.models import JobRecord, StageState

_FORWARD = {
    Stage.UPLOAD: Stage.TRANSCRIPTION,
    Stage.TRANSCRIPTION: Stage.QUALITY,
    Stage.QUALITY: Stage.MINUTES,
    Stage.MINUTES: Stage.COMPLETED,
}


def next_stage(stage: Stage, minutes_enabled: bool = True) -> Stage:
    if stage.is_terminal:
        raise InvalidTransitionError(stage, None)
    if stage == Stage.QUALITY and not minutes_enabled:
        return Stage.COMPLETED
    return _FORWARD[stage]


def can_transition(source: Stage, target: Stage, minutes_enabled: bool = True) -> bool:
    if source.is_terminal:
        return False
    if target in (Stage.FAILED, Stage.CANCELLED):
        return True
    return next_stage(source, minutes_enabled) == target


def _guard(record: JobRecord, attempt: int) -> None:
    if record.is_terminal:
        raise JobTerminalError(record.id, record.stage)
    if record.attempt != attempt:
        raise StaleAttemptError(record.id, attempt, record.attempt)


def _with_state(states: Dict[Stage, StageState], stage: Stage, state: StageState) -> Dict[Stage, StageState]:
    updated = dict(states)
    updated[stage] = state
    return updated


def enter_stage(record: JobRecord, target: Stage, attempt: int, now: datetime, **outputs) -> JobRecord:
    """
    Completes the current stage and moves the job to `target`.
    `outputs` carries the finished stage's artifacts (transcript, quality, minutes).
    """
    _guard(record, attempt)
    if not can_transition(record.stage, target, record.minutes_enabled):
        raise InvalidTransitionError(record.stage, target)

    states = _with_state(record.stage_statuses, record.stage, StageState(StageStatus.DONE, 100))

    if target == Stage.COMPLETED:
        return record.with_changes(
            stage=target,
            status=StageStatus.DONE,
            progress=100,
            error=None,
            stage_statuses=states,
            updated_at=now,
            finished_at=now,
            **outputs,
        )

    states[target] = StageState(StageStatus.QUEUED, 0)
    return record.with_changes(
        stage=target,
        status=StageStatus.QUEUED,
        progress=0,
        error=None,
        stage_statuses=states,
        updated_at=now,
        **outputs,
    )


def mark_stage(record: JobRecord, attempt: int, stage: Stage, status: StageStatus,
               progress: int, now: datetime) -> JobRecord:
    """
    In-stage status/progress update.
    Returns the record unchanged when it no longer matches (moved on, terminal, newer attempt)
    or when nothing would change. Progress never goes backwards within a status.
    """
    if record.is_terminal or record.attempt != attempt or record.stage != stage:
        return record

    progress = max(0, min(100, int(progress)))
    if status == record.status:
        progress = max(progress, record.progress)
        if progress == record.progress:
            return record

    return record.with_changes(
        status=status,
        progress=progress,
        stage_statuses=_with_state(record.stage_statuses, stage, StageState(status, progress)),
        updated_at=now,
    )


def fail(record: JobRecord, attempt: int, error: str, now: datetime) -> JobRecord:
    _guard(record, attempt)
    failed_at = record.stage
    current = record.stage_state(failed_at)
    return record.with_changes(
        stage=Stage.FAILED,
        status=StageStatus.FAILED,
        error=error,
        failed_stage=failed_at,
        stage_statuses=_with_state(
            record.stage_statuses, failed_at, StageState(StageStatus.FAILED, current.progress, error)
        ),
        updated_at=now,
        finished_at=now,
    )


def request_cancel(record: JobRecord, now: datetime) -> JobRecord:
    if record.is_terminal:
        raise JobTerminalError(record.id, record.stage)
    return record.with_changes(cancel_requested=True, updated_at=now)


def cancel(record: JobRecord, now: datetime) -> JobRecord:
    """
    Moves the job to CANCELLED. The interrupted stage keeps its last sub-status
    so CANCELLED never reads as a failure.
    """
    if record.is_terminal:
        raise JobTerminalError(record.id, record.stage)
    return record.with_changes(
        stage=Stage.CANCELLED,
        status=StageStatus.DONE,
        error=None,
        cancel_requested=True,
        updated_at=now,
        finished_at=now,
    )


def resume_after_failure(record: JobRecord, now: datetime) -> JobRecord:
    """
    Explicit retry: back to the stage that failed, with a new attempt number.
    Earlier stages and their outputs are left untouched.
    """
    if record.stage != Stage.FAILED:
        raise JobNotRetryableError(record.id, record.stage)

    resume_at: Optional[Stage] = record.failed_stage or Stage.UPLOAD
    states = dict(record.stage_statuses)
    for stage in PIPELINE_ORDER[PIPELINE_ORDER.index(resume_at):]:
        states[stage] = StageState()

    return record.with_changes(
        stage=resume_at,
        status=StageStatus.PENDING,
        progress=0,
        error=None,
        failed_stage=None,
        attempt=record.attempt + 1,
        cancel_requested=False,
        stage_statuses=states,
        updated_at=now,
        finished_at=None,
    )
