# File: meetflow/features/pipeline/service/orchestrator.py
import logging
import threading
from typing import Callable, Dict, List, Optional, Sequence, Set
from uuid import UUID

from meetflow.core.enums import ErrorKind, MinutesTemplate, Stage, StageStatus
from meetflow.core.errors import JobStateError, StaleAttemptError
from meetflow.core.jobs.domain.interfaces import IJobRepository
from meetflow.core.jobs.domain.models import JobRecord, JobSubmission
from meetflow.core.jobs.service.executor import StageResult
from meetflow.core.jobs.service.runner import IJobRunner
from meetflow.core.time_utils import utc_now
from meetflow.features.broadcast.domain.models import ProgressEvent
from meetflow.features.broadcast.service.broadcaster import ProgressBroadcaster
from meetflow.features.minutes.domain.models import MinutesInput
from meetflow.features.minutes.service.executor import MinutesExecutor
from meetflow.features.quality.domain.models import QualityMetrics
from meetflow.features.quality.service.scorer import score_transcript
from meetflow.features.storage.domain.interfaces import IFileStorage
from meetflow.features.transcription.domain.models import (
    Speaker,
    TranscriptSegment,
    TranscriptionInput,
    TranscriptionResult,
)
from meetflow.features.transcription.service.executor import TranscriptionExecutor
from ..domain import state_machine as sm
from .cancellation import CancellationRegistry

logger = logging.getLogger(__name__)

Scorer = Callable[[Sequence[TranscriptSegment], Sequence[Speaker]], QualityMetrics]


class PipelineOrchestrator:
    """
    Single writer of stage transitions.

    Each job is driven by one sequential flow on the runner:
    read record -> check cancellation -> run stage -> persist transition -> publish.
    The flow never holds a lock while a provider call is in progress.
    """

    def __init__(self,
                 repository: IJobRepository,
                 storage: IFileStorage,
                 transcription_executor: TranscriptionExecutor,
                 minutes_executor: MinutesExecutor,
                 broadcaster: ProgressBroadcaster,
                 cancellation: CancellationRegistry,
                 runner: IJobRunner,
                 scorer: Scorer = score_transcript):
        self.repository = repository
        self.storage = storage
        self.transcription_executor = transcription_executor
        self.minutes_executor = minutes_executor
        self.broadcaster = broadcaster
        self.cancellation = cancellation
        self.runner = runner
        self.scorer = scorer

        # Executors drop results of superseded attempts by asking the store.
        for executor in (transcription_executor, minutes_executor):
            if executor.attempt_source is None:
                executor.attempt_source = self._current_attempt

        self._active: Set[UUID] = set()
        self._active_lock = threading.Lock()
        self._emit_locks: Dict[UUID, threading.Lock] = {}
        self._emit_locks_guard = threading.Lock()

        self._handlers = {
            Stage.UPLOAD: self._run_upload,
            Stage.TRANSCRIPTION: self._run_transcription,
            Stage.QUALITY: self._run_quality,
            Stage.MINUTES: self._run_minutes,
        }

    # --- Public operations ---

    def create_job(self,
                   file_ref: str,
                   owner_id: Optional[str] = None,
                   language_hint: Optional[str] = None,
                   template: MinutesTemplate = MinutesTemplate.DETAILED,
                   minutes_enabled: bool = True) -> UUID:
        record = JobRecord.new(JobSubmission(
            file_ref=file_ref,
            owner_id=owner_id,
            language_hint=language_hint,
            template=template,
            minutes_enabled=minutes_enabled,
        ))
        job_id = self.repository.create_job(record)
        self.publish_record(record)
        self.advance(job_id)
        return job_id

    def advance(self, job_id: UUID) -> bool:
        """
        Schedules the job's flow. A no-op while a flow for the job is already active,
        so at most one stage execution per job exists at any time.
        """
        with self._active_lock:
            if job_id in self._active:
                logger.debug(f"advance({job_id}) ignored: flow already active")
                return False
            self._active.add(job_id)

        try:
            self.runner.submit(job_id, lambda: self._drive(job_id))
        except Exception:
            with self._active_lock:
                self._active.discard(job_id)
            raise
        return True

    def is_active(self, job_id: UUID) -> bool:
        with self._active_lock:
            return job_id in self._active

    def on_stage_result(self, job_id: UUID, attempt: int, stage: Stage, result: StageResult) -> bool:
        """
        Stage-completion callback: the only place a stage transition is decided.
        Returns True if the result was applied to the Job Record.
        """
        record = self.repository.get_job(job_id)
        if record is None:
            logger.warning(f"Result for unknown job {job_id} dropped")
            return False

        if result.stale or record.attempt != attempt or record.stage != stage:
            logger.warning(
                f"Discarding stale {stage.value} result for job {job_id} "
                f"(attempt {attempt}, job is at {record.stage.value} attempt {record.attempt})"
            )
            return False
        if record.is_terminal:
            return False

        # Cooperative cancellation wins over whatever the stage produced, errors included.
        if self._cancel_requested(record):
            if result.error is not None:
                logger.info(f"Job {job_id} was cancelled; ignoring {stage.value} error: {result.error.message}")
            return self._finish_cancelled(job_id)

        if result.error is not None:
            logger.error(f"Job {job_id} failed at {stage.value}: [{result.error.kind.value}] {result.error.message}")
            return self._apply(job_id, lambda r: sm.fail(r, attempt, result.error.message, utc_now()))

        target = sm.next_stage(stage, record.minutes_enabled)
        outputs = self._outputs_for(stage, result.output)
        return self._apply(job_id, lambda r: sm.enter_stage(r, target, attempt, utc_now(), **outputs))

    def recover_unfinished(self) -> List[UUID]:
        """Re-drives every non-terminal job after a restart."""
        recovered = []
        for record in self.repository.list_unfinished():
            if self.advance(record.id):
                recovered.append(record.id)
        if recovered:
            logger.info(f"Recovered {len(recovered)} unfinished job(s)")
        return recovered

    def wait(self, job_id: UUID, timeout: Optional[float] = None) -> bool:
        return self.runner.wait(job_id, timeout)

    def persist_and_publish(self, job_id: UUID, mutator) -> JobRecord:
        """
        Writes one transition and publishes it under the job's emit lock.
        Errors from the mutator propagate to the caller.
        """
        with self._emit_lock(job_id):
            updated = self.repository.update_job(job_id, mutator)
            self.publish_record(updated)
        return updated

    def publish_record(self, record: JobRecord) -> int:
        return self.broadcaster.publish(ProgressEvent(
            job_id=record.id,
            stage=record.stage,
            status=record.status,
            progress=record.progress,
            attempt=record.attempt,
            error=record.error,
            owner_id=record.owner_id,
            emitted_at=record.updated_at,
        ))

    # --- Job flow ---

    def _drive(self, job_id: UUID) -> None:
        started_attempt = None
        try:
            started_attempt = self._run_flow(job_id)
        except Exception as e:
            logger.exception(f"Unexpected error while driving job {job_id}")
            self._fail_unexpected(job_id, e)
        finally:
            with self._active_lock:
                self._active.discard(job_id)

        # A retry may have landed while this flow was winding down.
        record = self.repository.get_job(job_id)
        if record is None or record.is_terminal:
            with self._emit_locks_guard:
                self._emit_locks.pop(job_id, None)
            return
        if started_attempt is not None and record.attempt > started_attempt:
            self.advance(job_id)

    def _run_flow(self, job_id: UUID) -> Optional[int]:
        started_attempt = None
        while True:
            record = self.repository.get_job(job_id)
            if record is None:
                logger.warning(f"Job {job_id} disappeared from the store")
                return started_attempt
            if started_attempt is None:
                started_attempt = record.attempt
            elif record.attempt != started_attempt:
                return started_attempt
            if record.is_terminal:
                return started_attempt

            # 1. Stage boundary: honour cancellation before starting any work
            if self._cancel_requested(record):
                self._finish_cancelled(job_id)
                return started_attempt

            # 2. Run the stage (the only blocking point)
            result = self._handlers[record.stage](record)

            # 3. Persist the transition and publish it
            if not self.on_stage_result(job_id, record.attempt, record.stage, result):
                return started_attempt

    def _run_upload(self, record: JobRecord) -> StageResult:
        self._mark(record.id, record.attempt, Stage.UPLOAD, StageStatus.RUNNING, 0)
        if not self.storage.exists(record.file_ref):
            return StageResult.failure(record.attempt, ErrorKind.RESOURCE_MISSING,
                                       f"Source file {record.file_ref} is not available in storage.")
        return StageResult.success(record.attempt, None)

    def _run_transcription(self, record: JobRecord) -> StageResult:
        self._mark(record.id, record.attempt, Stage.TRANSCRIPTION, StageStatus.RUNNING, 0)
        return self.transcription_executor.execute(
            record.id,
            TranscriptionInput(audio_ref=record.file_ref, language_hint=record.language_hint),
            record.attempt,
            on_progress=self._progress_reporter(record, Stage.TRANSCRIPTION),
            should_stop=lambda: self.cancellation.is_set(record.id),
        )

    def _run_quality(self, record: JobRecord) -> StageResult:
        """Scoring never blocks the pipeline: any failure degrades to the empty metrics."""
        self._mark(record.id, record.attempt, Stage.QUALITY, StageStatus.RUNNING, 0)
        try:
            transcript = TranscriptionResult.from_dict(record.transcript or {})
            metrics = self.scorer(transcript.segments, transcript.speakers)
        except Exception:
            logger.exception(f"Quality scoring failed for job {record.id}, using default score")
            metrics = QualityMetrics.empty()
        return StageResult.success(record.attempt, metrics)

    def _run_minutes(self, record: JobRecord) -> StageResult:
        self._mark(record.id, record.attempt, Stage.MINUTES, StageStatus.RUNNING, 0)
        transcript = TranscriptionResult.from_dict(record.transcript or {})
        return self.minutes_executor.execute(
            record.id,
            MinutesInput(transcript=transcript, template=record.template),
            record.attempt,
            on_progress=self._progress_reporter(record, Stage.MINUTES),
            should_stop=lambda: self.cancellation.is_set(record.id),
        )

    @staticmethod
    def _outputs_for(stage: Stage, output) -> dict:
        if stage == Stage.TRANSCRIPTION:
            return {"transcript": output.to_dict()}
        if stage == Stage.QUALITY:
            return {"quality": output.to_dict()}
        if stage == Stage.MINUTES:
            return {"minutes": output.content}
        return {}

    # --- Persistence + broadcast ---

    def _emit_lock(self, job_id: UUID) -> threading.Lock:
        with self._emit_locks_guard:
            return self._emit_locks.setdefault(job_id, threading.Lock())

    def _apply(self, job_id: UUID, mutator) -> bool:
        """
        Persists one transition and publishes the resulting state.
        The per-job emit lock keeps the published order equal to the persisted order.
        """
        try:
            updated = self.persist_and_publish(job_id, mutator)
        except (JobStateError, StaleAttemptError) as e:
            logger.warning(f"Transition for job {job_id} rejected: {e.message}")
            return False

        if updated.is_terminal:
            logger.info(f"Job {job_id} finished as {updated.stage.value} (attempt {updated.attempt})")
            self.cancellation.clear(job_id)
        else:
            logger.info(f"Job {job_id} -> {updated.stage.value}")
        return True

    def _mark(self, job_id: UUID, attempt: int, stage: Stage, status: StageStatus, progress: int) -> None:
        changed = []

        def mutate(record: JobRecord) -> JobRecord:
            updated = sm.mark_stage(record, attempt, stage, status, progress, utc_now())
            if updated is not record:
                changed.append(updated)
            return updated

        with self._emit_lock(job_id):
            self.repository.update_job(job_id, mutate)
            if changed:
                self.publish_record(changed[-1])

    def _progress_reporter(self, record: JobRecord, stage: Stage) -> Callable[[int], None]:
        def report(progress: int) -> None:
            try:
                self._mark(record.id, record.attempt, stage, StageStatus.RUNNING, progress)
            except Exception:
                logger.exception(f"Could not record progress for job {record.id}")
        return report

    def _cancel_requested(self, record: JobRecord) -> bool:
        return record.cancel_requested or self.cancellation.is_set(record.id)

    def _finish_cancelled(self, job_id: UUID) -> bool:
        logger.info(f"Cancelling job {job_id} at stage boundary")
        return self._apply(job_id, lambda r: sm.cancel(r, utc_now()))

    def _fail_unexpected(self, job_id: UUID, error: Exception) -> None:
        try:
            record = self.repository.get_job(job_id)
            if record is None or record.is_terminal:
                return
            self._apply(job_id, lambda r: sm.fail(r, record.attempt, f"Internal error: {error}", utc_now()))
        except Exception:
            logger.exception(f"Could not mark job {job_id} as failed")

    def _current_attempt(self, job_id: UUID) -> Optional[int]:
        record = self.repository.get_job(job_id)
        return record.attempt if record else None
