# File: meetflow/features/pipeline/service/controller.py
import logging
from uuid import UUID

from meetflow.core.enums import Stage
from meetflow.core.errors import JobNotFoundError, JobNotRetryableError, JobTerminalError, SourceMissingError
from meetflow.core.jobs.domain.interfaces import IJobRepository
from meetflow.core.jobs.domain.models import JobRecord
from meetflow.core.time_utils import utc_now
from meetflow.features.storage.domain.interfaces import IFileStorage
from ..domain import state_machine as sm
from .cancellation import CancellationRegistry
from .orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)

# Stages that re-read the original recording when resumed.
_NEEDS_SOURCE_FILE = (Stage.UPLOAD, Stage.TRANSCRIPTION)


class CancelRetryController:
    """
    Validates external cancel/retry requests against the current Job Record
    and hands the job back to the orchestrator.
    """

    def __init__(self,
                 repository: IJobRepository,
                 storage: IFileStorage,
                 orchestrator: PipelineOrchestrator,
                 cancellation: CancellationRegistry):
        self.repository = repository
        self.storage = storage
        self.orchestrator = orchestrator
        self.cancellation = cancellation

    def cancel(self, job_id: UUID) -> JobRecord:
        record = self._load(job_id)
        if record.is_terminal:
            raise JobTerminalError(job_id, record.stage)

        # 1. Flag first: a running flow sees it at its next stage boundary
        self.cancellation.request(job_id)
        try:
            # 2. Persist, so a restart does not resurrect the job
            updated = self.repository.update_job(job_id, lambda r: sm.request_cancel(r, utc_now()))
        except JobTerminalError:
            self.cancellation.clear(job_id)
            raise

        logger.info(f"Cancel requested for job {job_id} at {updated.stage.value}")
        # 3. An idle job has no flow to notice the flag
        self.orchestrator.advance(job_id)
        return updated

    def retry(self, job_id: UUID) -> JobRecord:
        record = self._load(job_id)
        if record.stage != Stage.FAILED:
            raise JobNotRetryableError(job_id, record.stage)

        resume_at = record.failed_stage or Stage.UPLOAD
        self._ensure_inputs(record, resume_at)

        self.cancellation.clear(job_id)
        updated = self.orchestrator.persist_and_publish(job_id, lambda r: sm.resume_after_failure(r, utc_now()))
        logger.info(f"Retrying job {job_id} at {resume_at.value} (attempt {updated.attempt})")

        self.orchestrator.advance(job_id)
        return updated

    def _load(self, job_id: UUID) -> JobRecord:
        record = self.repository.get_job(job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        return record

    def _ensure_inputs(self, record: JobRecord, resume_at: Stage) -> None:
        if resume_at in _NEEDS_SOURCE_FILE:
            if not self.storage.exists(record.file_ref):
                logger.warning(f"Retry of job {record.id} refused: source {record.file_ref} is gone")
                raise SourceMissingError(record.id, record.file_ref)
        elif not record.transcript:
            logger.warning(f"Retry of job {record.id} refused: transcript missing for {resume_at.value}")
            raise SourceMissingError(record.id, record.file_ref)
