# File: meetflow/features/pipeline/service/api.py
import logging
from pathlib import Path
from typing import List, Optional
from uuid import UUID

from meetflow.core.config.settings import Settings, settings as default_settings
from meetflow.core.enums import MinutesTemplate
from meetflow.core.errors import JobNotFoundError
from meetflow.core.jobs.domain.interfaces import IJobRepository
from meetflow.core.jobs.domain.models import JobRecord
from meetflow.features.broadcast.domain.interfaces import IConnection
from meetflow.features.broadcast.service.broadcaster import ProgressBroadcaster
from meetflow.features.storage.domain.interfaces import IFileStorage
from .controller import CancelRetryController
from .orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)


class PipelineService:
    """
    Public entry point of the meeting pipeline.
    Transport layers (HTTP, sockets) call into this and nothing else.
    """

    def __init__(self,
                 repository: IJobRepository,
                 storage: IFileStorage,
                 orchestrator: PipelineOrchestrator,
                 controller: CancelRetryController,
                 broadcaster: ProgressBroadcaster,
                 default_template: MinutesTemplate = MinutesTemplate.DETAILED):
        self.repository = repository
        self.storage = storage
        self.orchestrator = orchestrator
        self.controller = controller
        self.broadcaster = broadcaster
        self.default_template = default_template

    # --- Jobs ---

    def create_job(self,
                   file_ref: str,
                   owner_id: Optional[str] = None,
                   language_hint: Optional[str] = None,
                   template: Optional[MinutesTemplate] = None,
                   minutes_enabled: bool = True) -> UUID:
        """Starts a job for a file already persisted in storage. Returns without waiting."""
        return self.orchestrator.create_job(
            file_ref,
            owner_id=owner_id,
            language_hint=language_hint,
            template=template or self.default_template,
            minutes_enabled=minutes_enabled,
        )

    def submit_recording(self, path: Path, **options) -> UUID:
        """Moves an uploaded temp file into storage, then starts its job."""
        file_ref = self.storage.store_file(Path(path))
        logger.info(f"Stored upload {path} as {file_ref}")
        return self.create_job(file_ref, **options)

    def get_job(self, job_id: UUID) -> JobRecord:
        record = self.repository.get_job(job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        return record

    def cancel_job(self, job_id: UUID) -> JobRecord:
        return self.controller.cancel(job_id)

    def retry_job(self, job_id: UUID) -> JobRecord:
        return self.controller.retry(job_id)

    def wait(self, job_id: UUID, timeout: Optional[float] = None) -> bool:
        return self.orchestrator.wait(job_id, timeout)

    # --- Subscriptions ---

    def subscribe(self, connection: IConnection, job_id: UUID) -> JobRecord:
        """
        Joins the job's room and returns the current record for resynchronisation.
        Joining before reading means no transition can fall between the two.
        """
        self.get_job(job_id)
        self.broadcaster.subscribe(connection, job_id)
        return self.get_job(job_id)

    def unsubscribe(self, connection: IConnection, job_id: UUID) -> None:
        self.broadcaster.unsubscribe(connection, job_id)

    def disconnect(self, connection: IConnection) -> None:
        self.broadcaster.disconnect(connection)

    # --- Lifecycle ---

    def recover(self) -> List[UUID]:
        return self.orchestrator.recover_unfinished()

    def shutdown(self, wait: bool = True) -> None:
        self.orchestrator.runner.shutdown(wait=wait)
        logger.info("Pipeline service stopped")


def build_pipeline_service(config: Optional[Settings] = None) -> PipelineService:
    """
    Wires the production adapters (Whisper, NeMo diarization, local LLM, SQL store, local file storage).
    Heavy model libraries are imported here so importing the service module stays cheap.
    """
    from meetflow.core.database.connection import init_db
    from meetflow.core.log_setup import configure_logging
    from meetflow.core.jobs.data.repository import SqlJobRepository
    from meetflow.core.jobs.service.retry import RetryPolicy
    from meetflow.core.jobs.service.runner import ThreadedJobRunner
    from meetflow.features.diarization.service.labeller import SpeakerLabeller
    from meetflow.features.minutes.data.tokenizer import TiktokenTokenizer
    from meetflow.features.minutes.data.transformers_adapter import TransformersSummarizer
    from meetflow.features.minutes.service.executor import MinutesExecutor
    from meetflow.features.storage.data.local_fs import LocalFileStorage
    from meetflow.features.transcription.data.whisper_adapter import WhisperTranscriber
    from meetflow.features.transcription.service.executor import TranscriptionExecutor
    from .cancellation import CancellationRegistry

    config = config or default_settings
    configure_logging(config.LOG_LEVEL)
    config.ensure_dirs()
    init_db()

    repository = SqlJobRepository()
    storage = LocalFileStorage(root=config.ARTIFACTS_DIR)
    retry_policy = RetryPolicy.from_settings(config)

    labeller = None
    if config.DIARIZATION_ENABLED:
        from meetflow.features.diarization.data.llm_namer import TransformersSpeakerNamer
        from meetflow.features.diarization.data.nemo_adapter import NemoDiarizer

        namer = TransformersSpeakerNamer(model_path=config.LLM_MODEL_PATH) if config.SPEAKER_NAMING_ENABLED else None
        labeller = SpeakerLabeller(storage, NemoDiarizer(max_speakers=config.MAX_SPEAKERS), namer)

    transcription_executor = TranscriptionExecutor(
        WhisperTranscriber(storage, model_size=config.WHISPER_MODEL_NAME),
        labeller=labeller,
        retry_policy=retry_policy,
        timeout_seconds=config.TRANSCRIPTION_TIMEOUT_SECONDS,
    )
    minutes_executor = MinutesExecutor(
        TransformersSummarizer(
            TiktokenTokenizer(),
            model_path=config.LLM_MODEL_PATH,
            max_context_tokens=config.MINUTES_CONTEXT_TOKENS,
        ),
        retry_policy=retry_policy,
        timeout_seconds=config.MINUTES_TIMEOUT_SECONDS,
    )

    broadcaster = ProgressBroadcaster()
    cancellation = CancellationRegistry()
    orchestrator = PipelineOrchestrator(
        repository=repository,
        storage=storage,
        transcription_executor=transcription_executor,
        minutes_executor=minutes_executor,
        broadcaster=broadcaster,
        cancellation=cancellation,
        runner=ThreadedJobRunner(max_workers=config.MAX_CONCURRENT_JOBS),
    )
    controller = CancelRetryController(repository, storage, orchestrator, cancellation)

    return PipelineService(
        repository=repository,
        storage=storage,
        orchestrator=orchestrator,
        controller=controller,
        broadcaster=broadcaster,
        default_template=MinutesTemplate(config.DEFAULT_MINUTES_TEMPLATE),
    )
