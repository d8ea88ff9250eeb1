import logging
import threading
from typing import List, Optional
from uuid import UUID

from meetflow.core.database.connection import SessionLocal
from meetflow.core.enums import Stage, TERMINAL_STAGES
from meetflow.core.errors import JobNotFoundError
from ..domain.interfaces import IJobRepository, JobMutator
from ..domain.models import JobRecord, StageState
from .sql_models import JobModel

logger = logging.getLogger(__name__)


class SqlJobRepository(IJobRepository):
    """
    SQLAlchemy implementation of the Job Record Store.
    Every mutation is a single transaction; the process-wide lock plus
    SELECT ... FOR UPDATE keeps read-modify-write atomic on SQLite and Postgres alike.
    """

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory
        self._write_lock = threading.Lock()

    def create_job(self, record: JobRecord) -> UUID:
        with self._session_factory() as db:
            model = JobModel(id=record.id)
            self._write_fields(model, record)
            model.created_at = record.created_at
            db.add(model)
            db.commit()
            logger.info(f"Job Record created: {record.id} (file: {record.file_ref})")
            return record.id

    def get_job(self, job_id: UUID) -> Optional[JobRecord]:
        with self._session_factory() as db:
            model = db.get(JobModel, job_id)
            return self._to_record(model) if model else None

    def update_job(self, job_id: UUID, mutator: JobMutator) -> JobRecord:
        with self._write_lock, self._session_factory() as db:
            try:
                model = (
                    db.query(JobModel)
                    .filter(JobModel.id == job_id)
                    .with_for_update()
                    .first()
                )
                if model is None:
                    raise JobNotFoundError(job_id)

                updated = mutator(self._to_record(model))
                self._write_fields(model, updated)
                db.commit()
                return updated
            except Exception:
                db.rollback()
                raise

    def list_unfinished(self) -> List[JobRecord]:
        with self._session_factory() as db:
            models = (
                db.query(JobModel)
                .filter(JobModel.stage.notin_(list(TERMINAL_STAGES)))
                .order_by(JobModel.created_at)
                .all()
            )
            return [self._to_record(m) for m in models]

    # --- Mapping ---

    @staticmethod
    def _write_fields(model: JobModel, record: JobRecord) -> None:
        model.file_ref = record.file_ref
        model.owner_id = record.owner_id
        model.stage = record.stage
        model.status = record.status
        model.progress = record.progress
        model.error_message = record.error
        model.failed_stage = record.failed_stage
        model.attempt = record.attempt
        model.cancel_requested = record.cancel_requested
        model.language_hint = record.language_hint
        model.template = record.template
        model.minutes_enabled = record.minutes_enabled
        # Always assign fresh containers so SQLAlchemy sees the JSON change.
        model.stage_statuses = {stage.value: state.to_dict() for stage, state in record.stage_statuses.items()}
        model.transcript = dict(record.transcript) if record.transcript is not None else None
        model.quality = dict(record.quality) if record.quality is not None else None
        model.minutes_content = record.minutes
        model.updated_at = record.updated_at
        model.finished_at = record.finished_at

    @staticmethod
    def _to_record(model: JobModel) -> JobRecord:
        stage_statuses = {
            Stage(name): StageState.from_dict(state)
            for name, state in (model.stage_statuses or {}).items()
        }
        return JobRecord(
            id=model.id,
            file_ref=model.file_ref,
            stage=model.stage,
            status=model.status,
            progress=model.progress,
            error=model.error_message,
            failed_stage=model.failed_stage,
            attempt=model.attempt,
            cancel_requested=model.cancel_requested,
            owner_id=model.owner_id,
            language_hint=model.language_hint,
            template=model.template,
            minutes_enabled=model.minutes_enabled,
            stage_statuses=stage_statuses,
            transcript=model.transcript,
            quality=model.quality,
            minutes=model.minutes_content,
            created_at=model.created_at,
            updated_at=model.updated_at,
            finished_at=model.finished_at,
        )
