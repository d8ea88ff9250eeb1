# File: meetflow/core/jobs/domain/models.py
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from meetflow.core.enums import Stage, StageStatus, MinutesTemplate, PIPELINE_ORDER
from meetflow.core.time_utils import utc_now


@dataclass(frozen=True)
class StageState:
    """Sub-status of a single pipeline stage."""
    status: StageStatus = StageStatus.PENDING
    progress: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "progress": self.progress, "error": self.error}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StageState":
        return cls(
            status=StageStatus(data.get("status", StageStatus.PENDING.value)),
            progress=int(data.get("progress", 0)),
            error=data.get("error"),
        )


def initial_stage_states() -> Dict[Stage, StageState]:
    return {stage: StageState() for stage in PIPELINE_ORDER}


@dataclass(frozen=True)
class JobSubmission:
    """
    DTO for requesting a new pipeline run.
    """
    file_ref: str
    owner_id: Optional[str] = None
    language_hint: Optional[str] = None
    template: MinutesTemplate = MinutesTemplate.DETAILED
    minutes_enabled: bool = True


@dataclass(frozen=True)
class JobRecord:
    """
    One pipeline instance for one uploaded recording.

    `stage`, `status`, `progress` and `error` describe where the job is right now.
    `stage_statuses` keeps the sub-status of every working stage so a reconnecting
    client can rebuild the whole progress view from a single read.
    Stage outputs (transcript, quality, minutes) live on the record so a retry
    only has to rebuild the missing downstream work.
    """
    id: UUID
    file_ref: str
    stage: Stage = Stage.UPLOAD
    status: StageStatus = StageStatus.PENDING
    progress: int = 0
    error: Optional[str] = None
    failed_stage: Optional[Stage] = None
    attempt: int = 1
    cancel_requested: bool = False

    owner_id: Optional[str] = None
    language_hint: Optional[str] = None
    template: MinutesTemplate = MinutesTemplate.DETAILED
    minutes_enabled: bool = True

    stage_statuses: Dict[Stage, StageState] = field(default_factory=initial_stage_states)
    transcript: Optional[Dict[str, Any]] = None
    quality: Optional[Dict[str, Any]] = None
    minutes: Optional[str] = None

    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    @classmethod
    def new(cls, submission: JobSubmission) -> "JobRecord":
        now = utc_now()
        return cls(
            id=uuid4(),
            file_ref=submission.file_ref,
            owner_id=submission.owner_id,
            language_hint=submission.language_hint,
            template=submission.template,
            minutes_enabled=submission.minutes_enabled,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    def stage_state(self, stage: Stage) -> StageState:
        return self.stage_statuses.get(stage, StageState())

    def with_changes(self, **changes) -> "JobRecord":
        return replace(self, **changes)
