# File: meetflow/features/broadcast/domain/models.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from meetflow.core.enums import Stage, StageStatus
from meetflow.core.time_utils import utc_now

STEP_EVENT = "job:step"
COMPLETE_EVENT = "job:complete"


@dataclass(frozen=True)
class ProgressEvent:
    """
    Ephemeral progress notification. Never persisted: the Job Record is the durable state.
    """
    job_id: UUID
    stage: Stage
    status: StageStatus
    progress: int
    attempt: int = 1
    error: Optional[str] = None
    owner_id: Optional[str] = None
    emitted_at: datetime = field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    @property
    def name(self) -> str:
        return COMPLETE_EVENT if self.is_terminal else STEP_EVENT

    def to_payload(self, include_error: bool = False) -> Dict[str, Any]:
        payload = {
            "jobId": str(self.job_id),
            "stage": self.stage.value,
            "status": self.status.value,
            "progress": self.progress,
            "attempt": self.attempt,
            "emittedAt": self.emitted_at.isoformat(),
        }
        if include_error and self.error:
            payload["error"] = self.error
        return payload
