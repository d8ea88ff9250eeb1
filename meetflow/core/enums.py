from enum import Enum, unique


@unique
class Stage(str, Enum):
    UPLOAD = "upload"
    TRANSCRIPTION = "transcription"
    QUALITY = "quality"
    MINUTES = "minutes"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STAGES


TERMINAL_STAGES = frozenset({Stage.COMPLETED, Stage.FAILED, Stage.CANCELLED})

# Working stages in the only order the pipeline may visit them.
PIPELINE_ORDER = (Stage.UPLOAD, Stage.TRANSCRIPTION, Stage.QUALITY, Stage.MINUTES)


@unique
class StageStatus(str, Enum):
    PENDING = "pending"
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@unique
class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    RESOURCE_MISSING = "resource_missing"


@unique
class MinutesTemplate(str, Enum):
    EXECUTIVE = "executive"
    DETAILED = "detailed"
    ACTION_ITEMS = "action_items"
    COMPREHENSIVE = "comprehensive"
    GENERAL_SUMMARY = "general_summary"
