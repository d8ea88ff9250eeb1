import uuid
from sqlalchemy import Column, String, Integer, Boolean, Text, DateTime, Enum as SQLEnum, JSON
from sqlalchemy.dialects.postgresql import UUID

from meetflow.core.database.base import Base
from meetflow.core.enums import Stage, StageStatus, MinutesTemplate
from meetflow.core.time_utils import utc_now


class JobModel(Base):
    __tablename__ = "pipeline_jobs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    file_ref = Column(String, nullable=False)
    owner_id = Column(String, nullable=True, index=True)

    stage = Column(SQLEnum(Stage), default=Stage.UPLOAD, nullable=False, index=True)
    status = Column(SQLEnum(StageStatus), default=StageStatus.PENDING, nullable=False)
    progress = Column(Integer, default=0, nullable=False)
    error_message = Column(String, nullable=True)
    failed_stage = Column(SQLEnum(Stage), nullable=True)
    attempt = Column(Integer, default=1, nullable=False)
    cancel_requested = Column(Boolean, default=False, nullable=False)

    # Input parameters
    language_hint = Column(String, nullable=True)
    template = Column(SQLEnum(MinutesTemplate), default=MinutesTemplate.DETAILED, nullable=False)
    minutes_enabled = Column(Boolean, default=True, nullable=False)

    # {"transcription": {"status": "running", "progress": 40, "error": null}, ...}
    stage_statuses = Column(JSON, default=dict)

    # Stage outputs
    transcript = Column(JSON, nullable=True)
    quality = Column(JSON, nullable=True)
    minutes_content = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now)
    finished_at = Column(DateTime(timezone=True), nullable=True)
