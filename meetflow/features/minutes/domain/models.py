# File: meetflow/features/minutes/domain/models.py
from dataclasses import dataclass

from meetflow.core.enums import MinutesTemplate
from meetflow.features.transcription.domain.models import TranscriptionResult


@dataclass(frozen=True)
class MinutesInput:
    transcript: TranscriptionResult
    template: MinutesTemplate = MinutesTemplate.DETAILED


@dataclass(frozen=True)
class MinutesResult:
    """Generated meeting minutes (Markdown)."""
    content: str
    template: MinutesTemplate
    model_used: str = ""
