# File: meetflow/features/diarization/domain/models.py
from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class SpeakerSegment:
    """
    A time range assigned to a specific speaker label.
    """
    start: float
    end: float
    speaker_label: str  # e.g., "speaker_0", "speaker_1"
    confidence: float = 0.0


@dataclass(frozen=True)
class DiarizationResult:
    """
    Who spoke when, independent of what was said.
    """
    source_file: str
    num_speakers: int
    segments: List[SpeakerSegment] = field(default_factory=list)


@dataclass(frozen=True)
class SpeakerSuggestion:
    """A real name proposed for a diarized label, with the evidence found in the conversation."""
    current_label: str
    suggested_name: str
    confidence: float
    evidence: str = ""
