# File: meetflow/features/transcription/domain/models.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class TranscriptSegment:
    """
    Represents a specific phrase with exact timing.
    """
    start: float
    end: float
    text: str
    speaker_label: Optional[str] = None
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "speaker_label": self.speaker_label,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptSegment":
        return cls(
            start=float(data.get("start", 0.0)),
            end=float(data.get("end", 0.0)),
            text=data.get("text", ""),
            speaker_label=data.get("speaker_label"),
            confidence=float(data.get("confidence", 0.0)),
        )


@dataclass(frozen=True)
class Speaker:
    """
    A diarized voice. `confidence` is the identification confidence (0-1) of `name`,
    None when nobody tried to name the speaker.
    """
    label: str
    name: Optional[str] = None
    confidence: Optional[float] = None
    is_unknown: bool = True

    @property
    def display_name(self) -> str:
        return self.name or self.label

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "name": self.name,
            "confidence": self.confidence,
            "is_unknown": self.is_unknown,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Speaker":
        confidence = data.get("confidence")
        return cls(
            label=data["label"],
            name=data.get("name"),
            confidence=float(confidence) if confidence is not None else None,
            is_unknown=bool(data.get("is_unknown", True)),
        )


@dataclass(frozen=True)
class TranscriptionResult:
    """
    The complete output of the speech-to-text provider.
    """
    segments: List[TranscriptSegment] = field(default_factory=list)
    speakers: List[Speaker] = field(default_factory=list)
    language: str = "unknown"
    model_used: str = ""
    duration_seconds: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not any(seg.text.strip() for seg in self.segments)

    def speaker_names(self) -> Dict[str, str]:
        return {s.label: s.display_name for s in self.speakers}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "model_used": self.model_used,
            "duration_seconds": self.duration_seconds,
            "segments": [s.to_dict() for s in self.segments],
            "speakers": [s.to_dict() for s in self.speakers],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptionResult":
        return cls(
            segments=[TranscriptSegment.from_dict(s) for s in data.get("segments", [])],
            speakers=[Speaker.from_dict(s) for s in data.get("speakers", [])],
            language=data.get("language", "unknown"),
            model_used=data.get("model_used", ""),
            duration_seconds=float(data.get("duration_seconds", 0.0)),
        )


@dataclass(frozen=True)
class TranscriptionInput:
    audio_ref: str
    language_hint: Optional[str] = None
