from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class QualitySubScores:
    """Independent 0-100 sub-scores feeding the weighted total."""
    inaudible_penalty: float = 0.0
    confidence_score: float = 0.0
    length_score: float = 0.0
    speaker_score: float = 0.0


@dataclass(frozen=True)
class QualityMetrics:
    quality_score: int = 0
    inaudible_count: int = 0
    avg_speaker_confidence: float = 0.0
    word_count: int = 0
    segment_count: int = 0
    speaker_count: int = 0
    avg_segment_length: float = 0.0
    details: QualitySubScores = field(default_factory=QualitySubScores)
    grade: str = "F"
    recommendations: Tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> "QualityMetrics":
        """Degraded default used when scoring is impossible."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["recommendations"] = list(self.recommendations)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QualityMetrics":
        return cls(
            quality_score=int(data.get("quality_score", 0)),
            inaudible_count=int(data.get("inaudible_count", 0)),
            avg_speaker_confidence=float(data.get("avg_speaker_confidence", 0.0)),
            word_count=int(data.get("word_count", 0)),
            segment_count=int(data.get("segment_count", 0)),
            speaker_count=int(data.get("speaker_count", 0)),
            avg_segment_length=float(data.get("avg_segment_length", 0.0)),
            details=QualitySubScores(**data.get("details", {})),
            grade=data.get("grade", "F"),
            recommendations=tuple(data.get("recommendations", ())),
        )
