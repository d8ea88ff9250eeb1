"""
Transcript quality scoring.

Pure functions only: identical input always yields identical output.
The weights and thresholds are calibration constants carried over as-is.
"""
import math
import re
from typing import List, Sequence, Tuple

from meetflow.features.transcription.domain.models import Speaker, TranscriptSegment
from ..domain.models import QualityMetrics, QualitySubScores

INAUDIBLE_PATTERN = re.compile(r"\[(inaudible|unclear)\]", re.IGNORECASE)
WHITESPACE = re.compile(r"\s+")

INAUDIBLE_PENALTY_PER_MARKER = 5
NEUTRAL_CONFIDENCE = 0.5
TARGET_WORDS_PER_SEGMENT = 20
POINTS_PER_NAMED_SPEAKER = 25

CLARITY_WEIGHT = 0.4
CONFIDENCE_WEIGHT = 0.3
SEGMENT_WEIGHT = 0.15
SPEAKER_WEIGHT = 0.15

GRADE_THRESHOLDS: Tuple[Tuple[int, str], ...] = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _count_words(text: str) -> int:
    # Splitting on whitespace runs, empty leading/trailing pieces included.
    return len(WHITESPACE.split(text))


def quality_grade(score: int) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


def recommendations(inaudible_count: int,
                    avg_speaker_confidence: float,
                    avg_segment_length: float,
                    speaker_count: int) -> Tuple[str, ...]:
    tips: List[str] = []
    if inaudible_count > 5:
        tips.append("Review and correct inaudible sections for better accuracy")
    if avg_speaker_confidence < 0.7:
        tips.append("Confirm speaker identities for better attribution")
    if avg_segment_length < 10:
        tips.append("Transcript has short segments - audio quality may be improved")
    if speaker_count == 1:
        tips.append("Only one speaker detected - verify if more participants exist")
    return tuple(tips)


def score_transcript(segments: Sequence[TranscriptSegment], speakers: Sequence[Speaker]) -> QualityMetrics:
    """
    Scores a finished transcript on a 0-100 scale.

    Sub-scores:
        clarity     100 minus 5 per [inaudible]/[unclear] marker, floored at 0
        confidence  mean speaker identification confidence x 100 (0.5 when unknown)
        length      average words per segment against a 20-word target, capped at 100
        speakers    25 per named (not unknown) speaker, capped at 100

    Total = 40% clarity + 30% confidence + 15% length + 15% speakers, rounded half-up
    and clamped to [0, 100]. An empty transcript scores 0 across the board.
    """
    if not segments:
        return QualityMetrics(
            grade=quality_grade(0),
            recommendations=recommendations(0, 0.0, 0.0, 0),
        )

    word_count = sum(_count_words(s.text) for s in segments)
    segment_count = len(segments)
    avg_segment_length = word_count / segment_count

    inaudible_count = sum(len(INAUDIBLE_PATTERN.findall(s.text)) for s in segments)

    confidence_values = [s.confidence for s in speakers if s.confidence is not None]
    avg_speaker_confidence = (
        sum(confidence_values) / len(confidence_values) if confidence_values else NEUTRAL_CONFIDENCE
    )

    inaudible_penalty = max(0, 100 - inaudible_count * INAUDIBLE_PENALTY_PER_MARKER)
    confidence_score = avg_speaker_confidence * 100
    length_score = min(100, (avg_segment_length / TARGET_WORDS_PER_SEGMENT) * 100)
    speaker_score = min(100, len([s for s in speakers if not s.is_unknown]) * POINTS_PER_NAMED_SPEAKER)

    total = _round_half_up(
        inaudible_penalty * CLARITY_WEIGHT
        + confidence_score * CONFIDENCE_WEIGHT
        + length_score * SEGMENT_WEIGHT
        + speaker_score * SPEAKER_WEIGHT
    )
    quality_score = max(0, min(100, total))
    rounded_length = _round_half_up(avg_segment_length * 10) / 10

    return QualityMetrics(
        quality_score=quality_score,
        inaudible_count=inaudible_count,
        avg_speaker_confidence=avg_speaker_confidence,
        word_count=word_count,
        segment_count=segment_count,
        speaker_count=len(speakers),
        avg_segment_length=rounded_length,
        details=QualitySubScores(
            inaudible_penalty=float(inaudible_penalty),
            confidence_score=float(confidence_score),
            length_score=float(length_score),
            speaker_score=float(speaker_score),
        ),
        grade=quality_grade(quality_score),
        recommendations=recommendations(
            inaudible_count, avg_speaker_confidence, rounded_length, len(speakers)
        ),
    )
