"""
Speaker-to-text alignment and name assignment. Pure functions, no model access.
"""
from dataclasses import replace
from typing import Dict, List, Sequence

from meetflow.features.transcription.domain.models import Speaker, TranscriptSegment
from .models import SpeakerSegment, SpeakerSuggestion

# Below this a suggested name is shown with a "?" suffix.
CONFIDENT_NAME_THRESHOLD = 0.7
# Below this the speaker still counts as unknown.
KNOWN_SPEAKER_THRESHOLD = 0.5


def align_segments(segments: Sequence[TranscriptSegment],
                   speaker_segments: Sequence[SpeakerSegment]) -> List[TranscriptSegment]:
    """
    Gives each text segment the label of the speaker turn containing its midpoint.
    Segments that fall between turns keep their current label.
    """
    turns = sorted(speaker_segments, key=lambda s: s.start)
    aligned = []
    for seg in segments:
        midpoint = (seg.start + seg.end) / 2

        matched_label = None
        for turn in turns:
            if turn.start > midpoint:
                break
            if turn.start <= midpoint <= turn.end:
                matched_label = turn.speaker_label
                break

        aligned.append(replace(seg, speaker_label=matched_label) if matched_label else seg)
    return aligned


def speakers_from_segments(segments: Sequence[TranscriptSegment]) -> List[Speaker]:
    """One unnamed Speaker per label, in order of first appearance."""
    seen: Dict[str, Speaker] = {}
    for seg in segments:
        if seg.speaker_label and seg.speaker_label not in seen:
            seen[seg.speaker_label] = Speaker(label=seg.speaker_label)
    return list(seen.values())


def apply_suggestions(speakers: Sequence[Speaker], suggestions: Sequence[SpeakerSuggestion]) -> List[Speaker]:
    by_label = {s.current_label: s for s in suggestions}
    named = []
    for speaker in speakers:
        suggestion = by_label.get(speaker.label)
        name = (suggestion.suggested_name or "").strip() if suggestion else ""
        if not name or name == speaker.label:
            named.append(speaker)
            continue

        confidence = max(0.0, min(1.0, float(suggestion.confidence)))
        if confidence < CONFIDENT_NAME_THRESHOLD and not name.endswith("?"):
            name = f"{name}?"
        named.append(replace(
            speaker,
            name=name,
            confidence=confidence,
            is_unknown=confidence < KNOWN_SPEAKER_THRESHOLD,
        ))
    return named
