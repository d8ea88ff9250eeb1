# File: meetflow/features/diarization/service/labeller.py
import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from meetflow.features.minutes.domain.prompt import format_transcript
from meetflow.features.storage.domain.interfaces import IFileStorage
from meetflow.features.transcription.domain.models import Speaker, TranscriptSegment, TranscriptionResult
from ..domain.alignment import align_segments, apply_suggestions, speakers_from_segments
from ..domain.interfaces import IDiarizer, ISpeakerNamer

logger = logging.getLogger(__name__)


class SpeakerLabeller:
    """
    Speaker step that runs right after speech-to-text.

    1. Diarize the recording and give every text segment its speaker label.
    2. Ask the namer (if any) for real names found in the conversation.

    Never fails the transcription: a diarization error returns the transcript unchanged,
    a naming error leaves the speakers unnamed.
    """

    def __init__(self,
                 storage: IFileStorage,
                 diarizer: IDiarizer,
                 namer: Optional[ISpeakerNamer] = None,
                 num_speakers: Optional[int] = None):
        self.storage = storage
        self.diarizer = diarizer
        self.namer = namer
        self.num_speakers = num_speakers

    def label(self, result: TranscriptionResult, audio_ref: str) -> TranscriptionResult:
        # Providers that diarize themselves already carry speakers.
        if result.is_empty or result.speakers:
            return result

        try:
            diarization = self.diarizer.identify_speakers(self.storage.local_path(audio_ref), self.num_speakers)
        except Exception:
            logger.exception(f"Speaker diarization failed for {audio_ref} (non-critical)")
            return result

        segments = align_segments(result.segments, diarization.segments)
        speakers = speakers_from_segments(segments)
        if not speakers:
            logger.info(f"No speaker turns matched the transcript of {audio_ref}")
            return result

        if self.namer is not None:
            speakers = self._name(segments, speakers)

        named = sum(1 for s in speakers if not s.is_unknown)
        logger.info(f"Labelled {audio_ref}: {len(speakers)} speaker(s), {named} identified by name")
        return replace(result, segments=segments, speakers=speakers)

    def _name(self, segments: Sequence[TranscriptSegment], speakers: List[Speaker]) -> List[Speaker]:
        try:
            suggestions = self.namer.suggest_names(
                format_transcript(segments, speakers),
                [s.label for s in speakers],
            )
        except Exception:
            logger.exception("Speaker name identification failed (non-critical)")
            return speakers
        return apply_suggestions(speakers, suggestions)
