# File: meetflow/features/transcription/data/whisper_adapter.py
import whisper
import logging
from typing import Callable, Optional

from meetflow.core.config.settings import settings
from meetflow.core.errors import PermanentError
from meetflow.core.model_lifecycle.orchestrator import ModelOrchestrator
from meetflow.core.model_lifecycle.types import ModelType
from meetflow.features.storage.domain.interfaces import IFileStorage
from ..domain.interfaces import ITranscriptionProvider
from ..domain.models import TranscriptionResult, TranscriptSegment

logger = logging.getLogger(__name__)


class WhisperTranscriber(ITranscriptionProvider):
    def __init__(self, storage: IFileStorage, model_size: Optional[str] = None):
        self.storage = storage
        self.model_size = model_size or settings.WHISPER_MODEL_NAME
        self.orchestrator = ModelOrchestrator()
        self.device = settings.WHISPER_DEVICE

    def transcribe(self,
                   audio_ref: str,
                   language_hint: Optional[str] = None,
                   on_progress: Optional[Callable[[int], None]] = None) -> TranscriptionResult:
        if not self.storage.exists(audio_ref):
            raise PermanentError(f"Recording {audio_ref} is not available in storage.")
        audio_path = str(self.storage.local_path(audio_ref))

        logger.info(f"Requesting Whisper ({self.model_size}) for {audio_ref}...")

        def loader():
            logger.debug(f"Loading Whisper {self.model_size} into VRAM...")
            return whisper.load_model(self.model_size, device=self.device)

        use_fp16 = (self.device == "cuda")

        try:
            with self.orchestrator.lease(ModelType.WHISPER, loader) as model:
                result_raw = model.transcribe(audio_path, fp16=use_fp16, language=language_hint)
        except RuntimeError as e:
            # whisper.load_audio wraps ffmpeg decode failures in RuntimeError
            if "Failed to load audio" in str(e):
                raise PermanentError(f"Unsupported or corrupt media: {e}")
            raise

        segments = []
        for seg in result_raw.get('segments', []):
            segments.append(TranscriptSegment(
                start=float(seg['start']),
                end=float(seg['end']),
                text=seg['text'].strip(),
                confidence=float(seg.get('avg_logprob', 0.0)),  # Approximation using logprob
            ))

        duration = segments[-1].end if segments else 0.0
        # Whisper does not diarize: speakers are attached afterwards by the SpeakerLabeller.
        return TranscriptionResult(
            segments=segments,
            speakers=[],
            language=result_raw.get('language', language_hint or 'unknown'),
            model_used=self.model_size,
            duration_seconds=duration,
        )
