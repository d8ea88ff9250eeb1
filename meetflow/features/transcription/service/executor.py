import logging
from typing import Optional

from meetflow.core.enums import Stage
from meetflow.core.errors import PermanentError
from meetflow.core.jobs.service.executor import StageExecutor, ProgressCallback
from meetflow.features.diarization.service.labeller import SpeakerLabeller
from ..domain.interfaces import ITranscriptionProvider
from ..domain.models import TranscriptionInput, TranscriptionResult

logger = logging.getLogger(__name__)


class TranscriptionExecutor(StageExecutor[TranscriptionInput, TranscriptionResult]):
    """
    Stage executor for TRANSCRIPTION.
    An empty transcript is a permanent input error: retrying the same media cannot fix it.
    With a labeller, speakers are diarized and named before the stage completes.
    """

    stage = Stage.TRANSCRIPTION

    def __init__(self, provider: ITranscriptionProvider, labeller: Optional[SpeakerLabeller] = None, **kwargs):
        super().__init__(**kwargs)
        self.provider = provider
        self.labeller = labeller

    def run(self, payload: TranscriptionInput, on_progress: ProgressCallback) -> TranscriptionResult:
        result = self.provider.transcribe(payload.audio_ref, payload.language_hint, on_progress)

        if result is None or result.is_empty:
            raise PermanentError("Transcription produced an empty transcript (no speech detected).")

        if self.labeller is not None:
            on_progress(90)
            result = self.labeller.label(result, payload.audio_ref)

        logger.info(f"Transcribed {payload.audio_ref}: {len(result.segments)} segments, language={result.language}")
        return result
