from abc import ABC, abstractmethod
from typing import Callable, Optional
from .models import TranscriptionResult


class ITranscriptionProvider(ABC):
    """
    Contract for any speech-to-text engine.
    Allows us to swap Whisper for Faster-Whisper or API-based solutions later.
    """
    @abstractmethod
    def transcribe(self,
                   audio_ref: str,
                   language_hint: Optional[str] = None,
                   on_progress: Optional[Callable[[int], None]] = None) -> TranscriptionResult:
        """
        Transcribes the stored recording.

        Args:
            audio_ref: File Storage reference of the recording.
            language_hint: ISO code, or None to let the engine detect it.
            on_progress: Optional 0-100 callback for engines that stream partial results.

        Returns:
            Structured TranscriptionResult.
        """
        pass
