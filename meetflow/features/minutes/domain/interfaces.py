# File: meetflow/features/minutes/domain/interfaces.py
from abc import ABC, abstractmethod
from typing import Sequence

from meetflow.core.enums import MinutesTemplate
from meetflow.features.transcription.domain.models import Speaker, TranscriptSegment


class ITokenizer(ABC):
    """
    Abstracts the token counting logic (Tiktoken/HuggingFace)
    so the prompt builder doesn't depend on a specific library.
    """
    @abstractmethod
    def count_tokens(self, text: str) -> int:
        pass


class ISummarizer(ABC):
    """
    Contract for the language-model provider that writes the minutes.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        pass

    @abstractmethod
    def summarize(self,
                  segments: Sequence[TranscriptSegment],
                  template: MinutesTemplate,
                  speakers: Sequence[Speaker] = ()) -> str:
        """Returns the generated minutes text."""
        pass
