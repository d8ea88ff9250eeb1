from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence
from .models import DiarizationResult, SpeakerSuggestion


class IDiarizer(ABC):
    @abstractmethod
    def identify_speakers(self, audio_path: Path, num_speakers: Optional[int] = None) -> DiarizationResult:
        """
        Analyzes audio to identify unique speakers.
        Args:
            audio_path: Path to wav/mp3.
            num_speakers: Optional hint if known (e.g., 2 for phone call).
        """
        pass


class ISpeakerNamer(ABC):
    @abstractmethod
    def suggest_names(self, transcript_lines: Sequence[str], labels: Sequence[str]) -> List[SpeakerSuggestion]:
        """
        Looks for name clues (greetings, introductions, references) in the
        labelled transcript. Labels with no evidence are left out of the result.
        """
        pass
