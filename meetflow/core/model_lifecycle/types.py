from enum import Enum


class ModelType(str, Enum):
    """Heavy models that compete for the single GPU."""
    WHISPER = "whisper"
    NEMO_DIARIZATION = "nemo_diarization"
    MINUTES_LLM = "minutes_llm"
