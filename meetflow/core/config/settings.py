# File: meetflow/core/config/settings.py

import os
from pathlib import Path


class Settings:
    # --- Paths ---
    # meetflow/core/config/settings.py -> meetflow/core/config -> meetflow/core -> meetflow -> ROOT
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent.parent
    DATA_DIR: Path = Path(os.getenv("MEETFLOW_DATA_DIR", str(BASE_DIR / "data")))
    ARTIFACTS_DIR: Path = DATA_DIR / "artifacts"
    MODELS_DIR: Path = BASE_DIR / "models"

    # --- Database ---
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "password")
    POSTGRES_SERVER: str = os.getenv("POSTGRES_SERVER", "localhost")
    POSTGRES_PORT: str = os.getenv("POSTGRES_PORT", "5432")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "meetflow_db")

    @property
    def DATABASE_URL(self) -> str:
        # SQLite only when explicitly requested (local runs and tests).
        if os.getenv("USE_SQLITE", "false").lower() == "true":
            return os.getenv("SQLITE_URL", f"sqlite:///{self.DATA_DIR / 'meetflow.db'}")

        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # --- Transcription Provider ---
    WHISPER_MODEL_NAME: str = os.getenv("WHISPER_MODEL_NAME", "large-v3")
    WHISPER_DEVICE: str = "cuda" if os.getenv("USE_CUDA", "true").lower() == "true" else "cpu"

    # --- Speaker Diarization ---
    DIARIZATION_ENABLED: bool = os.getenv("DIARIZATION_ENABLED", "true").lower() == "true"
    SPEAKER_NAMING_ENABLED: bool = os.getenv("SPEAKER_NAMING_ENABLED", "true").lower() == "true"
    NEMO_DIAR_MODEL: str = os.getenv("NEMO_DIAR_MODEL", "titanet_large")
    NEMO_VAD_MODEL: str = os.getenv("NEMO_VAD_MODEL", "vad_multilingual_marblenet")
    MAX_SPEAKERS: int = int(os.getenv("MAX_SPEAKERS", "8"))

    # --- Minutes / Language Model Provider ---
    LLM_MODEL_PATH: str = os.getenv("LLM_MODEL_PATH", "Qwen/Qwen2.5-7B-Instruct")
    LLM_MAX_NEW_TOKENS: int = int(os.getenv("LLM_MAX_NEW_TOKENS", "2048"))
    MINUTES_CONTEXT_TOKENS: int = int(os.getenv("MINUTES_CONTEXT_TOKENS", "24000"))
    DEFAULT_MINUTES_TEMPLATE: str = os.getenv("DEFAULT_MINUTES_TEMPLATE", "detailed")

    # --- Pipeline ---
    MAX_CONCURRENT_JOBS: int = int(os.getenv("MAX_CONCURRENT_JOBS", "4"))
    TRANSCRIPTION_TIMEOUT_SECONDS: float = float(os.getenv("TRANSCRIPTION_TIMEOUT_SECONDS", "1800"))
    MINUTES_TIMEOUT_SECONDS: float = float(os.getenv("MINUTES_TIMEOUT_SECONDS", "600"))

    # --- Executor Retry (exponential backoff) ---
    EXECUTOR_MAX_RETRIES: int = int(os.getenv("EXECUTOR_MAX_RETRIES", "3"))
    RETRY_INITIAL_DELAY_SECONDS: float = float(os.getenv("RETRY_INITIAL_DELAY_SECONDS", "1.0"))
    RETRY_MAX_DELAY_SECONDS: float = float(os.getenv("RETRY_MAX_DELAY_SECONDS", "30.0"))
    RETRY_BACKOFF_MULTIPLIER: float = float(os.getenv("RETRY_BACKOFF_MULTIPLIER", "2.0"))

    # --- Progress Broadcaster ---
    SUBSCRIBER_QUEUE_SIZE: int = int(os.getenv("SUBSCRIBER_QUEUE_SIZE", "256"))

    # --- Logging ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def ensure_dirs(self):
        """Creates necessary data directories if they don't exist."""
        self.DATA_DIR.mkdir(parents=True, exist_ok=True)
        self.ARTIFACTS_DIR.mkdir(parents=True, exist_ok=True)
        self.MODELS_DIR.mkdir(parents=True, exist_ok=True)


settings = Settings()
