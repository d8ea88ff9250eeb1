# File: meetflow/core/model_lifecycle/orchestrator.py

import gc
import torch
import logging
from contextlib import contextmanager
from threading import Lock, RLock
from typing import Any, Callable, Iterator, Optional

from .types import ModelType

logger = logging.getLogger(__name__)


class ModelOrchestrator:
    """
    Process-wide owner of the GPU.

    Holds at most one heavy model (Whisper or the minutes LLM) and lends it out through lease().
    While a lease is open no other job can swap the model out, so concurrent jobs that need
    different models take turns instead of evicting each other mid-call.
    """
    _instance = None
    _instance_lock = Lock()

    def __new__(cls):
        with cls._instance_lock:
            if cls._instance is None:
                instance = super(ModelOrchestrator, cls).__new__(cls)
                instance._gpu_lock = RLock()
                instance._current_type = None
                instance._loaded_model = None
                cls._instance = instance
        return cls._instance

    @contextmanager
    def lease(self, model_type: ModelType, loader_func: Callable[[], Any]) -> Iterator[Any]:
        """
        Usage:
            with orchestrator.lease(ModelType.WHISPER, load_whisper) as model:
                model.transcribe(...)

        `loader_func` only runs when `model_type` is not already resident.
        """
        with self._gpu_lock:
            yield self._ensure_loaded(model_type, loader_func)

    def release(self) -> None:
        """Frees the GPU (shutdown, or before handing it to another process)."""
        with self._gpu_lock:
            self._unload()

    @property
    def current_model_type(self) -> Optional[ModelType]:
        return self._current_type

    def _ensure_loaded(self, model_type: ModelType, loader_func: Callable[[], Any]) -> Any:
        if self._current_type == model_type and self._loaded_model is not None:
            return self._loaded_model

        self._unload()
        logger.info(f"Loading {model_type.value} into VRAM...")
        try:
            self._loaded_model = loader_func()
        except Exception as e:
            logger.error(f"Failed to load {model_type.value}: {e}")
            raise
        self._current_type = model_type
        return self._loaded_model

    def _unload(self) -> None:
        if self._loaded_model is None:
            return

        logger.info(f"Unloading {self._current_type.value} from VRAM")
        self._loaded_model = None
        self._current_type = None

        gc.collect()
        if torch.cuda.is_available():
            torch.cuda.empty_cache()
