import logging
from typing import List, Optional, Sequence

from meetflow.core.config.settings import settings
from meetflow.core.model_lifecycle.orchestrator import ModelOrchestrator
from meetflow.core.model_lifecycle.types import ModelType
from meetflow.features.minutes.data.transformers_adapter import build_chat, generate_text, load_quantized_llm
from ..domain.interfaces import ISpeakerNamer
from ..domain.models import SpeakerSuggestion
from ..domain.naming import build_naming_prompt, parse_suggestions

logger = logging.getLogger(__name__)

NAMING_SYSTEM_PROMPT = "You identify meeting participants from what they say. Answer with JSON only."
NAMING_MAX_NEW_TOKENS = 512


class TransformersSpeakerNamer(ISpeakerNamer):
    """
    Asks the minutes LLM for real names. Shares its GPU slot (ModelType.MINUTES_LLM),
    so a job that goes on to MINUTES finds the model already loaded.
    """

    def __init__(self, model_path: Optional[str] = None):
        self.model_path = model_path or settings.LLM_MODEL_PATH
        self.orchestrator = ModelOrchestrator()

    def _load(self):
        return load_quantized_llm(self.model_path)

    def suggest_names(self, transcript_lines: Sequence[str], labels: Sequence[str]) -> List[SpeakerSuggestion]:
        prompt = build_chat(NAMING_SYSTEM_PROMPT, build_naming_prompt(transcript_lines, labels))

        with self.orchestrator.lease(ModelType.MINUTES_LLM, self._load) as (model, hf_tokenizer):
            raw = generate_text(model, hf_tokenizer, prompt, NAMING_MAX_NEW_TOKENS)

        suggestions = parse_suggestions(raw)
        logger.info(f"Speaker naming suggested {len(suggestions)} name(s) for {len(labels)} label(s)")
        return suggestions
