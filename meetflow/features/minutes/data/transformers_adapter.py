import logging
import torch
from typing import Optional, Sequence
from transformers import AutoModelForCausalLM, AutoTokenizer, BitsAndBytesConfig

from meetflow.core.config.settings import settings
from meetflow.core.enums import MinutesTemplate
from meetflow.core.model_lifecycle.orchestrator import ModelOrchestrator
from meetflow.core.model_lifecycle.types import ModelType
from meetflow.features.transcription.domain.models import Speaker, TranscriptSegment
from ..domain.interfaces import ISummarizer, ITokenizer
from ..domain.prompt import build_minutes_prompt

logger = logging.getLogger(__name__)

MINUTES_SYSTEM_PROMPT = "You write accurate meeting minutes in Markdown. Use only facts stated in the transcript."


def load_quantized_llm(model_path: str):
    """Loads an instruction-tuned causal LM in 4-bit. Returns (model, tokenizer)."""
    logger.info(f"Loading {model_path} in 4-bit...")

    bnb_config = BitsAndBytesConfig(
        load_in_4bit=True,
        bnb_4bit_use_double_quant=True,
        bnb_4bit_quant_type="nf4",
        bnb_4bit_compute_dtype=torch.bfloat16
    )

    hf_tokenizer = AutoTokenizer.from_pretrained(model_path)
    model = AutoModelForCausalLM.from_pretrained(
        model_path,
        quantization_config=bnb_config,
        device_map="auto",
        trust_remote_code=True
    )
    return model, hf_tokenizer


def build_chat(system_prompt: str, user_prompt: str) -> str:
    """ChatML, as expected by the Qwen instruct models."""
    return f"""<|im_start|>system
{system_prompt}
<|im_end|>
<|im_start|>user
{user_prompt}
<|im_end|>
<|im_start|>assistant
"""


def generate_text(model, hf_tokenizer, prompt: str, max_new_tokens: int) -> str:
    """Greedy decoding; returns only the newly generated text."""
    inputs = hf_tokenizer([prompt], return_tensors="pt").to(model.device)
    generated_ids = model.generate(
        **inputs,
        max_new_tokens=max_new_tokens,
        do_sample=False
    )
    return hf_tokenizer.batch_decode(
        generated_ids[:, inputs.input_ids.shape[1]:],
        skip_special_tokens=True
    )[0]


class TransformersSummarizer(ISummarizer):
    """
    Local instruction-tuned LLM (Qwen 2.5 by default) loaded in 4-bit through the ModelOrchestrator,
    so it never shares VRAM with Whisper.
    """

    def __init__(self, tokenizer: ITokenizer, model_path: Optional[str] = None,
                 max_context_tokens: Optional[int] = None):
        self.model_path = model_path or settings.LLM_MODEL_PATH
        self.prompt_tokenizer = tokenizer
        self.max_context_tokens = max_context_tokens or settings.MINUTES_CONTEXT_TOKENS
        self.orchestrator = ModelOrchestrator()

    @property
    def model_name(self) -> str:
        return self.model_path

    def _load(self):
        return load_quantized_llm(self.model_path)

    def summarize(self,
                  segments: Sequence[TranscriptSegment],
                  template: MinutesTemplate,
                  speakers: Sequence[Speaker] = ()) -> str:
        user_prompt = build_minutes_prompt(
            segments, template, self.prompt_tokenizer, self.max_context_tokens, speakers
        )
        prompt = build_chat(MINUTES_SYSTEM_PROMPT, user_prompt)

        with self.orchestrator.lease(ModelType.MINUTES_LLM, self._load) as (model, hf_tokenizer):
            return generate_text(model, hf_tokenizer, prompt, settings.LLM_MAX_NEW_TOKENS)
