import logging
import re
from typing import List, Sequence

from meetflow.core.enums import MinutesTemplate
from meetflow.features.transcription.domain.models import Speaker, TranscriptSegment
from .interfaces import ITokenizer
from .templates import TEMPLATE_PROMPTS

logger = logging.getLogger(__name__)

UNKNOWN_SPEAKER = "Unknown Speaker"
TRUNCATION_NOTICE = "[Transcript truncated to fit the model context]"

_CODE_FENCE_OPEN = re.compile(r"^```(?:markdown|md|json)?\s*\n?", re.IGNORECASE)
_CODE_FENCE_CLOSE = re.compile(r"\n?```\s*$")


def format_transcript(segments: Sequence[TranscriptSegment], speakers: Sequence[Speaker] = ()) -> List[str]:
    """
    The Script Formatter.
    Transforms segments into lines like: "Dr. Smith: The patient is stable."
    """
    names = {s.label: s.display_name for s in speakers}
    lines = []
    for seg in segments:
        if seg.speaker_label:
            speaker = names.get(seg.speaker_label, seg.speaker_label)
        else:
            speaker = UNKNOWN_SPEAKER
        lines.append(f"{speaker}: {seg.text}")
    return lines


def build_minutes_prompt(segments: Sequence[TranscriptSegment],
                         template: MinutesTemplate,
                         tokenizer: ITokenizer,
                         max_tokens: int,
                         speakers: Sequence[Speaker] = ()) -> str:
    """
    Template instructions followed by the transcript.
    Whole transcript lines are dropped from the end once the token budget is used up;
    the instructions themselves are never cut.
    """
    instructions = TEMPLATE_PROMPTS[template]
    header = f"{instructions}\n\nTranscript:\n"

    # Count the tokens of the FINAL format, not just the raw text.
    budget = max_tokens - tokenizer.count_tokens(header) - tokenizer.count_tokens(TRUNCATION_NOTICE)
    kept: List[str] = []
    used = 0
    lines = format_transcript(segments, speakers)
    for line in lines:
        cost = tokenizer.count_tokens(line + "\n")
        if used + cost > budget:
            break
        kept.append(line)
        used += cost

    if len(kept) < len(lines):
        logger.warning(f"Minutes prompt truncated: kept {len(kept)} of {len(lines)} transcript lines.")
        kept.append(TRUNCATION_NOTICE)

    return header + "\n".join(kept)


def clean_generated_text(text: str) -> str:
    """Strips the markdown code fences models like to wrap their answer in."""
    cleaned = (text or "").strip()
    cleaned = _CODE_FENCE_OPEN.sub("", cleaned)
    cleaned = _CODE_FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()
