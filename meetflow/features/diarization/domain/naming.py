import json
import re
from typing import List, Sequence

from meetflow.features.minutes.domain.prompt import clean_generated_text
from .models import SpeakerSuggestion

MAX_TRANSCRIPT_CHARS = 15000

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def build_naming_prompt(transcript_lines: Sequence[str], labels: Sequence[str]) -> str:
    transcript = "\n".join(transcript_lines)[:MAX_TRANSCRIPT_CHARS]
    return f"""You are analyzing a meeting transcript to identify speaker names.

Current speaker labels: {", ".join(labels)}

Analyze the transcript for name clues:
1. How speakers address each other ("Hey John", "Thanks Sarah", "as Mike mentioned")
2. Self-introductions ("I'm John from...", "This is Sarah speaking")
3. References ("John's point is...", "what Sarah said earlier")
4. Sign-offs ("Thanks, John here, signing off")

IMPORTANT RULES:
- Only suggest names you are confident about based on evidence in the transcript
- If you cannot identify a speaker's real name, keep their original label
- Confidence score: 0.0-1.0 (1.0 = certain, 0.7+ = confident, <0.7 = uncertain)

Respond ONLY in valid JSON format:
{{
  "speakers": [
    {{
      "current_label": "speaker_0",
      "suggested_name": "John",
      "confidence": 0.85,
      "evidence": "Called 'John' at multiple points in conversation"
    }}
  ]
}}

If no names can be identified, return: {{"speakers": []}}

Transcript:
{transcript}"""


def parse_suggestions(raw: str) -> List[SpeakerSuggestion]:
    """
    Reads the model's JSON answer. Raises ValueError when no JSON object can be found.
    Entries missing a label or a name are skipped.
    """
    text = clean_generated_text(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Models sometimes wrap the object in prose.
        match = _JSON_OBJECT.search(text)
        if not match:
            raise ValueError(f"Speaker naming returned no JSON: {text[:200]!r}")
        data = json.loads(match.group(0))

    suggestions = []
    for entry in data.get("speakers") or []:
        label = entry.get("current_label")
        name = entry.get("suggested_name")
        if not label or not name:
            continue
        suggestions.append(SpeakerSuggestion(
            current_label=str(label),
            suggested_name=str(name),
            confidence=float(entry.get("confidence", 0.0)),
            evidence=str(entry.get("evidence", "")),
        ))
    return suggestions
