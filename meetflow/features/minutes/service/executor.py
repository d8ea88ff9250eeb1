import logging

from meetflow.core.enums import Stage
from meetflow.core.errors import PermanentError
from meetflow.core.jobs.service.executor import StageExecutor, ProgressCallback
from ..domain.interfaces import ISummarizer
from ..domain.models import MinutesInput, MinutesResult
from ..domain.prompt import clean_generated_text

logger = logging.getLogger(__name__)


class MinutesExecutor(StageExecutor[MinutesInput, MinutesResult]):
    stage = Stage.MINUTES

    def __init__(self, summarizer: ISummarizer, **kwargs):
        super().__init__(**kwargs)
        self.summarizer = summarizer

    def run(self, payload: MinutesInput, on_progress: ProgressCallback) -> MinutesResult:
        transcript = payload.transcript
        if transcript.is_empty:
            raise PermanentError("No transcript available for minutes generation.")

        raw = self.summarizer.summarize(transcript.segments, payload.template, transcript.speakers)
        content = clean_generated_text(raw)
        if not content:
            raise PermanentError("Language model returned empty minutes.")

        logger.info(f"Generated {payload.template.value} minutes ({len(content)} chars)")
        return MinutesResult(content=content, template=payload.template, model_used=self.summarizer.model_name)
