import logging
from typing import List

from ..domain.models import SpeakerSegment

logger = logging.getLogger(__name__)


def parse_rttm(text: str) -> List[SpeakerSegment]:
    """
    Reads RTTM speaker turns:
    SPEAKER <file> <chan> <onset> <duration> <NA> <NA> <label> <NA> <NA>
    Non-SPEAKER records and malformed lines are skipped.
    """
    segments = []
    for line_no, line in enumerate(text.splitlines(), start=1):
        fields = line.split()
        if not fields or fields[0] != "SPEAKER":
            continue
        try:
            onset = float(fields[3])
            duration = float(fields[4])
            label = fields[7]
        except (IndexError, ValueError):
            logger.warning(f"Skipping malformed RTTM line {line_no}: {line!r}")
            continue
        segments.append(SpeakerSegment(start=onset, end=onset + duration, speaker_label=label))

    return sorted(segments, key=lambda s: s.start)
