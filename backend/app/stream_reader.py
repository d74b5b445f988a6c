import json
import logging
import re
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from .models import PoseComparisonResult

logger = logging.getLogger(__name__)

# Nur für den "Tipp"-Effekt; das Ergebnis kommt immer aus dem finalen Parse
FEEDBACK_PATTERN = re.compile(r'"feedback":\s*"([^"]*)')


class StreamParseError(Exception):
    pass


class StreamStopped(Exception):
    pass


def extract_partial_feedback(buffer: str) -> Optional[str]:
    """
    Sucht im bisher empfangenen Text nach dem Wert von "feedback" und entschärft nur \\n und \\".
    Gibt None zurück, solange noch nichts Anzeigbares gefunden wurde.
    """
    match = FEEDBACK_PATTERN.search(buffer)
    if not match or not match.group(1):
        return None
    return match.group(1).replace("\\n", "\n").replace('\\"', '"')


class StreamAccumulator:
    def __init__(self):
        self._parts = []
        self.partial_feedback: Optional[str] = None

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def feed(self, chunk: str) -> Optional[str]:
        """Hängt ein Fragment an und gibt den neuen Zwischentext zurück, falls er sich geändert hat."""
        self._parts.append(chunk)
        partial = extract_partial_feedback(self.text)
        if partial is None or partial == self.partial_feedback:
            return None
        self.partial_feedback = partial
        return partial

    def finish(self) -> PoseComparisonResult:
        text = self.text
        try:
            return PoseComparisonResult.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"JSON-Parse-Fehler: {str(e)}", extra={"input_sample": text[:100]})
            raise StreamParseError("Failed to parse AI response.") from e


def read_verdict(
    chunks: Iterable[str],
    on_partial: Optional[Callable[[str], None]] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> PoseComparisonResult:
    accumulator = StreamAccumulator()
    for chunk in chunks:
        if should_stop is not None and should_stop():
            raise StreamStopped("Reading stopped by caller")
        partial = accumulator.feed(chunk)
        if partial is not None and on_partial is not None:
            on_partial(partial)
    return accumulator.finish()
