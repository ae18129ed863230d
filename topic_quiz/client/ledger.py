import logging
from typing import Iterable, List, Sequence, Tuple

from topic_quiz.core.models import Question

logger = logging.getLogger("quiz.session")

DIRECTIVE_PREFIX = "Do NOT repeat these exact questions: "
DIRECTIVE_DELIMITER = " || "


class QuestionLedger:
    """Append-only record of question texts already served in a session."""

    def __init__(self, entries: Iterable[str] = ()):
        self._entries: List[str] = []
        for text in entries:
            self._entries.append(text.strip())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, text: object) -> bool:
        return isinstance(text, str) and text.strip() in self._entries

    @property
    def entries(self) -> Tuple[str, ...]:
        return tuple(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def record_and_filter(
        self,
        candidates: Sequence[Question],
        already_in_session: Sequence[Question],
    ) -> Tuple[List[Question], int]:
        """Drop duplicates, record the survivors, and return them in provider order."""
        seen = {q.text.strip() for q in already_in_session}
        seen.update(self._entries)

        accepted: List[Question] = []
        for candidate in candidates:
            text = candidate.text.strip()
            if not text or text in seen:
                logger.debug(f"Skipping duplicate question: {text[:60]!r}")
                continue
            seen.add(text)
            self._entries.append(text)
            accepted.append(candidate)
        return accepted, len(accepted)

    def build_exclusion_directive(self) -> str:
        if not self._entries:
            return ""
        flattened = (e.replace("\r\n", " ").replace("\n", " ").replace("\r", " ") for e in self._entries)
        return DIRECTIVE_PREFIX + DIRECTIVE_DELIMITER.join(flattened)
