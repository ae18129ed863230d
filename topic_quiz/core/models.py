from dataclasses import dataclass
from typing import Any, Dict, Tuple

OPTION_COUNT = 4


@dataclass(frozen=True)
class Question:
    """A normalized multiple-choice question: always 4 options, index in [0, 3]."""

    text: str
    options: Tuple[str, ...]
    correct_index: int
    explanation: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "question": self.text,
            "options": list(self.options),
            "answer_index": self.correct_index,
            "explanation": self.explanation,
        }
