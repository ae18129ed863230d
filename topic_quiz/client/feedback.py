from dataclasses import dataclass, field
from typing import Dict, Optional

from topic_quiz.core.models import Question

FEEDBACK_DELAY_SECONDS = 1.2

CORRECT = "correct"
INCORRECT = "incorrect"


@dataclass(frozen=True)
class Resolution:
    correct: bool
    score_delta: int


@dataclass(frozen=True)
class Feedback:
    """What the view shows once a question is answered or timed out."""

    position: int
    selected_index: Optional[int]
    correct: bool
    score_delta: int
    marks: Dict[int, str] = field(default_factory=dict)
    explanation: str = ""
    locked: bool = True


def resolve(question: Question, selected_index: Optional[int]) -> Resolution:
    if selected_index is not None and selected_index == question.correct_index:
        return Resolution(correct=True, score_delta=1)
    return Resolution(correct=False, score_delta=0)


def annotate(question: Question, selected_index: Optional[int]) -> Dict[int, str]:
    marks = {question.correct_index: CORRECT}
    if (
        selected_index is not None
        and selected_index != question.correct_index
        and 0 <= selected_index < len(question.options)
    ):
        marks[selected_index] = INCORRECT
    return marks


def build_feedback(position: int, question: Question, selected_index: Optional[int]) -> Feedback:
    resolution = resolve(question, selected_index)
    return Feedback(
        position=position,
        selected_index=selected_index,
        correct=resolution.correct,
        score_delta=resolution.score_delta,
        marks=annotate(question, selected_index),
        explanation=question.explanation,
    )
