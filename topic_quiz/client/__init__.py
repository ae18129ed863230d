from .feedback import Feedback, Resolution, build_feedback, resolve
from .ledger import QuestionLedger
from .session import (
    FetchReport,
    QuestionView,
    QuizSession,
    QuizStats,
    SessionListener,
    SessionState,
)
from .timer import CountdownTimer, TimerState
from .transport import HttpQuestionSource

__all__ = [
    "CountdownTimer",
    "Feedback",
    "FetchReport",
    "HttpQuestionSource",
    "QuestionLedger",
    "QuestionView",
    "QuizSession",
    "QuizStats",
    "Resolution",
    "SessionListener",
    "SessionState",
    "TimerState",
    "build_feedback",
    "resolve",
]
