# topic_quiz/core/__init__.py
"""
Shared core for the quiz proxy and the session engine.
Exposes the question model, the wire schemas and the error kinds.
"""

from .errors import (
    ConfigurationError,
    DuplicateExhaustion,
    GenerationInProgress,
    ParseError,
    ProviderUnavailable,
    QuizError,
    TransportError,
    ValidationError,
)
from .models import Question
from .schemas import (
    GenerateQuizRequest,
    GenerateQuizResponse,
    QuestionPayload,
)

__all__ = [
    "ConfigurationError",
    "DuplicateExhaustion",
    "GenerateQuizRequest",
    "GenerateQuizResponse",
    "GenerationInProgress",
    "ParseError",
    "ProviderUnavailable",
    "Question",
    "QuestionPayload",
    "QuizError",
    "TransportError",
    "ValidationError",
]
