# topic_quiz/core/errors.py

from typing import List, Optional


class QuizError(Exception):
    """Base class for every failure surfaced to the initiating action."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(QuizError):
    """Bad topic or count. Reported immediately, never retried."""


class TransportError(QuizError):
    """Proxy unreachable or answered with an unexpected status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderUnavailable(QuizError):
    """Every candidate upstream model rejected the request."""

    def __init__(self, message: str, tried_models: List[str], last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.tried_models = list(tried_models)
        self.last_error = last_error


class ParseError(QuizError):
    """Upstream text held no extractable question payload."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        # diagnostic excerpt only, never rendered to end users
        self.raw = raw


class DuplicateExhaustion(QuizError):
    """Every returned candidate was already served in this session."""

    def __init__(self, message: str, hard: bool):
        super().__init__(message)
        self.hard = hard


class GenerationInProgress(QuizError):
    """A provider request for this session is still outstanding."""


class ConfigurationError(QuizError, RuntimeError):
    """Upstream credentials are missing."""
