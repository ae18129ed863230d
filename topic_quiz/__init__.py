"""Topic quiz: LLM-backed multiple-choice quiz proxy and session engine."""

__version__ = "0.1.0"
