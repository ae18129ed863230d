# topic_quiz/client/transport.py

import logging
from typing import Any, Dict, List, Optional

import httpx

from topic_quiz.core.errors import ParseError, ProviderUnavailable, TransportError, ValidationError

logger = logging.getLogger("quiz.transport")

GENERATE_PATH = "/generate-quiz"


class HttpQuestionSource:
    """Fetches raw question items from the provider proxy."""

    def __init__(self, base_url: str, timeout: float = 60.0, client: Optional[httpx.AsyncClient] = None):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def fetch(self, topic: str, count: int, used_questions_text: str = "") -> List[Dict[str, Any]]:
        payload = {"topic": topic, "count": count, "usedQuestionsText": used_questions_text}
        try:
            resp = await self._client.post(GENERATE_PATH, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Fetch error: {e!r}")
            raise TransportError("Network error while generating quiz.") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(
                f"Unexpected response from server (HTTP {resp.status_code}).", status_code=resp.status_code
            ) from e

        if not resp.is_success:
            raise self._error_for(resp.status_code, data)

        arr = data.get("questions", data.get("quiz")) if isinstance(data, dict) else None
        if not isinstance(arr, list) or not arr:
            raise ParseError("Server returned no questions.")
        return arr

    @staticmethod
    def _error_for(status_code: int, data: Any) -> Exception:
        data = data if isinstance(data, dict) else {}
        message = str(data.get("error") or data.get("message") or "Server error")
        logger.warning(f"Generation failed with HTTP {status_code}: {message}")
        if status_code == 400:
            return ValidationError(message)
        if status_code == 502 and "tried_models" in data:
            return ProviderUnavailable(message, tried_models=list(data.get("tried_models") or []))
        if status_code == 502 and "raw" in data:
            return ParseError(message, raw=data.get("raw"))
        return TransportError(message, status_code=status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
