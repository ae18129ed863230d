# topic_quiz/core/openai_qg.py

import logging
from typing import Any, Dict, List, Sequence

from openai import AsyncOpenAI, NotFoundError

from .config import Settings, get_settings
from .errors import ConfigurationError, ParseError, ProviderUnavailable
from .models import Question
from .normalizer import normalize_items, parse_payload

logger = logging.getLogger("quiz.qg")

# ------------------------------------------------------------
# Global OpenAI client (async)
# ------------------------------------------------------------
_client: AsyncOpenAI | None = None

def configure_openai(settings: Settings | None = None) -> AsyncOpenAI:
    """Create or reuse an AsyncOpenAI client."""
    global _client
    if _client is None:
        settings = settings or get_settings()
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY missing. Provide it via env or .env file.")
        _client = AsyncOpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url)
        logger.info("OpenAI async client configured (global instance).")
    return _client

def reset_client() -> None:
    global _client
    _client = None

# ------------------------------------------------------------
# Prompt template
# ------------------------------------------------------------
QUIZ_PROMPT_TEMPLATE = (
    "You are an assistant that generates multiple-choice questions in strict JSON only.\n"
    "Generate exactly {count} unique multiple-choice questions on the topic: \"{topic}\".\n"
    "Each question must have 4 options (array length 4) and exactly one correct answer.\n"
    "Return ONLY a JSON object and nothing else. The JSON object must follow this schema:\n\n"
    "{{\n"
    "  \"questions\": [\n"
    "    {{\n"
    "      \"question\": \"string\",\n"
    "      \"options\": [\"string\",\"string\",\"string\",\"string\"],\n"
    "      \"answer_index\": 0,\n"
    "      \"explanation\": \"short explanation (optional)\"\n"
    "    }}\n"
    "  ]\n"
    "}}\n\n"
    "Do NOT include any explanatory text, markdown, or backticks. Ensure the output is valid JSON.\n"
)

def build_prompt(topic: str, count: int, used_questions_text: str = "") -> str:
    prompt = QUIZ_PROMPT_TEMPLATE.format(topic=topic.strip(), count=count)
    if used_questions_text and used_questions_text.strip():
        prompt += f"Avoid repeating these exact question texts: {used_questions_text.strip()}\n"
    return prompt

# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def _is_model_missing(err: BaseException) -> bool:
    if isinstance(err, NotFoundError) or getattr(err, "status_code", None) == 404:
        return True
    return "not found" in str(err).lower()

def redact(text: str, secret: str | None) -> str:
    if secret and secret in text:
        return text.replace(secret, "***")
    return text

def _deduplicate(items: List[Question]) -> List[Question]:
    seen = set()
    unique_items = []
    for q in items:
        if q.text not in seen:
            seen.add(q.text)
            unique_items.append(q)
    return unique_items

class _ModelMissing(Exception):
    pass

async def _try_model(client: AsyncOpenAI, model_name: str, prompt: str) -> str:
    logger.info(f"Trying model: {model_name}...")
    try:
        resp = await client.chat.completions.create(
            model=model_name,
            messages=[{"role": "user", "content": prompt}],
        )
    except Exception as e:
        if _is_model_missing(e):
            logger.info(f"Model {model_name} not found or unsupported")
            raise _ModelMissing(model_name) from e
        raise
    logger.info(f"Success with model: {model_name}")
    return resp.choices[0].message.content or ""

# ------------------------------------------------------------
# Main generator
# ------------------------------------------------------------
async def generate_quiz(
    topic: str,
    count: int,
    used_questions_text: str = "",
    settings: Settings | None = None,
) -> List[Question]:
    settings = settings or get_settings()
    client = configure_openai(settings)
    prompt = build_prompt(topic, count, used_questions_text)
    candidates: Sequence[str] = settings.candidate_models

    raw: str | None = None
    last_error: BaseException | None = None
    for model_name in candidates:
        try:
            raw = await _try_model(client, model_name, prompt)
            break
        except _ModelMissing as e:
            last_error = e.__cause__
        except Exception as e:
            logger.error(f"Error with model {model_name}: {redact(str(e), settings.openai_api_key)}")
            raise

    if raw is None:
        message = (
            "Failed to generate content with any available model. "
            f"Tried models: {', '.join(candidates)}"
        )
        if last_error:
            message += f" Last error: {last_error}"
        raise ProviderUnavailable(message, tried_models=list(candidates), last_error=last_error)

    try:
        items = parse_payload(raw)
    except ParseError:
        logger.error(f"Failed to parse model JSON ({len(raw)} chars)")
        raise

    questions = _deduplicate(normalize_items(items, count))
    logger.info(f"Generated {len(questions)} question(s) on {topic!r} (requested {count}).")
    return questions

async def list_models(settings: Settings | None = None) -> List[Dict[str, Any]]:
    """Enumerate models visible to the configured key.

    Raises NotImplementedError when the installed client cannot list models.
    """
    client = configure_openai(settings)
    lister = getattr(getattr(client, "models", None), "list", None)
    if lister is None:
        raise NotImplementedError("Model listing not supported by the installed OpenAI client.")

    models: List[Dict[str, Any]] = []
    async for m in lister():
        models.append({"id": m.id, "owned_by": getattr(m, "owned_by", None)})
    return models
