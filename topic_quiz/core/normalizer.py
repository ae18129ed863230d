# topic_quiz/core/normalizer.py

import json, logging, re
from typing import Any, Dict, Iterable, List, Mapping

from .errors import ParseError
from .models import OPTION_COUNT, Question

logger = logging.getLogger("quiz.normalizer")

RAW_EXCERPT_CHARS = 2000

TEXT_KEYS = ("question", "q", "Q", "text", "stem")
OPTION_KEYS = ("options", "choices")
INDEX_KEYS = ("answer_index", "answerIndex", "correct_index", "correctIndex", "correct")
LETTERS = "ABCD"

_SMART_QUOTES = str.maketrans({
    "“": '"', "”": '"', "„": '"', "‟": '"',
    "‘": "'", "’": "'", "‚": "'", "‛": "'",
})
_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.S)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")

# ------------------------------------------------------------
# Payload extraction
# ------------------------------------------------------------
def _candidates(text: str) -> Iterable[str]:
    for block in _FENCE_RE.findall(text):
        yield block.strip()
    yield text.strip()
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start, end = text.find(open_ch), text.rfind(close_ch)
        if start != -1 and end > start:
            yield text[start:end + 1]


def _loads_lenient(snippet: str) -> Any:
    try:
        return json.loads(snippet)
    except ValueError:
        pass
    return json.loads(_TRAILING_COMMA_RE.sub(r"\1", snippet))


def _question_list(data: Any) -> List[Any] | None:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("questions", "quiz"):
            if isinstance(data.get(key), list):
                return data[key]
    return None


def parse_payload(raw_text: Any) -> List[Any]:
    """Extract the question array embedded in free-form model output.

    Raises ParseError when nothing parseable is found.
    """
    if not isinstance(raw_text, str) or not raw_text.strip():
        raise ParseError("Empty response from model", raw=None)

    variants = [raw_text]
    straightened = raw_text.translate(_SMART_QUOTES)
    if straightened != raw_text:
        variants.append(straightened)

    for text in variants:
        for snippet in _candidates(text):
            if not snippet:
                continue
            try:
                data = _loads_lenient(snippet)
            except ValueError:
                continue
            items = _question_list(data)
            if items is not None:
                return items

    logger.debug(f"No JSON payload found in {len(raw_text)} chars of model output")
    raise ParseError("Invalid JSON from model.", raw=raw_text[:RAW_EXCERPT_CHARS])

# ------------------------------------------------------------
# Per-item coercion
# ------------------------------------------------------------
def _first_present(item: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None


def _option_text(opt: Any) -> str:
    if isinstance(opt, dict):
        for key in ("text", "content", "label", "option"):
            if opt.get(key) is not None:
                return str(opt[key]).strip()
        return json.dumps(opt, ensure_ascii=False)
    return str(opt).strip()


def _coerce_options(raw: Any) -> List[str]:
    """Provider options in their original positions; missing or blank entries become ""."""
    if isinstance(raw, dict):
        raw = list(raw.values())
    if not isinstance(raw, (list, tuple)):
        return []
    return [_option_text(o) if o is not None else "" for o in raw]


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and re.fullmatch(r"\s*-?\d+\s*", value):
        return int(value)
    return None


def _match_answer(answer: str, options: List[str]) -> int | None:
    answer = answer.strip()
    if not answer:
        return None
    if answer in options:
        return options.index(answer)
    lowered = [o.lower() for o in options]
    if answer.lower() in lowered:
        return lowered.index(answer.lower())
    letter = answer.rstrip(").:").upper()
    if len(letter) == 1 and letter in LETTERS and LETTERS.index(letter) < len(options):
        return LETTERS.index(letter)
    return None


def _provider_index(item: Mapping[str, Any], options: List[str]) -> int | None:
    """Correct position as the provider meant it, against its own option list."""
    index = _as_int(_first_present(item, INDEX_KEYS))
    if index is not None:
        return index
    answer = item.get("answer")
    if isinstance(answer, str):
        # "4" is an option text here, not a position
        return _match_answer(answer, options)
    if isinstance(answer, (int, float)):
        return _as_int(answer)
    return None


def normalize_item(item: Any) -> Question | None:
    """Coerce one raw item; None means the item is unusable."""
    if not isinstance(item, dict):
        return None

    text = str(_first_present(item, TEXT_KEYS) or "").strip()
    if not text:
        return None

    raw_options = _coerce_options(_first_present(item, OPTION_KEYS))
    kept = [i for i, opt in enumerate(raw_options) if opt][:OPTION_COUNT]
    if len(kept) < 2:
        return None

    index = _provider_index(item, raw_options)
    if index is None:
        correct_index = 0
    elif 0 <= index < len(raw_options):
        if index not in kept:
            logger.debug(f"Dropping {text[:60]!r}: its correct option was blank or cut")
            return None
        correct_index = kept.index(index)
    else:
        correct_index = max(0, min(OPTION_COUNT - 1, index))

    options = [raw_options[i] for i in kept]
    while len(options) < OPTION_COUNT:
        options.append(f"Option {len(options) + 1}")

    explanation = item.get("explanation")
    return Question(
        text=text,
        options=tuple(options),
        correct_index=correct_index,
        explanation=str(explanation).strip() if explanation is not None else "",
    )


def normalize_items(items: Any, requested_count: int) -> List[Question]:
    if not isinstance(items, list):
        return []
    questions = [q for q in (normalize_item(it) for it in items) if q is not None]
    dropped = len(items) - len(questions)
    if dropped:
        logger.debug(f"Discarded {dropped} unusable item(s) out of {len(items)}")
    return questions[:max(0, requested_count)]


def normalize(raw_text: Any, requested_count: int) -> List[Question]:
    """Soft-failing variant: unparseable text yields an empty list."""
    try:
        items = parse_payload(raw_text)
    except ParseError as e:
        logger.warning(f"Model output not parseable: {e.message}")
        return []
    return normalize_items(items, requested_count)
