import asyncio
import json
from types import SimpleNamespace

import pytest

import topic_quiz.core.openai_qg as qg
from topic_quiz.core.config import Settings
from topic_quiz.core.errors import ConfigurationError, ParseError, ProviderUnavailable
from tests.helpers import make_batch

SETTINGS = Settings(openai_api_key="sk-test", model="primary", fallback_models="primary,backup,last")


class MissingModel(Exception):
    status_code = 404


class FakeCompletions:
    """Replies per model name: a string is returned as content, an exception is raised."""

    def __init__(self, replies):
        self.replies = replies
        self.calls = []

    async def create(self, model, messages):
        self.calls.append({"model": model, "messages": messages})
        reply = self.replies.get(model, MissingModel(f"model {model} does not exist"))
        if isinstance(reply, BaseException):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


@pytest.fixture
def completions(monkeypatch):
    fake = FakeCompletions({})
    client = SimpleNamespace(chat=SimpleNamespace(completions=fake))
    monkeypatch.setattr(qg, "configure_openai", lambda settings=None: client)
    return fake


def run(coro):
    return asyncio.run(coro)


def payload(*texts):
    return json.dumps({"questions": make_batch(*texts)})


def test_uses_configured_model_first(completions):
    completions.replies["primary"] = payload("Q1", "Q2")
    questions = run(qg.generate_quiz("History", 2, settings=SETTINGS))
    assert [q.text for q in questions] == ["Q1", "Q2"]
    assert [c["model"] for c in completions.calls] == ["primary"]


def test_falls_back_when_model_is_missing(completions):
    completions.replies["last"] = payload("Q1")
    questions = run(qg.generate_quiz("History", 1, settings=SETTINGS))
    assert [q.text for q in questions] == ["Q1"]
    assert [c["model"] for c in completions.calls] == ["primary", "backup", "last"]


def test_not_found_message_also_triggers_fallback(completions):
    completions.replies["primary"] = RuntimeError("The model `primary` was not found")
    completions.replies["backup"] = payload("Q1")
    assert len(run(qg.generate_quiz("History", 1, settings=SETTINGS))) == 1


def test_other_provider_errors_abort_the_chain(completions):
    completions.replies["primary"] = RuntimeError("quota exceeded")
    completions.replies["backup"] = payload("Q1")
    with pytest.raises(RuntimeError, match="quota"):
        run(qg.generate_quiz("History", 1, settings=SETTINGS))
    assert [c["model"] for c in completions.calls] == ["primary"]


def test_no_model_available(completions):
    with pytest.raises(ProviderUnavailable) as exc:
        run(qg.generate_quiz("History", 1, settings=SETTINGS))
    assert exc.value.tried_models == ["primary", "backup", "last"]
    assert isinstance(exc.value.last_error, MissingModel)
    assert "last" in exc.value.message


def test_unparseable_reply_keeps_raw_text(completions):
    completions.replies["primary"] = "Sorry, I can't help with that."
    with pytest.raises(ParseError) as exc:
        run(qg.generate_quiz("History", 3, settings=SETTINGS))
    assert exc.value.raw == "Sorry, I can't help with that."


def test_fenced_reply_is_normalized_and_deduplicated(completions):
    body = json.dumps({"questions": make_batch("Q1", "Q1", "Q2")})
    completions.replies["primary"] = f"Here you go:\n```json\n{body}\n```"
    questions = run(qg.generate_quiz("History", 3, settings=SETTINGS))
    assert [q.text for q in questions] == ["Q1", "Q2"]


def test_prompt_carries_topic_count_and_exclusions(completions):
    completions.replies["primary"] = payload("Q1")
    run(qg.generate_quiz("  Roman history ", 7, used_questions_text="Do NOT repeat: Q0", settings=SETTINGS))
    prompt = completions.calls[0]["messages"][0]["content"]
    assert completions.calls[0]["messages"][0]["role"] == "user"
    assert 'topic: "Roman history"' in prompt
    assert "exactly 7" in prompt
    assert "Avoid repeating these exact question texts: Do NOT repeat: Q0" in prompt


def test_blank_exclusions_leave_prompt_untouched():
    assert qg.build_prompt("History", 3, "   ") == qg.build_prompt("History", 3)


def test_redact():
    assert qg.redact("key sk-abc leaked", "sk-abc") == "key *** leaked"
    assert qg.redact("nothing here", "") == "nothing here"


def test_missing_key_is_a_configuration_error(monkeypatch):
    monkeypatch.setattr(qg, "_client", None)
    with pytest.raises(ConfigurationError):
        qg.configure_openai(Settings(openai_api_key=""))


def test_list_models(monkeypatch):
    async def pages():
        yield SimpleNamespace(id="gpt-4o-mini", owned_by="openai")
        yield SimpleNamespace(id="custom")

    client = SimpleNamespace(models=SimpleNamespace(list=pages))
    monkeypatch.setattr(qg, "configure_openai", lambda settings=None: client)
    assert run(qg.list_models(SETTINGS)) == [
        {"id": "gpt-4o-mini", "owned_by": "openai"},
        {"id": "custom", "owned_by": None},
    ]


def test_list_models_unsupported(monkeypatch):
    monkeypatch.setattr(qg, "configure_openai", lambda settings=None: SimpleNamespace())
    with pytest.raises(NotImplementedError):
        run(qg.list_models(SETTINGS))
