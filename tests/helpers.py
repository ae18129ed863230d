"""Fakes and helpers shared by the test-suite."""

import asyncio
from typing import Any, Dict, List, Optional

from topic_quiz.client.session import SessionListener


def make_item(text: str, answer_index: int = 0, options: Optional[List[str]] = None, **extra) -> Dict[str, Any]:
    item = {
        "question": text,
        "options": options or [f"{text} A", f"{text} B", f"{text} C", f"{text} D"],
        "answer_index": answer_index,
        "explanation": f"because {text}",
    }
    item.update(extra)
    return item


def make_batch(*texts: str, answer_index: int = 0) -> List[Dict[str, Any]]:
    return [make_item(t, answer_index=answer_index) for t in texts]


class FakeSource:
    """Question source returning queued batches (the last one repeats).

    A queued exception is raised instead of returned. When `gate` is set the
    fetch waits for it, which lets tests act while a request is in flight.
    """

    def __init__(self, *batches):
        self.batches = list(batches)
        self.calls: List[Dict[str, Any]] = []
        self.gate: Optional[asyncio.Event] = None

    async def fetch(self, topic, count, used_questions_text=""):
        self.calls.append({"topic": topic, "count": count, "used": used_questions_text})
        if self.gate is not None:
            await self.gate.wait()
        batch = self.batches.pop(0) if len(self.batches) > 1 else self.batches[0]
        if isinstance(batch, Exception):
            raise batch
        return list(batch)


class RecordingListener(SessionListener):
    def __init__(self):
        self.questions = []
        self.ticks = []
        self.feedback = []
        self.finished = []
        self.notices = []
        self.loading = []
        self.added = []

    def on_loading(self, active, message=""):
        self.loading.append(active)

    def on_question(self, view):
        self.questions.append(view)

    def on_tick(self, remaining, urgency):
        self.ticks.append((remaining, urgency))

    def on_feedback(self, feedback):
        self.feedback.append(feedback)

    def on_questions_added(self, added, total):
        self.added.append((added, total))

    def on_notice(self, message):
        self.notices.append(message)

    def on_finished(self, stats):
        self.finished.append(stats)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


async def wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def live_countdowns() -> List[asyncio.Task]:
    return [
        t for t in asyncio.all_tasks()
        if t.get_name().startswith("countdown:") and not t.done()
    ]
