# topic_quiz/client/timer.py

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger("quiz.timer")

QUESTION_SECONDS = 30

TickCallback = Callable[[int], Any]
ExpireCallback = Callable[[], Optional[Awaitable[Any]]]


@dataclass(frozen=True)
class TimerState:
    remaining_seconds: int
    active: bool


def urgency_for(remaining: int) -> str:
    """Display level for the countdown: normal, then warning, then critical."""
    if remaining <= 10:
        return "critical"
    if remaining <= 20:
        return "warning"
    return "normal"


class CountdownTimer:
    """Per-question countdown owning a single asyncio task.

    start() always cancels the previous countdown before creating a new one,
    so an owner holding one CountdownTimer never has two tick sources alive.
    """

    def __init__(
        self,
        duration: int = QUESTION_SECONDS,
        on_tick: Optional[TickCallback] = None,
        on_expire: Optional[ExpireCallback] = None,
        interval: float = 1.0,
        name: str = "question",
    ):
        self.duration = duration
        self.interval = interval
        self.name = name
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._remaining = duration
        self._task: Optional[asyncio.Task] = None

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def state(self) -> TimerState:
        return TimerState(remaining_seconds=self._remaining, active=self.active)

    def start(self) -> None:
        self.stop()
        self._remaining = self.duration
        self._emit_tick()
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"countdown:{self.name}"
        )
        logger.debug(f"Countdown {self.name} started ({self.duration}s)")

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        # the expiry path detaches itself before calling back, so this is never the caller's own task
        task.cancel()
        logger.debug(f"Countdown {self.name} cancelled at {self._remaining}s")

    def reset(self) -> None:
        self.stop()
        self._remaining = self.duration
        self._emit_tick()

    def _emit_tick(self) -> None:
        if self._on_tick is not None:
            self._on_tick(self._remaining)

    async def _run(self) -> None:
        while self._remaining > 0:
            await asyncio.sleep(self.interval)
            self._remaining -= 1
            self._emit_tick()

        if self._task is asyncio.current_task():
            self._task = None
        logger.info(f"Countdown {self.name} expired")
        if self._on_expire is None:
            return
        try:
            result = self._on_expire()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.error(f"Expiry callback of countdown {self.name} failed", exc_info=True)
