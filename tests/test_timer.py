"""
Countdown lifecycle: ticking, expiry, cancellation and restart without leaks.
"""
import asyncio

import pytest

from topic_quiz.client.timer import CountdownTimer, urgency_for
from tests.helpers import live_countdowns, wait_for


def test_counts_down_and_expires():
    ticks, expired = [], []

    async def scenario():
        timer = CountdownTimer(duration=3, on_tick=ticks.append, on_expire=lambda: expired.append(True), interval=0.001)
        timer.start()
        assert timer.active
        await wait_for(lambda: expired)
        assert not timer.active
        assert timer.remaining == 0

    asyncio.run(scenario())
    assert ticks == [3, 2, 1, 0]
    assert expired == [True]


def test_async_expiry_callback_is_awaited():
    done = []

    async def on_expire():
        await asyncio.sleep(0)
        done.append("expired")

    async def scenario():
        timer = CountdownTimer(duration=1, on_expire=on_expire, interval=0.001)
        timer.start()
        await wait_for(lambda: done)

    asyncio.run(scenario())
    assert done == ["expired"]


def test_stop_is_idempotent_and_prevents_expiry():
    expired = []

    async def scenario():
        timer = CountdownTimer(duration=2, on_expire=lambda: expired.append(True), interval=0.01)
        timer.stop()
        timer.start()
        timer.stop()
        timer.stop()
        await asyncio.sleep(0.05)
        assert not timer.active
        assert live_countdowns() == []

    asyncio.run(scenario())
    assert expired == []


def test_restart_cancels_previous_countdown():
    async def scenario():
        timer = CountdownTimer(duration=30, interval=0.001)
        for _ in range(5):
            timer.start()
            await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert len(live_countdowns()) == 1
        timer.stop()

    asyncio.run(scenario())


def test_reset_restores_duration_without_ticking():
    ticks = []

    async def scenario():
        timer = CountdownTimer(duration=5, on_tick=ticks.append, interval=0.001)
        timer.start()
        await wait_for(lambda: timer.remaining <= 3)
        timer.reset()
        state = timer.state
        await asyncio.sleep(0.02)
        return state, timer.remaining

    state, remaining_later = asyncio.run(scenario())
    assert state.remaining_seconds == 5
    assert state.active is False
    assert remaining_later == 5
    assert ticks[-1] == 5


def test_expiry_callback_may_restart_the_timer():
    expiries = []

    async def scenario():
        timer = CountdownTimer(duration=1, interval=0.001)

        def on_expire():
            expiries.append(timer.remaining)
            if len(expiries) < 3:
                timer.start()

        timer._on_expire = on_expire
        timer.start()
        await wait_for(lambda: len(expiries) == 3)
        await asyncio.sleep(0)
        assert live_countdowns() == []

    asyncio.run(scenario())


def test_failing_expiry_callback_is_logged_not_raised(caplog):
    def on_expire():
        raise RuntimeError("listener blew up")

    async def scenario():
        timer = CountdownTimer(duration=1, on_expire=on_expire, interval=0.001, name="boom")
        timer.start()
        task = timer._task
        await wait_for(task.done)
        assert task.exception() is None
        assert not timer.active

    asyncio.run(scenario())
    assert "Expiry callback of countdown boom failed" in caplog.text


@pytest.mark.parametrize("remaining, level", [(30, "normal"), (21, "normal"), (20, "warning"), (11, "warning"), (10, "critical"), (0, "critical")])
def test_urgency_levels(remaining, level):
    assert urgency_for(remaining) == level
