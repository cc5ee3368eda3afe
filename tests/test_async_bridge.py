import asyncio
import threading

import pytest

from voicetype.async_bridge import AsyncBridge


@pytest.fixture
def bridge():
    b = AsyncBridge()
    b.start()
    yield b
    b.stop()


def test_loop_requires_start():
    with pytest.raises(RuntimeError):
        AsyncBridge().loop


def test_call_soon_runs_on_owner_thread(bridge):
    seen = []
    done = threading.Event()

    def record(value):
        seen.append((value, threading.current_thread().name))
        done.set()

    bridge.call_soon(record, 1)
    assert done.wait(2.0)
    assert seen == [(1, "VoiceType-Owner")]


def test_submit_returns_result(bridge):
    async def add(a, b):
        await asyncio.sleep(0)
        return a + b

    assert bridge.submit(add(1, 2)).result(timeout=2.0) == 3


def test_stop_lets_pending_work_clean_up():
    b = AsyncBridge()
    b.start()
    running = threading.Event()
    cleaned = []

    async def unit_of_work():
        running.set()
        try:
            await asyncio.sleep(30)
        finally:
            cleaned.append("artifact")

    b.submit(unit_of_work())
    assert running.wait(2.0)
    b.stop()

    assert cleaned == ["artifact"]
