from __future__ import annotations

import asyncio
import logging

import pytest

from music_bridge.notifications import Notifier, spawn_detached


async def _drain() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


async def test_sinks_receive_messages() -> None:
    received: list[str] = []

    async def sink(message: str) -> None:
        received.append(message)

    notifier = Notifier()
    notifier.add_sink(sink)
    notifier.notify("Next track")
    await _drain()

    assert received == ["Next track"]


async def test_failing_sink_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    async def broken(message: str) -> None:
        raise ConnectionError("no session bus")

    notifier = Notifier()
    notifier.add_sink(broken)
    with caplog.at_level(logging.WARNING, logger="music_bridge.notifications"):
        notifier.notify("hello")
        await _drain()

    assert "Notification sink failed: no session bus" in caplog.text


def test_notify_without_loop_only_logs(caplog: pytest.LogCaptureFixture) -> None:
    async def sink(message: str) -> None:
        raise AssertionError("sink must not run without a loop")

    notifier = Notifier()
    notifier.add_sink(sink)
    with caplog.at_level(logging.INFO, logger="music_bridge.notifications"):
        notifier.notify("offline")

    assert "offline" in caplog.text


async def test_spawn_detached_reports_failures() -> None:
    received: list[str] = []

    async def sink(message: str) -> None:
        received.append(message)

    async def fail() -> None:
        raise RuntimeError("login failed")

    async def succeed() -> None:
        return None

    notifier = Notifier()
    notifier.add_sink(sink)
    spawn_detached(succeed(), notifier, name="ok")
    task = spawn_detached(fail(), notifier, name="broken")
    await _drain()

    assert task.done()
    assert received == ["login failed"]
