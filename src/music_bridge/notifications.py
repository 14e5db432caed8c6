from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
import logging
from typing import Any

from dbus_next import Message, MessageType
from dbus_next.aio import MessageBus
from dbus_next.constants import BusType


NotificationSink = Callable[[str], Awaitable[None]]
LOGGER = logging.getLogger(__name__)

NOTIFICATIONS_BUS_NAME = "org.freedesktop.Notifications"
NOTIFICATIONS_PATH = "/org/freedesktop/Notifications"

_DETACHED: set[asyncio.Task[Any]] = set()


class Notifier:
    """User-visible messages. Every message is logged; sinks deliver it further."""

    def __init__(self) -> None:
        self._sinks: list[NotificationSink] = []
        self._tasks: set[asyncio.Task[None]] = set()

    def add_sink(self, sink: NotificationSink) -> None:
        self._sinks.append(sink)

    def notify(self, message: str) -> None:
        LOGGER.info("%s", message)
        if not self._sinks:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        for sink in self._sinks:
            task = loop.create_task(sink(message))
            self._tasks.add(task)
            task.add_done_callback(self._sink_done)

    def _sink_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning("Notification sink failed: %s", exc)


class DesktopNotificationSink:
    def __init__(self, app_name: str = "music-bridge", timeout_ms: int = 4000) -> None:
        self._app_name = app_name
        self._timeout_ms = timeout_ms
        self._bus: MessageBus | None = None

    async def start(self) -> None:
        self._bus = await MessageBus(bus_type=BusType.SESSION).connect()

    async def stop(self) -> None:
        if self._bus:
            self._bus.disconnect()
            self._bus = None

    async def __call__(self, message: str) -> None:
        if self._bus is None:
            return
        reply = await self._bus.call(
            Message(
                destination=NOTIFICATIONS_BUS_NAME,
                path=NOTIFICATIONS_PATH,
                interface=NOTIFICATIONS_BUS_NAME,
                member="Notify",
                signature="susssasa{sv}i",
                body=[self._app_name, 0, "", self._app_name, message, [], {}, self._timeout_ms],
            )
        )
        if reply is not None and reply.message_type == MessageType.ERROR:
            LOGGER.debug("Desktop notification rejected: %s", reply.error_name)


def spawn_detached(
    coro: Coroutine[Any, Any, Any], notifier: Notifier, *, name: str | None = None
) -> asyncio.Task[Any]:
    """Schedule `coro` without awaiting it; failures still reach the notifier."""
    task = asyncio.get_running_loop().create_task(coro, name=name)
    _DETACHED.add(task)

    def _done(finished: asyncio.Task[Any]) -> None:
        _DETACHED.discard(finished)
        if finished.cancelled():
            return
        exc = finished.exception()
        if exc is not None:
            LOGGER.error("Background task %s failed", finished.get_name(), exc_info=exc)
            notifier.notify(str(exc))

    task.add_done_callback(_done)
    return task
