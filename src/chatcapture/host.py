# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Host integration contract and an asyncio reference host.

Protocol-based design: the coordinator only talks to a ``HostIntegration``
(event subscription, delayed tasks, main-context dispatch, message
delivery). ``AsyncioHost`` implements it on top of an event loop; game or bot
frameworks with their own main thread provide their own implementation.

Message muting: ``muted(user_id)`` opens a scope in which messages to that
user are dropped by ``AsyncioHost.send_message`` and ``Coordinator.send_message``.
The coordinator uses it while running a displaced context's canceller.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import logging
from collections.abc import Awaitable, Callable, Hashable, Iterator
from contextlib import contextmanager
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

Sender = Callable[[Hashable, str], Awaitable[None] | None]

_muted_users: contextvars.ContextVar[frozenset] = contextvars.ContextVar("chatcapture_muted_users", default=frozenset())


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class CancellableHandle(Protocol):
    """Handle to a scheduled one-shot task.

    ``cancel()`` must be safe to call repeatedly and after the task fired.
    """

    def cancel(self) -> None: ...


@runtime_checkable
class HostListener(Protocol):
    """Receiver of host events (implemented by ``Coordinator``)."""

    def on_message(self, user_id: Hashable, text: str) -> bool: ...

    def on_disconnect(self, user_id: Hashable) -> None: ...


@runtime_checkable
class HostIntegration(Protocol):
    """What the coordinator needs from the host application."""

    def subscribe(self, listener: HostListener) -> None: ...

    def schedule_once(self, delay_seconds: float, callback: Callable[[], None]) -> CancellableHandle: ...

    def run_on_main(self, callback: Callable[[], None]) -> None: ...

    def send_message(self, user_id: Hashable, text: str) -> None: ...


# ---------------------------------------------------------------------------
# Muting scope
# ---------------------------------------------------------------------------


@contextmanager
def muted(user_id: Hashable) -> Iterator[None]:
    """Suppress outbound messages to *user_id* for the duration of the block."""
    token = _muted_users.set(_muted_users.get() | {user_id})
    try:
        yield
    finally:
        _muted_users.reset(token)


def is_muted(user_id: Hashable) -> bool:
    return user_id in _muted_users.get()


# ---------------------------------------------------------------------------
# asyncio implementation
# ---------------------------------------------------------------------------


class AsyncioHost:
    """HostIntegration backed by an asyncio event loop.

    The loop thread is the serialized main context. ``dispatch_message`` may
    be called from any thread; ``dispatch_disconnect`` and ``schedule_once``
    must be called on the loop thread.
    """

    def __init__(self, sender: Sender, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Initialize the host.

        Args:
            sender: Delivers a message to a user. May be a coroutine function;
                its awaitables are scheduled as tracked tasks.
            loop: Event loop acting as main context. Defaults to the running
                loop at first use, which must then happen on the loop thread;
                pass it explicitly when messages arrive from other threads
                before anything else touched the host.
        """
        self._sender = sender
        self._loop = loop
        self._listeners: list[HostListener] = []
        self._tasks: set[asyncio.Future] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    # ── HostIntegration ──────────────────────────────────────────────

    def subscribe(self, listener: HostListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: HostListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def schedule_once(self, delay_seconds: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay_seconds, callback)

    def run_on_main(self, callback: Callable[[], None]) -> None:
        self.loop.call_soon_threadsafe(callback)

    def send_message(self, user_id: Hashable, text: str) -> None:
        if is_muted(user_id):
            logger.debug("Outbound message suppressed (muted scope)")
            return
        result = self._sender(user_id, text)
        if inspect.isawaitable(result):
            self._track(asyncio.ensure_future(result, loop=self.loop))

    # ── Host-side event entry points ─────────────────────────────────

    def dispatch_message(self, user_id: Hashable, text: str) -> bool:
        """Offer a chat message to listeners.

        Returns True when a listener consumed it; the host should then skip
        its normal chat handling.
        """
        for listener in list(self._listeners):
            if listener.on_message(user_id, text):
                return True
        return False

    def dispatch_disconnect(self, user_id: Hashable) -> None:
        for listener in list(self._listeners):
            listener.on_disconnect(user_id)

    async def aclose(self) -> None:
        """Cancel in-flight send tasks."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    def _track(self, task: asyncio.Future) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._on_send_done)

    def _on_send_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Message delivery failed: %r", task.exception())
