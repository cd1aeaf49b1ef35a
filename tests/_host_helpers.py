# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Manual-clock HostIntegration for unit tests.

Nothing runs on its own: marshaled callbacks wait in ``main_queue`` until
``run_pending()``, and timers fire only when ``advance()`` moves the clock
past their due time.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Hashable

from chatcapture.host import is_muted


class FakeTimer:
    """CancellableHandle returned by ``FakeHost.schedule_once``."""

    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False
        self.cancel_calls = 0

    def cancel(self) -> None:
        self.cancel_calls += 1
        self.cancelled = True

    def fire(self) -> None:
        """Run the callback regardless of state (simulates a racing scheduler)."""
        self.fired = True
        self.callback()


class FakeHost:
    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []
        self.main_queue: deque[Callable[[], None]] = deque()
        self.outbox: list[tuple[Hashable, str]] = []
        self.listeners: list = []

    # ── HostIntegration ──────────────────────────────────────────────

    def subscribe(self, listener) -> None:
        if listener not in self.listeners:
            self.listeners.append(listener)

    def unsubscribe(self, listener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    def schedule_once(self, delay_seconds: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay_seconds, callback)
        self.timers.append(timer)
        return timer

    def run_on_main(self, callback: Callable[[], None]) -> None:
        self.main_queue.append(callback)

    def send_message(self, user_id: Hashable, text: str) -> None:
        if is_muted(user_id):
            return
        self.outbox.append((user_id, text))

    # ── Test drivers ─────────────────────────────────────────────────

    def run_pending(self) -> None:
        while self.main_queue:
            self.main_queue.popleft()()

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order, then drain the main queue."""
        self.now += seconds
        due = sorted(
            (t for t in self.timers if not t.cancelled and not t.fired and t.due <= self.now),
            key=lambda t: t.due,
        )
        for timer in due:
            if not timer.cancelled:
                timer.fire()
        self.run_pending()

    def chat(self, user_id: Hashable, text: str, *, process: bool = True) -> bool:
        """Deliver a user message; returns whether a listener consumed it."""
        consumed = False
        for listener in list(self.listeners):
            if listener.on_message(user_id, text):
                consumed = True
                break
        if process:
            self.run_pending()
        return consumed

    def disconnect(self, user_id: Hashable) -> None:
        for listener in list(self.listeners):
            listener.on_disconnect(user_id)

    def messages_to(self, user_id: Hashable) -> list[str]:
        return [text for uid, text in self.outbox if uid == user_id]

    def pending_timers(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]
