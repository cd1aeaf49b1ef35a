# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for AsyncioHost and the muting scope, end to end on a real event loop."""

from __future__ import annotations

import asyncio
import threading

from chatcapture import ValidationResult
from chatcapture.builder import ContextBuilder
from chatcapture.coordinator import Coordinator
from chatcapture.host import AsyncioHost, HostIntegration, is_muted, muted


class Outbox:
    def __init__(self) -> None:
        self.sent: list[tuple[object, str]] = []

    def __call__(self, user_id, text: str) -> None:
        self.sent.append((user_id, text))


async def _drain(loop_turns: int = 3) -> None:
    for _ in range(loop_turns):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Muting scope
# ---------------------------------------------------------------------------


class TestMuted:
    def test_scope(self):
        assert is_muted("alice") is False
        with muted("alice"):
            assert is_muted("alice") is True
            assert is_muted("bob") is False
            with muted("bob"):
                assert is_muted("alice") is True
                assert is_muted("bob") is True
            assert is_muted("bob") is False
        assert is_muted("alice") is False

    def test_scope_reset_on_error(self):
        try:
            with muted("alice"):
                raise RuntimeError
        except RuntimeError:
            pass
        assert is_muted("alice") is False


# ---------------------------------------------------------------------------
# AsyncioHost
# ---------------------------------------------------------------------------


class TestAsyncioHost:
    async def test_is_host_integration(self):
        assert isinstance(AsyncioHost(Outbox()), HostIntegration)

    async def test_send_message_sync_sender(self):
        outbox = Outbox()
        host = AsyncioHost(outbox)
        host.send_message("alice", "hi")
        assert outbox.sent == [("alice", "hi")]

    async def test_send_message_async_sender(self):
        sent = []

        async def sender(user_id, text):
            sent.append((user_id, text))

        host = AsyncioHost(sender)
        host.send_message("alice", "hi")
        await _drain()
        assert sent == [("alice", "hi")]
        await host.aclose()

    async def test_muted_message_dropped(self):
        outbox = Outbox()
        host = AsyncioHost(outbox)
        with muted("alice"):
            host.send_message("alice", "hidden")
        host.send_message("alice", "shown")
        assert outbox.sent == [("alice", "shown")]

    async def test_schedule_once_fires_and_cancels(self):
        host = AsyncioHost(Outbox())
        fired = []
        host.schedule_once(0.01, lambda: fired.append("a"))
        handle = host.schedule_once(0.01, lambda: fired.append("b"))
        handle.cancel()
        handle.cancel()
        await asyncio.sleep(0.05)
        assert fired == ["a"]
        handle.cancel()  # after the deadline: still safe

    async def test_dispatch_without_listeners(self):
        host = AsyncioHost(Outbox())
        assert host.dispatch_message("alice", "hi") is False
        host.dispatch_disconnect("alice")

    async def test_aclose_cancels_pending_sends(self):
        gate = asyncio.Event()

        async def sender(user_id, text):
            await gate.wait()

        host = AsyncioHost(sender)
        host.send_message("alice", "hi")
        await host.aclose()
        assert host._tasks == set()


class TestCoordinatorOnAsyncioHost:
    async def test_full_round_trip(self):
        outbox = Outbox()
        host = AsyncioHost(outbox)
        coordinator = Coordinator(host)
        answers = []

        coordinator.register(
            ContextBuilder("alice", lambda user, text: answers.append(text))
            .with_prompt("Name?")
            .with_validator(lambda user, text: ValidationResult.ok() if text.isalpha() else ValidationResult.fail("letters only"))
            .build()
        )
        assert host.dispatch_message("alice", "42") is True
        await _drain()
        assert host.dispatch_message("alice", "Alice") is True
        await _drain()

        assert answers == ["Alice"]
        assert outbox.sent == [("alice", "Name?"), ("alice", "letters only")]
        assert host.dispatch_message("alice", "chat") is False

    async def test_timeout_on_real_loop(self):
        outbox = Outbox()
        host = AsyncioHost(outbox)
        coordinator = Coordinator(host)
        cancelled = []

        coordinator.register(
            ContextBuilder("alice", lambda user, text: None)
            .with_canceller(cancelled.append)
            .with_timeout(coordinator, 0.02, "Too slow")
            .build()
        )
        await asyncio.sleep(0.08)
        assert cancelled == ["alice"]
        assert outbox.sent == [("alice", "Too slow")]

    async def test_message_from_worker_thread_is_marshaled(self):
        # Off-thread dispatch needs the loop bound up front
        host = AsyncioHost(Outbox(), loop=asyncio.get_running_loop())
        coordinator = Coordinator(host)
        loop_thread = threading.get_ident()
        seen_on: list[int] = []
        done = asyncio.Event()

        def receiver(user, text):
            seen_on.append(threading.get_ident())
            done.set()

        coordinator.register(ContextBuilder("alice", receiver).build())
        consumed = await asyncio.to_thread(host.dispatch_message, "alice", "from thread")
        assert consumed is True
        await asyncio.wait_for(done.wait(), timeout=1.0)
        assert seen_on == [loop_thread]

    async def test_disconnect_clears(self):
        host = AsyncioHost(Outbox())
        coordinator = Coordinator(host)
        coordinator.register(ContextBuilder("alice", lambda u, t: None).with_timeout(coordinator, 5).build())
        host.dispatch_disconnect("alice")
        assert coordinator.get_session("alice") is None
        coordinator.shutdown()
