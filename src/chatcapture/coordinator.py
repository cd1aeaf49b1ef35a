# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Coordinator: owns the session registry and arbitrates host events.

Every context resolves exactly once, through one of: a validated message,
the cancel keyword, ``cancel()``, its timeout, a disconnect, or displacement
by a newer ``register()``. Resolution always empties the slot *before* any
user callback runs, so a callback that registers a follow-up context is never
clobbered by cleanup of the one that just finished.

Threading: ``on_message`` may be called from any thread; it only reads the
slot and then marshals the real work onto the host's main context. All other
entry points are expected on the main context already.

Dependencies: session_manager.py, builder.py, host.py, telemetry. Callers
obtain the process-wide instance with ``initialize()`` / ``get_instance()``.
"""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Hashable

from . import logging_config, telemetry
from .builder import ContextBuilder
from .config import CaptureConfig
from .context import Receiver, RequestContext
from .errors import ContextBuildError, NotInitializedError
from .host import HostIntegration, is_muted, muted
from .session_manager import SessionRegistry, UserSession
from .telemetry import emit, events

logger = logging.getLogger(__name__)

_instance: Coordinator | None = None
_instance_lock = threading.Lock()


class Coordinator:
    """Per-user single-slot input request coordinator."""

    def __init__(self, host: HostIntegration, config: CaptureConfig | None = None) -> None:
        """Create a coordinator and subscribe it to *host* events.

        Prefer ``initialize()``; direct construction is for hosts that manage
        the coordinator's lifetime themselves.
        """
        self.host = host
        self.config = config or CaptureConfig()
        self._registry = SessionRegistry()
        host.subscribe(self)

    # ── Sessions ─────────────────────────────────────────────────────

    def get_session(self, user_id: Hashable) -> UserSession | None:
        """Return the user's session without creating one."""
        return self._registry.get(user_id)

    def get_or_create_session(self, user_id: Hashable) -> UserSession:
        session, created = self._registry.get_or_create(user_id)
        if created:
            emit(events.SESSION_CREATED, events.session_event(user_id=user_id, active_sessions=len(self._registry)))
        return session

    @property
    def active_sessions(self) -> int:
        return len(self._registry)

    def has_active_context(self, user_id: Hashable, name: str) -> bool:
        """True if the user's active context is named *name* (case-insensitive)."""
        session = self._registry.get(user_id)
        if session is None:
            return False
        context = session.active_context
        return context is not None and context.has_name(name)

    # ── Requests ─────────────────────────────────────────────────────

    def new_context(self, owner: Hashable, receiver: Receiver) -> ContextBuilder:
        """Start a builder preset with this coordinator's default cancel keyword."""
        return ContextBuilder(owner, receiver, cancel_keyword=self.config.default_cancel_keyword)

    def register(self, context: RequestContext) -> None:
        """Make *context* the user's active request, displacing any previous one.

        A displaced context has its timer cancelled and its canceller invoked
        with the user's outbound messages muted, so the user only sees the
        new prompt.
        """
        if context is None:
            raise ContextBuildError("cannot register None", field="context")
        if context.owner is None:
            raise ContextBuildError("context has no owner", field="owner")
        if context.receiver is None:
            raise ContextBuildError("context has no receiver", field="receiver")
        user_id = context.owner
        with logging_config.bound_user(user_id):
            session = self.get_or_create_session(user_id)
            old = session.set_active_context(context)
            emit(
                events.CONTEXT_REGISTERED,
                events.context_registered(
                    user_id=user_id,
                    name=context.name,
                    has_validator=context.validator is not None,
                    has_timeout=context.timeout_handle is not None,
                ),
            )
            try:
                if old is not None and old is not context:
                    logger.debug("Context %r displaced by %r", old.name, context.name)
                    old.cancel_timeout()
                    emit(
                        events.CONTEXT_DISPLACED,
                        events.context_displaced(user_id=user_id, old_name=old.name, new_name=context.name),
                    )
                    if old.canceller is not None:
                        with muted(user_id):
                            old.canceller(user_id)
            finally:
                # Prompt of whatever is active now; a displaced canceller may have
                # registered a follow-up whose own prompt was muted.
                active = session.active_context
                if active is not None and active is not context:
                    logger.debug("Context %r replaced during displacement by %r", context.name, active.name)
                if active is not None and active.prompt is not None:
                    self.send_message(user_id, active.prompt)

    def cancel(self, user_id: Hashable) -> bool:
        """Cancel the user's active context. Returns False if there was none."""
        with logging_config.bound_user(user_id):
            return self._cancel(user_id, cause="explicit")

    def expire(self, user_id: Hashable, context_id: str, timeout_message: str = "") -> None:
        """Timeout path, invoked by the timer ``ContextBuilder.with_timeout`` scheduled.

        No-op unless the context with *context_id* is still active, so a
        late or repeated firing never resolves anything twice.
        """
        with logging_config.bound_user(user_id):
            session = self._registry.get(user_id)
            context = session.clear_if_id(context_id) if session is not None else None
            if context is None:
                logger.debug("Timeout for context %s ignored (already resolved)", context_id)
                return
            # Slot is already empty here: the canceller sees no active context
            # and anything it registers stays active after the timeout message.
            context.cancel_timeout()
            emit(
                events.CONTEXT_TIMED_OUT,
                events.context_timed_out(user_id=user_id, name=context.name, elapsed_s=context.age),
            )
            if context.canceller is not None:
                context.canceller(user_id)
            if timeout_message:
                self.send_message(user_id, timeout_message)

    def send_message(self, user_id: Hashable, text: str) -> None:
        """Deliver *text* through the host unless the user is in a muted scope."""
        if is_muted(user_id):
            logger.debug("Outbound message suppressed (muted scope)")
            return
        self.host.send_message(user_id, text)

    # ── HostListener ─────────────────────────────────────────────────

    def on_message(self, user_id: Hashable, text: str) -> bool:
        """Claim the message if the user has a pending request.

        Returns True (consumed) and schedules resolution on the main context,
        or False to let the host handle the message normally.
        """
        session = self._registry.get(user_id)
        if session is None or not session.has_active_context():
            return False
        self.host.run_on_main(functools.partial(self._resolve_message, user_id, text))
        return True

    def on_disconnect(self, user_id: Hashable) -> None:
        with logging_config.bound_user(user_id):
            try:
                self._cancel(user_id, cause="disconnect")
            finally:
                session = self._registry.remove(user_id)
                if session is not None:
                    # A canceller may have registered a new context mid-teardown
                    leftover = session.clear_context()
                    if leftover is not None:
                        leftover.cancel_timeout()
                        logger.debug("Dropped context %r registered during disconnect", leftover.name)
                    emit(
                        events.SESSION_REMOVED,
                        events.session_event(user_id=user_id, active_sessions=len(self._registry)),
                    )

    def shutdown(self) -> None:
        """Drop every session and cancel pending timers without running cancellers."""
        for session in self._registry.drain():
            context = session.clear_context()
            if context is not None:
                context.cancel_timeout()
        unsubscribe = getattr(self.host, "unsubscribe", None)
        if unsubscribe is not None:
            unsubscribe(self)

    # ── Internal ─────────────────────────────────────────────────────

    def _resolve_message(self, user_id: Hashable, text: str) -> None:
        with logging_config.bound_user(user_id):
            # Re-fetch: the session may have been removed since on_message ran
            session = self._registry.get(user_id)
            context = session.active_context if session is not None else None
            if session is None or context is None:
                logger.debug("Consumed message dropped: request resolved before it was processed")
                emit(events.MESSAGE_DROPPED, events.message_dropped(user_id=user_id))
                return

            if context.matches_cancel_keyword(text):
                self._cancel(user_id, cause="keyword", expected=context)
                return

            if context.validator is not None:
                result = context.validator(user_id, text)
                if not result.valid:
                    emit(events.VALIDATION_FAILED, events.validation_failed(user_id=user_id, name=context.name))
                    if result.reason:
                        self.send_message(user_id, result.reason)
                    return

            if session.clear_context(expected=context) is None:
                logger.debug("Context %r resolved elsewhere while validating", context.name)
                return
            context.cancel_timeout()
            emit(
                events.CONTEXT_RESOLVED,
                events.context_resolved(user_id=user_id, name=context.name, elapsed_s=context.age),
            )
            context.receiver(user_id, text)

    def _cancel(
        self,
        user_id: Hashable,
        *,
        cause: events.CancelCause,
        expected: RequestContext | None = None,
    ) -> bool:
        session = self._registry.get(user_id)
        if session is None:
            return False
        context = session.clear_context(expected=expected)
        if context is None:
            return False
        context.cancel_timeout()
        logger.debug("Context %r cancelled (%s)", context.name, cause)
        emit(events.CONTEXT_CANCELLED, events.context_cancelled(user_id=user_id, name=context.name, cause=cause))
        if context.canceller is not None:
            context.canceller(user_id)
        return True


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------


def initialize(host: HostIntegration, config: CaptureConfig | None = None) -> Coordinator:
    """Create the process-wide coordinator. Later calls return the first one."""
    global _instance
    with _instance_lock:
        if _instance is not None:
            logger.debug("initialize() called again; keeping the existing coordinator")
            return _instance

        config = config or CaptureConfig()
        if config.configure_logging:
            logging_config.configure(json_output=config.log_json, level=config.log_level)
        if config.telemetry_enabled:
            from .telemetry.collector import TelemetryConfig

            telemetry.configure(TelemetryConfig(enabled=True, export_path=config.telemetry_path))

        _instance = Coordinator(host, config)
        logger.info("chatcapture coordinator initialized")
        return _instance


def get_instance() -> Coordinator:
    """Return the coordinator created by ``initialize()``.

    Raises:
        NotInitializedError: ``initialize()`` has not been called yet.
    """
    instance = _instance
    if instance is None:
        raise NotInitializedError("chatcapture coordinator not initialized; call initialize(host) first")
    return instance


def _reset_for_testing() -> None:
    """Shut down and forget the process-wide coordinator."""
    global _instance
    with _instance_lock:
        if _instance is not None:
            _instance.shutdown()
        _instance = None
