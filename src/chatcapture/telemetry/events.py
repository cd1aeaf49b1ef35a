# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Telemetry event types, TypedDict payload definitions, and builder functions.

Builders take raw user ids and store only ``hash_user_id()`` pseudonyms.
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import Literal, TypedDict

from .privacy import hash_user_id

# ── Event type constants (OTel naming) ───────────────────────────

CONTEXT_REGISTERED = "chatcapture.context.registered"
CONTEXT_DISPLACED = "chatcapture.context.displaced"
CONTEXT_RESOLVED = "chatcapture.context.resolved"
CONTEXT_CANCELLED = "chatcapture.context.cancelled"
CONTEXT_TIMED_OUT = "chatcapture.context.timed_out"
VALIDATION_FAILED = "chatcapture.validation.failed"
MESSAGE_DROPPED = "chatcapture.message.dropped"
SESSION_CREATED = "chatcapture.session.created"
SESSION_REMOVED = "chatcapture.session.removed"

CancelCause = Literal["keyword", "explicit", "disconnect"]


# ── TypedDict payload definitions ────────────────────────────────


class ContextRegisteredPayload(TypedDict):
    user: str
    name: str
    has_validator: bool
    has_timeout: bool


class ContextDisplacedPayload(TypedDict):
    user: str
    old_name: str
    new_name: str


class ContextResolvedPayload(TypedDict):
    user: str
    name: str
    elapsed_ms: int


class ContextCancelledPayload(TypedDict):
    user: str
    name: str
    cause: str


class ContextTimedOutPayload(TypedDict):
    user: str
    name: str
    elapsed_ms: int


class ValidationFailedPayload(TypedDict):
    user: str
    name: str


class MessageDroppedPayload(TypedDict):
    user: str


class SessionPayload(TypedDict):
    user: str
    active_sessions: int


# ── Builders ─────────────────────────────────────────────────────


def context_registered(
    *, user_id: Hashable, name: str | None, has_validator: bool, has_timeout: bool
) -> ContextRegisteredPayload:
    return ContextRegisteredPayload(
        user=hash_user_id(user_id),
        name=name or "",
        has_validator=has_validator,
        has_timeout=has_timeout,
    )


def context_displaced(*, user_id: Hashable, old_name: str | None, new_name: str | None) -> ContextDisplacedPayload:
    return ContextDisplacedPayload(user=hash_user_id(user_id), old_name=old_name or "", new_name=new_name or "")


def context_resolved(*, user_id: Hashable, name: str | None, elapsed_s: float) -> ContextResolvedPayload:
    return ContextResolvedPayload(user=hash_user_id(user_id), name=name or "", elapsed_ms=int(elapsed_s * 1000))


def context_cancelled(*, user_id: Hashable, name: str | None, cause: CancelCause) -> ContextCancelledPayload:
    return ContextCancelledPayload(user=hash_user_id(user_id), name=name or "", cause=cause)


def context_timed_out(*, user_id: Hashable, name: str | None, elapsed_s: float) -> ContextTimedOutPayload:
    return ContextTimedOutPayload(user=hash_user_id(user_id), name=name or "", elapsed_ms=int(elapsed_s * 1000))


def validation_failed(*, user_id: Hashable, name: str | None) -> ValidationFailedPayload:
    return ValidationFailedPayload(user=hash_user_id(user_id), name=name or "")


def message_dropped(*, user_id: Hashable) -> MessageDroppedPayload:
    return MessageDroppedPayload(user=hash_user_id(user_id))


def session_event(*, user_id: Hashable, active_sessions: int) -> SessionPayload:
    return SessionPayload(user=hash_user_id(user_id), active_sessions=active_sessions)
