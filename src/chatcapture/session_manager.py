# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""UserSession and SessionRegistry: per-user single-slot state.

Dependencies: context.py only. The coordinator is the sole caller of the
mutating methods; everything here is synchronous and non-blocking.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Hashable, Iterator
from dataclasses import dataclass, field

from .context import RequestContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# UserSession
# ---------------------------------------------------------------------------


@dataclass(slots=True, eq=False)
class UserSession:
    """Holds at most one active RequestContext for one user.

    Every swap goes through ``_lock`` so that two callers can never both
    observe the same previous context as theirs to clean up.
    """

    owner: Hashable
    _active: RequestContext | None = field(default=None, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    created_at: float = field(default_factory=time.monotonic)

    @property
    def active_context(self) -> RequestContext | None:
        return self._active

    def has_active_context(self) -> bool:
        return self._active is not None

    def set_active_context(self, context: RequestContext | None) -> RequestContext | None:
        """Store *context* and return the previous one (may be None)."""
        with self._lock:
            old, self._active = self._active, context
        return old

    def clear_context(self, expected: RequestContext | None = None) -> RequestContext | None:
        """Empty the slot and return what was in it.

        With *expected*, only clears when that exact context is still active;
        otherwise leaves the slot alone and returns None.
        """
        with self._lock:
            current = self._active
            if current is None or (expected is not None and current is not expected):
                return None
            self._active = None
        return current

    def clear_if_id(self, context_id: str) -> RequestContext | None:
        """Compare-and-clear by ``context_id`` (used by the timeout path)."""
        with self._lock:
            current = self._active
            if current is None or current.context_id != context_id:
                return None
            self._active = None
        return current


# ---------------------------------------------------------------------------
# SessionRegistry
# ---------------------------------------------------------------------------


class SessionRegistry:
    """Process-wide user id -> UserSession map with atomic insert-if-absent."""

    def __init__(self) -> None:
        self._sessions: dict[Hashable, UserSession] = {}
        self._lock = threading.Lock()

    def get(self, user_id: Hashable) -> UserSession | None:
        return self._sessions.get(user_id)

    def get_or_create(self, user_id: Hashable) -> tuple[UserSession, bool]:
        """Return ``(session, created)``; creates at most one session per user."""
        session = self._sessions.get(user_id)
        if session is not None:
            return session, False
        with self._lock:
            session = self._sessions.get(user_id)
            if session is not None:
                return session, False
            session = UserSession(owner=user_id)
            self._sessions[user_id] = session
        logger.info("Session created (%d active)", len(self._sessions))
        return session, True

    def remove(self, user_id: Hashable) -> UserSession | None:
        with self._lock:
            session = self._sessions.pop(user_id, None)
        if session is not None:
            logger.info("Session removed (%d active)", len(self._sessions))
        return session

    def drain(self) -> list[UserSession]:
        """Remove and return every session."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        return sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._sessions

    def __iter__(self) -> Iterator[UserSession]:
        return iter(list(self._sessions.values()))
