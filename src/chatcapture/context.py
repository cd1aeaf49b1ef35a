# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""RequestContext: one pending input request for one user.

Leaf module. Instances come from ``ContextBuilder.build()``; the coordinator
stores at most one per user and drops its reference the moment the context
is resolved, cancelled, displaced, or its session is torn down.
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Callable, Hashable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from . import ValidationResult
    from .host import CancellableHandle

UserId = Hashable

# Callbacks run on the host's main context. They are not time-bounded: a slow
# receiver stalls every other user's events until it returns.
Receiver = Callable[[Any, str], None]
Validator = Callable[[Any, str], "ValidationResult"]
Canceller = Callable[[Any], None]


@dataclasses.dataclass(frozen=True, slots=True, kw_only=True)
class RequestContext:
    """Immutable description of a pending input request."""

    context_id: str
    owner: UserId
    receiver: Receiver = dataclasses.field(repr=False)
    name: str | None = None
    prompt: str | None = dataclasses.field(default=None, repr=False)
    validator: Validator | None = dataclasses.field(default=None, repr=False)
    canceller: Canceller | None = dataclasses.field(default=None, repr=False)
    cancel_keyword: str = "exit"
    timeout_handle: CancellableHandle | None = dataclasses.field(default=None, repr=False, compare=False)
    created_at: float = dataclasses.field(default_factory=time.monotonic, compare=False)

    def matches_cancel_keyword(self, text: str) -> bool:
        return text.casefold() == self.cancel_keyword.casefold()

    def has_name(self, name: str | None) -> bool:
        if self.name is None or name is None:
            return False
        return self.name.casefold() == name.casefold()

    def cancel_timeout(self) -> None:
        """Cancel the scheduled timeout, if any. Safe to call repeatedly."""
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()

    @property
    def age(self) -> float:
        """Seconds since the context was built."""
        return time.monotonic() - self.created_at
