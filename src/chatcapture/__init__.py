# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""chatcapture: capture a user's next chat message as the answer to a prompt.

A host application registers a ``RequestContext`` for a user; the user's next
free-text message is routed to the context's receiver instead of the host's
normal chat pipeline. Each user has at most one pending context, which is
resolved exactly once by a message, the cancel keyword, a timeout, an
explicit cancel, a disconnect, or displacement by a newer registration.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of a validator run. Build with ``ok()`` or ``fail()``."""

    valid: bool
    reason: str | None = None  # set iff valid is False

    def __post_init__(self) -> None:
        if self.valid and self.reason is not None:
            raise ValueError("a passing ValidationResult carries no reason")
        if not self.valid and self.reason is None:
            raise ValueError("a failing ValidationResult needs a reason")

    @classmethod
    def ok(cls) -> ValidationResult:
        return _OK

    @classmethod
    def fail(cls, reason: str) -> ValidationResult:
        return cls(valid=False, reason=reason)

    def __bool__(self) -> bool:
        return self.valid


_OK = ValidationResult(valid=True)

from .builder import ContextBuilder  # noqa: E402
from .context import RequestContext  # noqa: E402
from .coordinator import Coordinator, get_instance, initialize  # noqa: E402
from .errors import ChatCaptureError, ContextBuildError, NotInitializedError  # noqa: E402

__all__ = [
    "ChatCaptureError",
    "ContextBuildError",
    "ContextBuilder",
    "Coordinator",
    "NotInitializedError",
    "RequestContext",
    "ValidationResult",
    "get_instance",
    "initialize",
]
