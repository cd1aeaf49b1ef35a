# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""chatcapture exception hierarchy.

Only misuse errors cross the public API. Validation failures are modelled as
``ValidationResult`` data and lost races are silent no-ops, so neither has an
exception type here.
"""

from __future__ import annotations


class ChatCaptureError(Exception):
    """Base exception for all chatcapture errors."""


class NotInitializedError(ChatCaptureError):
    """The coordinator was requested before ``initialize()`` ran."""


class ContextBuildError(ChatCaptureError, ValueError):
    """A request context was assembled or registered with invalid arguments."""

    def __init__(self, message: str, *, field: str = "") -> None:
        super().__init__(message)
        self.field = field
