# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""ContextBuilder: fluent assembly of an immutable RequestContext.

The builder is the only mutable stage; ``build()`` freezes everything into a
``RequestContext``. Registration is the coordinator's job, not the builder's.

Usage:
    ctx = (
        ContextBuilder(user_id, on_name)
        .with_name("rename")
        .with_prompt("Type a new name, or 'exit' to cancel.")
        .with_validator(lambda user, text: ValidationResult.ok() if len(text) > 2 else ValidationResult.fail("too short"))
        .with_timeout(coordinator, 30, "You took too long.")
        .build()
    )
    coordinator.register(ctx)
"""

from __future__ import annotations

import uuid
from collections.abc import Hashable
from typing import TYPE_CHECKING

from .config import DEFAULT_CANCEL_KEYWORD
from .context import Canceller, Receiver, RequestContext, Validator
from .errors import ContextBuildError

if TYPE_CHECKING:
    from .coordinator import Coordinator
    from .host import CancellableHandle


class ContextBuilder:
    """Staged construction of a RequestContext for *owner*."""

    def __init__(
        self,
        owner: Hashable,
        receiver: Receiver,
        *,
        cancel_keyword: str = DEFAULT_CANCEL_KEYWORD,
    ) -> None:
        if owner is None:
            raise ContextBuildError("owner must not be None", field="owner")
        if receiver is None:
            raise ContextBuildError("receiver must not be None", field="receiver")
        self._owner = owner
        self._receiver = receiver
        self._context_id = uuid.uuid4().hex[:12]
        self._name: str | None = None
        self._prompt: str | None = None
        self._validator: Validator | None = None
        self._canceller: Canceller | None = None
        self._cancel_keyword = cancel_keyword
        self._timeout_handle: CancellableHandle | None = None

    @property
    def context_id(self) -> str:
        return self._context_id

    def with_name(self, name: str | None) -> ContextBuilder:
        self._name = name
        return self

    def with_prompt(self, prompt: str | None) -> ContextBuilder:
        self._prompt = prompt
        return self

    def with_validator(self, validator: Validator | None) -> ContextBuilder:
        self._validator = validator
        return self

    def with_canceller(self, canceller: Canceller | None) -> ContextBuilder:
        self._canceller = canceller
        return self

    def with_cancel_keyword(self, keyword: str) -> ContextBuilder:
        if not keyword:
            raise ContextBuildError("cancel keyword must be non-empty", field="cancel_keyword")
        self._cancel_keyword = keyword
        return self

    def with_timeout(self, coordinator: Coordinator, delay_seconds: float, timeout_message: str = "") -> ContextBuilder:
        """Schedule automatic cancellation *delay_seconds* after this call.

        The timer is bound to this context's id: if the context was already
        resolved or replaced when it fires, nothing happens. Calling again
        replaces the previous timer.
        """
        if delay_seconds <= 0:
            raise ContextBuildError(f"timeout must be > 0 seconds, got {delay_seconds}", field="timeout")
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()

        owner, context_id = self._owner, self._context_id

        def _on_timeout() -> None:
            coordinator.expire(owner, context_id, timeout_message)

        self._timeout_handle = coordinator.host.schedule_once(delay_seconds, _on_timeout)
        return self

    def build(self) -> RequestContext:
        return RequestContext(
            context_id=self._context_id,
            owner=self._owner,
            receiver=self._receiver,
            name=self._name,
            prompt=self._prompt,
            validator=self._validator,
            canceller=self._canceller,
            cancel_keyword=self._cancel_keyword,
            timeout_handle=self._timeout_handle,
        )
