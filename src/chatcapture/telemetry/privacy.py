# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Keeps user identity and chat content out of telemetry and logs."""

from __future__ import annotations

import hashlib
from collections.abc import Hashable

# Payload keys that can hold what a user typed or what a plugin asked them
CONTENT_FIELDS = frozenset({"text", "message", "prompt", "reason", "timeout_message", "content", "body", "input"})


def hash_user_id(user_id: Hashable) -> str:
    """Stable 12-hex-char pseudonym for *user_id*, keyed on ``str(user_id)``."""
    return hashlib.sha256(str(user_id).encode("utf-8")).hexdigest()[:12]


def sanitize_payload(payload: dict) -> dict:
    """Copy of *payload* without content fields, at the top level and one level down."""
    return {
        key: ({k: v for k, v in value.items() if k not in CONTENT_FIELDS} if isinstance(value, dict) else value)
        for key, value in payload.items()
        if key not in CONTENT_FIELDS
    }
