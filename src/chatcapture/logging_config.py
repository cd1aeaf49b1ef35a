# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog + stdlib bridge. Console: ConsoleRenderer, log shipping: JSONRenderer.

``initialize()`` calls ``configure()`` only when
``CaptureConfig.configure_logging`` is set; otherwise the host owns logging.
``bound_user()`` is used by the coordinator so every line logged while a
user's event is processed carries a hashed ``user`` key.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Hashable
from contextlib import AbstractContextManager

import structlog

from .telemetry.privacy import hash_user_id


def configure(*, json_output: bool = False, level: str = "INFO") -> None:
    """Configure structlog with stdlib bridge.

    Args:
        json_output: True for JSON lines, False for human-readable console output.
        level: Root logger level (default INFO).
    """
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    # Only the chatcapture logger tree is touched; the host's root handlers stay.
    lib_logger = logging.getLogger("chatcapture")
    lib_logger.handlers.clear()
    lib_logger.addHandler(handler)
    lib_logger.propagate = False
    lib_logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def bound_user(user_id: Hashable) -> AbstractContextManager:
    """Bind a hashed ``user`` key to log lines emitted inside the block."""
    return structlog.contextvars.bound_contextvars(user=hash_user_id(user_id))
