# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Coordinator configuration.

Leaf module. ``CaptureConfig()`` gives library defaults; ``from_env()`` reads
``CHATCAPTURE_*`` environment variables for hosts that configure through the
process environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

DEFAULT_CANCEL_KEYWORD = "exit"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _default_telemetry_path() -> str:
    return os.path.join(os.path.expanduser("~"), ".chatcapture", "telemetry")


@dataclass(frozen=True, slots=True)
class CaptureConfig:
    """Immutable configuration for a Coordinator."""

    default_cancel_keyword: str = DEFAULT_CANCEL_KEYWORD
    configure_logging: bool = False  # libraries leave logging to the host by default
    log_json: bool = False
    log_level: str = "INFO"
    telemetry_enabled: bool = False
    telemetry_path: str = field(default_factory=_default_telemetry_path)

    def __post_init__(self) -> None:
        if not self.default_cancel_keyword:
            raise ValueError("default_cancel_keyword must be non-empty")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"log_level must be a logging level name, got {self.log_level!r}")

    @classmethod
    def from_env(cls) -> CaptureConfig:
        """Build a config from ``CHATCAPTURE_*`` environment variables."""
        return cls(
            default_cancel_keyword=os.environ.get("CHATCAPTURE_CANCEL_KEYWORD", DEFAULT_CANCEL_KEYWORD),
            configure_logging=_env_flag("CHATCAPTURE_CONFIGURE_LOGGING", False),
            log_json=_env_flag("CHATCAPTURE_LOG_JSON", False),
            log_level=os.environ.get("CHATCAPTURE_LOG_LEVEL", "INFO"),
            telemetry_enabled=_env_flag("CHATCAPTURE_TELEMETRY", False),
            telemetry_path=os.environ.get("CHATCAPTURE_TELEMETRY_PATH") or _default_telemetry_path(),
        )
