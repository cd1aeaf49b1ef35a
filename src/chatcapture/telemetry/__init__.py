# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Telemetry: fire-and-forget lifecycle event collection.

Usage:
    from chatcapture.telemetry import emit, events

    emit(events.CONTEXT_RESOLVED, events.context_resolved(user_id=uid, name="pin", elapsed_s=1.2))

Disabled by default. ``initialize()`` enables it when
``CaptureConfig.telemetry_enabled`` is set.
"""

from __future__ import annotations

import atexit
import contextlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .collector import TelemetryCollector, TelemetryConfig
    from .writer import Writer

_collector: TelemetryCollector | None = None


def configure(config: TelemetryConfig, writer: Writer | None = None) -> TelemetryCollector:
    """Initialize the telemetry singleton. Idempotent: first call wins."""
    global _collector
    if _collector is not None:
        return _collector

    from .collector import TelemetryCollector

    _collector = TelemetryCollector(config, writer=writer)
    atexit.register(shutdown)
    return _collector


def emit(event_type: str, payload: dict) -> None:
    """Emit a telemetry event. No-op if telemetry is not configured; never raises."""
    try:
        if _collector is not None:
            _collector.emit(event_type, payload)
    except Exception:  # nosec B110
        pass


def shutdown() -> None:
    """Flush remaining events and shut down the collector."""
    try:
        if _collector is not None:
            _collector.shutdown()
    except Exception:  # nosec B110
        pass


def _reset_for_testing() -> None:
    """Reset module state for test isolation."""
    global _collector
    if _collector is not None:
        with contextlib.suppress(Exception):
            _collector.shutdown()
    _collector = None
