# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Telemetry collector: queues lifecycle events and flushes them as OTLP LogsData.

Each flush turns the queued events into one ``LogsData`` envelope (one log
record per event) and hands it to a writer. Flushing happens on a timer on
the running event loop when there is one, and always at ``shutdown()``.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import os
import queue
import time
from collections import Counter
from dataclasses import dataclass, field

from .privacy import sanitize_payload
from .writer import FileWriter, Writer

logger = logging.getLogger(__name__)

SCOPE_NAME = "chatcapture.telemetry"


@dataclass(frozen=True)
class TelemetryConfig:
    enabled: bool = False
    export_path: str = field(default_factory=lambda: os.path.join(os.path.expanduser("~"), ".chatcapture", "telemetry"))
    flush_interval_s: float = 30.0
    max_queue_size: int = 10_000
    retention_days: int = 7


@functools.cache
def _resource_attributes() -> tuple[dict, ...]:
    try:
        from importlib.metadata import version

        service_version = version("chatcapture")
    except Exception:
        service_version = "unknown"
    return (
        {"key": "service.name", "value": {"stringValue": "chatcapture"}},
        {"key": "service.version", "value": {"stringValue": service_version}},
    )


def _attr_value(value: object) -> dict:
    if isinstance(value, bool):
        return {"boolValue": value}
    if isinstance(value, int):
        return {"intValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, (dict, list, tuple)):
        return {"stringValue": json.dumps(value, ensure_ascii=False)}
    return {"stringValue": str(value)}


def log_record(event_type: str, payload: dict, *, timestamp_ns: int | None = None) -> dict:
    """One OTLP log record; the event type is the body, payload keys become attributes."""
    return {
        "timeUnixNano": str(timestamp_ns if timestamp_ns is not None else time.time_ns()),
        "severityNumber": 9,
        "severityText": "INFO",
        "body": {"stringValue": event_type},
        "attributes": [{"key": k, "value": _attr_value(v)} for k, v in payload.items()],
    }


def wrap_otlp(records: list[dict]) -> dict:
    """Wrap log records into a single OTLP LogsData envelope."""
    return {
        "resourceLogs": [
            {
                "resource": {"attributes": list(_resource_attributes())},
                "scopeLogs": [{"scope": {"name": SCOPE_NAME, "version": "1"}, "logRecords": records}],
            }
        ]
    }


class TelemetryCollector:
    """Bounded event queue with timed flushing.

    ``emit()`` may be called from any thread and never raises. Events past
    ``max_queue_size`` are dropped and counted in ``stats["dropped"]``.
    """

    def __init__(self, config: TelemetryConfig, writer: Writer | None = None) -> None:
        self.config = config
        self.stats: Counter[str] = Counter()
        self._writer = writer if writer is not None else FileWriter(config.export_path, config.retention_days)
        self._pending: queue.SimpleQueue[dict] = queue.SimpleQueue()
        self._timer: asyncio.TimerHandle | None = None
        self._closed = False

    def emit(self, event_type: str, payload: dict) -> None:
        try:
            if self._closed:
                return
            if self._pending.qsize() >= self.config.max_queue_size:
                self.stats["dropped"] += 1
                return
            self._pending.put(log_record(event_type, sanitize_payload(payload)))
            self.stats["emitted"] += 1
            if self._timer is None:
                self._arm_timer()
        except Exception:  # nosec B110
            pass

    def _arm_timer(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timer = loop.call_later(self.config.flush_interval_s, self._on_timer, loop)

    def _on_timer(self, loop: asyncio.AbstractEventLoop) -> None:
        self._timer = None
        if self._closed:
            return
        loop.run_in_executor(None, self.flush_sync)

    def flush_sync(self) -> int:
        """Write every queued event as one envelope. Returns the number written."""
        records: list[dict] = []
        while True:
            try:
                records.append(self._pending.get_nowait())
            except queue.Empty:
                break
        if not records:
            return 0
        try:
            self._writer.write(wrap_otlp(records))
        except Exception as exc:
            logger.debug("telemetry flush failed: %s", exc)
            return 0
        self.stats["exported"] += len(records)
        return len(records)

    def shutdown(self) -> None:
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.flush_sync()
