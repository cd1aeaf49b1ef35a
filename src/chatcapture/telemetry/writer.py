# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Telemetry writers. Each ``write()`` receives one OTLP LogsData envelope."""

from __future__ import annotations

import json
import logging
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class Writer(Protocol):
    def write(self, envelope: dict) -> None: ...


class FileWriter:
    """One JSON line per envelope in ``events-YYYY-MM-DD.jsonl`` (UTC day).

    Day files not modified for ``retention_days`` are removed after a write.
    """

    def __init__(self, export_path: str | Path, retention_days: int = 7) -> None:
        self.export_path = Path(export_path)
        self.retention_days = retention_days

    def path_for(self, day: str) -> Path:
        return self.export_path / f"events-{day}.jsonl"

    def write(self, envelope: dict) -> None:
        line = json.dumps(envelope, ensure_ascii=False, separators=(",", ":"))
        try:
            self.export_path.mkdir(parents=True, exist_ok=True)
            with self.path_for(datetime.now(UTC).strftime("%Y-%m-%d")).open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as exc:
            logger.debug("telemetry write failed: %s", exc)
            return
        self._prune()

    def _prune(self) -> None:
        cutoff = time.time() - self.retention_days * 86400
        for path in self.export_path.glob("events-*.jsonl"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
            except OSError:
                continue


class NullWriter:
    def write(self, envelope: dict) -> None:
        pass


class ListWriter:
    """Keeps envelopes in memory; used by tests."""

    def __init__(self) -> None:
        self.envelopes: list[dict] = []

    def write(self, envelope: dict) -> None:
        self.envelopes.append(envelope)

    def records(self) -> list[dict]:
        return [
            record
            for envelope in self.envelopes
            for resource in envelope["resourceLogs"]
            for scope in resource["scopeLogs"]
            for record in scope["logRecords"]
        ]

    def event_types(self) -> list[str]:
        return [record["body"]["stringValue"] for record in self.records()]
