"""
Lightweight in-memory telemetry collectors for the FastAPI layer.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Literal, Optional, TypedDict

EventKind = Literal["import", "info"]


@dataclass
class TelemetryEvent:
    kind: EventKind
    ok: bool
    duration_ms: float
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


@dataclass
class RequestStats:
    count: int = 0
    failures: int = 0
    total_duration_ms: float = 0.0
    last_timestamp: Optional[float] = None

    def average_duration_ms(self) -> float:
        return self.total_duration_ms / self.count if self.count else 0.0


@dataclass
class ImportStats(RequestStats):
    files_imported: int = 0
    files_skipped: int = 0


class RecentEvent(TypedDict):
    kind: EventKind
    ok: bool
    duration_ms: float
    metadata: Dict[str, Any]
    timestamp: float


class InfoSnapshot(TypedDict):
    count: int
    failures: int
    total_duration_ms: float
    last_timestamp: Optional[float]
    average_duration_ms: float


class ImportSnapshot(InfoSnapshot):
    files_imported: int
    files_skipped: int


class TelemetrySnapshot(TypedDict):
    imports: ImportSnapshot
    info: InfoSnapshot
    recent_events: List[RecentEvent]


class Telemetry:
    """In-memory stats tracker exposed via the `/telemetry` endpoint."""

    def __init__(self, history_size: int = 50) -> None:
        self._lock = threading.Lock()
        self._history: Deque[TelemetryEvent] = deque(maxlen=history_size)
        self._imports = ImportStats()
        self._info = RequestStats()

    def record_import(
        self,
        duration_ms: float,
        ok: bool,
        files: int = 0,
        skipped: int = 0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        metadata = dict(metadata or {})
        event = TelemetryEvent(
            kind="import", ok=ok, duration_ms=duration_ms, metadata=metadata
        )
        with self._lock:
            self._history.appendleft(event)
            self._imports.count += 1
            self._imports.total_duration_ms += duration_ms
            self._imports.last_timestamp = event.timestamp
            self._imports.files_imported += files
            self._imports.files_skipped += skipped
            if not ok:
                self._imports.failures += 1

    def record_info(
        self, duration_ms: float, ok: bool, metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        event = TelemetryEvent(
            kind="info", ok=ok, duration_ms=duration_ms, metadata=dict(metadata or {})
        )
        with self._lock:
            self._history.appendleft(event)
            self._info.count += 1
            self._info.total_duration_ms += duration_ms
            self._info.last_timestamp = event.timestamp
            if not ok:
                self._info.failures += 1

    def snapshot(self) -> TelemetrySnapshot:
        with self._lock:
            history: List[RecentEvent] = [
                {
                    "kind": event.kind,
                    "ok": event.ok,
                    "duration_ms": event.duration_ms,
                    "metadata": dict(event.metadata),
                    "timestamp": event.timestamp,
                }
                for event in list(self._history)
            ]
            return {
                "imports": {
                    "count": self._imports.count,
                    "failures": self._imports.failures,
                    "files_imported": self._imports.files_imported,
                    "files_skipped": self._imports.files_skipped,
                    "total_duration_ms": self._imports.total_duration_ms,
                    "last_timestamp": self._imports.last_timestamp,
                    "average_duration_ms": self._imports.average_duration_ms(),
                },
                "info": {
                    "count": self._info.count,
                    "failures": self._info.failures,
                    "total_duration_ms": self._info.total_duration_ms,
                    "last_timestamp": self._info.last_timestamp,
                    "average_duration_ms": self._info.average_duration_ms(),
                },
                "recent_events": history,
            }
