"""JSONL event sink for deliberation lifecycle events."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Optional


@dataclass
class PlanningObservability:
    """Writes JSONL events and aggregate counters.

    Instances are callable so they can be passed straight to
    DeliberationManager.subscribe().
    """

    jsonl_path: Path
    metrics_path: Optional[Path] = None
    counters: dict[str, int] = field(default_factory=dict)

    def __call__(self, event_type: str, payload: dict[str, Any]) -> None:
        self.emit_event(event_type, payload)

    def emit_event(self, event_type: str, payload: dict[str, Any]) -> None:
        self.counters[event_type] = self.counters.get(event_type, 0) + 1
        record = {
            "timestamp": datetime.now(UTC).isoformat(),
            "event_type": event_type,
            "payload": payload,
        }
        self.jsonl_path.parent.mkdir(parents=True, exist_ok=True)
        with self.jsonl_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=True, default=str) + "\n")

    def flush_metrics(self, extra: Optional[dict[str, Any]] = None) -> None:
        if self.metrics_path is None:
            return
        self.metrics_path.parent.mkdir(parents=True, exist_ok=True)
        snapshot: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "counters": dict(sorted(self.counters.items())),
        }
        if extra:
            snapshot["statistics"] = extra
        self.metrics_path.write_text(
            json.dumps(snapshot, indent=2, ensure_ascii=True, default=str),
            encoding="utf-8",
        )
