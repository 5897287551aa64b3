from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from prepwise.config import Settings
from prepwise.db.base import utcnow

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TraceEvent:
    operation: str
    phase: str
    at: str
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    duration_ms: int | None = None


class RunTrace:
    """Per-run diagnostic trace, mirrored to the logger and flushed as JSON."""

    def __init__(self, settings: Settings, search_id: str):
        self.settings = settings
        self.search_id = search_id
        self.events: list[TraceEvent] = []
        self._started: dict[str, float] = {}

    def start(self, operation: str, **data: Any) -> None:
        self._started[operation] = time.monotonic()
        self._record(operation, "start", data)

    def finish(self, operation: str, **data: Any) -> None:
        self._record(operation, "finish", data, duration_ms=self._elapsed(operation))

    def fail(self, operation: str, error: BaseException | str, **data: Any) -> None:
        self._record(operation, "error", data, error=str(error), duration_ms=self._elapsed(operation))

    def info(self, operation: str, **data: Any) -> None:
        self._record(operation, "info", data)

    def flush(self) -> Path | None:
        if not self.settings.save_run_traces:
            return None
        path = self.settings.run_artifact_dir / f"{self.search_id}.json"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            payload = {"search_id": self.search_id, "events": [asdict(event) for event in self.events]}
            path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to write run trace for search=%s: %s", self.search_id, exc)
            return None
        return path

    def _elapsed(self, operation: str) -> int | None:
        started = self._started.pop(operation, None)
        if started is None:
            return None
        return int((time.monotonic() - started) * 1000)

    def _record(
        self,
        operation: str,
        phase: str,
        data: dict[str, Any],
        *,
        error: str | None = None,
        duration_ms: int | None = None,
    ) -> None:
        event = TraceEvent(
            operation=operation,
            phase=phase,
            at=utcnow().isoformat(),
            data=data,
            error=error,
            duration_ms=duration_ms,
        )
        self.events.append(event)
        if error:
            logger.warning("[%s] %s %s error=%s", self.search_id, operation, phase, error)
        else:
            logger.debug("[%s] %s %s %s", self.search_id, operation, phase, data)
