from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from prepwise.core.persistence import ResearchStore
from prepwise.db.base import utcnow
from prepwise.errors import PersistenceError

logger = logging.getLogger(__name__)

PROGRESS_STEPS: dict[str, int] = {
    "data_gathering_start": 15,
    "data_gathering_complete": 45,
    "ai_synthesis_start": 55,
    "ai_synthesis_complete": 70,
    "question_generation_start": 75,
    "question_generation_complete": 90,
    "completed": 100,
}


@dataclass(slots=True)
class ProgressEntry:
    step: str
    percentage: int
    at: datetime = field(default_factory=utcnow)
    message: str = ""


class ProgressTracker:
    """Records step transitions for one search, in memory and on the search row.

    Writes are best-effort; a failed write never interrupts the run.
    """

    def __init__(self, store: ResearchStore, search_id: str):
        self.store = store
        self.search_id = search_id
        self.history: list[ProgressEntry] = []

    @property
    def current(self) -> ProgressEntry | None:
        return self.history[-1] if self.history else None

    async def advance(self, step: str, *, persist: bool = True) -> ProgressEntry:
        if step not in PROGRESS_STEPS:
            raise ValueError(f"unknown progress step {step!r}")
        entry = ProgressEntry(step=step, percentage=PROGRESS_STEPS[step])
        self.history.append(entry)
        logger.info("Search %s progress %s (%d%%)", self.search_id, step, entry.percentage)

        if persist:
            try:
                if not await self.store.record_progress(self.search_id, step, entry.percentage):
                    logger.info("Search %s already finished; step %s not recorded", self.search_id, step)
            except PersistenceError as exc:
                logger.warning("Progress update failed search=%s step=%s: %s", self.search_id, step, exc)
        return entry

    async def mark_failed(self, message: str) -> ProgressEntry:
        last = self.current
        entry = ProgressEntry(step="failed", percentage=last.percentage if last else 0, message=message)
        self.history.append(entry)
        try:
            await self.store.mark_failed(self.search_id, message)
        except PersistenceError as exc:
            logger.error("Could not record failure for search=%s: %s", self.search_id, exc)
        return entry
