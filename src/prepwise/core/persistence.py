from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy import event
from sqlalchemy.orm import Session, sessionmaker

from prepwise.config import Settings
from prepwise.core.mapper import assign_questions
from prepwise.core.normalize import draft_to_payload
from prepwise.db.base import utcnow
from prepwise.db.repositories import TERMINAL_SEARCH_STATUSES, Repository
from prepwise.errors import PersistenceError, PrepwiseError
from prepwise.types import InterviewStage, Question, RawResearchData, ResearchRequest, SynthesisDraft

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResearchStore:
    """Async facade over the repository.

    Every operation runs in a worker thread with its own session and under
    ``db_timeout_sec``. Failures surface as ``PersistenceError`` labelled with
    the operation name. A worker that outlives its timeout cannot commit: its
    session refuses commits past the deadline and rolls back on close.
    """

    def __init__(self, settings: Settings, session_factory: sessionmaker[Session]):
        self.settings = settings
        self.session_factory = session_factory

    async def ensure_search(self, request: ResearchRequest) -> None:
        def work(repo: Repository) -> None:
            existing = repo.get_search(request.search_id)
            if existing is not None:
                if existing.search_status in TERMINAL_SEARCH_STATUSES:
                    repo.reopen_search(request.search_id)
                return
            repo.create_search(
                search_id=request.search_id,
                user_id=request.user_id,
                company=request.company,
                role=request.role or "",
                country=request.country or "",
                role_links=list(request.role_links),
                target_seniority=request.target_seniority or "",
            )

        await self._run("ensure_search", work)

    async def resolve_cv_text(self, request: ResearchRequest) -> str | None:
        if request.cv_text and request.cv_text.strip():
            return request.cv_text
        if request.resume_id is None:
            return None

        def work(repo: Repository) -> str | None:
            resume = repo.get_resume(request.resume_id)
            return resume.content if resume else None

        text = await self._run("resolve_cv", work)
        if text is None:
            logger.warning("Resume %s not found for search=%s", request.resume_id, request.search_id)
        return text

    async def save_raw_checkpoint(self, request: ResearchRequest, raw: RawResearchData) -> bool:
        """Persist the collected payloads. Best-effort: returns False on failure."""

        def work(repo: Repository) -> str:
            saved_at = utcnow()
            updated = repo.update_artifact_raw(request.search_id, raw, saved_at)
            if updated:
                return "updated"
            repo.insert_artifact_raw(search_id=request.search_id, user_id=request.user_id, raw=raw, saved_at=saved_at)
            return "inserted"

        try:
            outcome = await self._run("raw_checkpoint", work)
        except PersistenceError as exc:
            logger.warning("Raw data checkpoint failed search=%s: %s", request.search_id, exc)
            return False
        logger.info("Raw data checkpoint %s search=%s", outcome, request.search_id)
        return True

    async def save_synthesis(self, request: ResearchRequest, draft: SynthesisDraft) -> None:
        values = draft_to_payload(draft)
        await self._run(
            "artifact_upsert",
            lambda repo: repo.upsert_artifact_synthesis(
                search_id=request.search_id, user_id=request.user_id, values=values
            ),
        )

    async def persist_interview_plan(
        self, search_id: str, stages: list[InterviewStage], questions: dict[str, list[Question]]
    ) -> tuple[int, int]:
        """Replace stage and question rows together; returns (stages, questions) written."""
        def work(repo: Repository) -> tuple[int, int]:
            return repo.replace_interview_plan(search_id, stages, lambda ids: assign_questions(questions, ids))

        return await self._run("stage_question_insert", work)

    async def complete_search(self, search_id: str, draft: SynthesisDraft) -> None:
        fit_score = _fit_score(draft.comparison_analysis.get("overall_fit_score"))
        priorities = draft.preparation_guidance.get("preparation_priorities")

        await self._run(
            "search_complete",
            lambda repo: repo.update_search(
                search_id,
                status="completed",
                progress_step="completed",
                progress_percentage=100,
                error_message="",
                overall_fit_score=fit_score,
                preparation_priorities=[str(item) for item in priorities] if isinstance(priorities, list) else [],
                cv_job_comparison=draft.comparison_analysis,
                completed=True,
            ),
        )

    async def record_progress(self, search_id: str, step: str, percentage: int) -> bool:
        """Returns False when the search had already reached a terminal status."""
        updated = await self._run(
            "progress_update",
            lambda repo: repo.record_search_progress(search_id, step=step, percentage=percentage),
        )
        return updated > 0

    async def mark_failed(self, search_id: str, message: str) -> None:
        def work(repo: Repository) -> None:
            if repo.get_search(search_id) is not None:
                repo.update_search(search_id, status="failed", progress_step="failed", error_message=message)
            repo.mark_artifact_failed(search_id, message)

        await self._run("mark_failed", work)

    async def _run(self, label: str, fn: Callable[[Repository], T]) -> T:
        deadline = time.monotonic() + self.settings.db_timeout_sec

        def work() -> T:
            with self.session_factory() as session:
                event.listen(session, "before_commit", _commit_guard(label, deadline))
                return fn(Repository(session))

        try:
            return await asyncio.wait_for(asyncio.to_thread(work), timeout=self.settings.db_timeout_sec)
        except asyncio.TimeoutError as exc:
            raise PersistenceError(label, f"timed out after {self.settings.db_timeout_sec}s") from exc
        except PrepwiseError:
            raise
        except Exception as exc:
            raise PersistenceError(label, str(exc)) from exc


def _commit_guard(label: str, deadline: float) -> Callable[[Session], None]:
    def guard(session: Session) -> None:
        if time.monotonic() > deadline:
            logger.warning("Discarding late %s write after timeout", label)
            raise PersistenceError(label, "commit refused after timeout")

    return guard


def _fit_score(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
