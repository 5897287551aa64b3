from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from prepwise.db.base import utcnow
from prepwise.db.models import (
    InterviewQuestionRecord,
    InterviewStageRecord,
    Resume,
    Search,
    SearchArtifact,
)
from prepwise.types import InterviewStage, Question, RawResearchData


TERMINAL_SEARCH_STATUSES = ("completed", "failed")


def canonicalize_question(question: str) -> str:
    return " ".join(question.strip().lower().split())


class Repository:
    def __init__(self, session: Session):
        self.session = session

    def create_search(
        self,
        *,
        search_id: str,
        user_id: str,
        company: str,
        role: str = "",
        country: str = "",
        role_links: list[str] | None = None,
        target_seniority: str = "",
    ) -> Search:
        search = Search(
            id=search_id,
            user_id=user_id,
            company=company,
            role=role,
            country=country,
            role_links_json=role_links or [],
            target_seniority=target_seniority,
        )
        self.session.add(search)
        self.session.commit()
        self.session.refresh(search)
        return search

    def reopen_search(self, search_id: str) -> Search:
        search = self.session.get(Search, search_id)
        if not search:
            raise ValueError(f"search {search_id} not found")
        search.search_status = "pending"
        search.progress_step = "initializing"
        search.progress_percentage = 0
        search.error_message = ""
        search.started_at = None
        search.completed_at = None
        self.session.commit()
        self.session.refresh(search)
        return search

    def get_search(self, search_id: str) -> Search | None:
        return self.session.get(Search, search_id)

    def list_searches(self, user_id: str, limit: int = 50) -> list[Search]:
        statement = (
            select(Search).where(Search.user_id == user_id).order_by(Search.created_at.desc()).limit(limit)
        )
        return list(self.session.scalars(statement).all())

    def update_search(
        self,
        search_id: str,
        *,
        status: str | None = None,
        progress_step: str | None = None,
        progress_percentage: int | None = None,
        error_message: str | None = None,
        overall_fit_score: float | None = None,
        preparation_priorities: list[str] | None = None,
        cv_job_comparison: dict | None = None,
        completed: bool = False,
    ) -> Search:
        search = self.session.get(Search, search_id)
        if not search:
            raise ValueError(f"search {search_id} not found")

        if status is not None:
            search.search_status = status
            if status == "processing" and search.started_at is None:
                search.started_at = utcnow()
        if progress_step is not None:
            search.progress_step = progress_step
        if progress_percentage is not None:
            search.progress_percentage = progress_percentage
        if error_message is not None:
            search.error_message = error_message
        if overall_fit_score is not None:
            search.overall_fit_score = overall_fit_score
        if preparation_priorities is not None:
            search.preparation_priorities_json = preparation_priorities
        if cv_job_comparison is not None:
            search.cv_job_comparison_json = cv_job_comparison
        if completed:
            search.completed_at = utcnow()

        self.session.commit()
        self.session.refresh(search)
        return search

    def record_search_progress(self, search_id: str, *, step: str, percentage: int) -> int:
        """Move a search to processing at the given step unless it already finished."""
        now = utcnow()
        result = self.session.execute(
            update(Search)
            .where(Search.id == search_id, Search.search_status.not_in(TERMINAL_SEARCH_STATUSES))
            .values(
                search_status="processing",
                progress_step=step,
                progress_percentage=percentage,
                started_at=func.coalesce(Search.started_at, now),
                updated_at=now,
            )
        )
        self.session.commit()
        return result.rowcount or 0

    def create_resume(self, *, user_id: str, content: str, search_id: str | None = None) -> Resume:
        resume = Resume(user_id=user_id, content=content, search_id=search_id)
        self.session.add(resume)
        self.session.commit()
        self.session.refresh(resume)
        return resume

    def get_resume(self, resume_id: int) -> Resume | None:
        return self.session.get(Resume, resume_id)

    def get_artifact(self, search_id: str) -> SearchArtifact | None:
        return self.session.scalar(select(SearchArtifact).where(SearchArtifact.search_id == search_id))

    def count_artifacts(self, search_id: str) -> int:
        statement = select(SearchArtifact.id).where(SearchArtifact.search_id == search_id)
        return len(self.session.scalars(statement).all())

    def update_artifact_raw(self, search_id: str, raw: RawResearchData, saved_at: datetime) -> int:
        result = self.session.execute(
            update(SearchArtifact)
            .where(SearchArtifact.search_id == search_id)
            .values(
                company_research_raw=raw.company_insights,
                job_analysis_raw=raw.job_requirements,
                cv_analysis_raw=raw.cv_analysis,
                processing_status="raw_data_saved",
                processing_raw_save_at=saved_at,
                updated_at=saved_at,
            )
        )
        self.session.commit()
        return result.rowcount or 0

    def insert_artifact_raw(
        self,
        *,
        search_id: str,
        user_id: str,
        raw: RawResearchData,
        saved_at: datetime,
    ) -> SearchArtifact:
        artifact = SearchArtifact(
            search_id=search_id,
            user_id=user_id,
            company_research_raw=raw.company_insights,
            job_analysis_raw=raw.job_requirements,
            cv_analysis_raw=raw.cv_analysis,
            interview_stages=[],
            processing_status="raw_data_saved",
            processing_started_at=saved_at,
            processing_raw_save_at=saved_at,
        )
        self.session.add(artifact)
        self.session.commit()
        self.session.refresh(artifact)
        return artifact

    def upsert_artifact_synthesis(
        self,
        *,
        search_id: str,
        user_id: str,
        values: dict[str, Any],
    ) -> SearchArtifact:
        now = utcnow()
        artifact = self.get_artifact(search_id)
        if artifact is None:
            artifact = SearchArtifact(search_id=search_id, user_id=user_id, processing_started_at=now)
            self.session.add(artifact)

        for key, value in values.items():
            setattr(artifact, key, value)
        artifact.processing_status = "complete"
        artifact.processing_error_message = ""
        artifact.processing_synthesis_end_at = now
        artifact.processing_completed_at = now

        self.session.commit()
        self.session.refresh(artifact)
        return artifact

    def mark_artifact_failed(self, search_id: str, message: str) -> int:
        result = self.session.execute(
            update(SearchArtifact)
            .where(SearchArtifact.search_id == search_id)
            .values(processing_status="failed", processing_error_message=message, updated_at=utcnow())
        )
        self.session.commit()
        return result.rowcount or 0

    def replace_interview_plan(
        self,
        search_id: str,
        stages: list[InterviewStage],
        assign: Callable[[dict[int, int]], list[tuple[int, Question]]],
    ) -> tuple[int, int]:
        """Swap in new stage and question rows for a search in one transaction.

        ``assign`` receives order index -> stage row id and returns the
        (stage id, question) pairs to insert. Nothing is committed if it raises.
        """
        self.session.execute(delete(InterviewQuestionRecord).where(InterviewQuestionRecord.search_id == search_id))
        self.session.execute(delete(InterviewStageRecord).where(InterviewStageRecord.search_id == search_id))

        records = [
            InterviewStageRecord(
                search_id=search_id,
                name=stage.name,
                order_index=stage.order_index,
                duration=stage.duration,
                interviewer=stage.interviewer,
                content=stage.content,
                guidance=stage.guidance,
                preparation_tips_json=stage.preparation_tips,
                common_questions_json=stage.common_questions,
                red_flags_json=stage.red_flags_to_avoid,
            )
            for stage in stages
        ]
        self.session.add_all(records)
        self.session.flush()

        assignments = assign({record.order_index: record.id for record in records})
        for stage_id, question in assignments:
            self.session.add(
                InterviewQuestionRecord(
                    search_id=search_id,
                    stage_id=stage_id,
                    question=question.question,
                    category=question.category,
                    question_type="synthesized",
                    difficulty=question.difficulty,
                    rationale=question.rationale,
                    suggested_answer_approach=question.suggested_answer_approach,
                    evaluation_criteria_json=question.evaluation_criteria,
                    follow_up_questions_json=question.follow_up_questions,
                    star_story_fit=question.star_story_fit,
                    company_context=question.company_context,
                    confidence_score=question.confidence_score,
                )
            )
        self.session.commit()
        return len(records), len(assignments)

    def list_stages(self, search_id: str) -> list[InterviewStageRecord]:
        statement = (
            select(InterviewStageRecord)
            .where(InterviewStageRecord.search_id == search_id)
            .order_by(InterviewStageRecord.order_index.asc())
        )
        return list(self.session.scalars(statement).all())

    def list_questions(self, search_id: str, stage_id: int | None = None) -> list[InterviewQuestionRecord]:
        statement = select(InterviewQuestionRecord).where(InterviewQuestionRecord.search_id == search_id)
        if stage_id is not None:
            statement = statement.where(InterviewQuestionRecord.stage_id == stage_id)
        return list(self.session.scalars(statement.order_by(InterviewQuestionRecord.id.asc())).all())
