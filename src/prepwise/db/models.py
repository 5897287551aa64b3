from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from prepwise.db.base import Base, TimestampMixin


class Search(TimestampMixin, Base):
    __tablename__ = "searches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    country: Mapped[str] = mapped_column(String(120), default="", nullable=False)
    role_links_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    target_seniority: Mapped[str] = mapped_column(String(20), default="", nullable=False)
    search_status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    progress_step: Mapped[str] = mapped_column(String(80), default="initializing", nullable=False)
    progress_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[str] = mapped_column(Text, default="", nullable=False)
    overall_fit_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    preparation_priorities_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    cv_job_comparison_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Resume(TimestampMixin, Base):
    __tablename__ = "resumes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    search_id: Mapped[str | None] = mapped_column(
        ForeignKey("searches.id", ondelete="SET NULL"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    parsed_data_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)


class SearchArtifact(TimestampMixin, Base):
    __tablename__ = "search_artifacts"
    __table_args__ = (UniqueConstraint("search_id", name="uq_search_artifacts_search_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    search_id: Mapped[str] = mapped_column(ForeignKey("searches.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    company_research_raw: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    job_analysis_raw: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    cv_analysis_raw: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    interview_stages: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    synthesis_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    comparison_analysis: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    interview_questions_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    preparation_guidance: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    processing_status: Mapped[str] = mapped_column(String(40), default="started", index=True, nullable=False)
    processing_error_message: Mapped[str] = mapped_column(Text, default="", nullable=False)
    processing_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processing_raw_save_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processing_synthesis_end_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processing_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class InterviewStageRecord(TimestampMixin, Base):
    __tablename__ = "interview_stages"
    __table_args__ = (UniqueConstraint("search_id", "order_index", name="uq_interview_stages_order"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    search_id: Mapped[str] = mapped_column(ForeignKey("searches.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    duration: Mapped[str] = mapped_column(String(120), default="", nullable=False)
    interviewer: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    content: Mapped[str] = mapped_column(Text, default="", nullable=False)
    guidance: Mapped[str] = mapped_column(Text, default="", nullable=False)
    preparation_tips_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    common_questions_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    red_flags_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)


class InterviewQuestionRecord(TimestampMixin, Base):
    __tablename__ = "interview_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    search_id: Mapped[str] = mapped_column(ForeignKey("searches.id", ondelete="CASCADE"), index=True)
    stage_id: Mapped[int] = mapped_column(
        ForeignKey("interview_stages.id", ondelete="CASCADE"), index=True, nullable=False
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(40), nullable=False)
    question_type: Mapped[str] = mapped_column(String(40), default="synthesized", nullable=False)
    difficulty: Mapped[str] = mapped_column(String(10), default="medium", nullable=False)
    rationale: Mapped[str] = mapped_column(Text, default="", nullable=False)
    suggested_answer_approach: Mapped[str] = mapped_column(Text, default="", nullable=False)
    evaluation_criteria_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    follow_up_questions_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    star_story_fit: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    company_context: Mapped[str] = mapped_column(Text, default="", nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, default=0.8, nullable=False)
