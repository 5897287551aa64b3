from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from prepwise.types import Seniority


class ResumeCreateRequest(BaseModel):
    user_id: str = Field(min_length=1)
    content: str = Field(min_length=1)
    search_id: str | None = None


class ResumeResponse(BaseModel):
    id: int
    user_id: str


class SearchCreateRequest(BaseModel):
    user_id: str = Field(min_length=1)
    company: str = Field(min_length=1)
    role: str | None = None
    country: str | None = None
    role_links: list[str] = Field(default_factory=list)
    cv_text: str | None = None
    resume_id: int | None = None
    target_seniority: Seniority | None = None


class SearchCreatedResponse(BaseModel):
    search_id: str
    status: str


class SearchStatusResponse(BaseModel):
    id: str
    user_id: str
    company: str
    role: str
    country: str
    target_seniority: str
    status: str
    progress_step: str
    progress_percentage: int
    error_message: str
    overall_fit_score: float
    preparation_priorities: list[str]
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class ArtifactResponse(BaseModel):
    search_id: str
    processing_status: str
    processing_error_message: str
    company_research_raw: dict[str, Any] | None = None
    job_analysis_raw: dict[str, Any] | None = None
    cv_analysis_raw: dict[str, Any] | None = None
    interview_stages: list[dict[str, Any]] = Field(default_factory=list)
    comparison_analysis: dict[str, Any] | None = None
    interview_questions_data: dict[str, Any] | None = None
    preparation_guidance: dict[str, Any] | None = None
    synthesis_metadata: dict[str, Any] | None = None


class QuestionResponse(BaseModel):
    id: int
    question: str
    category: str
    difficulty: str
    rationale: str
    suggested_answer_approach: str
    evaluation_criteria: list[str]
    follow_up_questions: list[str]
    star_story_fit: bool
    company_context: str
    confidence_score: float


class StageResponse(BaseModel):
    id: int
    name: str
    order_index: int
    duration: str
    interviewer: str
    content: str
    guidance: str
    preparation_tips: list[str]
    common_questions: list[str]
    red_flags_to_avoid: list[str]
    questions: list[QuestionResponse] = Field(default_factory=list)
