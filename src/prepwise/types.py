from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Seniority = Literal["junior", "mid", "senior"]
Difficulty = Literal["easy", "medium", "hard"]
QuestionCategory = Literal[
    "behavioral",
    "technical",
    "situational",
    "company_specific",
    "role_specific",
    "experience_based",
    "cultural_fit",
]
ProcessingStatus = Literal["started", "raw_data_saved", "complete", "failed"]
SearchStatus = Literal["pending", "processing", "completed", "failed"]

QUESTION_CATEGORIES: tuple[str, ...] = (
    "behavioral",
    "technical",
    "situational",
    "company_specific",
    "role_specific",
    "experience_based",
    "cultural_fit",
)


def normalize_category(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    key = "_".join(value.strip().lower().replace("-", " ").split())
    return key if key in QUESTION_CATEGORIES else None


def normalize_difficulty(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() in {"easy", "medium", "hard"}:
        return value.strip().lower()
    return "medium"


class ResearchRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    company: str
    role: str | None = None
    country: str | None = None
    role_links: tuple[str, ...] = ()
    cv_text: str | None = None
    resume_id: int | None = None
    target_seniority: Seniority | None = None
    user_id: str
    search_id: str

    @field_validator("company")
    @classmethod
    def validate_company(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("company must not be empty")
        return value


class RawResearchData(BaseModel):
    company_insights: dict[str, Any] | None = None
    job_requirements: dict[str, Any] | None = None
    cv_analysis: dict[str, Any] | None = None

    def availability(self) -> dict[str, bool]:
        return {
            "company_insights": self.company_insights is not None,
            "job_requirements": self.job_requirements is not None,
            "cv_analysis": self.cv_analysis is not None,
        }


class Question(BaseModel):
    question: str
    category: QuestionCategory
    difficulty: Difficulty = "medium"
    rationale: str = ""
    company_context: str = ""
    confidence_score: float = 0.8
    star_story_fit: bool = False
    suggested_answer_approach: str = ""
    evaluation_criteria: list[str] = Field(default_factory=list)
    follow_up_questions: list[str] = Field(default_factory=list)

    @field_validator("question")
    @classmethod
    def validate_question(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("question text must not be empty")
        return value

    @field_validator("category", mode="before")
    @classmethod
    def validate_category(cls, value: Any) -> str:
        category = normalize_category(value)
        if category is None:
            raise ValueError(f"unknown question category {value!r}")
        return category

    @field_validator("difficulty", mode="before")
    @classmethod
    def validate_difficulty(cls, value: Any) -> str:
        return normalize_difficulty(value)

    @field_validator("confidence_score", mode="before")
    @classmethod
    def validate_confidence(cls, value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.8
        return max(0.0, min(1.0, score))


class InterviewStage(BaseModel):
    name: str
    order_index: int
    duration: str = ""
    interviewer: str = ""
    content: str = ""
    guidance: str = ""
    preparation_tips: list[str] = Field(default_factory=list)
    common_questions: list[str] = Field(default_factory=list)
    red_flags_to_avoid: list[str] = Field(default_factory=list)


class SynthesisDraft(BaseModel):
    interview_stages: list[InterviewStage] = Field(default_factory=list)
    comparison_analysis: dict[str, Any] = Field(default_factory=dict)
    interview_questions_data: dict[str, list[Question]] = Field(default_factory=dict)
    preparation_guidance: dict[str, Any] = Field(default_factory=dict)
    synthesis_metadata: dict[str, Any] = Field(default_factory=dict)

    def question_counts(self) -> dict[str, int]:
        return {
            category: len(self.interview_questions_data.get(category, []))
            for category in QUESTION_CATEGORIES
        }

    def total_questions(self) -> int:
        return sum(len(items) for items in self.interview_questions_data.values())


class RefinementReport(BaseModel):
    iterations: int = 0
    satisfied: bool = False
    initial_total: int = 0
    final_total: int = 0
    added: dict[str, int] = Field(default_factory=dict)
    final_counts: dict[str, int] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)


class ModelResponse(BaseModel):
    content: str
    raw: dict[str, Any] = Field(default_factory=dict)


class ResearchOutcome(BaseModel):
    search_id: str
    status: Literal["completed", "failed"]
    error: str = ""
    stage_count: int = 0
    question_count: int = 0
    warnings: list[str] = Field(default_factory=list)
