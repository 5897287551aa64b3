from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from prepwise.config import Settings
from prepwise.db.base import Base
from prepwise.db.session import build_session_factory
from prepwise.types import QUESTION_CATEGORIES, ModelResponse, ResearchRequest


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        app_env="test",
        database_url=f"sqlite:///{tmp_path / 'prepwise-test.db'}",
        data_dir=tmp_path / "data",
        run_artifact_dir=tmp_path / "runs",
        analyzer_base_url="http://analyzers.test/functions/v1",
        analyzer_api_key="service-key",
        openai_api_key="",
        local_llm_enabled=False,
        company_research_timeout_sec=1.0,
        job_analysis_timeout_sec=1.0,
        cv_analysis_timeout_sec=1.0,
        db_timeout_sec=5.0,
    )


@pytest.fixture
def session_factory(settings: Settings):
    factory = build_session_factory(settings)
    engine = factory.kw["bind"]
    Base.metadata.create_all(bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def research_request() -> ResearchRequest:
    return ResearchRequest(
        search_id="search-1",
        user_id="user-1",
        company="Acme Robotics",
        role="Backend Engineer",
        country="Germany",
        role_links=("https://jobs.example.com/acme/backend",),
        cv_text="Jane Doe, backend engineer, 6 years of Python and PostgreSQL.",
    )


class FakeAnalyzers:
    """Stand-in for AnalyzerClient. Each slot is a dict, None, an exception, or a delay in seconds."""

    def __init__(self, *, company: Any = None, job: Any = None, cv: Any = None):
        self.results = {"company": company, "job": job, "cv": cv}
        self.calls: list[str] = []

    async def research_company(self, *, company, role, country, search_id):
        return await self._resolve("company")

    async def analyze_job(self, *, role_links, search_id, company, role):
        return await self._resolve("job")

    async def analyze_cv(self, *, cv_text, user_id):
        return await self._resolve("cv")

    async def _resolve(self, slot: str):
        self.calls.append(slot)
        value = self.results[slot]
        if isinstance(value, BaseException):
            raise value
        if isinstance(value, (int, float)):
            await asyncio.sleep(value)
            return {"slow": True}
        return value


Responder = str | BaseException | Callable[[str], str]


class FakeRouter:
    """Stand-in for LLMRouter returning canned content per task."""

    def __init__(self, *, synthesis: Responder = "{}", refinement: Responder = '{"questions": []}'):
        self.responders: dict[str, Responder] = {"synthesis": synthesis, "refinement": refinement}
        self.calls: list[dict[str, str]] = []

    async def generate(self, *, task: str, system: str, prompt: str) -> ModelResponse:
        self.calls.append({"task": task, "system": system, "prompt": prompt})
        responder = self.responders[task]
        if isinstance(responder, BaseException):
            raise responder
        content = responder(prompt) if callable(responder) else responder
        return ModelResponse(content=content, raw={"api_path": "fake"})

    def model_for(self, task: str) -> str:
        return f"fake-{task}-model"

    def max_tokens_for(self, task: str) -> int:
        return 1000


def question_payload(category: str, index: int, *, prefix: str = "") -> dict[str, Any]:
    return {
        "question": f"{prefix}How would you approach {category} scenario {index} at Acme?",
        "category": category,
        "difficulty": "medium",
        "rationale": "Acme values ownership",
        "company_context": "Robotics platform",
        "confidence_score": 0.9,
        "star_story_fit": category == "behavioral",
        "suggested_answer_approach": "Use STAR",
        "evaluation_criteria": ["clarity"],
        "follow_up_questions": ["What would you change?"],
    }


def draft_payload(per_category: int | dict[str, int] = 5, stages: int = 4) -> dict[str, Any]:
    counts = per_category if isinstance(per_category, dict) else {c: per_category for c in QUESTION_CATEGORIES}
    return {
        "interview_stages": [
            {
                "name": f"Stage {index}",
                "order_index": index,
                "duration": "45 minutes",
                "interviewer": "Engineer",
                "content": "Discussion",
                "guidance": "Be concrete",
                "preparation_tips": ["Review the product"],
                "common_questions": ["Why Acme?"],
                "red_flags_to_avoid": ["Vague answers"],
            }
            for index in range(1, stages + 1)
        ],
        "comparison_analysis": {"overall_fit_score": 7.5, "skill_gap_analysis": {}},
        "interview_questions_data": {
            category: [question_payload(category, index) for index in range(counts.get(category, 0))]
            for category in QUESTION_CATEGORIES
        },
        "preparation_guidance": {"preparation_priorities": ["System design", "Company values"]},
    }


def refinement_responder(prefix: str = "extra") -> Callable[[str], str]:
    """Answers each supplemental request with exactly the requested number of fresh questions."""
    counter = {"value": 0}

    def respond(prompt: str) -> str:
        count = int(prompt.split("Generate exactly ", 1)[1].split(" ", 1)[0])
        category = prompt.split('in the "', 1)[1].split('"', 1)[0]
        items = []
        for _ in range(count):
            counter["value"] += 1
            items.append(question_payload(category, counter["value"], prefix=f"{prefix}-{counter['value']} "))
        return json.dumps({"questions": items})

    return respond


@pytest.fixture
def fake_analyzers_cls() -> type[FakeAnalyzers]:
    return FakeAnalyzers


@pytest.fixture
def fake_router_cls() -> type[FakeRouter]:
    return FakeRouter


@pytest.fixture
def make_draft_payload() -> Callable[..., dict[str, Any]]:
    return draft_payload


@pytest.fixture
def make_refinement_responder() -> Callable[..., Callable[[str], str]]:
    return refinement_responder
