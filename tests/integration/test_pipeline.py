from __future__ import annotations

import asyncio
import json
from collections.abc import Callable

from prepwise.core.pipeline import build_pipeline
from prepwise.db.repositories import Repository
from prepwise.types import QUESTION_CATEGORIES, ResearchRequest

COMPANY = {"industry": "Robotics", "interview_questions_bank": {"behavioral": ["Why robotics?"]}}
JOB = {"technical_skills": ["Python", "Kafka"]}
CV = {"current_role": "Engineer", "experience_years": 9, "experience": [{"role": "Engineer", "company": "StreamCo"}]}


def _analyzers(fake_analyzers_cls, **overrides):
    values = {"company": COMPANY, "job": JOB, "cv": CV}
    values.update(overrides)
    return fake_analyzers_cls(**values)


def _run(settings, session_factory, request, *, analyzers, router):
    pipeline = build_pipeline(settings, session_factory, analyzers=analyzers, router=router)
    return asyncio.run(pipeline.run(request))


def test_happy_path_persists_stages_questions_and_completes(
    settings, session_factory, research_request, fake_analyzers_cls, fake_router_cls, make_draft_payload
) -> None:
    router = fake_router_cls(synthesis=json.dumps(make_draft_payload(5)))

    outcome = _run(settings, session_factory, research_request, analyzers=_analyzers(fake_analyzers_cls), router=router)

    assert outcome.status == "completed"
    assert outcome.stage_count == 4
    assert outcome.question_count == 35
    assert outcome.warnings == []
    assert [call["task"] for call in router.calls] == ["synthesis"]

    with session_factory() as db:
        repo = Repository(db)
        search = repo.get_search(research_request.search_id)
        assert search.search_status == "completed"
        assert search.progress_step == "completed"
        assert search.progress_percentage == 100
        assert search.overall_fit_score == 7.5
        assert search.preparation_priorities_json == ["System design", "Company values"]
        assert search.completed_at is not None

        artifact = repo.get_artifact(research_request.search_id)
        assert artifact.processing_status == "complete"
        assert artifact.company_research_raw == COMPANY
        assert artifact.synthesis_metadata["quality_gate"]["satisfied"] is True
        assert artifact.synthesis_metadata["seniority"] == "senior"

        stages = {stage.id: stage.order_index for stage in repo.list_stages(research_request.search_id)}
        questions = repo.list_questions(research_request.search_id)
        assert len(questions) == 35
        by_category = {question.category: stages[question.stage_id] for question in questions}
        assert by_category == {
            "behavioral": 1,
            "cultural_fit": 1,
            "technical": 2,
            "role_specific": 2,
            "situational": 3,
            "experience_based": 3,
            "company_specific": 4,
        }

    trace = json.loads((settings.run_artifact_dir / f"{research_request.search_id}.json").read_text())
    operations = [event["operation"] for event in trace["events"]]
    assert "collect" in operations and "synthesis" in operations


def test_synthesis_failure_marks_search_failed(
    settings, session_factory, research_request, fake_analyzers_cls, fake_router_cls
) -> None:
    router = fake_router_cls(synthesis=RuntimeError("upstream 503"))

    outcome = _run(settings, session_factory, research_request, analyzers=_analyzers(fake_analyzers_cls), router=router)

    assert outcome.status == "failed"
    assert "synthesis" in outcome.error.lower()
    with session_factory() as db:
        repo = Repository(db)
        search = repo.get_search(research_request.search_id)
        assert search.search_status == "failed"
        assert search.progress_step == "failed"
        assert "synthesis" in search.error_message.lower()
        artifact = repo.get_artifact(research_request.search_id)
        assert artifact.processing_status == "failed"
        assert artifact.company_research_raw == COMPANY
        assert repo.list_stages(research_request.search_id) == []
        assert repo.list_questions(research_request.search_id) == []


def _one_question_per_call() -> Callable[[str], str]:
    counter = {"value": 0}

    def respond(prompt: str) -> str:
        category = prompt.split('in the "', 1)[1].split('"', 1)[0]
        counter["value"] += 1
        question = {"question": f"Follow-up {category} question number {counter['value']}?", "category": category}
        return json.dumps({"questions": [question]})

    return respond


def test_under_generation_completes_with_warnings(
    settings, session_factory, research_request, fake_analyzers_cls, fake_router_cls, make_draft_payload
) -> None:
    counts = {"behavioral": 3, "technical": 3}
    router = fake_router_cls(synthesis=json.dumps(make_draft_payload(counts)), refinement=_one_question_per_call())

    outcome = _run(settings, session_factory, research_request, analyzers=_analyzers(fake_analyzers_cls), router=router)

    assert outcome.status == "completed"
    assert outcome.question_count == 6 + settings.max_refinement_iterations * len(QUESTION_CATEGORIES)
    assert outcome.question_count < settings.min_total_questions
    assert any(f"only {outcome.question_count} questions persisted" in warning for warning in outcome.warnings)
    refinement_calls = [call for call in router.calls if call["task"] == "refinement"]
    assert len(refinement_calls) == settings.max_refinement_iterations * len(QUESTION_CATEGORIES)

    with session_factory() as db:
        repo = Repository(db)
        assert len(repo.list_questions(research_request.search_id)) == outcome.question_count
        assert repo.get_search(research_request.search_id).search_status == "completed"
        gate = repo.get_artifact(research_request.search_id).synthesis_metadata["quality_gate"]
        assert gate["satisfied"] is False
        assert gate["iterations"] == settings.max_refinement_iterations


def test_uneven_small_draft_is_topped_up_without_losing_questions(
    settings,
    session_factory,
    research_request,
    fake_analyzers_cls,
    fake_router_cls,
    make_draft_payload,
    make_refinement_responder,
) -> None:
    counts = {"behavioral": 4, "technical": 1}
    router = fake_router_cls(
        synthesis=json.dumps(make_draft_payload(counts)), refinement=make_refinement_responder()
    )

    outcome = _run(settings, session_factory, research_request, analyzers=_analyzers(fake_analyzers_cls), router=router)

    assert outcome.status == "completed"
    assert outcome.question_count >= settings.min_total_questions
    with session_factory() as db:
        questions = Repository(db).list_questions(research_request.search_id)
    texts = {question.question for question in questions}
    assert len(texts) == len(questions) == outcome.question_count
    for category in QUESTION_CATEGORIES:
        assert sum(1 for question in questions if question.category == category) >= 5
    original = {payload["question"] for payload in make_draft_payload(counts)["interview_questions_data"]["behavioral"]}
    assert original <= texts


def test_missing_cv_leaves_cv_checkpoint_empty(
    settings, session_factory, fake_analyzers_cls, fake_router_cls, make_draft_payload
) -> None:
    request = ResearchRequest(
        search_id="search-no-cv", user_id="user-1", company="Acme", role_links=("https://jobs.example.com/1",)
    )
    analyzers = _analyzers(fake_analyzers_cls)
    router = fake_router_cls(synthesis=json.dumps(make_draft_payload(5)))

    outcome = _run(settings, session_factory, request, analyzers=analyzers, router=router)

    assert outcome.status == "completed"
    assert sorted(analyzers.calls) == ["company", "job"]
    with session_factory() as db:
        artifact = Repository(db).get_artifact(request.search_id)
        assert artifact.cv_analysis_raw is None
        assert artifact.company_research_raw == COMPANY
        assert artifact.job_analysis_raw == JOB


def test_refinement_tops_up_before_persisting(
    settings,
    session_factory,
    research_request,
    fake_analyzers_cls,
    fake_router_cls,
    make_draft_payload,
    make_refinement_responder,
) -> None:
    counts = {category: 5 for category in QUESTION_CATEGORIES}
    counts["technical"] = 1
    router = fake_router_cls(
        synthesis=json.dumps(make_draft_payload(counts)), refinement=make_refinement_responder()
    )

    outcome = _run(settings, session_factory, research_request, analyzers=_analyzers(fake_analyzers_cls), router=router)

    assert outcome.status == "completed"
    assert outcome.question_count == 35
    with session_factory() as db:
        technical = Repository(db).list_questions(research_request.search_id)
        assert sum(1 for question in technical if question.category == "technical") == 5


def test_all_sources_failing_still_synthesizes(
    settings, session_factory, research_request, fake_analyzers_cls, fake_router_cls, make_draft_payload
) -> None:
    analyzers = fake_analyzers_cls(company=RuntimeError("down"), job=None, cv=RuntimeError("down"))
    router = fake_router_cls(synthesis=json.dumps(make_draft_payload(5)))

    outcome = _run(settings, session_factory, research_request, analyzers=analyzers, router=router)

    assert outcome.status == "completed"
    prompt = router.calls[0]["prompt"]
    assert "=== COMPANY RESEARCH" not in prompt
    assert "=== CANDIDATE PROFILE ===" not in prompt


def test_questions_without_stages_fail_the_run(
    settings, session_factory, research_request, fake_analyzers_cls, fake_router_cls, make_draft_payload
) -> None:
    router = fake_router_cls(synthesis=json.dumps(make_draft_payload(5, stages=0)))

    outcome = _run(settings, session_factory, research_request, analyzers=_analyzers(fake_analyzers_cls), router=router)

    assert outcome.status == "failed"
    assert "no interview stage" in outcome.error
    with session_factory() as db:
        assert Repository(db).get_search(research_request.search_id).search_status == "failed"


def test_rerun_replaces_stages_and_questions(
    settings, session_factory, research_request, fake_analyzers_cls, fake_router_cls, make_draft_payload
) -> None:
    payload = json.dumps(make_draft_payload(5))
    for _ in range(2):
        router = fake_router_cls(synthesis=payload)
        outcome = _run(
            settings, session_factory, research_request, analyzers=_analyzers(fake_analyzers_cls), router=router
        )
        assert outcome.status == "completed"

    with session_factory() as db:
        repo = Repository(db)
        assert len(repo.list_stages(research_request.search_id)) == 4
        assert len(repo.list_questions(research_request.search_id)) == 35
        assert repo.count_artifacts(research_request.search_id) == 1
        assert repo.get_search(research_request.search_id).search_status == "completed"


def test_stored_resume_is_resolved_for_cv_analysis(
    settings, session_factory, fake_analyzers_cls, fake_router_cls, make_draft_payload
) -> None:
    with session_factory() as db:
        resume = Repository(db).create_resume(user_id="user-1", content="Stored CV: 9 years of Python")
    request = ResearchRequest(search_id="search-cv", user_id="user-1", company="Acme", resume_id=resume.id)
    analyzers = _analyzers(fake_analyzers_cls)

    outcome = _run(
        settings,
        session_factory,
        request,
        analyzers=analyzers,
        router=fake_router_cls(synthesis=json.dumps(make_draft_payload(5))),
    )

    assert outcome.status == "completed"
    assert "cv" in analyzers.calls
    assert "job" not in analyzers.calls
