from __future__ import annotations

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import ValidationError
from sqlalchemy.orm import Session

from prepwise.api.deps import get_db, get_pipeline
from prepwise.api.schemas import (
    ArtifactResponse,
    QuestionResponse,
    ResumeCreateRequest,
    ResumeResponse,
    SearchCreatedResponse,
    SearchCreateRequest,
    SearchStatusResponse,
    StageResponse,
)
from prepwise.core.pipeline import ResearchPipeline
from prepwise.db.models import InterviewQuestionRecord, Search
from prepwise.db.repositories import Repository
from prepwise.types import ResearchRequest

router = APIRouter(prefix="/api", tags=["api"])


@router.post("/resumes", response_model=ResumeResponse)
def create_resume(payload: ResumeCreateRequest, db: Session = Depends(get_db)) -> ResumeResponse:
    repo = Repository(db)
    resume = repo.create_resume(user_id=payload.user_id, content=payload.content, search_id=payload.search_id)
    return ResumeResponse(id=resume.id, user_id=resume.user_id)


@router.post("/searches", response_model=SearchCreatedResponse, status_code=202)
def create_search(
    payload: SearchCreateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    pipeline: ResearchPipeline = Depends(get_pipeline),
) -> SearchCreatedResponse:
    repo = Repository(db)
    if payload.resume_id is not None and repo.get_resume(payload.resume_id) is None:
        raise HTTPException(status_code=404, detail="Resume not found")

    search_id = str(uuid.uuid4())
    try:
        request = ResearchRequest(search_id=search_id, **payload.model_dump())
    except ValidationError as exc:
        detail = [{"loc": list(error["loc"]), "msg": error["msg"]} for error in exc.errors()]
        raise HTTPException(status_code=422, detail=detail) from exc

    repo.create_search(
        search_id=search_id,
        user_id=request.user_id,
        company=request.company,
        role=request.role or "",
        country=request.country or "",
        role_links=list(request.role_links),
        target_seniority=request.target_seniority or "",
    )
    background_tasks.add_task(pipeline.run, request)
    return SearchCreatedResponse(search_id=search_id, status="pending")


@router.get("/searches", response_model=list[SearchStatusResponse])
def list_searches(user_id: str, limit: int = 50, db: Session = Depends(get_db)) -> list[SearchStatusResponse]:
    repo = Repository(db)
    return [_search_response(row) for row in repo.list_searches(user_id, limit=limit)]


@router.get("/searches/{search_id}", response_model=SearchStatusResponse)
def get_search(search_id: str, db: Session = Depends(get_db)) -> SearchStatusResponse:
    search = Repository(db).get_search(search_id)
    if search is None:
        raise HTTPException(status_code=404, detail="Search not found")
    return _search_response(search)


@router.get("/searches/{search_id}/artifact", response_model=ArtifactResponse)
def get_artifact(search_id: str, db: Session = Depends(get_db)) -> ArtifactResponse:
    artifact = Repository(db).get_artifact(search_id)
    if artifact is None:
        raise HTTPException(status_code=404, detail="Artifact not found")
    return ArtifactResponse(
        search_id=artifact.search_id,
        processing_status=artifact.processing_status,
        processing_error_message=artifact.processing_error_message,
        company_research_raw=artifact.company_research_raw,
        job_analysis_raw=artifact.job_analysis_raw,
        cv_analysis_raw=artifact.cv_analysis_raw,
        interview_stages=artifact.interview_stages or [],
        comparison_analysis=artifact.comparison_analysis,
        interview_questions_data=artifact.interview_questions_data,
        preparation_guidance=artifact.preparation_guidance,
        synthesis_metadata=artifact.synthesis_metadata,
    )


@router.get("/searches/{search_id}/stages", response_model=list[StageResponse])
def get_stages(search_id: str, db: Session = Depends(get_db)) -> list[StageResponse]:
    repo = Repository(db)
    if repo.get_search(search_id) is None:
        raise HTTPException(status_code=404, detail="Search not found")

    by_stage: dict[int, list[QuestionResponse]] = {}
    for row in repo.list_questions(search_id):
        by_stage.setdefault(row.stage_id, []).append(_question_response(row))

    return [
        StageResponse(
            id=stage.id,
            name=stage.name,
            order_index=stage.order_index,
            duration=stage.duration,
            interviewer=stage.interviewer,
            content=stage.content,
            guidance=stage.guidance,
            preparation_tips=stage.preparation_tips_json,
            common_questions=stage.common_questions_json,
            red_flags_to_avoid=stage.red_flags_json,
            questions=by_stage.get(stage.id, []),
        )
        for stage in repo.list_stages(search_id)
    ]


def _search_response(search: Search) -> SearchStatusResponse:
    return SearchStatusResponse(
        id=search.id,
        user_id=search.user_id,
        company=search.company,
        role=search.role,
        country=search.country,
        target_seniority=search.target_seniority,
        status=search.search_status,
        progress_step=search.progress_step,
        progress_percentage=search.progress_percentage,
        error_message=search.error_message,
        overall_fit_score=search.overall_fit_score,
        preparation_priorities=search.preparation_priorities_json or [],
        created_at=search.created_at,
        started_at=search.started_at,
        completed_at=search.completed_at,
    )


def _question_response(row: InterviewQuestionRecord) -> QuestionResponse:
    return QuestionResponse(
        id=row.id,
        question=row.question,
        category=row.category,
        difficulty=row.difficulty,
        rationale=row.rationale,
        suggested_answer_approach=row.suggested_answer_approach,
        evaluation_criteria=row.evaluation_criteria_json or [],
        follow_up_questions=row.follow_up_questions_json or [],
        star_story_fit=row.star_story_fit,
        company_context=row.company_context,
        confidence_score=row.confidence_score,
    )
