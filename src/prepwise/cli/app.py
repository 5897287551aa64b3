from __future__ import annotations

import asyncio
import json
import uuid
from pathlib import Path

import typer
import uvicorn

from prepwise.api.app import create_app
from prepwise.config import get_settings
from prepwise.core.pipeline import build_pipeline
from prepwise.db.init import init_database
from prepwise.db.repositories import Repository
from prepwise.db.session import build_session_factory
from prepwise.logging_config import configure_logging
from prepwise.types import ResearchOutcome, ResearchRequest

app = typer.Typer(help="Prepwise CLI")
resume_app = typer.Typer(help="Stored CV commands")
app.add_typer(resume_app, name="resume")


def _bootstrap():
    settings = get_settings()
    configure_logging(settings)
    session_factory = build_session_factory(settings)
    init_database(settings, session_factory)
    return settings, session_factory


@app.command("init")
def init_cmd() -> None:
    """Initialize database and data directories."""
    settings = get_settings()
    configure_logging(settings)
    result = init_database(settings, build_session_factory(settings))
    typer.echo(json.dumps({"ok": True, **result}, indent=2))


@resume_app.command("add")
def resume_add(
    user_id: str = typer.Option(..., "--user-id"),
    file: Path = typer.Option(..., "--file", exists=True, readable=True),
) -> None:
    _, session_factory = _bootstrap()
    with session_factory() as db:
        resume = Repository(db).create_resume(user_id=user_id, content=file.read_text(encoding="utf-8"))
        typer.echo(json.dumps({"id": resume.id, "user_id": resume.user_id}, indent=2))


@app.command("research")
def research_cmd(
    company: str = typer.Option(..., "--company"),
    role: str | None = typer.Option(None, "--role"),
    country: str | None = typer.Option(None, "--country"),
    role_link: list[str] = typer.Option([], "--role-link", help="Job posting URL; repeatable"),
    cv_file: Path | None = typer.Option(None, "--cv-file", exists=True, readable=True),
    resume_id: int | None = typer.Option(None, "--resume-id"),
    seniority: str | None = typer.Option(None, "--seniority"),
    user_id: str = typer.Option("local", "--user-id"),
) -> None:
    """Run the research pipeline in-process and print the outcome."""
    settings, session_factory = _bootstrap()
    request = ResearchRequest(
        search_id=str(uuid.uuid4()),
        user_id=user_id,
        company=company,
        role=role,
        country=country,
        role_links=tuple(role_link),
        cv_text=cv_file.read_text(encoding="utf-8") if cv_file else None,
        resume_id=resume_id,
        target_seniority=seniority,
    )
    pipeline = build_pipeline(settings, session_factory)

    async def _run() -> ResearchOutcome:
        try:
            return await pipeline.run(request)
        finally:
            await pipeline.aclose()

    outcome = asyncio.run(_run())
    typer.echo(json.dumps(outcome.model_dump(), indent=2))
    if outcome.status != "completed":
        raise typer.Exit(code=1)


@app.command("status")
def status_cmd(search_id: str = typer.Option(..., "--search-id")) -> None:
    _, session_factory = _bootstrap()
    with session_factory() as db:
        repo = Repository(db)
        search = repo.get_search(search_id)
        if search is None:
            typer.echo(json.dumps({"error": f"search {search_id} not found"}))
            raise typer.Exit(code=1)

        stages = repo.list_stages(search_id)
        typer.echo(
            json.dumps(
                {
                    "search": {
                        "id": search.id,
                        "company": search.company,
                        "role": search.role,
                        "status": search.search_status,
                        "progress_step": search.progress_step,
                        "progress_percentage": search.progress_percentage,
                        "error_message": search.error_message,
                        "overall_fit_score": search.overall_fit_score,
                        "completed_at": search.completed_at.isoformat() if search.completed_at else None,
                    },
                    "stages": [
                        {
                            "order_index": stage.order_index,
                            "name": stage.name,
                            "questions": len(repo.list_questions(search_id, stage_id=stage.id)),
                        }
                        for stage in stages
                    ],
                },
                indent=2,
            )
        )


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    settings, _ = _bootstrap()
    app_instance = create_app(settings)
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)
