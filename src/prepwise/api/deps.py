from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from prepwise.config import Settings
from prepwise.core.pipeline import ResearchPipeline


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_pipeline(request: Request) -> ResearchPipeline:
    return request.app.state.pipeline
