from __future__ import annotations

from pathlib import Path

from sqlalchemy.orm import Session, sessionmaker

from prepwise.config import Settings
from prepwise.db.base import Base
from prepwise.db import models  # noqa: F401


def ensure_data_directories(settings: Settings) -> None:
    paths: list[Path] = [settings.data_dir, settings.run_artifact_dir]
    for path in paths:
        path.mkdir(parents=True, exist_ok=True)


def init_database(settings: Settings, session_factory: sessionmaker[Session]) -> dict[str, list[str]]:
    ensure_data_directories(settings)
    engine = session_factory.kw["bind"]
    Base.metadata.create_all(bind=engine)
    return {"tables": sorted(Base.metadata.tables)}
