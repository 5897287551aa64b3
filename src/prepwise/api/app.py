from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from prepwise.api.routes import router as api_router
from prepwise.config import Settings, get_settings
from prepwise.core.pipeline import build_pipeline
from prepwise.db.init import init_database
from prepwise.db.session import build_session_factory
from prepwise.logging_config import configure_logging


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)
    session_factory = build_session_factory(settings)

    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.pipeline = build_pipeline(settings, session_factory)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def _startup() -> None:
        init_database(settings, session_factory)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await app.state.pipeline.aclose()

    @app.get("/health")
    def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "env": settings.app_env})

    app.include_router(api_router)
    return app
