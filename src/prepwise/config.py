from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Prepwise"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 8790
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/prepwise.db"
    data_dir: Path = Path("./data")
    run_artifact_dir: Path = Path("./data/runs")
    save_run_traces: bool = True

    analyzer_base_url: str = "http://localhost:54321/functions/v1"
    analyzer_api_key: str = ""
    company_research_timeout_sec: float = 20.0
    job_analysis_timeout_sec: float = 20.0
    cv_analysis_timeout_sec: float = 15.0

    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model_synthesis: str = "gpt-4o"
    openai_model_refinement: str = "gpt-4o"
    openai_timeout_sec: int = 120

    local_llm_enabled: bool = False
    local_llm_base_url: str = "http://localhost:11434/v1"
    local_llm_api_key: str = "local"
    local_llm_model: str = "qwen2.5:14b-instruct"
    local_llm_timeout_sec: int = 180

    llm_router_synthesis_provider: str = "openai"
    llm_router_refinement_provider: str = "openai"
    synthesis_max_tokens: int = 8000
    refinement_max_tokens: int = 6000
    generation_timeout_sec: float = 150.0

    db_timeout_sec: float = 30.0

    min_total_questions: int = 30
    min_questions_per_category: int = 3
    target_questions_per_category: int = 5
    max_refinement_iterations: int = 2
    max_questions_per_refinement_call: int = 10

    cors_origins: str = "http://127.0.0.1:5173"

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("llm_router_synthesis_provider", "llm_router_refinement_provider")
    @classmethod
    def validate_provider(cls, value: str) -> str:
        if value not in {"openai", "local"}:
            raise ValueError("provider must be 'openai' or 'local'")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
