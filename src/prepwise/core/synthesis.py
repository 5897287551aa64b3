from __future__ import annotations

import json
import logging
from typing import Any

from prepwise.config import Settings
from prepwise.core.normalize import coerce_draft
from prepwise.core.relevance import RelevanceRanking, score_experience
from prepwise.db.base import utcnow
from prepwise.llm.prompts import (
    CATEGORY_LABELS,
    SYNTHESIS_REQUIREMENTS,
    SYNTHESIS_SYSTEM_PROMPT,
    synthesis_schema,
)
from prepwise.llm.providers import parse_json
from prepwise.llm.router import LLMRouter
from prepwise.types import RawResearchData, ResearchRequest, SynthesisDraft

logger = logging.getLogger(__name__)

SENIORITY_FOCUS = {
    "junior": "Focus on fundamentals, learning ability, growth potential and basic problem-solving.",
    "mid": "Balance technical depth with practical application, ownership and mentoring.",
    "senior": "Emphasize system design, technical leadership, architecture decisions and strategic thinking.",
}

_BANK_CATEGORIES = ("behavioral", "technical", "situational", "company_specific")


def infer_seniority(request: ResearchRequest, raw: RawResearchData) -> str:
    if request.target_seniority:
        return request.target_seniority
    years = _number((raw.cv_analysis or {}).get("experience_years"))
    if years is None:
        return "mid"
    if years >= 8:
        return "senior"
    if years >= 3:
        return "mid"
    return "junior"


def build_synthesis_prompt(
    request: ResearchRequest,
    raw: RawResearchData,
    *,
    seniority: str,
    ranking: RelevanceRanking | None = None,
) -> str:
    """Assemble the synthesis prompt.

    Sections appear in a fixed order: real interview questions, company
    research, job requirements, candidate profile, then requirements and the
    output schema. Sections without source data are omitted.
    """
    role = request.role or "the role"
    sections = [
        f"Create a comprehensive interview preparation guide for a {seniority}-level "
        f"{role} candidate at {request.company}."
    ]

    company = raw.company_insights or {}
    bank = _question_bank_section(company.get("interview_questions_bank"))
    if bank:
        sections.append(bank)
    if raw.company_insights:
        sections.append(_company_section(request.company, company))
    if raw.job_requirements:
        sections.append(_job_section(raw.job_requirements))
    if raw.cv_analysis:
        sections.append(_candidate_section(raw.cv_analysis, ranking))

    sections.append(SYNTHESIS_REQUIREMENTS.format(seniority=seniority, company=request.company))
    sections.append(f"SENIORITY FOCUS: {SENIORITY_FOCUS.get(seniority, SENIORITY_FOCUS['mid'])}")
    sections.append(
        "Return the result as a JSON object with exactly this structure:\n"
        + json.dumps(synthesis_schema(), indent=2)
    )
    return "\n\n".join(sections)


def build_context_brief(request: ResearchRequest, raw: RawResearchData, *, seniority: str) -> str:
    """Short shared context for supplemental question calls."""
    lines = [f"Company: {request.company}", f"Role: {request.role or 'not specified'}", f"Seniority: {seniority}"]

    company = raw.company_insights or {}
    if company.get("industry"):
        lines.append(f"Industry: {company['industry']}")
    if company.get("values"):
        lines.append(f"Values: {_join(company['values'])}")
    if company.get("interview_philosophy"):
        lines.append(f"Interview philosophy: {company['interview_philosophy']}")

    job = raw.job_requirements or {}
    if job.get("technical_skills"):
        lines.append(f"Required technical skills: {_join(job['technical_skills'])}")
    if job.get("responsibilities"):
        lines.append(f"Responsibilities: {_join(job['responsibilities'])}")

    cv = raw.cv_analysis or {}
    if cv.get("current_role"):
        lines.append(f"Candidate current role: {cv['current_role']}")
    if cv.get("experience_years") is not None:
        lines.append(f"Candidate experience: {cv['experience_years']} years")
    skills = cv.get("skills") if isinstance(cv.get("skills"), dict) else {}
    if skills.get("technical"):
        lines.append(f"Candidate technical skills: {_join(skills['technical'])}")
    return "\n".join(lines)


class SynthesisEngine:
    def __init__(self, settings: Settings, router: LLMRouter):
        self.settings = settings
        self.router = router

    async def synthesize(self, request: ResearchRequest, raw: RawResearchData) -> SynthesisDraft | None:
        """Run the single large synthesis call.

        Returns ``None`` when the call itself fails. An unparsable response
        yields an empty draft rather than ``None``.
        """
        seniority = infer_seniority(request, raw)
        cv_experience = (raw.cv_analysis or {}).get("experience")
        ranking = score_experience(raw.job_requirements, cv_experience if isinstance(cv_experience, list) else None)
        prompt = build_synthesis_prompt(request, raw, seniority=seniority, ranking=ranking)
        logger.info("Synthesis prompt built search=%s chars=%d", request.search_id, len(prompt))

        try:
            response = await self.router.generate(task="synthesis", system=SYNTHESIS_SYSTEM_PROMPT, prompt=prompt)
        except Exception as exc:
            logger.error("Synthesis call failed search=%s: %s", request.search_id, exc)
            return None

        data = parse_json(response.content)
        if not data:
            logger.warning("Synthesis response was empty or unparsable search=%s", request.search_id)
        draft, warnings = coerce_draft(data)
        draft.synthesis_metadata = {
            "model": self.router.model_for("synthesis"),
            "max_tokens": self.router.max_tokens_for("synthesis"),
            "api_path": response.raw.get("api_path", ""),
            "prompt_chars": len(prompt),
            "response_chars": len(response.content),
            "seniority": seniority,
            "data_sources": raw.availability(),
            "relevance_keywords": len(ranking.keywords),
            "normalization_warnings": warnings,
            "synthesized_at": utcnow().isoformat(),
        }
        return draft


def _question_bank_section(bank: Any) -> str:
    if not isinstance(bank, dict):
        return ""
    lines: list[str] = []
    for category in _BANK_CATEGORIES:
        items = _strings(bank.get(category))
        if not items:
            continue
        lines.append(f"{CATEGORY_LABELS[category]} QUESTIONS:")
        lines.extend(f"- {item}" for item in items)
    if not lines:
        return ""
    return "=== REAL INTERVIEW QUESTIONS FROM CANDIDATE REPORTS ===\n" + "\n".join(lines)


def _company_section(company_name: str, company: dict[str, Any]) -> str:
    lines = [f"=== COMPANY RESEARCH: {company_name} ==="]
    for key, label in (
        ("industry", "Industry"),
        ("culture", "Culture"),
        ("values", "Values"),
        ("interview_philosophy", "Interview philosophy"),
        ("recent_hiring_trends", "Recent hiring trends"),
    ):
        if company.get(key):
            lines.append(f"{label}: {_join(company[key])}")

    stages = [stage for stage in company.get("interview_stages") or [] if isinstance(stage, dict)]
    if stages:
        lines.append("Interview process:")
        for stage in sorted(stages, key=lambda item: _number(item.get("order_index")) or 0):
            lines.append(
                f"  {stage.get('order_index', '?')}. {stage.get('name', 'Stage')} "
                f"({stage.get('duration', 'unknown duration')}, interviewer: {stage.get('interviewer', 'unknown')})"
            )
            for key, label in (
                ("content", "Content"),
                ("common_questions", "Common questions"),
                ("success_tips", "Success tips"),
                ("difficulty_level", "Difficulty"),
            ):
                if stage.get(key):
                    lines.append(f"     {label}: {_join(stage[key])}")

    experiences = company.get("interview_experiences")
    if isinstance(experiences, dict) and experiences:
        lines.append("Candidate experiences:")
        for key, label in (
            ("difficulty_rating", "Difficulty rating"),
            ("process_duration", "Process duration"),
            ("positive_feedback", "Positive feedback"),
            ("negative_feedback", "Negative feedback"),
            ("common_themes", "Common themes"),
        ):
            if experiences.get(key):
                lines.append(f"  {label}: {_join(experiences[key])}")

    insights = company.get("hiring_manager_insights")
    if isinstance(insights, dict) and insights:
        lines.append("Hiring manager insights:")
        for key, label in (
            ("what_they_look_for", "Looks for"),
            ("success_factors", "Success factors"),
            ("red_flags", "Red flags"),
        ):
            if insights.get(key):
                lines.append(f"  {label}: {_join(insights[key])}")
    return "\n".join(lines)


def _job_section(job: dict[str, Any]) -> str:
    lines = ["=== JOB REQUIREMENTS ==="]
    for key, label in (
        ("experience_level", "Experience level"),
        ("technical_skills", "Technical skills"),
        ("soft_skills", "Soft skills"),
        ("responsibilities", "Responsibilities"),
        ("qualifications", "Qualifications"),
        ("nice_to_have", "Nice to have"),
        ("interview_process_hints", "Interview process hints"),
    ):
        if job.get(key):
            lines.append(f"{label}: {_join(job[key])}")
    return "\n".join(lines)


def _candidate_section(cv: dict[str, Any], ranking: RelevanceRanking | None) -> str:
    lines = ["=== CANDIDATE PROFILE ==="]
    if cv.get("current_role"):
        lines.append(f"Current role: {cv['current_role']}")
    if cv.get("experience_years") is not None:
        lines.append(f"Years of experience: {cv['experience_years']}")

    experience = [item for item in cv.get("experience") or [] if isinstance(item, dict)]
    if experience:
        lines.append("Work history:")
        for item in experience:
            lines.append(f"  - {_experience_line(item)}")
            for achievement in _strings(item.get("achievements")):
                lines.append(f"      * {achievement}")

    skills = cv.get("skills")
    if isinstance(skills, dict):
        for key, label in (("technical", "Technical skills"), ("soft", "Soft skills"), ("certifications", "Certifications")):
            if skills.get(key):
                lines.append(f"{label}: {_join(skills[key])}")

    projects = cv.get("projects")
    if projects:
        lines.append(f"Projects: {_join(projects)}")
    if cv.get("key_achievements"):
        lines.append(f"Key achievements: {_join(cv['key_achievements'])}")

    education = cv.get("education")
    if isinstance(education, dict) and education:
        lines.append(
            "Education: "
            + ", ".join(
                str(education[key]) for key in ("degree", "institution", "graduation_year") if education.get(key)
            )
        )

    if ranking is not None and not ranking.is_empty():
        lines.append("Most relevant experience for this role:")
        for ranked in ranking.high:
            lines.append(f"  [HIGH RELEVANCE] {_experience_line(ranked.entry)}")
        for ranked in ranking.supporting:
            lines.append(f"  [SUPPORTING] {_experience_line(ranked.entry)}")
    return "\n".join(lines)


def _experience_line(item: dict[str, Any]) -> str:
    role = item.get("role") or "Role"
    company = item.get("company") or "Company"
    duration = item.get("duration")
    return f"{role} at {company}" + (f" ({duration})" if duration else "")


def _strings(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(item) for item in value if item is not None and str(item).strip()]
    return []


def _join(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(_flatten(item) for item in value if item is not None)
    return _flatten(value)


def _flatten(value: Any) -> str:
    if isinstance(value, dict):
        return "; ".join(f"{key}: {_flatten(item)}" for key, item in value.items() if item)
    if isinstance(value, list):
        return ", ".join(_flatten(item) for item in value)
    return str(value)


def _number(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
