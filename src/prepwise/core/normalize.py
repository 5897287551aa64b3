from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from prepwise.db.repositories import canonicalize_question
from prepwise.types import (
    QUESTION_CATEGORIES,
    InterviewStage,
    Question,
    SynthesisDraft,
    normalize_category,
)

logger = logging.getLogger(__name__)


def coerce_draft(data: dict[str, Any]) -> tuple[SynthesisDraft, list[str]]:
    """Coerce a loosely-shaped model payload into a strict draft.

    Returns the draft and the list of normalization warnings.
    """
    warnings: list[str] = []

    stages = coerce_stages(data.get("interview_stages"), warnings)
    questions = coerce_question_map(data.get("interview_questions_data"), warnings)

    comparison = data.get("comparison_analysis")
    guidance = data.get("preparation_guidance")
    draft = SynthesisDraft(
        interview_stages=stages,
        comparison_analysis=comparison if isinstance(comparison, dict) else {},
        interview_questions_data=questions,
        preparation_guidance=guidance if isinstance(guidance, dict) else {},
    )
    for warning in warnings:
        logger.warning("Draft normalization: %s", warning)
    return draft, warnings


def coerce_stages(value: Any, warnings: list[str]) -> list[InterviewStage]:
    if not isinstance(value, list):
        if value is not None:
            warnings.append("interview_stages was not a list")
        return []

    indexed: list[tuple[float, int, dict[str, Any]]] = []
    for position, item in enumerate(value):
        if not isinstance(item, dict):
            warnings.append(f"stage at position {position} is not an object")
            continue
        name = str(item.get("name") or "").strip()
        if not name:
            warnings.append(f"stage at position {position} has no name")
            continue
        try:
            order = float(item.get("order_index"))
        except (TypeError, ValueError):
            order = float(position + 1)
        indexed.append((order, position, item))

    # Dense 1..n order indexes, preserving the model's relative order.
    indexed.sort(key=lambda entry: (entry[0], entry[1]))
    stages: list[InterviewStage] = []
    for new_index, (_, _, item) in enumerate(indexed, start=1):
        stages.append(
            InterviewStage(
                name=str(item.get("name")).strip(),
                order_index=new_index,
                duration=_text(item.get("duration")),
                interviewer=_text(item.get("interviewer")),
                content=_text(item.get("content")),
                guidance=_text(item.get("guidance")),
                preparation_tips=_string_list(item.get("preparation_tips")),
                common_questions=_string_list(item.get("common_questions")),
                red_flags_to_avoid=_string_list(item.get("red_flags_to_avoid")),
            )
        )
    return stages


def coerce_question_map(value: Any, warnings: list[str]) -> dict[str, list[Question]]:
    result: dict[str, list[Question]] = {category: [] for category in QUESTION_CATEGORIES}
    if not isinstance(value, dict):
        if value is not None:
            warnings.append("interview_questions_data was not an object")
        return result

    seen: set[str] = set()
    for raw_category, items in value.items():
        category = normalize_category(raw_category)
        if category is None:
            warnings.append(f"dropped unknown question category {raw_category!r}")
            continue
        for question in coerce_questions(items, category, warnings):
            key = canonicalize_question(question.question)
            if key in seen:
                continue
            seen.add(key)
            result[category].append(question)
    return result


def coerce_questions(items: Any, category: str, warnings: list[str]) -> list[Question]:
    """Validate question payloads, forcing them into ``category``."""
    if not isinstance(items, list):
        if items is not None:
            warnings.append(f"{category} questions were not a list")
        return []

    questions: list[Question] = []
    for item in items:
        if isinstance(item, str):
            item = {"question": item}
        if not isinstance(item, dict):
            warnings.append(f"dropped non-object {category} question")
            continue
        payload = {key: item[key] for key in Question.model_fields if key in item and item[key] is not None}
        payload["category"] = category
        payload["evaluation_criteria"] = _string_list(item.get("evaluation_criteria"))
        payload["follow_up_questions"] = _string_list(item.get("follow_up_questions"))
        for key in ("rationale", "company_context", "suggested_answer_approach"):
            if key in payload:
                payload[key] = _text(payload[key])
        if "star_story_fit" in payload:
            payload["star_story_fit"] = bool(payload["star_story_fit"])
        try:
            questions.append(Question.model_validate(payload))
        except ValidationError as exc:
            warnings.append(f"dropped invalid {category} question: {exc.errors()[0].get('msg', 'invalid')}")
    return questions


def draft_to_payload(draft: SynthesisDraft) -> dict[str, Any]:
    return {
        "interview_stages": [stage.model_dump() for stage in draft.interview_stages],
        "comparison_analysis": draft.comparison_analysis,
        "interview_questions_data": {
            category: [question.model_dump() for question in questions]
            for category, questions in draft.interview_questions_data.items()
        },
        "preparation_guidance": draft.preparation_guidance,
        "synthesis_metadata": draft.synthesis_metadata,
    }


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value)


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]
