from __future__ import annotations

from prepwise.errors import StageMappingError
from prepwise.types import QUESTION_CATEGORIES, Question

CATEGORY_STAGE = {
    "behavioral": 1,
    "cultural_fit": 1,
    "technical": 2,
    "role_specific": 2,
    "situational": 3,
    "experience_based": 3,
}
FALLBACK_STAGE = 4


def stage_for_category(category: str, stage_ids: dict[int, int]) -> int:
    """Resolve the stage row id that questions of ``category`` belong to.

    ``stage_ids`` maps order index to stage row id.
    """
    preferred = CATEGORY_STAGE.get(category, FALLBACK_STAGE)
    for order_index in (preferred, FALLBACK_STAGE):
        if order_index in stage_ids:
            return stage_ids[order_index]
    if stage_ids:
        return stage_ids[min(stage_ids)]
    raise StageMappingError(f"no interview stage available for category {category!r}")


def assign_questions(
    questions: dict[str, list[Question]],
    stage_ids: dict[int, int],
) -> list[tuple[int, Question]]:
    assignments: list[tuple[int, Question]] = []
    for category in QUESTION_CATEGORIES:
        items = questions.get(category) or []
        if not items:
            continue
        stage_id = stage_for_category(category, stage_ids)
        assignments.extend((stage_id, question) for question in items)
    return assignments
