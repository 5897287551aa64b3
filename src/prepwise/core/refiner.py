from __future__ import annotations

import logging
from typing import Any

from prepwise.config import Settings
from prepwise.core.normalize import coerce_questions
from prepwise.core.synthesis import build_context_brief, infer_seniority
from prepwise.db.repositories import canonicalize_question
from prepwise.llm.prompts import REFINEMENT_PROMPT, REFINEMENT_SYSTEM_PROMPT
from prepwise.llm.providers import parse_json
from prepwise.llm.router import LLMRouter
from prepwise.types import (
    QUESTION_CATEGORIES,
    Question,
    RawResearchData,
    RefinementReport,
    ResearchRequest,
    SynthesisDraft,
)

logger = logging.getLogger(__name__)


def plan_refinement(
    counts: dict[str, int],
    *,
    min_total: int,
    target_per_category: int,
    max_per_call: int,
) -> dict[str, int]:
    """Decide how many questions to request per category.

    Every category is first filled up to ``target_per_category``. Any shortfall
    against ``min_total`` that remains is handed out one question at a time to
    the category with the lowest projected count, ties going to the earlier
    category in the fixed order. No request exceeds ``max_per_call``.
    """
    plan: dict[str, int] = {}
    projected: dict[str, int] = {}
    for category in QUESTION_CATEGORIES:
        current = counts.get(category, 0)
        need = min(max(target_per_category - current, 0), max_per_call)
        if need:
            plan[category] = need
        projected[category] = current + need

    shortfall = min_total - sum(projected.values())
    while shortfall > 0:
        candidates = [category for category in QUESTION_CATEGORIES if plan.get(category, 0) < max_per_call]
        if not candidates:
            break
        category = min(candidates, key=lambda name: (projected[name], QUESTION_CATEGORIES.index(name)))
        plan[category] = plan.get(category, 0) + 1
        projected[category] += 1
        shortfall -= 1

    return {category: plan[category] for category in QUESTION_CATEGORIES if plan.get(category)}


class QualityGate:
    def __init__(self, settings: Settings, router: LLMRouter):
        self.settings = settings
        self.router = router

    def is_satisfied(self, draft: SynthesisDraft) -> bool:
        counts = draft.question_counts()
        return draft.total_questions() >= self.settings.min_total_questions and all(
            count >= self.settings.min_questions_per_category for count in counts.values()
        )

    async def refine(
        self,
        draft: SynthesisDraft,
        request: ResearchRequest,
        raw: RawResearchData,
    ) -> RefinementReport:
        """Top up under-filled categories in place, for a bounded number of iterations.

        Questions are only ever appended, so category counts never shrink.
        """
        for category in QUESTION_CATEGORIES:
            draft.interview_questions_data.setdefault(category, [])

        report = RefinementReport(initial_total=draft.total_questions())
        seniority = infer_seniority(request, raw)
        brief = build_context_brief(request, raw, seniority=seniority)

        iteration = 0
        while iteration < self.settings.max_refinement_iterations and not self.is_satisfied(draft):
            iteration += 1
            plan = plan_refinement(
                draft.question_counts(),
                min_total=self.settings.min_total_questions,
                target_per_category=self.settings.target_questions_per_category,
                max_per_call=self.settings.max_questions_per_refinement_call,
            )
            logger.info("Quality gate iteration=%d search=%s plan=%s", iteration, request.search_id, plan)
            if not plan:
                break

            for category, count in plan.items():
                added = await self._top_up(draft, category, count, brief=brief, search_id=request.search_id)
                report.added[category] = report.added.get(category, 0) + added

        report.iterations = iteration
        report.satisfied = self.is_satisfied(draft)
        report.final_total = draft.total_questions()
        report.final_counts = draft.question_counts()

        if not report.satisfied:
            message = (
                f"quality gate not satisfied after {iteration} iteration(s): "
                f"{report.final_total} questions, counts={report.final_counts}"
            )
            logger.warning("Search %s %s", request.search_id, message)
            report.warnings.append(message)

        draft.synthesis_metadata["quality_gate"] = report.model_dump()
        return report

    async def _top_up(
        self,
        draft: SynthesisDraft,
        category: str,
        count: int,
        *,
        brief: str,
        search_id: str,
    ) -> int:
        existing = draft.interview_questions_data[category]
        prompt = REFINEMENT_PROMPT.format(
            count=count,
            category=category,
            context=brief,
            existing="\n".join(f"- {question.question}" for question in existing) or "(none)",
        )
        try:
            response = await self.router.generate(task="refinement", system=REFINEMENT_SYSTEM_PROMPT, prompt=prompt)
        except Exception as exc:
            logger.warning("Refinement call failed search=%s category=%s: %s", search_id, category, exc)
            return 0

        items = _extract_items(parse_json(response.content), category)
        warnings: list[str] = []
        candidates = coerce_questions(items, category, warnings)

        seen = {
            canonicalize_question(question.question)
            for questions in draft.interview_questions_data.values()
            for question in questions
        }
        accepted: list[Question] = []
        for question in candidates:
            key = canonicalize_question(question.question)
            if key in seen:
                continue
            seen.add(key)
            accepted.append(question)
            if len(accepted) >= count:
                break

        existing.extend(accepted)
        logger.info(
            "Refinement search=%s category=%s requested=%d added=%d",
            search_id,
            category,
            count,
            len(accepted),
        )
        return len(accepted)


def _extract_items(data: dict[str, Any], category: str) -> Any:
    if isinstance(data.get("questions"), list):
        return data["questions"]
    if isinstance(data.get(category), list):
        return data[category]
    return []
