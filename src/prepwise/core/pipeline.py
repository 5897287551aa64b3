from __future__ import annotations

import logging

from sqlalchemy.orm import Session, sessionmaker

from prepwise.config import Settings
from prepwise.core.analyzers import AnalyzerClient
from prepwise.core.collector import Analyzers, ConcurrentCollector
from prepwise.core.persistence import ResearchStore
from prepwise.core.progress import ProgressTracker
from prepwise.core.refiner import QualityGate
from prepwise.core.synthesis import SynthesisEngine
from prepwise.core.trace import RunTrace
from prepwise.errors import PersistenceError, SynthesisError
from prepwise.llm.router import LLMRouter
from prepwise.types import ResearchOutcome, ResearchRequest

logger = logging.getLogger(__name__)


class ResearchPipeline:
    def __init__(
        self,
        settings: Settings,
        *,
        store: ResearchStore,
        collector: ConcurrentCollector,
        synthesis: SynthesisEngine,
        gate: QualityGate,
    ):
        self.settings = settings
        self.store = store
        self.collector = collector
        self.synthesis = synthesis
        self.gate = gate

    async def run(self, request: ResearchRequest) -> ResearchOutcome:
        trace = RunTrace(self.settings, request.search_id)
        tracker = ProgressTracker(self.store, request.search_id)
        trace.start("run", company=request.company, role=request.role)
        try:
            outcome = await self._execute(request, tracker, trace)
            trace.finish("run", questions=outcome.question_count, warnings=len(outcome.warnings))
            return outcome
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.exception("Research run failed search=%s", request.search_id)
            trace.fail("run", exc, step=tracker.current.step if tracker.current else None)
            await tracker.mark_failed(message)
            return ResearchOutcome(search_id=request.search_id, status="failed", error=message)
        finally:
            trace.flush()

    async def _execute(
        self,
        request: ResearchRequest,
        tracker: ProgressTracker,
        trace: RunTrace,
    ) -> ResearchOutcome:
        warnings: list[str] = []
        await self.store.ensure_search(request)

        await tracker.advance("data_gathering_start")
        try:
            cv_text = await self.store.resolve_cv_text(request)
        except PersistenceError as exc:
            logger.warning("Could not resolve stored CV for search=%s: %s", request.search_id, exc)
            cv_text = None

        trace.start("collect")
        raw = await self.collector.collect(request, cv_text=cv_text)
        trace.finish("collect", **raw.availability())
        await tracker.advance("data_gathering_complete")

        checkpointed = await self.store.save_raw_checkpoint(request, raw)
        trace.info("raw_checkpoint", saved=checkpointed)

        await tracker.advance("ai_synthesis_start")
        trace.start("synthesis")
        draft = await self.synthesis.synthesize(request, raw)
        if draft is None:
            raise SynthesisError("AI synthesis failed: no response from the generation service")
        trace.finish("synthesis", stages=len(draft.interview_stages), questions=draft.total_questions())
        await tracker.advance("ai_synthesis_complete")

        await tracker.advance("question_generation_start")
        trace.start("quality_gate")
        report = await self.gate.refine(draft, request, raw)
        trace.finish("quality_gate", **report.model_dump(include={"iterations", "satisfied", "final_total"}))
        warnings.extend(report.warnings)

        await self.store.save_synthesis(request, draft)
        stage_count, question_count = await self.store.persist_interview_plan(
            request.search_id, draft.interview_stages, draft.interview_questions_data
        )
        trace.info("persisted", stages=stage_count, questions=question_count)
        await tracker.advance("question_generation_complete")

        if question_count < self.settings.min_total_questions:
            message = f"only {question_count} questions persisted (minimum {self.settings.min_total_questions})"
            logger.warning("Search %s: %s", request.search_id, message)
            warnings.append(message)

        await self.store.complete_search(request.search_id, draft)
        await tracker.advance("completed", persist=False)

        return ResearchOutcome(
            search_id=request.search_id,
            status="completed",
            stage_count=stage_count,
            question_count=question_count,
            warnings=warnings,
        )

    async def aclose(self) -> None:
        close = getattr(self.collector.analyzers, "aclose", None)
        if close is not None:
            await close()


def build_pipeline(
    settings: Settings,
    session_factory: sessionmaker[Session],
    *,
    analyzers: Analyzers | None = None,
    router: LLMRouter | None = None,
) -> ResearchPipeline:
    router = router or LLMRouter(settings)
    return ResearchPipeline(
        settings,
        store=ResearchStore(settings, session_factory),
        collector=ConcurrentCollector(settings, analyzers or AnalyzerClient(settings)),
        synthesis=SynthesisEngine(settings, router),
        gate=QualityGate(settings, router),
    )
