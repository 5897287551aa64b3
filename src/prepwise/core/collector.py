from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from typing import Any, Protocol

from prepwise.config import Settings
from prepwise.types import RawResearchData, ResearchRequest

logger = logging.getLogger(__name__)


class Analyzers(Protocol):
    async def research_company(
        self, *, company: str, role: str | None, country: str | None, search_id: str
    ) -> dict[str, Any] | None: ...

    async def analyze_job(
        self, *, role_links: list[str], search_id: str, company: str, role: str | None
    ) -> dict[str, Any] | None: ...

    async def analyze_cv(self, *, cv_text: str, user_id: str) -> dict[str, Any] | None: ...


class ConcurrentCollector:
    def __init__(self, settings: Settings, analyzers: Analyzers):
        self.settings = settings
        self.analyzers = analyzers

    async def collect(self, request: ResearchRequest, *, cv_text: str | None = None) -> RawResearchData:
        """Run the three analyzers concurrently and settle all of them.

        Each slot is filled independently; a timeout, error or skipped call
        leaves ``None`` in that slot. Never raises.
        """
        cv_text = cv_text if cv_text is not None else request.cv_text

        company_call = self._guarded(
            "company_research",
            self.analyzers.research_company(
                company=request.company,
                role=request.role,
                country=request.country,
                search_id=request.search_id,
            ),
            self.settings.company_research_timeout_sec,
        )

        if request.role_links:
            job_call = self._guarded(
                "job_analysis",
                self.analyzers.analyze_job(
                    role_links=list(request.role_links),
                    search_id=request.search_id,
                    company=request.company,
                    role=request.role,
                ),
                self.settings.job_analysis_timeout_sec,
            )
        else:
            logger.info("Skipping job analysis for search=%s: no role links", request.search_id)
            job_call = _skipped()

        if cv_text and cv_text.strip():
            cv_call = self._guarded(
                "cv_analysis",
                self.analyzers.analyze_cv(cv_text=cv_text, user_id=request.user_id),
                self.settings.cv_analysis_timeout_sec,
            )
        else:
            logger.info("Skipping CV analysis for search=%s: no CV text", request.search_id)
            cv_call = _skipped()

        results = await asyncio.gather(company_call, job_call, cv_call, return_exceptions=True)
        company, job, cv = (_settled(result) for result in results)

        raw = RawResearchData(company_insights=company, job_requirements=job, cv_analysis=cv)
        logger.info("Collection finished search=%s availability=%s", request.search_id, raw.availability())
        return raw

    async def _guarded(
        self,
        source: str,
        call: Awaitable[dict[str, Any] | None],
        timeout_sec: float,
    ) -> dict[str, Any] | None:
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(call, timeout=timeout_sec)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs", source, timeout_sec)
            return None
        except Exception as exc:
            logger.warning("%s failed: %s", source, exc)
            return None

        elapsed = time.monotonic() - started
        if result is None:
            logger.warning("%s returned no data (%.2fs)", source, elapsed)
        else:
            logger.debug("%s succeeded in %.2fs", source, elapsed)
        return result


async def _skipped() -> None:
    return None


def _settled(result: Any) -> dict[str, Any] | None:
    if isinstance(result, BaseException):
        logger.warning("Analyzer task raised outside its guard: %s", result)
        return None
    return result if isinstance(result, dict) else None
