from __future__ import annotations

import logging
from typing import Any

import httpx

from prepwise.config import Settings

logger = logging.getLogger(__name__)


class AnalyzerClient:
    """HTTP client for the three upstream analyzer functions.

    A non-success response returns ``None``; transport errors propagate so the
    collector can log them against the right source.
    """

    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        headers = {"Content-Type": "application/json"}
        if settings.analyzer_api_key:
            headers["Authorization"] = f"Bearer {settings.analyzer_api_key}"
        self._client = httpx.AsyncClient(
            base_url=settings.analyzer_base_url.rstrip("/") + "/",
            headers=headers,
            transport=transport,
        )

    async def research_company(
        self,
        *,
        company: str,
        role: str | None,
        country: str | None,
        search_id: str,
    ) -> dict[str, Any] | None:
        body = await self._post(
            "company-research",
            {"company": company, "role": role, "country": country, "searchId": search_id},
        )
        if body is None:
            return None
        insights = body.get("company_insights")
        return insights if isinstance(insights, dict) else None

    async def analyze_job(
        self,
        *,
        role_links: list[str],
        search_id: str,
        company: str,
        role: str | None,
    ) -> dict[str, Any] | None:
        body = await self._post(
            "job-analysis",
            {"roleLinks": role_links, "searchId": search_id, "company": company, "role": role},
        )
        if body is None:
            return None
        requirements = body.get("job_requirements")
        return requirements if isinstance(requirements, dict) else None

    async def analyze_cv(self, *, cv_text: str, user_id: str) -> dict[str, Any] | None:
        body = await self._post("cv-analysis", {"cvText": cv_text, "userId": user_id})
        if body is None:
            return None
        analysis = body.get("aiAnalysis")
        return analysis if isinstance(analysis, dict) else body

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        response = await self._client.post(endpoint, json=payload)
        if not response.is_success:
            logger.warning("Analyzer %s returned status=%s", endpoint, response.status_code)
            return None
        try:
            body = response.json()
        except ValueError:
            logger.warning("Analyzer %s returned a non-JSON body", endpoint)
            return None
        return body if isinstance(body, dict) else None
