from __future__ import annotations

import asyncio
import logging
from typing import Literal

from prepwise.config import Settings
from prepwise.llm.providers import LLMProvider, ProviderPool
from prepwise.types import ModelResponse

logger = logging.getLogger(__name__)

Task = Literal["synthesis", "refinement"]


class GenerationUnavailable(RuntimeError):
    pass


class LLMRouter:
    """Routes generation tasks to a configured provider.

    There is no cross-provider fallback: a failed call raises and the caller
    decides whether that is fatal (synthesis) or absorbed (refinement).
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.pool = ProviderPool(settings)

    async def generate(self, *, task: Task, system: str, prompt: str) -> ModelResponse:
        provider = self._provider_for(task)
        model = self.model_for(task)
        max_tokens = self.max_tokens_for(task)
        logger.debug("LLM call task=%s provider=%s model=%s", task, provider.config.name, model)
        return await asyncio.wait_for(
            provider.complete_text(model=model, system=system, prompt=prompt, max_tokens=max_tokens),
            timeout=self.settings.generation_timeout_sec,
        )

    def model_for(self, task: Task) -> str:
        if self._provider_name(task) == "local":
            return self.settings.local_llm_model
        if task == "synthesis":
            return self.settings.openai_model_synthesis
        return self.settings.openai_model_refinement

    def max_tokens_for(self, task: Task) -> int:
        if task == "synthesis":
            return self.settings.synthesis_max_tokens
        return self.settings.refinement_max_tokens

    def _provider_name(self, task: Task) -> str:
        return {
            "synthesis": self.settings.llm_router_synthesis_provider,
            "refinement": self.settings.llm_router_refinement_provider,
        }[task]

    def _provider_for(self, task: Task) -> LLMProvider:
        if self._provider_name(task) == "local":
            if not self.settings.local_llm_enabled:
                raise GenerationUnavailable("local LLM provider is disabled")
            return self.pool.local()

        if not self.settings.openai_api_key:
            raise GenerationUnavailable("OpenAI API key is not configured")
        return self.pool.openai()
