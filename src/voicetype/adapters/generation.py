"""Generation adapter: LLMProvider -> GenerationEngine port."""

from __future__ import annotations

import asyncio

from ..llm_provider import LLMProvider


class GenerationAdapter:
    def __init__(self, provider: LLMProvider):
        self._provider = provider

    @property
    def provider(self) -> LLMProvider:
        return self._provider

    async def generate(self, prompt: str, system_prompt: str | None, max_tokens: int) -> str:
        return await asyncio.to_thread(self._provider.generate, prompt, system_prompt, max_tokens)
