# =============================================================================
# Drafting Model — Opaque Answer-Generation Boundary
# =============================================================================
#
# The retrieval engine never generates text. POST /ask hands one system
# prompt and one user prompt (question plus formatted context) to the model
# configured here, then validates whatever text comes back.
#
# DESIGN DECISION: One call, one class.
# Drafting is a single-turn request, so the boundary is
# complete(system, prompt) rather than a chat transcript. The backend
# setting only decides which SDK carries that request:
#   - "anthropic":         native Messages API (system is a top-level field)
#   - "openai_compatible": chat completions at LLM_BASE_URL (system is the
#                          first message), e.g. DeepSeek or a local gateway
#
# Tests substitute an AsyncMock with the same complete() signature.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from regqa.config import settings

logger = logging.getLogger(__name__)

# Backend → settings attribute holding its dedicated API key
_BACKEND_KEY_SETTINGS = {
    "anthropic": "anthropic_api_key",
    "openai_compatible": "openai_api_key",
}


@dataclass
class LLMResponse:
    content: str
    model: str
    input_tokens: int
    output_tokens: int


class LLMProvider(Protocol):
    async def complete(self, system: str, prompt: str) -> LLMResponse:
        ...


class DraftingModel:
    """The configured drafting model, reachable through a single call."""

    def __init__(
        self,
        backend: str,
        api_key: str,
        model: str,
        temperature: float,
        max_tokens: int,
        base_url: str | None = None,
    ) -> None:
        self.backend = backend
        self.model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

        if backend == "openai_compatible":
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        else:
            from anthropic import AsyncAnthropic

            self._client = AsyncAnthropic(api_key=api_key)

    async def complete(self, system: str, prompt: str) -> LLMResponse:
        """Draft one answer. SDK errors propagate to the caller."""
        if self.backend == "openai_compatible":
            return await self._chat_completion(system, prompt)
        return await self._message(system, prompt)

    async def _message(self, system: str, prompt: str) -> LLMResponse:
        reply = await self._client.messages.create(
            model=self.model,
            system=system,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )
        # Long answers can arrive split across several text blocks
        text = "".join(b.text for b in reply.content if b.type == "text")
        return LLMResponse(
            content=text,
            model=reply.model,
            input_tokens=reply.usage.input_tokens,
            output_tokens=reply.usage.output_tokens,
        )

    async def _chat_completion(self, system: str, prompt: str) -> LLMResponse:
        reply = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )
        usage = reply.usage
        return LLMResponse(
            content=reply.choices[0].message.content or "",
            model=reply.model or self.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


_model: DraftingModel | None = None


def get_llm_provider() -> DraftingModel:
    """
    Build the drafting model from settings on first use, then reuse it.

    Raises:
        ValueError: Unknown LLM_PROVIDER, or no API key for it. POST /ask
            reports either as 503.
    """
    global _model
    if _model is None:
        backend = settings.llm_provider
        if backend not in _BACKEND_KEY_SETTINGS:
            raise ValueError(
                f"Unknown LLM_PROVIDER {backend!r}; expected one of "
                f"{sorted(_BACKEND_KEY_SETTINGS)}"
            )
        api_key = settings.llm_api_key or getattr(
            settings, _BACKEND_KEY_SETTINGS[backend],
        )
        if not api_key:
            raise ValueError(
                f"No API key configured for the {backend} drafting model. "
                f"Set LLM_API_KEY or {_BACKEND_KEY_SETTINGS[backend].upper()} in .env"
            )
        _model = DraftingModel(
            backend=backend,
            api_key=api_key,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            base_url=settings.llm_base_url,
        )
        logger.info("Drafting model ready: %s (%s)", _model.model, backend)
    return _model
