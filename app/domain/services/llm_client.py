# app/domain/services/llm_client.py

from __future__ import annotations
from typing import Optional
import logging
from time import monotonic as _now

import openai
from openai import AsyncOpenAI

from app.core.config import Settings
from app.domain.errors import RemoteError
from app.domain.services.prompts import SYSTEM_PROMPT_PRODUCT

logger = logging.getLogger(__name__)


class LLMClient:
    """
    Single request/response text generation against an OpenAI-compatible
    chat-completions endpoint (Groq by default). No streaming, no retries:
    every failure surfaces as RemoteError and the caller falls back.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        model: str,
        base_url: Optional[str] = None,
        timeout_s: float = 15.0,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.timeout_s = timeout_s
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client
        if self._client is None and api_key:
            self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout_s, max_retries=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(
            api_key=settings.LLM_API_KEY,
            model=settings.LLM_MODEL,
            base_url=settings.LLM_BASE_URL,
            timeout_s=settings.llm_timeout_s,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def generate(self, prompt: str, *, system: str = SYSTEM_PROMPT_PRODUCT) -> str:
        """Return the raw completion text, or raise RemoteError."""
        if self._client is None:
            raise RemoteError("LLM API key is not configured")

        t0 = _now()
        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APIStatusError as e:
            raise RemoteError(f"LLM HTTP {e.status_code}: {e.message}") from e
        except openai.APIError as e:
            raise RemoteError(f"LLM transport error: {e}") from e
        dt = _now() - t0

        # Best-effort usage logging
        u = getattr(resp, "usage", None)
        logger.info(
            "LLM call model=%s duration=%.3fs tokens(prompt=%s, completion=%s)",
            getattr(resp, "model", self.model), dt,
            getattr(u, "prompt_tokens", None), getattr(u, "completion_tokens", None),
        )

        choices = getattr(resp, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            raise RemoteError("No content in LLM response")
        return content
