"""Text completion client over LiteLLM.

Provider-agnostic: any model string LiteLLM understands works, e.g.
``openai/gpt-4o-mini`` or ``ollama/llama3.2``. Configure via LLM_* env vars.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
import litellm

from ..core.config import settings

logger = logging.getLogger(__name__)

# LiteLLM maps provider errors onto these OpenAI-style exception types.
TEMPORARY_LLM_ERRORS: tuple[type[BaseException], ...] = (
    litellm.RateLimitError,
    litellm.Timeout,
    litellm.APIConnectionError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
    httpx.TransportError,
)


@dataclass(frozen=True)
class TextCompletion:
    text: str
    tokens_used: Optional[int]
    finish_reason: Optional[str]
    model: str


def is_temporary_llm_error(exc: BaseException) -> bool:
    """True for rate limits, timeouts, connection failures and 5xx responses."""
    if isinstance(exc, TEMPORARY_LLM_ERRORS):
        return True
    status = getattr(exc, "status_code", None)
    return isinstance(status, int) and (status == 429 or status >= 500)


class LiteLLMTextClient:
    """Single-turn chat completion returning plain text."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.llm_api_key
        self.api_base = api_base if api_base is not None else settings.llm_api_base
        self.timeout = timeout if timeout is not None else settings.llm_timeout

    async def generate_text(
        self,
        prompt: str,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> TextCompletion:
        kwargs: dict = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
            "timeout": self.timeout,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        response = await litellm.acompletion(**kwargs)

        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        tokens_used = getattr(usage, "total_tokens", None) if usage else None
        logger.debug(f"LLM call to {model} finished: {choice.finish_reason}, {tokens_used} tokens")
        return TextCompletion(
            text=choice.message.content or "",
            tokens_used=tokens_used,
            finish_reason=choice.finish_reason,
            model=getattr(response, "model", None) or model,
        )
