"""README content generation: prompt construction plus one model call."""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol

from ..core.config import settings
from ..exceptions import GenerationError, looks_transient
from ..schemas.job import GenerationOptions
from .analyzer import RepositoryAnalysis
from .llm_client import LiteLLMTextClient, TextCompletion, is_temporary_llm_error
from .prompts import CUSTOM_INSTRUCTIONS_BLOCK, README_PROMPT_TEMPLATE, README_REQUIREMENTS, README_SECTIONS

logger = logging.getLogger(__name__)


class TextClient(Protocol):
    async def generate_text(
        self, prompt: str, model: str, max_tokens: int, temperature: float
    ) -> TextCompletion: ...


@dataclass
class RepositoryData:
    """Repository facts that go into the prompt."""
    name: str
    description: Optional[str] = None
    language: Optional[str] = None
    topics: List[str] = field(default_factory=list)
    structure: dict[str, Any] = field(default_factory=dict)
    key_file_paths: List[str] = field(default_factory=list)

    @classmethod
    def from_analysis(cls, repository: Any, analysis: RepositoryAnalysis) -> "RepositoryData":
        return cls(
            name=repository.name,
            description=repository.description,
            language=repository.language,
            topics=list(repository.topics or []),
            structure=analysis.structure,
            key_file_paths=[key_file.path for key_file in analysis.key_files],
        )


@dataclass(frozen=True)
class GenerationResult:
    content: str
    model: str
    tokens_used: Optional[int]
    generation_time_ms: int
    finish_reason: Optional[str]


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def build_readme_prompt(data: RepositoryData, options: GenerationOptions) -> str:
    """Render the README prompt. Same inputs always give the same prompt."""
    custom_block = (
        CUSTOM_INSTRUCTIONS_BLOCK.format(custom_prompt=options.custom_prompt)
        if options.custom_prompt else ""
    )
    return README_PROMPT_TEMPLATE.format(
        name=data.name,
        description=data.description or "No description provided",
        language=data.language or "Unknown",
        topics=", ".join(data.topics) or "None",
        structure=json.dumps(data.structure, indent=2),
        key_files=", ".join(data.key_file_paths),
        style=options.style.value,
        include_images=_yes_no(options.include_images),
        include_badges=_yes_no(options.include_badges),
        include_toc=_yes_no(options.include_toc),
        custom_block=custom_block,
        sections="\n".join(f"{i}. {section}" for i, section in enumerate(README_SECTIONS, start=1)),
        requirements=README_REQUIREMENTS,
    )


class ContentGenerator:
    """Generate README Markdown with the configured language model."""

    def __init__(
        self,
        llm_client: Optional[TextClient] = None,
        default_model: Optional[str] = None,
        allowed_models: Optional[List[str]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> None:
        self.llm_client = llm_client or LiteLLMTextClient()
        self.default_model = default_model or settings.llm_model
        self.allowed_models = allowed_models if allowed_models is not None else settings.get_allowed_models()
        self.max_tokens = max_tokens if max_tokens is not None else settings.llm_max_tokens
        self.temperature = temperature if temperature is not None else settings.llm_temperature

    def resolve_model(self, requested: Optional[str]) -> str:
        if not requested:
            return self.default_model
        if requested != self.default_model and requested not in self.allowed_models:
            raise GenerationError(
                f"Model not allowed: {requested}",
                details={"model": requested, "allowed_models": self.allowed_models},
            )
        return requested

    async def generate(self, data: RepositoryData, options: GenerationOptions) -> GenerationResult:
        """
        Generate README content for ``data``.

        Raises:
            GenerationError: model not allowed, model call failed, or empty output.
                ``temporary`` is set for rate limits, timeouts, connection and 5xx errors.
        """
        model = self.resolve_model(options.model)
        prompt = build_readme_prompt(data, options)

        start = time.monotonic()
        try:
            completion = await self.llm_client.generate_text(
                prompt, model=model, max_tokens=self.max_tokens, temperature=self.temperature,
            )
        except Exception as e:
            raise GenerationError(
                f"Failed to generate content: {e}",
                temporary=is_temporary_llm_error(e) or looks_transient(str(e)),
                details={"model": model},
            ) from e
        elapsed_ms = int((time.monotonic() - start) * 1000)

        if not completion.text.strip():
            raise GenerationError(
                "Failed to generate content: model returned no content",
                details={"model": model, "finish_reason": completion.finish_reason},
            )

        logger.info(
            f"Generated README for {data.name} with {completion.model}",
            extra={"model": completion.model, "tokens_used": completion.tokens_used, "duration_ms": elapsed_ms},
        )
        return GenerationResult(
            content=completion.text,
            model=completion.model,
            tokens_used=completion.tokens_used,
            generation_time_ms=elapsed_ms,
            finish_reason=completion.finish_reason,
        )
