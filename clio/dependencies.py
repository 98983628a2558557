"""Composition root for the job pipeline.

The orchestrator and its collaborators are built here, once per process,
and held on ``app.state`` (API) or by the worker loop. Nothing in the
pipeline is a module-level singleton.
"""

from typing import Optional

import httpx
from fastapi import Request

from .core.config import Settings, settings as default_settings
from .services.analyzer import RepositoryAnalyzer
from .services.generator import ContentGenerator
from .services.github_client import GitHubClient, TokenProvider, static_token_provider
from .services.job_store import JobStore
from .services.llm_client import LiteLLMTextClient
from .services.orchestrator import JobOrchestrator, OrchestratorConfig
from .services.postprocessor import ContentPostProcessor


def build_orchestrator(
    settings: Settings = default_settings,
    store: Optional[JobStore] = None,
    token_provider: TokenProvider = static_token_provider,
    github_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> JobOrchestrator:
    def client_factory(installation_id: str) -> GitHubClient:
        return GitHubClient.for_installation(
            installation_id,
            token_provider=token_provider,
            base_url=settings.github_api_url,
            timeout=settings.github_timeout,
            max_retries=settings.github_max_attempts,
            transport=github_transport,
        )

    analyzer = RepositoryAnalyzer(
        client_factory=client_factory,
        max_key_files=settings.analyzer_max_key_files,
        max_file_bytes=settings.analyzer_max_file_bytes,
        structure_depth=settings.analyzer_structure_depth,
    )
    generator = ContentGenerator(
        llm_client=LiteLLMTextClient(
            api_key=settings.llm_api_key,
            api_base=settings.llm_api_base,
            timeout=settings.llm_timeout,
        ),
        default_model=settings.llm_model,
        allowed_models=settings.get_allowed_models(),
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
    )
    return JobOrchestrator(
        store=store or JobStore(),
        analyzer=analyzer,
        generator=generator,
        postprocessor=ContentPostProcessor(),
        config=OrchestratorConfig.from_settings(settings),
    )


def get_orchestrator(request: Request) -> JobOrchestrator:
    """FastAPI dependency returning the orchestrator built at startup."""
    return request.app.state.orchestrator
