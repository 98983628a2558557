"""Async client for the GitHub REST endpoints the analyzer needs."""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional
from urllib.parse import quote

import httpx

from ..core.config import settings
from ..exceptions import GitHubAPIError

logger = logging.getLogger(__name__)

# Retry configuration for transient failures (connection errors, 5xx).
MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds; exponential: 1s, 2s, 4s

TokenProvider = Callable[[str], str]


def static_token_provider(installation_id: str) -> str:
    """Return the configured token for every installation.

    Minting per-installation tokens from the GitHub App key happens outside
    Clio; deployments inject the resulting token through ``GITHUB_TOKEN``.
    """
    return settings.github_token


@dataclass(frozen=True)
class TreeItem:
    path: str
    type: str  # "blob" | "tree" | "commit"
    size: int = 0


@dataclass(frozen=True)
class FileContent:
    path: str
    content: str
    encoding: str
    size: int = 0

    def text(self) -> str:
        """Decoded UTF-8 text of the file."""
        if self.encoding == "base64":
            return base64.b64decode(self.content).decode("utf-8", errors="replace")
        return self.content


class GitHubClient:
    """Installation-scoped client for the git trees and contents APIs.

    Use as an async context manager, or call :meth:`close` when done.
    """

    def __init__(
        self,
        token: str = "",
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY,
    ) -> None:
        self.base_url = base_url or settings.github_api_url
        self.token = token
        self.timeout = timeout if timeout is not None else settings.github_timeout
        self.max_retries = max(1, max_retries)
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def for_installation(
        cls,
        installation_id: str,
        token_provider: TokenProvider = static_token_provider,
        **kwargs: Any,
    ) -> "GitHubClient":
        return cls(token=token_provider(installation_id), **kwargs)

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "clio-readme-generator",
            }
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _request_with_retry(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Execute a request, retrying connection errors and 5xx responses.

        4xx responses are mapped to :class:`GitHubAPIError` without retrying.
        """
        client = await self._get_client()
        last_error: Optional[GitHubAPIError] = None

        for attempt in range(self.max_retries):
            try:
                resp = await client.request(method, path, **kwargs)
            except httpx.TimeoutException as exc:
                last_error = GitHubAPIError(f"GitHub request timed out: {method} {path}", temporary=True)
                last_error.__cause__ = exc
            except httpx.TransportError as exc:
                last_error = GitHubAPIError(f"GitHub network error: {exc}", temporary=True)
                last_error.__cause__ = exc
            else:
                if resp.status_code < 400:
                    return resp
                if resp.status_code < 500:
                    raise _client_error(resp, path)
                last_error = GitHubAPIError(
                    f"GitHub server error {resp.status_code} for {path}",
                    status=resp.status_code,
                    temporary=True,
                )

            if attempt < self.max_retries - 1:
                delay = self.retry_base_delay * (2 ** attempt)
                logger.warning(
                    "Request %s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    method, path, attempt + 1, self.max_retries, delay, last_error.message,
                )
                await asyncio.sleep(delay)

        raise last_error  # type: ignore[misc]

    async def get_tree(self, owner: str, repo: str, branch: str) -> List[TreeItem]:
        """Recursive tree for a branch. Maps to GET /repos/{owner}/{repo}/git/trees/{branch}."""
        resp = await self._request_with_retry(
            "GET",
            f"/repos/{owner}/{repo}/git/trees/{quote(branch, safe='')}",
            params={"recursive": "1"},
        )
        data = resp.json()
        if data.get("truncated"):
            logger.warning(f"Tree for {owner}/{repo}@{branch} was truncated by GitHub")
        return [
            TreeItem(path=item.get("path", ""), type=item.get("type", ""), size=item.get("size") or 0)
            for item in data.get("tree", [])
        ]

    async def get_file_content(self, owner: str, repo: str, path: str) -> FileContent:
        """File body. Maps to GET /repos/{owner}/{repo}/contents/{path}."""
        resp = await self._request_with_retry(
            "GET", f"/repos/{owner}/{repo}/contents/{quote(path)}",
        )
        data = resp.json()
        if isinstance(data, list) or data.get("type") != "file":
            raise GitHubAPIError(f"Not a file: {path}", status=resp.status_code)
        return FileContent(
            path=data.get("path", path),
            content=data.get("content") or "",
            encoding=data.get("encoding") or "",
            size=data.get("size") or 0,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()


def _client_error(resp: httpx.Response, path: str) -> GitHubAPIError:
    status = resp.status_code
    if status == 429 or (status == 403 and resp.headers.get("x-ratelimit-remaining") == "0"):
        return GitHubAPIError(f"GitHub rate limit exceeded for {path}", status=status, temporary=True)
    if status == 401:
        return GitHubAPIError("GitHub authentication failed", status=status)
    if status == 403:
        return GitHubAPIError(f"GitHub access forbidden for {path}", status=status)
    if status == 404:
        return GitHubAPIError(f"GitHub resource not found: {path}", status=status)
    return GitHubAPIError(f"GitHub request failed with {status} for {path}", status=status)
