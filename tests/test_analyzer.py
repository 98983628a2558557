"""Tests for repository analysis against a mocked GitHub API."""

import base64
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from clio.core.config import Settings
from clio.dependencies import build_orchestrator
from clio.exceptions import AnalysisError, GitHubAPIError
from clio.services.analyzer import (
    KeyFile,
    RepositoryAnalyzer,
    build_structure,
    parse_package_info,
    split_full_name,
)
from clio.services.github_client import GitHubClient, TreeItem

API = "https://api.github.test"

PACKAGE_JSON = json.dumps({
    "name": "widget",
    "version": "1.2.3",
    "description": "A small widget library",
    "scripts": {"dev": "vite", "test": "jest"},
    "dependencies": {"react": "^18.2.0"},
    "devDependencies": {"jest": "^29.0.0"},
    "keywords": ["widgets"],
    "license": "MIT",
})

PYPROJECT = """
[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gizmo"
version = "0.4.0"
description = "Gizmo tools"
dependencies = ["fastapi>=0.100", "httpx"]

[project.optional-dependencies]
test = ["pytest>=7"]

[project.scripts]
gizmo = "gizmo.cli:main"
"""

CARGO = """
[package]
name = "crab"
version = "0.1.0"
license = "Apache-2.0"

[dependencies]
axum = "0.7"
tokio = { version = "1", features = ["full"] }
"""


def _repo(full_name="acme/widget", language="JavaScript"):
    return SimpleNamespace(
        name=full_name.split("/")[-1],
        full_name=full_name,
        default_branch="main",
        language=language,
        description=None,
        topics=[],
    )


def _blob(path, size=100):
    return {"path": path, "type": "blob", "size": size}


def _file_body(path, text):
    return {
        "type": "file",
        "path": path,
        "encoding": "base64",
        "size": len(text),
        "content": base64.b64encode(text.encode()).decode(),
    }


def _handler(tree, files, failing=(), tree_status=200):
    """Route tree and contents requests; ``failing`` paths answer 500."""
    prefix = "/repos/acme/widget/contents/"

    def handle(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/repos/acme/widget/git/trees/main":
            if tree_status != 200:
                return httpx.Response(tree_status, json={"message": "nope"})
            return httpx.Response(200, json={"tree": tree, "truncated": False})
        if path.startswith(prefix):
            file_path = path[len(prefix):]
            if file_path in failing:
                return httpx.Response(500, json={"message": "boom"})
            if file_path in files:
                return httpx.Response(200, json=_file_body(file_path, files[file_path]))
        return httpx.Response(404, json={"message": "Not Found"})

    return handle


def _analyzer(handler, **kwargs):
    def factory(installation_id):
        return GitHubClient(
            token="test-token",
            base_url=API,
            transport=httpx.MockTransport(handler),
            retry_base_delay=0,
        )

    return RepositoryAnalyzer(client_factory=factory, **kwargs)


class TestAnalyze:

    @pytest.mark.asyncio
    async def test_node_repository(self):
        tree = [
            _blob("package.json"),
            _blob("jest.config.js"),
            _blob("Dockerfile"),
            _blob("LICENSE"),
            _blob(".github/workflows/ci.yml"),
            {"path": "src", "type": "tree"},
            _blob("src/index.js"),
            _blob("src/util.js"),
            _blob("node_modules/react/package.json"),
        ]
        files = {
            "package.json": PACKAGE_JSON,
            "jest.config.js": "module.exports = {}",
            "Dockerfile": "FROM node:20",
            "LICENSE": "MIT License",
            ".github/workflows/ci.yml": "on: push",
            "src/index.js": "console.log('hi')",
        }
        analysis = await _analyzer(_handler(tree, files)).analyze(_repo(), "42")

        paths = sorted(k.path for k in analysis.key_files)
        assert paths == sorted(files)
        assert analysis.package_info.name == "widget"
        assert analysis.package_info.scripts == {"dev": "vite", "test": "jest"}
        assert analysis.framework == "React"
        assert analysis.build_tool == "Vite"
        assert analysis.test_framework == "Jest"
        assert analysis.has_tests
        assert analysis.has_docker
        assert analysis.has_ci
        assert analysis.has_license
        assert not analysis.readme_exists
        assert not analysis.has_changelog
        assert analysis.primary_language == "JavaScript"
        assert "node_modules" not in analysis.structure
        assert analysis.structure["src"]["index.js"]["language"] == "JavaScript"

    @pytest.mark.asyncio
    async def test_empty_repository(self):
        analysis = await _analyzer(_handler([], {})).analyze(_repo(), "42")

        assert analysis.key_files == []
        assert analysis.package_info is None
        assert analysis.structure == {}
        assert analysis.build_tool is None
        for flag in (
            analysis.readme_exists, analysis.has_tests, analysis.has_docs, analysis.has_docker,
            analysis.has_ci, analysis.has_license, analysis.has_contributing, analysis.has_changelog,
        ):
            assert flag is False

    @pytest.mark.asyncio
    async def test_invalid_manifest_yields_no_package_info(self):
        tree = [_blob("package.json"), _blob("README.md")]
        files = {"package.json": "{not json", "README.md": "# Widget"}
        analysis = await _analyzer(_handler(tree, files)).analyze(_repo(), "42")

        assert analysis.package_info is None
        assert analysis.readme_exists
        assert analysis.build_tool == "npm"

    @pytest.mark.asyncio
    async def test_failed_file_fetch_is_omitted(self):
        tree = [_blob("README.md"), _blob("LICENSE")]
        files = {"README.md": "# Widget", "LICENSE": "MIT"}
        analysis = await _analyzer(_handler(tree, files, failing={"LICENSE"})).analyze(_repo(), "42")

        assert [k.path for k in analysis.key_files] == ["README.md"]
        assert not analysis.has_license

    @pytest.mark.asyncio
    async def test_oversized_files_skipped(self):
        tree = [_blob("README.md", size=500), _blob("package.json", size=50)]
        files = {"README.md": "# Widget", "package.json": PACKAGE_JSON}
        analysis = await _analyzer(_handler(tree, files), max_file_bytes=100).analyze(_repo(), "42")

        assert [k.path for k in analysis.key_files] == ["package.json"]

    @pytest.mark.asyncio
    async def test_malformed_full_name(self):
        with pytest.raises(AnalysisError) as exc_info:
            await _analyzer(_handler([], {})).analyze(_repo(full_name="no-slash"), "42")
        assert exc_info.value.temporary is False

    @pytest.mark.asyncio
    async def test_missing_tree_is_permanent(self):
        with pytest.raises(AnalysisError) as exc_info:
            await _analyzer(_handler([], {}, tree_status=404)).analyze(_repo(), "42")
        assert exc_info.value.temporary is False
        assert exc_info.value.details["github_status"] == 404

    @pytest.mark.asyncio
    async def test_server_error_on_tree_is_temporary(self):
        with pytest.raises(AnalysisError) as exc_info:
            await _analyzer(_handler([], {}, tree_status=502)).analyze(_repo(), "42")
        assert exc_info.value.temporary is True


class TestPipelineAnalyzer:
    """The analyzer wired by build_orchestrator leaves retries to the orchestrator."""

    @pytest.mark.asyncio
    async def test_server_error_fetches_tree_once(self):
        calls = []

        def handle(request):
            calls.append(request.url.path)
            return httpx.Response(503, json={"message": "unavailable"})

        orchestrator = build_orchestrator(
            Settings(github_api_url=API),
            github_transport=httpx.MockTransport(handle),
        )

        with pytest.raises(AnalysisError) as exc_info:
            await orchestrator.analyzer.analyze(_repo(), "42")

        assert calls == ["/repos/acme/widget/git/trees/main"]
        assert exc_info.value.temporary is True

    @pytest.mark.asyncio
    async def test_attempts_are_configurable(self):
        calls = []

        def handle(request):
            calls.append(request.url.path)
            if len(calls) < 2:
                return httpx.Response(503)
            return httpx.Response(200, json={"tree": []})

        orchestrator = build_orchestrator(
            Settings(github_api_url=API, github_max_attempts=2),
            github_transport=httpx.MockTransport(handle),
        )

        with patch("clio.services.github_client.asyncio.sleep", new=AsyncMock()):
            analysis = await orchestrator.analyzer.analyze(_repo(), "42")

        assert len(calls) == 2
        assert analysis.key_files == []


class TestGitHubClient:

    @pytest.mark.asyncio
    async def test_retries_server_errors_then_succeeds(self):
        calls = []

        def handle(request):
            calls.append(request.url.path)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"tree": [_blob("README.md")]})

        async with GitHubClient(base_url=API, transport=httpx.MockTransport(handle), retry_base_delay=0) as client:
            tree = await client.get_tree("acme", "widget", "main")

        assert len(calls) == 3
        assert tree == [TreeItem(path="README.md", type="blob", size=100)]

    @pytest.mark.asyncio
    async def test_rate_limit_is_temporary(self):
        def handle(request):
            return httpx.Response(403, headers={"x-ratelimit-remaining": "0"})

        async with GitHubClient(base_url=API, transport=httpx.MockTransport(handle), retry_base_delay=0) as client:
            with pytest.raises(GitHubAPIError) as exc_info:
                await client.get_tree("acme", "widget", "main")
        assert exc_info.value.temporary is True

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self):
        seen = {}

        def handle(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json=_file_body("README.md", "hello"))

        async with GitHubClient(token="abc", base_url=API, transport=httpx.MockTransport(handle)) as client:
            body = await client.get_file_content("acme", "widget", "README.md")

        assert seen["auth"] == "Bearer abc"
        assert body.text() == "hello"

    @pytest.mark.asyncio
    async def test_directory_contents_rejected(self):
        def handle(request):
            return httpx.Response(200, json=[{"path": "src/a.py"}])

        async with GitHubClient(base_url=API, transport=httpx.MockTransport(handle)) as client:
            with pytest.raises(GitHubAPIError):
                await client.get_file_content("acme", "widget", "src")


class TestPackageInfo:

    def test_pyproject(self):
        info = parse_package_info([KeyFile("pyproject.toml", PYPROJECT, "TOML", "high")])
        assert info.name == "gizmo"
        assert info.version == "0.4.0"
        assert info.dependencies == {"fastapi": ">=0.100", "httpx": "*"}
        assert info.dev_dependencies == {"pytest": ">=7"}
        assert info.scripts == {"gizmo": "gizmo.cli:main"}
        assert info.build_requires == ["hatchling"]

    def test_cargo(self):
        info = parse_package_info([KeyFile("Cargo.toml", CARGO, "TOML", "high")])
        assert info.name == "crab"
        assert info.license == "Apache-2.0"
        assert info.dependencies == {"axum": "0.7", "tokio": "1"}

    def test_package_json_preferred_over_pyproject(self):
        info = parse_package_info([
            KeyFile("pyproject.toml", PYPROJECT, "TOML", "high"),
            KeyFile("package.json", PACKAGE_JSON, "JSON", "high"),
        ])
        assert info.name == "widget"

    def test_nested_manifest_ignored(self):
        assert parse_package_info([KeyFile("web/package.json", PACKAGE_JSON, "JSON", "low")]) is None

    def test_invalid_toml(self):
        assert parse_package_info([KeyFile("Cargo.toml", "[package", "TOML", "high")]) is None


class TestHelpers:

    def test_split_full_name(self):
        assert split_full_name("acme/widget") == ("acme", "widget")
        for bad in ("", "acme", "acme/", "/widget", "a/b/c"):
            with pytest.raises(AnalysisError):
                split_full_name(bad)

    def test_structure_depth_limit(self):
        tree = [
            TreeItem("a", "tree"),
            TreeItem("a/b", "tree"),
            TreeItem("a/b/c.py", "blob", 5),
            TreeItem("a/b/c/d.py", "blob", 5),
        ]
        structure = build_structure(tree, max_depth=3)
        assert structure["a"]["b"]["c.py"]["type"] == "file"
        assert "c" not in structure["a"]["b"]
