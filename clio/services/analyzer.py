"""Repository analysis over the GitHub trees and contents APIs.

Builds a shallow structure summary, fetches a fixed allowlist of key files
and derives tooling signals from them. Detection data lives in
:mod:`clio.services.detection`; this module only applies it.
"""

import asyncio
import dataclasses
import json
import logging
import re
import tomllib
from typing import Any, Callable, Optional

from ..core.config import settings
from ..exceptions import AnalysisError, GitHubAPIError
from . import detection
from .github_client import GitHubClient, TreeItem

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], GitHubClient]

_IMPORTANCE_RANK = {"high": 0, "medium": 1, "low": 2}

# PEP 508 requirement name, e.g. "fastapi" in "fastapi[all]>=0.100".
_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class KeyFile:
    """A fetched key file."""
    path: str
    content: str
    language: Optional[str]
    importance: str                        # "high" | "medium" | "low"


@dataclasses.dataclass
class PackageInfo:
    """Normalized view of package.json, pyproject.toml or Cargo.toml."""
    name: Optional[str] = None
    version: Optional[str] = None
    description: Optional[str] = None
    scripts: dict[str, str] = dataclasses.field(default_factory=dict)
    dependencies: dict[str, str] = dataclasses.field(default_factory=dict)
    dev_dependencies: dict[str, str] = dataclasses.field(default_factory=dict)
    keywords: list[str] = dataclasses.field(default_factory=list)
    license: Optional[str] = None
    build_requires: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class RepositoryAnalysis:
    """Derived view of a repository. Never persisted."""
    name: str
    structure: dict[str, Any]
    key_files: list[KeyFile]
    package_info: Optional[PackageInfo]
    readme_exists: bool = False
    has_tests: bool = False
    has_docs: bool = False
    has_docker: bool = False
    has_ci: bool = False
    has_license: bool = False
    has_contributing: bool = False
    has_changelog: bool = False
    primary_language: str = "Unknown"
    framework: Optional[str] = None
    build_tool: Optional[str] = None
    test_framework: Optional[str] = None


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

class RepositoryAnalyzer:
    """Analyze a GitHub repository through an installation-scoped client."""

    def __init__(
        self,
        client_factory: ClientFactory = GitHubClient.for_installation,
        max_key_files: Optional[int] = None,
        max_file_bytes: Optional[int] = None,
        structure_depth: Optional[int] = None,
    ) -> None:
        self._client_factory = client_factory
        self.max_key_files = max_key_files if max_key_files is not None else settings.analyzer_max_key_files
        self.max_file_bytes = max_file_bytes if max_file_bytes is not None else settings.analyzer_max_file_bytes
        self.structure_depth = structure_depth if structure_depth is not None else settings.analyzer_structure_depth

    async def analyze(self, repository: Any, installation_id: str) -> RepositoryAnalysis:
        """
        Analyze ``repository`` (anything with ``name``, ``full_name``,
        ``default_branch`` and ``language`` attributes).

        Raises:
            AnalysisError: malformed full name, or the tree could not be fetched
        """
        owner, repo = split_full_name(repository.full_name)
        branch = repository.default_branch or "main"

        async with self._client_factory(installation_id) as client:
            try:
                tree = await client.get_tree(owner, repo, branch)
            except GitHubAPIError as e:
                raise AnalysisError(
                    f"Failed to analyze repository: {e.message}",
                    temporary=e.temporary,
                    details={"repository": repository.full_name, "github_status": e.status},
                ) from e

            tree = [item for item in tree if not _in_skipped_dir(item.path)]
            structure = build_structure(tree, self.structure_depth)
            key_files = await self._fetch_key_files(client, owner, repo, tree)

        package_info = parse_package_info(key_files)
        analysis = build_analysis(
            name=repository.name,
            structure=structure,
            key_files=key_files,
            package_info=package_info,
            primary_language=repository.language or "Unknown",
        )
        logger.info(
            f"Analyzed {repository.full_name}: {len(tree)} tree entries, {len(key_files)} key files",
            extra={
                "repository": repository.full_name,
                "framework": analysis.framework,
                "build_tool": analysis.build_tool,
                "test_framework": analysis.test_framework,
            },
        )
        return analysis

    def select_key_files(self, tree: list[TreeItem]) -> list[TreeItem]:
        """Allowlisted blobs within the size limit, most important first."""
        candidates = [
            item for item in tree
            if item.type == "blob"
            and detection.is_key_file(item.path)
            and item.size <= self.max_file_bytes
        ]
        candidates.sort(key=lambda item: (_IMPORTANCE_RANK[detection.importance_for(item.path)], item.path))
        return candidates[: self.max_key_files]

    async def _fetch_key_files(
        self, client: GitHubClient, owner: str, repo: str, tree: list[TreeItem]
    ) -> list[KeyFile]:
        selected = self.select_key_files(tree)

        async def fetch(item: TreeItem) -> Optional[KeyFile]:
            try:
                body = await client.get_file_content(owner, repo, item.path)
                content = body.text()
            except (GitHubAPIError, ValueError) as e:
                logger.warning(f"Skipping key file {owner}/{repo}:{item.path}: {e}")
                return None
            return KeyFile(
                path=item.path,
                content=content,
                language=detection.language_for(item.path),
                importance=detection.importance_for(item.path),
            )

        results = await asyncio.gather(*(fetch(item) for item in selected))
        return [key_file for key_file in results if key_file is not None]


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def split_full_name(full_name: str) -> tuple[str, str]:
    parts = (full_name or "").split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise AnalysisError(
            f"Invalid repository full name format: {full_name!r}",
            details={"full_name": full_name},
        )
    return parts[0], parts[1]


def _in_skipped_dir(path: str) -> bool:
    segments = path.split("/")[:-1]
    return any(s in detection.SKIP_DIRS or s.endswith(".egg-info") for s in segments) or (
        path.split("/")[-1] in detection.SKIP_DIRS
    )


def build_structure(tree: list[TreeItem], max_depth: int) -> dict[str, Any]:
    """Nested mapping of path segments, cut off below ``max_depth`` levels.

    Directories are dicts; files are ``{"type": "file", "path", "size", "language"}``.
    """
    structure: dict[str, Any] = {}
    for item in sorted(tree, key=lambda i: i.path):
        parts = item.path.split("/")
        if len(parts) > max_depth or item.type not in ("blob", "tree"):
            continue
        node = structure
        for segment in parts[:-1]:
            child = node.setdefault(segment, {})
            if child.get("type") == "file":
                break
            node = child
        else:
            leaf = parts[-1]
            if item.type == "tree":
                node.setdefault(leaf, {})
            else:
                node[leaf] = {
                    "type": "file",
                    "path": item.path,
                    "size": item.size,
                    "language": detection.language_for(item.path),
                }
    return structure


def _requirement_name(requirement: str) -> Optional[str]:
    match = _REQUIREMENT_NAME.match(requirement)
    return match.group(1).lower() if match else None


def _requirements_to_dict(requirements: Any) -> dict[str, str]:
    deps: dict[str, str] = {}
    for requirement in requirements or []:
        if isinstance(requirement, str):
            name = _requirement_name(requirement)
            if name:
                deps[name] = requirement[len(name):].strip() or "*"
    return deps


def _table_to_dict(table: Any) -> dict[str, str]:
    """Cargo/Poetry style ``name = "1.0"`` or ``name = { version = "1.0" }`` tables."""
    deps: dict[str, str] = {}
    if not isinstance(table, dict):
        return deps
    for name, spec in table.items():
        if isinstance(spec, dict):
            spec = spec.get("version", "*")
        deps[str(name).lower()] = str(spec)
    return deps


def _license_text(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("type") or value.get("text") or value.get("file")
    return value if isinstance(value, str) else None


def _parse_package_json(text: str) -> PackageInfo:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("package.json root is not an object")
    scripts = data.get("scripts") if isinstance(data.get("scripts"), dict) else {}
    return PackageInfo(
        name=data.get("name"),
        version=data.get("version"),
        description=data.get("description"),
        scripts={str(k): str(v) for k, v in scripts.items()},
        dependencies=_table_to_dict(data.get("dependencies")),
        dev_dependencies=_table_to_dict(data.get("devDependencies")),
        keywords=[k for k in data.get("keywords") or [] if isinstance(k, str)],
        license=_license_text(data.get("license")),
    )


def _parse_pyproject(text: str) -> PackageInfo:
    data = tomllib.loads(text)
    project = data.get("project", {})
    poetry = data.get("tool", {}).get("poetry", {})

    dependencies = _requirements_to_dict(project.get("dependencies"))
    dependencies.update(_table_to_dict(poetry.get("dependencies")))
    dependencies.pop("python", None)

    dev_dependencies: dict[str, str] = {}
    for group in (project.get("optional-dependencies") or {}).values():
        dev_dependencies.update(_requirements_to_dict(group))
    dev_dependencies.update(_table_to_dict(poetry.get("dev-dependencies")))
    for group in (poetry.get("group") or {}).values():
        dev_dependencies.update(_table_to_dict(group.get("dependencies")))

    scripts = project.get("scripts") or poetry.get("scripts") or {}
    build_requires = [
        name for name in (_requirement_name(r) for r in data.get("build-system", {}).get("requires", []))
        if name
    ]
    return PackageInfo(
        name=project.get("name") or poetry.get("name"),
        version=project.get("version") or poetry.get("version"),
        description=project.get("description") or poetry.get("description"),
        scripts={str(k): str(v) for k, v in scripts.items()},
        dependencies=dependencies,
        dev_dependencies=dev_dependencies,
        keywords=list(project.get("keywords") or poetry.get("keywords") or []),
        license=_license_text(project.get("license") or poetry.get("license")),
        build_requires=build_requires,
    )


def _parse_cargo(text: str) -> PackageInfo:
    data = tomllib.loads(text)
    package = data.get("package", {})
    return PackageInfo(
        name=package.get("name"),
        version=str(package["version"]) if isinstance(package.get("version"), str) else None,
        description=package.get("description"),
        dependencies=_table_to_dict(data.get("dependencies")),
        dev_dependencies=_table_to_dict(data.get("dev-dependencies")),
        keywords=list(package.get("keywords") or []),
        license=_license_text(package.get("license")),
    )


_MANIFEST_PARSERS: dict[str, Callable[[str], PackageInfo]] = {
    "package.json": _parse_package_json,
    "pyproject.toml": _parse_pyproject,
    "Cargo.toml": _parse_cargo,
}


def parse_package_info(key_files: list[KeyFile]) -> Optional[PackageInfo]:
    """Parse the first root manifest found. Parse failures yield None."""
    by_path = {key_file.path: key_file for key_file in key_files}
    for manifest in detection.MANIFEST_FILES:
        key_file = by_path.get(manifest)
        if key_file is None:
            continue
        try:
            return _MANIFEST_PARSERS[manifest](key_file.content)
        except (ValueError, TypeError, AttributeError) as e:
            # json.JSONDecodeError and tomllib.TOMLDecodeError are ValueErrors
            logger.warning(f"Failed to parse {manifest}: {e}")
            return None
    return None


def build_analysis(
    name: str,
    structure: dict[str, Any],
    key_files: list[KeyFile],
    package_info: Optional[PackageInfo],
    primary_language: str = "Unknown",
) -> RepositoryAnalysis:
    """Derive booleans and tooling from fetched key files and the manifest."""
    paths = [key_file.path for key_file in key_files]
    return RepositoryAnalysis(
        name=name,
        structure=structure,
        key_files=key_files,
        package_info=package_info,
        readme_exists=any(p.split("/")[-1].upper().startswith("README") for p in paths),
        has_tests=detection.any_marker(paths, detection.TEST_MARKERS),
        has_docs=detection.any_marker(paths, detection.DOC_MARKERS),
        has_docker=detection.any_marker(paths, detection.DOCKER_MARKERS),
        has_ci=detection.any_marker(paths, detection.CI_MARKERS),
        has_license=detection.any_marker(paths, detection.LICENSE_MARKERS, case_sensitive=True),
        has_contributing=detection.any_marker(paths, detection.CONTRIBUTING_MARKERS, case_sensitive=True),
        has_changelog=detection.any_marker(paths, detection.CHANGELOG_MARKERS, case_sensitive=True),
        primary_language=primary_language,
        framework=detect_framework(paths, package_info),
        build_tool=detect_build_tool(paths, package_info),
        test_framework=detect_test_framework(paths, package_info),
    )


def detect_framework(paths: list[str], package_info: Optional[PackageInfo]) -> Optional[str]:
    if package_info:
        found = detection.first_match(package_info.dependencies, detection.FRAMEWORK_BY_DEPENDENCY)
        if found:
            return found
    return detection.first_substring_match(paths, detection.FRAMEWORK_BY_FILE)


def detect_build_tool(paths: list[str], package_info: Optional[PackageInfo]) -> Optional[str]:
    if package_info:
        scripts = " ".join(package_info.scripts.values())
        for needle, tool in detection.BUILD_TOOL_BY_SCRIPT:
            if needle in scripts:
                return tool
        found = detection.first_match(package_info.build_requires, detection.BUILD_TOOL_BY_BACKEND)
        if found:
            return found
    return detection.first_substring_match(paths, detection.BUILD_TOOL_BY_FILE)


def detect_test_framework(paths: list[str], package_info: Optional[PackageInfo]) -> Optional[str]:
    if package_info:
        names = list(package_info.dev_dependencies) + list(package_info.dependencies)
        found = detection.first_match(names, detection.TEST_FRAMEWORK_BY_DEPENDENCY)
        if found:
            return found
    return detection.first_substring_match(paths, detection.TEST_FRAMEWORK_BY_FILE)
