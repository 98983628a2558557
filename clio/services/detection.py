"""Declarative detection tables for repository analysis.

Everything the analyzer knows about file names, manifests and tooling lives
here as data. Ordered tables are tuples of pairs; the first match wins.
"""

import posixpath
from typing import Iterable, Optional


# ---------------------------------------------------------------------------
# Tree filtering
# ---------------------------------------------------------------------------

SKIP_DIRS: frozenset[str] = frozenset({
    ".git", "node_modules", "vendor", "__pycache__", ".venv", "venv",
    "dist", "build", ".next", ".nuxt", "target", ".tox", ".idea",
    ".vscode", "coverage", ".mypy_cache", ".pytest_cache", "bower_components",
})

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    "js": "JavaScript",
    "jsx": "JavaScript",
    "ts": "TypeScript",
    "tsx": "TypeScript",
    "py": "Python",
    "go": "Go",
    "rs": "Rust",
    "java": "Java",
    "cpp": "C++",
    "c": "C",
    "cs": "C#",
    "php": "PHP",
    "rb": "Ruby",
    "swift": "Swift",
    "kt": "Kotlin",
    "scala": "Scala",
    "clj": "Clojure",
    "hs": "Haskell",
    "ml": "OCaml",
    "fs": "F#",
    "erl": "Erlang",
    "ex": "Elixir",
    "sh": "Shell",
    "ps1": "PowerShell",
    "bat": "Batch",
    "yml": "YAML",
    "yaml": "YAML",
    "toml": "TOML",
    "json": "JSON",
    "xml": "XML",
    "html": "HTML",
    "css": "CSS",
    "scss": "SCSS",
    "sass": "Sass",
    "less": "Less",
    "md": "Markdown",
    "txt": "Text",
}


# ---------------------------------------------------------------------------
# Key files
# ---------------------------------------------------------------------------

# Package manifests, in the order they are tried for package info.
MANIFEST_FILES: tuple[str, ...] = ("package.json", "pyproject.toml", "Cargo.toml")

ROOT_KEY_FILES: frozenset[str] = frozenset({
    # manifests
    "package.json", "pyproject.toml", "Cargo.toml", "go.mod", "requirements.txt",
    "Pipfile", "setup.py", "setup.cfg", "pom.xml", "build.gradle", "composer.json",
    "Gemfile",
    # project docs
    "README.md", "README.rst", "README", "LICENSE", "LICENSE.md", "LICENCE",
    "COPYING", "CONTRIBUTING.md", "CHANGELOG.md", "mkdocs.yml",
    # containers and build
    "Dockerfile", "docker-compose.yml", "docker-compose.yaml", "compose.yml",
    "compose.yaml", "Makefile", "CMakeLists.txt",
    # tool configs
    "tsconfig.json", "next.config.js", "next.config.mjs", "next.config.ts",
    "nuxt.config.js", "nuxt.config.ts", "vite.config.js", "vite.config.ts",
    "webpack.config.js", "rollup.config.js", "angular.json", "manage.py",
    # test configs
    "pytest.ini", "tox.ini", "conftest.py", "jest.config.js", "jest.config.ts",
    "vitest.config.js", "vitest.config.ts", ".mocharc.json", ".mocharc.yml",
    # CI
    ".gitlab-ci.yml", ".travis.yml",
})

ENTRYPOINT_DIRS: tuple[str, ...] = ("src", "app", "lib", "cmd")

ENTRYPOINT_NAMES: frozenset[str] = frozenset({
    "index.js", "index.ts", "main.py", "__main__.py", "app.py", "main.go",
    "main.rs", "lib.rs", "app.tsx", "app.jsx", "main.ts", "main.js",
})

CI_PREFIXES: tuple[str, ...] = (".github/workflows/", ".circleci/")

DOC_FILES: frozenset[str] = frozenset({"docs/index.md", "docs/README.md"})

HIGH_IMPORTANCE: frozenset[str] = frozenset({
    "package.json", "pyproject.toml", "Cargo.toml", "go.mod", "requirements.txt",
    "Pipfile", "setup.py", "pom.xml", "build.gradle", "composer.json", "Gemfile",
    "README.md", "README.rst", "README", "LICENSE", "LICENSE.md", "LICENCE",
    "COPYING", "Dockerfile",
})

MEDIUM_IMPORTANCE: frozenset[str] = frozenset({
    "CONTRIBUTING.md", "CHANGELOG.md", "docker-compose.yml", "docker-compose.yaml",
    "compose.yml", "compose.yaml",
})


# ---------------------------------------------------------------------------
# Boolean signals (substring match over key-file paths)
# ---------------------------------------------------------------------------

TEST_MARKERS: tuple[str, ...] = ("test", "spec", "__tests__", "conftest", "jest.config", "tox.ini", ".mocharc")
DOC_MARKERS: tuple[str, ...] = ("docs/", "documentation", "mkdocs", ".md", ".rst")
DOCKER_MARKERS: tuple[str, ...] = ("dockerfile", "docker-compose", "compose.yml", "compose.yaml")
CI_MARKERS: tuple[str, ...] = (".github/workflows", ".gitlab-ci", ".circleci", ".travis")
LICENSE_MARKERS: tuple[str, ...] = ("LICENSE", "LICENCE", "COPYING")
CONTRIBUTING_MARKERS: tuple[str, ...] = ("CONTRIBUTING",)
CHANGELOG_MARKERS: tuple[str, ...] = ("CHANGELOG",)


# ---------------------------------------------------------------------------
# Tooling
# ---------------------------------------------------------------------------

FRAMEWORK_BY_DEPENDENCY: tuple[tuple[str, str], ...] = (
    ("next", "Next.js"),
    ("nuxt", "Nuxt.js"),
    ("@angular/core", "Angular"),
    ("angular", "Angular"),
    ("react", "React"),
    ("vue", "Vue.js"),
    ("svelte", "Svelte"),
    ("express", "Express.js"),
    ("fastify", "Fastify"),
    ("fastapi", "FastAPI"),
    ("django", "Django"),
    ("flask", "Flask"),
    ("spring-boot", "Spring Boot"),
    ("actix-web", "Actix Web"),
    ("axum", "Axum"),
    ("rocket", "Rocket"),
)

FRAMEWORK_BY_FILE: tuple[tuple[str, str], ...] = (
    ("next.config", "Next.js"),
    ("nuxt.config", "Nuxt.js"),
    ("angular.json", "Angular"),
    ("manage.py", "Django"),
    ("vite.config", "Vite"),
    ("webpack.config", "Webpack"),
)

# Matched against the concatenated package scripts.
BUILD_TOOL_BY_SCRIPT: tuple[tuple[str, str], ...] = (
    ("webpack", "Webpack"),
    ("vite", "Vite"),
    ("rollup", "Rollup"),
    ("esbuild", "esbuild"),
)

# pyproject ``[build-system] requires`` entries.
BUILD_TOOL_BY_BACKEND: tuple[tuple[str, str], ...] = (
    ("poetry-core", "Poetry"),
    ("poetry", "Poetry"),
    ("hatchling", "Hatch"),
    ("flit_core", "Flit"),
    ("maturin", "Maturin"),
    ("setuptools", "setuptools"),
)

BUILD_TOOL_BY_FILE: tuple[tuple[str, str], ...] = (
    ("webpack.config", "Webpack"),
    ("vite.config", "Vite"),
    ("rollup.config", "Rollup"),
    ("Cargo.toml", "Cargo"),
    ("go.mod", "Go Modules"),
    ("pom.xml", "Maven"),
    ("build.gradle", "Gradle"),
    ("CMakeLists.txt", "CMake"),
    ("Makefile", "Make"),
    ("package.json", "npm"),
    ("requirements.txt", "pip"),
    ("setup.py", "setuptools"),
    ("pyproject.toml", "setuptools"),
)

TEST_FRAMEWORK_BY_DEPENDENCY: tuple[tuple[str, str], ...] = (
    ("jest", "Jest"),
    ("vitest", "Vitest"),
    ("mocha", "Mocha"),
    ("pytest", "pytest"),
)

TEST_FRAMEWORK_BY_FILE: tuple[tuple[str, str], ...] = (
    ("jest.config", "Jest"),
    ("vitest.config", "Vitest"),
    (".mocharc", "Mocha"),
    ("pytest.ini", "pytest"),
    ("conftest.py", "pytest"),
    ("tox.ini", "pytest"),
)

INSTALL_COMMANDS: dict[str, tuple[str, ...]] = {
    "Cargo": ("cargo build", "cargo run"),
    "Go Modules": ("go mod download", "go build", "go run main.go"),
    "npm": ("npm install",),
    "Webpack": ("npm install",),
    "Vite": ("npm install",),
    "Rollup": ("npm install",),
    "esbuild": ("npm install",),
    "Poetry": ("poetry install",),
    "Hatch": ("pip install -e .",),
    "Flit": ("pip install -e .",),
    "Maturin": ("pip install -e .",),
    "setuptools": ("pip install -e .",),
    "pip": ("pip install -r requirements.txt",),
    "Maven": ("mvn install",),
    "Gradle": ("./gradlew build",),
    "CMake": ("cmake -B build", "cmake --build build"),
    "Make": ("make",),
}

TEST_COMMANDS: dict[str, str] = {
    "Jest": "npm test",
    "Vitest": "npx vitest run",
    "Mocha": "npx mocha",
    "pytest": "pytest",
}


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def language_for(path: str) -> Optional[str]:
    """Language for a file path by extension, or None when unknown."""
    name = posixpath.basename(path)
    if "." not in name:
        return None
    return LANGUAGE_BY_EXTENSION.get(name.rsplit(".", 1)[1].lower())


def is_entrypoint(path: str) -> bool:
    """True for entrypoints at the root or directly under an entrypoint dir.

    ``cmd/<tool>/main.go`` is also accepted.
    """
    parts = path.split("/")
    if parts[-1] not in ENTRYPOINT_NAMES:
        return False
    if len(parts) == 1:
        return True
    if len(parts) == 2:
        return parts[0] in ENTRYPOINT_DIRS
    return len(parts) == 3 and parts[0] == "cmd"


def is_key_file(path: str) -> bool:
    if "/" not in path and path in ROOT_KEY_FILES:
        return True
    if path in DOC_FILES:
        return True
    if path.startswith(CI_PREFIXES) and path.endswith((".yml", ".yaml")):
        return True
    return is_entrypoint(path)


def importance_for(path: str) -> str:
    name = posixpath.basename(path)
    if "/" not in path and name in HIGH_IMPORTANCE:
        return "high"
    if name in MEDIUM_IMPORTANCE or is_entrypoint(path):
        return "medium"
    return "low"


def first_match(candidates: Iterable[str], table: tuple[tuple[str, str], ...]) -> Optional[str]:
    """First table value whose key equals one of ``candidates``."""
    names = set(candidates)
    for key, value in table:
        if key in names:
            return value
    return None


def first_substring_match(paths: Iterable[str], table: tuple[tuple[str, str], ...]) -> Optional[str]:
    """First table value whose key is a substring of any path."""
    paths = list(paths)
    for key, value in table:
        if any(key in path for path in paths):
            return value
    return None


def any_marker(paths: Iterable[str], markers: tuple[str, ...], case_sensitive: bool = False) -> bool:
    for path in paths:
        haystack = path if case_sensitive else path.lower()
        for marker in markers:
            if (marker if case_sensitive else marker.lower()) in haystack:
                return True
    return False
