"""Markdown clean-up for generated READMEs.

Pure functions over text: no I/O and no exceptions for any input string.
Every transform that looks at headings, list markers or links skips the
contents of fenced code blocks.
"""

import re
from typing import List, Optional

from . import detection
from .analyzer import RepositoryAnalysis

_HEADING = re.compile(r"^(#{1,6})(\s|$)")
_DEEP_HEADING = re.compile(r"^#{4,}(?=\s|$)")
_LIST_MARKER = re.compile(r"^(\s*)[*+-]\s+")
_LINK = re.compile(r"(?<!!)\[([^\]]+)\]\(([^)]+)\)")
_URL_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")
_FENCE = re.compile(r"^\s*(`{3,}|~{3,})")


def _fence_marker(line: str) -> Optional[str]:
    match = _FENCE.match(line)
    return match.group(1) if match else None


def _closes(line: str, opener: str) -> bool:
    stripped = line.strip()
    return stripped.startswith(opener[0] * len(opener)) and not stripped.lstrip(opener[0])


def code_mask(lines: List[str]) -> List[bool]:
    """For each line, True if it is a fence line or inside a fenced block."""
    mask: List[bool] = []
    opener: Optional[str] = None
    for line in lines:
        if opener is None:
            marker = _fence_marker(line)
            if marker:
                opener = marker
            mask.append(marker is not None)
        else:
            mask.append(True)
            if _closes(line, opener):
                opener = None
    return mask


def is_heading(line: str) -> bool:
    return bool(_HEADING.match(line))


def _anchor(target: str) -> str:
    return "#" + re.sub(r"\s+", "-", target.strip().lower())


def _rewrite_link(match: re.Match) -> str:
    text, target = match.group(1), match.group(2)
    if _URL_SCHEME.match(target) or target.startswith(("#", "/")):
        return match.group(0)
    return f"[{text}]({_anchor(target)})"


def fix_formatting(text: str) -> str:
    """Clamp deep headings, trim fenced blocks, unify list markers, anchor relative links."""
    lines = text.split("\n")
    out: List[str] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        marker = _fence_marker(line)
        if marker:
            end = i + 1
            while end < len(lines) and not _closes(lines[end], marker):
                end += 1
            if end == len(lines):
                # Unclosed fence: leave the rest untouched.
                out.extend(lines[i:])
                break
            body = lines[i + 1:end]
            while body and not body[0].strip():
                body.pop(0)
            while body and not body[-1].strip():
                body.pop()
            out.append(line)
            out.extend(body)
            out.append(lines[end])
            i = end + 1
            continue

        line = _DEEP_HEADING.sub("###", line)
        line = _LIST_MARKER.sub(r"\1- ", line)
        line = _LINK.sub(_rewrite_link, line)
        out.append(line)
        i += 1
    return "\n".join(out)


def has_heading(text: str, heading: str) -> bool:
    """True if a prose line starts with ``heading`` (``## Installation Guide`` counts)."""
    lines = text.split("\n")
    mask = code_mask(lines)
    return any(not code and line.startswith(heading) for line, code in zip(lines, mask))


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (name or "project").lower()).strip("-") or "project"


def _bash_block(commands: List[str]) -> str:
    return "```bash\n" + "\n".join(commands) + "\n```"


def installation_section(analysis: RepositoryAnalysis) -> str:
    commands = detection.INSTALL_COMMANDS.get(analysis.build_tool or "")
    if commands:
        body = _bash_block(list(commands))
    else:
        body = _bash_block([
            "# Clone the repository",
            "git clone <repository-url>",
            f"cd {analysis.name or 'project'}",
        ])
    return f"## Installation\n\n{body}\n"


def development_section(analysis: RepositoryAnalysis) -> str:
    parts = ["## Development\n"]
    test_command = detection.TEST_COMMANDS.get(analysis.test_framework or "")
    if test_command:
        parts.append(f"### Running Tests\n\n{_bash_block([test_command])}\n")

    scripts = analysis.package_info.scripts if analysis.package_info else {}
    dev_scripts = [
        f"- `{name}`: {command}"
        for name, command in scripts.items()
        if "dev" in name or "start" in name
    ]
    if dev_scripts:
        parts.append("### Available Scripts\n\n" + "\n".join(dev_scripts) + "\n")

    if len(parts) == 1:
        parts.append("Run the test suite before submitting changes.\n")
    return "\n".join(parts)


def docker_section(analysis: RepositoryAnalysis) -> str:
    image = _slug(analysis.name)
    body = _bash_block([
        "# Build the Docker image",
        f"docker build -t {image} .",
        "",
        "# Run the container",
        f"docker run -p 3000:3000 {image}",
    ])
    return f"## Docker\n\n{body}\n"


def _insertion_index(lines: List[str], mask: List[bool]) -> int:
    """Index of the first heading of any level, or len(lines) if none."""
    for i, (line, code) in enumerate(zip(lines, mask)):
        if not code and is_heading(line):
            return i
    return len(lines)


def inject_sections(text: str, analysis: Optional[RepositoryAnalysis]) -> str:
    """Add Installation, Development and Docker sections the model left out."""
    if analysis is None:
        return text

    sections: List[str] = []
    if analysis.build_tool and not has_heading(text, "## Installation"):
        sections.append(installation_section(analysis))
    if analysis.has_tests and not has_heading(text, "## Development"):
        sections.append(development_section(analysis))
    if analysis.has_docker and not has_heading(text, "## Docker"):
        sections.append(docker_section(analysis))
    if not sections:
        return text

    lines = text.split("\n")
    index = _insertion_index(lines, code_mask(lines))
    block: List[str] = [""] if 0 < index < len(lines) and lines[index - 1].strip() else []
    for section in sections:
        block.extend(section.rstrip("\n").split("\n"))
        block.append("")

    if index == len(lines):
        while lines and not lines[-1].strip():
            lines.pop()
        if lines:
            lines.append("")
        return "\n".join(lines + block)
    return "\n".join(lines[:index] + block + lines[index:])


def remove_duplicate_sections(text: str) -> str:
    """Drop every section whose heading line was already seen. Preamble is kept."""
    lines = text.split("\n")
    mask = code_mask(lines)

    chunks: List[List[str]] = [[]]
    for line, code in zip(lines, mask):
        if not code and is_heading(line):
            chunks.append([])
        chunks[-1].append(line)

    seen: set = set()
    kept: List[str] = list(chunks[0])
    for chunk in chunks[1:]:
        title = chunk[0].rstrip()
        if title in seen:
            continue
        seen.add(title)
        kept.extend(chunk)
    return "\n".join(kept)


class ContentPostProcessor:
    """Normalize model output into the README that gets stored."""

    def process(self, raw_content: str, analysis: Optional[RepositoryAnalysis] = None) -> str:
        text = (raw_content or "").replace("\r\n", "\n").replace("\r", "\n")
        text = fix_formatting(text)
        text = inject_sections(text, analysis)
        text = remove_duplicate_sections(text)

        lines = text.split("\n")
        while lines and not lines[-1].strip():
            lines.pop()
        return "\n".join(lines) + "\n" if lines else ""
