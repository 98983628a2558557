"""Content measurement utilities - deep helper module.

Version rows never trust counts from upstream stages; every count and hash
stored on a version comes from these functions applied to the final content.
"""

import hashlib
import re

_HEADING_MARKER = re.compile(r"#{1,6}\s+")
_FENCED_CODE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE = re.compile(r"`[^`]+`")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")


def count_words(content: str) -> int:
    """
    Count prose words in Markdown.

    Heading markers, fenced code blocks, inline code and link targets are
    removed first, so a README full of shell snippets is not inflated.
    """
    text = _HEADING_MARKER.sub("", content)
    text = _FENCED_CODE.sub("", text)
    text = _INLINE_CODE.sub("", text)
    text = _LINK.sub(r"\1", text)
    return len(text.split())


def count_characters(content: str) -> int:
    return len(content)


def content_hash(content: str) -> str:
    """SHA-256 hex digest used for change detection between versions."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
