"""Pure text and path helpers: frontmatter stripping, path expansion, wrapping."""

from __future__ import annotations

import os
import re
from pathlib import Path

# A "---" delimiter line, optionally followed by blank lines.
_FRONTMATTER_DELIMITER = re.compile(rb"(?m)^---\r?\n(\s*\r?\n)?")


def _detect_frontmatter(content: bytes) -> tuple[int, int]:
    """Return (start, end) of the first two delimiter matches, or (-1, -1)."""
    matches = []
    for match in _FRONTMATTER_DELIMITER.finditer(content):
        matches.append(match)
        if len(matches) == 2:
            return matches[0].start(), matches[1].end()
    return -1, -1


def remove_frontmatter(content: bytes) -> bytes:
    """Strip a leading ``---`` metadata block from ``content``.

    The block is only removed when the first delimiter sits at the very start
    of the input and a second delimiter follows it; everything up to the end
    of the second delimiter line (and any blank lines directly after it) is
    dropped. Any other input is returned unchanged.
    """
    start, end = _detect_frontmatter(content)
    if start == 0:
        return content[end:]
    return content


def expand_path(path: str) -> str:
    """Expand a leading ``~`` and ``$VAR``/``${VAR}`` references in ``path``."""
    return os.path.expandvars(os.path.expanduser(path))


def is_markdown_file(filename: str, extensions: tuple[str, ...] | list[str]) -> bool:
    """Return whether ``filename`` should be treated as markdown.

    Files without an extension are assumed to be markdown; any other
    extension must match one of ``extensions`` case-insensitively.
    """
    ext = os.path.splitext(filename)[1]
    if not ext:
        return True
    ext = ext.lower()
    return any(ext == candidate.lower() for candidate in extensions)


def wrap_code_block(text: str, language: str) -> str:
    """Wrap ``text`` in a fenced code block tagged with ``language``."""
    if text and not text.endswith("\n"):
        text += "\n"
    return f"```{language}\n{text}```"


def strip_absolute_path(full_path: Path | str, cwd: Path | str) -> str:
    """Return ``full_path`` relative to ``cwd`` after resolving symlinks.

    Paths outside ``cwd`` are returned as resolved absolute paths.
    """
    fp = os.path.realpath(full_path)
    cp = os.path.realpath(cwd)
    return fp.replace(cp + os.sep, "")


def indent(text: str, n: int) -> str:
    """Indent every line of ``text`` by ``n`` spaces."""
    if n <= 0 or not text:
        return text
    pad = " " * n
    return "".join(f"{pad}{line}\n" for line in text.split("\n"))


def normalize_extensions(extensions: tuple[str, ...] | list[str]) -> list[str]:
    """Convert config-style extensions (``.md``/``md``) into glob patterns (``*.md``)."""
    patterns: list[str] = []
    for ext in extensions:
        if ext.startswith("."):
            patterns.append(f"*{ext}")
        else:
            patterns.append(f"*.{ext}")
    return patterns


__all__ = [
    "expand_path",
    "indent",
    "is_markdown_file",
    "normalize_extensions",
    "remove_frontmatter",
    "strip_absolute_path",
    "wrap_code_block",
]
