"""Markdown-to-ANSI rendering backed by Rich."""

from __future__ import annotations

import io
import logging
import os

from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound
from rich.console import Console
from rich.markdown import Markdown

from docshelf.errors import RenderError
from docshelf.models import STYLE_AUTO, STYLE_DARK, STYLE_LIGHT, STYLE_NOTTY

logger = logging.getLogger(__name__)

# Pygments themes used for fenced code in the built-in styles
_CODE_THEMES: dict[str, str] = {
    STYLE_DARK: "monokai",
    STYLE_LIGHT: "friendly",
    STYLE_NOTTY: "bw",
}


def has_dark_background(environ: dict[str, str] | None = None) -> bool:
    """Guess the terminal background from ``COLORFGBG`` (``fg;bg``).

    Background colors 0-6 and 8 are dark; anything unparsable is treated
    as dark because that is the common terminal default.
    """
    env = os.environ if environ is None else environ
    value = env.get("COLORFGBG", "")
    if not value:
        return True
    try:
        bg = int(value.split(";")[-1])
    except ValueError:
        return True
    return bg in (0, 1, 2, 3, 4, 5, 6, 8)


def resolve_style(style: str, environ: dict[str, str] | None = None) -> str:
    """Map ``auto`` onto ``dark``/``light``; other names pass through."""
    if style == STYLE_AUTO:
        return STYLE_DARK if has_dark_background(environ) else STYLE_LIGHT
    return style


def code_theme_for(style: str) -> str:
    """Return the Pygments theme for ``style``.

    Non built-in names are taken as Pygments style names; unknown names fall
    back to the dark theme.
    """
    if style in _CODE_THEMES:
        return _CODE_THEMES[style]
    try:
        get_style_by_name(style)
    except ClassNotFound:
        logger.warning("Unknown style %r, falling back to %s", style, STYLE_DARK)
        return _CODE_THEMES[STYLE_DARK]
    return style


def _preserve_line_breaks(body: str) -> str:
    """Turn soft line breaks outside fenced code into hard breaks."""
    out: list[str] = []
    in_fence = False
    for line in body.split("\n"):
        if line.lstrip().startswith(("```", "~~~")):
            in_fence = not in_fence
            out.append(line)
            continue
        if in_fence or not line.strip():
            out.append(line)
        else:
            out.append(line.rstrip() + "  ")
    return "\n".join(out)


def render_markdown(
    body: str,
    *,
    style: str,
    width: int,
    preserve_new_lines: bool = False,
) -> list[str]:
    """Render markdown ``body`` into ANSI-styled display lines.

    Raises:
        RenderError: Rich failed to render the body.
    """
    resolved = resolve_style(style)
    plain = resolved == STYLE_NOTTY
    if preserve_new_lines:
        body = _preserve_line_breaks(body)

    console = Console(
        file=io.StringIO(),
        width=max(1, width),
        force_terminal=not plain,
        color_system=None if plain else "truecolor",
        no_color=plain,
        emoji=False,
        highlight=False,
        legacy_windows=False,
    )
    try:
        markdown = Markdown(body, code_theme=code_theme_for(resolved))
        with console.capture() as capture:
            console.print(markdown)
    except Exception as exc:
        raise RenderError(f"markdown rendering failed: {exc}") from exc
    return capture.get().rstrip("\n").split("\n")


__all__ = [
    "code_theme_for",
    "has_dark_background",
    "render_markdown",
    "resolve_style",
]
