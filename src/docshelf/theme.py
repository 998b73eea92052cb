"""Color palette and small markup helpers shared by the views."""

from __future__ import annotations

from types import MappingProxyType

from rich.markup import escape as escape_markup

# Monokai-inspired palette
COLORS = MappingProxyType(
    {
        "background": "#272822",
        "text": "#f8f8f2",
        "muted": "#75715e",
        "accent": "#66d9ef",
        "accent_alt": "#e6db74",
        "green": "#a6e22e",
        "yellow": "#e6db74",
        "orange": "#fd971f",
        "pink": "#f92672",
        "purple": "#ae81ff",
        "error_bg": "#f92672",
    }
)

SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")
ELLIPSIS = "…"


def escape_rich_text(text: str) -> str:
    """Escape text for safe Rich markup rendering."""
    return escape_markup(text) if text else ""


def truncate_text(text: str, max_len: int) -> str:
    """Truncate ``text`` to ``max_len`` cells, ending with an ellipsis."""
    if max_len <= 0:
        return ""
    if len(text) <= max_len:
        return text
    if max_len == 1:
        return ELLIPSIS
    return text[: max_len - 1] + ELLIPSIS


__all__ = [
    "COLORS",
    "ELLIPSIS",
    "SPINNER_FRAMES",
    "escape_rich_text",
    "truncate_text",
]
