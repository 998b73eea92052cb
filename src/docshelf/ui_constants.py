"""Internal UI constants for the DocShelf app."""

from __future__ import annotations

from docshelf.theme import COLORS

APP_CSS = f"""
Screen {{
    background: {COLORS["background"]};
    color: {COLORS["text"]};
    overflow: hidden;
}}

#viewport {{
    width: 100%;
    height: 100%;
    padding: 0 1;
}}
"""

__all__ = ["APP_CSS"]
