"""Data models and constants for the docshelf application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from docshelf.textutil import is_markdown_file, strip_absolute_path

# Application identity used for platformdirs paths
CONFIG_APP_NAME = "docshelf"

DEFAULT_MARKDOWN_EXTENSIONS: tuple[str, ...] = (
    ".md",
    ".mdown",
    ".mkdn",
    ".mkd",
    ".markdown",
)

# Directory names skipped by the standard (ignore-aware) scan
DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = ("node_modules", "__pycache__", ".venv")

STYLE_AUTO = "auto"
STYLE_DARK = "dark"
STYLE_LIGHT = "light"
STYLE_NOTTY = "notty"
BUILTIN_STYLES = (STYLE_AUTO, STYLE_DARK, STYLE_LIGHT, STYLE_NOTTY)

DEFAULT_WIDTH = 80
MAX_WIDTH = 120


class ApplicationState(Enum):
    """Top-level application state. Exactly one is active at any time."""

    LIST_ACTIVE = "showing file listing"
    DOCUMENT_ACTIVE = "showing document"


class FilterState(Enum):
    """Filter lifecycle of the listing view."""

    BROWSING = "browsing"
    FILTERING = "filtering"
    FILTER_APPLIED = "filter applied"


@dataclass(slots=True)
class Document:
    """A text document known to the application.

    Stubs are created with only a path and a note; ``body`` and ``rendered``
    are filled in place as the content and its rendering arrive.
    """

    local_path: Path | None = None
    body: str | None = None
    note: str = ""
    modtime: datetime | None = None
    rendered: list[str] | None = None
    rendered_width: int = 0
    filter_value: str = ""

    def build_filter_value(self) -> None:
        """Compute the lowercase key used by the listing filter."""
        self.filter_value = self.note.lower()

    def is_markdown(self, extensions: tuple[str, ...] | list[str]) -> bool:
        """Return True when the document should be rendered as markdown."""
        if self.local_path is None:
            return True
        return is_markdown_file(self.local_path.name, extensions)

    @property
    def title(self) -> str:
        """Short label for headers and status bars."""
        if self.note:
            return self.note
        if self.local_path is not None:
            return self.local_path.name
        return "(stdin)"


@dataclass(frozen=True, slots=True)
class DiscoveredEntry:
    """One file found by the discovery scan, paired with its modification time."""

    path: Path
    modtime: datetime

    def to_document(self, cwd: Path | str) -> Document:
        """Convert the entry into a document stub relative to ``cwd``."""
        return Document(
            local_path=self.path,
            note=strip_absolute_path(self.path, cwd),
            modtime=self.modtime,
        )


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration shared by the controller and every sub-view.

    Constructed once at startup (config file merged with CLI flags) and
    passed by reference; nothing reads configuration from module globals.
    """

    path: str = ""
    style: str = STYLE_AUTO
    width: int = 0  # 0 = follow the terminal width (capped at MAX_WIDTH)
    show_all_files: bool = False
    show_line_numbers: bool = False
    preserve_new_lines: bool = False
    high_performance_pager: bool = False
    enable_mouse: bool = False
    glamour_enabled: bool = True
    markdown_extensions: list[str] = field(
        default_factory=lambda: list(DEFAULT_MARKDOWN_EXTENSIONS)
    )
    ignore_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))
    config_defaulted: bool = False


__all__ = [
    "BUILTIN_STYLES",
    "CONFIG_APP_NAME",
    "DEFAULT_IGNORE_PATTERNS",
    "DEFAULT_MARKDOWN_EXTENSIONS",
    "DEFAULT_WIDTH",
    "MAX_WIDTH",
    "STYLE_AUTO",
    "STYLE_DARK",
    "STYLE_LIGHT",
    "STYLE_NOTTY",
    "AppConfig",
    "ApplicationState",
    "DiscoveredEntry",
    "Document",
    "FilterState",
]
