"""Collaborator interfaces + default adapters for app-level dependency injection."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from docshelf import rendering as _rendering
from docshelf import textutil as _textutil
from docshelf import walker as _walker
from docshelf.models import DiscoveredEntry

if TYPE_CHECKING:
    from docshelf.discovery import CancellationToken


@runtime_checkable
class Renderer(Protocol):
    """Interface for converting a document body into display lines."""

    def render(
        self,
        body: str,
        *,
        style: str,
        width: int,
        preserve_new_lines: bool,
    ) -> list[str]:
        """Render ``body``; raises ``RenderError`` on failure."""
        ...


@runtime_checkable
class FrontmatterFilter(Protocol):
    """Interface for stripping a leading metadata block."""

    def strip(self, content: bytes) -> bytes:
        """Return ``content`` without its frontmatter block."""
        ...


@runtime_checkable
class DirectoryWalker(Protocol):
    """Interface for enumerating candidate files under a root."""

    def __call__(
        self,
        root: Path,
        patterns: Sequence[str],
        *,
        show_all_files: bool,
        ignore_patterns: Sequence[str],
        token: CancellationToken | None,
    ) -> Iterator[DiscoveredEntry]:
        """Yield entries whose names match ``patterns``."""
        ...


@runtime_checkable
class PathExpander(Protocol):
    """Interface for expanding ``~`` and environment references in a path."""

    def expand(self, path: str) -> str:
        """Return the expanded path."""
        ...


class RichRenderer:
    """Default renderer that delegates to the Rich markdown pipeline."""

    def render(
        self,
        body: str,
        *,
        style: str,
        width: int,
        preserve_new_lines: bool,
    ) -> list[str]:
        return _rendering.render_markdown(
            body,
            style=style,
            width=width,
            preserve_new_lines=preserve_new_lines,
        )


class YamlFrontmatterFilter:
    """Default filter for ``---`` delimited frontmatter."""

    def strip(self, content: bytes) -> bytes:
        return _textutil.remove_frontmatter(content)


class EnvPathExpander:
    """Default expander using the user's home directory and environment."""

    def expand(self, path: str) -> str:
        return _textutil.expand_path(path)


@dataclass(slots=True)
class AppServices:
    """Aggregated collaborators consumed by the controller and its views."""

    renderer: Renderer
    frontmatter: FrontmatterFilter
    walker: DirectoryWalker
    path_expander: PathExpander


def build_default_app_services() -> AppServices:
    """Build default services backed by the function-based modules."""
    return AppServices(
        renderer=RichRenderer(),
        frontmatter=YamlFrontmatterFilter(),
        walker=_walker.walk_files,
        path_expander=EnvPathExpander(),
    )


__all__ = [
    "AppServices",
    "DirectoryWalker",
    "EnvPathExpander",
    "FrontmatterFilter",
    "PathExpander",
    "Renderer",
    "RichRenderer",
    "YamlFrontmatterFilter",
    "build_default_app_services",
]
