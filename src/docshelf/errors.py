"""Exception hierarchy for docshelf.

Background commands never let these escape: they are caught at the command
boundary and delivered to the dispatch loop as ``ErrorOccurred`` messages.
"""

from __future__ import annotations

from pathlib import Path


class DocShelfError(Exception):
    """Base class for all docshelf errors."""


class FatalInitError(DocShelfError):
    """The startup path could not be inspected."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"unable to stat {path}: {reason}")
        self.path = path
        self.reason = reason


class DiscoveryError(DocShelfError):
    """The file scan could not start (bad root, permission denied)."""

    def __init__(self, root: Path | str, reason: str) -> None:
        super().__init__(f"cannot search {root}: {reason}")
        self.root = root
        self.reason = reason


class ContentReadError(DocShelfError):
    """A document body could not be read after selection."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class RenderError(DocShelfError):
    """Conversion of a body to display form failed."""


__all__ = [
    "ContentReadError",
    "DiscoveryError",
    "DocShelfError",
    "FatalInitError",
    "RenderError",
]
