"""Messages and commands exchanged between the dispatch loop and background work.

Every message is a frozen dataclass tagged with a ``kind`` class attribute;
the controller keys its transition table on ``(state, kind)``. A command is
a zero-argument callable returning an awaitable that resolves to exactly one
message (or ``None`` when there is nothing to report).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from docshelf.discovery import DiscoveryHandle
    from docshelf.models import DiscoveredEntry, Document


class MessageKind(Enum):
    KEY = "key"
    RESIZE = "resize"
    DISCOVERY_STARTED = "discovery-started"
    ENTRY_FOUND = "entry-found"
    DISCOVERY_FINISHED = "discovery-finished"
    CONTENT_LOADED = "content-loaded"
    RENDER_FINISHED = "render-finished"
    FILTER_RESULTS = "filter-results"
    SPINNER_TICK = "spinner-tick"
    STATUS_TIMEOUT = "status-timeout"
    ERROR = "error"
    QUIT = "quit"
    SUSPEND = "suspend"
    CLEAR_VIEWPORT = "clear-viewport"


class StatusContext(Enum):
    """Area of the application a status message belongs to."""

    LISTING = "listing"
    PAGER = "pager"


@dataclass(frozen=True, slots=True)
class Message:
    kind: ClassVar[MessageKind]


@dataclass(frozen=True, slots=True)
class KeyPressed(Message):
    """Key input, named the way Textual names keys (``q``, ``ctrl+c``, ``escape``)."""

    kind: ClassVar[MessageKind] = MessageKind.KEY
    key: str
    character: str | None = None

    @property
    def name(self) -> str:
        """Binding name: the printed character when there is one, else the key name.

        Textual names ``/`` as ``slash`` and ``?`` as ``question_mark``;
        bindings are written against the characters instead.
        """
        char = self.character
        if char and len(char) == 1 and char.isprintable() and char != " ":
            return char
        return self.key


@dataclass(frozen=True, slots=True)
class Resized(Message):
    kind: ClassVar[MessageKind] = MessageKind.RESIZE
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class DiscoveryStarted(Message):
    kind: ClassVar[MessageKind] = MessageKind.DISCOVERY_STARTED
    run_id: int
    cwd: Path
    handle: DiscoveryHandle


@dataclass(frozen=True, slots=True)
class EntryFound(Message):
    kind: ClassVar[MessageKind] = MessageKind.ENTRY_FOUND
    run_id: int
    entry: DiscoveredEntry


@dataclass(frozen=True, slots=True)
class DiscoveryFinished(Message):
    kind: ClassVar[MessageKind] = MessageKind.DISCOVERY_FINISHED
    run_id: int


@dataclass(frozen=True, slots=True)
class ContentLoaded(Message):
    """A document body has been read from disk (frontmatter not yet stripped)."""

    kind: ClassVar[MessageKind] = MessageKind.CONTENT_LOADED
    document: Document


@dataclass(frozen=True, slots=True)
class RenderFinished(Message):
    kind: ClassVar[MessageKind] = MessageKind.RENDER_FINISHED
    document: Document
    lines: tuple[str, ...]
    degraded: bool = False
    width: int = 0


@dataclass(frozen=True, slots=True)
class FilterResults(Message):
    """Outcome of one full-list rescan for a committed filter value."""

    kind: ClassVar[MessageKind] = MessageKind.FILTER_RESULTS
    query: str
    documents: tuple[Document, ...]


@dataclass(frozen=True, slots=True)
class SpinnerTick(Message):
    kind: ClassVar[MessageKind] = MessageKind.SPINNER_TICK


@dataclass(frozen=True, slots=True)
class StatusTimeout(Message):
    kind: ClassVar[MessageKind] = MessageKind.STATUS_TIMEOUT
    context: StatusContext


@dataclass(frozen=True, slots=True)
class ErrorOccurred(Message):
    """A background failure.

    ``run_id`` ties a discovery failure to its run; ``document`` ties a read
    failure to the load that raised it.
    """

    kind: ClassVar[MessageKind] = MessageKind.ERROR
    error: Exception
    run_id: int | None = None
    document: Document | None = None


@dataclass(frozen=True, slots=True)
class QuitRequested(Message):
    kind: ClassVar[MessageKind] = MessageKind.QUIT


@dataclass(frozen=True, slots=True)
class SuspendRequested(Message):
    kind: ClassVar[MessageKind] = MessageKind.SUSPEND


@dataclass(frozen=True, slots=True)
class ClearViewportRequested(Message):
    kind: ClassVar[MessageKind] = MessageKind.CLEAR_VIEWPORT


Command = Callable[[], Awaitable[Message | None]]

# Host requests are interpreted by the dispatcher and never reach the controller.
HOST_REQUEST_KINDS = frozenset(
    {MessageKind.QUIT, MessageKind.SUSPEND, MessageKind.CLEAR_VIEWPORT}
)


def emit(message: Message) -> Command:
    """Build a command that immediately yields ``message``."""

    async def _command() -> Message:
        return message

    return _command


@dataclass(frozen=True, slots=True)
class Timer:
    """One-shot timer command yielding ``message`` after ``delay`` seconds."""

    delay: float
    message: Message

    async def __call__(self) -> Message:
        await asyncio.sleep(self.delay)
        return self.message


def after(delay: float, message: Message) -> Command:
    return Timer(delay, message)


def quit_command() -> Command:
    return emit(QuitRequested())


def suspend_command() -> Command:
    return emit(SuspendRequested())


def clear_viewport_command() -> Command:
    return emit(ClearViewportRequested())


__all__ = [
    "HOST_REQUEST_KINDS",
    "ClearViewportRequested",
    "Command",
    "ContentLoaded",
    "DiscoveryFinished",
    "DiscoveryStarted",
    "EntryFound",
    "ErrorOccurred",
    "FilterResults",
    "KeyPressed",
    "Message",
    "MessageKind",
    "QuitRequested",
    "RenderFinished",
    "Resized",
    "SpinnerTick",
    "StatusContext",
    "StatusTimeout",
    "SuspendRequested",
    "Timer",
    "after",
    "clear_viewport_command",
    "emit",
    "quit_command",
    "suspend_command",
]
