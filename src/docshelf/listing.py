"""Listing view: discovered documents, filtering, selection and the busy spinner."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from rapidfuzz import fuzz
from rich.text import Text

from docshelf.messages import (
    Command,
    DiscoveryFinished,
    FilterResults,
    KeyPressed,
    Message,
    SpinnerTick,
    StatusContext,
    StatusTimeout,
    after,
)
from docshelf.models import AppConfig, Document, FilterState
from docshelf.theme import COLORS, SPINNER_FRAMES, escape_rich_text, truncate_text

logger = logging.getLogger(__name__)

FUZZY_SCORE_CUTOFF = 60  # Minimum score (0-100) to include in results
SPINNER_INTERVAL = 0.1  # Seconds between spinner frames
STATUS_MESSAGE_TIMEOUT = 3.0  # How long to show status messages like "filter applied"

# Rows taken by the header, filter line, status line and help line
_CHROME_ROWS = 4

_FILTER_COMMIT_KEYS = frozenset({"enter", "tab"})
_OPEN_KEYS = frozenset({"enter", "l", "right"})

_TIME_UNITS = (
    (31536000, "year"),
    (2592000, "month"),
    (86400, "day"),
    (3600, "hour"),
    (60, "minute"),
)


def filter_score(query: str, filter_value: str) -> float:
    """Score ``filter_value`` against an already-lowercased ``query``."""
    return fuzz.WRatio(query, filter_value)


def rank_documents(query: str, documents: Sequence[Document]) -> tuple[Document, ...]:
    """Return documents matching ``query``, best match first.

    Ties keep discovery order. Reads ``filter_value`` but never mutates the
    documents, so it is safe to run off the dispatch loop.
    """
    query = query.lower()
    scored: list[tuple[float, int, Document]] = []
    for index, doc in enumerate(documents):
        key = doc.filter_value or doc.note.lower()
        score = filter_score(query, key)
        if score >= FUZZY_SCORE_CUTOFF:
            scored.append((score, index, doc))
    scored.sort(key=lambda item: (-item[0], item[1]))
    return tuple(doc for _, _, doc in scored)


def filter_documents(query: str, documents: Sequence[Document]) -> Command:
    """Command that rescans ``documents`` against ``query`` on a worker thread."""
    snapshot = tuple(documents)

    async def _command() -> Message:
        matches = await asyncio.to_thread(rank_documents, query, snapshot)
        logger.debug("Filter rescan: query=%r matched=%d/%d", query, len(matches), len(snapshot))
        return FilterResults(query=query, documents=matches)

    return _command


def relative_time(moment: datetime | None, now: datetime | None = None) -> str:
    """Human-friendly age of ``moment`` ("just now", "5 minutes ago", ...)."""
    if moment is None:
        return ""
    now = now or datetime.now()
    seconds = int((now - moment).total_seconds())
    if seconds < 60:
        return "just now"
    for unit_seconds, unit in _TIME_UNITS:
        if seconds >= unit_seconds:
            count = seconds // unit_seconds
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return "just now"


class ListView:
    """State of the file listing.

    ``documents`` holds every discovered stub in discovery order; the visible
    sequence is either all of them or the results of the last committed
    filter. Opening a document is signalled through ``on_open``.
    """

    def __init__(
        self,
        config: AppConfig,
        on_open: Callable[[Document], list[Command]] | None = None,
    ) -> None:
        self.config = config
        self.on_open = on_open
        self.documents: list[Document] = []
        self.filtered: list[Document] = []
        self.filter_state = FilterState.BROWSING
        self.filter_text = ""
        self.applied_query = ""
        self.pending_query = ""
        self.cursor = 0
        self.width = 0
        self.height = 0
        self.discovering = False
        self.loaded = False
        self.loading_document = False
        self.spinner_running = False
        self.spinner_frame = 0
        self.status_message = ""
        self.notice = ""

    # ── Sizing / state helpers ───────────────────────────────────────────

    def set_size(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self._clamp_cursor()

    def per_page(self) -> int:
        return max(1, self.height - _CHROME_ROWS)

    def filter_applied(self) -> bool:
        return self.filter_state == FilterState.FILTER_APPLIED

    def visible(self) -> list[Document]:
        """Documents currently shown, in display order."""
        if self.applied_query:
            return self.filtered
        return self.documents

    def selected_document(self) -> Document | None:
        docs = self.visible()
        if not docs:
            return None
        return docs[self.cursor]

    def _clamp_cursor(self) -> None:
        count = len(self.visible())
        self.cursor = 0 if count == 0 else max(0, min(self.cursor, count - 1))

    def reset(self) -> None:
        """Discard every entry and filter, ready for a fresh discovery run."""
        self.documents = []
        self.filtered = []
        self.filter_state = FilterState.BROWSING
        self.filter_text = ""
        self.applied_query = ""
        self.pending_query = ""
        self.cursor = 0
        self.loaded = False
        self.discovering = False
        self.loading_document = False
        self.notice = ""

    # ── Discovery ────────────────────────────────────────────────────────

    def begin_discovery(self) -> list[Command]:
        self.discovering = True
        self.loaded = False
        return self.start_spinner()

    def add_document(self, doc: Document) -> None:
        """Append a discovered stub; joins the filtered view if a filter is applied."""
        self.documents.append(doc)
        if self.applied_query or self.pending_query:
            doc.build_filter_value()
        if (
            self.applied_query
            and filter_score(self.applied_query.lower(), doc.filter_value) >= FUZZY_SCORE_CUTOFF
        ):
            self.filtered.append(doc)
        self._clamp_cursor()

    def finish_discovery(self) -> None:
        self.discovering = False
        self.loaded = True

    def discovery_failed(self, notice: str) -> list[Command]:
        self.discovering = False
        self.loaded = True
        self.notice = notice
        return []

    # ── Spinner ──────────────────────────────────────────────────────────

    def should_spin(self) -> bool:
        """Animate while discovery runs and fewer than a page of entries is visible."""
        if self.loading_document:
            return True
        return self.discovering and len(self.visible()) < self.per_page()

    def start_spinner(self) -> list[Command]:
        """Schedule a spinner tick unless one is already pending."""
        if self.spinner_running or not self.should_spin():
            return []
        self.spinner_running = True
        return [after(SPINNER_INTERVAL, SpinnerTick())]

    def _on_spinner_tick(self) -> list[Command]:
        self.spinner_running = False
        self.spinner_frame = (self.spinner_frame + 1) % len(SPINNER_FRAMES)
        return self.start_spinner()

    # ── Status messages ──────────────────────────────────────────────────

    def show_status(self, message: str) -> list[Command]:
        self.status_message = message
        return [after(STATUS_MESSAGE_TIMEOUT, StatusTimeout(StatusContext.LISTING))]

    # ── Filtering ────────────────────────────────────────────────────────

    def _start_filtering(self) -> list[Command]:
        self.filter_state = FilterState.FILTERING
        self.filter_text = self.pending_query or self.applied_query
        return []

    def _clear_filter(self) -> list[Command]:
        self.filter_state = FilterState.BROWSING
        self.filter_text = ""
        self.applied_query = ""
        self.pending_query = ""
        self.filtered = []
        self._clamp_cursor()
        return []

    def _commit_filter(self) -> list[Command]:
        query = self.filter_text.strip()
        if not query:
            return self._clear_filter()
        self.filter_state = FilterState.FILTER_APPLIED
        if query == self.applied_query:
            self.pending_query = ""
            return []
        if query == self.pending_query:
            return []
        self.pending_query = query
        for doc in self.documents:
            if not doc.filter_value:
                doc.build_filter_value()
        return [filter_documents(query, self.documents)]

    def _on_filter_results(self, msg: FilterResults) -> list[Command]:
        if msg.query != self.pending_query:
            logger.debug("Dropping stale filter results for %r", msg.query)
            return []
        self.pending_query = ""
        self.applied_query = msg.query
        # Entries discovered while the rescan ran were not in its snapshot.
        seen = {id(doc) for doc in msg.documents}
        late = [
            doc
            for doc in self.documents
            if id(doc) not in seen
            and filter_score(msg.query.lower(), doc.filter_value or doc.note.lower())
            >= FUZZY_SCORE_CUTOFF
        ]
        self.filtered = list(msg.documents) + late
        self.cursor = 0
        return []

    def _handle_filter_key(self, msg: KeyPressed) -> list[Command]:
        name = msg.name
        if name == "escape":
            return self._clear_filter()
        if name in _FILTER_COMMIT_KEYS:
            return self._commit_filter()
        if name == "backspace":
            self.filter_text = self.filter_text[:-1]
            return []
        if name == "space":
            self.filter_text += " "
            return []
        if len(name) == 1:
            self.filter_text += name
        return []

    # ── Navigation ───────────────────────────────────────────────────────

    def move_cursor(self, delta: int) -> None:
        """Move the selection; moving past either end is a no-op."""
        target = self.cursor + delta
        if 0 <= target < len(self.visible()):
            self.cursor = target

    def _handle_browse_key(self, msg: KeyPressed) -> list[Command]:
        name = msg.name
        count = len(self.visible())
        if name in ("j", "down"):
            self.move_cursor(1)
        elif name in ("k", "up"):
            self.move_cursor(-1)
        elif name in ("g", "home"):
            self.cursor = 0
        elif name in ("G", "end"):
            self.cursor = max(0, count - 1)
        elif name in ("pagedown", "ctrl+f"):
            self.cursor = max(0, min(self.cursor + self.per_page(), count - 1))
        elif name in ("pageup", "ctrl+b"):
            self.cursor = max(0, self.cursor - self.per_page())
        elif name == "/":
            return self._start_filtering()
        elif name == "escape" and self.filter_state != FilterState.BROWSING:
            return self._clear_filter()
        elif name in _OPEN_KEYS:
            doc = self.selected_document()
            if doc is not None and self.on_open is not None:
                return self.on_open(doc)
        return []

    # ── Update / view ────────────────────────────────────────────────────

    def update(self, msg: Message) -> list[Command]:
        """Apply one message to the listing and return follow-up commands."""
        if isinstance(msg, KeyPressed):
            if self.filter_state == FilterState.FILTERING:
                return self._handle_filter_key(msg)
            return self._handle_browse_key(msg)
        if isinstance(msg, FilterResults):
            return self._on_filter_results(msg)
        if isinstance(msg, SpinnerTick):
            return self._on_spinner_tick()
        if isinstance(msg, DiscoveryFinished):
            self.finish_discovery()
            return []
        if isinstance(msg, StatusTimeout) and msg.context == StatusContext.LISTING:
            self.status_message = ""
        return []

    def _scroll_offset(self) -> int:
        per_page = self.per_page()
        return (self.cursor // per_page) * per_page

    def view(self) -> Text:
        """Render the listing as Rich text."""
        docs = self.visible()
        lines: list[str] = []

        total = len(self.documents)
        if self.applied_query:
            count = f"{len(docs)}/{total}"
        else:
            count = f"{total} document{'s' if total != 1 else ''}"
        header = f"[bold {COLORS['accent']}]docshelf[/] [dim]({count})[/]"
        if self.should_spin():
            header += f" [{COLORS['pink']}]{SPINNER_FRAMES[self.spinner_frame]}[/]"
        lines.append(header)

        if self.filter_state == FilterState.FILTERING:
            lines.append(
                f"[{COLORS['yellow']}]Find:[/] {escape_rich_text(self.filter_text)}█"
            )
        elif self.applied_query:
            lines.append(f"[dim]Filter:[/] {escape_rich_text(self.applied_query)}")
        else:
            lines.append("")

        if self.notice:
            lines.append(f"[{COLORS['orange']}]{escape_rich_text(self.notice)}[/]")
        elif not docs:
            if self.loaded:
                empty = "Nothing matches your filter." if self.applied_query else "No files found."
                lines.append(f"[dim italic]{empty}[/]")
            else:
                lines.append("[dim italic]Looking for local files...[/]")
        else:
            offset = self._scroll_offset()
            note_width = max(1, (self.width or 80) - 20)
            for index in range(offset, min(offset + self.per_page(), len(docs))):
                doc = docs[index]
                note = escape_rich_text(truncate_text(doc.note, note_width))
                age = relative_time(doc.modtime)
                if index == self.cursor:
                    pink = COLORS["pink"]
                    lines.append(f"[{pink}]│[/] [bold {pink}]{note}[/]  [dim]{age}[/]")
                else:
                    lines.append(f"  {note}  [dim]{age}[/]")

        if self.status_message:
            lines.append(f"[{COLORS['green']}]{escape_rich_text(self.status_message)}[/]")
        lines.append("[dim]j/k move · enter open · / filter · r reload · q quit[/]")
        return Text.from_markup("\n".join(lines))


__all__ = [
    "FUZZY_SCORE_CUTOFF",
    "SPINNER_INTERVAL",
    "STATUS_MESSAGE_TIMEOUT",
    "ListView",
    "filter_documents",
    "filter_score",
    "rank_documents",
    "relative_time",
]
