"""Document view: one loaded document, its rendered lines and a scrolling viewport."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from rich.text import Text

from docshelf.action_messages import build_actionable_error
from docshelf.errors import ContentReadError, RenderError
from docshelf.messages import (
    Command,
    ContentLoaded,
    ErrorOccurred,
    KeyPressed,
    Message,
    RenderFinished,
    StatusContext,
    StatusTimeout,
    after,
    clear_viewport_command,
)
from docshelf.models import DEFAULT_WIDTH, MAX_WIDTH, AppConfig, Document
from docshelf.services import AppServices
from docshelf.textutil import wrap_code_block
from docshelf.theme import COLORS, escape_rich_text, truncate_text

logger = logging.getLogger(__name__)

STATUS_MESSAGE_TIMEOUT = 3.0
PLACEHOLDER = "Rendering…"

# Rows taken by the status bar at the bottom of the pager
_STATUS_BAR_ROWS = 1

HELP_LINES: tuple[tuple[str, str], ...] = (
    ("j/k ↓/↑", "scroll a line"),
    ("d/u", "half page down/up"),
    ("f/b pgdn/pgup", "page down/up"),
    ("g/G home/end", "top/bottom"),
    ("esc ← h", "back to files"),
    ("?", "toggle help"),
    ("q", "quit"),
)


def read_document_body(path: Path) -> str:
    """Read a document body as UTF-8 text (undecodable bytes are replaced).

    Raises:
        ContentReadError: the file cannot be read.
    """
    try:
        return path.read_bytes().decode("utf-8", errors="replace")
    except OSError as exc:
        raise ContentReadError(path, exc.strerror or str(exc)) from exc


def load_document(doc: Document) -> Command:
    """Command that reads ``doc``'s body and yields ``ContentLoaded``."""

    async def _command() -> Message:
        if doc.local_path is None:
            return ErrorOccurred(
                ContentReadError("<none>", "document has no path"), document=doc
            )
        try:
            body = await asyncio.to_thread(read_document_body, doc.local_path)
        except ContentReadError as exc:
            logger.error("unable to read file: %s", exc)
            return ErrorOccurred(exc, document=doc)
        doc.body = body
        return ContentLoaded(document=doc)

    return _command


def prepare_body(doc: Document, body: str, extensions: list[str]) -> str:
    """Wrap non-markdown documents in a fenced code block for highlighting."""
    if doc.is_markdown(extensions) or doc.local_path is None:
        return body
    language = doc.local_path.suffix.lstrip(".")
    return wrap_code_block(body, language)


def render_document(
    doc: Document,
    body: str,
    *,
    config: AppConfig,
    services: AppServices,
    width: int,
) -> Command:
    """Command that renders ``body`` on a worker thread and yields ``RenderFinished``.

    Render failures degrade to the raw body split into lines.
    """
    prepared = prepare_body(doc, body, config.markdown_extensions)

    def _render() -> list[str]:
        if not config.glamour_enabled:
            return body.split("\n")
        return services.renderer.render(
            prepared,
            style=config.style,
            width=width,
            preserve_new_lines=config.preserve_new_lines,
        )

    async def _command() -> Message:
        try:
            lines = await asyncio.to_thread(_render)
        except Exception as exc:
            logger.warning(
                "Rendering failed for %s, showing raw body: %s",
                doc.title,
                exc,
                exc_info=not isinstance(exc, RenderError),
            )
            return RenderFinished(
                document=doc, lines=tuple(body.split("\n")), degraded=True, width=width
            )
        return RenderFinished(document=doc, lines=tuple(lines), width=width)

    return _command


class DocumentView:
    """State of the single-document pager."""

    def __init__(self, config: AppConfig, services: AppServices) -> None:
        self.config = config
        self.services = services
        self.current_document: Document | None = None
        self.rendered: list[str] | None = None
        self.error: Exception | None = None
        self.y_offset = 0
        self.width = 0
        self.height = 0
        self.show_help = False
        self.full_repaint = False
        self.status_message = ""

    def set_size(self, width: int, height: int) -> list[Command]:
        """Record the viewport size; re-render when the wrap width changes.

        The previous rendering stays visible until the new one arrives.
        """
        old_width = self.render_width()
        self.width = width
        self.height = height
        self._clamp_offset()
        doc = self.current_document
        if doc is None or doc.body is None or self.render_width() == old_width:
            return []
        doc.rendered = None
        return [self.render_command(doc)]

    def render_width(self) -> int:
        """Word-wrap width: configured width, else the terminal width capped at MAX_WIDTH."""
        if self.config.width > 0:
            return self.config.width
        if self.width <= 0:
            return DEFAULT_WIDTH
        return min(self.width, MAX_WIDTH)

    def viewport_height(self) -> int:
        return max(1, self.height - _STATUS_BAR_ROWS)

    def _max_offset(self) -> int:
        return max(0, len(self.rendered or ()) - self.viewport_height())

    def _clamp_offset(self) -> None:
        self.y_offset = max(0, min(self.y_offset, self._max_offset()))

    # ── Lifecycle ────────────────────────────────────────────────────────

    def set_document(self, doc: Document) -> list[Command]:
        """Make ``doc`` current and render it, reusing a cached rendering."""
        self.current_document = doc
        self.error = None
        self.y_offset = 0
        if doc.rendered is not None:
            self.rendered = list(doc.rendered)
            if doc.body is None or doc.rendered_width == self.render_width():
                return []
            # Wrapped for a terminal size that has since changed.
            return [self.render_command(doc)]
        self.rendered = None
        if doc.body is None:
            return []
        return [self.render_command(doc)]

    def render_command(self, doc: Document) -> Command:
        body = doc.body or ""
        stripped = self.services.frontmatter.strip(body.encode("utf-8")).decode(
            "utf-8", errors="replace"
        )
        return render_document(
            doc,
            stripped,
            config=self.config,
            services=self.services,
            width=self.render_width(),
        )

    def show_error(self, error: Exception) -> None:
        self.error = error
        self.rendered = None

    def unload(self) -> list[Command]:
        """Forget the current document; clear the viewport after fast-path scrolling."""
        cmds: list[Command] = []
        if self.full_repaint:
            cmds.append(clear_viewport_command())
        self.current_document = None
        self.rendered = None
        self.error = None
        self.y_offset = 0
        self.show_help = False
        self.full_repaint = False
        self.status_message = ""
        return cmds

    def show_status(self, message: str) -> list[Command]:
        self.status_message = message
        return [after(STATUS_MESSAGE_TIMEOUT, StatusTimeout(StatusContext.PAGER))]

    # ── Messages ─────────────────────────────────────────────────────────

    def _on_render_finished(self, msg: RenderFinished) -> list[Command]:
        if msg.document is not self.current_document:
            logger.debug("Dropping render for non-current document %s", msg.document.title)
            return []
        msg.document.rendered = list(msg.lines)
        msg.document.rendered_width = msg.width
        self.rendered = list(msg.lines)
        self._clamp_offset()
        if msg.degraded:
            return self.show_status("Couldn't render; showing raw text")
        return []

    def _scroll(self, delta: int) -> None:
        before = self.y_offset
        self.y_offset += delta
        self._clamp_offset()
        if self.config.high_performance_pager and self.y_offset != before:
            self.full_repaint = True

    def _handle_key(self, msg: KeyPressed) -> list[Command]:
        name = msg.name
        page = self.viewport_height()
        if name in ("j", "down"):
            self._scroll(1)
        elif name in ("k", "up"):
            self._scroll(-1)
        elif name in ("d", "ctrl+d"):
            self._scroll(page // 2)
        elif name in ("u", "ctrl+u"):
            self._scroll(-(page // 2))
        elif name in ("f", "pagedown", "space"):
            self._scroll(page)
        elif name in ("b", "pageup"):
            self._scroll(-page)
        elif name in ("g", "home"):
            self._scroll(-self.y_offset)
        elif name in ("G", "end"):
            self._scroll(self._max_offset() - self.y_offset)
        elif name == "?":
            self.show_help = not self.show_help
        return []

    def update(self, msg: Message) -> list[Command]:
        if isinstance(msg, KeyPressed):
            return self._handle_key(msg)
        if isinstance(msg, RenderFinished):
            return self._on_render_finished(msg)
        if isinstance(msg, StatusTimeout) and msg.context == StatusContext.PAGER:
            self.status_message = ""
        return []

    # ── View ─────────────────────────────────────────────────────────────

    def _content_lines(self) -> list[str]:
        if self.rendered is None:
            return [PLACEHOLDER]
        visible = self.rendered[self.y_offset : self.y_offset + self.viewport_height()]
        if not self.config.show_line_numbers:
            return visible
        digits = len(str(len(self.rendered)))
        return [
            f"\x1b[2m{self.y_offset + i + 1:>{digits}}\x1b[0m {line}"
            for i, line in enumerate(visible)
        ]

    def _status_bar(self) -> Text:
        doc = self.current_document
        title = doc.title if doc is not None else ""
        total = len(self.rendered or ())
        if total <= self.viewport_height():
            percent = 100
        else:
            percent = int(100 * (self.y_offset + self.viewport_height()) / total)
        right = f" {min(percent, 100):3d}% "
        note_width = max(1, (self.width or DEFAULT_WIDTH) - len(right) - 12)
        left = f" docshelf  {escape_rich_text(truncate_text(title, note_width))}"
        if self.status_message:
            left = f" {escape_rich_text(self.status_message)}"
        return Text.from_markup(f"[on {COLORS['muted']}]{left}[/][bold]{right}[/]")

    def view(self) -> Text:
        if self.error is not None:
            message = build_actionable_error(
                "open this document",
                why=str(self.error),
                next_step="press esc to return to the file list",
            )
            return Text.from_markup(
                f"\n   [bold on {COLORS['error_bg']}] ERROR [/]\n\n"
                + "\n".join(f"   {escape_rich_text(line)}" for line in message.split("\n"))
            )
        if self.show_help:
            help_text = "\n".join(
                f"  [{COLORS['accent']}]{keys:<16}[/] {desc}" for keys, desc in HELP_LINES
            )
            body = Text.from_markup(help_text)
        else:
            body = Text.from_ansi("\n".join(self._content_lines()))
        body.append("\n")
        body.append_text(self._status_bar())
        return body


__all__ = [
    "HELP_LINES",
    "PLACEHOLDER",
    "DocumentView",
    "load_document",
    "prepare_body",
    "read_document_body",
    "render_document",
]
