"""Top-level state machine composing the listing and document views.

The controller owns all UI state. ``update()`` is called from the dispatch
loop only, one message at a time, and returns commands for the dispatcher
to run in the background; it never blocks and never awaits.
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

from rich.text import Text

from docshelf.action_messages import (
    build_actionable_error,
    build_actionable_warning,
    build_discovery_notice,
)
from docshelf.discovery import (
    CancellationToken,
    DiscoveryHandle,
    find_local_files,
    find_next_local_file,
)
from docshelf.errors import ContentReadError, DiscoveryError, FatalInitError
from docshelf.listing import ListView
from docshelf.messages import (
    Command,
    ContentLoaded,
    DiscoveryFinished,
    DiscoveryStarted,
    EntryFound,
    ErrorOccurred,
    KeyPressed,
    Message,
    MessageKind,
    Resized,
    quit_command,
    suspend_command,
)
from docshelf.models import AppConfig, ApplicationState, Document, FilterState
from docshelf.pager import DocumentView, load_document
from docshelf.services import AppServices, build_default_app_services
from docshelf.textutil import indent, strip_absolute_path
from docshelf.theme import COLORS, escape_rich_text

logger = logging.getLogger(__name__)

_ALL_STATES = frozenset(ApplicationState)


@dataclass(frozen=True, slots=True)
class KeyBinding:
    """A global key mapped to a controller action in the given states."""

    key: str
    action: str
    description: str
    states: frozenset[ApplicationState] = _ALL_STATES


# Consulted before view-local handling. An action that returns None
# falls through to the active view.
GLOBAL_KEY_BINDINGS: Mapping[str, KeyBinding] = MappingProxyType(
    {
        binding.key: binding
        for binding in (
            KeyBinding("q", "quit", "Quit"),
            KeyBinding("ctrl+c", "quit", "Quit"),
            KeyBinding("ctrl+z", "suspend", "Suspend"),
            KeyBinding(
                "r", "reload", "Reload", frozenset({ApplicationState.LIST_ACTIVE})
            ),
            KeyBinding("escape", "back", "Back"),
            KeyBinding("left", "back", "Back"),
            KeyBinding("h", "back", "Back"),
            KeyBinding("delete", "back", "Back"),
        )
    }
)

# Keys that still reach the controller while the listing is in FILTERING mode
_FILTERING_PASSTHROUGH = frozenset({"ctrl+c"})

Handler = Callable[[Any], list[Command]]


class AppController:
    """State machine over ``ApplicationState``.

    Args:
        config: Shared configuration, passed by reference to every view.
        services: Collaborators (renderer, walker, ...); defaults if omitted.
        content: Literal document text to show instead of a path.
        cwd: Directory notes are made relative to until discovery reports one.
    """

    def __init__(
        self,
        config: AppConfig,
        services: AppServices | None = None,
        content: str | None = None,
        cwd: Path | None = None,
    ) -> None:
        self.config = config
        self.services = services or build_default_app_services()
        self.content = content
        self.cwd = cwd or Path(os.getcwd())
        self.state = ApplicationState.LIST_ACTIVE
        self.fatal_error: FatalInitError | None = None
        self.run_id = 0
        self.token = CancellationToken()
        self.handle: DiscoveryHandle | None = None
        self.pending_document: Document | None = None
        self.list_view = ListView(config, on_open=self.open_document)
        self.pager = DocumentView(config, self.services)

        self._actions: dict[str, Callable[[], list[Command] | None]] = {
            "quit": self._action_quit,
            "suspend": self._action_suspend,
            "reload": self._action_reload,
            "back": self._action_back,
        }
        # (state, kind) -> handler; a None state applies in every state.
        self._transitions: dict[tuple[ApplicationState | None, MessageKind], Handler] = {
            (None, MessageKind.KEY): self._on_key,
            (None, MessageKind.RESIZE): self._on_resize,
            (None, MessageKind.DISCOVERY_STARTED): self._on_discovery_started,
            (None, MessageKind.ENTRY_FOUND): self._on_entry_found,
            (None, MessageKind.DISCOVERY_FINISHED): self._on_discovery_finished,
            (None, MessageKind.CONTENT_LOADED): self._on_content_loaded,
            (None, MessageKind.FILTER_RESULTS): self.list_view.update,
            (None, MessageKind.STATUS_TIMEOUT): self._on_status_timeout,
            (None, MessageKind.ERROR): self._on_error,
            (ApplicationState.LIST_ACTIVE, MessageKind.SPINNER_TICK): self.list_view.update,
            (ApplicationState.DOCUMENT_ACTIVE, MessageKind.SPINNER_TICK): self._stop_spinner,
            (ApplicationState.DOCUMENT_ACTIVE, MessageKind.RENDER_FINISHED): self.pager.update,
        }

    # ── Startup ──────────────────────────────────────────────────────────

    def init(self) -> list[Command]:
        """Decide the initial state and return the startup commands."""
        cmds: list[Command] = []
        if self.config.config_defaulted:
            cmds += self.list_view.show_status("Config file unreadable; using defaults")

        if self.content is not None:
            logger.info("showing literal content (%d chars)", len(self.content))
            doc = Document(body=self.content)
            return cmds + self._navigate_to_document(doc)

        path = self.services.path_expander.expand(self.config.path) if self.config.path else ""
        # Discovery (now or after navigating back) resolves the expanded path.
        self.config.path = path
        if path:
            try:
                st = os.stat(path)
            except OSError as exc:
                self.fatal_error = FatalInitError(path, exc.strerror or str(exc))
                logger.error("%s", self.fatal_error)
                return []
            if not stat.S_ISDIR(st.st_mode):
                local_path = Path(path).resolve()
                doc = Document(
                    local_path=local_path,
                    note=strip_absolute_path(local_path, self.cwd),
                    modtime=datetime.fromtimestamp(st.st_mtime),
                )
                logger.info("showing file %s", local_path)
                self.state = ApplicationState.DOCUMENT_ACTIVE
                self.pending_document = doc
                self.pager.set_document(doc)
                return cmds + [load_document(doc)]
        return cmds + self._start_discovery()

    def _start_discovery(self) -> list[Command]:
        self.run_id += 1
        self.token = CancellationToken()
        self.handle = None
        logger.debug("starting discovery run %d", self.run_id)
        return [
            find_local_files(self.config, self.run_id, self.token, walker=self.services.walker),
            *self.list_view.begin_discovery(),
        ]

    def shutdown(self) -> None:
        """Cancel the running scan, if any."""
        self.token.cancel()

    # ── Dispatch ─────────────────────────────────────────────────────────

    def update(self, msg: Message) -> list[Command]:
        """Apply one message and return the commands it produced."""
        if self.fatal_error is not None:
            if isinstance(msg, KeyPressed):
                return [quit_command()]
            return []
        handler = self._transitions.get((self.state, msg.kind)) or self._transitions.get(
            (None, msg.kind)
        )
        if handler is None:
            logger.debug("no transition for %s in %s", msg.kind.value, self.state.value)
            return []
        return handler(msg)

    def _on_key(self, msg: KeyPressed) -> list[Command]:
        name = msg.name
        filtering = (
            self.state == ApplicationState.LIST_ACTIVE
            and self.list_view.filter_state == FilterState.FILTERING
        )
        if not filtering or name in _FILTERING_PASSTHROUGH:
            binding = GLOBAL_KEY_BINDINGS.get(name)
            if binding is not None and self.state in binding.states:
                cmds = self._actions[binding.action]()
                if cmds is not None:
                    return cmds
        if self.state == ApplicationState.DOCUMENT_ACTIVE:
            return self.pager.update(msg)
        return self.list_view.update(msg)

    def _on_resize(self, msg: Resized) -> list[Command]:
        self.list_view.set_size(msg.width, msg.height)
        cmds = self.pager.set_size(msg.width, msg.height)
        if self.state == ApplicationState.LIST_ACTIVE:
            cmds += self.list_view.start_spinner()
        return cmds

    def _on_status_timeout(self, msg: Message) -> list[Command]:
        return self.list_view.update(msg) + self.pager.update(msg)

    def _stop_spinner(self, msg: Message) -> list[Command]:
        self.list_view.spinner_running = False
        return []

    # ── Discovery ────────────────────────────────────────────────────────

    def _on_discovery_started(self, msg: DiscoveryStarted) -> list[Command]:
        if msg.run_id != self.run_id:
            logger.debug("cancelling superseded discovery run %d", msg.run_id)
            msg.handle.cancel()
            return []
        self.cwd = msg.cwd
        self.handle = msg.handle
        return [find_next_local_file(msg.handle, msg.run_id)]

    def _on_entry_found(self, msg: EntryFound) -> list[Command]:
        if msg.run_id != self.run_id or self.handle is None:
            logger.debug("dropping entry from superseded run %d", msg.run_id)
            return []
        self.list_view.add_document(msg.entry.to_document(self.cwd))
        return [find_next_local_file(self.handle, self.run_id)]

    def _on_discovery_finished(self, msg: DiscoveryFinished) -> list[Command]:
        if msg.run_id != self.run_id:
            return []
        self.list_view.update(msg)
        logger.info("discovery run %d found %d files", msg.run_id, len(self.list_view.documents))
        return self.list_view.show_status(build_discovery_notice(len(self.list_view.documents)))

    # ── Navigation ───────────────────────────────────────────────────────

    def open_document(self, doc: Document) -> list[Command]:
        """Open ``doc`` from the listing, loading its body first if needed."""
        if doc.body is not None:
            return self._navigate_to_document(doc)
        self.pending_document = doc
        self.list_view.loading_document = True
        return [load_document(doc), *self.list_view.start_spinner()]

    def _on_content_loaded(self, msg: ContentLoaded) -> list[Command]:
        if msg.document is not self.pending_document:
            logger.debug("ignoring content for abandoned load of %s", msg.document.title)
            return []
        return self._navigate_to_document(msg.document)

    def _navigate_to_document(self, doc: Document) -> list[Command]:
        self.state = ApplicationState.DOCUMENT_ACTIVE
        self.pending_document = None
        self.list_view.loading_document = False
        return self.pager.set_document(doc)

    def _navigate_to_list(self) -> list[Command]:
        self.state = ApplicationState.LIST_ACTIVE
        self.pending_document = None
        self.list_view.loading_document = False
        cmds = self.pager.unload()
        if self.run_id == 0:
            # Launched on a file or literal content; list its directory now.
            return cmds + self._start_discovery()
        return cmds + self.list_view.start_spinner()

    # ── Actions ──────────────────────────────────────────────────────────

    def _action_quit(self) -> list[Command]:
        self.shutdown()
        return [quit_command()]

    def _action_suspend(self) -> list[Command]:
        return [suspend_command()]

    def _action_reload(self) -> list[Command] | None:
        if self.list_view.loading_document:
            return None
        logger.info("reloading file listing")
        self.token.cancel()
        self.list_view.reset()
        return self._start_discovery()

    def _action_back(self) -> list[Command] | None:
        if self.state == ApplicationState.DOCUMENT_ACTIVE:
            return self._navigate_to_list()
        if self.pending_document is not None:
            logger.debug("abandoning load of %s", self.pending_document.title)
            self.pending_document = None
            self.list_view.loading_document = False
            return []
        return None

    # ── Errors ───────────────────────────────────────────────────────────

    def _on_error(self, msg: ErrorOccurred) -> list[Command]:
        error = msg.error
        if isinstance(error, DiscoveryError):
            if msg.run_id is not None and msg.run_id != self.run_id:
                logger.debug("dropping error from superseded run %d: %s", msg.run_id, error)
                return []
            notice = build_actionable_warning(
                "No files listed",
                why=error.reason,
                next_step="press r to retry or start docshelf in another directory",
            )
            return self.list_view.discovery_failed(notice)
        if isinstance(error, ContentReadError):
            doc = self.pending_document
            if doc is None or (msg.document is not None and msg.document is not doc):
                logger.debug("read error for abandoned load: %s", error)
                if doc is None and self.state == ApplicationState.LIST_ACTIVE:
                    return self.list_view.show_status(str(error))
                return []
            self.state = ApplicationState.DOCUMENT_ACTIVE
            self.pending_document = None
            self.list_view.loading_document = False
            if self.pager.current_document is not doc:
                self.pager.set_document(doc)
            self.pager.show_error(error)
            return []
        logger.error("background task failed: %s", error)
        if self.state == ApplicationState.DOCUMENT_ACTIVE:
            return self.pager.show_status(f"Error: {error}")
        return self.list_view.show_status(f"Error: {error}")

    # ── View ─────────────────────────────────────────────────────────────

    def _error_view(self, error: FatalInitError) -> Text:
        message = build_actionable_error(
            f"open {error.path}",
            why=error.reason,
            next_step="press any key to exit",
        )
        return Text.from_markup(
            f"\n  [bold on {COLORS['error_bg']}] ERROR [/]\n\n"
            + escape_rich_text(indent(message, 2))
        )

    def view(self) -> Text:
        """Render the active screen."""
        if self.fatal_error is not None:
            return self._error_view(self.fatal_error)
        if self.state == ApplicationState.DOCUMENT_ACTIVE:
            return self.pager.view()
        return self.list_view.view()


__all__ = [
    "GLOBAL_KEY_BINDINGS",
    "AppController",
    "KeyBinding",
]
