"""Textual host for the docshelf controller.

The app is a thin terminal boundary: it turns key and resize events into
messages for the dispatcher and repaints ``controller.view()`` whenever the
model changes. No application state lives here.
"""

from __future__ import annotations

import asyncio
import logging

from textual import events
from textual.app import App, ComposeResult, SuspendNotSupported
from textual.css.query import NoMatches
from textual.widgets import Static

from docshelf.controller import AppController
from docshelf.dispatcher import Dispatcher
from docshelf.messages import KeyPressed, Resized
from docshelf.models import AppConfig
from docshelf.services import AppServices
from docshelf.ui_constants import APP_CSS

logger = logging.getLogger(__name__)


class DocShelfApp(App, inherit_bindings=False):
    """A TUI application to browse and read local documents."""

    TITLE = "docshelf"

    CSS = APP_CSS

    def __init__(
        self,
        config: AppConfig,
        services: AppServices | None = None,
        content: str | None = None,
    ) -> None:
        super().__init__()
        self._config = config
        self.controller = AppController(config, services=services, content=content)
        self.dispatcher = Dispatcher(
            self.controller,
            on_quit=self.exit,
            on_suspend=self._suspend,
            on_clear=self._clear_viewport,
            on_change=self._refresh_view,
        )
        self._dispatch_task: asyncio.Task[None] | None = None

    def compose(self) -> ComposeResult:
        yield Static("", id="viewport")

    def on_mount(self) -> None:
        """Size the views, start the dispatch loop and run startup commands."""
        self.dispatcher.dispatch(Resized(self.size.width, self.size.height))
        self._dispatch_task = asyncio.create_task(self.dispatcher.run())
        self.dispatcher.start()
        logger.debug(
            "App mounted: state=%s size=%dx%d",
            self.controller.state.value,
            self.size.width,
            self.size.height,
        )

    async def on_unmount(self) -> None:
        """Cancel discovery and any outstanding background commands."""
        await self.dispatcher.shutdown()
        task = self._dispatch_task
        self._dispatch_task = None
        if task is not None and not task.done():
            task.cancel()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self.dispatcher.post(KeyPressed(event.key, event.character))

    def on_resize(self, event: events.Resize) -> None:
        self.dispatcher.post(Resized(event.size.width, event.size.height))

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        if self._config.enable_mouse:
            self.dispatcher.post(KeyPressed("down"))

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        if self._config.enable_mouse:
            self.dispatcher.post(KeyPressed("up"))

    # ── Host requests ────────────────────────────────────────────────────

    def _refresh_view(self) -> None:
        try:
            viewport = self.query_one("#viewport", Static)
        except NoMatches:
            return
        viewport.update(self.controller.view())

    def _clear_viewport(self) -> None:
        self.refresh(repaint=True, layout=True)

    def _suspend(self) -> None:
        try:
            self.action_suspend_process()
        except SuspendNotSupported:
            logger.warning("Suspend is not supported by this terminal driver")


__all__ = ["DocShelfApp"]
