"""Message dispatch loop: feeds messages to the controller and runs its commands.

Exactly one consumer drains the queue, so controller updates never
interleave. Commands run as tracked asyncio tasks and their results are
posted back onto the queue; completion order between commands is not
defined.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from docshelf.controller import AppController
from docshelf.messages import (
    HOST_REQUEST_KINDS,
    Command,
    ErrorOccurred,
    Message,
    MessageKind,
)

logger = logging.getLogger(__name__)

# How long shutdown waits for cancelled commands to unwind
SHUTDOWN_GRACE_SECONDS = 0.5

HostCallback = Callable[[], None]


class Dispatcher:
    """Single-consumer loop between the terminal host and the controller.

    Args:
        controller: The state machine receiving every non-host message.
        on_quit: Called when a command requests program exit.
        on_suspend: Called when a command requests suspend-to-background.
        on_clear: Called when the viewport must be fully repainted.
        on_change: Called after every update so the host can redraw.
    """

    def __init__(
        self,
        controller: AppController,
        *,
        on_quit: HostCallback | None = None,
        on_suspend: HostCallback | None = None,
        on_clear: HostCallback | None = None,
        on_change: HostCallback | None = None,
    ) -> None:
        self.controller = controller
        self._host_callbacks: dict[MessageKind, HostCallback | None] = {
            MessageKind.QUIT: on_quit,
            MessageKind.SUSPEND: on_suspend,
            MessageKind.CLEAR_VIEWPORT: on_clear,
        }
        self._on_change = on_change
        self._queue: asyncio.Queue[Message] = asyncio.Queue()
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._runner: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def pending_tasks(self) -> int:
        return len(self._background_tasks)

    def start(self) -> list[Command]:
        """Initialize the controller and launch its startup commands."""
        cmds = self.controller.init()
        self._launch(cmds)
        self._notify_change()
        return cmds

    def post(self, message: Message) -> None:
        """Enqueue a message from the host (key input, resize)."""
        if self._closed:
            return
        self._queue.put_nowait(message)

    def dispatch(self, message: Message) -> list[Command]:
        """Apply one message and launch the resulting commands."""
        if message.kind in HOST_REQUEST_KINDS:
            self._handle_host_request(message)
            return []
        cmds = self.controller.update(message)
        self._launch(cmds)
        self._notify_change()
        return cmds

    async def run(self) -> None:
        """Drain the queue until shutdown."""
        self._runner = asyncio.current_task()
        while not self._closed:
            message = await self._queue.get()
            try:
                self.dispatch(message)
            except Exception:
                logger.exception("Controller failed handling %s", message.kind.value)

    async def shutdown(self) -> None:
        """Stop the loop, cancel the running scan and outstanding commands."""
        self._closed = True
        self.controller.shutdown()
        pending = [task for task in self._background_tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            _, still_pending = await asyncio.wait(pending, timeout=SHUTDOWN_GRACE_SECONDS)
            for task in still_pending:
                logger.debug("Command did not cancel before shutdown: %r", task)
        self._background_tasks.clear()
        runner = self._runner
        self._runner = None
        if runner is not None and runner is not asyncio.current_task() and not runner.done():
            runner.cancel()

    # ── Internals ────────────────────────────────────────────────────────

    def _handle_host_request(self, message: Message) -> None:
        callback = self._host_callbacks.get(message.kind)
        logger.debug("Host request: %s", message.kind.value)
        if callback is not None:
            callback()

    def _notify_change(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def _launch(self, cmds: list[Command]) -> None:
        for cmd in cmds:
            self._track_task(self._run_command(cmd))

    async def _run_command(self, cmd: Command) -> None:
        try:
            result = await cmd()
        except Exception as exc:
            logger.error("Command %r failed: %s", cmd, exc, exc_info=exc)
            result = ErrorOccurred(exc)
        if result is not None:
            self.post(result)

    def _track_task(self, coro: Any) -> asyncio.Task[None]:
        """Create an asyncio task and track it to prevent garbage collection."""
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        task.add_done_callback(self._on_task_done)
        return task

    @staticmethod
    def _on_task_done(task: asyncio.Task[None]) -> None:
        """Log unhandled exceptions from background tasks."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Unhandled exception in background task: %s", exc, exc_info=exc)


__all__ = ["Dispatcher", "SHUTDOWN_GRACE_SECONDS"]
