"""Background discovery of candidate documents.

The pipeline is pull-based: each ``DiscoveryHandle.next_entry()`` call
advances the directory walker by exactly one entry on a worker thread, so
the producer never runs ahead of the consumer by more than the entry being
delivered. A ``CancellationToken`` is checked before every emission; reload
and shutdown cancel it so an abandoned scan does not keep a thread busy.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

from docshelf.errors import DiscoveryError
from docshelf.messages import (
    Command,
    DiscoveryFinished,
    DiscoveryStarted,
    EntryFound,
    ErrorOccurred,
    Message,
)
from docshelf.models import AppConfig, DiscoveredEntry
from docshelf.textutil import normalize_extensions
from docshelf.walker import walk_files

logger = logging.getLogger(__name__)

WalkerFn = Callable[..., Iterator[DiscoveredEntry]]


class CancellationToken:
    """Thread-safe one-way cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class DiscoveryHandle:
    """Single-consumer handle over one running scan.

    ``next_entry()`` returns the next entry, or ``None`` once the scan is
    exhausted or cancelled. Pulling after the end keeps returning ``None``.
    """

    def __init__(self, entries: Iterator[DiscoveredEntry], token: CancellationToken) -> None:
        self._entries = entries
        self._token = token
        self._finished = False
        self._lock = threading.Lock()
        self.emitted = 0

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def finished(self) -> bool:
        return self._finished

    def cancel(self) -> None:
        """Signal the producer to stop; the next pull reports finished."""
        self._token.cancel()

    def _advance(self) -> DiscoveredEntry | None:
        with self._lock:
            if self._finished:
                return None
            if self._token.cancelled:
                self._close()
                return None
            try:
                entry = next(self._entries)
            except StopIteration:
                self._close()
                return None
            if self._token.cancelled:
                self._close()
                return None
            self.emitted += 1
            return entry

    def _close(self) -> None:
        self._finished = True
        close = getattr(self._entries, "close", None)
        if close is not None:
            close()

    async def next_entry(self) -> DiscoveredEntry | None:
        """Pull the next discovered entry without blocking the event loop."""
        if self._finished:
            return None
        return await asyncio.to_thread(self._advance)


def resolve_search_root(path: str) -> Path:
    """Resolve the directory a scan should start from.

    An empty path means the current working directory; a path naming a
    regular file scans that file's directory.
    """
    if not path:
        return Path(os.getcwd())
    try:
        target = Path(path)
        if target.is_dir():
            return target.resolve()
        if target.exists():
            return target.resolve().parent
    except OSError as exc:
        raise DiscoveryError(path, exc.strerror or str(exc)) from exc
    raise DiscoveryError(path, "no such file or directory")


def start_discovery(
    root: Path,
    extensions: Sequence[str],
    *,
    show_all_files: bool = False,
    ignore_patterns: Sequence[str] = (),
    token: CancellationToken | None = None,
    walker: WalkerFn = walk_files,
) -> DiscoveryHandle:
    """Start scanning ``root`` and return a handle to pull entries from.

    Raises:
        DiscoveryError: ``root`` is missing, not a directory, or unreadable.
    """
    try:
        if not root.is_dir():
            raise DiscoveryError(root, "not a directory")
    except OSError as exc:
        raise DiscoveryError(root, exc.strerror or str(exc)) from exc
    if not os.access(root, os.R_OK | os.X_OK):
        raise DiscoveryError(root, "permission denied")

    token = token or CancellationToken()
    entries = walker(
        root,
        normalize_extensions(extensions),
        show_all_files=show_all_files,
        ignore_patterns=ignore_patterns,
        token=token,
    )
    logger.debug(
        "discovery started: root=%s all_files=%s extensions=%s",
        root,
        show_all_files,
        list(extensions),
    )
    return DiscoveryHandle(entries, token)


def find_local_files(
    config: AppConfig,
    run_id: int,
    token: CancellationToken,
    *,
    walker: WalkerFn = walk_files,
) -> Command:
    """Command that starts a scan and yields ``DiscoveryStarted`` or an error."""

    async def _command() -> Message:
        logger.info("find_local_files run=%d", run_id)
        try:
            cwd = await asyncio.to_thread(resolve_search_root, config.path)
            handle = await asyncio.to_thread(
                start_discovery,
                cwd,
                config.markdown_extensions,
                show_all_files=config.show_all_files,
                ignore_patterns=config.ignore_patterns,
                token=token,
                walker=walker,
            )
        except DiscoveryError as exc:
            logger.error("error finding local files: %s", exc)
            return ErrorOccurred(exc, run_id=run_id)
        logger.debug("local directory is %s", cwd)
        return DiscoveryStarted(run_id=run_id, cwd=cwd, handle=handle)

    return _command


def find_next_local_file(handle: DiscoveryHandle, run_id: int) -> Command:
    """Command that pulls one entry, yielding ``EntryFound`` or ``DiscoveryFinished``."""

    async def _command() -> Message | None:
        already_finished = handle.finished
        entry = await handle.next_entry()
        if entry is not None:
            return EntryFound(run_id=run_id, entry=entry)
        if already_finished:
            # DiscoveryFinished was already delivered for this handle.
            return None
        logger.debug("local file search finished: run=%d found=%d", run_id, handle.emitted)
        return DiscoveryFinished(run_id=run_id)

    return _command


__all__ = [
    "CancellationToken",
    "DiscoveryHandle",
    "WalkerFn",
    "find_local_files",
    "find_next_local_file",
    "resolve_search_root",
    "start_discovery",
]
