"""Shared test fixtures for docshelf tests."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from docshelf.messages import Command, Message, Timer
from docshelf.models import AppConfig, Document
from docshelf.services import AppServices, build_default_app_services

# ── Factories ────────────────────────────────────────────────────────────────


@pytest.fixture
def make_document():
    """Factory fixture for creating Document stubs with sensible defaults."""

    def _make(
        note: str = "notes/readme.md",
        local_path: Path | None = None,
        body: str | None = None,
        modtime: datetime | None = None,
    ) -> Document:
        if local_path is None:
            local_path = Path("/tmp/docshelf-tests") / note
        return Document(
            local_path=local_path,
            body=body,
            note=note,
            modtime=modtime or datetime(2024, 1, 15, 12, 0, 0),
        )

    return _make


@pytest.fixture
def make_config():
    """Factory fixture for creating AppConfig with optional overrides."""

    def _make(**kwargs: Any) -> AppConfig:
        return AppConfig(**kwargs)

    return _make


class FakeRenderer:
    """Renderer double returning the body lines prefixed with a marker."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    def render(
        self,
        body: str,
        *,
        style: str,
        width: int,
        preserve_new_lines: bool,
    ) -> list[str]:
        self.calls.append(
            {
                "body": body,
                "style": style,
                "width": width,
                "preserve_new_lines": preserve_new_lines,
            }
        )
        return [f"R:{line}" for line in body.split("\n")]


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def services(fake_renderer: FakeRenderer) -> AppServices:
    """Default services with a recording renderer instead of Rich."""
    defaults = build_default_app_services()
    defaults.renderer = fake_renderer
    return defaults


@pytest.fixture
def doc_tree(tmp_path: Path) -> Path:
    """A small tree: three markdown files, one text file and a hidden dir."""
    (tmp_path / "a.md").write_text("# Alpha\n\nfirst\n", encoding="utf-8")
    (tmp_path / "b.md").write_text("# Beta\n", encoding="utf-8")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "c.md").write_text("---\ntitle: c\n---\n# Gamma\n", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("plain text\n", encoding="utf-8")
    hidden = tmp_path / ".hidden"
    hidden.mkdir()
    (hidden / "secret.md").write_text("# Secret\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def no_git() -> Iterator[MagicMock]:
    """Walk without consulting git, so results do not depend on the host."""
    with patch("docshelf.walker.load_gitignore_matcher", return_value=None) as mock:
        yield mock


@pytest.fixture
def chdir_tmp(tmp_path: Path) -> Iterator[Path]:
    """Run the test with ``tmp_path`` as the working directory."""
    previous = os.getcwd()
    os.chdir(tmp_path)
    try:
        yield tmp_path
    finally:
        os.chdir(previous)


# ── Command helpers ──────────────────────────────────────────────────────────


async def run_commands(cmds: list[Command], *, skip_timers: bool = True) -> list[Message]:
    """Await every command and collect the messages they yield.

    Timers (spinner ticks, status timeouts) are skipped by default so tests
    do not sleep.
    """
    results: list[Message] = []
    for cmd in cmds:
        if skip_timers and isinstance(cmd, Timer):
            continue
        msg = await cmd()
        if msg is not None:
            results.append(msg)
    return results


async def settle(controller: Any, cmds: list[Command], *, limit: int = 500) -> list[Message]:
    """Feed command results back into ``controller`` until nothing is left.

    Returns every message delivered, in order. Timers are skipped.
    """
    delivered: list[Message] = []
    queue = list(cmds)
    steps = 0
    while queue:
        steps += 1
        if steps > limit:
            raise AssertionError("controller did not settle")
        cmd = queue.pop(0)
        if isinstance(cmd, Timer):
            continue
        msg = await cmd()
        if msg is None:
            continue
        delivered.append(msg)
        queue.extend(controller.update(msg))
    await asyncio.sleep(0)
    return delivered


@pytest.fixture
def run_cmds():
    """Expose ``run_commands`` to tests."""
    return run_commands


@pytest.fixture
def drive():
    """Expose ``settle`` to tests."""
    return settle
