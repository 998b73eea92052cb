"""Tests for the directory walker and the discovery pipeline."""

from __future__ import annotations

import os
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from docshelf.discovery import (
    CancellationToken,
    DiscoveryHandle,
    find_local_files,
    find_next_local_file,
    resolve_search_root,
    start_discovery,
)
from docshelf.errors import DiscoveryError
from docshelf.messages import DiscoveryFinished, DiscoveryStarted, EntryFound, ErrorOccurred
from docshelf.models import DEFAULT_MARKDOWN_EXTENSIONS, AppConfig, DiscoveredEntry
from docshelf.walker import GitIgnoreMatcher, load_gitignore_matcher, walk_files

MD_PATTERNS = ["*.md", "*.markdown"]


def _names(entries, root: Path) -> list[str]:
    return [str(e.path.relative_to(root.resolve())) for e in entries]


class TestWalkFiles:
    def test_yields_markdown_in_sorted_depth_first_order(self, doc_tree: Path, no_git):
        entries = list(walk_files(doc_tree, MD_PATTERNS))
        assert _names(entries, doc_tree) == ["a.md", "b.md", os.path.join("sub", "c.md")]

    def test_entries_carry_modtime(self, doc_tree: Path, no_git):
        entries = list(walk_files(doc_tree, MD_PATTERNS))
        assert all(isinstance(e.modtime, datetime) for e in entries)

    def test_show_all_files_includes_hidden_dirs(self, doc_tree: Path, no_git):
        entries = list(walk_files(doc_tree, MD_PATTERNS, show_all_files=True))
        assert os.path.join(".hidden", "secret.md") in _names(entries, doc_tree)
        no_git.assert_not_called()

    def test_ignore_patterns_prune_directories(self, doc_tree: Path, no_git):
        vendored = doc_tree / "node_modules" / "pkg"
        vendored.mkdir(parents=True)
        (vendored / "README.md").write_text("# vendored")

        entries = list(walk_files(doc_tree, MD_PATTERNS, ignore_patterns=["node_modules"]))
        assert all("node_modules" not in str(e.path) for e in entries)

    def test_pattern_match_is_case_insensitive(self, tmp_path: Path, no_git):
        (tmp_path / "README.MD").write_text("# upper")
        entries = list(walk_files(tmp_path, MD_PATTERNS))
        assert _names(entries, tmp_path) == ["README.MD"]

    def test_cancelled_token_stops_walk(self, doc_tree: Path, no_git):
        token = CancellationToken()
        walker = walk_files(doc_tree, MD_PATTERNS, token=token)
        first = next(walker)
        assert first.path.name == "a.md"
        token.cancel()
        assert list(walker) == []

    def test_gitignore_matcher_prunes_paths(self, doc_tree: Path):
        root = doc_tree.resolve()
        matcher = GitIgnoreMatcher(
            root=root,
            ignored_files=frozenset({root / "b.md"}),
            ignored_dirs=frozenset({root / "sub"}),
        )
        with patch("docshelf.walker.load_gitignore_matcher", return_value=matcher):
            entries = list(walk_files(doc_tree, MD_PATTERNS))
        assert _names(entries, doc_tree) == ["a.md"]


class TestGitIgnoreMatcher:
    def test_missing_git_returns_none(self, tmp_path: Path):
        with patch("docshelf.walker.shutil.which", return_value=None):
            assert load_gitignore_matcher(tmp_path) is None

    def test_failed_probe_returns_none(self, tmp_path: Path):
        with (
            patch("docshelf.walker.shutil.which", return_value="/usr/bin/git"),
            patch(
                "docshelf.walker.subprocess.run",
                side_effect=subprocess.CalledProcessError(128, ["git"]),
            ),
        ):
            assert load_gitignore_matcher(tmp_path) is None

    def test_nested_path_under_ignored_dir(self, tmp_path: Path):
        root = tmp_path.resolve()
        matcher = GitIgnoreMatcher(
            root=root, ignored_files=frozenset(), ignored_dirs=frozenset({root / "build"})
        )
        assert matcher.is_ignored(root / "build" / "deep" / "x.md") is True
        assert matcher.is_ignored(root / "src" / "x.md") is False
        assert matcher.is_ignored(Path("/elsewhere/x.md")) is False

    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    def test_real_repository_ignores(self, tmp_path: Path):
        subprocess.run(["git", "init", "-q", str(tmp_path)], check=True)
        (tmp_path / ".gitignore").write_text("build/\nscratch.md\n")
        (tmp_path / "keep.md").write_text("# keep")
        (tmp_path / "scratch.md").write_text("# scratch")
        (tmp_path / "build").mkdir()
        (tmp_path / "build" / "out.md").write_text("# out")

        entries = list(walk_files(tmp_path, MD_PATTERNS))
        assert _names(entries, tmp_path) == ["keep.md"]

        everything = list(walk_files(tmp_path, MD_PATTERNS, show_all_files=True))
        assert "scratch.md" in _names(everything, tmp_path)


class TestDiscoveryHandle:
    @pytest.mark.asyncio
    async def test_pulls_advance_walker_one_entry_at_a_time(self, tmp_path: Path):
        produced: list[int] = []

        def _walker():
            for i in range(3):
                produced.append(i)
                yield DiscoveredEntry(path=tmp_path / f"{i}.md", modtime=datetime(2024, 1, 1))

        handle = DiscoveryHandle(_walker(), CancellationToken())
        entry = await handle.next_entry()
        assert entry is not None and entry.path.name == "0.md"
        assert produced == [0]

        await handle.next_entry()
        assert produced == [0, 1]

    @pytest.mark.asyncio
    async def test_pull_after_finish_is_idempotent(self, tmp_path: Path):
        handle = DiscoveryHandle(iter([]), CancellationToken())
        assert await handle.next_entry() is None
        assert handle.finished is True
        assert await handle.next_entry() is None
        assert await handle.next_entry() is None

    @pytest.mark.asyncio
    async def test_cancel_reports_finished_and_closes_walker(self, tmp_path: Path):
        closed: list[bool] = []

        def _walker():
            try:
                while True:
                    yield DiscoveredEntry(path=tmp_path / "x.md", modtime=datetime(2024, 1, 1))
            finally:
                closed.append(True)

        handle = DiscoveryHandle(_walker(), CancellationToken())
        assert await handle.next_entry() is not None
        handle.cancel()
        assert await handle.next_entry() is None
        assert handle.finished is True
        assert closed == [True]
        assert handle.emitted == 1


class TestStartDiscovery:
    def test_missing_root_raises(self, tmp_path: Path):
        with pytest.raises(DiscoveryError):
            start_discovery(tmp_path / "missing", DEFAULT_MARKDOWN_EXTENSIONS)

    def test_file_root_raises(self, doc_tree: Path):
        with pytest.raises(DiscoveryError, match="not a directory"):
            start_discovery(doc_tree / "a.md", DEFAULT_MARKDOWN_EXTENSIONS)

    def test_extensions_are_normalized_for_walker(self, doc_tree: Path):
        seen: dict[str, object] = {}

        def _walker(root, patterns, **kwargs):
            seen["patterns"] = list(patterns)
            seen.update(kwargs)
            return iter([])

        start_discovery(doc_tree, [".md", "txt"], walker=_walker)
        assert seen["patterns"] == ["*.md", "*.txt"]
        assert seen["show_all_files"] is False


class TestResolveSearchRoot:
    def test_empty_path_is_cwd(self, chdir_tmp: Path):
        assert resolve_search_root("") == Path(os.getcwd())

    def test_file_resolves_to_parent(self, doc_tree: Path):
        assert resolve_search_root(str(doc_tree / "sub" / "c.md")) == (doc_tree / "sub").resolve()

    def test_missing_path_raises(self, tmp_path: Path):
        with pytest.raises(DiscoveryError):
            resolve_search_root(str(tmp_path / "nope"))


class TestDiscoveryCommands:
    @pytest.mark.asyncio
    async def test_three_file_directory(self, doc_tree: Path, no_git):
        config = AppConfig(path=str(doc_tree))
        started = await find_local_files(config, 1, CancellationToken())()
        assert isinstance(started, DiscoveryStarted)
        assert started.run_id == 1
        assert started.cwd == doc_tree.resolve()

        messages = []
        while True:
            msg = await find_next_local_file(started.handle, 1)()
            if msg is None:
                break
            messages.append(msg)
            if isinstance(msg, DiscoveryFinished):
                break

        found = [m for m in messages if isinstance(m, EntryFound)]
        finished = [m for m in messages if isinstance(m, DiscoveryFinished)]
        assert len(found) == 3
        assert len(finished) == 1
        assert isinstance(messages[-1], DiscoveryFinished)
        assert [m.entry.path.name for m in found] == ["a.md", "b.md", "c.md"]

        # DiscoveryFinished is delivered exactly once per handle.
        assert await find_next_local_file(started.handle, 1)() is None

    @pytest.mark.asyncio
    async def test_empty_directory_still_finishes(self, tmp_path: Path, no_git):
        config = AppConfig(path=str(tmp_path))
        started = await find_local_files(config, 7, CancellationToken())()
        assert isinstance(started, DiscoveryStarted)
        msg = await find_next_local_file(started.handle, 7)()
        assert msg == DiscoveryFinished(run_id=7)

    @pytest.mark.asyncio
    async def test_bad_root_yields_error_message(self, tmp_path: Path):
        config = AppConfig(path=str(tmp_path / "missing"))
        msg = await find_local_files(config, 1, CancellationToken())()
        assert isinstance(msg, ErrorOccurred)
        assert isinstance(msg.error, DiscoveryError)
        assert msg.run_id == 1
