"""Directory walking with gitignore awareness.

The standard scan asks git which paths under the root are ignored and
prunes them (plus hidden directories and configured ignore patterns). The
all-files scan bypasses every ignore rule.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import shutil
import subprocess
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from docshelf.models import DiscoveredEntry

if TYPE_CHECKING:
    from docshelf.discovery import CancellationToken

logger = logging.getLogger(__name__)

GIT_PROBE_TIMEOUT = 10


def _is_within(path: Path, root: Path) -> bool:
    """Return whether ``path`` is at or under ``root``."""
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


@dataclass(frozen=True, slots=True)
class GitIgnoreMatcher:
    """Snapshot of git-ignored paths under a scan root."""

    root: Path
    ignored_files: frozenset[Path]
    ignored_dirs: frozenset[Path]

    def is_ignored(self, path: Path) -> bool:
        """Return whether ``path`` (already resolved) is ignored."""
        if not _is_within(path, self.root):
            return False
        if path in self.ignored_files:
            return True
        current = path
        while True:
            if current in self.ignored_dirs:
                return True
            if current == self.root:
                return False
            parent = current.parent
            if parent == current:
                return False
            current = parent


def load_gitignore_matcher(root: Path) -> GitIgnoreMatcher | None:
    """Build a matcher by querying git for ignored files and directories.

    Returns ``None`` when git is unavailable, ``root`` is not inside a
    repository, or a probe command fails; the scan then proceeds without
    gitignore rules.
    """
    if shutil.which("git") is None:
        return None

    root = root.resolve()
    try:
        top_proc = subprocess.run(
            ["git", "-C", str(root), "rev-parse", "--show-toplevel"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            check=True,
            timeout=GIT_PROBE_TIMEOUT,
        )
    except (OSError, subprocess.SubprocessError):
        return None

    top_level = top_proc.stdout.strip()
    if not top_level:
        return None
    repo_root = Path(top_level).resolve()

    try:
        proc = subprocess.run(
            [
                "git",
                "-C",
                str(repo_root),
                "ls-files",
                "-z",
                "--others",
                "-i",
                "--exclude-standard",
                "--directory",
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=True,
            timeout=GIT_PROBE_TIMEOUT,
        )
    except (OSError, subprocess.SubprocessError):
        logger.debug("git ls-files failed under %s", repo_root, exc_info=True)
        return None

    ignored_files: set[Path] = set()
    ignored_dirs: set[Path] = set()
    for raw in proc.stdout.split(b"\x00"):
        if not raw:
            continue
        rel = raw.decode("utf-8", errors="replace")
        is_dir = rel.endswith("/")
        rel = rel.rstrip("/")
        if not rel:
            continue
        abs_path = (repo_root / rel).resolve()
        if not _is_within(abs_path, root) and not _is_within(root, abs_path):
            continue
        if is_dir or abs_path.is_dir():
            ignored_dirs.add(abs_path)
        else:
            ignored_files.add(abs_path)

    return GitIgnoreMatcher(
        root=root,
        ignored_files=frozenset(ignored_files),
        ignored_dirs=frozenset(ignored_dirs),
    )


def _matches_any(name: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch.fnmatch(name, pattern) for pattern in patterns)


def walk_files(
    root: Path,
    patterns: Sequence[str],
    *,
    show_all_files: bool = False,
    ignore_patterns: Sequence[str] = (),
    token: CancellationToken | None = None,
) -> Iterator[DiscoveredEntry]:
    """Yield files under ``root`` whose names match one of ``patterns``.

    Traversal is depth-first with directory entries visited in sorted order,
    so repeated scans of an unchanged tree yield the same sequence. The
    generator returns early once ``token`` is cancelled.
    """
    root = root.resolve()
    matcher = None if show_all_files else load_gitignore_matcher(root)
    name_patterns = [p.lower() for p in patterns]

    for dirpath, dirnames, filenames in os.walk(root):
        if token is not None and token.cancelled:
            logger.debug("walk cancelled under %s", root)
            return
        current = Path(dirpath)
        dirnames.sort()
        if not show_all_files:
            dirnames[:] = [
                d
                for d in dirnames
                if not d.startswith(".")
                and not _matches_any(d, ignore_patterns)
                and not (matcher is not None and matcher.is_ignored(current / d))
            ]

        for name in sorted(filenames):
            if not _matches_any(name.lower(), name_patterns):
                continue
            path = current / name
            if not show_all_files:
                if _matches_any(name, ignore_patterns):
                    continue
                if matcher is not None and matcher.is_ignored(path):
                    continue
            try:
                info = path.stat()
            except OSError:
                # Broken symlink or the file vanished mid-scan.
                continue
            if token is not None and token.cancelled:
                return
            yield DiscoveredEntry(path=path, modtime=datetime.fromtimestamp(info.st_mtime))


__all__ = [
    "GitIgnoreMatcher",
    "load_gitignore_matcher",
    "walk_files",
]
