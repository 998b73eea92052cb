"""CLI/bootstrap helpers for the docshelf application."""

from __future__ import annotations

import argparse
import logging
import logging.handlers
import os
import shutil
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

from docshelf.action_messages import build_actionable_error
from docshelf.config import apply_cli_overrides, load_config
from docshelf.errors import RenderError
from docshelf.models import (
    BUILTIN_STYLES,
    CONFIG_APP_NAME,
    DEFAULT_WIDTH,
    MAX_WIDTH,
    STYLE_AUTO,
    STYLE_NOTTY,
    AppConfig,
)
from docshelf.services import AppServices, build_default_app_services

logger = logging.getLogger(__name__)

STDIN_PATH = "-"


def _configure_logging(debug: bool) -> None:
    """Configure logging. When debug=True, logs to file at DEBUG level."""
    if not debug:
        # Default: suppress all logging (TUI captures stderr)
        logging.disable(logging.CRITICAL)
        return

    log_dir = Path(user_config_dir(CONFIG_APP_NAME))
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "debug.log"

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logging.root.addHandler(handler)
    logging.root.setLevel(logging.DEBUG)


def _configure_color_mode(color_mode: str) -> None:
    """Configure environment hints for terminal color behavior."""
    if color_mode == "never":
        os.environ["NO_COLOR"] = "1"
        os.environ.pop("FORCE_COLOR", None)
        return
    if color_mode == "always":
        os.environ["FORCE_COLOR"] = "1"
        os.environ.pop("NO_COLOR", None)
        return
    # auto
    os.environ.pop("FORCE_COLOR", None)


def _validate_interactive_tty() -> bool:
    """Return True when stdin/stdout are interactive terminals."""
    return bool(sys.stdin.isatty() and sys.stdout.isatty())


def _read_stdin() -> str:
    return sys.stdin.read()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docshelf",
        description="Browse and read markdown documents in the terminal",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default="",
        help="File or directory to open (default: current directory; '-' reads stdin)",
    )
    parser.add_argument(
        "-s",
        "--style",
        default=None,
        help=f"Style: {', '.join(BUILTIN_STYLES)}, or a Pygments theme name (default: auto)",
    )
    parser.add_argument(
        "-w",
        "--width",
        type=int,
        default=None,
        help=f"Word-wrap at width (0 follows the terminal, max {MAX_WIDTH})",
    )
    parser.add_argument(
        "-a",
        "--all",
        dest="show_all_files",
        action="store_true",
        default=None,
        help="Show hidden and ignored files in the listing",
    )
    parser.add_argument(
        "-l",
        "--line-numbers",
        dest="show_line_numbers",
        action="store_true",
        default=None,
        help="Show line numbers in the document view",
    )
    parser.add_argument(
        "-p",
        "--preserve-new-lines",
        dest="preserve_new_lines",
        action="store_true",
        default=None,
        help="Preserve single newlines in the rendered output",
    )
    parser.add_argument(
        "--high-perf-pager",
        dest="high_performance_pager",
        action="store_true",
        default=None,
        help="Repaint the full viewport after scrolling",
    )
    parser.add_argument(
        "--mouse",
        dest="enable_mouse",
        action="store_true",
        default=None,
        help="Enable mouse wheel scrolling",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file to use (default: ~/.config/docshelf/config.json)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging to file (~/.config/docshelf/debug.log)",
    )
    parser.add_argument(
        "--color",
        choices=["auto", "always", "never"],
        default="auto",
        help="Color output mode for terminal UI (default: auto)",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable terminal colors (equivalent to --color never)",
    )
    return parser


def _render_to_stdout(
    content: str,
    config: AppConfig,
    services: AppServices | None = None,
) -> int:
    """Render literal content straight to stdout (non-interactive use)."""
    services = services or build_default_app_services()
    style = config.style
    if style == STYLE_AUTO and not sys.stdout.isatty():
        style = STYLE_NOTTY
    width = config.width or min(
        shutil.get_terminal_size((DEFAULT_WIDTH, 24)).columns, MAX_WIDTH
    )
    body = services.frontmatter.strip(content.encode("utf-8")).decode("utf-8", errors="replace")
    try:
        lines = services.renderer.render(
            body,
            style=style,
            width=width,
            preserve_new_lines=config.preserve_new_lines,
        )
    except RenderError as exc:
        logger.warning("Rendering failed, printing raw text: %s", exc)
        lines = body.split("\n")
    print("\n".join(lines))
    return 0


def run_content(
    content: str,
    config: AppConfig,
    *,
    services: AppServices | None = None,
    app_factory: Callable[..., Any] | None = None,
) -> int:
    """Open literal ``content`` in the document view. Returns exit code."""
    if app_factory is None:
        from docshelf.app import DocShelfApp as _DocShelfApp

        app_factory = _DocShelfApp

    app = app_factory(config, services=services, content=content)
    app.run(mouse=config.enable_mouse)
    return 0


def main(
    argv: list[str] | None = None,
    *,
    load_config_fn: Callable[[Path | None], AppConfig] = load_config,
    configure_logging_fn: Callable[[bool], None] = _configure_logging,
    configure_color_mode_fn: Callable[[str], None] = _configure_color_mode,
    validate_interactive_tty_fn: Callable[[], bool] = _validate_interactive_tty,
    read_stdin_fn: Callable[[], str] = _read_stdin,
    app_factory: Callable[..., Any] | None = None,
) -> int:
    """Main entry point. Returns exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.width is not None and args.width < 0:
        print("Error: --width must be zero or positive", file=sys.stderr)
        return 1

    color_mode = "never" if args.no_color else args.color
    configure_color_mode_fn(color_mode)
    configure_logging_fn(args.debug)
    logger.debug("docshelf starting, cwd=%s", Path.cwd())

    config = load_config_fn(args.config)
    config = apply_cli_overrides(
        config,
        style=args.style,
        width=args.width,
        show_all_files=args.show_all_files,
        show_line_numbers=args.show_line_numbers,
        preserve_new_lines=args.preserve_new_lines,
        high_performance_pager=args.high_performance_pager,
        enable_mouse=args.enable_mouse,
    )

    if args.path == STDIN_PATH:
        try:
            content = read_stdin_fn()
        except (OSError, UnicodeDecodeError) as exc:
            print(
                build_actionable_error(
                    "read standard input",
                    why=str(exc),
                    next_step="pipe UTF-8 text into docshelf -",
                ),
                file=sys.stderr,
            )
            return 1
        if not validate_interactive_tty_fn():
            return _render_to_stdout(content, config)
        return run_content(content, config, app_factory=app_factory)

    config.path = args.path

    if not validate_interactive_tty_fn():
        print(
            "Error: docshelf requires an interactive TTY for the full UI.",
            file=sys.stderr,
        )
        print("Next steps:", file=sys.stderr)
        print("  - Run docshelf directly in a terminal session", file=sys.stderr)
        print("  - Pipe a document into 'docshelf -' to print it rendered", file=sys.stderr)
        print("  - Use --help for command documentation", file=sys.stderr)
        return 2

    if app_factory is None:
        from docshelf.app import DocShelfApp as _DocShelfApp

        app_factory = _DocShelfApp

    app = app_factory(config)
    app.run(mouse=config.enable_mouse)
    return 0


__all__ = [
    "_configure_color_mode",
    "_configure_logging",
    "_validate_interactive_tty",
    "main",
    "run_content",
]
