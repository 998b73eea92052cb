"""Configuration loading: config file defaults merged with CLI overrides.

Only preferences are read from disk; runtime state is never persisted.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

from docshelf.models import (
    CONFIG_APP_NAME,
    DEFAULT_IGNORE_PATTERNS,
    DEFAULT_MARKDOWN_EXTENSIONS,
    MAX_WIDTH,
    STYLE_AUTO,
    AppConfig,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Configuration file
# ============================================================================
#
# Validation contract: _dict_to_config() guarantees valid output for any input:
#
#   Field                Rule                         Handler
#   ───────────────────  ───────────────────────────  ─────────────────
#   width                0 ≤ x ≤ MAX_WIDTH            _coerce_width
#   markdown_extensions  non-empty list of str        _parse_str_list
#   ignore_patterns      list of str                  _parse_str_list
#   scalar fields        type-checked via _safe_get() _dict_to_config
#
CONFIG_FILENAME = "config.json"


def get_config_path() -> Path:
    """Get the path to the configuration file.

    Uses platformdirs for cross-platform config directory:
    - Linux: ~/.config/docshelf/config.json
    - macOS: ~/Library/Application Support/docshelf/config.json
    - Windows: %APPDATA%/docshelf/config.json
    """
    return Path(user_config_dir(CONFIG_APP_NAME)) / CONFIG_FILENAME


def _safe_get(data: dict, key: str, default: Any, expected_type: type) -> Any:
    """Safely get a value from dict with type validation.

    Returns the default if key is missing or value has wrong type.
    """
    value = data.get(key, default)
    # bool is an int subclass; never accept it where an int is expected.
    if expected_type is int and isinstance(value, bool):
        return default
    if not isinstance(value, expected_type):
        return default
    return value


def _coerce_width(value: Any) -> int:
    """Validate and clamp the configured word-wrap width."""
    if not isinstance(value, int) or isinstance(value, bool):
        return 0
    return max(0, min(value, MAX_WIDTH))


def _parse_str_list(data: dict[str, Any], key: str, default: tuple[str, ...]) -> list[str]:
    """Parse a list of non-empty strings, falling back to ``default``."""
    raw = data.get(key)
    if not isinstance(raw, list):
        return list(default)
    values = [item.strip() for item in raw if isinstance(item, str) and item.strip()]
    if not values and key == "markdown_extensions":
        return list(default)
    return values


def _dict_to_config(data: dict[str, Any]) -> AppConfig:
    """Deserialize a dictionary to AppConfig with type validation."""
    return AppConfig(
        style=_safe_get(data, "style", STYLE_AUTO, str) or STYLE_AUTO,
        width=_coerce_width(data.get("width", 0)),
        show_all_files=_safe_get(data, "all", False, bool),
        show_line_numbers=_safe_get(data, "line_numbers", False, bool),
        preserve_new_lines=_safe_get(data, "preserve_new_lines", False, bool),
        high_performance_pager=_safe_get(data, "high_perf_pager", False, bool),
        enable_mouse=_safe_get(data, "mouse", False, bool),
        glamour_enabled=_safe_get(data, "render", True, bool),
        markdown_extensions=_parse_str_list(
            data, "markdown_extensions", DEFAULT_MARKDOWN_EXTENSIONS
        ),
        ignore_patterns=_parse_str_list(data, "ignore_patterns", DEFAULT_IGNORE_PATTERNS),
    )


def _backup_corrupt_config(config_path: Path) -> None:
    """Move an unreadable config file aside so the user can inspect it."""
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    backup = config_path.with_name(f"{config_path.name}.corrupt-{stamp}")
    try:
        os.replace(config_path, backup)
        logger.warning("Backed up corrupt config to %s", backup)
    except OSError as e:
        logger.warning("Could not back up corrupt config %s: %s", config_path, e)


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from disk.

    Returns default config if the file doesn't exist. A file that exists but
    cannot be decoded is backed up and defaults are returned with
    ``config_defaulted`` set so the UI can warn about it.
    """
    config_path = config_path or get_config_path()

    if not config_path.exists():
        return AppConfig()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        logger.warning("Config file has invalid JSON, using defaults: %s", e)
        _backup_corrupt_config(config_path)
        return AppConfig(config_defaulted=True)
    except OSError as e:
        logger.warning("Could not read config file, using defaults: %s", e)
        return AppConfig(config_defaulted=True)

    if not isinstance(data, dict):
        logger.warning("Config file is not a JSON object, using defaults")
        _backup_corrupt_config(config_path)
        return AppConfig(config_defaulted=True)
    return _dict_to_config(data)


def apply_cli_overrides(config: AppConfig, **overrides: Any) -> AppConfig:
    """Apply CLI flag values onto ``config``; ``None`` means "not given"."""
    for name, value in overrides.items():
        if value is None:
            continue
        if not hasattr(config, name):
            raise AttributeError(f"unknown config field: {name}")
        setattr(config, name, value)
    config.width = _coerce_width(config.width)
    return config


__all__ = [
    "CONFIG_FILENAME",
    "apply_cli_overrides",
    "get_config_path",
    "load_config",
]
