# =============================================================================
# Configuration Loading
# =============================================================================
# The config file is a sectioned key = value format:
#
#   [settings]               global settings, applied immediately
#   [app:name]               one app; "parent/name" scopes it to a submenu
#   [menu:name]              submenu
#   [dirbrowser:name]        directory browser
#   [taskrunner]             global task runner icons
#   [taskrunner:name]        one task runner
#   [order] / [order:menu]   bare lines listing item names in display order
#
# A value ending in a backslash continues on the next line.

import os
import re
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from loguru import logger

from nunchux.errors import Error, ErrorType, Result
from nunchux.models import (
    App,
    Config,
    Dirbrowser,
    Menu,
    Settings,
    TaskrunnerConfig,
    parse_action,
)

SECTION_PATTERN = re.compile(r"^\[([^\]]+)\]$")
KEY_VALUE_PATTERN = re.compile(r"^([^=]+)=(.*)$")

CONFIG_ENV_VAR = "NUNCHUX_RC_FILE"
RC_FILENAME = ".nunchuxrc"


# =============================================================================
# Value Converters
# =============================================================================


def _as_str(value: str) -> str:
    return value


def _as_int(value: str) -> int:
    """Best-effort integer parse; anything unparseable is 0."""
    try:
        return int(value)
    except ValueError:
        return 0


def _as_bool(value: str) -> bool:
    return value == "true"


def expand_home(path: str) -> str:
    """Expand a leading ``~/`` to the user's home directory."""
    if path.startswith("~/"):
        return os.path.join(os.path.expanduser("~"), path[2:])
    return path


# key -> (attribute, converter)
FieldMap = dict[str, tuple[str, Callable[[str], object]]]

SETTINGS_FIELDS: FieldMap = {
    key: (key, _as_str) for key in (
        "icon_running", "icon_stopped",
        "menu_width", "menu_height", "max_menu_width", "max_menu_height",
        "popup_width", "popup_height", "max_popup_width", "max_popup_height",
        "primary_key", "secondary_key",
        "popup_key", "window_key", "background_window_key",
        "pane_right_key", "pane_left_key", "pane_above_key", "pane_below_key",
        "action_menu_key", "toggle_shortcuts_key",
        "label", "fzf_prompt", "fzf_pointer", "fzf_border", "fzf_colors",
        "exclude_patterns",
    )
} | {
    "primary_action": ("primary_action", parse_action),
    "secondary_action": ("secondary_action", parse_action),
    "show_help": ("show_help", _as_bool),
    "show_cwd": ("show_cwd", _as_bool),
    "cache_ttl": ("cache_ttl", _as_int),
}

TASKRUNNER_GLOBAL_FIELDS: FieldMap = {
    "icon_running": ("taskrunner_icon_running", _as_str),
    "icon_success": ("taskrunner_icon_success", _as_str),
    "icon_failed": ("taskrunner_icon_failed", _as_str),
}

APP_FIELDS: FieldMap = {
    key: (key, _as_str) for key in (
        "cmd", "desc", "width", "height", "status", "status_script",
        "on_exit", "shortcut",
    )
} | {
    "primary_action": ("primary_action", parse_action),
    "secondary_action": ("secondary_action", parse_action),
}

MENU_FIELDS: FieldMap = {
    "desc": ("desc", _as_str),
    "status": ("status", _as_str),
    "cache_ttl": ("cache_ttl", _as_int),
    "shortcut": ("shortcut", _as_str),
}

DIRBROWSER_FIELDS: FieldMap = {
    "directory": ("directory", expand_home),
    "depth": ("depth", _as_int),
    "sort": ("sort", _as_str),
    "sort_direction": ("sort_direction", _as_str),
    "glob": ("glob", _as_str),
    "width": ("width", _as_str),
    "height": ("height", _as_str),
    "cache_ttl": ("cache_ttl", _as_int),
    "shortcut": ("shortcut", _as_str),
    "primary_action": ("primary_action", parse_action),
    "secondary_action": ("secondary_action", parse_action),
}

TASKRUNNER_FIELDS: FieldMap = {
    "enabled": ("enabled", _as_bool),
    "icon": ("icon", _as_str),
    "label": ("label", _as_str),
    "primary_action": ("primary_action", parse_action),
    "secondary_action": ("secondary_action", parse_action),
}


def apply_fields(target: object, fields: FieldMap, data: dict[str, str]) -> None:
    """Copy known keys from ``data`` onto ``target``; unknown keys are ignored."""
    for key, value in data.items():
        if key in fields:
            attribute, convert = fields[key]
            setattr(target, attribute, convert(value))


def apply_settings(settings: Settings, key: str, value: str) -> None:
    apply_fields(settings, SETTINGS_FIELDS, {key: value})


def apply_taskrunner_global_settings(settings: Settings, key: str, value: str) -> None:
    apply_fields(settings, TASKRUNNER_GLOBAL_FIELDS, {key: value})


# =============================================================================
# Section Handling
# =============================================================================


def parse_section(header: str) -> tuple[str, str]:
    """Split ``type:name`` into its parts; a bare ``type`` has an empty name."""
    section_type, _, name = header.partition(":")
    return section_type, name


def build_app(name: str, data: dict[str, str]) -> App:
    app = App(name=name)
    apply_fields(app, APP_FIELDS, data)
    return app


def build_menu(name: str, data: dict[str, str]) -> Menu:
    menu = Menu(name=name)
    apply_fields(menu, MENU_FIELDS, data)
    return menu


def build_dirbrowser(name: str, data: dict[str, str]) -> Dirbrowser:
    dirbrowser = Dirbrowser(name=name)
    apply_fields(dirbrowser, DIRBROWSER_FIELDS, data)
    return dirbrowser


def build_taskrunner(name: str, data: dict[str, str]) -> TaskrunnerConfig:
    taskrunner = TaskrunnerConfig(name=name, label=name)
    apply_fields(taskrunner, TASKRUNNER_FIELDS, data)
    return taskrunner


def flush_section(config: Config, section_type: str, name: str, data: dict[str, str]) -> None:
    """Turn one section's collected key/values into an entity on ``config``."""
    if not section_type or (not data and section_type != "order"):
        return

    if section_type == "app":
        config.apps.append(build_app(name, data))
    elif section_type == "menu":
        config.menus.append(build_menu(name, data))
    elif section_type == "dirbrowser":
        config.dirbrowsers.append(build_dirbrowser(name, data))
    elif section_type == "taskrunner" and name:
        config.taskrunners.append(build_taskrunner(name, data))
    # Unknown section types are dropped


def handle_order_line(config: Config, section: str, line: str) -> None:
    item = line.strip()
    if not item:
        return

    if section == "order":
        config.order.main.append(item)
    elif section.startswith("order:"):
        submenu = section[len("order:"):]
        config.order.submenus.setdefault(submenu, []).append(item)


# =============================================================================
# Parser
# =============================================================================


def parse_config_lines(lines: Iterable[str]) -> Config:
    """
    Parse config text into a Config.

    Never fails: unknown sections and keys are ignored, and malformed
    values are stored as-is (or parsed to zero for integers).

    Args:
        lines: Physical lines of the config file (trailing newlines allowed)

    Returns:
        Config with defaults applied and every section flushed
    """
    config = Config()

    current_section = ""
    section_type, section_name = "", ""
    section_data: dict[str, str] = {}
    continuation_key = ""
    continuation_parts: list[str] = []

    def store(key: str, value: str) -> None:
        if current_section == "settings":
            apply_settings(config.settings, key, value)
        elif current_section == "taskrunner":
            apply_taskrunner_global_settings(config.settings, key, value)
        else:
            section_data[key] = value

    for line in lines:
        trimmed = line.strip()

        if not trimmed or trimmed.startswith("#"):
            continue

        if continuation_key:
            if trimmed.endswith("\\"):
                continuation_parts.append(trimmed[:-1].strip())
                continue
            continuation_parts.append(trimmed)
            store(continuation_key, " ".join(continuation_parts))
            continuation_key = ""
            continuation_parts = []
            continue

        match = SECTION_PATTERN.match(trimmed)
        if match:
            flush_section(config, section_type, section_name, section_data)
            section_data = {}
            current_section = match.group(1)
            section_type, section_name = parse_section(current_section)
            continue

        match = KEY_VALUE_PATTERN.match(trimmed)
        if match:
            key = match.group(1).strip()
            value = match.group(2).strip()

            if value.endswith("\\"):
                continuation_key = key
                continuation_parts = [value[:-1].strip()]
                continue

            store(key, value)
            continue

        if current_section == "order" or current_section.startswith("order:"):
            handle_order_line(config, current_section, trimmed)

    # A dangling continuation at end of input keeps what was collected
    if continuation_key:
        store(continuation_key, " ".join(continuation_parts))

    flush_section(config, section_type, section_name, section_data)

    for app in config.apps:
        parent, sep, _ = app.name.partition("/")
        if sep:
            app.parent = parent

    return config


def load_config_from_path(config_path: Path) -> Result[Config]:
    """
    Load and parse a config file.

    Args:
        config_path: Path to the config file

    Returns:
        Result[Config]: Ok with the parsed config, or Err when unreadable
    """
    start_time = time.perf_counter()
    logger.debug(
        "Loading config from path",
        operation="load_config_from_path",
        status="started",
        config_path=str(config_path)
    )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = parse_config_lines(f)
    except FileNotFoundError as e:
        logger.error(
            "Config file not found",
            operation="load_config_from_path",
            status="failed",
            config_path=str(config_path)
        )
        return Result.err(Error(
            error_type=ErrorType.FILE_NOT_FOUND,
            message=f"Config file not found: {config_path}",
            context={"config_path": str(config_path)},
            original_exception=e
        ))
    except PermissionError as e:
        logger.error(
            "Config file not readable",
            operation="load_config_from_path",
            status="failed",
            config_path=str(config_path)
        )
        return Result.err(Error(
            error_type=ErrorType.PERMISSION_ERROR,
            message=f"Config file not readable: {config_path}",
            context={"config_path": str(config_path)},
            original_exception=e
        ))
    except (OSError, UnicodeDecodeError) as e:
        logger.error(
            "Config file could not be read",
            operation="load_config_from_path",
            status="failed",
            config_path=str(config_path),
            error=str(e)
        )
        return Result.err(Error(
            error_type=ErrorType.PARSE_ERROR,
            message=f"Error loading config: {e}",
            context={"config_path": str(config_path)},
            original_exception=e
        ))

    duration_ms = int((time.perf_counter() - start_time) * 1000)
    logger.debug(
        "Config loaded successfully",
        operation="load_config_from_path",
        status="success",
        config_path=str(config_path),
        metrics={
            "apps": len(config.apps),
            "menus": len(config.menus),
            "dirbrowsers": len(config.dirbrowsers),
            "taskrunners": len(config.taskrunners),
            "duration_ms": duration_ms,
        }
    )
    return Result.ok(config)


def find_config_file(cwd: Path | None = None, environ: dict[str, str] | None = None) -> Path | None:
    """
    Locate the config file.

    Search order:
    1. $NUNCHUX_RC_FILE, if it exists
    2. The nearest .nunchuxrc walking up from cwd
    3. $XDG_CONFIG_HOME/nunchux/config (default ~/.config/nunchux/config)

    Returns:
        Path to the config file, or None if none exists
    """
    environ = os.environ if environ is None else environ

    env_file = environ.get(CONFIG_ENV_VAR)
    if env_file and Path(env_file).exists():
        return Path(env_file)

    start = cwd or Path.cwd()
    for directory in (start, *start.parents):
        if directory == Path(directory.anchor):
            break
        rc_file = directory / RC_FILENAME
        if rc_file.exists():
            return rc_file

    config_home = environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    xdg_config = Path(config_home) / "nunchux" / "config"
    if xdg_config.exists():
        return xdg_config

    return None
