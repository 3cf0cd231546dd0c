# =============================================================================
# Settings & Entity Model
# =============================================================================
# Typed records produced by the config parser. Settings starts from the
# hard-coded defaults below and is mutated key by key while parsing; entities
# are created once per section and not touched after the registry is built.

from dataclasses import dataclass, field
from enum import StrEnum


class Action(StrEnum):
    POPUP = "popup"
    WINDOW = "window"
    BACKGROUND_WINDOW = "background_window"
    PANE_RIGHT = "pane_right"
    PANE_LEFT = "pane_left"
    PANE_ABOVE = "pane_above"
    PANE_BELOW = "pane_below"


def parse_action(value: str) -> Action | str:
    """Map a config string to an Action; unknown strings are kept verbatim."""
    try:
        return Action(value)
    except ValueError:
        return value


DEFAULT_EXCLUDE_PATTERNS = (
    ".git, node_modules, Cache, cache, .cache, GPUCache, CachedData, blob_storage, "
    "Code Cache, Session Storage, Local Storage, IndexedDB, databases, *.db, *.db-*, "
    "*.sqlite*, *.log, *.png, *.jpg, *.jpeg, *.gif, *.ico, *.webp, *.woff*, *.ttf, "
    "*.lock, lock, *.pid"
)

DEFAULT_FZF_COLORS = (
    "fg+:white:bold,bg+:237,hl:214,hl+:214:bold,pointer:white,"
    "marker:green,header:gray,border:gray"
)


@dataclass
class Settings:
    # Icons
    icon_running: str = "●"
    icon_stopped: str = "○"

    # Menu dimensions (empty max = no limit)
    menu_width: str = "60%"
    menu_height: str = "50%"
    max_menu_width: str = ""
    max_menu_height: str = ""

    # Popup dimensions
    popup_width: str = "90%"
    popup_height: str = "90%"
    max_popup_width: str = ""
    max_popup_height: str = ""

    # Keybindings
    primary_key: str = "enter"
    secondary_key: str = "ctrl-o"

    # Actions
    primary_action: Action | str = Action.POPUP
    secondary_action: Action | str = Action.WINDOW

    # Direct action keys (empty = disabled)
    popup_key: str = ""
    window_key: str = ""
    background_window_key: str = ""
    pane_right_key: str = ""
    pane_left_key: str = ""
    pane_above_key: str = ""
    pane_below_key: str = ""
    action_menu_key: str = "ctrl-j"
    toggle_shortcuts_key: str = "ctrl-/"

    # Display
    label: str = "nunchux"
    show_help: bool = False
    show_cwd: bool = True
    cache_ttl: int = 60

    # Picker styling
    fzf_prompt: str = ""
    fzf_pointer: str = "▌"
    fzf_border: str = "rounded"
    fzf_colors: str = DEFAULT_FZF_COLORS

    exclude_patterns: str = DEFAULT_EXCLUDE_PATTERNS

    # Runtime only: directory holding nunchux-run and the helper scripts
    bin_dir: str = ""

    # Task runner icons
    taskrunner_icon_running: str = "🔄"
    taskrunner_icon_success: str = "✅"
    taskrunner_icon_failed: str = "❌"


@dataclass
class App:
    name: str
    cmd: str = ""
    desc: str = ""
    width: str = ""
    height: str = ""
    status: str = ""
    status_script: str = ""
    on_exit: str = ""
    shortcut: str = ""
    primary_action: Action | str = ""
    secondary_action: Action | str = ""
    # Parent menu for names like "system/htop"
    parent: str = ""


@dataclass
class Menu:
    name: str
    desc: str = ""
    status: str = ""
    cache_ttl: int = 0
    shortcut: str = ""


@dataclass
class Dirbrowser:
    name: str
    directory: str = ""
    depth: int = 1
    sort: str = "modified"  # "modified", "modified-folder", "alphabetical"
    sort_direction: str = "descending"
    glob: str = ""
    width: str = "90%"
    height: str = "80%"
    cache_ttl: int = 300
    shortcut: str = ""
    primary_action: Action | str = Action.POPUP
    secondary_action: Action | str = Action.WINDOW


@dataclass
class TaskrunnerConfig:
    name: str
    enabled: bool = False
    icon: str = ""
    label: str = ""
    primary_action: Action | str = Action.WINDOW
    secondary_action: Action | str = Action.BACKGROUND_WINDOW


@dataclass
class OrderConfig:
    main: list[str] = field(default_factory=list)
    submenus: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class Config:
    settings: Settings = field(default_factory=Settings)
    apps: list[App] = field(default_factory=list)
    menus: list[Menu] = field(default_factory=list)
    dirbrowsers: list[Dirbrowser] = field(default_factory=list)
    taskrunners: list[TaskrunnerConfig] = field(default_factory=list)
    order: OrderConfig = field(default_factory=OrderConfig)

    def is_empty(self) -> bool:
        return not (self.apps or self.menus or self.dirbrowsers or self.taskrunners)


# =============================================================================
# Picker Key Tables
# =============================================================================

SUPPORTED_KEYS: frozenset[str] = frozenset([
    # Basic keys
    "enter", "space", "tab", "esc", "backspace", "delete", "insert",
    # Navigation
    "up", "down", "left", "right", "home", "end", "page-up", "page-down",
    # Function keys
    *(f"f{n}" for n in range(1, 13)),
    # Ctrl combinations
    *(f"ctrl-{c}" for c in "abcdefghijklmnopqrstuvwxyz"),
    "ctrl-space", "ctrl-delete", "ctrl-backspace",
    "ctrl-up", "ctrl-down", "ctrl-left", "ctrl-right",
    # Alt combinations
    *(f"alt-{c}" for c in "abcdefghijklmnopqrstuvwxyz"),
    "alt-enter", "alt-space", "alt-backspace", "alt-delete",
    "alt-up", "alt-down", "alt-left", "alt-right", "alt-page-up", "alt-page-down",
    # Shift combinations (limited terminal support)
    "shift-tab", "shift-up", "shift-down", "shift-left", "shift-right",
    "shift-home", "shift-end", "shift-delete", "shift-page-up", "shift-page-down",
    # Special
    "double-click", "ctrl-/",
])

# enter/esc leave the menu, ctrl-x kills the selected window
RESERVED_KEYS: tuple[str, ...] = ("enter", "esc", "ctrl-x")

# Picker key that pops one menu level
BACK_KEY = "esc"
