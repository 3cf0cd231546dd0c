# =============================================================================
# Menu Items
# =============================================================================
# Each configured entity is wrapped in an item of a fixed kind. Callers
# dispatch on ``item.kind``; every kind exposes the same name, shortcut,
# parent, display name, line rendering and action accessors.

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from nunchux import dirbrowser as dirbrowser_engine
from nunchux.models import Action, App, Dirbrowser, Menu, Settings, TaskrunnerConfig
from nunchux.runner import STATUS_TIMEOUT, CommandError, CommandRunner, env_with_bin_dir
from nunchux.taskrunners import TaskrunnerTask

SUBMENU_ICON = "▸"
DIRBROWSER_PREFIX = "dirbrowser:"

# Separates "icon name" from the description until columns are aligned
NAME_DESC_SEPARATOR = "\x00"


class ItemKind(Enum):
    APP = "app"
    MENU = "menu"
    DIRBROWSER = "dirbrowser"
    TASKRUNNER = "taskrunner"
    DIVIDER = "divider"


async def probe_status(runner: CommandRunner, command: str, settings: Settings) -> str:
    """Run a status command; failures and timeouts give an empty status."""
    if not command:
        return ""
    try:
        output = await runner.bash(
            command,
            timeout=STATUS_TIMEOUT,
            env=env_with_bin_dir(settings.bin_dir),
        )
    except CommandError as e:
        logger.debug(
            "Status probe failed",
            operation="probe_status",
            status="timeout" if e.timed_out else "failed",
            command=command,
            error=str(e)
        )
        return ""
    return output.strip()


def _join_desc(desc: str, status: str) -> str:
    if status and desc:
        return f"{desc} {status}"
    return status or desc


def _menu_line(icon: str, display_name: str, desc: str, shortcut: str, name: str) -> str:
    display = f"{icon} {display_name}{NAME_DESC_SEPARATOR}{desc}"
    return f"{display}\t{shortcut}\t{name}"


@dataclass
class AppItem:
    app: App
    settings: Settings
    kind = ItemKind.APP

    @property
    def name(self) -> str:
        return self.app.name

    @property
    def shortcut(self) -> str:
        return self.app.shortcut

    @property
    def parent(self) -> str:
        return self.app.parent

    @property
    def display_name(self) -> str:
        if self.app.parent:
            return self.app.name.removeprefix(self.app.parent + "/")
        return self.app.name

    def status_command(self) -> str:
        if self.app.status_script:
            return f"source {self.app.status_script}"
        return self.app.status

    async def format_line(self, runner: CommandRunner, is_running: bool) -> str:
        icon = self.settings.icon_running if is_running else self.settings.icon_stopped
        status = await probe_status(runner, self.status_command(), self.settings)
        return _menu_line(
            icon,
            self.display_name,
            _join_desc(self.app.desc, status),
            self.app.shortcut,
            self.app.name,
        )

    def get_width(self) -> str:
        return self.app.width or self.settings.popup_width

    def get_height(self) -> str:
        return self.app.height or self.settings.popup_height

    def get_primary_action(self) -> Action | str:
        return self.app.primary_action or self.settings.primary_action

    def get_secondary_action(self) -> Action | str:
        return self.app.secondary_action or self.settings.secondary_action


@dataclass
class MenuItem:
    menu: Menu
    settings: Settings
    kind = ItemKind.MENU

    @property
    def name(self) -> str:
        return self.menu.name

    @property
    def shortcut(self) -> str:
        return self.menu.shortcut

    @property
    def parent(self) -> str:
        return ""

    @property
    def display_name(self) -> str:
        return self.menu.name

    async def format_line(self, runner: CommandRunner, is_running: bool) -> str:
        status = await probe_status(runner, self.menu.status, self.settings)
        return _menu_line(
            SUBMENU_ICON,
            self.menu.name,
            _join_desc(self.menu.desc, status),
            self.menu.shortcut,
            self.menu.name,
        )

    # Menus open a submenu rather than launching anything
    def get_primary_action(self) -> Action | str:
        return ""

    def get_secondary_action(self) -> Action | str:
        return ""


@dataclass
class DirbrowserItem:
    dirbrowser: Dirbrowser
    settings: Settings
    kind = ItemKind.DIRBROWSER

    @property
    def name(self) -> str:
        return self.dirbrowser.name

    @property
    def shortcut(self) -> str:
        return self.dirbrowser.shortcut

    @property
    def parent(self) -> str:
        return ""

    @property
    def display_name(self) -> str:
        return self.dirbrowser.name

    async def format_line(self, runner: CommandRunner, is_running: bool) -> str:
        count = await dirbrowser_engine.count_files(runner, self.dirbrowser, self.settings)
        if count > 1000:
            count_text = "(1000+ files)"
        elif count == 1:
            count_text = "(1 file)"
        else:
            count_text = f"({count} files)"
        return _menu_line(
            SUBMENU_ICON,
            self.dirbrowser.name,
            count_text,
            self.dirbrowser.shortcut,
            DIRBROWSER_PREFIX + self.dirbrowser.name,
        )

    def get_width(self) -> str:
        return dirbrowser_engine.get_width(self.dirbrowser, self.settings)

    def get_height(self) -> str:
        return dirbrowser_engine.get_height(self.dirbrowser, self.settings)

    def get_primary_action(self) -> Action | str:
        return self.dirbrowser.primary_action or self.settings.primary_action

    def get_secondary_action(self) -> Action | str:
        return self.dirbrowser.secondary_action or self.settings.secondary_action


@dataclass
class TaskrunnerItem:
    runner: str
    task: TaskrunnerTask
    config: TaskrunnerConfig
    settings: Settings
    icon: str = ""
    label: str = ""
    kind = ItemKind.TASKRUNNER

    @property
    def name(self) -> str:
        return f"{self.runner}:{self.task.name}"

    @property
    def shortcut(self) -> str:
        return ""

    @property
    def parent(self) -> str:
        return ""

    @property
    def display_name(self) -> str:
        return f"{self.label} {self.task.name}"

    @property
    def window_name(self) -> str:
        return f"{self.runner} » {self.task.name}"

    def is_running_in(self, window_names: set[str]) -> bool:
        # Task windows carry a trailing status icon
        return any(name.startswith(self.window_name) for name in window_names)

    async def format_line(self, runner: CommandRunner, is_running: bool) -> str:
        icon = self.settings.taskrunner_icon_running if is_running else self.settings.icon_stopped
        display = f"{icon} {self.display_name}{NAME_DESC_SEPARATOR}{self.task.description}"
        return f"{display}\t\t{self.name}\t{self.task.cmd}"

    def get_primary_action(self) -> Action | str:
        return self.config.primary_action or Action.WINDOW

    def get_secondary_action(self) -> Action | str:
        return self.config.secondary_action or Action.BACKGROUND_WINDOW


@dataclass
class TaskrunnerDivider:
    runner: str
    icon: str = ""
    label: str = ""
    kind = ItemKind.DIVIDER

    @property
    def name(self) -> str:
        return f"divider:{self.runner}"

    @property
    def shortcut(self) -> str:
        return ""

    @property
    def parent(self) -> str:
        return ""

    @property
    def display_name(self) -> str:
        # Dividers never widen the name column
        return ""

    async def format_line(self, runner: CommandRunner, is_running: bool) -> str:
        return self.render()

    def render(self) -> str:
        icon_part = f" {self.icon}" if self.icon else ""
        content_len = len(self.label + icon_part) + 2
        tail = "─" * max(24 - content_len, 3)
        # Empty shortcut/name/cmd fields keep dividers unselectable
        return f"   ─── {self.label}{icon_part} {tail}\t\t\t"

    def get_primary_action(self) -> Action | str:
        return ""

    def get_secondary_action(self) -> Action | str:
        return ""


Item = AppItem | MenuItem | DirbrowserItem | TaskrunnerItem | TaskrunnerDivider
