# =============================================================================
# Item Registry & Menu Composition
# =============================================================================

import asyncio
import time
from dataclasses import dataclass, field

from loguru import logger

from nunchux.items import (
    NAME_DESC_SEPARATOR,
    AppItem,
    DirbrowserItem,
    Item,
    ItemKind,
    MenuItem,
    TaskrunnerDivider,
    TaskrunnerItem,
)
from nunchux.models import Config, OrderConfig, Settings, TaskrunnerConfig
from nunchux.runner import CommandError, CommandRunner, SubprocessRunner
from nunchux.shortcuts import ShortcutError, ShortcutValidator
from nunchux.taskrunners import ProviderNotFoundError, load_taskrunner_tasks

SHORTCUT_STYLE = "\033[38;5;244m"
RESET_STYLE = "\033[0m"
SHORTCUT_COLUMN_WIDTH = 9


@dataclass
class Registry:
    settings: Settings
    order: OrderConfig
    runner: CommandRunner
    items: list[Item] = field(default_factory=list)
    taskrunner_items: list[Item] = field(default_factory=list)
    taskrunner_configs: list[TaskrunnerConfig] = field(default_factory=list)
    # normalized key -> item name
    shortcuts: dict[str, str] = field(default_factory=dict)
    validation_errors: list[ShortcutError] = field(default_factory=list)

    @classmethod
    def build(cls, config: Config, runner: CommandRunner | None = None) -> "Registry":
        """
        Wrap every configured entity in an item and validate shortcuts.

        Shortcuts are registered apps first, then menus, then dirbrowsers.
        Rejected shortcuts are collected in ``validation_errors``; their
        items stay in the registry without a shortcut binding.
        """
        registry = cls(
            settings=config.settings,
            order=config.order,
            runner=runner or SubprocessRunner(),
            taskrunner_configs=list(config.taskrunners),
        )
        validator = ShortcutValidator(config.settings)

        for app in config.apps:
            registry.items.append(AppItem(app=app, settings=config.settings))
            validator.register(app.shortcut, app.name)

        for menu in config.menus:
            registry.items.append(MenuItem(menu=menu, settings=config.settings))
            validator.register(menu.shortcut, menu.name)

        for dirbrowser in config.dirbrowsers:
            registry.items.append(DirbrowserItem(dirbrowser=dirbrowser, settings=config.settings))
            validator.register(dirbrowser.shortcut, dirbrowser.name)

        registry.shortcuts = validator.shortcuts
        registry.validation_errors = validator.errors

        logger.debug(
            "Registry built",
            operation="build_registry",
            status="success",
            metrics={
                "items": len(registry.items),
                "shortcuts": len(registry.shortcuts),
                "validation_errors": len(registry.validation_errors),
            }
        )
        return registry

    # =========================================================================
    # Lookups (first match wins)
    # =========================================================================

    def find_item(self, name: str) -> Item | None:
        for item in self.items:
            if item.name == name:
                return item
        return None

    def _find_kind(self, name: str, kind: ItemKind) -> Item | None:
        item = self.find_item(name)
        if item is not None and item.kind is kind:
            return item
        return None

    def find_app(self, name: str) -> AppItem | None:
        return self._find_kind(name, ItemKind.APP)

    def find_menu(self, name: str) -> MenuItem | None:
        return self._find_kind(name, ItemKind.MENU)

    def find_dirbrowser(self, name: str) -> DirbrowserItem | None:
        return self._find_kind(name, ItemKind.DIRBROWSER)

    def find_taskrunner_item(self, name: str) -> TaskrunnerItem | None:
        """Find a task by its ``runner:task`` name."""
        for item in self.taskrunner_items:
            if item.kind is ItemKind.TASKRUNNER and item.name == name:
                return item
        return None

    def get_item_by_shortcut(self, key: str) -> str:
        """Item name bound to ``key``, or "" when unbound."""
        return self.shortcuts.get(key.lower(), "")

    # =========================================================================
    # Task Runners
    # =========================================================================

    async def load_taskrunners(self, cwd: str) -> None:
        """
        Replace the task runner items with freshly discovered tasks.

        Each enabled runner contributes a divider followed by its tasks. A
        runner whose provider is missing, fails, or lists no tasks
        contributes nothing.

        Args:
            cwd: Directory the providers list tasks for (the pane's cwd)
        """
        loaded: list[Item] = []

        for config in self.taskrunner_configs:
            if not config.enabled:
                continue

            try:
                tasks, icon, label = await load_taskrunner_tasks(
                    self.runner, config, self.settings.bin_dir, cwd
                )
            except (ProviderNotFoundError, CommandError) as e:
                logger.debug(
                    "Skipping taskrunner",
                    operation="load_taskrunners",
                    status="skip",
                    runner=config.name,
                    error=str(e)
                )
                continue

            if not tasks:
                logger.debug(
                    "Taskrunner has no tasks",
                    operation="load_taskrunners",
                    status="skip",
                    runner=config.name
                )
                continue

            loaded.append(TaskrunnerDivider(runner=config.name, icon=icon, label=label))
            loaded.extend(
                TaskrunnerItem(
                    runner=config.name,
                    task=task,
                    config=config,
                    settings=self.settings,
                    icon=icon,
                    label=label,
                )
                for task in tasks
            )

        self.taskrunner_items = loaded

    # =========================================================================
    # Menu Composition
    # =========================================================================

    def filter_items(self, current_menu: str) -> list[Item]:
        """Items visible at the root ("") or in the named submenu."""
        return [item for item in self.items if item.parent == current_menu]

    def order_for(self, current_menu: str) -> list[str]:
        if not current_menu:
            return self.order.main
        return self.order.submenus.get(current_menu, [])

    async def build_menu(self, running_windows: set[str], current_menu: str = "") -> str:
        """
        Compose the picker input for the root menu or a submenu.

        Item lines are rendered concurrently (status probes are individually
        time-bounded), ordered by the scope's order list then by name,
        aligned to a common name column, and optionally prefixed with their
        shortcut. The root menu ends with the task runner items.

        Args:
            running_windows: Names of windows currently open
            current_menu: "" for the root menu, else the submenu name

        Returns:
            Newline-joined menu lines (empty when nothing is visible)
        """
        start_time = time.perf_counter()
        is_root = current_menu == ""
        filtered = self.filter_items(current_menu)

        candidates = list(filtered)
        if is_root:
            candidates += self.taskrunner_items
        max_width = max((len(item.display_name) for item in candidates), default=0)

        results: list[tuple[str, str]] = [("", "")] * len(filtered)

        async def render(index: int, item: Item) -> None:
            line = await item.format_line(self.runner, item.name in running_windows)
            results[index] = (item.name, line)

        await asyncio.gather(*(render(i, item) for i, item in enumerate(filtered)))

        results = sort_results(results, self.order_for(current_menu), current_menu)

        lines = []
        for _, line in results:
            lines.append(self._finish_line(align_display_column(line, max_width)))

        if is_root:
            for item in self.taskrunner_items:
                is_running = (
                    item.kind is ItemKind.TASKRUNNER and item.is_running_in(running_windows)
                )
                line = await item.format_line(self.runner, is_running)
                if item.kind is not ItemKind.DIVIDER:
                    line = align_display_column(line, max_width)
                lines.append(self._finish_line(line))

        logger.debug(
            "Menu composed",
            operation="build_menu",
            status="success",
            current_menu=current_menu,
            metrics={
                "lines": len(lines),
                "duration_ms": int((time.perf_counter() - start_time) * 1000),
            }
        )
        return "\n".join(lines)

    def _finish_line(self, line: str) -> str:
        if self.settings.show_help:
            return add_shortcut_prefix(line)
        return line


def sort_results(
    results: list[tuple[str, str]],
    order: list[str],
    scope: str = "",
) -> list[tuple[str, str]]:
    """
    Order (name, line) pairs: names in ``order`` first by position, then
    the rest alphabetically.

    Inside a submenu an order entry may name an item with or without its
    ``scope/`` prefix. A name listed twice keeps its first position.
    """
    positions: dict[str, int] = {}
    for index, name in enumerate(order):
        # Deliberate extension: first occurrence wins
        positions.setdefault(name, index)

    def position(name: str) -> int | None:
        if name in positions:
            return positions[name]
        # Deliberate extension: bare leaf names match inside the submenu
        if scope:
            return positions.get(name.removeprefix(scope + "/"))
        return None

    def sort_key(result: tuple[str, str]) -> tuple[int, int, str]:
        name = result[0]
        index = position(name)
        if index is not None:
            return (0, index, "")
        return (1, 0, name)

    return sorted(results, key=sort_key)


def align_display_column(line: str, max_width: int) -> str:
    """
    Pad the name segment of a menu line to ``max_width``.

    ``"icon name\\x00desc\\t..."`` becomes ``"icon name<pad>  desc\\t..."``.
    The icon is the first two characters (icon plus space).
    """
    display, sep, rest = line.partition("\t")
    if not sep:
        return line

    prefix, null, desc = display.partition(NAME_DESC_SEPARATOR)
    if not null:
        return line

    if len(prefix) <= 2:
        return f"{prefix}  {desc}\t{rest}"

    icon, name = prefix[:2], prefix[2:]
    return f"{icon}{name:<{max_width}}  {desc}\t{rest}"


def add_shortcut_prefix(line: str) -> str:
    """
    Prefix a menu line with its dimmed ``[shortcut]`` in a fixed column.

    Lines without a shortcut get blank padding so every line's display
    starts at the same column.
    """
    parts = line.split("\t", 2)
    if len(parts) < 2:
        return line

    display, shortcut = parts[0], parts[1]
    rest = parts[2] if len(parts) > 2 else ""

    if shortcut:
        label = f"[{shortcut}]"
        prefix = f"{SHORTCUT_STYLE}{label:<{SHORTCUT_COLUMN_WIDTH}}{RESET_STYLE}│ "
    else:
        prefix = " " * SHORTCUT_COLUMN_WIDTH + "│ "

    return f"{prefix}{display}\t{shortcut}\t{rest}"
