# =============================================================================
# Menu Loop & Launch Dispatch
# =============================================================================
# Drives the picker screens and turns selections into multiplexer launches.
# Every unrecovered error ends up on the error screen; the loop never lets
# an exception escape to the terminal.

import shlex
import sys
from collections.abc import Callable
from pathlib import Path

import click
from loguru import logger

from nunchux.actions import resolve_item_action
from nunchux.items import DIRBROWSER_PREFIX, AppItem, DirbrowserItem, ItemKind, TaskrunnerItem
from nunchux.logging_config import trace_id_var
from nunchux.models import Action, Settings
from nunchux.picker import Picker, PickerError
from nunchux.registry import Registry
from nunchux.runner import CommandError
from nunchux.tmux import LaunchError, LaunchOptions, Multiplexer
from nunchux.ui import (
    EDIT_CONFIG_ITEM,
    OPEN_DOCS_ITEM,
    get_editor_command,
    show_action_menu,
    show_dirbrowser,
    show_error,
    show_menu,
)

# =============================================================================
# Shell Integration
# =============================================================================

_SHELL_INIT_HEADER = """\
# Nunchux shell integration - saves environment for inheritance
# This runs after each command, so apps launched via nunchux
# inherit your current shell environment (PATH, nvm, pyenv, etc.)
"""

SHELL_INIT = {
    "bash": _SHELL_INIT_HEADER + """\
if [[ -n "$TMUX_PANE" ]]; then
    _nunchux_save_env() {
        env > "/tmp/nunchux-env-$TMUX_PANE" 2>/dev/null
    }
    PROMPT_COMMAND="_nunchux_save_env${PROMPT_COMMAND:+;$PROMPT_COMMAND}"

    # Clean up env file when shell exits
    trap 'rm -f "/tmp/nunchux-env-$TMUX_PANE" 2>/dev/null' EXIT
fi
""",
    "zsh": _SHELL_INIT_HEADER + """\
if [[ -n "$TMUX_PANE" ]]; then
    _nunchux_save_env() {
        env > "/tmp/nunchux-env-$TMUX_PANE" 2>/dev/null
    }
    precmd_functions+=(_nunchux_save_env)

    # Clean up env file when shell exits
    trap 'rm -f "/tmp/nunchux-env-$TMUX_PANE" 2>/dev/null' EXIT
fi
""",
    "fish": _SHELL_INIT_HEADER + """\
if set -q TMUX_PANE
    function _nunchux_save_env --on-event fish_postexec
        env > "/tmp/nunchux-env-$TMUX_PANE" 2>/dev/null
    end

    # Clean up env file when shell exits
    function _nunchux_cleanup --on-event fish_exit
        rm -f "/tmp/nunchux-env-$TMUX_PANE" 2>/dev/null
    end
end
""",
}


# =============================================================================
# Launch Helpers
# =============================================================================

def popup_options(settings: Settings, action: Action | str, name: str, cmd: str,
                  width: str, height: str, **kwargs) -> LaunchOptions:
    return LaunchOptions(
        action=action,
        name=name,
        cmd=cmd,
        width=width,
        height=height,
        max_width=settings.max_popup_width,
        max_height=settings.max_popup_height,
        **kwargs,
    )


def launch_editor(multiplexer: Multiplexer, settings: Settings, path: str) -> None:
    """Open ``path`` in the user's editor in a popup."""
    cmd = f"{get_editor_command()} {shlex.quote(path)}"
    multiplexer.launch(popup_options(
        settings, Action.POPUP, "config", cmd, settings.popup_width, settings.popup_height
    ))


def launch_app(
    registry: Registry,
    multiplexer: Multiplexer,
    item: AppItem,
    action: Action | str,
) -> None:
    """
    Launch an app with ``action``.

    Raises:
        LaunchError: the multiplexer rejected the launch
    """
    logger.info(
        "Launching app",
        operation="launch_app",
        status="started",
        name=item.name,
        action=str(action),
        trace_id=trace_id_var.get()
    )
    multiplexer.launch(popup_options(
        registry.settings,
        action,
        item.name,
        item.app.cmd,
        item.get_width(),
        item.get_height(),
        on_exit=item.app.on_exit,
        is_app=True,
    ))


def build_taskrunner_cmd(settings: Settings, cmd: str, window_name: str) -> str:
    """Wrap a task command so its window reports success or failure when done."""
    success_name = shlex.quote(f"{window_name} {settings.taskrunner_icon_success}")
    failed_name = shlex.quote(f"{window_name} {settings.taskrunner_icon_failed}")
    lines = []
    if settings.bin_dir:
        lines.append(f'source "{settings.bin_dir}/nunchux-run" 2>/dev/null || true')
    lines += [
        cmd,
        "exit_code=$?",
        "echo",
        "if [[ $exit_code -eq 0 ]]; then",
        f'    tmux rename-window -t "$TMUX_PANE" {success_name} 2>/dev/null',
        '    echo -e "\\033[32m✓ Task completed successfully\\033[0m"',
        "else",
        f'    tmux rename-window -t "$TMUX_PANE" {failed_name} 2>/dev/null',
        '    echo -e "\\033[31m✗ Task failed with exit code $exit_code\\033[0m"',
        "fi",
        "echo",
        'echo "Press any key to close..."',
        "read -n 1 -s",
    ]
    return "\n".join(lines)


def launch_taskrunner(
    registry: Registry,
    multiplexer: Multiplexer,
    picker: Picker,
    item: TaskrunnerItem,
    key: str,
) -> None:
    """
    Run a task in its own window, reusing the window of a previous run.

    Raises:
        LaunchError: the multiplexer rejected the launch
        PickerError: the action menu failed
    """
    settings = registry.settings
    window_name = item.window_name
    is_running = item.is_running_in(multiplexer.running_windows())

    if settings.action_menu_key and key == settings.action_menu_key:
        action = show_action_menu(settings, picker, window_name)
        if not action:
            return
    else:
        action = resolve_item_action(key, settings, item)

    logger.info(
        "Launching task",
        operation="launch_taskrunner",
        status="started",
        name=item.name,
        action=str(action),
        reuse_window=is_running,
        trace_id=trace_id_var.get()
    )
    multiplexer.launch(popup_options(
        settings,
        action,
        window_name,
        build_taskrunner_cmd(settings, item.task.cmd, window_name),
        settings.popup_width,
        settings.popup_height,
        is_taskrunner=True,
        reuse_window=is_running,
        running_icon=settings.taskrunner_icon_running,
    ))


def launch_dirbrowser(
    registry: Registry,
    multiplexer: Multiplexer,
    picker: Picker,
    item: DirbrowserItem,
) -> None:
    """
    Browse a directory and open the chosen file in the editor.

    Canceling the action menu returns to the file list.

    Raises:
        CommandError: the file listing failed
        LaunchError: the multiplexer rejected the launch
        PickerError: the picker failed
    """
    settings = registry.settings

    while True:
        selection = show_dirbrowser(registry, item, picker)
        if selection.canceled or selection.back or not selection.file_path:
            return

        filename = Path(selection.file_path).name
        if settings.action_menu_key and selection.key == settings.action_menu_key:
            action = show_action_menu(settings, picker, filename)
            if not action:
                continue
        else:
            action = resolve_item_action(selection.key, settings, item)

        window_name = filename
        if action == Action.POPUP:
            window_name = f"{item.name} | {filename}"

        logger.info(
            "Opening file",
            operation="launch_dirbrowser",
            status="started",
            path=selection.file_path,
            action=str(action),
            trace_id=trace_id_var.get()
        )
        multiplexer.launch(popup_options(
            settings,
            action,
            window_name,
            f"{get_editor_command()} {shlex.quote(selection.file_path)}",
            item.get_width(),
            item.get_height(),
        ))
        return


# =============================================================================
# Entry Points
# =============================================================================

def launch_item_by_name(
    registry: Registry,
    multiplexer: Multiplexer,
    picker: Picker,
    name: str,
    config_path: str = "",
) -> None:
    """
    Launch an item directly, as bound to a shortcut key.

    Apps use their primary action (or are focused if already running),
    menus open their submenu, and dirbrowsers open their file list.
    """
    item = registry.find_item(name.removeprefix(DIRBROWSER_PREFIX))
    if item is None:
        logger.error(
            "Item not found",
            operation="launch_item_by_name",
            status="failed",
            name=name,
            trace_id=trace_id_var.get()
        )
        return

    try:
        if item.kind is ItemKind.APP:
            if multiplexer.is_window_running(item.name):
                multiplexer.select_window(item.name)
                return
            launch_app(registry, multiplexer, item, item.get_primary_action())
        elif item.kind is ItemKind.MENU:
            run_menu(registry, multiplexer, picker, item.name, config_path)
        elif item.kind is ItemKind.DIRBROWSER:
            launch_dirbrowser(registry, multiplexer, picker, item)
    except (CommandError, LaunchError, PickerError) as e:
        show_error(e)


def run_menu(
    registry: Registry,
    multiplexer: Multiplexer,
    picker: Picker,
    current_menu: str = "",
    config_path: str = "",
    exe: str | None = None,
) -> None:
    """
    Show menus until something is launched or the user leaves.

    Cancel exits immediately; esc pops a submenu back to the root, or exits
    from the root.
    """
    exe = exe or sys.argv[0]
    logger.debug(
        "Starting menu loop",
        operation="run_menu",
        status="started",
        current_menu=current_menu,
        metrics={"items": len(registry.items)},
        trace_id=trace_id_var.get()
    )

    while True:
        try:
            selection = show_menu(registry, multiplexer, picker, current_menu, exe)
        except (CommandError, PickerError) as e:
            show_error(e)
            return

        if selection.canceled:
            return
        if selection.back:
            if current_menu:
                current_menu = ""
                continue
            return

        # Divider lines carry no name
        if not selection.name:
            continue

        if selection.name == EDIT_CONFIG_ITEM:
            if config_path:
                _launch_or_report(launch_editor, multiplexer, registry.settings, config_path)
            return
        if selection.name == OPEN_DOCS_ITEM:
            docs_cmd = f"{shlex.quote(exe)} --help | less"
            _launch_or_report(multiplexer.launch, popup_options(
                registry.settings, Action.POPUP, "docs", docs_cmd,
                registry.settings.popup_width, registry.settings.popup_height,
            ))
            return

        if ":" in selection.name and not selection.name.startswith(DIRBROWSER_PREFIX):
            task_item = registry.find_taskrunner_item(selection.name)
            if task_item is not None:
                _launch_or_report(
                    launch_taskrunner, registry, multiplexer, picker, task_item, selection.key
                )
                return

        item = registry.find_item(selection.name.removeprefix(DIRBROWSER_PREFIX))
        if item is None:
            show_error(f"item not found: {selection.name}")
            return

        logger.debug(
            "Selected item",
            operation="run_menu",
            name=selection.name,
            kind=item.kind.value,
            key=selection.key,
            trace_id=trace_id_var.get()
        )

        if item.kind is ItemKind.MENU:
            current_menu = item.name
            continue

        if item.kind is ItemKind.APP:
            action = resolve_item_action(selection.key, registry.settings, item)
            if (multiplexer.is_window_running(item.name)
                    and action != Action.BACKGROUND_WINDOW):
                multiplexer.select_window(item.name)
                return

            if registry.settings.action_menu_key and selection.key == registry.settings.action_menu_key:
                try:
                    action = show_action_menu(registry.settings, picker, item.name)
                except PickerError as e:
                    show_error(e)
                    return
                if not action:
                    continue

            _launch_or_report(launch_app, registry, multiplexer, item, action)
            return

        if item.kind is ItemKind.DIRBROWSER:
            _launch_or_report(launch_dirbrowser, registry, multiplexer, picker, item)
            return


def _launch_or_report(launch: Callable[..., None], *args) -> None:
    try:
        launch(*args)
    except (CommandError, LaunchError, PickerError) as e:
        logger.error(
            "Launch failed",
            operation="launch",
            status="failed",
            error=str(e),
            trace_id=trace_id_var.get()
        )
        show_error(e)


def list_items(registry: Registry) -> None:
    """Print every configured item, one per line."""
    for item in registry.items:
        if item.kind is ItemKind.APP:
            click.echo(f"○ {item.name} - {item.app.desc}")
        elif item.kind is ItemKind.MENU:
            click.echo(f"▸ {item.name} - {item.menu.desc}")
        elif item.kind is ItemKind.DIRBROWSER:
            click.echo(f"📁 {item.name} - {item.dirbrowser.directory}")
