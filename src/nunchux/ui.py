# =============================================================================
# Menu Screens
# =============================================================================

import asyncio
import os
import random
import shlex
import sys
from dataclasses import dataclass
from pathlib import Path

import click
from loguru import logger

from nunchux import dirbrowser as dirbrowser_engine
from nunchux.actions import ACTION_CHOICES
from nunchux.items import DirbrowserItem
from nunchux.models import BACK_KEY, Action, Settings
from nunchux.picker import OptionsBuilder, Picker, action_menu_options
from nunchux.registry import Registry
from nunchux.tmux import Multiplexer

EDIT_CONFIG_ITEM = "__edit_config"
OPEN_DOCS_ITEM = "__open_docs"
EMPTY_CONFIG_MENU = (
    f"Edit config file\t\t{EDIT_CONFIG_ITEM}\n"
    f"Open documentation\t\t{OPEN_DOCS_ITEM}"
)

ERROR_QUIPS = [
    "Chuck Norris can unit test entire applications with a single assert.",
    "Chuck Norris can delete the root folder and still boot.",
    "Chuck Norris can instantiate an abstract class.",
    "Chuck Norris can divide by zero.",
    "When Chuck Norris throws an exception, nothing can catch it.",
    "Chuck Norris can compile syntax errors.",
    "Chuck Norris can read from /dev/null.",
    "Chuck Norris's code is self-documenting. In binary.",
    "When Chuck Norris git pushes, the remote pulls.",
    "Chuck Norris doesn't get compiler errors. The compiler gets Chuck Norris errors.",
]


@dataclass
class Selection:
    name: str = ""
    key: str = ""
    canceled: bool = False
    back: bool = False


@dataclass
class DirbrowserSelection:
    file_path: str = ""
    key: str = ""
    canceled: bool = False
    back: bool = False


def shorten_home(path: str) -> str:
    home = str(Path.home())
    if home and path.startswith(home):
        return "~" + path[len(home):]
    return path


def help_header(settings: Settings) -> str:
    if not settings.show_help:
        return ""
    parts = ["enter: open"]
    if settings.secondary_key:
        parts.append(f"{settings.secondary_key}: {settings.secondary_action}")
    if settings.action_menu_key:
        parts.append(f"{settings.action_menu_key}: action menu")
    parts.append("esc: back")
    return " │ ".join(parts)


def build_menu_options(
    settings: Settings,
    current_menu: str,
    shortcuts: dict[str, str],
    cwd: str,
    exe: str,
) -> list[str]:
    """Picker options for the root menu or a submenu, including shortcut bindings."""
    builder = OptionsBuilder(settings)

    label = f" {settings.label}"
    if current_menu:
        label += f": {current_menu}"
    if settings.show_cwd and cwd:
        label += f" ({shorten_home(cwd)})"
    builder.with_border_label(label + " ")
    builder.with_header(help_header(settings))

    submenu_arg = f" --submenu {shlex.quote(current_menu)}" if current_menu else ""

    if settings.toggle_shortcuts_key:
        toggle = "--hide-shortcuts" if settings.show_help else "--show-shortcuts"
        builder.bind(settings.toggle_shortcuts_key, f"become({exe}{submenu_arg} {toggle})")

    for key, item_name in shortcuts.items():
        builder.bind(key, f"become({exe} --launch-shortcut {shlex.quote(item_name)})")

    reload_cmd = f"{exe} --menu{submenu_arg}"
    if settings.show_help:
        reload_cmd += " --show-shortcuts"
    builder.bind("ctrl-x", f"reload({exe} --kill {{3}} 2>/dev/null; {reload_cmd})")

    return builder.build()


def show_menu(
    registry: Registry,
    multiplexer: Multiplexer,
    picker: Picker,
    current_menu: str = "",
    exe: str | None = None,
) -> Selection:
    """
    Show the root menu or a submenu and report what was picked.

    Raises:
        PickerError: the picker failed
    """
    exe = exe or sys.argv[0]
    menu_text = asyncio.run(registry.build_menu(multiplexer.running_windows(), current_menu))

    if not menu_text:
        if not current_menu:
            return show_empty_config_menu(registry.settings, picker)
        return Selection(canceled=True)

    cwd = multiplexer.current_path() if registry.settings.show_cwd else ""
    options = build_menu_options(registry.settings, current_menu, registry.shortcuts, cwd, exe)
    picked = picker.run(menu_text, options)

    if picked.canceled:
        return Selection(canceled=True)
    if picked.key == BACK_KEY:
        return Selection(back=True)
    if len(picked.fields) < 3:
        return Selection(canceled=True)

    return Selection(name=picked.fields[2], key=picked.key)


def show_empty_config_menu(settings: Settings, picker: Picker) -> Selection:
    builder = OptionsBuilder(settings)
    builder.with_border_label(" nunchux ")
    builder.with_header("No items configured. Add some apps to your config file.")

    picked = picker.run(EMPTY_CONFIG_MENU, builder.build())
    if picked.canceled:
        return Selection(canceled=True)
    if picked.key == BACK_KEY:
        return Selection(back=True)
    if len(picked.fields) < 3:
        return Selection(canceled=True)
    return Selection(name=picked.fields[2], key=picked.key)


def show_dirbrowser(
    registry: Registry,
    item: DirbrowserItem,
    picker: Picker,
) -> DirbrowserSelection:
    """
    List a browser's files in the picker.

    An empty listing goes back to the menu.

    Raises:
        CommandError: the file listing failed
        PickerError: the picker failed
    """
    settings = registry.settings
    entries = asyncio.run(
        dirbrowser_engine.list_files(registry.runner, item.dirbrowser, settings)
    )
    if not entries:
        return DirbrowserSelection(back=True)

    menu_text = "\n".join(
        dirbrowser_engine.format_file_entry(entry, item.dirbrowser, settings)
        for entry in entries
    )

    builder = OptionsBuilder(settings)
    builder.with_border_label(f" {settings.label}: {item.name} ")
    builder.with_header(help_header(settings))

    picked = picker.run(menu_text, builder.build())
    if picked.canceled:
        return DirbrowserSelection(canceled=True)
    if picked.key == BACK_KEY or len(picked.fields) < 2:
        return DirbrowserSelection(back=True)

    return DirbrowserSelection(file_path=picked.fields[1], key=picked.key)


def show_action_menu(settings: Settings, picker: Picker, item_name: str) -> Action | str:
    """Let the user pick a launch action; "" when canceled."""
    menu_text = "\n".join(f"{action}\t{title}" for action, title in ACTION_CHOICES)
    picked = picker.run(menu_text, action_menu_options(settings, item_name))
    if picked.canceled or picked.key == BACK_KEY or not picked.fields:
        return ""
    return Action(picked.fields[0])


def show_config_errors(settings: Settings, picker: Picker, errors: list[str]) -> bool:
    """
    List config problems in the picker.

    Returns:
        True if the user chose to edit the config
    """
    header = (
        f"\033[1;33m{random.choice(ERROR_QUIPS)}\033[0m\n"
        "\033[90m... but you are not Chuck Norris :)\033[0m\n\n"
        "\033[1;31mConfig has problems:\033[0m\n"
        "\033[90menter: edit config │ esc: exit\033[0m"
    )
    options = [
        "--ansi",
        "--layout=reverse",
        "--height=100%",
        "--highlight-line",
        "--no-preview",
        "--no-info",
        "--prompt= ",
        f"--pointer={settings.fzf_pointer}",
        f"--border={settings.fzf_border}",
        f"--border-label= {settings.label}: config error ",
        "--border-label-pos=3",
        f"--color={settings.fzf_colors}",
        f"--header={header}",
        "--header-first",
        "--expect=enter,esc",
    ]
    lines = "\n".join(f"\033[31m•\033[0m {error}" for error in errors)

    picked = picker.run(lines, options)
    if picked.canceled:
        return False
    return picked.key in ("", "enter")


def show_error(error: Exception | str) -> None:
    """Print an error screen and wait for a key press."""
    logger.error(
        "Showing error",
        operation="show_error",
        status="error",
        error=str(error)
    )
    click.echo()
    click.secho(random.choice(ERROR_QUIPS), fg="yellow", bold=True)
    click.echo()
    click.secho("... but you are not Chuck Norris :)", fg="bright_black")
    click.echo()
    click.secho(str(error), fg="red", bold=True)
    click.echo()
    click.pause("Press any key...")


def get_editor_command() -> str:
    return os.environ.get("VISUAL") or os.environ.get("EDITOR") or "nvim"
