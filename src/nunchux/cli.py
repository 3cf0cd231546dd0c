# =============================================================================
# Command Line Entry Point
# =============================================================================

import asyncio
import shutil
import sys
from pathlib import Path
from uuid import uuid4

import click
import platformdirs
from loguru import logger

from nunchux import picker as picker_module
from nunchux import tmux
from nunchux.app import SHELL_INIT, launch_editor, launch_item_by_name, list_items, run_menu
from nunchux.config_loader import find_config_file, load_config_from_path
from nunchux.errors import Error, ErrorReport, ErrorType
from nunchux.logging_config import get_log_path, setup_logger, trace_id_var
from nunchux.picker import FzfPicker, PickerError
from nunchux.registry import Registry
from nunchux.runner import SubprocessRunner
from nunchux.tmux import LaunchError, TmuxClient
from nunchux.ui import show_config_errors, show_error

RUN_WRAPPER = "nunchux-run"

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])


def preflight() -> str | None:
    """Return a message describing the first missing requirement, if any."""
    if not tmux.is_available():
        return "tmux is not installed"
    if not tmux.in_session():
        return "must be run inside a tmux session"
    if not picker_module.is_available():
        return "fzf is not installed"
    return None


def bin_dir_candidates(home: Path | None = None) -> list[Path]:
    home = home or Path.home()
    candidates = []
    exe = shutil.which(sys.argv[0]) or sys.argv[0]
    if exe:
        candidates.append(Path(exe).resolve().parent)
    candidates += [
        home / "source" / "nunchux",
        Path(platformdirs.user_data_dir("nunchux")),
        home / ".local" / "share" / "nunchux",
        home / ".local" / "bin",
        Path("/usr/local/share/nunchux"),
    ]
    return candidates


def get_bin_dir(home: Path | None = None) -> str:
    """Directory holding the nunchux-run wrapper, or "" when not installed."""
    for candidate in bin_dir_candidates(home):
        if (candidate / RUN_WRAPPER).exists():
            return str(candidate)
    return ""


@click.command(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="nunchux")
@click.option("--list", "list_flag", is_flag=True, help="List configured items.")
@click.option("--submenu", default="", help="Open a specific submenu.")
@click.option("--debug", is_flag=True, help="Mirror structured logs to stderr.")
@click.option("--log", "log_flag", is_flag=True, help="Print the log file path.")
@click.option("--show-shortcuts", is_flag=True, help="Show shortcut prefixes in the menu.")
@click.option("--hide-shortcuts", is_flag=True, help="Hide shortcut prefixes in the menu.")
@click.option("--launch-shortcut", default="", help="Launch an item by name.")
@click.option("--kill", "kill_name", default="", help="Kill a window by name.")
@click.option("--menu", "menu_flag", is_flag=True, help="Print menu content (for picker reloads).")
@click.option(
    "--shell-init",
    type=click.Choice(sorted(SHELL_INIT)),
    default=None,
    help="Print shell integration code.",
)
def cli(
    list_flag: bool,
    submenu: str,
    debug: bool,
    log_flag: bool,
    show_shortcuts: bool,
    hide_shortcuts: bool,
    launch_shortcut: str,
    kill_name: str,
    menu_flag: bool,
    shell_init: str | None,
) -> None:
    """Compose a tmux popup menu of apps, submenus, directory browsers and tasks."""
    if log_flag:
        click.echo(get_log_path())
        return

    if shell_init:
        click.echo(SHELL_INIT[shell_init], nl=False)
        return

    setup_logger(debug)
    trace_id = str(uuid4())
    trace_id_var.set(trace_id)
    report = ErrorReport()

    logger.info(
        "nunchux starting",
        operation="main",
        status="started",
        trace_id=trace_id
    )

    config_path = find_config_file()
    if config_path is None:
        report.add_error(Error(
            error_type=ErrorType.FILE_NOT_FOUND,
            message="no config file found",
        ))
        show_error("no config file found")
        sys.exit(1)

    result = load_config_from_path(config_path)
    if not report.collect_result(result):
        show_error(result.error.message)
        sys.exit(1)
    config = result.value

    if show_shortcuts:
        config.settings.show_help = True
    elif hide_shortcuts:
        config.settings.show_help = False

    bin_dir = get_bin_dir()
    config.settings.bin_dir = bin_dir

    registry = Registry.build(config, SubprocessRunner())

    if list_flag:
        list_items(registry)
        return

    problem = preflight()
    if problem:
        logger.error(
            "Preflight failed",
            operation="preflight",
            status="failed",
            error=problem,
            trace_id=trace_id
        )
        show_error(problem)
        sys.exit(1)

    multiplexer = TmuxClient(bin_dir)
    picker = FzfPicker()

    for shortcut_error in registry.validation_errors:
        report.add_error(Error(
            error_type=ErrorType.VALIDATION_ERROR,
            message=shortcut_error.message,
            context={"item_name": shortcut_error.item_name},
        ))

    if report.has_errors():
        report.log_summary(trace_id)
        try:
            if show_config_errors(registry.settings, picker, report.messages()):
                launch_editor(multiplexer, registry.settings, str(config_path))
        except (PickerError, LaunchError) as e:
            show_error(e)
        return

    if kill_name:
        multiplexer.kill_window(kill_name)
        return

    asyncio.run(registry.load_taskrunners(multiplexer.current_path()))

    if menu_flag:
        content = asyncio.run(registry.build_menu(multiplexer.running_windows(), submenu))
        click.echo(content, nl=False)
        return

    if launch_shortcut:
        launch_item_by_name(registry, multiplexer, picker, launch_shortcut, str(config_path))
    else:
        run_menu(registry, multiplexer, picker, submenu, str(config_path))

    report.log_summary(trace_id)


def main() -> None:
    """Console script entry point."""
    cli()
