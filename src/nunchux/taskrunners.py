# =============================================================================
# Task Runner Providers
# =============================================================================
# A provider is a bash script named after the runner (just.sh, npm.sh, ...)
# defining three functions:
#
#   plugin_icon    prints the runner's icon
#   plugin_label   prints the runner's label
#   plugin_items   prints one "task<TAB>command[<TAB>description]" per line
#
# plugin_items runs in the multiplexer pane's working directory.

import shlex
from dataclasses import dataclass
from pathlib import Path

import platformdirs
from loguru import logger

from nunchux.models import TaskrunnerConfig
from nunchux.runner import PROVIDER_TASKS_TIMEOUT, STATUS_TIMEOUT, CommandError, CommandRunner


class ProviderNotFoundError(Exception):
    """No provider script exists for a task runner."""


@dataclass
class TaskrunnerTask:
    name: str
    cmd: str
    description: str = ""


def provider_script_candidates(name: str, bin_dir: str, home: Path | None = None) -> list[Path]:
    """Candidate provider script paths, most specific first."""
    home = home or Path.home()
    script = f"{name}.sh"
    candidates = []
    if bin_dir:
        candidates += [
            Path(bin_dir) / script,
            Path(bin_dir) / "taskrunners" / script,
        ]
    candidates += [
        home / "source" / "nunchux" / "taskrunners" / script,
        Path(platformdirs.user_data_dir("nunchux")) / "taskrunners" / script,
        home / ".local" / "share" / "nunchux" / "taskrunners" / script,
    ]
    return candidates


def find_provider_script(name: str, bin_dir: str, home: Path | None = None) -> Path | None:
    for candidate in provider_script_candidates(name, bin_dir, home):
        if candidate.exists():
            return candidate
    return None


def parse_provider_tasks(output: str) -> list[TaskrunnerTask]:
    """
    Parse plugin_items output.

    Blank lines and records with fewer than two fields are skipped.
    """
    tasks = []
    for line in output.strip().split("\n"):
        if not line:
            continue
        parts = line.split("\t", 2)
        if len(parts) < 2:
            continue
        tasks.append(TaskrunnerTask(
            name=parts[0],
            cmd=parts[1],
            description=parts[2] if len(parts) > 2 else "",
        ))
    return tasks


async def get_provider_value(runner: CommandRunner, script_path: Path, function: str) -> str:
    """Call a provider function that prints a single value; "" on failure."""
    script = f"source {shlex.quote(str(script_path))} && {function} 2>/dev/null"
    try:
        output = await runner.bash(script, timeout=STATUS_TIMEOUT)
    except CommandError as e:
        logger.debug(
            "Provider query failed",
            operation="get_provider_value",
            status="failed",
            script=str(script_path),
            function=function,
            error=str(e)
        )
        return ""
    return output.strip()


async def get_provider_tasks(runner: CommandRunner, script_path: Path, cwd: str) -> list[TaskrunnerTask]:
    """
    Call plugin_items in ``cwd`` and parse the task list.

    Raises:
        CommandError: the provider failed or timed out
    """
    script = (
        f"cd {shlex.quote(cwd)} 2>/dev/null; "
        f"source {shlex.quote(str(script_path))} && plugin_items 2>/dev/null"
    )
    output = await runner.bash(script, timeout=PROVIDER_TASKS_TIMEOUT)
    return parse_provider_tasks(output)


async def load_taskrunner_tasks(
    runner: CommandRunner,
    config: TaskrunnerConfig,
    bin_dir: str,
    cwd: str,
    home: Path | None = None,
) -> tuple[list[TaskrunnerTask], str, str]:
    """
    Discover a task runner's icon, label and tasks from its provider script.

    A configured icon, or a label that differs from the runner name, takes
    precedence over what the provider reports.

    Returns:
        (tasks, icon, label)

    Raises:
        ProviderNotFoundError: no provider script for this runner
        CommandError: plugin_items failed
    """
    script_path = find_provider_script(config.name, bin_dir, home)
    if script_path is None:
        raise ProviderNotFoundError(f"taskrunner provider script not found: {config.name}")

    icon = config.icon
    label = config.label

    if not icon:
        icon = await get_provider_value(runner, script_path, "plugin_icon")
    if not label or label == config.name:
        label = await get_provider_value(runner, script_path, "plugin_label") or label

    tasks = await get_provider_tasks(runner, script_path, cwd)
    return tasks, icon, label
