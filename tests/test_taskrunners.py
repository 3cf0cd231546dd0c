"""Tests for task runner provider discovery and parsing."""

import asyncio
from pathlib import Path

import pytest

from nunchux.models import TaskrunnerConfig
from nunchux.taskrunners import (
    ProviderNotFoundError,
    TaskrunnerTask,
    find_provider_script,
    load_taskrunner_tasks,
    parse_provider_tasks,
    provider_script_candidates,
)
from tests.fakes import FakeRunner


def test_parse_provider_tasks() -> None:
    output = "build\tjust build\tCompile\n\ntest\tjust test\nlonely\n"

    assert parse_provider_tasks(output) == [
        TaskrunnerTask(name="build", cmd="just build", description="Compile"),
        TaskrunnerTask(name="test", cmd="just test", description=""),
    ]


def test_parse_provider_tasks_keeps_tabs_in_description() -> None:
    tasks = parse_provider_tasks("a\tcmd\tdesc\twith tab\n")

    assert tasks[0].description == "desc\twith tab"


def test_candidates_start_next_to_binary(tmp_path: Path) -> None:
    candidates = provider_script_candidates("just", "/opt/nunchux", home=tmp_path)

    assert candidates[0] == Path("/opt/nunchux/just.sh")
    assert candidates[1] == Path("/opt/nunchux/taskrunners/just.sh")
    assert tmp_path / ".local" / "share" / "nunchux" / "taskrunners" / "just.sh" in candidates


def test_candidates_without_bin_dir(tmp_path: Path) -> None:
    candidates = provider_script_candidates("just", "", home=tmp_path)

    assert candidates[0] == tmp_path / "source" / "nunchux" / "taskrunners" / "just.sh"


def test_find_provider_script_takes_first_existing(tmp_path: Path) -> None:
    bin_dir = tmp_path / "bin"
    (bin_dir / "taskrunners").mkdir(parents=True)
    nested = bin_dir / "taskrunners" / "npm.sh"
    nested.write_text("")

    assert find_provider_script("npm", str(bin_dir), home=tmp_path) == nested

    direct = bin_dir / "npm.sh"
    direct.write_text("")

    assert find_provider_script("npm", str(bin_dir), home=tmp_path) == direct


def test_load_taskrunner_tasks_queries_provider(tmp_path: Path) -> None:
    (tmp_path / "just.sh").write_text("")
    runner = FakeRunner({
        "plugin_items": "build\tjust build\n",
        "plugin_icon": "J\n",
        "plugin_label": "Just\n",
    })
    config = TaskrunnerConfig(name="just", enabled=True, label="just")

    tasks, icon, label = asyncio.run(
        load_taskrunner_tasks(runner, config, str(tmp_path), "/project", home=tmp_path)
    )

    assert [task.name for task in tasks] == ["build"]
    assert (icon, label) == ("J", "Just")
    items_call = next(call for call in runner.calls if "plugin_items" in call[-1])
    assert "cd /project" in items_call[-1]


def test_configured_icon_and_label_skip_provider_queries(tmp_path: Path) -> None:
    (tmp_path / "just.sh").write_text("")
    runner = FakeRunner({"plugin_items": "build\tjust build\n"}, default="unused")
    config = TaskrunnerConfig(name="just", enabled=True, icon="*", label="Tasks")

    _, icon, label = asyncio.run(
        load_taskrunner_tasks(runner, config, str(tmp_path), "/project", home=tmp_path)
    )

    assert (icon, label) == ("*", "Tasks")
    assert len(runner.calls) == 1


def test_missing_provider_raises(tmp_path: Path) -> None:
    config = TaskrunnerConfig(name="no-such-runner", enabled=True)

    with pytest.raises(ProviderNotFoundError):
        asyncio.run(load_taskrunner_tasks(FakeRunner(), config, str(tmp_path), "/", home=tmp_path))
