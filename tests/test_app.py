"""Tests for the menu loop and launch dispatch."""

import pytest

from nunchux import app as app_module
from nunchux.app import (
    build_taskrunner_cmd,
    launch_item_by_name,
    list_items,
    run_menu,
)
from nunchux.items import TaskrunnerItem
from nunchux.models import (
    Action,
    App,
    Config,
    Dirbrowser,
    Menu,
    Settings,
    TaskrunnerConfig,
)
from nunchux.picker import PickerError, PickerSelection
from nunchux.registry import Registry
from nunchux.taskrunners import TaskrunnerTask
from tests.fakes import FakeMultiplexer, FakePicker, FakeRunner, pick


@pytest.fixture(autouse=True)
def errors(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    shown: list[str] = []
    monkeypatch.setattr(app_module, "show_error", lambda error: shown.append(str(error)))
    monkeypatch.setenv("VISUAL", "vi")
    return shown


def make_registry(settings: Settings | None = None, runner: FakeRunner | None = None) -> Registry:
    settings = settings or Settings()
    config = Config(
        settings=settings,
        apps=[
            App(name="htop", cmd="htop", desc="Processes"),
            App(name="finance/ledger", cmd="ledger", parent="finance"),
        ],
        menus=[Menu(name="finance")],
        dirbrowsers=[Dirbrowser(name="notes", directory="/notes")],
    )
    return Registry.build(config, runner or FakeRunner({"find": "100\t/notes/a.md\n"}))


def border_label(options: list[str]) -> str:
    return next(opt for opt in options if opt.startswith("--border-label="))


# =============================================================================
# Navigation
# =============================================================================


def test_back_from_submenu_returns_to_root_then_exits() -> None:
    picker = FakePicker([PickerSelection(key="esc"), PickerSelection(key="esc")])
    mux = FakeMultiplexer()

    run_menu(make_registry(), mux, picker, "finance")

    assert len(picker.calls) == 2
    assert border_label(picker.calls[0][1]) == "--border-label= nunchux: finance (/work) "
    assert border_label(picker.calls[1][1]) == "--border-label= nunchux (/work) "
    assert mux.launches == []


def test_cancel_exits_immediately() -> None:
    picker = FakePicker([PickerSelection(canceled=True), pick("htop")])
    mux = FakeMultiplexer()

    run_menu(make_registry(), mux, picker, "finance")

    assert len(picker.calls) == 1
    assert mux.launches == []


def test_selecting_a_menu_opens_it() -> None:
    picker = FakePicker([pick("finance"), pick("finance/ledger")])
    mux = FakeMultiplexer()

    run_menu(make_registry(), mux, picker)

    assert "ledger" in picker.calls[1][0]
    assert "htop" not in picker.calls[1][0]
    assert [opts.name for opts in mux.launches] == ["finance/ledger"]


def test_divider_selection_is_ignored() -> None:
    picker = FakePicker([pick(""), pick("htop")])
    mux = FakeMultiplexer()

    run_menu(make_registry(), mux, picker)

    assert len(picker.calls) == 2
    assert [opts.name for opts in mux.launches] == ["htop"]


def test_unknown_item_shows_error(errors: list[str]) -> None:
    run_menu(make_registry(), FakeMultiplexer(), FakePicker([pick("ghost")]))

    assert errors == ["item not found: ghost"]


def test_picker_failure_shows_error(errors: list[str]) -> None:
    class BrokenPicker(FakePicker):
        def run(self, menu_text, options):
            raise PickerError("fzf exited with code 2")

    run_menu(make_registry(), FakeMultiplexer(), BrokenPicker())

    assert errors == ["fzf exited with code 2"]


# =============================================================================
# Apps
# =============================================================================


def test_accept_key_launches_app_in_popup() -> None:
    mux = FakeMultiplexer()

    run_menu(make_registry(), mux, FakePicker([pick("htop")]))

    (opts,) = mux.launches
    assert opts.action == Action.POPUP
    assert opts.cmd == "htop"
    assert opts.is_app
    assert (opts.width, opts.height) == ("90%", "90%")


def test_item_primary_action_drives_launch() -> None:
    config = Config(apps=[App(name="htop", cmd="htop", primary_action=Action.PANE_BELOW)])
    registry = Registry.build(config, FakeRunner())
    mux = FakeMultiplexer()

    run_menu(registry, mux, FakePicker([pick("htop")]))

    assert mux.launches[0].action == Action.PANE_BELOW


def test_direct_key_launches_in_pane() -> None:
    mux = FakeMultiplexer()
    settings = Settings(pane_right_key="ctrl-l")

    run_menu(make_registry(settings), mux, FakePicker([pick("htop", key="ctrl-l")]))

    assert mux.launches[0].action == Action.PANE_RIGHT


def test_running_app_is_focused() -> None:
    mux = FakeMultiplexer(windows={"htop"})

    run_menu(make_registry(), mux, FakePicker([pick("htop")]))

    assert mux.selected == ["htop"]
    assert mux.launches == []


def test_running_app_can_open_in_background() -> None:
    mux = FakeMultiplexer(windows={"htop"})
    settings = Settings(background_window_key="alt-b")

    run_menu(make_registry(settings), mux, FakePicker([pick("htop", key="alt-b")]))

    assert mux.selected == []
    assert mux.launches[0].action == Action.BACKGROUND_WINDOW


def test_action_menu_key_picks_action() -> None:
    mux = FakeMultiplexer()
    picker = FakePicker([
        pick("htop", key="ctrl-j"),
        PickerSelection(key="", fields=["pane_left", "Open in pane to the left"]),
    ])

    run_menu(make_registry(), mux, picker)

    assert "--border-label= Action: htop " in picker.calls[1][1]
    assert mux.launches[0].action == Action.PANE_LEFT


def test_canceled_action_menu_returns_to_menu() -> None:
    mux = FakeMultiplexer()
    picker = FakePicker([pick("htop", key="ctrl-j"), PickerSelection(key="esc")])

    run_menu(make_registry(), mux, picker)

    # menu, action menu, menu again (queue empty, so canceled)
    assert len(picker.calls) == 3
    assert mux.launches == []


# =============================================================================
# Dirbrowsers, Task Runners, Empty Config
# =============================================================================


def test_dirbrowser_opens_file_in_editor() -> None:
    mux = FakeMultiplexer()
    picker = FakePicker([
        pick("dirbrowser:notes"),
        PickerSelection(key="", fields=["display", "/notes/a.md", "90%", "80%"]),
    ])

    run_menu(make_registry(), mux, picker)

    assert "a.md" in picker.calls[1][0]
    (opts,) = mux.launches
    assert opts.action == Action.POPUP
    assert opts.name == "notes | a.md"
    assert opts.cmd == "vi /notes/a.md"
    assert (opts.width, opts.height) == ("90%", "80%")


def test_dirbrowser_window_uses_file_name() -> None:
    mux = FakeMultiplexer()
    picker = FakePicker([
        pick("dirbrowser:notes"),
        PickerSelection(key="ctrl-o", fields=["display", "/notes/a.md", "90%", "80%"]),
    ])

    run_menu(make_registry(), mux, picker)

    assert mux.launches[0].action == Action.WINDOW
    assert mux.launches[0].name == "a.md"


def test_dirbrowser_back_ends_loop() -> None:
    mux = FakeMultiplexer()
    picker = FakePicker([pick("dirbrowser:notes"), PickerSelection(key="esc")])

    run_menu(make_registry(), mux, picker)

    assert mux.launches == []


def test_dirbrowser_listing_failure_shows_error(errors: list[str]) -> None:
    from nunchux.runner import CommandError

    runner = FakeRunner(default=CommandError(["find"], "find exited with code 1", returncode=1))
    picker = FakePicker([pick("dirbrowser:notes")])

    run_menu(make_registry(runner=runner), FakeMultiplexer(), picker)

    assert errors == ["find exited with code 1"]


def task_registry() -> Registry:
    registry = make_registry()
    config = TaskrunnerConfig(name="just", enabled=True, label="just")
    registry.taskrunner_items = [TaskrunnerItem(
        runner="just",
        task=TaskrunnerTask(name="build", cmd="just build"),
        config=config,
        settings=registry.settings,
        label="just",
    )]
    return registry


def test_taskrunner_launches_in_window() -> None:
    mux = FakeMultiplexer()

    run_menu(task_registry(), mux, FakePicker([pick("just:build")]))

    (opts,) = mux.launches
    assert opts.action == Action.WINDOW
    assert opts.name == "just » build"
    assert opts.is_taskrunner
    assert not opts.reuse_window
    assert "just build" in opts.cmd


def test_taskrunner_reuses_running_window() -> None:
    mux = FakeMultiplexer(windows={"just » build ✅"})

    run_menu(task_registry(), mux, FakePicker([pick("just:build", key="ctrl-o")]))

    assert mux.launches[0].reuse_window
    assert mux.launches[0].action == Action.BACKGROUND_WINDOW


def test_build_taskrunner_cmd_reports_result() -> None:
    settings = Settings(bin_dir="/opt/nunchux")

    script = build_taskrunner_cmd(settings, "make test", "make » test")

    assert script.startswith('source "/opt/nunchux/nunchux-run"')
    assert "make test\nexit_code=$?" in script
    assert "'make » test ✅'" in script
    assert "'make » test ❌'" in script


def test_empty_config_offers_editing() -> None:
    registry = Registry.build(Config(), FakeRunner())
    mux = FakeMultiplexer()
    picker = FakePicker([pick("__edit_config")])

    run_menu(registry, mux, picker, config_path="/home/me/.nunchuxrc")

    assert "__edit_config" in picker.calls[0][0]
    assert mux.launches[0].cmd == "vi /home/me/.nunchuxrc"
    assert mux.launches[0].action == Action.POPUP


# =============================================================================
# Direct Launch & Listing
# =============================================================================


def test_launch_item_by_name_uses_primary_action() -> None:
    mux = FakeMultiplexer()

    launch_item_by_name(make_registry(), mux, FakePicker(), "htop")

    assert mux.launches[0].action == Action.POPUP
    assert mux.launches[0].name == "htop"


def test_launch_item_by_name_focuses_running_app() -> None:
    mux = FakeMultiplexer(windows={"htop"})

    launch_item_by_name(make_registry(), mux, FakePicker(), "htop")

    assert mux.selected == ["htop"]


def test_launch_item_by_name_accepts_dirbrowser_prefix() -> None:
    picker = FakePicker([PickerSelection(key="esc")])

    launch_item_by_name(make_registry(), FakeMultiplexer(), picker, "dirbrowser:notes")

    assert "a.md" in picker.calls[0][0]


def test_launch_item_by_name_ignores_unknown_items() -> None:
    mux = FakeMultiplexer()

    launch_item_by_name(make_registry(), mux, FakePicker(), "ghost")

    assert mux.launches == []


def test_list_items(capsys: pytest.CaptureFixture[str]) -> None:
    list_items(make_registry())

    assert capsys.readouterr().out.splitlines() == [
        "○ htop - Processes",
        "○ finance/ledger - ",
        "▸ finance - ",
        "📁 notes - /notes",
    ]
