"""Tests for picker output parsing and option building."""

import subprocess

import pytest

from nunchux.models import Settings
from nunchux.picker import (
    FzfPicker,
    OptionsBuilder,
    PickerError,
    action_menu_options,
    parse_output,
)


def test_parse_accept_key() -> None:
    selection = parse_output("\n○ htop\t\thtop\n")

    assert selection.key == ""
    assert selection.fields == ["○ htop", "", "htop"]
    assert not selection.canceled


def test_parse_expected_key() -> None:
    selection = parse_output("ctrl-o\n○ htop\tctrl-h\thtop\n")

    assert selection.key == "ctrl-o"
    assert selection.fields[2] == "htop"


def test_parse_key_without_selection() -> None:
    selection = parse_output("esc\n")

    assert selection.key == "esc"
    assert selection.fields == []


def test_parse_empty_output_is_cancel() -> None:
    assert parse_output("").canceled


def test_options_builder_expect_list() -> None:
    settings = Settings(popup_key="alt-p", pane_below_key="alt-j")

    options = OptionsBuilder(settings).expect("f2").build()

    expect = [opt for opt in options if opt.startswith("--expect=")]
    assert expect == ["--expect=esc,f2,ctrl-o,ctrl-j,alt-p,alt-j"]


def test_options_builder_label_header_and_bindings() -> None:
    options = (
        OptionsBuilder(Settings())
        .with_border_label(" nunchux ")
        .with_header("help")
        .bind("ctrl-x", "reload(x)")
        .build()
    )

    assert "--border-label= nunchux " in options
    assert "--header=help" in options
    assert "--header-first" in options
    assert options[-1] == "--bind=ctrl-x:reload(x)"


def test_options_builder_omits_empty_label_and_header() -> None:
    options = OptionsBuilder(Settings()).build()

    assert not any(opt.startswith("--border-label") for opt in options)
    assert not any(opt.startswith("--header") for opt in options)
    assert "--prompt= " in options


def test_action_menu_options_label() -> None:
    options = action_menu_options(Settings(), "htop")

    assert "--border-label= Action: htop " in options
    assert "--with-nth=2" in options


def completed(returncode: int, stdout: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["fzf"], returncode=returncode, stdout=stdout)


def test_fzf_picker_success(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = {}

    def fake_run(argv, **kwargs):
        captured["argv"] = argv
        captured["input"] = kwargs["input"]
        return completed(0, "\nline\tx\tname\n")

    monkeypatch.setattr(subprocess, "run", fake_run)

    selection = FzfPicker().run("menu text", ["--ansi"])

    assert captured == {"argv": ["fzf", "--ansi"], "input": "menu text"}
    assert selection.fields == ["line", "x", "name"]


@pytest.mark.parametrize("returncode", [1, 130])
def test_fzf_picker_cancel_codes(monkeypatch: pytest.MonkeyPatch, returncode: int) -> None:
    monkeypatch.setattr(subprocess, "run", lambda argv, **kwargs: completed(returncode))

    assert FzfPicker().run("", []).canceled


def test_fzf_picker_other_failures_raise(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(subprocess, "run", lambda argv, **kwargs: completed(2))

    with pytest.raises(PickerError):
        FzfPicker().run("", [])
