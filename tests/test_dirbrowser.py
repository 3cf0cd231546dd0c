"""Tests for directory browser listing, sorting and formatting."""

import asyncio

import pytest

from nunchux.dirbrowser import (
    FOLDER_STYLE,
    RESET_STYLE,
    FileEntry,
    build_find_args,
    count_files,
    format_ago,
    format_file_entry,
    list_files,
    parse_find_output,
    sort_entries,
)
from nunchux.models import Dirbrowser, Settings
from nunchux.runner import CommandError
from tests.fakes import FakeRunner


def entry(rel_path: str, mod_time: float) -> FileEntry:
    folder, sep, _ = rel_path.partition("/")
    filename = rel_path.rsplit("/", 1)[-1]
    return FileEntry(
        path=f"/root/{rel_path}",
        rel_path=rel_path,
        folder=folder if sep else filename,
        filename=filename,
        mod_time=mod_time,
    )


def rel_paths(entries: list[FileEntry]) -> list[str]:
    return [e.rel_path for e in entries]


# =============================================================================
# find(1) arguments
# =============================================================================


def test_find_args_with_excludes_and_glob() -> None:
    browser = Dirbrowser(name="notes", directory="/notes", depth=2, glob="*.md")
    settings = Settings(exclude_patterns=".git, *.log,  ")

    args = build_find_args(browser, settings)

    assert args == [
        "find", "/notes", "-maxdepth", "2", "-type", "f",
        "!", "-path", "*/.git/*", "!", "-name", ".git",
        "!", "-name", "*.log",
        "-name", "*.md",
    ]


def test_find_args_zero_depth_means_one() -> None:
    browser = Dirbrowser(name="notes", directory="/notes", depth=0)

    args = build_find_args(browser, Settings(exclude_patterns=""))

    assert args == ["find", "/notes", "-maxdepth", "1", "-type", "f"]


# =============================================================================
# Parsing & Sorting
# =============================================================================


def test_parse_find_output() -> None:
    output = "1700000000.75\t/notes/todo.md\n1600000000.0\t/notes/work/plan.md\n\ngarbage\n"

    entries = parse_find_output(output, "/notes")

    assert len(entries) == 2
    top, nested = entries
    assert (top.rel_path, top.folder, top.filename) == ("todo.md", "todo.md", "todo.md")
    assert top.mod_time == 1700000000
    assert (nested.rel_path, nested.folder, nested.filename) == (
        "work/plan.md", "work", "plan.md",
    )


def test_sort_modified_descending_by_default() -> None:
    entries = [entry("a", 1), entry("b", 3), entry("c", 2)]

    assert rel_paths(sort_entries(entries, "modified", "")) == ["b", "c", "a"]


def test_sort_modified_ascending() -> None:
    entries = [entry("a", 1), entry("b", 3), entry("c", 2)]

    assert rel_paths(sort_entries(entries, "modified", "ascending")) == ["a", "c", "b"]


def test_unknown_sort_falls_back_to_modified() -> None:
    entries = [entry("a", 1), entry("b", 3)]

    assert rel_paths(sort_entries(entries, "size", "descending")) == ["b", "a"]


def test_sort_alphabetical() -> None:
    entries = [entry("b/x", 1), entry("a/y", 2), entry("c", 3)]

    assert rel_paths(sort_entries(entries, "alphabetical", "ascending")) == ["a/y", "b/x", "c"]
    assert rel_paths(sort_entries(entries, "alphabetical", "descending")) == ["c", "b/x", "a/y"]


def test_sort_modified_folder_groups_by_newest_file() -> None:
    entries = [
        entry("old/one", 10),
        entry("new/one", 50),
        entry("old/two", 90),
        entry("new/two", 60),
        entry("loose", 70),
    ]

    result = sort_entries(entries, "modified-folder", "descending")

    # old/ holds the newest file (90), then loose (70), then new/ (60)
    assert rel_paths(result) == ["old/two", "old/one", "loose", "new/two", "new/one"]


def test_sort_modified_folder_breaks_ties_by_file_time() -> None:
    entries = [entry("f/a", 5), entry("f/b", 9), entry("f/c", 7)]

    descending = sort_entries(entries, "modified-folder", "descending")
    ascending = sort_entries(entries, "modified-folder", "ascending")

    assert rel_paths(descending) == ["f/b", "f/c", "f/a"]
    assert rel_paths(ascending) == ["f/a", "f/c", "f/b"]


# =============================================================================
# Listing
# =============================================================================


def test_list_files_sorts_runner_output() -> None:
    runner = FakeRunner({"find": "100\t/notes/a.md\n300\t/notes/b.md\n"})
    browser = Dirbrowser(name="notes", directory="/notes")

    entries = asyncio.run(list_files(runner, browser, Settings()))

    assert [e.filename for e in entries] == ["b.md", "a.md"]
    assert runner.calls[0][-2:] == ["-printf", "%T@\t%p\n"]


def test_list_files_propagates_errors() -> None:
    runner = FakeRunner(default=CommandError(["find"], "find exited with code 1", returncode=1))
    browser = Dirbrowser(name="notes", directory="/missing")

    with pytest.raises(CommandError):
        asyncio.run(list_files(runner, browser, Settings()))


def test_count_files() -> None:
    runner = FakeRunner({"find": "/n/a\n/n/b\n/n/c\n"})

    assert asyncio.run(count_files(runner, Dirbrowser(name="n", directory="/n"), Settings())) == 3


def test_count_files_is_zero_on_error() -> None:
    runner = FakeRunner(default=CommandError(["find"], "boom"))

    assert asyncio.run(count_files(runner, Dirbrowser(name="n", directory="/n"), Settings())) == 0


# =============================================================================
# Formatting
# =============================================================================


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0, "0s ago"),
        (59, "59s ago"),
        (60, "1m ago"),
        (3599, "59m ago"),
        (3600, "1h ago"),
        (86399, "23h ago"),
        (86400, "1d ago"),
        (86400 * 9, "9d ago"),
    ],
)
def test_format_ago(seconds: int, expected: str) -> None:
    assert format_ago(seconds) == expected


def test_format_file_entry_in_root() -> None:
    browser = Dirbrowser(name="notes", directory="/root", width="70%", height="")
    settings = Settings(popup_height="85%")

    line = format_file_entry(entry("todo.md", 1000), browser, settings, now=1120)

    assert line == "○    2m ago │ todo.md\t/root/todo.md\t70%\t85%"


def test_format_file_entry_shows_dimmed_folder() -> None:
    browser = Dirbrowser(name="notes", directory="/root")

    line = format_file_entry(entry("work/plan.md", 1000), browser, Settings(), now=1005)

    display = line.split("\t")[0]
    assert display.endswith(f"{FOLDER_STYLE}work/{RESET_STYLE}plan.md")
    assert "5s ago" in display
