# =============================================================================
# Directory Browser
# =============================================================================
# Files are enumerated with find(1) so depth limits and exclude rules behave
# the same as the file count shown in the menu.

import os
import time
from dataclasses import dataclass

from loguru import logger

from nunchux.config_loader import expand_home
from nunchux.models import Dirbrowser, Settings
from nunchux.runner import STATUS_TIMEOUT, CommandError, CommandRunner

SORT_ALPHABETICAL = "alphabetical"
SORT_MODIFIED = "modified"
SORT_MODIFIED_FOLDER = "modified-folder"

FOLDER_STYLE = "\033[38;5;244m"
RESET_STYLE = "\033[0m"


@dataclass
class FileEntry:
    path: str
    rel_path: str
    folder: str
    filename: str
    mod_time: float  # epoch seconds, truncated to whole seconds


def build_find_args(dirbrowser: Dirbrowser, settings: Settings) -> list[str]:
    """
    Build find(1) arguments for a browser's root, depth, excludes and glob.

    Exclude patterns starting with ``*`` match file names; any other pattern
    excludes both a directory of that name anywhere in the path and a file
    with exactly that name.
    """
    directory = expand_home(dirbrowser.directory)
    depth = dirbrowser.depth or 1

    args = ["find", directory, "-maxdepth", str(depth), "-type", "f"]

    for pattern in settings.exclude_patterns.split(","):
        pattern = pattern.strip()
        if not pattern:
            continue
        if pattern.startswith("*"):
            args += ["!", "-name", pattern]
        else:
            args += ["!", "-path", f"*/{pattern}/*", "!", "-name", pattern]

    if dirbrowser.glob:
        args += ["-name", dirbrowser.glob]

    return args


def parse_find_output(output: str, directory: str) -> list[FileEntry]:
    """Parse ``%T@\\t%p`` lines into FileEntry records relative to ``directory``."""
    entries = []
    prefix = directory + "/"

    for line in output.strip().split("\n"):
        if not line:
            continue
        parts = line.split("\t", 1)
        if len(parts) != 2:
            continue

        try:
            mod_time = float(int(float(parts[0])))
        except ValueError:
            mod_time = 0.0
        file_path = parts[1]

        rel_path = file_path[len(prefix):] if file_path.startswith(prefix) else file_path
        filename = os.path.basename(file_path)
        folder, sep, _ = rel_path.partition("/")
        if not sep:
            folder = filename

        entries.append(FileEntry(
            path=file_path,
            rel_path=rel_path,
            folder=folder,
            filename=filename,
            mod_time=mod_time,
        ))

    return entries


def sort_entries(entries: list[FileEntry], sort_mode: str, sort_direction: str) -> list[FileEntry]:
    """
    Sort entries by one of three policies.

    - alphabetical: by relative path
    - modified: by modification time (also the fallback for unknown modes)
    - modified-folder: by the newest modification time in each entry's
      folder, then by the entry's own modification time

    Descending unless ``sort_direction`` is something other than
    "descending" (empty means descending).
    """
    descending = (sort_direction or "descending") == "descending"
    sort_mode = sort_mode or SORT_MODIFIED

    if sort_mode == SORT_ALPHABETICAL:
        return sorted(entries, key=lambda e: e.rel_path, reverse=descending)

    if sort_mode == SORT_MODIFIED_FOLDER:
        folder_max: dict[str, float] = {}
        for entry in entries:
            if entry.mod_time > folder_max.get(entry.folder, float("-inf")):
                folder_max[entry.folder] = entry.mod_time
        return sorted(
            entries,
            key=lambda e: (folder_max[e.folder], e.mod_time),
            reverse=descending,
        )

    return sorted(entries, key=lambda e: e.mod_time, reverse=descending)


async def list_files(
    runner: CommandRunner,
    dirbrowser: Dirbrowser,
    settings: Settings,
) -> list[FileEntry]:
    """
    List and sort the files a browser shows.

    Raises:
        CommandError: the listing failed (an empty list means no files)
    """
    directory = expand_home(dirbrowser.directory)
    args = build_find_args(dirbrowser, settings) + ["-printf", "%T@\t%p\n"]

    start_time = time.perf_counter()
    output = await runner.run(args)
    entries = sort_entries(
        parse_find_output(output, directory),
        dirbrowser.sort,
        dirbrowser.sort_direction,
    )

    logger.debug(
        "Listed dirbrowser files",
        operation="list_files",
        status="success",
        dirbrowser=dirbrowser.name,
        metrics={
            "files": len(entries),
            "duration_ms": int((time.perf_counter() - start_time) * 1000),
        }
    )
    return entries


async def count_files(runner: CommandRunner, dirbrowser: Dirbrowser, settings: Settings) -> int:
    """Count listed files, or 0 if the listing fails or times out."""
    try:
        output = await runner.run(build_find_args(dirbrowser, settings), timeout=STATUS_TIMEOUT)
    except CommandError as e:
        logger.debug(
            "File count failed",
            operation="count_files",
            status="failed",
            dirbrowser=dirbrowser.name,
            error=str(e)
        )
        return 0
    return len([line for line in output.strip().split("\n") if line])


def format_ago(seconds: float) -> str:
    """Format an age in seconds as "Ns ago", "Nm ago", "Nh ago" or "Nd ago"."""
    secs = int(seconds)
    if secs < 60:
        return f"{secs}s ago"
    if secs < 3600:
        return f"{secs // 60}m ago"
    if secs < 86400:
        return f"{secs // 3600}h ago"
    return f"{secs // 86400}d ago"


def get_width(dirbrowser: Dirbrowser, settings: Settings) -> str:
    return dirbrowser.width or settings.popup_width


def get_height(dirbrowser: Dirbrowser, settings: Settings) -> str:
    return dirbrowser.height or settings.popup_height


def format_file_entry(
    entry: FileEntry,
    dirbrowser: Dirbrowser,
    settings: Settings,
    now: float | None = None,
) -> str:
    """
    Format one file as a picker line: ``display\\tpath\\twidth\\theight``.

    The folder prefix is dimmed and only shown when it differs from the
    file name.
    """
    now = time.time() if now is None else now
    ago = format_ago(now - entry.mod_time)

    if entry.folder == entry.filename:
        display = entry.filename
    else:
        display = f"{FOLDER_STYLE}{entry.folder}/{RESET_STYLE}{entry.filename}"

    return (
        f"○  {ago:>8} │ {display}\t{entry.path}\t"
        f"{get_width(dirbrowser, settings)}\t{get_height(dirbrowser, settings)}"
    )
