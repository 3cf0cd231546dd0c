# =============================================================================
# tmux Process Control
# =============================================================================

import os
import shlex
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from nunchux.models import Action

TMUX_TIMEOUT = 5


class LaunchError(Exception):
    """tmux refused to open a popup, window or pane."""


@dataclass
class LaunchOptions:
    action: Action | str
    name: str  # window/popup title
    cmd: str
    dir: str = ""
    width: str = ""
    height: str = ""
    max_width: str = ""
    max_height: str = ""
    on_exit: str = ""
    is_app: bool = False  # apps get exit-code reporting in popups
    is_taskrunner: bool = False
    reuse_window: bool = False
    running_icon: str = ""


class Multiplexer(ABC):
    @abstractmethod
    def launch(self, opts: LaunchOptions) -> None:
        """Open ``opts.cmd`` according to ``opts.action``; raise LaunchError on failure."""

    @abstractmethod
    def running_windows(self) -> set[str]:
        """Names of windows in the current session."""

    def is_window_running(self, name: str) -> bool:
        return name in self.running_windows()

    @abstractmethod
    def select_window(self, name: str) -> None: ...

    @abstractmethod
    def kill_window(self, name: str) -> None: ...

    @abstractmethod
    def current_path(self) -> str:
        """Working directory of the active pane."""


def in_session() -> bool:
    return bool(os.environ.get("TMUX"))


def is_available() -> bool:
    return shutil.which("tmux") is not None


def shell_quote(text: str) -> str:
    return shlex.quote(text)


def parse_num(text: str) -> int:
    """Leading digits of ``text`` as an int (0 if none)."""
    digits = ""
    for char in text:
        if not char.isdigit():
            break
        digits += char
    return int(digits) if digits else 0


def normalize_dimension(value: str, default: str = "90%") -> str:
    value = value or default
    if value.isdigit():
        return value + "%"
    return value


def clamp_dimension(value: str, maximum: str, terminal_size: int) -> str:
    """Replace a percentage with ``maximum`` columns/rows when it would exceed it."""
    if not maximum or not value.endswith("%") or terminal_size <= 0:
        return value
    max_abs = parse_num(maximum)
    if max_abs <= 0:
        return value
    absolute = terminal_size * parse_num(value[:-1]) // 100
    return maximum if absolute > max_abs else value


class TmuxClient(Multiplexer):
    def __init__(self, bin_dir: str = ""):
        self.bin_dir = bin_dir

    def _tmux(self, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            ["tmux", *args],
            capture_output=True,
            text=True,
            timeout=TMUX_TIMEOUT,
            check=False,
        )

    def _output(self, *args: str) -> str:
        try:
            result = self._tmux(*args)
        except (subprocess.TimeoutExpired, OSError):
            return ""
        if result.returncode != 0:
            return ""
        return result.stdout.strip()

    def list_windows(self) -> list[str]:
        output = self._output("list-windows", "-F", "#{window_name}")
        return output.split("\n") if output else []

    def running_windows(self) -> set[str]:
        return set(self.list_windows())

    def select_window(self, name: str) -> None:
        self._output("select-window", "-t", name)

    def kill_window(self, name: str) -> None:
        self._output("kill-window", "-t", name)

    def current_path(self) -> str:
        return self._output("display-message", "-p", "#{pane_current_path}") or os.getcwd()

    def pane_id(self) -> str:
        return self._output("display-message", "-p", "#{pane_id}")

    def terminal_size(self) -> tuple[int, int]:
        width = parse_num(self._output("display-message", "-p", "#{window_width}"))
        height = parse_num(self._output("display-message", "-p", "#{window_height}"))
        return width, height

    def wrap_command(self, cmd: str) -> str:
        """Run ``cmd`` under nunchux-run so it inherits the caller's shell env."""
        if self.bin_dir:
            return f"{self.bin_dir}/nunchux-run bash -c {shell_quote(cmd)}"
        return f"bash -c {shell_quote(cmd)}"

    # =========================================================================
    # Launching
    # =========================================================================

    def launch(self, opts: LaunchOptions) -> None:
        opts.dir = opts.dir or self.current_path()
        opts.width = normalize_dimension(opts.width)
        opts.height = normalize_dimension(opts.height)

        if opts.max_width or opts.max_height:
            term_width, term_height = self.terminal_size()
            opts.width = clamp_dimension(opts.width, opts.max_width, term_width)
            opts.height = clamp_dimension(opts.height, opts.max_height, term_height)

        logger.debug(
            "Launching",
            operation="tmux_launch",
            action=str(opts.action),
            name=opts.name,
            width=opts.width,
            height=opts.height
        )

        if opts.action == Action.POPUP:
            self._launch_popup(opts)
        elif opts.action == Action.WINDOW:
            self._launch_window(opts, background=False)
        elif opts.action == Action.BACKGROUND_WINDOW:
            self._launch_window(opts, background=True)
        elif opts.action == Action.PANE_RIGHT:
            self._launch_pane(opts, "-h", before=False)
        elif opts.action == Action.PANE_LEFT:
            self._launch_pane(opts, "-h", before=True)
        elif opts.action == Action.PANE_BELOW:
            self._launch_pane(opts, "-v", before=False)
        elif opts.action == Action.PANE_ABOVE:
            self._launch_pane(opts, "-v", before=True)
        else:
            raise LaunchError(f"unknown action: {opts.action}")

    def _launch_popup(self, opts: LaunchOptions) -> None:
        script = self._write_popup_script(opts)
        title = f" nunchux: {opts.name} "
        # Deferred through run-shell so the popup opens after the menu closes
        command = (
            f"sleep 0.05; tmux display-popup -E -b rounded -T {shell_quote(title)} "
            f"-w {shell_quote(opts.width)} -h {shell_quote(opts.height)} {shell_quote(script)}"
        )
        self._output("run-shell", "-b", command)

    def _launch_window(self, opts: LaunchOptions, background: bool) -> None:
        if opts.is_taskrunner and opts.reuse_window:
            window_id = self._find_window_by_prefix(opts.name)
            if window_id:
                self._respawn_window(window_id, opts, background)
                return

        window_name = opts.name
        if opts.is_taskrunner and opts.running_icon:
            window_name = f"{opts.name} {opts.running_icon}"

        args = ["new-window", "-n", window_name]
        if opts.dir:
            args += ["-c", opts.dir]
        if background:
            args.append("-d")
        args.append(self.wrap_command(opts.cmd))

        result = self._tmux(*args)
        if result.returncode != 0:
            raise LaunchError(f"new-window failed: {result.stderr.strip()}")

    def _respawn_window(self, window_id: str, opts: LaunchOptions, background: bool) -> None:
        current_window = self._output("display-message", "-p", "#{window_id}")
        window_name = f"{opts.name} {opts.running_icon}" if opts.running_icon else opts.name

        self._output("rename-window", "-t", window_id, window_name)
        result = self._tmux(
            "respawn-window", "-k", "-t", window_id, "-c", opts.dir, self.wrap_command(opts.cmd)
        )
        if result.returncode != 0:
            raise LaunchError(f"respawn-window failed: {result.stderr.strip()}")

        if not background:
            self._output("select-window", "-t", window_id)
        elif current_window:
            self._output("select-window", "-t", current_window)

    def _find_window_by_prefix(self, prefix: str) -> str:
        output = self._output("list-windows", "-F", "#{window_id} #{window_name}")
        for line in output.split("\n"):
            window_id, _, window_name = line.partition(" ")
            if window_name.startswith(prefix):
                return window_id
        return ""

    def _launch_pane(self, opts: LaunchOptions, direction: str, before: bool) -> None:
        args = ["split-window", direction]
        if before:
            args.append("-b")
        args += ["-c", opts.dir, self.wrap_command(opts.cmd)]
        result = self._tmux(*args)
        if result.returncode != 0:
            raise LaunchError(f"split-window failed: {result.stderr.strip()}")

    def _write_popup_script(self, opts: LaunchOptions) -> str:
        """Write a self-deleting bash script that runs the popup command."""
        tmp_dir = tempfile.gettempdir()
        script = Path(tmp_dir) / f"nunchux-popup-{os.getpid()}"
        substitutions = {
            "{pane_id}": self.pane_id(),
            "{tmp}": str(Path(tmp_dir) / f"nunchux-tmp-{os.getpid()}"),
            "{dir}": opts.dir,
        }
        cmd, on_exit = opts.cmd, opts.on_exit
        for placeholder, value in substitutions.items():
            cmd = cmd.replace(placeholder, value)
            on_exit = on_exit.replace(placeholder, value)

        lines = ["#!/usr/bin/env bash"]
        if self.bin_dir:
            lines.append(f'source "{self.bin_dir}/nunchux-run" 2>/dev/null || true')
            lines.append(f'export PATH="{self.bin_dir}:$PATH"')
        lines.append(f"cd {shell_quote(opts.dir)}")
        lines.append("")

        if opts.is_app:
            lines.append(f"{cmd} 2>/dev/null")
            lines.append("exit_code=$?")
            if on_exit:
                lines.append(on_exit)
            lines += [
                "if [[ $exit_code -ne 0 ]]; then",
                '    echo ""',
                "    if [[ $exit_code -eq 127 ]]; then",
                f'        echo -e "\\033[1;31mCommand not found: {opts.name}\\033[0m"',
                "    else",
                f'        echo -e "\\033[1;31m{opts.name} exited with code $exit_code\\033[0m"',
                "    fi",
                '    echo ""',
                '    echo "Press any key..."',
                "    read -n 1 -s",
                "fi",
            ]
        else:
            lines.append(cmd)

        lines.append(f"rm -f {shell_quote(str(script))}")
        script.write_text("\n".join(lines) + "\n")
        script.chmod(0o755)
        return str(script)
