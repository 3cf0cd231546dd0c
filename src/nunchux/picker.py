# =============================================================================
# Picker (fzf)
# =============================================================================

import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from loguru import logger

from nunchux.models import BACK_KEY, Settings

# fzf exit codes that mean "nothing selected"
NO_MATCH_EXIT = 1
INTERRUPTED_EXIT = 130


class PickerError(Exception):
    """The picker failed for a reason other than the user cancelling."""


@dataclass
class PickerSelection:
    key: str = ""  # key from --expect; "" means the accept key
    line: str = ""
    fields: list[str] = field(default_factory=list)
    canceled: bool = False


def parse_output(output: str) -> PickerSelection:
    """
    Parse ``--expect`` output: the key on the first line, the selection on
    the second. A leading empty line means the accept key was pressed.
    """
    output = output.removesuffix("\n")
    if not output:
        return PickerSelection(canceled=True)

    key, sep, line = output.partition("\n")
    selection = PickerSelection(key=key)
    if sep:
        selection.line = line
        selection.fields = line.split("\t")
    return selection


class OptionsBuilder:
    """Builds fzf arguments from settings plus per-screen label, header and bindings."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.border_label = ""
        self.header = ""
        self.expect_keys: list[str] = []
        self.bindings: list[str] = []

    def with_border_label(self, label: str) -> "OptionsBuilder":
        self.border_label = label
        return self

    def with_header(self, header: str) -> "OptionsBuilder":
        self.header = header
        return self

    def expect(self, *keys: str) -> "OptionsBuilder":
        self.expect_keys += [key for key in keys if key]
        return self

    def bind(self, key: str, action: str) -> "OptionsBuilder":
        self.bindings.append(f"{key}:{action}")
        return self

    def build(self) -> list[str]:
        s = self.settings
        opts = [
            "--ansi",
            "--delimiter=\t",
            "--with-nth=1",
            "--tiebreak=begin",
            "--layout=reverse",
            "--height=100%",
            "--highlight-line",
            "--no-preview",
            f"--prompt={s.fzf_prompt or ' '}",
            f"--pointer={s.fzf_pointer}",
            f"--border={s.fzf_border}",
        ]

        if self.border_label:
            opts += [f"--border-label={self.border_label}", "--border-label-pos=3"]
        if s.fzf_colors:
            opts.append(f"--color={s.fzf_colors}")
        if self.header:
            opts += [f"--header={self.header}", "--header-first"]

        expect_keys = [BACK_KEY, *self.expect_keys]
        expect_keys += [key for key in (
            s.secondary_key,
            s.action_menu_key,
            s.popup_key,
            s.window_key,
            s.background_window_key,
            s.pane_right_key,
            s.pane_left_key,
            s.pane_above_key,
            s.pane_below_key,
        ) if key]
        opts.append("--expect=" + ",".join(expect_keys))

        opts += [f"--bind={binding}" for binding in self.bindings]
        return opts


def action_menu_options(settings: Settings, item_name: str) -> list[str]:
    return [
        "--ansi",
        "--delimiter=\t",
        "--with-nth=2",
        "--height=100%",
        "--layout=reverse",
        "--border=rounded",
        f"--border-label= Action: {item_name} ",
        "--border-label-pos=3",
        "--no-info",
        f"--pointer={settings.fzf_pointer}",
        f"--color={settings.fzf_colors}",
        "--expect=enter,esc",
    ]


class Picker(ABC):
    @abstractmethod
    def run(self, menu_text: str, options: list[str]) -> PickerSelection:
        """Show ``menu_text`` and return what the user picked."""


class FzfPicker(Picker):
    def __init__(self, binary: str = "fzf"):
        self.binary = binary

    def run(self, menu_text: str, options: list[str]) -> PickerSelection:
        try:
            result = subprocess.run(
                [self.binary, *options],
                input=menu_text,
                stdout=subprocess.PIPE,
                text=True,
                check=False,
            )
        except OSError as e:
            raise PickerError(f"could not run {self.binary}: {e}") from e

        if result.returncode in (NO_MATCH_EXIT, INTERRUPTED_EXIT):
            logger.debug(
                "Picker canceled",
                operation="run_picker",
                status="cancelled",
                return_code=result.returncode
            )
            return PickerSelection(canceled=True)
        if result.returncode != 0:
            raise PickerError(f"{self.binary} exited with code {result.returncode}")

        return parse_output(result.stdout)


def is_available(binary: str = "fzf") -> bool:
    return shutil.which(binary) is not None
