"""Upgrade Emacs packages and Doom Emacs."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from topgrader.config_file import Step
from topgrader.errors import SkipStep
from topgrader.execution_context import ExecutionContext

DOOM_PATH = Path("bin/doom.cmd") if os.name == "nt" else Path("bin/doom")


def _require(name: str) -> Path:
    found = shutil.which(name)
    if found is None:
        raise SkipStep(f"Cannot find {name} in PATH")
    return Path(found)


def _print_separator(title: str) -> None:
    print(f"\n== {title} ==")


def _existing(path: Path) -> Path | None:
    return path if path.exists() else None


def _config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg and os.path.isabs(xdg):
        return Path(xdg)
    return Path.home() / ".config"


def _directory_path() -> Path | None:
    if os.name == "nt":
        home = os.environ.get("HOME")
        if home:
            found = _existing(Path(home) / ".emacs.d") or _existing(Path(home) / ".config" / "emacs")
            if found is not None:
                return found
        appdata = os.environ.get("APPDATA")
        data_dir = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
        return _existing(data_dir / ".emacs.d")
    return _existing(Path.home() / ".emacs.d") or _existing(_config_dir() / "emacs")


def nbsp_whitespace(text: str) -> str:
    """Replace every whitespace character with a no-break space."""
    return "".join("\u00a0" if char.isspace() else char for char in text)


class Emacs:
    """The user's Emacs configuration directory and Doom installation, if any."""

    def __init__(self, directory: str | os.PathLike | None = None) -> None:
        self.directory = Path(directory) if directory is not None else _directory_path()
        self.doom = _existing(self.directory / DOOM_PATH) if self.directory is not None else None

    def is_doom(self) -> bool:
        return self.doom is not None

    @staticmethod
    def _update_doom(doom: Path, ctx: ExecutionContext) -> None:
        _print_separator("Doom Emacs")
        command = ctx.run_type.execute(doom)
        if ctx.config.yes(Step.EMACS):
            command.arg("--force")
        command.args(["upgrade"])
        command.status_checked()

    def upgrade(self, ctx: ExecutionContext, upgrade_script: str) -> None:
        """Run Doom's upgrade, then evaluate ``upgrade_script`` in a batch Emacs."""
        emacs = _require("emacs")
        if self.doom is not None:
            self._update_doom(self.doom, ctx)
        if self.directory is None:
            raise SkipStep("Emacs directory does not exist")
        init_file = self.directory / "init.el"
        if not init_file.exists():
            raise SkipStep(f"{init_file} does not exist")

        _print_separator("Emacs")
        command = ctx.run_type.execute(emacs)
        command.args(["--batch", "--debug-init", "-l"]).arg(init_file).arg("--eval")
        command.arg(upgrade_script if os.name == "nt" else nbsp_whitespace(upgrade_script))
        command.status_checked()