"""Tell users about breaking changes on the first run of a new major release."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

_KEEP_FILE = "topgrade_keep"
_NUMBER = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class Version:
    """A ``major.minor.patch`` version number."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse the first three dot-separated numbers of ``text``."""
        parts = text.split(".")[:3]
        if len(parts) < 3:
            raise ValueError("Topgrade version is not semantic")
        if not all(_NUMBER.fullmatch(part) for part in parts):
            raise ValueError("Topgrade version is not dot-separated numbers")
        major, minor, patch = (int(part) for part in parts)
        if major == minor == patch == 0:
            raise ValueError("Version numbers can not be all 0s")
        return cls(major, minor, patch)

    def is_new_major_release(self) -> bool:
        """True for ``x.0.0``; parsing guarantees the major number is then non-zero."""
        return self.minor == 0 and self.patch == 0


def _data_dir() -> Path:
    if os.name == "nt":
        appdata = os.environ.get("APPDATA")
        return Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg and os.path.isabs(xdg):
        return Path(xdg)
    return Path.home() / ".local" / "share"


def should_skip() -> bool:
    """Whether ``TOPGRADE_SKIP_BRKC_NOTIFY`` asks to skip the notification."""
    return os.environ.get("TOPGRADE_SKIP_BRKC_NOTIFY") == "true"


def keep_file_path(data_dir: str | os.PathLike | None = None) -> Path:
    """The file recording which major release the user has already confirmed."""
    directory = Path(data_dir) if data_dir is not None else _data_dir()
    return directory / _KEEP_FILE


def first_run_of_major_release(version: str, data_dir: str | os.PathLike | None = None) -> bool:
    """True if ``version`` is a new major release that has not been confirmed yet."""
    if not Version.parse(version).is_new_major_release():
        return False
    keep_file = keep_file_path(data_dir)
    if not keep_file.exists():
        return True
    return keep_file.read_text(encoding="utf-8") != version


def _print_separator(title: str) -> None:
    print(f"\n== {title} ==")


def print_breaking_changes(version: str, contents: str = "") -> None:
    """Show the breaking changes of ``version``."""
    _print_separator(f"Topgrade {version} Breaking Changes")
    print(f"{contents or 'No Breaking changes'}\n")


def write_keep_file(version: str, data_dir: str | os.PathLike | None = None) -> None:
    """Record that the user has confirmed the breaking changes of ``version``."""
    keep_file = keep_file_path(data_dir)
    keep_file.parent.mkdir(parents=True, exist_ok=True)
    keep_file.write_text(version, encoding="utf-8")