"""Update Go binaries and Kakoune plugins."""

from __future__ import annotations

import shutil
from pathlib import Path

from topgrader.command import output_checked_utf8
from topgrader.errors import SkipStep
from topgrader.execution_context import ExecutionContext

UPGRADE_KAK = "try %{ plug-install }; try %{ plug-update }; quit!"


def _require(name: str) -> Path:
    found = shutil.which(name)
    if found is None:
        raise SkipStep(f"Cannot find {name} in PATH")
    return Path(found)


def _print_separator(title: str) -> None:
    print(f"\n== {title} ==")


def require_go_bin(name: str) -> Path:
    """Find a Go binary on ``PATH`` or in ``$GOPATH/bin``."""
    try:
        return _require(name)
    except SkipStep:
        pass
    go = _require("go")
    gopath = output_checked_utf8([go, "env", "GOPATH"]).stdout.strip()
    path = Path(gopath) / "bin" / name
    if not path.exists():
        raise SkipStep(f"{path} does not exist")
    return path


def run_go_global_update(ctx: ExecutionContext) -> None:
    go_global_update = require_go_bin("go-global-update")
    _print_separator("go-global-update")
    ctx.run_type.execute(go_global_update).status_checked()


def run_go_gup(ctx: ExecutionContext) -> None:
    gup = require_go_bin("gup")
    _print_separator("gup")
    ctx.run_type.execute(gup).arg("update").status_checked()


def upgrade_kak_plug(ctx: ExecutionContext) -> None:
    """Upgrade Kakoune plugins through a headless session."""
    kak = _require("kak")
    _print_separator("Kakoune")
    ctx.run_type.execute(kak).args(["-ui", "dummy", "-e", UPGRADE_KAK]).output()
    print("Plugins upgraded")