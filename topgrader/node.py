"""Upgrade globally installed Node packages with npm, pnpm, Yarn and Deno."""

from __future__ import annotations

import logging
import os
import re
import shutil
import sys
from enum import Enum
from pathlib import Path
from typing import NamedTuple

from topgrader.command import output_checked_utf8
from topgrader.errors import SkipStep, TopgradeError
from topgrader.execution_context import REQUIRE_SUDO, ExecutionContext

logger = logging.getLogger(__name__)

_SEMVER = re.compile(
    r"(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)"
    r"(?:-([0-9A-Za-z.-]+))?(?:\+([0-9A-Za-z.-]+))?"
)

_NPM_LOCATION_MINIMUM = (8, 11, 0)

_SUDO_NEEDED = (
    "NPM root is owned by another user which is not the current user. "
    "Set use_sudo = true under the NPM section in your configuration to run NPM as sudo"
)


class SemVer(NamedTuple):
    """A semantic version; ``prerelease`` is empty for a release."""

    major: int
    minor: int
    patch: int
    prerelease: str = ""

    def at_least(self, minimum: tuple[int, int, int]) -> bool:
        """Semantic-version comparison against a release ``minimum``."""
        core = (self.major, self.minor, self.patch)
        if core != minimum:
            return core > minimum
        return not self.prerelease


def parse_version(text: str) -> SemVer:
    """Parse a strict ``major.minor.patch`` version with optional pre-release and build."""
    match = _SEMVER.fullmatch(text)
    if match is None:
        raise ValueError(f"not a semantic version: {text!r}")
    major, minor, patch, prerelease, _build = match.groups()
    return SemVer(int(major), int(minor), int(patch), prerelease or "")


def _require(name: str) -> Path:
    found = shutil.which(name)
    if found is None:
        raise SkipStep(f"Cannot find {name} in PATH")
    return Path(found)


def _print_separator(title: str) -> None:
    print(f"\n== {title} ==")


def _on_linux() -> bool:
    return sys.platform.startswith("linux")


def _owned_by_root_not_me(path: Path) -> bool:
    owner = path.stat().st_uid
    return owner != os.geteuid() and owner == 0


class NpmVariant(Enum):
    """Package managers that share npm's command line."""

    NPM = "npm"
    PNPM = "pnpm"

    @property
    def short_name(self) -> str:
        return self.value

    @property
    def is_npm(self) -> bool:
        return self is NpmVariant.NPM

    def __str__(self) -> str:
        return self.value


class Npm:
    """An npm-compatible program and its variant."""

    def __init__(self, command: str | os.PathLike, variant: NpmVariant) -> None:
        self.command = Path(command)
        self.variant = variant

    def version(self) -> SemVer:
        text = output_checked_utf8([self.command, "--version"]).stdout.strip()
        return parse_version(text)

    def _is_npm_8(self) -> bool:
        if not self.variant.is_npm:
            return False
        try:
            return self.version().at_least(_NPM_LOCATION_MINIMUM)
        except (TopgradeError, OSError, ValueError):
            return False

    def global_location_arg(self) -> str:
        """``--location=global`` for npm 8.11.0 and later, ``-g`` otherwise."""
        return "--location=global" if self._is_npm_8() else "-g"

    def root(self) -> Path:
        output = output_checked_utf8([self.command, "root", self.global_location_arg()])
        return Path(output.stdout.strip())

    def upgrade(self, ctx: ExecutionContext, use_sudo: bool) -> None:
        args = ["update", self.global_location_arg()]
        if use_sudo:
            if ctx.sudo is None:
                raise SkipStep(REQUIRE_SUDO)
            ctx.run_type.execute(ctx.sudo).arg(self.command).args(args).status_checked()
        else:
            ctx.run_type.execute(self.command).args(args).status_checked()

    def should_use_sudo(self) -> bool:
        """Whether the global root belongs to root rather than the current user."""
        npm_root = self.root()
        if not npm_root.exists():
            raise SkipStep(f"{self.variant} root at {npm_root} doesn't exist")
        return _owned_by_root_not_me(npm_root)


class Yarn:
    """The Yarn package manager."""

    def __init__(self, command: str | os.PathLike, yarn: str | os.PathLike | None = None) -> None:
        self.command = Path(command)
        if yarn is None:
            found = shutil.which("yarn")
            self.yarn = Path(found) if found is not None else None
        else:
            self.yarn = Path(yarn)

    def has_global_subcmd(self) -> bool:
        """Only Yarn 0.x and 1.x have ``yarn global``; later versions use ``yarn dlx``."""
        try:
            output = output_checked_utf8([self.command, "--version"])
        except (TopgradeError, OSError, ValueError):
            return False
        return output.stdout.startswith(("1", "0"))

    def root(self) -> Path:
        output = output_checked_utf8([self.command, "global", "dir"])
        return Path(output.stdout.strip())

    def upgrade(self, ctx: ExecutionContext, use_sudo: bool) -> None:
        args = ["global", "upgrade"]
        if use_sudo:
            if ctx.sudo is None:
                raise SkipStep(REQUIRE_SUDO)
            program = self.yarn if self.yarn is not None else self.command
            ctx.run_type.execute(ctx.sudo).arg(program).args(args).status_checked()
        else:
            ctx.run_type.execute(self.command).args(args).status_checked()

    def should_use_sudo(self) -> bool:
        """Whether the global directory belongs to root rather than the current user."""
        yarn_root = self.root()
        if not yarn_root.exists():
            raise SkipStep(f"Yarn root at {yarn_root} doesn't exist")
        return _owned_by_root_not_me(yarn_root)


def _sudo_allowed(owned_by_root: bool, allowed: bool) -> bool:
    if not owned_by_root:
        return False
    if allowed:
        return True
    raise SkipStep(_SUDO_NEEDED)


def _upgrade_npm_like(ctx: ExecutionContext, npm: Npm) -> None:
    use_sudo = _on_linux() and _sudo_allowed(npm.should_use_sudo(), ctx.config.npm_use_sudo)
    npm.upgrade(ctx, use_sudo)


def run_npm_upgrade(ctx: ExecutionContext) -> None:
    npm = Npm(_require("npm"), NpmVariant.NPM)
    _print_separator("Node Package Manager")
    _upgrade_npm_like(ctx, npm)


def run_pnpm_upgrade(ctx: ExecutionContext) -> None:
    pnpm = Npm(_require("pnpm"), NpmVariant.PNPM)
    _print_separator("Performant Node Package Manager")
    _upgrade_npm_like(ctx, pnpm)


def run_yarn_upgrade(ctx: ExecutionContext) -> None:
    yarn = Yarn(_require("yarn"))
    if not yarn.has_global_subcmd():
        logger.debug("Yarn is 2.x or above, skipping global upgrade")
        return
    _print_separator("Yarn Package Manager")
    use_sudo = _on_linux() and _sudo_allowed(yarn.should_use_sudo(), ctx.config.yarn_use_sudo)
    yarn.upgrade(ctx, use_sudo)


def deno_upgrade(ctx: ExecutionContext) -> None:
    """Run ``deno upgrade`` when Deno lives under ``~/.deno``."""
    deno = _require("deno")
    deno_dir = Path.home() / ".deno"
    if not deno.resolve(strict=True).is_relative_to(deno_dir.resolve()):
        raise SkipStep("Deno installed outside of .deno directory")
    _print_separator("Deno")
    ctx.run_type.execute(deno).arg("upgrade").status_checked()