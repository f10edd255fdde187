"""Commands that either run for real or are only printed during a dry run."""

from __future__ import annotations

import os
import shlex
import subprocess
from collections.abc import Callable, Iterable
from enum import Enum

from topgrader import command
from topgrader.command import Utf8Output
from topgrader.errors import DryRun


class RunType(Enum):
    """Whether commands are actually executed."""

    DRY = "dry"
    WET = "wet"

    @classmethod
    def from_dry_run(cls, dry_run: bool) -> RunType:
        return cls.DRY if dry_run else cls.WET

    def execute(self, program: str | os.PathLike) -> Executor:
        """Create an executor for ``program``."""
        return Executor(program, dry=self is RunType.DRY)

    def dry(self) -> bool:
        return self is RunType.DRY


class Executor:
    """A command being built; in a dry run executing it only prints it."""

    def __init__(self, program: str | os.PathLike, *, dry: bool = False) -> None:
        self.program = os.fspath(program)
        self.arguments: list[str] = []
        self.directory: str | None = None
        self.environment: dict[str, str | None] = {}
        self.is_dry = dry

    def arg(self, arg: str | os.PathLike) -> Executor:
        self.arguments.append(os.fspath(arg))
        return self

    def args(self, args: Iterable[str | os.PathLike]) -> Executor:
        self.arguments.extend(os.fspath(arg) for arg in args)
        return self

    def current_dir(self, directory: str | os.PathLike) -> Executor:
        self.directory = os.fspath(directory)
        return self

    def env(self, key: str, value: str) -> Executor:
        self.environment[key] = value
        return self

    def env_remove(self, key: str) -> Executor:
        self.environment[key] = None
        return self

    def command_line(self) -> str:
        return command.format_command(self._argv)

    @property
    def _argv(self) -> list[str]:
        return [self.program, *self.arguments]

    @property
    def _options(self) -> dict:
        return {"cwd": self.directory, "env": self.environment or None}

    def _dry_run(self) -> None:
        line = f"Dry running: {self.program} {shlex.join(self.arguments)}"
        if self.directory is not None:
            line += f" in {self.directory}"
        print(line)

    def spawn(self) -> subprocess.Popen | None:
        """Start the command; returns ``None`` in a dry run."""
        if self.is_dry:
            self._dry_run()
            return None
        return command.spawn_checked(self._argv, **self._options)

    def output(self) -> subprocess.CompletedProcess | None:
        """Run capturing output; returns ``None`` in a dry run."""
        if self.is_dry:
            self._dry_run()
            return None
        return command.output_checked(self._argv, **self._options)

    def output_checked(self) -> subprocess.CompletedProcess:
        """Run capturing output; a dry run raises :class:`DryRun`."""
        if self.is_dry:
            self._dry_run()
            raise DryRun()
        return command.output_checked(self._argv, **self._options)

    def output_checked_utf8(self) -> Utf8Output:
        """Like :meth:`output_checked`, decoding the output as UTF-8."""
        return Utf8Output.from_completed(self.output_checked())

    def status_checked(self) -> None:
        self.status_checked_with(lambda returncode: returncode == 0)

    def status_checked_with(self, succeeded: Callable[[int], bool]) -> None:
        if self.is_dry:
            self._dry_run()
            return
        command.status_checked_with(self._argv, succeeded, **self._options)

    def status_checked_with_codes(self, codes: Iterable[int]) -> None:
        """Treat the given exit codes as success in addition to zero."""
        accepted = set(codes)
        self.status_checked_with(lambda returncode: returncode == 0 or returncode in accepted)