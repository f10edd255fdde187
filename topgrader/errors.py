"""Exceptions raised while running external programs and update steps."""

from __future__ import annotations

import signal


def _describe_exit(returncode: int) -> str:
    """Describe a process exit code the way a shell user expects to read it."""
    if returncode < 0:
        number = -returncode
        try:
            name = signal.Signals(number).name
        except ValueError:
            return f"signal: {number}"
        return f"signal: {number} ({name})"
    return f"exit status: {returncode}"


class TopgradeError(Exception):
    """Base class for failures of external programs."""


class ProcessFailed(TopgradeError):
    """A program ran but did not finish successfully."""

    def __init__(self, program: str, returncode: int, context: str | None = None) -> None:
        super().__init__(program, returncode)
        self.program = program
        self.returncode = returncode
        self.context = context

    @property
    def summary(self) -> str:
        return f"`{self.program}` failed: {_describe_exit(self.returncode)}"

    def __str__(self) -> str:
        if self.context:
            return f"{self.context}\n\nCaused by:\n    {self.summary}"
        return self.summary


class ProcessFailedWithOutput(ProcessFailed):
    """A program failed while its output was being captured."""

    def __init__(
        self,
        program: str,
        returncode: int,
        stderr: str,
        context: str | None = None,
    ) -> None:
        super().__init__(program, returncode, context)
        self.stderr = stderr


class StepFailed(Exception):
    """At least one step did not succeed."""

    def __init__(self) -> None:
        super().__init__("A step failed")


class DryRun(Exception):
    """The command was only printed because this is a dry run."""

    def __init__(self) -> None:
        super().__init__("Dry running")


class SkipStep(Exception):
    """The step does not apply to this system and is skipped."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def __str__(self) -> str:
        return self.reason