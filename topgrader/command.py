"""Run external commands, checking their exit status and reporting failures clearly."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from topgrader.errors import ProcessFailed, ProcessFailedWithOutput

logger = logging.getLogger(__name__)

Argument = str | os.PathLike
Environment = Mapping[str, str | None]


@dataclass(frozen=True)
class Utf8Output:
    """Captured output of a finished process, decoded as UTF-8."""

    returncode: int
    stdout: str
    stderr: str

    @classmethod
    def from_completed(cls, completed: subprocess.CompletedProcess) -> Utf8Output:
        stdout = _decode(completed.stdout, "Stdout")
        stderr = _decode(completed.stderr, "Stderr")
        return cls(completed.returncode, stdout, stderr)

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def __str__(self) -> str:
        return self.stdout


def _decode(data: bytes | None, stream: str) -> str:
    raw = data or b""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as err:
        lossy = raw.decode("utf-8", errors="replace")
        raise ValueError(f"{stream} contained invalid UTF-8: {lossy}") from err


def _as_strings(args: Sequence[Argument]) -> list[str]:
    argv = [os.fspath(arg) for arg in args]
    if not argv:
        raise ValueError("a command needs at least a program")
    return argv


def format_command(args: Sequence[Argument]) -> str:
    """Render a command line with shell quoting for its arguments."""
    program, *rest = _as_strings(args)
    return f"{program} {shlex.join(rest)}" if rest else program


def _environment(env: Environment | None) -> dict[str, str] | None:
    if not env:
        return None
    merged = dict(os.environ)
    for key, value in env.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged


def _log(argv: list[str]) -> str:
    command = format_command(argv)
    logger.debug("Executing command `%s`", command)
    return command


def _note_launch_failure(err: OSError, command: str) -> None:
    err.add_note(f"Failed to execute `{command}`")


def output_checked_with(
    args: Sequence[Argument],
    succeeded: Callable[[subprocess.CompletedProcess], bool],
    cwd: str | os.PathLike | None = None,
    env: Environment | None = None,
) -> subprocess.CompletedProcess:
    """Run a command capturing its output; ``succeeded`` decides whether it worked."""
    argv = _as_strings(args)
    command = _log(argv)
    try:
        completed = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            cwd=cwd,
            env=_environment(env),
            check=False,
        )
    except OSError as err:
        _note_launch_failure(err, command)
        raise

    if succeeded(completed):
        return completed

    stdout = (completed.stdout or b"").decode("utf-8", errors="replace")
    stderr = (completed.stderr or b"").decode("utf-8", errors="replace")
    message = f"Command failed: `{command}`"
    if stdout.strip():
        message += f"\n\nStdout:\n{stdout.strip()}"
    if stderr.strip():
        message += f"\n\nStderr:\n{stderr.strip()}"

    error = ProcessFailedWithOutput(argv[0], completed.returncode, stderr, context=message)
    logger.debug("Command failed: %s", error)
    raise error


def output_checked(
    args: Sequence[Argument],
    cwd: str | os.PathLike | None = None,
    env: Environment | None = None,
) -> subprocess.CompletedProcess:
    """Run a command capturing its output; a non-zero exit raises."""
    return output_checked_with(args, lambda completed: completed.returncode == 0, cwd, env)


def output_checked_utf8(
    args: Sequence[Argument],
    cwd: str | os.PathLike | None = None,
    env: Environment | None = None,
) -> Utf8Output:
    """Like :func:`output_checked`, decoding stdout and stderr as UTF-8."""
    return Utf8Output.from_completed(output_checked(args, cwd, env))


def output_checked_with_utf8(
    args: Sequence[Argument],
    succeeded: Callable[[Utf8Output], bool],
    cwd: str | os.PathLike | None = None,
    env: Environment | None = None,
) -> Utf8Output:
    """Like :func:`output_checked_with`, judging success on the decoded output."""

    def check(completed: subprocess.CompletedProcess) -> bool:
        try:
            decoded = Utf8Output.from_completed(completed)
        except ValueError:
            return False
        return succeeded(decoded)

    return Utf8Output.from_completed(output_checked_with(args, check, cwd, env))


def status_checked_with(
    args: Sequence[Argument],
    succeeded: Callable[[int], bool],
    cwd: str | os.PathLike | None = None,
    env: Environment | None = None,
) -> None:
    """Run a command with inherited output; ``succeeded`` judges its exit code."""
    argv = _as_strings(args)
    command = _log(argv)
    try:
        completed = subprocess.run(argv, cwd=cwd, env=_environment(env), check=False)
    except OSError as err:
        _note_launch_failure(err, command)
        raise

    if not succeeded(completed.returncode):
        error = ProcessFailed(argv[0], completed.returncode, context=f"Command failed: `{command}`")
        logger.debug("Command failed: %s", error)
        raise error


def status_checked(
    args: Sequence[Argument],
    cwd: str | os.PathLike | None = None,
    env: Environment | None = None,
) -> None:
    """Run a command with inherited output; a non-zero exit raises."""
    status_checked_with(args, lambda returncode: returncode == 0, cwd, env)


def spawn_checked(
    args: Sequence[Argument],
    cwd: str | os.PathLike | None = None,
    env: Environment | None = None,
) -> subprocess.Popen:
    """Start a command without waiting for it."""
    argv = _as_strings(args)
    command = _log(argv)
    try:
        return subprocess.Popen(argv, cwd=cwd, env=_environment(env))
    except OSError as err:
        _note_launch_failure(err, command)
        raise