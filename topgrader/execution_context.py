"""State shared by every step of a run."""

from __future__ import annotations

import os
import threading

from topgrader.config import Config
from topgrader.errors import SkipStep
from topgrader.executor import Executor, RunType

REQUIRE_SUDO = "Require sudo or counterpart but not found, skip"


class ExecutionContext:
    """Run type, privilege-elevation program and configuration of a run."""

    def __init__(self, run_type: RunType, sudo: str | os.PathLike | None, config: Config) -> None:
        self.run_type = run_type
        self.sudo = os.fspath(sudo) if sudo is not None else None
        self.config = config
        self.under_ssh = "SSH_CLIENT" in os.environ or "SSH_TTY" in os.environ
        self._tmux_session: str | None = None
        self._lock = threading.Lock()

    def execute_elevated(self, command: str | os.PathLike) -> Executor:
        """An executor running ``command`` through the elevation program."""
        if self.sudo is None:
            raise SkipStep(REQUIRE_SUDO)
        return self.run_type.execute(self.sudo).arg(command)

    def set_tmux_session(self, session_name: str) -> None:
        with self._lock:
            self._tmux_session = session_name

    def get_tmux_session(self) -> str | None:
        with self._lock:
            return self._tmux_session