"""Results of the steps that ran, in the order they ran."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StepOutcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    IGNORED = "ignored"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StepResult:
    """Outcome of one step; skipped steps carry the reason."""

    outcome: StepOutcome
    reason: str | None = None

    def failed(self) -> bool:
        return self.outcome is StepOutcome.FAILURE


class Report:
    """Ordered record of step results keyed by step name."""

    def __init__(self) -> None:
        self._data: list[tuple[str, StepResult]] = []

    def push_result(self, key: str, result: StepResult) -> None:
        if any(existing == key for existing, _ in self._data):
            raise ValueError(f"{key} already reported")
        self._data.append((key, result))

    def data(self) -> list[tuple[str, StepResult]]:
        return list(self._data)