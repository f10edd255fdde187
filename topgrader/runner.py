"""Run steps, record their results and offer to retry failures."""

from __future__ import annotations

import logging
from collections.abc import Callable

from topgrader import interrupt
from topgrader.config_file import Step
from topgrader.errors import DryRun, SkipStep
from topgrader.execution_context import ExecutionContext
from topgrader.report import Report, StepOutcome, StepResult

logger = logging.getLogger(__name__)

AskRetry = Callable[[bool, str], bool]


def _prompt_retry(interrupted: bool, key: str) -> bool:
    question = f"{key} was interrupted. Retry? (y)es/(N)o " if interrupted else f"Retry {key}? (y)es/(N)o "
    try:
        answer = input(question)
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


class Runner:
    """Executes steps and keeps a report of their outcomes."""

    def __init__(self, ctx: ExecutionContext, ask_retry: AskRetry | None = None) -> None:
        self.ctx = ctx
        self.report = Report()
        self._ask_retry = ask_retry or _prompt_retry

    def execute(self, step: Step, key: str, func: Callable[[], object]) -> None:
        """Run ``func`` as step ``key`` unless ``step`` is disabled."""
        config = self.ctx.config
        if not config.should_run(step):
            return

        logger.debug("Step %r", key)
        while True:
            try:
                func()
            except DryRun:
                return
            except SkipStep as err:
                if config.verbose or config.show_skipped:
                    self.report.push_result(key, StepResult(StepOutcome.SKIPPED, str(err)))
                return
            except Exception as err:
                logger.debug("Step %r failed: %r", key, err)
                was_interrupted = interrupt.interrupted()
                if was_interrupted:
                    interrupt.unset_interrupted()

                ignore_failure = config.ignore_failure(step)
                should_ask = was_interrupted or not (config.no_retry or ignore_failure)
                retry = False
                if should_ask:
                    print(f"{key} failed:\n{err}")
                    retry = self._ask_retry(was_interrupted, key)
                if retry:
                    continue
                outcome = StepOutcome.IGNORED if ignore_failure else StepOutcome.FAILURE
                self.report.push_result(key, StepResult(outcome))
                return
            else:
                self.report.push_result(key, StepResult(StepOutcome.SUCCESS))
                return