import pytest

from topgrader.errors import (
    DryRun,
    ProcessFailed,
    ProcessFailedWithOutput,
    SkipStep,
    StepFailed,
    TopgradeError,
)


def test_step_failed_message():
    assert str(StepFailed()) == "A step failed"


def test_dry_run_message():
    assert str(DryRun()) == "Dry running"


def test_skip_step_message_is_reason():
    error = SkipStep("No repositories to pull")
    assert str(error) == "No repositories to pull"
    assert error.reason == "No repositories to pull"


def test_process_failed_summary():
    error = ProcessFailed("git", 1)
    assert str(error) == "`git` failed: exit status: 1"
    assert error.returncode == 1
    assert isinstance(error, TopgradeError)


def test_process_failed_by_signal():
    error = ProcessFailed("git", -9)
    assert "signal: 9" in str(error)


def test_process_failed_with_context():
    error = ProcessFailed("git", 2, context="Command failed: `git pull`")
    text = str(error)
    assert text.startswith("Command failed: `git pull`")
    assert error.summary in text


def test_process_failed_with_output_keeps_stderr():
    error = ProcessFailedWithOutput("docker", 1, "repository does not exist")
    assert error.stderr == "repository does not exist"
    assert error.program == "docker"
    assert isinstance(error, ProcessFailed)


@pytest.mark.parametrize("program, code, stderr", [
    ("helm", 3, "no repositories found"),
    ("docker", 1, "repository does not exist"),
])
def test_process_failed_with_output_fields(program, code, stderr):
    error = ProcessFailedWithOutput(program, code, stderr)
    assert error.returncode == code
    assert error.stderr == stderr
    assert error.program == program
    assert f"`{program}` failed" in str(error)
    assert f"exit status: {code}" in error.summary