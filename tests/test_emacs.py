from pathlib import Path

import pytest

from topgrader.config import CommandLineArgs, Config
from topgrader.emacs import DOOM_PATH, Emacs, nbsp_whitespace
from topgrader.errors import SkipStep
from topgrader.execution_context import ExecutionContext
from topgrader.executor import RunType


def _ctx(yes=None) -> ExecutionContext:
    return ExecutionContext(RunType.DRY, None, Config(CommandLineArgs(dry_run=True, yes=yes)))


def _executable(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(0o755)
    return path


def test_nbsp_whitespace_replaces_all_whitespace():
    assert nbsp_whitespace("a b\tc\n") == "a\u00a0b\u00a0c\u00a0"
    assert nbsp_whitespace("(progn)") == "(progn)"


def test_doom_detected(tmp_path):
    _executable(tmp_path / DOOM_PATH)
    emacs = Emacs(tmp_path)
    assert emacs.is_doom()
    assert emacs.doom == tmp_path / DOOM_PATH


def test_plain_emacs_is_not_doom(tmp_path):
    assert not Emacs(tmp_path).is_doom()


def test_discovers_home_emacs_d(tmp_path, monkeypatch):
    (tmp_path / ".emacs.d").mkdir()
    (tmp_path / "cfg" / "emacs").mkdir(parents=True)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    assert Emacs().directory == tmp_path / ".emacs.d"


def test_discovers_xdg_emacs(tmp_path, monkeypatch):
    (tmp_path / "cfg" / "emacs").mkdir(parents=True)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    assert Emacs().directory == tmp_path / "cfg" / "emacs"


def test_discovers_nothing(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    emacs = Emacs()
    assert emacs.directory is None
    assert not emacs.is_doom()


def test_upgrade_without_emacs(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(SkipStep):
        Emacs(tmp_path).upgrade(_ctx(), "(x)")


def test_upgrade_without_init_file(tmp_path, monkeypatch):
    _executable(tmp_path / "bin" / "emacs")
    monkeypatch.setenv("PATH", str(tmp_path / "bin"))
    with pytest.raises(SkipStep, match="init.el"):
        Emacs(tmp_path / "conf").upgrade(_ctx(), "(x)")


def test_upgrade_dry_run(tmp_path, monkeypatch, capsys):
    emacs_bin = _executable(tmp_path / "bin" / "emacs")
    monkeypatch.setenv("PATH", str(tmp_path / "bin"))
    conf = tmp_path / "conf"
    conf.mkdir()
    (conf / "init.el").write_text("")
    Emacs(conf).upgrade(_ctx(), "(a b)")
    out = capsys.readouterr().out
    assert f"Dry running: {emacs_bin} --batch --debug-init -l {conf / 'init.el'} --eval" in out
    assert "(a\u00a0b)" in out


def test_doom_upgrade_forced_when_yes(tmp_path, monkeypatch, capsys):
    _executable(tmp_path / "bin" / "emacs")
    monkeypatch.setenv("PATH", str(tmp_path / "bin"))
    conf = tmp_path / "conf"
    doom = _executable(conf / DOOM_PATH)
    (conf / "init.el").write_text("")
    Emacs(conf).upgrade(_ctx(yes=[]), "(x)")
    assert f"Dry running: {doom} --force upgrade" in capsys.readouterr().out


def test_doom_upgrade_without_yes(tmp_path, monkeypatch, capsys):
    _executable(tmp_path / "bin" / "emacs")
    monkeypatch.setenv("PATH", str(tmp_path / "bin"))
    conf = tmp_path / "conf"
    doom = _executable(conf / DOOM_PATH)
    (conf / "init.el").write_text("")
    Emacs(conf).upgrade(_ctx(), "(x)")
    out = capsys.readouterr().out
    assert f"Dry running: {doom} upgrade" in out
    assert "--force" not in out