import socket

import pytest

from topgrader.config import CommandLineArgs, Config, allowed_steps
from topgrader.config_file import ArchPackageManager, ConfigFile, Step


def make(argv=(), toml=""):
    return Config(CommandLineArgs.parse(list(argv)), ConfigFile.from_toml(toml))


def test_parse_defaults():
    opt = CommandLineArgs.parse([])
    assert opt.log_filter == "warn"
    assert opt.yes is None
    assert opt.disable == []
    assert opt.dry_run is False


def test_parse_steps_accumulate():
    opt = CommandLineArgs.parse(["--disable", "emacs", "vim", "--disable", "git_repos", "-n"])
    assert opt.disable == [Step.EMACS, Step.VIM, Step.GIT_REPOS]
    assert opt.dry_run is True


def test_parse_unknown_step_exits():
    with pytest.raises(SystemExit):
        CommandLineArgs.parse(["--only", "no_such_step"])


def test_parse_yes_without_values():
    assert CommandLineArgs.parse(["--yes"]).yes == []
    assert CommandLineArgs.parse(["-y", "conda"]).yes == [Step.CONDA]


def test_cli_tracing_directives():
    assert CommandLineArgs.parse([]).tracing_filter_directives() == "warn"
    assert CommandLineArgs.parse(["-v"]).tracing_filter_directives() == "warn,debug"


def test_config_tracing_directives():
    config = make(["-v"], '[misc]\nlog_filters = ["a=info"]\n')
    assert config.tracing_filter_directives() == "a=info,warn,debug"
    assert make().tracing_filter_directives() == ",warn"


def test_all_steps_run_by_default():
    config = make()
    assert all(config.should_run(step) for step in Step)


def test_disable_from_file_and_cli():
    config = make(["--disable", "vim"], '[misc]\ndisable = ["emacs"]\n')
    assert not config.should_run(Step.VIM)
    assert not config.should_run(Step.EMACS)
    assert config.should_run(Step.CARGO)


def test_only_overrides_disable():
    opt = CommandLineArgs.parse(["--only", "emacs", "vim"])
    file = ConfigFile.from_toml('[misc]\ndisable = ["emacs"]\n')
    assert allowed_steps(opt, file) == [Step.EMACS, Step.VIM]


def test_only_from_file_respects_disable():
    config = make(["--disable", "vim"], '[misc]\nonly = ["vim", "emacs"]\n')
    assert config.allowed_steps == [Step.EMACS]


def test_yes_rules():
    assert make().yes(Step.CONDA) is False
    assert make(["--yes"]).yes(Step.CONDA) is True
    assert make(["--yes", "opam"]).yes(Step.CONDA) is False
    assert make(["--yes", "opam"], "[misc]\nassume_yes = true\n").yes(Step.CONDA) is True
    assert make(["--yes"], "[misc]\nassume_yes = false\n").yes(Step.CONDA) is False


def test_ignore_failure():
    config = make(toml='[misc]\nignore_failures = ["powershell"]\n')
    assert config.ignore_failure(Step.POWERSHELL)
    assert not config.ignore_failure(Step.VIM)


def test_tmux_arguments():
    config = make(toml='[misc]\ntmux_arguments = "-S \'/tmp/a b\'"\n')
    assert config.tmux_arguments() == ["-S", "/tmp/a b"]
    assert make().tmux_arguments() == []


def test_tmux_arguments_missing_quote():
    config = make(toml="[misc]\ntmux_arguments = \"'foo\"\n")
    with pytest.raises(ValueError, match="tmux_arguments"):
        config.tmux_arguments()


def test_defaults_of_settings():
    config = make()
    assert config.remote_topgrade_path == "topgrade"
    assert config.bashit_branch == "stable"
    assert config.set_title is True
    assert config.display_time is True
    assert config.arch_package_manager is ArchPackageManager.AUTODETECT
    assert config.apt_arguments is None
    assert config.yay_arguments == ""
    assert config.use_predefined_git_repos is True


def test_settings_from_file():
    config = make(toml='[linux]\narch_package_manager = "paru"\n[git]\nmax_concurrency = 3\npull_predefined = false\n')
    assert config.arch_package_manager is ArchPackageManager.PARU
    assert config.git_concurrency_limit == 3
    assert config.use_predefined_git_repos is False


def test_cleanup_from_either_source():
    assert make(["-c"]).cleanup is True
    assert make(toml="[misc]\ncleanup = true\n").cleanup is True
    assert make().cleanup is False


def test_skip_notify_file_wins():
    assert make(["--skip-notify"], "[misc]\nskip_notify = false\n").skip_notify() is False
    assert make(["--skip-notify"]).skip_notify() is True


def test_keep_at_end(monkeypatch):
    monkeypatch.delenv("TOPGRADE_KEEP_END", raising=False)
    assert make().keep_at_end() is False
    assert make(["-k"]).keep_at_end() is True
    monkeypatch.setenv("TOPGRADE_KEEP_END", "1")
    assert make().keep_at_end() is True


def test_should_execute_remote():
    assert make().should_execute_remote(socket.gethostname()) is False
    limited = make(["--remote-host-limit", "^web"])
    assert limited.should_execute_remote("web-zz-example") is True
    assert limited.should_execute_remote("db-zz-example") is False


def test_should_run_custom_command():
    assert make().should_run_custom_command("anything") is True
    config = make(["--custom-commands", "first"])
    assert config.should_run_custom_command("first") is True
    assert config.should_run_custom_command("second") is False


def test_load_reads_directory(tmp_path):
    (tmp_path / "topgrade.toml").write_text('[misc]\ndisable = ["emacs"]\n', encoding="utf-8")
    config = Config.load(CommandLineArgs.parse([]), tmp_path)
    assert not config.should_run(Step.EMACS)
    assert config.should_run(Step.VIM)


def test_load_missing_directory_uses_defaults(tmp_path):
    config = Config.load(CommandLineArgs.parse([]), tmp_path / "absent")
    assert config.allowed_steps == list(Step)


def test_load_broken_file_falls_back(tmp_path):
    (tmp_path / "topgrade.toml").write_text("[misc\nbroken", encoding="utf-8")
    config = Config.load(CommandLineArgs.parse([]), tmp_path)
    assert config.allowed_steps == list(Step)
    assert config.config_file.data == {}