"""Command line options and the combined view of options and configuration file."""

from __future__ import annotations

import argparse
import logging
import os
import re
import shlex
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from topgrader.config_file import ArchPackageManager, ConfigFile, Step, config_directory

logger = logging.getLogger(__name__)

DEFAULT_LOG_LEVEL = "warn"

_SHELLS = ("bash", "elvish", "fish", "powershell", "zsh")


def _step(value: str) -> Step:
    try:
        return Step(value)
    except ValueError as err:
        choices = ", ".join(step.value for step in Step)
        raise argparse.ArgumentTypeError(f"invalid step {value!r} (choose from {choices})") from err


def _regex(value: str) -> re.Pattern[str]:
    try:
        return re.compile(value)
    except re.error as err:
        raise argparse.ArgumentTypeError(f"invalid regular expression {value!r}: {err}") from err


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="topgrade")
    flag = {"action": "store_true"}
    parser.add_argument("--edit-config", dest="edit_config", help="Edit the configuration file", **flag)
    parser.add_argument(
        "--config-reference", dest="show_config_reference", help="Show config reference", **flag
    )
    parser.add_argument("-t", "--tmux", dest="run_in_tmux", help="Run inside tmux", **flag)
    parser.add_argument("-c", "--cleanup", dest="cleanup", help="Cleanup temporary or old files", **flag)
    parser.add_argument("-n", "--dry-run", dest="dry_run", help="Print what would be done", **flag)
    parser.add_argument("--no-retry", dest="no_retry", help="Do not ask to retry failed steps", **flag)
    parser.add_argument(
        "--disable",
        dest="disable",
        metavar="STEP",
        type=_step,
        nargs="+",
        action="extend",
        default=[],
        help="Do not perform upgrades for the given steps",
    )
    parser.add_argument(
        "--only",
        dest="only",
        metavar="STEP",
        type=_step,
        nargs="+",
        action="extend",
        default=[],
        help="Perform only the specified steps (experimental)",
    )
    parser.add_argument(
        "--custom-commands",
        dest="custom_commands",
        metavar="NAME",
        nargs="+",
        action="extend",
        default=[],
        help="Run only specific custom commands",
    )
    parser.add_argument(
        "--env",
        dest="env",
        metavar="NAME=VALUE",
        nargs="+",
        action="extend",
        default=[],
        help="Set environment variables",
    )
    parser.add_argument(
        "-v", "--verbose", dest="verbose", help="Output debug logs. Alias for `--log-filter debug`.", **flag
    )
    parser.add_argument("-k", "--keep", dest="keep_at_end", help="Prompt for a key before exiting", **flag)
    parser.add_argument(
        "--skip-notify", dest="skip_notify", help="Skip sending a notification at the end of a run", **flag
    )
    parser.add_argument(
        "-y",
        "--yes",
        dest="yes",
        metavar="STEP",
        type=_step,
        nargs="*",
        action="extend",
        default=None,
        help="Say yes to package manager's prompt",
    )
    parser.add_argument(
        "--disable-predefined-git-repos",
        dest="disable_predefined_git_repos",
        help="Don't pull the predefined git repos",
        **flag,
    )
    parser.add_argument("--config", dest="config", metavar="PATH", type=Path, help="Alternative configuration file")
    parser.add_argument(
        "--remote-host-limit",
        dest="remote_host_limit",
        metavar="REGEX",
        type=_regex,
        help="A regular expression for restricting remote host execution",
    )
    parser.add_argument("--show-skipped", dest="show_skipped", help="Show the reason for skipped steps", **flag)
    parser.add_argument(
        "--log-filter", dest="log_filter", default=DEFAULT_LOG_LEVEL, help="Tracing filter directives."
    )
    parser.add_argument("--gen-completion", dest="gen_completion", choices=_SHELLS, help=argparse.SUPPRESS)
    parser.add_argument("--gen-manpage", dest="gen_manpage", help=argparse.SUPPRESS, **flag)
    parser.add_argument("--no-self-update", dest="no_self_update", help="Don't update Topgrade", **flag)
    return parser


@dataclass
class CommandLineArgs:
    """Options given on the command line."""

    edit_config: bool = False
    show_config_reference: bool = False
    run_in_tmux: bool = False
    cleanup: bool = False
    dry_run: bool = False
    no_retry: bool = False
    disable: list[Step] = field(default_factory=list)
    only: list[Step] = field(default_factory=list)
    custom_commands: list[str] = field(default_factory=list)
    env: list[str] = field(default_factory=list)
    verbose: bool = False
    keep_at_end: bool = False
    skip_notify: bool = False
    yes: list[Step] | None = None
    disable_predefined_git_repos: bool = False
    config: Path | None = None
    remote_host_limit: re.Pattern[str] | None = None
    show_skipped: bool = False
    log_filter: str = DEFAULT_LOG_LEVEL
    gen_completion: str | None = None
    gen_manpage: bool = False
    no_self_update: bool = False

    @classmethod
    def parse(cls, argv: list[str] | None = None) -> CommandLineArgs:
        """Parse ``argv`` (the process arguments when ``None``); bad options exit with usage."""
        namespace = _build_parser().parse_args(argv)
        return cls(**vars(namespace))

    def tracing_filter_directives(self) -> str:
        """Filter directives known before the configuration file is read."""
        directives = self.log_filter
        if self.verbose:
            directives += ",debug"
        return directives


class _Setting:
    """A configuration file value with a fallback when it is not set."""

    def __init__(self, section: str, key: str, default: Any = None) -> None:
        self.section = section
        self.key = key
        self.default = default

    def __set_name__(self, owner: type, name: str) -> None:
        self.__doc__ = f"`{self.key}` of [{self.section}]"

    def __get__(self, instance: Config | None, owner: type) -> Any:
        if instance is None:
            return self
        value = instance.config_file.get(self.section, self.key)
        return self.default if value is None else value


def allowed_steps(opt: CommandLineArgs, config_file: ConfigFile) -> list[Step]:
    """Steps enabled by ``only`` and not removed by ``disable``; ``--only`` beats any disable."""
    enabled = [*opt.only, *(config_file.get("misc", "only") or [])]
    if not enabled:
        enabled = list(Step)
    disabled = [*opt.disable, *(config_file.get("misc", "disable") or [])]
    return [step for step in enabled if step not in disabled or step in opt.only]


class Config:
    """Decisions drawn from the command line and the configuration file together."""

    def __init__(self, opt: CommandLineArgs, config_file: ConfigFile | None = None) -> None:
        self.opt = opt
        self.config_file = config_file if config_file is not None else ConfigFile()
        self.allowed_steps = allowed_steps(self.opt, self.config_file)

    def __repr__(self) -> str:
        return f"Config(opt={self.opt!r}, config_file={self.config_file!r})"

    @classmethod
    def load(cls, opt: CommandLineArgs, config_directory: str | os.PathLike | None = None) -> Config:
        """Read the configuration file, falling back to defaults when it cannot be loaded."""
        directory = Path(config_directory) if config_directory is not None else _default_directory()
        if directory.is_dir():
            try:
                config_file = ConfigFile.read(opt.config, directory)
            except Exception as err:  # the run goes on with defaults
                logger.error("failed to load configuration: %s", err)
                config_file = ConfigFile()
        else:
            logger.debug("Configuration directory %s does not exist", directory)
            config_file = ConfigFile()
        return cls(opt, config_file)

    # Sections straight from the file.
    pre_commands = property(lambda self: self.config_file.section("pre_commands"))
    post_commands = property(lambda self: self.config_file.section("post_commands"))
    commands = property(lambda self: self.config_file.section("commands"))

    git_repos = _Setting("git", "repos")
    containers_ignored_tags = _Setting("containers", "ignored_containers")
    remote_topgrades = _Setting("misc", "remote_topgrades")
    remote_topgrade_path = _Setting("misc", "remote_topgrade_path", "topgrade")
    ssh_arguments = _Setting("misc", "ssh_arguments")
    git_arguments = _Setting("git", "arguments")
    set_title = _Setting("misc", "set_title", True)
    bashit_branch = _Setting("misc", "bashit_branch", "stable")
    accept_all_windows_updates = _Setting("windows", "accept_all_updates", True)
    self_rename = _Setting("windows", "self_rename", False)
    wsl_update_pre_release = _Setting("windows", "wsl_update_pre_release", False)
    wsl_update_use_web_download = _Setting("windows", "wsl_update_use_web_download", False)
    brew_cask_greedy = _Setting("brew", "greedy_cask", False)
    brew_greedy_latest = _Setting("brew", "greedy_latest", False)
    brew_autoremove = _Setting("brew", "autoremove", False)
    brew_fetch_head = _Setting("brew", "fetch_head", False)
    composer_self_update = _Setting("composer", "self_update", False)
    force_vim_plug_update = _Setting("vim", "force_plug_update", False)
    notify_each_step = _Setting("misc", "notify_each_step", False)
    garuda_update_arguments = _Setting("linux", "garuda_update_arguments", "")
    trizen_arguments = _Setting("linux", "trizen_arguments", "")
    pikaur_arguments = _Setting("linux", "pikaur_arguments", "")
    pamac_arguments = _Setting("linux", "pamac_arguments", "")
    show_arch_news = _Setting("linux", "show_arch_news", True)
    arch_package_manager = _Setting("linux", "arch_package_manager", ArchPackageManager.AUTODETECT)
    yay_arguments = _Setting("linux", "yay_arguments", "")
    aura_aur_arguments = _Setting("linux", "aura_aur_arguments", "")
    aura_pacman_arguments = _Setting("linux", "aura_pacman_arguments", "")
    apt_arguments = _Setting("linux", "apt_arguments")
    dnf_arguments = _Setting("linux", "dnf_arguments")
    nix_arguments = _Setting("linux", "nix_arguments")
    nix_env_arguments = _Setting("linux", "nix_env_arguments")
    home_manager = _Setting("linux", "home_manager_arguments")
    distrobox_root = _Setting("distrobox", "use_root", False)
    distrobox_containers = _Setting("distrobox", "containers")
    git_concurrency_limit = _Setting("git", "max_concurrency")
    vagrant_power_on = _Setting("vagrant", "power_on")
    vagrant_directories = _Setting("vagrant", "directories")
    vagrant_always_suspend = _Setting("vagrant", "always_suspend")
    enable_tlmgr_linux = _Setting("linux", "enable_tlmgr", False)
    redhat_distro_sync = _Setting("linux", "redhat_distro_sync", False)
    suse_dup = _Setting("linux", "suse_dup", False)
    rpm_ostree = _Setting("linux", "rpm_ostree", False)
    open_remotes_in_new_terminal = _Setting("windows", "open_remotes_in_new_terminal", False)
    sudo_command = _Setting("misc", "sudo_command")
    pre_sudo = _Setting("misc", "pre_sudo", False)
    npm_use_sudo = _Setting("npm", "use_sudo", False)
    yarn_use_sudo = _Setting("yarn", "use_sudo", False)
    firmware_upgrade = _Setting("firmware", "upgrade", False)
    flatpak_use_sudo = _Setting("flatpak", "use_sudo", False)
    emerge_sync_flags = _Setting("linux", "emerge_sync_flags")
    emerge_update_flags = _Setting("linux", "emerge_update_flags")
    enable_pipupgrade = _Setting("python", "enable_pipupgrade", False)
    pipupgrade_arguments = _Setting("python", "pipupgrade_arguments", "")
    enable_pip_review = _Setting("python", "enable_pip_review", False)
    enable_pip_review_local = _Setting("python", "enable_pip_review_local", False)
    display_time = _Setting("misc", "display_time", True)

    # Settings that the command line can switch on as well.
    @property
    def no_self_update(self) -> bool:
        return self.opt.no_self_update or bool(self.config_file.get("misc", "no_self_update"))

    @property
    def run_in_tmux(self) -> bool:
        return self.opt.run_in_tmux or bool(self.config_file.get("misc", "run_in_tmux"))

    @property
    def cleanup(self) -> bool:
        return self.opt.cleanup or bool(self.config_file.get("misc", "cleanup"))

    @property
    def no_retry(self) -> bool:
        return self.opt.no_retry or bool(self.config_file.get("misc", "no_retry"))

    @property
    def dry_run(self) -> bool:
        return self.opt.dry_run

    @property
    def verbose(self) -> bool:
        return self.opt.verbose

    @property
    def show_skipped(self) -> bool:
        return self.opt.show_skipped

    @property
    def use_predefined_git_repos(self) -> bool:
        pull = self.config_file.get("git", "pull_predefined")
        return not self.opt.disable_predefined_git_repos and (True if pull is None else pull)

    def should_run(self, step: Step) -> bool:
        """Whether the step is enabled after applying ``only`` and ``disable``."""
        return step in self.allowed_steps

    def yes(self, step: Step) -> bool:
        """Whether to answer yes to the package manager of ``step``."""
        assume_yes = self.config_file.get("misc", "assume_yes")
        if assume_yes is not None:
            return assume_yes
        if self.opt.yes is None:
            return False
        return not self.opt.yes or step in self.opt.yes

    def ignore_failure(self, step: Step) -> bool:
        return step in (self.config_file.get("misc", "ignore_failures") or [])

    def tmux_arguments(self) -> list[str]:
        """Extra tmux arguments split with shell rules."""
        args = self.config_file.get("misc", "tmux_arguments") or ""
        try:
            return shlex.split(args)
        except ValueError as err:
            raise ValueError(f"Failed to parse `tmux_arguments`: `{args}`") from err

    def tracing_filter_directives(self) -> str:
        """Directives from the file, then ``--log-filter``, then ``debug`` when verbose."""
        directives = ",".join(self.config_file.get("misc", "log_filters") or [])
        directives += "," + self.opt.log_filter
        if self.verbose:
            directives += ",debug"
        return directives

    def should_execute_remote(self, remote: str) -> bool:
        """Never this host; otherwise only hosts matching ``--remote-host-limit``."""
        try:
            if remote == socket.gethostname():
                return False
        except OSError:
            pass
        if self.opt.remote_host_limit is not None:
            return self.opt.remote_host_limit.search(remote) is not None
        return True

    def should_run_custom_command(self, name: str) -> bool:
        return not self.opt.custom_commands or name in self.opt.custom_commands

    def keep_at_end(self) -> bool:
        """Prompt for a key before exiting."""
        return self.opt.keep_at_end or "TOPGRADE_KEEP_END" in os.environ

    def skip_notify(self) -> bool:
        """Skip the notification at the end; the file overrides the command line."""
        configured = self.config_file.get("misc", "skip_notify")
        return self.opt.skip_notify if configured is None else configured


def _default_directory() -> Path:
    return config_directory()