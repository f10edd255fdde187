"""The TOML configuration file: its schema, merging rules and discovery on disk."""

from __future__ import annotations

import copy
import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

EXAMPLE_CONFIG = """\
# Settings that apply to every step.
[misc]
# Do not ask to retry failed steps
# no_retry = true

# Do not perform upgrades for the given steps
# disable = ["system", "emacs"]

# Run only these steps
# only = ["git_repos"]

# Steps whose failures are reported but not counted as errors
# ignore_failures = ["powershell"]

# Say yes to every package manager prompt
# assume_yes = true

# Run cleanup steps
# cleanup = true

# Set the terminal title while running
# set_title = true

# Show the time in step separators
# display_time = true

# Extra arguments for tmux
# tmux_arguments = "-S /var/tmux.sock"

# Tracing filter directives
# log_filters = ["topgrade::command=debug", "warn"]

# Commands to run before anything else
[pre_commands]
# "Emacs Snapshot" = "rm -rf ~/.emacs.d/elpa.bak && cp -rl ~/.emacs.d/elpa ~/.emacs.d/elpa.bak"

# Commands to run after all steps
[post_commands]
# "Notify" = "echo done"

# Custom steps
[commands]
# "Python Environment" = "~/dev/.env/bin/pip install -i https://pypi.python.org/simple -U --upgrade-strategy eager jupyter"

[git]
# max_concurrency = 5
# Additional git repositories to pull
# repos = ["~/src/*/", "~/.config/something"]
# pull_predefined = false
# arguments = "--rebase --autostash"

[containers]
# ignored_containers = ["ghcr.io/rancher-sandbox/rancher-desktop/rdx-proxy:latest"]

[linux]
# yay_arguments = "--nodevel"
# arch_package_manager = "pacman"
# show_arch_news = true
# enable_tlmgr = true

[brew]
# greedy_cask = true
# autoremove = true

[python]
# enable_pip_review = true
# enable_pip_review_local = true
# enable_pipupgrade = true

[vagrant]
# directories = []
# power_on = true
# always_suspend = true
"""


class Step(Enum):
    """Every update step that can be enabled or disabled."""

    AM = "am"
    APP_MAN = "app_man"
    ASDF = "asdf"
    ATOM = "atom"
    AUDIT = "audit"
    BIN = "bin"
    BOB = "bob"
    BREW_CASK = "brew_cask"
    BREW_FORMULA = "brew_formula"
    BUN = "bun"
    BUN_PACKAGES = "bun_packages"
    CARGO = "cargo"
    CERTBOT = "certbot"
    CHEZMOI = "chezmoi"
    CHOCOLATEY = "chocolatey"
    CHOOSENIM = "choosenim"
    COMPOSER = "composer"
    CONDA = "conda"
    CONFIG_UPDATE = "config_update"
    CONTAINERS = "containers"
    CUSTOM_COMMANDS = "custom_commands"
    DEB_GET = "deb_get"
    DENO = "deno"
    DISTROBOX = "distrobox"
    DKP_PACMAN = "dkp_pacman"
    DOTNET = "dotnet"
    EMACS = "emacs"
    FIRMWARE = "firmware"
    FLATPAK = "flatpak"
    FLUTTER = "flutter"
    FOSSIL = "fossil"
    GCLOUD = "gcloud"
    GEM = "gem"
    GHCUP = "ghcup"
    GITHUB_CLI_EXTENSIONS = "github_cli_extensions"
    GIT_REPOS = "git_repos"
    GNOME_SHELL_EXTENSIONS = "gnome_shell_extensions"
    GO = "go"
    GUIX = "guix"
    HAXELIB = "haxelib"
    HELM = "helm"
    HOME_MANAGER = "home_manager"
    JETPACK = "jetpack"
    JULIA = "julia"
    JULIAUP = "juliaup"
    KAKOUNE = "kakoune"
    HELIX = "helix"
    KREW = "krew"
    LURE = "lure"
    MACPORTS = "macports"
    MAMBA = "mamba"
    MIKTEX = "miktex"
    MAS = "mas"
    MAZA = "maza"
    MICRO = "micro"
    MYREPOS = "myrepos"
    NIX = "nix"
    NODE = "node"
    OPAM = "opam"
    PACDEF = "pacdef"
    PACSTALL = "pacstall"
    PEARL = "pearl"
    PIP3 = "pip3"
    PIP_REVIEW = "pip_review"
    PIP_REVIEW_LOCAL = "pip_review_local"
    PIPUPGRADE = "pipupgrade"
    PIPX = "pipx"
    PKG = "pkg"
    PKGIN = "pkgin"
    PNPM = "pnpm"
    POWERSHELL = "powershell"
    PROTONUP = "protonup"
    PYENV = "pyenv"
    RACO = "raco"
    RCM = "rcm"
    REMOTES = "remotes"
    RESTARTS = "restarts"
    RTCL = "rtcl"
    RUBY_GEMS = "ruby_gems"
    RUSTUP = "rustup"
    SCOOP = "scoop"
    SDKMAN = "sdkman"
    SELF_UPDATE = "self_update"
    SHELDON = "sheldon"
    SHELL = "shell"
    SNAP = "snap"
    SPARKLE = "sparkle"
    SPICETIFY = "spicetify"
    STACK = "stack"
    STEW = "stew"
    SYSTEM = "system"
    TLDR = "tldr"
    TLMGR = "tlmgr"
    TMUX = "tmux"
    TOOLBX = "toolbx"
    VAGRANT = "vagrant"
    VCPKG = "vcpkg"
    VIM = "vim"
    VSCODE = "vscode"
    WAYDROID = "waydroid"
    WINGET = "winget"
    WSL = "wsl"
    WSL_UPDATE = "wsl_update"
    XCODES = "xcodes"
    YADM = "yadm"
    YARN = "yarn"


class ArchPackageManager(Enum):
    AUTODETECT = "autodetect"
    AURA = "aura"
    GARUDA_UPDATE = "garuda_update"
    PACMAN = "pacman"
    PAMAC = "pamac"
    PARU = "paru"
    PIKAUR = "pikaur"
    TRIZEN = "trizen"
    YAY = "yay"


class _Kind(Enum):
    BOOL = "boolean"
    INT = "non-negative integer"
    STR = "string"
    STR_LIST = "list of strings"
    STEP_LIST = "list of steps"
    ARCH = "Arch package manager"


class _Merge(Enum):
    KEEP_FIRST = "keep_first"
    APPEND = "append"
    PREPEND = "prepend"


@dataclass(frozen=True)
class _Field:
    kind: _Kind
    merge: _Merge = _Merge.KEEP_FIRST


_BOOL = _Field(_Kind.BOOL)
_INT = _Field(_Kind.INT)
_STR = _Field(_Kind.STR)
_APPEND_STR = _Field(_Kind.STR, _Merge.APPEND)
_PREPEND_STRS = _Field(_Kind.STR_LIST, _Merge.PREPEND)
_PREPEND_STEPS = _Field(_Kind.STEP_LIST, _Merge.PREPEND)

_SECTIONS: dict[str, dict[str, _Field]] = {
    "include": {"paths": _PREPEND_STRS},
    "misc": {
        "pre_sudo": _BOOL,
        "sudo_command": _STR,
        "disable": _PREPEND_STEPS,
        "ignore_failures": _PREPEND_STEPS,
        "remote_topgrades": _PREPEND_STRS,
        "remote_topgrade_path": _STR,
        "ssh_arguments": _APPEND_STR,
        "tmux_arguments": _APPEND_STR,
        "set_title": _BOOL,
        "display_time": _BOOL,
        "assume_yes": _BOOL,
        "no_retry": _BOOL,
        "run_in_tmux": _BOOL,
        "cleanup": _BOOL,
        "notify_each_step": _BOOL,
        "skip_notify": _BOOL,
        "bashit_branch": _STR,
        "only": _PREPEND_STEPS,
        "no_self_update": _BOOL,
        "log_filters": _Field(_Kind.STR_LIST),
    },
    "python": {
        "enable_pip_review": _BOOL,
        "enable_pip_review_local": _BOOL,
        "enable_pipupgrade": _BOOL,
        "pipupgrade_arguments": _STR,
    },
    "composer": {"self_update": _BOOL},
    "brew": {
        "greedy_cask": _BOOL,
        "greedy_latest": _BOOL,
        "autoremove": _BOOL,
        "fetch_head": _BOOL,
    },
    "linux": {
        "yay_arguments": _APPEND_STR,
        "aura_aur_arguments": _APPEND_STR,
        "aura_pacman_arguments": _APPEND_STR,
        "arch_package_manager": _Field(_Kind.ARCH),
        "show_arch_news": _BOOL,
        "garuda_update_arguments": _APPEND_STR,
        "trizen_arguments": _APPEND_STR,
        "pikaur_arguments": _APPEND_STR,
        "pamac_arguments": _APPEND_STR,
        "dnf_arguments": _APPEND_STR,
        "nix_arguments": _APPEND_STR,
        "nix_env_arguments": _APPEND_STR,
        "apt_arguments": _APPEND_STR,
        "enable_tlmgr": _BOOL,
        "redhat_distro_sync": _BOOL,
        "suse_dup": _BOOL,
        "rpm_ostree": _BOOL,
        "emerge_sync_flags": _APPEND_STR,
        "emerge_update_flags": _APPEND_STR,
        "home_manager_arguments": _PREPEND_STRS,
    },
    "git": {
        "max_concurrency": _INT,
        "arguments": _APPEND_STR,
        "repos": _PREPEND_STRS,
        "pull_predefined": _BOOL,
    },
    "containers": {"ignored_containers": _PREPEND_STRS},
    "windows": {
        "accept_all_updates": _BOOL,
        "self_rename": _BOOL,
        "open_remotes_in_new_terminal": _BOOL,
        "wsl_update_pre_release": _BOOL,
        "wsl_update_use_web_download": _BOOL,
    },
    "npm": {"use_sudo": _BOOL},
    "yarn": {"use_sudo": _BOOL},
    "vim": {"force_plug_update": _BOOL},
    "firmware": {"upgrade": _BOOL},
    "vagrant": {
        "directories": _PREPEND_STRS,
        "power_on": _BOOL,
        "always_suspend": _BOOL,
    },
    "flatpak": {"use_sudo": _BOOL},
    "distrobox": {"use_root": _BOOL, "containers": _PREPEND_STRS},
}

_COMMAND_TABLES = ("pre_commands", "post_commands", "commands")

_INCLUDE_HEADER = re.compile(r"^\s*\[include]")


def _convert(section: str, key: str, spec: _Field, value: Any) -> Any:
    def invalid() -> ValueError:
        return ValueError(f"invalid type for `{key}` in [{section}]: expected a {spec.kind.value}")

    match spec.kind:
        case _Kind.BOOL:
            if not isinstance(value, bool):
                raise invalid()
            return value
        case _Kind.INT:
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise invalid()
            return value
        case _Kind.STR:
            if not isinstance(value, str):
                raise invalid()
            return value
        case _Kind.STR_LIST:
            if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
                raise invalid()
            return list(value)
        case _Kind.STEP_LIST:
            if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
                raise invalid()
            try:
                return [Step(item) for item in value]
            except ValueError as err:
                raise ValueError(f"unknown step in `{key}` of [{section}]: {err}") from err
        case _Kind.ARCH:
            if not isinstance(value, str):
                raise invalid()
            try:
                return ArchPackageManager(value)
            except ValueError as err:
                raise ValueError(f"unknown variant for `{key}` in [{section}]: {value!r}") from err
    raise AssertionError(spec.kind)


def _parse_section(name: str, table: Any) -> dict[str, Any]:
    if not isinstance(table, dict):
        raise ValueError(f"invalid type for [{name}]: expected a table")
    schema = _SECTIONS[name]
    parsed = {}
    for key, value in table.items():
        if key not in schema:
            raise ValueError(f"unknown field `{key}` in [{name}]")
        parsed[key] = _convert(name, key, schema[key], value)
    return parsed


def _parse_commands(name: str, table: Any) -> dict[str, str]:
    if not isinstance(table, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in table.items()
    ):
        raise ValueError(f"invalid type for [{name}]: expected a table of strings")
    return dict(sorted(table.items()))


def _merge_value(left: Any, right: Any, strategy: _Merge) -> Any:
    if left is None:
        return copy.deepcopy(right)
    if right is None:
        return left
    match strategy:
        case _Merge.APPEND:
            return f"{left} {right}"
        case _Merge.PREPEND:
            return [*right, *left]
    return left


@dataclass
class ConfigFile:
    """Parsed configuration: sections of settings and tables of commands."""

    data: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_toml(cls, text: str) -> ConfigFile:
        """Parse and validate a configuration document; unknown keys are errors."""
        document = tomllib.loads(text)
        data: dict[str, dict[str, Any]] = {}
        for name, table in document.items():
            if name in _SECTIONS:
                data[name] = _parse_section(name, table)
            elif name in _COMMAND_TABLES:
                data[name] = _parse_commands(name, table)
            else:
                raise ValueError(f"unknown field `{name}`")
        return cls(data)

    def merge(self, other: ConfigFile) -> None:
        """Fold ``other`` into this configuration; values already set take precedence."""
        for name, right in other.data.items():
            left = self.data.get(name)
            if left is None:
                self.data[name] = copy.deepcopy(right)
            elif name in _COMMAND_TABLES:
                self.data[name] = dict(sorted({**left, **right}.items()))
            else:
                schema = _SECTIONS[name]
                for key, value in right.items():
                    left[key] = _merge_value(left.get(key), value, schema[key].merge)

    def section(self, name: str) -> dict[str, Any] | None:
        """The named section or command table, or ``None`` when absent."""
        return self.data.get(name)

    def get(self, section: str, key: str) -> Any:
        """One setting, or ``None`` when it is not set."""
        table = self.data.get(section)
        return None if table is None else table.get(key)

    @classmethod
    def read(
        cls,
        config_path: str | os.PathLike | None = None,
        config_directory: str | os.PathLike | None = None,
    ) -> ConfigFile:
        """Read the configuration, its drop-in directory and its includes."""
        result = cls()

        if config_path is not None:
            path: Path | None = Path(config_path)
        else:
            directory = Path(config_directory) if config_directory is not None else _platform_config_directory()
            path, drop_ins = ensure_config(directory)
            for include in drop_ins:
                try:
                    text = include.read_text(encoding="utf-8")
                except OSError:
                    logger.error("Unable to read %s", include)
                    raise
                try:
                    parsed = cls.from_toml(text)
                except ValueError:
                    logger.error("Failed to deserialize %s", include)
                    raise
                result.merge(parsed)

        if path is None:
            return result

        try:
            contents = path.read_text(encoding="utf-8")
        except OSError:
            logger.error("Unable to read %s", path)
            raise

        contents = ensure_misc_is_present(contents, path)

        for piece in split_include_sections(contents):
            try:
                document = tomllib.loads(piece)
                include = _parse_section("include", document.get("include", {}))
            except ValueError:
                logger.error("Failed to deserialize an include section of %s", path)
                raise

            for include_name in reversed(include.get("paths") or []):
                include_path = Path(os.path.expanduser(include_name))
                try:
                    include_text = include_path.read_text(encoding="utf-8")
                except OSError as err:
                    logger.error("Unable to read %s: %s", include_path, err)
                    continue
                try:
                    result.merge(cls.from_toml(include_text))
                except ValueError as err:
                    logger.error("Failed to deserialize %s: %s", include_path, err)

            try:
                result.merge(cls.from_toml(piece))
            except ValueError as err:
                logger.error("Failed to deserialize %s: %s", path, err)

        repos = result.get("git", "repos")
        if repos is not None:
            expanded = [os.path.expanduser(repo) for repo in repos]
            for before, after in zip(repos, expanded):
                logger.debug("Path %s expanded to %s", before, after)
            result.data["git"]["repos"] = expanded

        logger.debug("Loaded configuration: %r", result)
        return result


def _platform_config_directory() -> Path:
    if os.name == "nt":
        appdata = os.environ.get("APPDATA")
        return Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg and os.path.isabs(xdg):
        return Path(xdg)
    return Path.home() / ".config"


def config_directory() -> Path:
    """The platform's directory for user configuration."""
    return _platform_config_directory()


def find_topgrade_d(config_directory: str | os.PathLike) -> list[Path]:
    """Files in ``topgrade.d``, sorted; the directory is created when missing."""
    directory = Path(config_directory) / "topgrade.d"
    if directory.exists():
        found = sorted(entry for entry in directory.iterdir() if entry.is_file())
        for entry in found:
            logger.debug("Found additional (directory) configuration file at %s", entry)
        return found
    logger.debug("No additional configuration directory exists, creating one")
    directory.mkdir(parents=True, exist_ok=True)
    return []


def ensure_config(config_directory: str | os.PathLike) -> tuple[Path | None, list[Path]]:
    """Find the main configuration and drop-ins, writing the example when there is neither."""
    directory = Path(config_directory)
    candidates = [directory / "topgrade.toml", directory / "topgrade" / "topgrade.toml"]

    main = next((path for path in candidates if path.exists()), None)
    if main is not None:
        logger.debug("Configuration at %s", main)

    drop_ins = find_topgrade_d(directory)

    if main is None and not drop_ins:
        main = candidates[0]
        logger.debug("No configuration exists")
        try:
            main.write_text(EXAMPLE_CONFIG, encoding="utf-8")
        except OSError as err:
            logger.debug("Unable to write the example configuration file to %s: %s. Using blank config.", main, err)
            raise

    return main, drop_ins


def ensure_misc_is_present(contents: str, path: str | os.PathLike) -> str:
    """Add a leading ``[misc]`` section to the file when it has none; return the contents."""
    if "[misc]" in contents:
        return contents
    logger.debug("Adding [misc] section to %s", path)
    updated = "[misc]\n" + contents
    try:
        Path(path).write_text(updated, encoding="utf-8")
    except OSError as err:
        raise RuntimeError(
            "Tried to auto-migrate the config file, unable to write to config file.\n"
            'Please add "[misc]" section manually to the first line of the file.\n'
            f"Error: {err}"
        ) from err
    return updated


def split_include_sections(contents: str) -> list[str]:
    """Split the text before each ``[include]`` header the pattern finds."""
    starts = [match.start() for match in _INCLUDE_HEADER.finditer(contents) if match.start() > 0]
    if not starts:
        return [contents]
    bounds = [0, *starts, len(contents)]
    return [contents[begin:end] for begin, end in zip(bounds, bounds[1:])]