# topgrader

`topgrader` is a library of building blocks for keeping a machine up to
date. It reads a TOML configuration that decides which update steps run,
builds commands that either run or, in a dry run, are only printed, runs
steps with an offer to retry failures, and collects a report of what
succeeded, failed, was skipped or had its failure ignored. It also holds
steps for a few tools: container images (podman or docker), npm, pnpm,
Yarn, Deno, Go binaries, Emacs (with Doom Emacs) and Kakoune plugins.

It needs nothing beyond the standard library.

## Modules

- `topgrader.config_file`: the `Step` and `ArchPackageManager`
  enumerations and `ConfigFile`. `ConfigFile.from_toml` parses and
  validates a document (unknown sections and keys raise `ValueError`);
  `merge` folds another configuration in, keeping values already set,
  appending argument strings and prepending lists. `ConfigFile.read` finds
  `topgrade.toml` or `topgrade/topgrade.toml` in the configuration
  directory, reads the sorted files of `topgrade.d`, follows `[include]`
  sections and expands `~` in `git.repos`. When neither a main file nor a
  drop-in exists it writes an example configuration; it creates
  `topgrade.d` when missing, and adds a leading `[misc]` section to a file
  that has none.
- `topgrader.config`: `CommandLineArgs.parse(argv)` for the command line
  options (`--dry-run`, `--disable`, `--only`, `--yes`, `--config`,
  `--remote-host-limit`, `--log-filter`, ...), and `Config`, which combines
  them with the file: `should_run`, `yes`, `ignore_failure`,
  `tmux_arguments`, `tracing_filter_directives`, `should_execute_remote`,
  `should_run_custom_command`, `keep_at_end`, `skip_notify` and properties
  for every setting with its default. `allowed_steps` applies `only` and
  `disable`; a step named with `--only` runs even when disabled.
- `topgrader.executor`: `RunType` and `Executor`. An executor collects
  arguments, a working directory and environment changes, then runs with
  `status_checked`, `status_checked_with_codes`, `output`,
  `output_checked`, `output_checked_utf8` or `spawn`.
- `topgrader.command`: functions that run a command, check its exit status
  and raise `ProcessFailed` or `ProcessFailedWithOutput` with the command
  line, stdout and stderr; `Utf8Output` holds decoded output.
- `topgrader.execution_context`: `ExecutionContext` holds the run type,
  the privilege-elevation program and the configuration; `under_ssh` is
  true when `SSH_CLIENT` or `SSH_TTY` is set.
- `topgrader.runner`: `Runner.execute(step, key, func)` skips disabled
  steps, records success, skips (shown when verbose or `--show-skipped`)
  and failures, and asks whether to retry unless retries are off or the
  step's failures are ignored. A custom `ask_retry` callback may replace
  the prompt on standard input.
- `topgrader.report`: `StepOutcome`, `StepResult` and `Report`; pushing
  the same key twice raises `ValueError`.
- `topgrader.errors`: `TopgradeError`, `ProcessFailed`,
  `ProcessFailedWithOutput`, `StepFailed`, `DryRun` and `SkipStep`.
- `topgrader.interrupt`: `set_handler()` makes SIGINT set a flag, read
  with `interrupted()` and cleared with `unset_interrupted()`.
- `topgrader.breaking_changes`: `Version` and the first-run notice for a
  new major release, remembered in a `topgrade_keep` file in the data
  directory.
- Steps: `topgrader.containers.run_containers`,
  `topgrader.node.run_npm_upgrade`, `run_pnpm_upgrade`,
  `run_yarn_upgrade`, `deno_upgrade`, `topgrader.go.run_go_global_update`,
  `run_go_gup`, `upgrade_kak_plug`, and `topgrader.emacs.Emacs.upgrade`,
  which takes the Emacs Lisp to evaluate as an argument.

## Example

```python
from topgrader.config import CommandLineArgs, Config
from topgrader.config_file import Step
from topgrader.executor import RunType

opt = CommandLineArgs.parse(["--dry-run", "--disable", "containers"])
config = Config(opt)

print(config.should_run(Step("containers")))  # False

run_type = RunType.from_dry_run(config.dry_run)
run_type.execute("npm").args(["update", "-g"]).status_checked()
# prints: Dry running: npm update -g
```

`Config.load(opt)` reads the configuration from the user's configuration
directory instead, and may write files there as described above; pass
`config_directory=` to use another directory. If loading fails the error
is logged and defaults are used.

A dry-run `Executor` never starts the program; it prints the command line,
quoted the way a POSIX shell reads it, followed by `in <directory>` when a
working directory was set. `output_checked` raises `DryRun` in a dry run,
which `Runner` treats as neither success nor failure.

## Versions

```python
from topgrader.breaking_changes import Version

Version.parse("1.0.0").is_new_major_release()  # True
Version.parse("0.1.0").is_new_major_release()  # False
```

Parsing `"0.0.0"` raises `ValueError`.

## Environment

- `TOPGRADE_SKIP_BRKC_NOTIFY=true`: `should_skip()` returns true.
- `TOPGRADE_KEEP_END` set to anything makes `Config.keep_at_end()` true.
- `XDG_CONFIG_HOME` and `XDG_DATA_HOME` (or `APPDATA` on Windows) choose
  the configuration and data directories.

## What it does not do

- There is no command to run: the package installs no program and has no
  function that runs every step in order and prints a summary.
- Only the steps listed above exist. System package managers, git
  repositories, shells and plugin managers, language toolchains, Vim,
  remote hosts and self-update have `Step` members and configuration
  settings, but no code here performs them.
- There is no detection of a sudo program; an `ExecutionContext` is given
  one, or none.
- `--edit-config`, `--config-reference`, `--gen-completion`,
  `--gen-manpage`, `--env` and `--keep` are parsed but nothing here acts
  on them, and there are no desktop notifications or terminal titles.