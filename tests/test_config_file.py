import tomllib

import pytest

from topgrader.config_file import (
    EXAMPLE_CONFIG,
    ArchPackageManager,
    ConfigFile,
    Step,
    ensure_config,
    ensure_misc_is_present,
    find_topgrade_d,
    split_include_sections,
)


def test_default_config():
    parsed = ConfigFile.from_toml(EXAMPLE_CONFIG)
    assert parsed.section("misc") == {}
    assert parsed.section("commands") == {}


def test_step_values_and_order():
    assert Step("git_repos") is Step.GIT_REPOS
    assert Step.AM.value == "am"
    assert Step.GITHUB_CLI_EXTENSIONS.value == "github_cli_extensions"
    steps = list(Step)
    assert steps[0] is Step.AM
    assert steps[-1] is Step.YARN


def test_from_toml_converts_values():
    parsed = ConfigFile.from_toml(
        """
[misc]
disable = ["system", "emacs"]
assume_yes = true
[linux]
arch_package_manager = "paru"
[git]
max_concurrency = 3
[commands]
b = "echo b"
a = "echo a"
"""
    )
    assert parsed.get("misc", "disable") == [Step.SYSTEM, Step.EMACS]
    assert parsed.get("misc", "assume_yes") is True
    assert parsed.get("linux", "arch_package_manager") is ArchPackageManager.PARU
    assert parsed.get("git", "max_concurrency") == 3
    assert list(parsed.section("commands")) == ["a", "b"]
    assert parsed.get("misc", "cleanup") is None
    assert parsed.section("brew") is None


@pytest.mark.parametrize(
    "text",
    [
        "[nonsense]\n",
        "[misc]\nunknown_key = 1\n",
        "[misc]\ndisable = [\"not_a_step\"]\n",
        "[misc]\nassume_yes = \"yes\"\n",
        "[git]\nmax_concurrency = -1\n",
        "[linux]\narch_package_manager = \"apt\"\n",
        "[commands]\nx = 1\n",
    ],
)
def test_from_toml_rejects_invalid(text):
    with pytest.raises(ValueError):
        ConfigFile.from_toml(text)


def test_from_toml_rejects_bad_syntax():
    with pytest.raises(tomllib.TOMLDecodeError):
        ConfigFile.from_toml("[misc\n")


def test_merge_strategies():
    left = ConfigFile.from_toml(
        '[misc]\nassume_yes = true\nssh_arguments = "-a"\ndisable = ["vim"]\n'
        '[commands]\nx = "left"\n'
    )
    right = ConfigFile.from_toml(
        '[misc]\nassume_yes = false\nssh_arguments = "-b"\ndisable = ["go"]\ncleanup = true\n'
        '[commands]\nx = "right"\ny = "other"\n[brew]\nautoremove = true\n'
    )
    left.merge(right)
    assert left.get("misc", "assume_yes") is True
    assert left.get("misc", "ssh_arguments") == "-a -b"
    assert left.get("misc", "disable") == [Step.GO, Step.VIM]
    assert left.get("misc", "cleanup") is True
    assert left.section("commands") == {"x": "right", "y": "other"}
    assert left.get("brew", "autoremove") is True


def test_merge_does_not_alias_other():
    left = ConfigFile()
    right = ConfigFile.from_toml('[git]\nrepos = ["a"]\n')
    left.merge(right)
    left.data["git"]["repos"].append("b")
    assert right.get("git", "repos") == ["a"]


def test_split_include_sections_only_at_start():
    text = "[misc]\n[include]\npaths = []\n"
    assert split_include_sections(text) == [text]
    assert split_include_sections("") == [""]


def test_ensure_misc_is_present_prepends_and_writes(tmp_path):
    path = tmp_path / "topgrade.toml"
    path.write_text("[git]\n")
    updated = ensure_misc_is_present("[git]\n", path)
    assert updated == "[misc]\n[git]\n"
    assert path.read_text() == "[misc]\n[git]\n"


def test_ensure_misc_is_present_keeps_existing(tmp_path):
    path = tmp_path / "topgrade.toml"
    path.write_text("original")
    assert ensure_misc_is_present("[misc]\n", path) == "[misc]\n"
    assert path.read_text() == "original"


def test_find_topgrade_d_creates_directory(tmp_path):
    assert find_topgrade_d(tmp_path) == []
    assert (tmp_path / "topgrade.d").is_dir()


def test_find_topgrade_d_lists_sorted_files(tmp_path):
    directory = tmp_path / "topgrade.d"
    directory.mkdir()
    (directory / "b.toml").write_text("")
    (directory / "a.toml").write_text("")
    (directory / "sub").mkdir()
    assert find_topgrade_d(tmp_path) == [directory / "a.toml", directory / "b.toml"]


def test_ensure_config_writes_example(tmp_path):
    main, drop_ins = ensure_config(tmp_path)
    assert main == tmp_path / "topgrade.toml"
    assert drop_ins == []
    assert main.read_text() == EXAMPLE_CONFIG


def test_ensure_config_finds_nested_main(tmp_path):
    nested = tmp_path / "topgrade" / "topgrade.toml"
    nested.parent.mkdir()
    nested.write_text("[misc]\n")
    main, _ = ensure_config(tmp_path)
    assert main == nested


def test_ensure_config_only_drop_ins(tmp_path):
    directory = tmp_path / "topgrade.d"
    directory.mkdir()
    (directory / "x.toml").write_text("[misc]\n")
    main, drop_ins = ensure_config(tmp_path)
    assert main is None
    assert drop_ins == [directory / "x.toml"]
    assert not (tmp_path / "topgrade.toml").exists()


def test_read_explicit_path(tmp_path):
    path = tmp_path / "custom.toml"
    path.write_text('[misc]\ncleanup = true\n')
    parsed = ConfigFile.read(path)
    assert parsed.get("misc", "cleanup") is True


def test_read_adds_misc_section(tmp_path):
    path = tmp_path / "custom.toml"
    path.write_text('[brew]\nautoremove = true\n')
    parsed = ConfigFile.read(path)
    assert parsed.get("brew", "autoremove") is True
    assert path.read_text().startswith("[misc]\n")


def test_read_drop_ins_take_precedence(tmp_path):
    directory = tmp_path / "topgrade.d"
    directory.mkdir()
    (directory / "extra.toml").write_text("[misc]\nassume_yes = true\n")
    (tmp_path / "topgrade.toml").write_text("[misc]\nassume_yes = false\ncleanup = true\n")
    parsed = ConfigFile.read(config_directory=tmp_path)
    assert parsed.get("misc", "assume_yes") is True
    assert parsed.get("misc", "cleanup") is True


def test_read_includes_before_main(tmp_path):
    included = tmp_path / "included.toml"
    included.write_text("[misc]\nno_retry = true\n")
    path = tmp_path / "main.toml"
    path.write_text(f'[misc]\nno_retry = false\n[include]\npaths = ["{included.as_posix()}"]\n')
    parsed = ConfigFile.read(path)
    assert parsed.get("misc", "no_retry") is True


def test_read_skips_missing_include(tmp_path):
    path = tmp_path / "main.toml"
    missing = (tmp_path / "missing.toml").as_posix()
    path.write_text(f'[misc]\ncleanup = true\n[include]\npaths = ["{missing}"]\n')
    parsed = ConfigFile.read(path)
    assert parsed.get("misc", "cleanup") is True


def test_read_invalid_content_is_logged_not_raised(tmp_path):
    path = tmp_path / "main.toml"
    path.write_text("[misc]\nbogus = 1\n")
    parsed = ConfigFile.read(path)
    assert parsed.data == {}


def test_read_bad_syntax_raises(tmp_path):
    path = tmp_path / "main.toml"
    path.write_text("[misc]\n= broken\n")
    with pytest.raises(ValueError):
        ConfigFile.read(path)


def test_read_expands_git_repos(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    path = tmp_path / "main.toml"
    path.write_text('[misc]\n[git]\nrepos = ["~/src"]\n')
    parsed = ConfigFile.read(path)
    assert parsed.get("git", "repos") == [str(home / "src")]