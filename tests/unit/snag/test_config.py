"""Tests for snag config discovery and resolution."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from snag.config import (
    ConfigError,
    ResolvedPolicy,
    VersionMismatchError,
    check_min_version,
    collect_sources,
    compare_semver,
    load_blocklist,
    load_snag_toml,
    parse_ignore,
    resolve_policy,
    split_env_blocklist,
    walk_config,
)


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestLoadSnagToml:
    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        config = load_snag_toml(tmp_path / "snag.toml")
        assert config.block.diff == ()
        assert config.block.push is None

    def test_valid_block_section(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "snag.toml",
            """
[block]
diff = ["HACK", "DO NOT MERGE"]
msg  = ["HACK", "WIP"]
push = ["SECRET_KEY"]
branch = ["main", "master", "release/*"]
""",
        )
        config = load_snag_toml(path)
        assert config.block.diff == ("HACK", "DO NOT MERGE")
        assert config.block.msg == ("HACK", "WIP")
        assert config.block.push == ("SECRET_KEY",)
        assert config.block.branch == ("main", "master", "release/*")

    def test_push_absent_vs_explicit_empty(self, tmp_path: Path) -> None:
        absent = load_snag_toml(_write(tmp_path / "a" / "snag.toml", '[block]\ndiff = ["x"]\n'))
        empty = load_snag_toml(_write(tmp_path / "b" / "snag.toml", '[block]\ndiff = ["x"]\npush = []\n'))
        assert absent.block.push is None
        assert empty.block.push == ()

    def test_unknown_sections_ignored(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "snag.toml",
            """
[require]
checks = ["lint"]

[block]
diff = ["TODO"]

[identity]
email = "test@example.com"
""",
        )
        assert load_snag_toml(path).block.diff == ("TODO",)

    def test_malformed_toml_names_file(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "snag.toml", "not valid [ toml = ")
        with pytest.raises(ConfigError, match="snag.toml"):
            load_snag_toml(path)

    def test_wrong_value_type(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "snag.toml", '[block]\ndiff = "HACK"\n')
        with pytest.raises(ConfigError, match="block.diff"):
            load_snag_toml(path)

    def test_non_utf8_file_names_path(self, tmp_path: Path) -> None:
        path = tmp_path / "snag.toml"
        path.write_bytes(b'[block]\ndiff = ["caf\xe9"]\n')
        with pytest.raises(ConfigError, match=re.escape(str(path))):
            load_snag_toml(path)


class TestLoadBlocklist:
    def test_skips_comments_and_blanks(self, tmp_path: Path) -> None:
        path = _write(tmp_path / ".blocklist", "# comment\n\nFIXME\n  Hack  \n")
        assert load_blocklist(path) == ["fixme", "hack"]

    def test_missing_file(self, tmp_path: Path) -> None:
        assert load_blocklist(tmp_path / ".blocklist") == []

    def test_non_utf8_file_names_path(self, tmp_path: Path) -> None:
        path = tmp_path / ".blocklist"
        path.write_bytes(b"caf\xe9\n")
        with pytest.raises(ConfigError, match=re.escape(str(path))):
            load_blocklist(path)


class TestWalkConfig:
    def test_single_snag_toml(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["TODO"]\nmsg = ["WIP"]\n')
        acc, found = walk_config(tmp_path)
        assert found
        assert acc.diff == ["TODO"]
        assert acc.msg == ["WIP"]

    def test_no_config_anywhere(self, tmp_path: Path) -> None:
        acc, found = walk_config(tmp_path)
        assert not found
        assert not acc.has_any_patterns()

    def test_levels_merge_additively(self, tmp_path: Path) -> None:
        child = tmp_path / "child"
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["PARENT"]\n')
        _write(child / "snag.toml", '[block]\ndiff = ["CHILD"]\n')
        acc, _ = walk_config(child)
        assert acc.diff == ["CHILD", "PARENT"]

    def test_local_file_adds_to_primary(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["TEAM"]\n')
        _write(tmp_path / "snag-local.toml", '[block]\ndiff = ["PERSONAL-SECRET"]\n')
        acc, _ = walk_config(tmp_path)
        assert acc.diff == ["TEAM", "PERSONAL-SECRET"]

    def test_local_file_alone_selects_structured_mode(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag-local.toml", '[block]\ndiff = ["LOCAL-ONLY"]\n')
        _write(tmp_path / ".blocklist", "legacy\n")
        acc, found = walk_config(tmp_path)
        assert found
        assert acc.diff == ["LOCAL-ONLY"]

    def test_structured_mode_ignores_parent_blocklist(self, tmp_path: Path) -> None:
        child = tmp_path / "child"
        _write(tmp_path / ".blocklist", "parent-legacy\n")
        _write(child / "snag.toml", '[block]\ndiff = ["hack"]\n')
        acc, _ = walk_config(child)
        assert "parent-legacy" not in acc.diff
        assert acc.diff == ["hack"]

    def test_legacy_mode_ignores_parent_snag_toml(self, tmp_path: Path) -> None:
        child = tmp_path / "child"
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["parent-toml"]\n')
        _write(child / ".blocklist", "legacy\n")
        acc, _ = walk_config(child)
        assert acc.diff == ["legacy"]
        assert acc.push == ["legacy"]

    def test_snag_toml_preferred_at_same_level(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["toml"]\n')
        _write(tmp_path / ".blocklist", "legacy\n")
        acc, _ = walk_config(tmp_path)
        assert acc.diff == ["toml"]

    def test_push_accumulates_once_set(self, tmp_path: Path) -> None:
        child = tmp_path / "a" / "b"
        _write(tmp_path / "snag.toml", '[block]\npush = ["root"]\n')
        _write(tmp_path / "a" / "snag.toml", '[block]\ndiff = ["mid"]\n')
        _write(child / "snag.toml", '[block]\npush = ["leaf"]\n')
        acc, _ = walk_config(child)
        assert acc.push == ["leaf", "root"]

    def test_push_explicit_empty(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["HACK"]\npush = []\n')
        acc, _ = walk_config(tmp_path)
        assert acc.push == []

    def test_malformed_file_aborts_walk(self, tmp_path: Path) -> None:
        child = tmp_path / "child"
        _write(tmp_path / "snag.toml", "[block\n")
        _write(child / "snag.toml", '[block]\ndiff = ["x"]\n')
        with pytest.raises(ConfigError, match=re.escape(str((tmp_path / "snag.toml").resolve()))):
            walk_config(child)


class TestResolvePolicy:
    def test_lowercases_content_patterns_but_not_branches(self, tmp_path: Path) -> None:
        _write(
            tmp_path / "snag.toml",
            '[block]\ndiff = ["HACK"]\nmsg = ["WIP"]\nbranch = ["Release/*"]\n',
        )
        policy = resolve_policy(tmp_path, environ={})
        assert policy == ResolvedPolicy(diff=("hack",), msg=("wip",), push=None, branch=("Release/*",))

    def test_dedup_after_lowercasing(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["Hack", "HACK", "todo", "hack"]\n')
        assert resolve_policy(tmp_path, environ={}).diff == ("hack", "todo")

    def test_push_falls_back_to_union(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["a"]\nmsg = ["b", "a"]\n')
        policy = resolve_policy(tmp_path, environ={})
        assert policy.push is None
        assert policy.effective_push == ("a", "b")

    def test_explicit_empty_push_blocks_nothing(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["a"]\nmsg = ["b"]\npush = []\n')
        policy = resolve_policy(tmp_path, environ={})
        assert policy.push == ()
        assert policy.effective_push == ()

    def test_default_branches_when_none_configured(self, tmp_path: Path) -> None:
        assert resolve_policy(tmp_path, environ={}).branch == ("main", "master")

    def test_configured_branches_replace_defaults(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\nbranch = ["trunk"]\n')
        assert resolve_policy(tmp_path, environ={}).branch == ("trunk",)

    def test_env_protected_branches_are_additive(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\nbranch = ["main"]\n')
        policy = resolve_policy(tmp_path, environ={"SNAG_PROTECTED_BRANCHES": "develop, staging,"})
        assert policy.branch == ("main", "develop", "staging")

    def test_env_protected_branches_suppress_defaults(self, tmp_path: Path) -> None:
        policy = resolve_policy(tmp_path, environ={"SNAG_PROTECTED_BRANCHES": "develop"})
        assert policy.branch == ("develop",)

    def test_override_file_skips_walk(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["from-walk"]\n')
        override = _write(tmp_path / "custom.txt", "Override\n")
        policy = resolve_policy(tmp_path, override, environ={})
        assert policy.diff == ("override",)
        assert policy.msg == ("override",)
        assert policy.push == ("override",)

    def test_missing_override_file_sets_empty_push(self, tmp_path: Path) -> None:
        policy = resolve_policy(tmp_path, tmp_path / "nope", environ={})
        assert policy.diff == ()
        assert policy.push == ()

    def test_env_blocklist_extends_diff_and_msg(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["a"]\n')
        policy = resolve_policy(tmp_path, environ={"SNAG_BLOCKLIST": "Extra:other"})
        assert policy.diff == ("a", "extra", "other")
        assert policy.msg == ("extra", "other")
        assert policy.push is None

    def test_env_blocklist_extends_explicit_push(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\npush = ["p"]\n')
        policy = resolve_policy(tmp_path, environ={"SNAG_BLOCKLIST": "extra"})
        assert policy.push == ("p", "extra")

    def test_version_mismatch_is_fatal(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("snag.config.__version__", "0.9.0")
        _write(tmp_path / "snag.toml", 'min_version = "0.10.0"\n[block]\ndiff = ["x"]\n')
        with pytest.raises(VersionMismatchError, match="requires snag >= 0.10.0"):
            resolve_policy(tmp_path, environ={})


class TestIgnore:
    def test_remove_single_pattern(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["hack", "fixme"]\n')
        policy = resolve_policy(tmp_path, environ={"SNAG_IGNORE": "diff:hack"})
        assert policy.diff == ("fixme",)

    def test_removal_is_case_insensitive(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["HACK", "fixme"]\n')
        policy = resolve_policy(tmp_path, environ={"SNAG_IGNORE": "diff:Hack"})
        assert policy.diff == ("fixme",)

    def test_clear_whole_phase(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["hack", "fixme"]\nmsg = ["wip"]\n')
        policy = resolve_policy(tmp_path, environ={"SNAG_IGNORE": "diff"})
        assert policy.diff == ()
        assert policy.msg == ("wip",)

    def test_wins_over_env_sources(self, tmp_path: Path) -> None:
        policy = resolve_policy(
            tmp_path,
            environ={"SNAG_BLOCKLIST": "leak", "SNAG_IGNORE": "msg:leak"},
        )
        assert policy.diff == ("leak",)
        assert policy.msg == ()

    def test_clear_push_makes_it_explicitly_empty(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["a"]\n')
        policy = resolve_policy(tmp_path, environ={"SNAG_IGNORE": "push"})
        assert policy.push == ()
        assert policy.effective_push == ()

    def test_remove_from_inherited_push(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["a"]\nmsg = ["b"]\n')
        policy = resolve_policy(tmp_path, environ={"SNAG_IGNORE": "push:a"})
        assert policy.diff == ("a",)
        assert policy.push == ("b",)

    def test_clear_branch_drops_defaults(self, tmp_path: Path) -> None:
        assert resolve_policy(tmp_path, environ={"SNAG_IGNORE": "branch"}).branch == ()

    def test_unknown_phase_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        source = parse_ignore("bogus:x, diff:hack")
        assert source is not None
        assert source.diff == ("hack",)
        assert "bogus" in caplog.text

    def test_empty_value(self) -> None:
        assert parse_ignore("") is None


class TestCollectSources:
    def test_toml_source_with_provenance(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "snag.toml", '[block]\ndiff = ["HACK"]\nmsg = ["WIP"]\nbranch = ["main"]\n')
        sources = collect_sources(tmp_path, environ={})
        assert [s.kind for s in sources] == ["toml"]
        assert sources[0].label == str(path.resolve())
        assert sources[0].diff == ("HACK",)

    def test_env_default_and_ignore_sources(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", '[block]\ndiff = ["HACK", "FIXME"]\n')
        sources = collect_sources(
            tmp_path,
            environ={"SNAG_BLOCKLIST": "leak", "SNAG_IGNORE": "diff:hack"},
        )
        assert [(s.kind, s.label) for s in sources] == [
            ("toml", str((tmp_path / "snag.toml").resolve())),
            ("env", "SNAG_BLOCKLIST"),
            ("default", "defaults"),
            ("ignore", "SNAG_IGNORE"),
        ]
        assert sources[-1].diff == ("hack",)

    def test_empty_files_are_skipped(self, tmp_path: Path) -> None:
        _write(tmp_path / "snag.toml", "")
        assert [s.kind for s in collect_sources(tmp_path, environ={})] == ["default"]


class TestVersions:
    @pytest.mark.parametrize(
        ("a", "b", "want"),
        [
            ("0.10.0", "0.10.0", 0),
            ("0.10.1", "0.10.0", 1),
            ("0.10.0", "0.10.1", -1),
            ("1.0.0", "0.99.99", 1),
            ("0.9.0", "0.10.0", -1),
            ("v1.2", "1.2.0", 0),
            ("1.2.0-rc1", "1.2.0", 0),
        ],
    )
    def test_compare_semver(self, a: str, b: str, want: int) -> None:
        assert compare_semver(a, b) == want

    @pytest.mark.parametrize("running", ["dev", "dev+abc1234", "0.12.0.dev3"])
    def test_dev_builds_always_pass(self, running: str) -> None:
        check_min_version("99.0.0", "snag.toml", running=running)

    def test_sufficient_version_passes(self) -> None:
        check_min_version("0.10.0", "snag.toml", running="0.10.0")

    def test_insufficient_version_fails(self) -> None:
        with pytest.raises(VersionMismatchError, match="requires snag >= 0.10.0"):
            check_min_version("0.10.0", "snag.toml", running="0.9.0")

    def test_garbage_min_version(self) -> None:
        with pytest.raises(ConfigError, match="Invalid min_version"):
            check_min_version("latest", "snag.toml", running="0.12.0")


def test_split_env_blocklist() -> None:
    assert split_env_blocklist("One\n# skip\ntwo:Three::") == ["one", "two", "three"]
