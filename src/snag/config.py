"""Policy configuration loader and resolver.

Discovers ``snag.toml`` / ``snag-local.toml`` (structured) or ``.blocklist``
(legacy) files by walking from a start directory up to the filesystem root,
overlays environment variables, and produces one immutable
:class:`ResolvedPolicy` per invocation.
"""

from __future__ import annotations

import logging
import os
import re
import tomllib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from snag import __version__
from snag.patterns import deduplicate, lowercase_all

logger = logging.getLogger(__name__)

STRUCTURED_FILENAME = "snag.toml"
LOCAL_FILENAME = "snag-local.toml"
LEGACY_FILENAME = ".blocklist"

ENV_BLOCKLIST = "SNAG_BLOCKLIST"
ENV_PROTECTED_BRANCHES = "SNAG_PROTECTED_BRANCHES"
ENV_IGNORE = "SNAG_IGNORE"

DEFAULT_PROTECTED_BRANCHES: tuple[str, ...] = ("main", "master")

PHASES: tuple[str, ...] = ("diff", "msg", "push", "branch")

SourceKind = Literal["toml", "blocklist", "env", "default", "ignore"]


class ConfigError(RuntimeError):
    """Raised when a config file is malformed or unreadable."""


class VersionMismatchError(ConfigError):
    """Raised when a config file requires a newer snag."""


@dataclass(frozen=True)
class BlockSection:
    """The ``[block]`` table of a structured config file.

    ``push`` is None when the key is absent, which is different from an
    explicit empty list.
    """

    diff: tuple[str, ...] = ()
    msg: tuple[str, ...] = ()
    push: tuple[str, ...] | None = None
    branch: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BlockSection:
        push = data.get("push")
        return cls(
            diff=_string_list(data, "diff"),
            msg=_string_list(data, "msg"),
            push=None if push is None else _string_list(data, "push"),
            branch=_string_list(data, "branch"),
        )

    def is_empty(self) -> bool:
        return not self.diff and not self.msg and self.push is None and not self.branch


@dataclass(frozen=True)
class SnagConfig:
    """Parsed structured config file. Unknown sections are ignored."""

    min_version: str | None = None
    block: BlockSection = field(default_factory=BlockSection)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SnagConfig:
        min_version = data.get("min_version")
        if min_version is not None and not isinstance(min_version, str):
            raise TypeError("min_version must be a string")
        block = data.get("block", {})
        if not isinstance(block, Mapping):
            raise TypeError("[block] must be a table")
        return cls(min_version=min_version, block=BlockSection.from_dict(block))


def _string_list(data: Mapping[str, Any], key: str) -> tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise TypeError(f"block.{key} must be an array of strings")
    return tuple(value)


@dataclass(frozen=True)
class ConfigSource:
    """One contributor to the resolved policy, kept for provenance display."""

    label: str
    kind: SourceKind
    diff: tuple[str, ...] = ()
    msg: tuple[str, ...] = ()
    push: tuple[str, ...] | None = None
    branch: tuple[str, ...] = ()
    cleared: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedPolicy:
    """Final normalized pattern sets for one invocation."""

    diff: tuple[str, ...] = ()
    msg: tuple[str, ...] = ()
    push: tuple[str, ...] | None = None
    branch: tuple[str, ...] = ()

    @property
    def effective_push(self) -> tuple[str, ...]:
        """Explicit push patterns, or the union of diff and msg when unset."""
        if self.push is not None:
            return self.push
        return tuple(deduplicate([*self.diff, *self.msg]))


@dataclass
class PolicyAccumulator:
    """Mutable pattern lists built up during the directory walk."""

    diff: list[str] = field(default_factory=list)
    msg: list[str] = field(default_factory=list)
    push: list[str] | None = None
    branch: list[str] = field(default_factory=list)

    def merge(self, source: ConfigSource) -> None:
        """Append a source's contributions; never removes anything."""
        self.diff.extend(source.diff)
        self.msg.extend(source.msg)
        if source.push is not None:
            self.push = [*(self.push or []), *source.push]
        self.branch.extend(source.branch)

    def has_any_patterns(self) -> bool:
        return bool(self.diff or self.msg or self.push or self.branch)


class WalkMode(Enum):
    """Which config family the upward walk has committed to."""

    NONE = "none"
    STRUCTURED = "structured"
    LEGACY = "legacy"


def load_snag_toml(path: Path) -> SnagConfig:
    """Load one structured config file.

    A missing file yields an empty config. Parse and structure errors are
    raised as :class:`ConfigError` naming the file.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return SnagConfig()
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed TOML config at {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"Config file {path} is not valid UTF-8: {e}") from e
    except OSError as e:
        raise ConfigError(f"Unable to read {path}: {e}") from e

    try:
        return SnagConfig.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid config structure in {path}: {e}") from e


def load_blocklist(path: Path) -> list[str]:
    """Load a flat blocklist: one pattern per line, ``#`` comments skipped.

    Patterns are lowercased. A missing file yields an empty list.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except UnicodeDecodeError as e:
        raise ConfigError(f"Blocklist {path} is not valid UTF-8: {e}") from e
    except OSError as e:
        raise ConfigError(f"Unable to read {path}: {e}") from e

    patterns: list[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(line.lower())
    return patterns


_VERSION_RE = re.compile(r"^v?(\d+(?:\.\d+)*)")


def is_dev_version(version: str) -> bool:
    return version == "dev" or version.startswith("dev+") or ".dev" in version


def compare_semver(a: str, b: str) -> int:
    """Compare dotted numeric versions; returns -1, 0 or 1.

    Pre-release and build suffixes are ignored. Missing components count as 0.
    """
    left = _version_tuple(a)
    right = _version_tuple(b)
    width = max(len(left), len(right))
    left += (0,) * (width - len(left))
    right += (0,) * (width - len(right))
    return (left > right) - (left < right)


def _version_tuple(version: str) -> tuple[int, ...]:
    match = _VERSION_RE.match(version.strip())
    if not match:
        raise ValueError(f"unparseable version: {version!r}")
    return tuple(int(part) for part in match.group(1).split("."))


def check_min_version(required: str, path: Path | str, running: str | None = None) -> None:
    """Refuse configs that need a newer snag than the one running.

    Development builds always pass.
    """
    running = running or __version__
    if is_dev_version(running):
        return
    try:
        too_old = compare_semver(running, required) < 0
    except ValueError as e:
        raise ConfigError(f"Invalid min_version in {path}: {e}") from e
    if too_old:
        raise VersionMismatchError(
            f"{path} requires snag >= {required} (running {running}); upgrade snag"
        )


def _structured_source(path: Path) -> ConfigSource | None:
    config = load_snag_toml(path)
    if config.min_version:
        check_min_version(config.min_version, path)
    if config.block.is_empty():
        return None
    return ConfigSource(
        label=str(path.resolve()),
        kind="toml",
        diff=config.block.diff,
        msg=config.block.msg,
        push=config.block.push,
        branch=config.block.branch,
    )


def _legacy_source(path: Path) -> ConfigSource | None:
    patterns = tuple(load_blocklist(path))
    if not patterns:
        return None
    return ConfigSource(
        label=str(path.resolve()),
        kind="blocklist",
        diff=patterns,
        msg=patterns,
        push=patterns,
    )


def _ancestors(start_dir: Path) -> Iterable[Path]:
    current = start_dir.resolve()
    yield current
    yield from current.parents


def walk_sources(start_dir: Path) -> list[ConfigSource]:
    """Collect file sources from ``start_dir`` up to the root, in walk order."""
    sources, _ = _walk(start_dir)
    return sources


def _walk(start_dir: Path) -> tuple[list[ConfigSource], WalkMode]:
    """Single upward pass from ``start_dir`` to the filesystem root.

    The first directory holding any recognized file fixes the mode for the
    rest of the walk: structured when ``snag.toml`` or ``snag-local.toml`` is
    present there, legacy otherwise. Files of the other family found further
    up are never read.
    """
    sources: list[ConfigSource] = []
    mode = WalkMode.NONE

    for directory in _ancestors(start_dir):
        primary = directory / STRUCTURED_FILENAME
        local = directory / LOCAL_FILENAME
        legacy = directory / LEGACY_FILENAME

        if mode is WalkMode.NONE:
            if primary.is_file() or local.is_file():
                mode = WalkMode.STRUCTURED
                logger.debug("structured config found at %s", directory)
            elif legacy.is_file():
                mode = WalkMode.LEGACY
                logger.debug("legacy blocklist found at %s", directory)
            else:
                continue

        if mode is WalkMode.STRUCTURED:
            for path in (primary, local):
                if path.is_file():
                    source = _structured_source(path)
                    if source is not None:
                        sources.append(source)
        elif legacy.is_file():
            source = _legacy_source(legacy)
            if source is not None:
                sources.append(source)

    return sources, mode


def walk_config(start_dir: Path) -> tuple[PolicyAccumulator, bool]:
    """Run the upward walk and return the raw accumulation.

    The flag reports whether any config file was found at all.
    """
    acc = PolicyAccumulator()
    sources, mode = _walk(start_dir)
    for source in sources:
        acc.merge(source)
    return acc, mode is not WalkMode.NONE


def split_env_blocklist(value: str) -> list[str]:
    """Split ``SNAG_BLOCKLIST`` on newlines or colons, lowercasing entries."""
    patterns: list[str] = []
    for raw in value.replace(":", "\n").split("\n"):
        entry = raw.strip()
        if not entry or entry.startswith("#"):
            continue
        patterns.append(entry.lower())
    return patterns


def split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_ignore(value: str) -> ConfigSource | None:
    """Parse ``SNAG_IGNORE`` entries (``phase`` or ``phase:pattern``).

    Unknown phases are logged and skipped.
    """
    cleared: list[str] = []
    removed: dict[str, list[str]] = {phase: [] for phase in PHASES}
    for entry in split_csv(value):
        phase, sep, pattern = entry.partition(":")
        phase = phase.strip().lower()
        pattern = pattern.strip()
        if phase not in removed:
            logger.warning("ignoring unknown %s phase %r", ENV_IGNORE, phase)
            continue
        if not sep:
            cleared.append(phase)
        elif pattern:
            removed[phase].append(pattern.lower())
    if not cleared and not any(removed.values()):
        return None
    return ConfigSource(
        label=ENV_IGNORE,
        kind="ignore",
        diff=tuple(removed["diff"]),
        msg=tuple(removed["msg"]),
        push=tuple(removed["push"]) if removed["push"] else None,
        branch=tuple(removed["branch"]),
        cleared=tuple(deduplicate(cleared)),
    )


def _without(patterns: list[str], removals: Iterable[str]) -> list[str]:
    drop = {item.lower() for item in removals}
    return [pattern for pattern in patterns if pattern.lower() not in drop]


def apply_ignore(acc: PolicyAccumulator, ignore: ConfigSource) -> None:
    """Remove suppressed patterns; suppression wins over every other source.

    Clearing ``push`` leaves it explicitly empty. Removing single push patterns
    while push is unset first materializes the diff+msg fallback.
    """
    for phase in ignore.cleared:
        if phase == "push":
            acc.push = []
        else:
            setattr(acc, phase, [])

    acc.diff = _without(acc.diff, ignore.diff)
    acc.msg = _without(acc.msg, ignore.msg)
    acc.branch = _without(acc.branch, ignore.branch)
    if ignore.push:
        base = acc.push if acc.push is not None else [*acc.diff, *acc.msg]
        acc.push = _without(base, ignore.push)


def _resolve(
    start_dir: Path,
    override_path: Path | None,
    environ: Mapping[str, str],
) -> tuple[ResolvedPolicy, list[ConfigSource]]:
    acc = PolicyAccumulator()
    sources: list[ConfigSource] = []

    if override_path is not None:
        patterns = tuple(load_blocklist(override_path))
        source = ConfigSource(
            label=str(Path(override_path).resolve()),
            kind="blocklist",
            diff=patterns,
            msg=patterns,
            push=patterns,
        )
        acc.merge(source)
        if patterns:
            sources.append(source)
    else:
        for source in walk_sources(start_dir):
            acc.merge(source)
            sources.append(source)

    env_patterns = tuple(split_env_blocklist(environ.get(ENV_BLOCKLIST, "")))
    if env_patterns:
        # env patterns only extend push when push is already explicit
        source = ConfigSource(
            label=ENV_BLOCKLIST,
            kind="env",
            diff=env_patterns,
            msg=env_patterns,
            push=env_patterns if acc.push is not None else None,
        )
        acc.merge(source)
        sources.append(source)

    branches = tuple(split_csv(environ.get(ENV_PROTECTED_BRANCHES, "")))
    if branches:
        source = ConfigSource(label=ENV_PROTECTED_BRANCHES, kind="env", branch=branches)
        acc.merge(source)
        sources.append(source)

    if not acc.branch:
        source = ConfigSource(label="defaults", kind="default", branch=DEFAULT_PROTECTED_BRANCHES)
        acc.merge(source)
        sources.append(source)

    ignore = parse_ignore(environ.get(ENV_IGNORE, ""))
    if ignore is not None:
        apply_ignore(acc, ignore)
        sources.append(ignore)

    policy = ResolvedPolicy(
        diff=tuple(deduplicate(lowercase_all(acc.diff))),
        msg=tuple(deduplicate(lowercase_all(acc.msg))),
        push=None if acc.push is None else tuple(deduplicate(lowercase_all(acc.push))),
        branch=tuple(deduplicate(acc.branch)),
    )
    logger.debug("resolved policy: %s", policy)
    return policy, sources


def resolve_policy(
    start_dir: Path | None = None,
    override_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ResolvedPolicy:
    """Build the policy that applies at ``start_dir``.

    Precedence:
      1. ``override_path`` (``--blocklist``) replaces the walk entirely
      2. upward walk: snag.toml + snag-local.toml, or .blocklist
      3. SNAG_BLOCKLIST extra patterns
      4. SNAG_PROTECTED_BRANCHES extra branches
      5. default protected branches when none were configured
      6. SNAG_IGNORE suppressions
    """
    policy, _ = _resolve(
        start_dir or Path.cwd(),
        override_path,
        os.environ if environ is None else environ,
    )
    return policy


def collect_sources(
    start_dir: Path | None = None,
    override_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[ConfigSource]:
    """Return the sources behind :func:`resolve_policy`, in precedence order."""
    _, sources = _resolve(
        start_dir or Path.cwd(),
        override_path,
        os.environ if environ is None else environ,
    )
    return sources
