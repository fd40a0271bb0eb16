"""Hook installation guard (post-checkout)."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml

from snag import git
from snag.checks.types import CheckoutCheckResult
from snag.config import ConfigSource

logger = logging.getLogger(__name__)

SNAG_REMOTE_URL = "https://github.com/dpritchett/snag.git"

LEFTHOOK_CONFIGS: tuple[str, ...] = (
    "lefthook.yml",
    "lefthook.yaml",
    ".lefthook.yml",
    ".lefthook.yaml",
    "lefthook-local.yml",
    "lefthook-local.yaml",
    ".lefthook-local.yml",
    ".lefthook-local.yaml",
)

HOOK_NAMES: tuple[str, ...] = ("pre-commit", "commit-msg", "pre-push")


def has_configured_patterns(sources: Sequence[ConfigSource]) -> bool:
    """True when a config file or SNAG_* variable contributed patterns.

    The built-in protected branches alone do not count.
    """
    return any(source.kind not in ("default", "ignore") for source in sources)


def _lefthook_references_snag(text: str) -> bool:
    if "snag check" in text:
        return True
    try:
        data: Any = yaml.safe_load(text)
    except yaml.YAMLError:
        return False
    if not isinstance(data, dict):
        return False
    remotes = data.get("remotes") or []
    if not isinstance(remotes, list):
        return False
    return any(isinstance(entry, dict) and entry.get("git_url") == SNAG_REMOTE_URL for entry in remotes)


def _read_if_present(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except (FileNotFoundError, IsADirectoryError):
        return None


def hooks_installed(cwd: Path | None = None) -> bool:
    """Detect snag wired up via a lefthook config or plain git hook scripts."""
    root = git.repo_root(cwd)
    for name in LEFTHOOK_CONFIGS:
        text = _read_if_present(root / name)
        if text is not None and _lefthook_references_snag(text):
            logger.debug("snag found in %s", root / name)
            return True

    hooks = git.hooks_dir(cwd)
    for name in HOOK_NAMES:
        text = _read_if_present(hooks / name)
        if text is not None and "snag" in text:
            logger.debug("snag found in %s", hooks / name)
            return True
    return False


def check_checkout(sources: Sequence[ConfigSource], *, cwd: Path | None = None) -> CheckoutCheckResult:
    """Report whether a repository with snag patterns lacks snag hooks."""
    if not has_configured_patterns(sources):
        return CheckoutCheckResult(configured=False)
    return CheckoutCheckResult(configured=True, hooks_installed=hooks_installed(cwd))
