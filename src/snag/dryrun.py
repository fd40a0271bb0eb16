"""Dry-run the diff, msg and push checks against a throwaway repository.

``snag test`` answers "would my hooks catch this?" without touching the real
repository: it builds a scratch repo, seeds it with the current patterns,
stages or commits a violation for each scenario and reports whether the
corresponding check rejected it.
"""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from snag import git
from snag.checks import check_diff, check_message, check_push
from snag.config import LEGACY_FILENAME, ResolvedPolicy, resolve_policy
from snag.patterns import deduplicate

logger = logging.getLogger(__name__)

DEMO_PATTERNS: tuple[str, ...] = ("todo", "fixme", "password")
SCENARIOS: tuple[str, ...] = ("diff", "msg", "push")


@dataclass(frozen=True)
class ScenarioResult:
    name: str
    detected: bool


def policy_patterns(policy: ResolvedPolicy) -> list[str]:
    """Every content pattern of ``policy`` in diff, msg, push order."""
    return deduplicate([*policy.diff, *policy.msg, *policy.effective_push])


def _init_repo(repo: Path) -> None:
    for args in (
        ["init"],
        ["config", "user.email", "test@snag.dev"],
        ["config", "user.name", "snag-test"],
        ["config", "commit.gpgsign", "false"],
        ["commit", "--allow-empty", "--no-verify", "-m", "initial commit"],
    ):
        git.run_git(args, cwd=repo)


def _stage(repo: Path, name: str, content: str) -> None:
    (repo / name).write_text(content, encoding="utf-8")
    git.run_git(["add", name], cwd=repo)


def _diff_scenario(repo: Path, policy: ResolvedPolicy, patterns: Sequence[str]) -> bool:
    _stage(repo, "bad.txt", f"this has a {patterns[0]} in it\n")
    return check_diff(policy, cwd=repo) is not None


def _msg_scenario(repo: Path, policy: ResolvedPolicy, patterns: Sequence[str]) -> bool:
    body = patterns[0]
    trailer = patterns[1] if len(patterns) > 1 else body
    message_file = repo / "COMMIT_EDITMSG"
    message_file.write_text(
        f"Add new feature\n\nThis has a {body} in the body\n\nSigned-off-by: {trailer}@example.com\n",
        encoding="utf-8",
    )
    return check_message(policy, message_file).violation is not None


def _push_scenario(repo: Path, policy: ResolvedPolicy, patterns: Sequence[str]) -> bool:
    _stage(repo, "clean.txt", "nothing wrong here\n")
    git.run_git(["commit", "--no-verify", "-m", "clean commit"], cwd=repo)
    _stage(repo, "bad.txt", f"this contains {patterns[-1]}\n")
    git.run_git(["commit", "--no-verify", "-m", "add bad file"], cwd=repo)
    return check_push(policy, cwd=repo).violation is not None


_RUNNERS: dict[str, Callable[[Path, ResolvedPolicy, Sequence[str]], bool]] = {
    "diff": _diff_scenario,
    "msg": _msg_scenario,
    "push": _push_scenario,
}


def run_dry_run(patterns: Sequence[str], which: str = "all") -> list[ScenarioResult]:
    """Run the selected scenarios (``all`` or one of :data:`SCENARIOS`).

    The patterns are written to a ``.blocklist`` in the scratch repo and
    resolved through the normal config walk, so environment overlays apply
    exactly as they would in a real hook.

    Raises:
        ValueError: If ``which`` names no scenario or ``patterns`` is empty
        GitError: If the scratch repository cannot be set up
    """
    if which != "all" and which not in SCENARIOS:
        raise ValueError(f"unknown test {which!r} (choose diff, msg, or push)")
    if not patterns:
        raise ValueError("no patterns to test with")

    results: list[ScenarioResult] = []
    with tempfile.TemporaryDirectory(prefix="snag-test-") as tmp:
        repo = Path(tmp)
        _init_repo(repo)
        (repo / LEGACY_FILENAME).write_text("\n".join(patterns) + "\n", encoding="utf-8")
        policy = resolve_policy(repo)
        logger.debug("dry-run policy: %s", policy)

        for name in SCENARIOS:
            if which not in ("all", name):
                continue
            results.append(ScenarioResult(name=name, detected=_RUNNERS[name](repo, policy, patterns)))
    return results
