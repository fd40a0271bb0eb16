"""Unpushed commit range check (pre-push)."""

from __future__ import annotations

from pathlib import Path

from snag import git
from snag.checks.types import PushCheckResult, Violation
from snag.config import ResolvedPolicy
from snag.patterns import added_content, match_pattern


def unpushed_range(cwd: Path | None = None) -> str:
    """``@{upstream}..HEAD`` when tracking a remote branch, else just ``HEAD``."""
    if git.has_upstream(cwd):
        return "@{upstream}..HEAD"
    return "HEAD"


def check_push(policy: ResolvedPolicy, *, cwd: Path | None = None) -> PushCheckResult:
    """Stop at the first unpushed commit whose message or added lines match.

    Commits are visited in ``git rev-list`` order; within a commit the message
    is checked before the diff.
    """
    patterns = policy.effective_push
    rev_range = unpushed_range(cwd)
    if not patterns:
        return PushCheckResult(rev_range=rev_range, commits_checked=0, patterns_checked=0)

    shas = git.rev_list(rev_range, cwd)
    for checked, sha in enumerate(shas, start=1):
        short = sha[:7]

        pattern, found = match_pattern(git.commit_message(sha, cwd), patterns)
        if found:
            return PushCheckResult(
                rev_range=rev_range,
                commits_checked=checked,
                patterns_checked=len(patterns),
                violation=Violation(phase="push", pattern=pattern, commit=short, where="msg"),
            )

        pattern, found = match_pattern(added_content(git.commit_diff(sha, cwd)), patterns)
        if found:
            return PushCheckResult(
                rev_range=rev_range,
                commits_checked=checked,
                patterns_checked=len(patterns),
                violation=Violation(phase="push", pattern=pattern, commit=short, where="diff"),
            )

    return PushCheckResult(rev_range=rev_range, commits_checked=len(shas), patterns_checked=len(patterns))
