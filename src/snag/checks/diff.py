"""Staged diff check (pre-commit)."""

from __future__ import annotations

from pathlib import Path

from snag import git
from snag.checks.types import Violation
from snag.config import ResolvedPolicy
from snag.patterns import added_content, match_pattern


def check_diff(policy: ResolvedPolicy, *, cwd: Path | None = None) -> Violation | None:
    """Match diff patterns against lines added in the staged diff.

    Diff headers and removed or context lines never count, so a file named
    after a pattern, or a pattern being deleted, does not block the commit.
    """
    if not policy.diff:
        return None
    pattern, found = match_pattern(added_content(git.staged_diff(cwd)), policy.diff)
    if not found:
        return None
    return Violation(phase="diff", pattern=pattern)
