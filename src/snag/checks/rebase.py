"""Protected branch guard (pre-rebase)."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from snag import git
from snag.checks.types import RebaseCheckResult, Violation
from snag.config import ResolvedPolicy
from snag.patterns import match_branch

ENV_ALLOW_REBASE = "SNAG_ALLOW_REBASE"


def rebase_allowed(environ: Mapping[str, str] | None = None) -> bool:
    """True when the user explicitly overrides the guard for this rebase."""
    env = os.environ if environ is None else environ
    return env.get(ENV_ALLOW_REBASE) == "1"


def check_rebase(
    policy: ResolvedPolicy,
    branch: str | None = None,
    *,
    cwd: Path | None = None,
) -> RebaseCheckResult:
    """Block rebasing a branch matching a protected pattern.

    ``branch`` is the branch being rebased (the second pre-rebase hook
    argument); the current branch is used when it is omitted. A detached HEAD
    has no branch to protect.
    """
    target = branch or git.current_branch(cwd)
    if target is None:
        return RebaseCheckResult(branch=None)
    matched = match_branch(target, policy.branch)
    if matched is None:
        return RebaseCheckResult(branch=target)
    return RebaseCheckResult(branch=target, violation=Violation(phase="branch", pattern=matched))
