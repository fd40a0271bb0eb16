"""History audit: scan a commit range and aggregate every violation."""

from __future__ import annotations

import logging
from pathlib import Path

from snag import git
from snag.checks.types import AuditReport, CommitReport, Violation
from snag.config import ResolvedPolicy
from snag.git import GitError
from snag.patterns import added_content, match_pattern

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_LIMIT = 50


def audit_rev_list(rev_range: str | None = None, limit: int = DEFAULT_AUDIT_LIMIT, cwd: Path | None = None) -> list[str]:
    """Select the commits to audit.

    An explicit ``rev_range`` wins. Otherwise the last ``limit`` commits
    (``HEAD~N..HEAD``) are used, or the full history when ``limit`` is 0.
    When the repository is shorter than ``limit``, the full history is listed
    and capped at ``limit``. An empty repository has nothing to audit.
    """
    if not git.has_head(cwd):
        return []
    if rev_range:
        return git.rev_list(rev_range, cwd)
    if limit == 0:
        return git.rev_list("HEAD", cwd)

    try:
        return git.rev_list(f"HEAD~{limit}..HEAD", cwd)
    except GitError:
        logger.debug("HEAD~%d does not exist, listing full history", limit)
    return git.rev_list("HEAD", cwd)[:limit]


def scan_commit(sha: str, policy: ResolvedPolicy, cwd: Path | None = None) -> CommitReport:
    """Check one commit's message and added lines against msg/diff patterns."""
    violations: list[Violation] = []

    if policy.msg:
        pattern, found = match_pattern(git.commit_message(sha, cwd), policy.msg)
        if found:
            violations.append(Violation(phase="msg", pattern=pattern, commit=sha[:7], where="msg"))

    if policy.diff:
        pattern, found = match_pattern(added_content(git.commit_diff(sha, cwd)), policy.diff)
        if found:
            violations.append(Violation(phase="diff", pattern=pattern, commit=sha[:7], where="diff"))

    return CommitReport(sha=sha, subject=git.commit_subject(sha, cwd), violations=tuple(violations))


def audit_history(
    policy: ResolvedPolicy,
    rev_range: str | None = None,
    limit: int = DEFAULT_AUDIT_LIMIT,
    *,
    cwd: Path | None = None,
) -> AuditReport:
    """Scan every selected commit and keep the ones with violations."""
    if limit < 0:
        raise ValueError("limit must be >= 0")
    if not policy.diff and not policy.msg:
        return AuditReport(commits_scanned=0)

    shas = audit_rev_list(rev_range, limit, cwd)
    reports = [scan_commit(sha, policy, cwd) for sha in shas]
    return AuditReport(
        commits_scanned=len(shas),
        reports=tuple(report for report in reports if report.violations),
    )
