"""Result types for snag policy checks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

Phase = Literal["diff", "msg", "push", "branch"]

_CONTEXT: dict[str, str] = {
    "diff": "staged diff",
    "msg": "commit message",
    "branch": "branch name",
}


@dataclass(frozen=True)
class Violation:
    """A single pattern match.

    ``commit`` is the short SHA for push and audit findings; ``where`` says
    which part of that commit matched (``"msg"`` or ``"diff"``).
    """

    phase: Phase
    pattern: str
    commit: str | None = None
    where: Literal["msg", "diff"] | None = None

    def describe(self) -> str:
        if self.commit is not None:
            part = "message" if self.where == "msg" else "diff"
            return f"match {self.pattern!r} in {part} of {self.commit}"
        return f"match {self.pattern!r} in {_CONTEXT.get(self.phase, self.phase)}"


@dataclass(frozen=True)
class MessageCheckResult:
    """Outcome of the two-pass commit message check."""

    removed_trailers: tuple[str, ...] = ()
    violation: Violation | None = None


@dataclass(frozen=True)
class PushCheckResult:
    rev_range: str
    commits_checked: int
    patterns_checked: int
    violation: Violation | None = None


@dataclass(frozen=True)
class CommitReport:
    """Audit findings for one commit."""

    sha: str
    subject: str
    violations: tuple[Violation, ...] = ()

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass(frozen=True)
class AuditReport:
    commits_scanned: int
    reports: tuple[CommitReport, ...] = field(default_factory=tuple)

    @property
    def total_violations(self) -> int:
        return sum(len(report.violations) for report in self.reports)

    @property
    def passed(self) -> bool:
        return self.total_violations == 0

    def to_dict(self) -> dict[str, object]:
        return {
            "commits_scanned": self.commits_scanned,
            "total_violations": self.total_violations,
            "commits": [
                {
                    "sha": report.sha,
                    "subject": report.subject,
                    "violations": [
                        {"phase": v.phase, "pattern": v.pattern} for v in report.violations
                    ],
                }
                for report in self.reports
            ],
        }


@dataclass(frozen=True)
class RebaseCheckResult:
    branch: str | None
    violation: Violation | None = None


@dataclass(frozen=True)
class CheckoutCheckResult:
    """Whether a repository with patterns has snag wired into its hooks."""

    configured: bool
    hooks_installed: bool = False

    @property
    def missing_hooks(self) -> bool:
        return self.configured and not self.hooks_installed
