"""Git queries consumed by the policy checks.

Every helper here is a read-only, blocking ``git`` invocation. Failures are
raised as :class:`GitError` and never retried.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecResult:
    """Result envelope for subprocess execution."""

    argv: tuple[str, ...]
    cwd: Path
    returncode: int
    stdout: str
    stderr: str


class GitError(RuntimeError):
    """Raised when a git command returns non-zero in check mode."""

    def __init__(self, result: ExecResult):
        rendered = " ".join(result.argv)
        detail = (result.stderr or result.stdout).strip()
        super().__init__(f"command failed ({result.returncode}): {rendered}\n{detail}")
        self.result = result


def run_git(
    args: list[str],
    *,
    cwd: Path | None = None,
    check: bool = True,
) -> ExecResult:
    """Run a git command and return a structured result."""
    workdir = (cwd or Path.cwd()).resolve()
    argv = ["git", *args]
    logger.debug("running %s in %s", " ".join(argv), workdir)
    # commit content may be in any encoding; undecodable bytes become U+FFFD
    completed = subprocess.run(
        argv,
        cwd=workdir,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=False,
    )
    result = ExecResult(
        argv=tuple(argv),
        cwd=workdir,
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )
    if check and result.returncode != 0:
        raise GitError(result)
    return result


# Pin the header layout regardless of diff.noprefix, diff.mnemonicPrefix,
# color.ui or external diff drivers in the user's config.
_PATCH_OPTIONS: tuple[str, ...] = ("--no-color", "--no-ext-diff", "--src-prefix=a/", "--dst-prefix=b/")


def staged_diff(cwd: Path | None = None) -> str:
    return run_git(["diff", "--staged", *_PATCH_OPTIONS], cwd=cwd).stdout


def commit_message(sha: str, cwd: Path | None = None) -> str:
    return run_git(["log", "-1", "--format=%B", sha], cwd=cwd).stdout


def commit_subject(sha: str, cwd: Path | None = None) -> str:
    return run_git(["log", "-1", "--format=%s", sha], cwd=cwd).stdout.strip()


def commit_diff(sha: str, cwd: Path | None = None) -> str:
    """Patch introduced by ``sha`` (root commits included)."""
    return run_git(["diff-tree", "-p", "--root", *_PATCH_OPTIONS, sha], cwd=cwd).stdout


def rev_list(rev_range: str, cwd: Path | None = None) -> list[str]:
    """Return SHAs in ``rev_range`` in ``git rev-list`` order."""
    out = run_git(["rev-list", rev_range], cwd=cwd).stdout.strip()
    if not out:
        return []
    return out.splitlines()


def has_head(cwd: Path | None = None) -> bool:
    """Return False for a repository without any commit yet."""
    return run_git(["rev-parse", "--verify", "HEAD"], cwd=cwd, check=False).returncode == 0


def has_upstream(cwd: Path | None = None) -> bool:
    return run_git(["rev-parse", "--verify", "@{upstream}"], cwd=cwd, check=False).returncode == 0


def current_branch(cwd: Path | None = None) -> str | None:
    """Return the short branch name, or None when HEAD is detached."""
    result = run_git(["symbolic-ref", "--short", "HEAD"], cwd=cwd, check=False)
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def repo_root(cwd: Path | None = None) -> Path:
    out = run_git(["rev-parse", "--show-toplevel"], cwd=cwd).stdout.strip()
    return Path(out).resolve()


def hooks_dir(cwd: Path | None = None) -> Path:
    """Directory git runs hooks from (honours ``core.hooksPath``)."""
    out = Path(run_git(["rev-parse", "--git-path", "hooks"], cwd=cwd).stdout.strip())
    if not out.is_absolute():
        out = (cwd or Path.cwd()) / out
    return out.resolve()
