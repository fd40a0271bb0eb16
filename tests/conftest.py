"""Pytest configuration and fixtures for snag tests."""
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

SNAG_ENV_VARS = (
    "SNAG_BLOCKLIST",
    "SNAG_PROTECTED_BRANCHES",
    "SNAG_IGNORE",
    "SNAG_ALLOW_REBASE",
    "SNAG_TICKET_PATTERN",
)


def pytest_sessionfinish(session, exitstatus):
    """Check that coverage data was collected if --cov was requested.

    This prevents silent "no data collected" scenarios that produce 0% coverage
    without failing the test run.
    """
    cov_enabled = any("--cov" in str(arg) for arg in session.config.args)

    if not cov_enabled:
        return

    cwd = Path.cwd()
    coverage_files = list(cwd.glob(".coverage*"))

    if not coverage_files:
        pytest.exit(
            "Coverage was enabled but no data was collected. "
            "This suggests tests are not importing/executing package code. "
            "Check that tests import from 'snag' (the package) not 'src/snag' (filesystem path).",
            returncode=1
        )


@pytest.fixture(autouse=True)
def _isolate_snag_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's own SNAG_* settings out of the tests."""
    for name in SNAG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _git(repo: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout


@pytest.fixture
def git(tmp_path: Path) -> Callable[..., str]:
    """Run git inside the test repository."""
    return lambda *args: _git(tmp_path / "repo", *args)


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository on branch main with one commit."""
    repo = tmp_path / "repo"
    repo.mkdir()

    _git(repo, "init")
    _git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    _git(repo, "config", "user.email", "test@example.com")
    _git(repo, "config", "user.name", "Test User")
    _git(repo, "config", "commit.gpgsign", "false")

    readme = repo / "README.md"
    readme.write_text("# Test Repo\n")
    _git(repo, "add", "README.md")
    _git(repo, "commit", "-m", "Initial commit")

    return repo


@pytest.fixture
def commit_file(git_repo: Path) -> Callable[[str, str, str], str]:
    """Write a file, commit it and return the new HEAD sha."""

    def _commit(name: str, content: str, message: str) -> str:
        path = git_repo / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        _git(git_repo, "add", name)
        _git(git_repo, "commit", "-m", message)
        return _git(git_repo, "rev-parse", "HEAD").strip()

    return _commit
