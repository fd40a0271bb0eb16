"""Commit message check (commit-msg)."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from snag.checks.types import MessageCheckResult, Violation
from snag.config import ResolvedPolicy
from snag.patterns import is_trailer_line, match_pattern


def read_message(path: Path) -> str:
    """Read a commit message file without altering line endings or bytes.

    Messages written under a legacy ``i18n.commitEncoding`` round-trip through
    surrogate escapes, so a rewrite leaves untouched lines byte-identical.
    """
    with open(path, encoding="utf-8", errors="surrogateescape", newline="") as f:
        return f.read()


def write_message(path: Path, text: str) -> None:
    with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
        f.write(text)


def strip_matching_trailers(lines: Sequence[str], patterns: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split ``lines`` into kept lines and trailer lines matching a pattern.

    Only lines shaped like trailers are candidates; body prose is always kept.
    """
    kept: list[str] = []
    removed: list[str] = []
    for line in lines:
        if is_trailer_line(line) and match_pattern(line, patterns)[1]:
            removed.append(line)
            continue
        kept.append(line)
    return kept, removed


def check_message(policy: ResolvedPolicy, message_file: Path) -> MessageCheckResult:
    """Run the two-pass message check.

    Pass 1 silently drops matching trailers (e.g. auto-appended attribution
    lines) and rewrites ``message_file`` when anything was dropped. Pass 2
    matches the remaining text and reports a violation, which blocks the
    commit.
    """
    if not policy.msg:
        return MessageCheckResult()

    text = read_message(message_file)
    kept, removed = strip_matching_trailers(text.split("\n"), policy.msg)
    body = "\n".join(kept)
    if removed:
        write_message(message_file, body)

    pattern, found = match_pattern(body, policy.msg)
    violation = Violation(phase="msg", pattern=pattern) if found else None
    return MessageCheckResult(removed_trailers=tuple(removed), violation=violation)
