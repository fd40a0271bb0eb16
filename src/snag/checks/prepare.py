"""Ticket prefix injection (prepare-commit-msg)."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path

from snag import git
from snag.checks.msg import read_message, write_message

logger = logging.getLogger(__name__)

ENV_TICKET_PATTERN = "SNAG_TICKET_PATTERN"
DEFAULT_TICKET_PATTERN = r"(\d+)-"

SKIPPED_SOURCES = frozenset({"merge", "squash", "commit"})


def ticket_pattern(environ: Mapping[str, str] | None = None) -> re.Pattern[str]:
    """Compile the ticket regex, falling back to the default when invalid."""
    env = os.environ if environ is None else environ
    raw = env.get(ENV_TICKET_PATTERN) or DEFAULT_TICKET_PATTERN
    try:
        return re.compile(raw)
    except re.error:
        logger.warning("invalid %s %r, using default", ENV_TICKET_PATTERN, raw)
        return re.compile(DEFAULT_TICKET_PATTERN)


def extract_ticket(branch: str, pattern: re.Pattern[str]) -> str:
    """First capture group when present, else the whole match."""
    match = pattern.search(branch)
    if match is None:
        return ""
    if match.groups() and match.group(1):
        return match.group(1)
    return match.group(0)


def prepare_message(
    message_file: Path,
    source: str | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> str | None:
    """Prefix the first message line with ``#<ticket>`` from the branch name.

    Returns the prefix written, or None when nothing changed.
    """
    if source in SKIPPED_SOURCES:
        return None

    branch = git.current_branch(cwd)
    if branch is None:
        return None

    ticket = extract_ticket(branch, ticket_pattern(environ))
    if not ticket:
        return None

    message = read_message(message_file)
    prefix = f"#{ticket}"
    if prefix in message:
        return None

    first, sep, rest = message.partition("\n")
    write_message(message_file, f"{prefix} {first}{sep}{rest}")
    return prefix
