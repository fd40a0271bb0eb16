"""Pattern matching primitives shared by the config resolver and the checks."""

from __future__ import annotations

import functools
import re
from collections.abc import Iterable

_META_PREFIXES: tuple[str, ...] = (
    "diff --git ",
    "--- a/",
    "+++ b/",
    "rename from ",
    "rename to ",
    "copy from ",
    "copy to ",
    "index ",
    "@@ ",
    "old mode ",
    "new mode ",
    "new file mode ",
    "deleted file mode ",
    "similarity index ",
    "dissimilarity index ",
    "Binary files ",
)

_META_LINES: frozenset[str] = frozenset({"--- /dev/null", "+++ /dev/null"})


def match_pattern(text: str, patterns: Iterable[str]) -> tuple[str, bool]:
    """Return the first pattern contained in ``text`` (case-insensitive).

    Patterns are expected to be lowercase already; only the haystack is folded.
    The scan is linear and ordered, so when several patterns match, the one
    listed first is reported.

    Returns:
        ``(pattern, True)`` on the first hit, ``("", False)`` otherwise.
    """
    lower = text.lower()
    for pattern in patterns:
        if pattern in lower:
            return pattern, True
    return "", False


def deduplicate(patterns: Iterable[str] | None) -> list[str]:
    """Remove later duplicates, keeping the first occurrence's position."""
    if not patterns:
        return []
    seen: set[str] = set()
    result: list[str] = []
    for pattern in patterns:
        if pattern in seen:
            continue
        seen.add(pattern)
        result.append(pattern)
    return result


def lowercase_all(patterns: Iterable[str]) -> list[str]:
    return [pattern.lower() for pattern in patterns]


def is_diff_metadata(line: str) -> bool:
    """Return True for unified-diff structural lines (headers, hunks, modes)."""
    if line in _META_LINES:
        return True
    return line.startswith(_META_PREFIXES)


def strip_diff_metadata(diff: str) -> str:
    """Drop diff headers so filenames never count as content."""
    return "\n".join(line for line in diff.split("\n") if not is_diff_metadata(line))


def strip_to_added_lines(content: str) -> str:
    """Keep only ``+`` lines from metadata-stripped diff content, prefix removed."""
    return "\n".join(line[1:] for line in content.split("\n") if line.startswith("+"))


def added_content(diff: str) -> str:
    """Metadata-stripped, added-lines-only view of a unified diff."""
    return strip_to_added_lines(strip_diff_metadata(diff))


def is_trailer_line(line: str) -> bool:
    """Return True when ``line`` is shaped like a git trailer (``Key: Value``).

    The key must start at column zero, be followed by ``": "`` and contain no
    spaces. Known trailer keys are not enumerated, so ``Signed-off-by: X`` and
    ``Generated-by: X`` qualify while prose such as ``Note that: x`` does not.
    """
    if not line:
        return False
    if line[0] in (" ", "\t"):
        return False
    idx = line.find(": ")
    if idx < 1:
        return False
    return " " not in line[:idx]


def _class_char(glob: str, i: int) -> tuple[str | None, int]:
    if i >= len(glob):
        return None, i
    c = glob[i]
    if c == "\\":
        i += 1
        if i >= len(glob):
            return None, i
        c = glob[i]
    elif c in "-]":
        return None, i
    return c, i + 1


@functools.lru_cache(maxsize=256)
def compile_branch_glob(glob: str) -> re.Pattern[str] | None:
    """Compile a path-style glob where ``*`` and ``?`` never cross ``/``.

    Supports ``[...]`` classes (``^`` negates, ``a-z`` ranges) and ``\\``
    escapes. Malformed globs return None and match nothing.
    """
    parts: list[str] = []
    i, n = 0, len(glob)
    while i < n:
        c = glob[i]
        i += 1
        if c == "*":
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "\\":
            if i >= n:
                return None
            parts.append(re.escape(glob[i]))
            i += 1
        elif c == "[":
            negate = i < n and glob[i] == "^"
            if negate:
                i += 1
            items: list[str] = []
            while True:
                if i >= n:
                    return None
                if glob[i] == "]":
                    if not items:
                        return None
                    i += 1
                    break
                lo, i = _class_char(glob, i)
                if lo is None:
                    return None
                if i < n and glob[i] == "-":
                    hi, i = _class_char(glob, i + 1)
                    if hi is None or hi < lo:
                        return None
                    items.append(f"{re.escape(lo)}-{re.escape(hi)}")
                else:
                    items.append(re.escape(lo))
            parts.append(f"[{'^' if negate else ''}{''.join(items)}]")
        else:
            parts.append(re.escape(c))
    return re.compile("".join(parts))


def match_branch(branch: str, patterns: Iterable[str]) -> str | None:
    """Return the first pattern ``branch`` equals or glob-matches.

    Branch names are case-sensitive in git, so matching is too. Wildcards
    stay within one ``/`` segment: ``release/*`` covers ``release/1.2`` but
    not ``release/1.2/hotfix``.
    """
    for pattern in patterns:
        if branch == pattern:
            return pattern
        glob = compile_branch_glob(pattern)
        if glob is not None and glob.fullmatch(branch):
            return pattern
    return None


def is_protected_branch(branch: str, patterns: Iterable[str]) -> bool:
    return match_branch(branch, patterns) is not None
