"""Starter config generation for ``snag init``."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

from snag.config import LEGACY_FILENAME, LOCAL_FILENAME, STRUCTURED_FILENAME, load_blocklist

# First release that reads snag.toml.
MIN_VERSION_FOR_INIT = "0.10.0"

DEFAULT_CONFIG = f"""min_version = "{MIN_VERSION_FOR_INIT}"

[block]
diff = [
  "DO NOT MERGE",
  "DO NOT COMMIT",
  "FIXME",
  "HACK",
]
msg = [
  "DO NOT MERGE",
  "FIXME",
  "WIP",
  "fixup!",
  "squash!",
]
# push: omit to inherit diff + msg patterns as a safety net
branch = ["main", "master"]
"""

DEFAULT_LOCAL_CONFIG = f"""# Personal snag patterns. Add snag-local.toml to .gitignore;
# it should stay gitignored and only ever adds to snag.toml.
min_version = "{MIN_VERSION_FOR_INIT}"

[block]
diff = []
msg = []
"""


def _toml_array(patterns: Sequence[str]) -> str:
    # JSON string escaping is valid TOML basic-string escaping
    items = "".join(f"  {json.dumps(pattern)},\n" for pattern in patterns)
    return f"[\n{items}]"


def render_from_blocklist(patterns: Sequence[str]) -> str:
    """Build snag.toml content seeded with legacy ``.blocklist`` patterns."""
    array = _toml_array(patterns)
    return (
        f'min_version = "{MIN_VERSION_FOR_INIT}"\n\n'
        "[block]\n"
        f"diff = {array}\n"
        f"msg = {array}\n"
        "# push: omit to inherit diff + msg patterns as a safety net\n"
        'branch = ["main", "master"]\n'
    )


def write_starter_config(directory: Path, *, local: bool = False, force: bool = False) -> tuple[Path, int]:
    """Write snag.toml (or snag-local.toml) into ``directory``.

    Returns the written path and how many ``.blocklist`` patterns were carried
    over (0 when the default template was used).

    Raises:
        FileExistsError: If the target exists and ``force`` is False
    """
    dest = directory / (LOCAL_FILENAME if local else STRUCTURED_FILENAME)
    if dest.exists() and not force:
        raise FileExistsError(f"{dest.name} already exists (use --force to overwrite)")

    if local:
        dest.write_text(DEFAULT_LOCAL_CONFIG, encoding="utf-8")
        return dest, 0

    patterns = load_blocklist(directory / LEGACY_FILENAME)
    if patterns:
        dest.write_text(render_from_blocklist(patterns), encoding="utf-8")
        return dest, len(patterns)

    dest.write_text(DEFAULT_CONFIG, encoding="utf-8")
    return dest, 0
