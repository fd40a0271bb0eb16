"""Rendering of config provenance and audit results."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import yaml

from snag.checks.types import AuditReport
from snag.config import ConfigSource


def source_to_dict(source: ConfigSource) -> dict[str, Any]:
    data: dict[str, Any] = {"label": source.label, "kind": source.kind}
    for key in ("diff", "msg", "branch"):
        values = getattr(source, key)
        if values:
            data[key] = list(values)
    if source.push is not None:
        data["push"] = list(source.push)
    if source.cleared:
        data["cleared"] = list(source.cleared)
    return data


def push_inherited(sources: Sequence[ConfigSource]) -> bool:
    """True when no source sets push explicitly."""
    for source in sources:
        if source.kind == "ignore":
            if source.push or "push" in source.cleared:
                return False
        elif source.push is not None:
            return False
    return True


def sources_payload(sources: Sequence[ConfigSource]) -> dict[str, Any]:
    return {
        "sources": [source_to_dict(source) for source in sources],
        "push_inherits": push_inherited(sources),
    }


def render_sources_json(sources: Sequence[ConfigSource]) -> str:
    return json.dumps(sources_payload(sources), indent=2, ensure_ascii=False)


def render_sources_yaml(sources: Sequence[ConfigSource]) -> str:
    return yaml.safe_dump(sources_payload(sources), sort_keys=False, allow_unicode=True)


def _section(name: str, patterns: Sequence[str]) -> str | None:
    if not patterns:
        return None
    return f"  {name + ':':<8} {', '.join(patterns)}"


def render_sources_text(sources: Sequence[ConfigSource]) -> str:
    """Human readable ``snag config`` output, one block per source."""
    blocks: list[str] = []
    for source in sources:
        lines = [f"# {source.label}"]
        if source.kind == "blocklist":
            sections = [_section("patterns", source.diff)]
        elif source.kind == "env":
            sections = [_section("patterns", source.diff), _section("branch", source.branch)]
        elif source.kind == "default":
            sections = [_section("branch", source.branch)]
        elif source.kind == "ignore":
            sections = [
                _section("clear", source.cleared),
                _section("diff", source.diff),
                _section("msg", source.msg),
                _section("push", source.push or ()),
                _section("branch", source.branch),
            ]
        else:
            sections = [
                _section("diff", source.diff),
                _section("msg", source.msg),
                _section("push", source.push) if source.push else None,
                _section("branch", source.branch),
            ]
            if source.push is not None and not source.push:
                sections.append("  push:    (explicitly empty)")
        lines.extend(section for section in sections if section)
        blocks.append("\n".join(lines))

    if push_inherited(sources):
        blocks.append("# push: inherits union of diff + msg")
    return "\n\n".join(blocks)


def render_audit_json(report: AuditReport) -> str:
    return json.dumps(report.to_dict(), indent=2, sort_keys=True, ensure_ascii=False)
