"""snag CLI - git hook policy checks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import typer
from rich.markup import escape

from snag import __version__, ui
from snag.checks import (
    audit_history,
    check_checkout,
    check_diff,
    check_message,
    check_push,
    check_rebase,
    prepare_message,
)
from snag.checks.audit import DEFAULT_AUDIT_LIMIT
from snag.checks.rebase import ENV_ALLOW_REBASE, rebase_allowed
from snag.config import ConfigError, ResolvedPolicy, collect_sources, resolve_policy
from snag.dryrun import DEMO_PATTERNS, policy_patterns, run_dry_run
from snag.git import GitError
from snag.report import render_audit_json, render_sources_json, render_sources_text, render_sources_yaml
from snag.scaffold import write_starter_config

cli = typer.Typer(
    name="snag",
    help=f"snag {__version__} - Composable git hook policy kit",
    no_args_is_help=True,
)

check_app = typer.Typer(
    help="Run policy checks (diff, msg, push, audit, rebase, prepare, checkout).",
    no_args_is_help=True,
)
cli.add_typer(check_app, name="check")


@dataclass(frozen=True)
class CliState:
    """Global options shared by every command."""

    blocklist: Path | None = None
    quiet: bool = False


class ConfigFormat(str, Enum):
    """Output formats for ``snag config``."""

    TEXT = "text"
    JSON = "json"
    YAML = "yaml"


class DryRunTarget(str, Enum):
    """Scenarios for ``snag test``."""

    ALL = "all"
    DIFF = "diff"
    MSG = "msg"
    PUSH = "push"


def _version_option_callback(value: bool) -> None:
    """Handle eager --version option."""
    if value:
        typer.echo(f"snag version {__version__}")
        raise typer.Exit()


@cli.callback()
def _cli_callback(
    ctx: typer.Context,
    blocklist: Path | None = typer.Option(
        None,
        "--blocklist",
        help="Use this flat pattern file instead of walking for snag.toml/.blocklist.",
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-error output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log config resolution and git calls."),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show snag version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Composable git hook policy kit."""
    _ = version
    ui.configure_logging(verbose)
    ctx.obj = CliState(blocklist=blocklist, quiet=quiet)


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj if isinstance(ctx.obj, CliState) else CliState()


def _resolve(state: CliState) -> ResolvedPolicy:
    try:
        return resolve_policy(Path.cwd(), state.blocklist)
    except ConfigError as exc:
        ui.error(str(exc))
        raise typer.Exit(1) from exc


@check_app.command("diff")
def diff_cmd(ctx: typer.Context) -> None:
    """Check staged diff against policies."""
    state = _state(ctx)
    policy = _resolve(state)
    try:
        violation = check_diff(policy)
    except GitError as exc:
        ui.error(str(exc))
        raise typer.Exit(1) from exc

    if violation is None:
        return
    if not state.quiet:
        ui.error(violation.describe())
        ui.bell()
    raise typer.Exit(1)


@check_app.command("msg")
def msg_cmd(
    ctx: typer.Context,
    message_file: Path = typer.Argument(..., metavar="FILE", help="Commit message file (e.g. .git/COMMIT_EDITMSG)."),
) -> None:
    """Check commit message against policies."""
    state = _state(ctx)
    policy = _resolve(state)
    try:
        result = check_message(policy, message_file)
    except OSError as exc:
        ui.error(f"reading commit message: {exc}")
        raise typer.Exit(1) from exc

    if result.removed_trailers and not state.quiet:
        ui.warn(f"removed {len(result.removed_trailers)} trailer line(s)")

    if result.violation is None:
        return
    if not state.quiet:
        ui.error(result.violation.describe())
        ui.bell()
        ui.hint("to recover: git commit -eF .git/COMMIT_EDITMSG")
    raise typer.Exit(1)


@check_app.command("push")
def push_cmd(ctx: typer.Context) -> None:
    """Check unpushed commits against pre-push policies."""
    state = _state(ctx)
    policy = _resolve(state)
    try:
        result = check_push(policy)
    except GitError as exc:
        ui.error(str(exc))
        raise typer.Exit(1) from exc

    if result.violation is not None:
        if not state.quiet:
            ui.error(result.violation.describe())
            ui.bell()
        raise typer.Exit(1)

    if result.patterns_checked and result.commits_checked and not state.quiet:
        ui.info(f"{result.patterns_checked} patterns checked against {result.commits_checked} commits")


@check_app.command("audit")
def audit_cmd(
    ctx: typer.Context,
    rev_range: str | None = typer.Argument(None, metavar="RANGE", help="Revision range, e.g. main..HEAD."),
    limit: int = typer.Option(DEFAULT_AUDIT_LIMIT, "--limit", min=0, help="Max commits to scan (0 = unlimited)."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON on stdout."),
) -> None:
    """Scan git history for policy violations."""
    state = _state(ctx)
    policy = _resolve(state)
    try:
        report = audit_history(policy, rev_range, limit)
    except GitError as exc:
        ui.error(str(exc))
        raise typer.Exit(1) from exc

    if as_json:
        typer.echo(render_audit_json(report))
    elif not state.quiet:
        for commit in report.reports:
            ui.stdout.print()
            ui.stdout.print(f"  [yellow]{commit.short_sha}[/yellow] - {escape(repr(commit.subject))}")
            for violation in commit.violations:
                ui.stdout.print(
                    f"    [dim]{violation.phase}:[/dim] match [bold red]{escape(repr(violation.pattern))}[/bold red]"
                    f" in commit {violation.phase}"
                )
        if report.reports:
            ui.stdout.print()

    if report.passed:
        if not state.quiet:
            ui.info(f"0 violations found in {report.commits_scanned} commits")
        return

    if not state.quiet:
        ui.info(
            f"{report.total_violations} violations found in {len(report.reports)} "
            f"of {report.commits_scanned} commits"
        )
    raise typer.Exit(1)


@check_app.command("rebase")
def rebase_cmd(
    ctx: typer.Context,
    upstream: str | None = typer.Argument(None, help="Upstream the branch is rebased onto."),
    branch: str | None = typer.Argument(None, help="Branch being rebased (defaults to current)."),
) -> None:
    """Block rebases of protected branches."""
    _ = upstream
    if rebase_allowed():
        return
    state = _state(ctx)
    policy = _resolve(state)
    try:
        result = check_rebase(policy, branch or None)
    except GitError as exc:
        ui.error(str(exc))
        raise typer.Exit(1) from exc

    if result.violation is None:
        return
    if not state.quiet:
        ui.warn(f"rebase of protected branch {result.branch!r} blocked")
        ui.hint(f"protected branches: {', '.join(policy.branch)}")
        ui.hint(f"to override: {ENV_ALLOW_REBASE}=1 git rebase ...")
    raise typer.Exit(1)


@check_app.command("prepare")
def prepare_cmd(
    ctx: typer.Context,
    message_file: Path = typer.Argument(..., metavar="FILE"),
    source: str | None = typer.Argument(None, help="Commit message source passed by git."),
    sha: str | None = typer.Argument(None),
) -> None:
    """Prepend the ticket number from the branch name to the commit message."""
    _ = sha
    state = _state(ctx)
    try:
        prefix = prepare_message(message_file, source)
    except OSError as exc:
        ui.error(f"reading commit message: {exc}")
        raise typer.Exit(1) from exc
    if prefix and not state.quiet:
        ui.info(f"prepended {prefix} from branch name")


@check_app.command("checkout")
def checkout_cmd(
    ctx: typer.Context,
    hook_args: list[str] | None = typer.Argument(None, metavar="[PREV NEW FLAG]", hidden=True),
) -> None:
    """Warn when the repo has snag patterns but no snag hooks."""
    _ = hook_args
    state = _state(ctx)
    try:
        sources = collect_sources(Path.cwd(), state.blocklist)
        result = check_checkout(sources)
    except (ConfigError, GitError, OSError) as exc:
        ui.error(str(exc))
        raise typer.Exit(1) from exc

    if not result.missing_hooks:
        return
    if not state.quiet:
        ui.warn("this repo has a snag config but snag hooks aren't installed")
        ui.hint("add `snag check diff`, `snag check msg` and `snag check push` to your git hooks")
    raise typer.Exit(1)


@cli.command("test")
def dry_run_cmd(
    ctx: typer.Context,
    which: DryRunTarget = typer.Argument(DryRunTarget.ALL, help="Scenario to run (default: all)."),
) -> None:
    """Dry-run hooks against a temp repo to verify output."""
    state = _state(ctx)
    patterns = policy_patterns(_resolve(state))
    if not patterns:
        patterns = list(DEMO_PATTERNS)
        if not state.quiet:
            ui.info("no blocklist found, using demo patterns")
    if not state.quiet:
        ui.info(f"testing with patterns: {', '.join(patterns)}")

    try:
        results = run_dry_run(patterns, which.value)
    except (ConfigError, GitError) as exc:
        ui.error(str(exc))
        raise typer.Exit(1) from exc

    passed = sum(1 for result in results if result.detected)
    if not state.quiet:
        for result in results:
            ui.console.print(f"\n=== {result.name} ===")
            if result.detected:
                ui.console.print(f"[green]PASS:[/green] {result.name} correctly rejected violation")
            else:
                ui.console.print(f"[bold red]FAIL:[/bold red] {result.name} did not detect violation")
        ui.console.print()
        ui.info(f"{passed}/{len(results)} checks passed")
    if passed < len(results):
        raise typer.Exit(1)


@cli.command("config")
def config_cmd(
    ctx: typer.Context,
    output_format: ConfigFormat = typer.Option(ConfigFormat.TEXT, "--format", help="Output format."),
) -> None:
    """Show resolved block patterns and their sources."""
    state = _state(ctx)
    try:
        sources = collect_sources(Path.cwd(), state.blocklist)
    except ConfigError as exc:
        ui.error(str(exc))
        raise typer.Exit(1) from exc

    if output_format is ConfigFormat.JSON:
        typer.echo(render_sources_json(sources))
    elif output_format is ConfigFormat.YAML:
        typer.echo(render_sources_yaml(sources), nl=False)
    else:
        typer.echo(render_sources_text(sources))


@cli.command("init")
def init_cmd(
    ctx: typer.Context,
    local: bool = typer.Option(False, "--local", help="Write a personal snag-local.toml instead."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Generate a starter snag.toml in the current directory."""
    state = _state(ctx)
    try:
        dest, migrated = write_starter_config(Path.cwd(), local=local, force=force)
    except FileExistsError as exc:
        ui.error(str(exc))
        raise typer.Exit(1) from exc

    if state.quiet:
        return
    if migrated:
        ui.info(f"created {dest.name} from {migrated} patterns in .blocklist")
        ui.hint("review snag.toml, then remove .blocklist when ready")
    else:
        ui.info(f"created {dest.name} with starter patterns")
        ui.hint(f"edit {dest.name} to customize your policy")


@cli.command("version")
def version_cmd() -> None:
    """Print version and exit."""
    typer.echo(f"snag version {__version__}")
