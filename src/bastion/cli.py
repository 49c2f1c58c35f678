"""CLI interface for bastion."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from bastion import __version__
from bastion.config import Config, get_bastion_dir
from bastion.core.aggregator import IssueAggregator, write_report
from bastion.core.counter import ErrorCounter
from bastion.core.diagnostics import DiagnosticsProvider, JsonFileDiagnostics
from bastion.core.errors import BastionError
from bastion.core.events import CountsChanged, Event, EventBus, SuspiciousZero
from bastion.core.fixer import LintFixer
from bastion.core.models import AuditReport, CountOrigin, Decision, EnforcementLevel, ErrorCount, Severity, Trigger
from bastion.core.monitor import DiagnosticsMonitor
from bastion.core.policy import ProtectionPolicy
from bastion.core.state import PolicyStore
from bastion.hooks.generator import HookKind, generate_hook_script
from bastion.hooks.installer import install_hooks, uninstall_hooks
from bastion.utils.git import configure_protection

app = typer.Typer(
    name="bastion",
    help="Audit JavaScript/TypeScript workspaces and gate saves, commits and builds on code quality.",
    no_args_is_help=True,
)
gate_app = typer.Typer(help="Ask the protection policy whether an action may proceed.", no_args_is_help=True)
hooks_app = typer.Typer(help="Manage the git hooks that enforce protection.", no_args_is_help=True)
protect_app = typer.Typer(help="Turn protection on or off for this workspace.", no_args_is_help=True)
app.add_typer(gate_app, name="gate")
app.add_typer(hooks_app, name="hooks")
app.add_typer(protect_app, name="protect")

console = Console()

SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "dim",
}

RootOption = Annotated[
    Path,
    typer.Option("--root", "-r", help="Workspace root", file_okay=False, resolve_path=True),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Config file (default: <root>/.bastion/config.yaml)"),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
        force=True,
    )


def _load_config(root: Path, config_path: Path | None) -> Config:
    path = config_path or root / ".bastion" / "config.yaml"
    try:
        return Config.load(path)
    except (ValidationError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration in {path}:[/red]\n{e}")
        raise typer.Exit(1) from e


def _state_store(root: Path) -> PolicyStore:
    return PolicyStore(get_bastion_dir(root) / "policy.json")


def _display_report(report: AuditReport, limit: int) -> None:
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Source", style="cyan")
    table.add_column("Errors", justify="right")
    table.add_column("Warnings", justify="right")
    for source, summary in report.summary.items():
        table.add_row(source.value, str(summary.error_count), str(summary.warning_count))
    console.print(table)
    console.print()

    for issue in report.issues[:limit]:
        style = SEVERITY_STYLES[issue.severity]
        location = f"{issue.file}:{issue.line}:{issue.column}" if issue.file else "(project)"
        code = f" [{issue.code}]" if issue.code else ""
        text = escape(f"{location}{code} {issue.message}")
        console.print(f"  [{style}]{issue.severity.value:<8}[/{style}] {text}")
        if issue.suggested_fix:
            console.print(f"           [dim]Fix:[/dim] {escape(issue.suggested_fix)}")
    if len(report.issues) > limit:
        console.print(f"  [dim]... and {len(report.issues) - limit} more[/dim]")

    unsafe = report.unsafe_suppressions
    if unsafe:
        console.print(f"\n[bold yellow]Unsafe suppressions ({len(unsafe)}):[/bold yellow]")
        for suppression in unsafe[:limit]:
            line = f"{suppression.file}:{suppression.line} {suppression.directive} - {suppression.reason}"
            console.print(f"  {escape(line)}")
    if report.concerns:
        console.print(f"\n[bold cyan]Business-logic concerns ({len(report.concerns)}):[/bold cyan]")
        for concern in report.concerns[:limit]:
            console.print(f"  {escape(concern)}")

    console.print(
        f"\n[bold]Summary:[/bold] {report.error_count} error(s), {report.warning_count} warning(s), "
        f"{len(report.suppressions)} suppression(s), quality score {report.quality_score}/100"
    )


def _display_counts(count: ErrorCount) -> None:
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Category", style="cyan")
    table.add_column("Errors", justify="right")
    table.add_column("Warnings", justify="right")
    table.add_column("From")
    table.add_row(
        "type-check",
        str(count.type_check_errors),
        str(count.type_check_warnings),
        count.origins.get("type-check", CountOrigin.NONE).value,
    )
    table.add_row(
        "lint",
        str(count.lint_errors),
        str(count.lint_warnings),
        count.origins.get("lint", CountOrigin.NONE).value,
    )
    console.print(table)
    if count.suspicious_zero:
        failed = ", ".join(count.failed_tools)
        console.print(f"[yellow]Counts are zero but {failed} failed; treat them as unknown.[/yellow]")


def _display_decision(decision: Decision) -> None:
    if decision.allowed:
        console.print(f"[bold green]ALLOWED[/bold green] {escape(decision.reason)}")
    else:
        console.print(f"[bold red]BLOCKED[/bold red] {escape(decision.reason)}")


# =============================================================================
# Audit and counting
# =============================================================================


@app.command()
def audit(
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Write the JSON report here")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Print the JSON report instead of a summary")] = False,
    limit: Annotated[int, typer.Option("--limit", help="Maximum issues to list")] = 50,
    verbose: VerboseOption = False,
) -> None:
    """Run every checker and report the merged findings."""
    _configure_logging(verbose)
    config = _load_config(root, config_path)
    report = asyncio.run(IssueAggregator(root, config).audit())

    if output is not None:
        write_report(report, output)

    if json_output:
        # Plain print so rich does not touch the JSON
        print(report.to_json())
    else:
        console.print(f"\n[bold]Auditing:[/bold] {root} ({report.total_files} files)\n")
        _display_report(report, limit)
        if report.passed:
            console.print("[bold green]Result: PASS[/bold green]\n")
        else:
            console.print("[bold red]Result: FAIL[/bold red]\n")

    if not report.passed:
        raise typer.Exit(1)


@app.command()
def count(
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    diagnostics: Annotated[
        Path | None, typer.Option("--diagnostics", "-d", help="Editor diagnostics JSON used as fallback")
    ] = None,
    verbose: VerboseOption = False,
) -> None:
    """Quickly count type-check and lint errors."""
    _configure_logging(verbose)
    config = _load_config(root, config_path)
    provider = JsonFileDiagnostics(diagnostics, root) if diagnostics else None
    result = asyncio.run(ErrorCounter(root, config, diagnostics=provider).count())
    _display_counts(result)


@app.command()
def fix(
    files: Annotated[list[str] | None, typer.Argument(help="Files to fix (default: whole project)")] = None,
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Run the linter's own auto-fix and report what changed."""
    _configure_logging(verbose)
    config = _load_config(root, config_path)
    try:
        result = asyncio.run(LintFixer(root, config).fix(files or []))
    except BastionError as e:
        console.print(f"[red]Auto-fix failed:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(
        f"Lint errors: {result.before.lint_errors} -> {result.after.lint_errors}, "
        f"warnings: {result.before.lint_warnings} -> {result.after.lint_warnings}"
    )
    console.print(f"[green]Fixed {result.fixed_errors} error(s) and {result.fixed_warnings} warning(s)[/green]")


@app.command()
def watch(
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    interval: Annotated[float | None, typer.Option("--interval", "-i", help="Seconds between polls")] = None,
    verbose: VerboseOption = False,
) -> None:
    """Poll error counts and print every change until interrupted."""
    _configure_logging(verbose)
    config = _load_config(root, config_path)
    bus = EventBus()
    counter = ErrorCounter(root, config, bus=bus)
    monitor = DiagnosticsMonitor(counter, bus, interval=interval or config.poll_interval)

    def on_event(event: Event) -> None:
        if isinstance(event, CountsChanged):
            current = event.current
            console.print(
                f"type-check: {current.type_check_errors} error(s) | "
                f"lint: {current.lint_errors} error(s), {current.lint_warnings} warning(s)"
            )
        elif isinstance(event, SuspiciousZero):
            console.print(f"[yellow]Suspicious zero counts ({', '.join(event.failed_tools)} failed)[/yellow]")

    subscription = bus.subscribe(on_event)

    async def run() -> None:
        await monitor.start()
        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            await monitor.stop()

    console.print(f"[bold]Watching[/bold] {root} every {monitor.interval}s (Ctrl+C to stop)")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped[/dim]")
    finally:
        subscription.unsubscribe()


# =============================================================================
# Protection state
# =============================================================================


@protect_app.command("enable")
def protect_enable(
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    strict: Annotated[bool | None, typer.Option("--strict/--advisory", help="Enforcement level")] = None,
    hooks: Annotated[bool, typer.Option("--hooks", help="Also install git hooks")] = False,
    verbose: VerboseOption = False,
) -> None:
    """Classify the project and enable protection."""
    _configure_logging(verbose)
    config = _load_config(root, config_path)
    policy = ProtectionPolicy(root, config)
    try:
        state = asyncio.run(policy.enable(strict, install_hooks=hooks))
    except BastionError as e:
        console.print(f"[red]Could not enable protection:[/red] {e}")
        raise typer.Exit(1) from e
    _state_store(root).save(state)
    console.print(
        f"[green]Protection enabled[/green] ({state.enforcement_level.value}, "
        f"project classified as {state.project_class.value})"
    )


@protect_app.command("disable")
def protect_disable(
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    hooks: Annotated[bool, typer.Option("--hooks", help="Also remove git hooks")] = False,
    verbose: VerboseOption = False,
) -> None:
    """Disable protection."""
    _configure_logging(verbose)
    config = _load_config(root, config_path)
    asyncio.run(ProtectionPolicy(root, config).disable(uninstall_hooks=hooks))
    _state_store(root).clear()
    console.print("[yellow]Protection disabled[/yellow]")


@protect_app.command("status")
def protect_status(root: RootOption = Path(".")) -> None:
    """Show the saved protection state."""
    try:
        state = _state_store(root).load()
    except BastionError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    if not state.enabled:
        console.print("Protection is [yellow]disabled[/yellow]")
        return
    console.print(
        f"Protection is [green]enabled[/green]: {state.enforcement_level.value}, "
        f"project class {state.project_class.value}"
    )


# =============================================================================
# Gates
# =============================================================================


def _run_gate(
    root: Path,
    config_path: Path | None,
    trigger: Trigger,
    *,
    file: str | None = None,
    override: bool = False,
    diagnostics: DiagnosticsProvider | None = None,
) -> None:
    config = _load_config(root, config_path)
    try:
        state = _state_store(root).load()
    except BastionError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    policy = ProtectionPolicy(root, config, diagnostics=diagnostics)

    async def decide() -> Decision:
        await policy.restore(state)
        return await policy.decide(trigger, file=file, override=override)

    decision = asyncio.run(decide())
    _display_decision(decision)
    if not decision.allowed:
        raise typer.Exit(1)


@gate_app.command("save")
def gate_save(
    file: Annotated[str, typer.Argument(help="File about to be saved")],
    diagnostics: Annotated[Path, typer.Option("--diagnostics", "-d", help="Editor diagnostics JSON")],
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Decide whether a file may be saved, from editor diagnostics only."""
    _configure_logging(verbose)
    _run_gate(root, config_path, Trigger.SAVE, file=file, diagnostics=JsonFileDiagnostics(diagnostics, root))


@gate_app.command("commit")
def gate_commit(
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    override: Annotated[
        bool, typer.Option("--override", help="Confirm committing a project with known errors")
    ] = False,
    verbose: VerboseOption = False,
) -> None:
    """Decide whether the workspace may be committed (runs a full audit)."""
    _configure_logging(verbose)
    _run_gate(root, config_path, Trigger.COMMIT, override=override)


@gate_app.command("build")
def gate_build(
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Decide whether the workspace may be built (fast error count)."""
    _configure_logging(verbose)
    _run_gate(root, config_path, Trigger.BUILD)


# =============================================================================
# Hooks
# =============================================================================


@hooks_app.command("install")
def hooks_install(
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    strict: Annotated[bool | None, typer.Option("--strict/--advisory", help="Enforcement level")] = None,
) -> None:
    """Install pre-commit and pre-push hooks and turn them on."""
    config = _load_config(root, config_path)
    strict = config.strict_mode if strict is None else strict
    level = EnforcementLevel.ZERO_TOLERANCE if strict else EnforcementLevel.ADVISORY
    try:
        results = install_hooks(root, level, config.tools, config.git_config_section)
    except BastionError as e:
        console.print(f"[red]Could not install hooks:[/red] {e}")
        raise typer.Exit(1) from e
    configure_protection(root, config.git_config_section, protection=True, strict=strict)
    for result in results:
        backup = f" (previous hook saved to {result.backup.name})" if result.backup else ""
        console.print(f"  {result.kind.value}: {result.action}{backup}")


@hooks_app.command("uninstall")
def hooks_uninstall(root: RootOption = Path("."), config_path: ConfigOption = None) -> None:
    """Remove bastion's hooks, restoring any hooks they replaced."""
    config = _load_config(root, config_path)
    removed = uninstall_hooks(root)
    configure_protection(root, config.git_config_section, protection=False, strict=False)
    if not removed:
        console.print("No bastion hooks installed")
    for path in removed:
        console.print(f"  removed {path.name}")


@hooks_app.command("show")
def hooks_show(
    kind: Annotated[HookKind, typer.Argument(help="Hook to print")] = HookKind.PRE_COMMIT,
    root: RootOption = Path("."),
    config_path: ConfigOption = None,
    strict: Annotated[bool, typer.Option("--strict", help="Render the zero-tolerance variant")] = False,
) -> None:
    """Print a hook script without installing it."""
    config = _load_config(root, config_path)
    level = EnforcementLevel.ZERO_TOLERANCE if strict else EnforcementLevel.ADVISORY
    print(generate_hook_script(kind, level, config.tools, config.git_config_section), end="")


@app.command()
def version() -> None:
    """Show the bastion version."""
    console.print(f"bastion {__version__}")


if __name__ == "__main__":
    app()
