"""
doomsetup — CLI entrypoint.

Usage:
    python -m doomsetup.main --help
    python -m doomsetup.main detect
    python -m doomsetup.main install --dry-run
"""

from __future__ import annotations

import json
import signal
import sys
from pathlib import Path

import click

from doomsetup import __version__
from doomsetup.core.models.plan import COMPONENTS, DeploymentMode, Step
from doomsetup.core.observability.logging_config import resolve_level, setup_from_env

_MODE_CHOICE = click.Choice([m.value for m in DeploymentMode])
_OUTCOME_MARKERS = {
    "succeeded": ("✅", "green"),
    "failed": ("❌", "red"),
    "timed_out": ("⏱", "red"),
    "cancelled": ("⊘", "yellow"),
    "skipped": ("○", "white"),
}


@click.group()
@click.version_option(version=__version__, prog_name="doomsetup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to doomsetup.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """doomsetup — plan, run and verify a development host installation."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_from_env(resolve_level(debug=debug, verbose=verbose, quiet=quiet))


# ── detect ──────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def detect(as_json: bool) -> None:
    """Detect host capabilities and recommend a deployment mode."""
    from doomsetup.core.use_cases.detect import run_detect

    result = run_detect()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.snapshot is not None and result.recommended_mode is not None
    click.secho("\n🔍 Host capabilities", fg="cyan", bold=True)
    for line in result.snapshot.summary().splitlines():
        click.echo(f"   {line}")

    tools = result.snapshot.tools
    if tools:
        click.echo()
        click.secho("   Tools:", fg="white", bold=True)
        for name, state in sorted(tools.items()):
            if not state.installed:
                click.echo(f"     ✗ {name}")
                continue
            extra = " (running)" if state.running else ""
            version = f" {state.version}" if state.version else ""
            click.echo(f"     ✓ {name}{version}{extra}")

    if result.snapshot.services:
        click.echo()
        click.secho("   Existing services:", fg="white", bold=True)
        for service in result.snapshot.services:
            state = "running" if service.running else "stopped"
            port = f" :{service.port}" if service.port else ""
            click.echo(f"     • {service.name}{port} [{service.kind.value}, {state}]")

    click.echo()
    click.echo("   Recommended mode: ", nl=False)
    click.secho(result.recommended_mode.value, fg="green", bold=True)
    _echo_warnings(result.warnings)
    click.echo()


# ── plan ────────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mode", type=_MODE_CHOICE, default=None, help="Deployment mode (default: recommended).")
@click.option("--skip", multiple=True, type=click.Choice(COMPONENTS), help="Component to leave out (repeatable).")
@click.pass_context
def plan(ctx: click.Context, as_json: bool, mode: str | None, skip: tuple[str, ...]) -> None:
    """Preview the installation plan."""
    from doomsetup.core.use_cases.plan import prepare_plan

    result = prepare_plan(
        config_path=ctx.obj.get("config_path"),
        mode=DeploymentMode(mode) if mode else None,
        skip=skip,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.plan is not None and result.selections is not None
    click.secho(f"\n📋 Installation plan ({result.selections.mode.value})", fg="cyan", bold=True)
    for index, step in enumerate(result.plan.steps, start=1):
        _echo_plan_step(index, step)
    _echo_warnings(result.warnings)
    click.echo()


def _echo_plan_step(index: int, step: Step) -> None:
    if step.skipped:
        click.secho(f"   {index:2}. ○ {step.name}  ({step.skip_reason})", fg="white", dim=True)
        return
    optional = " [optional]" if step.optional else ""
    click.echo(f"   {index:2}. ● {step.name}{optional} — {step.description}")


# ── install ─────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mode", type=_MODE_CHOICE, default=None, help="Deployment mode (default: recommended).")
@click.option("--skip", multiple=True, type=click.Choice(COMPONENTS), help="Component to leave out (repeatable).")
@click.option("--dry-run", is_flag=True, help="Show the commands without running them.")
@click.option("--mock", "mock_mode", is_flag=True, help="Run every step through a mock adapter.")
@click.pass_context
def install(
    ctx: click.Context,
    as_json: bool,
    mode: str | None,
    skip: tuple[str, ...],
    dry_run: bool,
    mock_mode: bool,
) -> None:
    """Run the installation plan.

    Ctrl-C requests cancellation: the running step is asked to stop
    and no further step starts. A second Ctrl-C aborts immediately.
    """
    from doomsetup.core.use_cases.install import run_install

    quiet = ctx.obj.get("quiet", False)
    current: dict[str, str] = {}

    def on_progress(position: int, total: int, step: Step, line: str) -> None:
        if current.get("step") != step.name:
            current["step"] = step.name
            click.secho(f"\n▶ [{position}/{total}] {step.description or step.name}", fg="cyan")
        if not quiet:
            click.echo(f"   {line}")

    previous_handler = signal.getsignal(signal.SIGINT)

    def on_executor(executor) -> None:
        def handle_sigint(signum, frame) -> None:
            click.secho("\n⊘ Cancelling — waiting for the current step to stop...", fg="yellow", err=True)
            executor.cancel()
            signal.signal(signal.SIGINT, signal.default_int_handler)

        signal.signal(signal.SIGINT, handle_sigint)

    try:
        result = run_install(
            config_path=ctx.obj.get("config_path"),
            mode=DeploymentMode(mode) if mode else None,
            skip=skip,
            dry_run=dry_run,
            mock_mode=mock_mode,
            on_progress=None if as_json else on_progress,
            on_executor=on_executor,
        )
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if result.dry_run:
        click.secho("\n📋 Dry run — commands that would run:", fg="cyan", bold=True)
        for line in result.commands:
            click.echo(f"   {line}")
        _echo_warnings(result.warnings)
        click.echo()
        return

    report = result.report
    assert report is not None
    click.secho(f"\n📊 Installation {report.status}", fg="green" if report.ok else "red", bold=True)
    for step_result in report.results:
        icon, color = _OUTCOME_MARKERS[step_result.outcome.value]
        detail = ""
        if step_result.outcome.value == "skipped":
            detail = f"  ({step_result.output})"
        elif step_result.duration_ms:
            detail = f"  ({step_result.duration_ms}ms)"
        click.secho(f"   {icon} {step_result.step}{detail}", fg=color)
        if step_result.error and step_result.outcome.value in ("failed", "timed_out"):
            for err_line in step_result.error.splitlines()[-5:]:
                click.echo(f"      {err_line}")

    if report.rollback:
        click.echo()
        click.secho("   Rollback:", fg="yellow", bold=True)
        for record in report.rollback:
            mark = "↩" if record.ok else "✗"
            click.echo(f"     {mark} {record.step}" + (f" — {record.error}" if record.error else ""))

    if report.error is not None:
        click.echo()
        click.secho(f"   {report.error}", fg="red")
        sys.exit(1)
    click.echo()


# ── health ──────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--strict", is_flag=True, help="Exit 1 when any check fails.")
@click.pass_context
def health(ctx: click.Context, as_json: bool, strict: bool) -> None:
    """Verify the installed services."""
    from doomsetup.core.use_cases.health import run_health

    result = run_health(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.error:
        click.secho(f"❌ {result.error}", fg="red")
    else:
        assert result.report is not None
        status = "healthy" if result.report.passed else "issues found"
        click.secho(f"\n🏥 Health: {status}", fg="green" if result.report.passed else "yellow", bold=True)
        for name, check in sorted(result.report.checks.items()):
            icon = "✅" if check.passed else "❌"
            click.echo(f"   {icon} {name}: {check.detail}")
        click.echo()

    if result.error:
        sys.exit(1)
    if strict and result.report is not None and not result.report.passed:
        sys.exit(1)


def _echo_warnings(warnings: list[str]) -> None:
    if not warnings:
        return
    click.echo()
    click.secho("⚠️  Warnings:", fg="yellow")
    for warning in warnings:
        click.echo(f"   • {warning}")


if __name__ == "__main__":
    cli()
