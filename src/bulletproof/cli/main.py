"""Main Click CLI entry point for the bulletproof command.

Provides the ``bulletproof`` CLI group with read-only subcommands for
inspecting what a pre-push run would do in a project.

Entry point registered in pyproject.toml::

    [project.scripts]
    bulletproof = "bulletproof.cli.main:cli"

Usage examples::

    bulletproof --version
    bulletproof config
    bulletproof discover --json-output
    bulletproof --cwd /path/to/repo analyze
    bulletproof plan
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click

from bulletproof import __version__
from bulletproof.config import VALID_LOG_LEVELS, BulletproofConfig, load_config
from bulletproof.diff.analyzer import DiffAnalysis, analyze_diff
from bulletproof.discovery.orchestrator import format_discovery_summary, run_discovery
from bulletproof.hooks.pre_push import build_plan


@click.group()
@click.version_option(version=__version__, prog_name="bulletproof")
@click.option(
    "--cwd",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Project root to inspect. Defaults to the current directory.",
)
@click.option(
    "--log-level",
    type=click.Choice(sorted(VALID_LOG_LEVELS), case_sensitive=False),
    default=None,
    help="Enable logging to stderr at this level.",
)
@click.pass_context
def cli(ctx: click.Context, cwd: Optional[str], log_level: Optional[str]) -> None:
    """BULLETPROOF -- pre-push guardian for JavaScript/TypeScript projects."""
    root = Path(cwd) if cwd else Path.cwd()
    config = load_config(root)
    if log_level:
        config.log_level = log_level.upper()
        config.configure_logging()

    ctx.ensure_object(dict)
    ctx.obj["cwd"] = root
    ctx.obj["config"] = config


@cli.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Print the merged configuration as JSON."""
    config: BulletproofConfig = ctx.obj["config"]
    click.echo(json.dumps(config.to_dict(), indent=2))


@cli.command()
@click.option(
    "--json-output",
    "output_json",
    is_flag=True,
    default=False,
    help="Output discovery results as JSON instead of human-readable text.",
)
@click.pass_context
def discover(ctx: click.Context, output_json: bool) -> None:
    """Show discovered convention files and check scripts."""
    config: BulletproofConfig = ctx.obj["config"]
    result = run_discovery(ctx.obj["cwd"], config.discovery)

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.secho("Discovery", fg="cyan", bold=True)
    click.secho("=" * 20, fg="cyan")
    click.echo(format_discovery_summary(result))


@cli.command()
@click.option(
    "--json-output",
    "output_json",
    is_flag=True,
    default=False,
    help="Output the analysis as JSON instead of human-readable text.",
)
@click.pass_context
def analyze(ctx: click.Context, output_json: bool) -> None:
    """Analyse the current diff and show which checks would run."""
    config: BulletproofConfig = ctx.obj["config"]
    analysis = analyze_diff(config, ctx.obj["cwd"])

    if output_json:
        click.echo(json.dumps(analysis.to_dict(), indent=2))
    else:
        _render_analysis_text(analysis)


@cli.command()
@click.option(
    "--json-output",
    "output_json",
    is_flag=True,
    default=False,
    help="Output the full plan as JSON instead of the task description.",
)
@click.pass_context
def plan(ctx: click.Context, output_json: bool) -> None:
    """Print the task description a fixer would receive."""
    result = build_plan(ctx.obj["cwd"], ctx.obj["config"])

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        click.echo(result.task.prompt, nl=False)


# ---------------------------------------------------------------------------
# Text rendering
# ---------------------------------------------------------------------------


def _render_analysis_text(analysis: DiffAnalysis) -> None:
    click.secho("Diff Analysis", fg="cyan", bold=True)
    click.secho("=" * 20, fg="cyan")
    click.echo(f"Reason: {analysis.reason}")
    click.echo(
        f"Changed: {len(analysis.files)} file(s), "
        f"+{analysis.additions} -{analysis.deletions}"
    )
    click.echo()

    click.secho("Checks", fg="blue", bold=True)
    click.secho("-" * 20, fg="blue")
    for name in analysis.checks.enabled():
        click.secho(f"  [run]  {name.value}", fg="green")
    for name in analysis.checks.disabled():
        click.secho(f"  [skip] {name.value}", fg="yellow")

    if analysis.use_related_tests and analysis.related_files:
        click.echo()
        click.secho("Related files", fg="magenta", bold=True)
        click.secho("-" * 20, fg="magenta")
        for path in analysis.related_files:
            click.echo(f"  {path}")


if __name__ == "__main__":
    cli()
