"""Run a manifest against mock generation workers"""

import asyncio
import json
import sys
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box
from rich.markup import escape

from planner.config import GovernanceConfig
from planner.errors import ManifestValidationError, ProductionPlannerError
from planner.execution.scheduler import JobScheduler, SchedulerConfig, SchedulerReport
from planner.governance import GovernanceEngine
from planner.models.manifest import JobType
from planner.planner import ProductionPlanner
from planner.repository import InMemoryManifestRepository, LocalManifestRepository
from planner.workers import MockGenerationWorker
from planner_cli.validate import load_manifest_file

console = Console()

JOB_TYPE_CHOICES = [t.value for t in JobType]


async def _run_manifest(
    document: dict,
    user_id: str,
    profile: Optional[str],
    fail_types: Tuple[str, ...],
    store: Optional[str],
) -> SchedulerReport:
    config = GovernanceConfig.from_env()
    governance = GovernanceEngine(config)
    repository = LocalManifestRepository(store) if store else InMemoryManifestRepository()

    scheduler = JobScheduler(
        workers=MockGenerationWorker(fail_types=[JobType(t) for t in fail_types]),
        governance=governance,
        config=SchedulerConfig(max_concurrent_jobs=config.max_concurrent_jobs, backoff_seconds=0),
        repository=repository,
    )
    planner = ProductionPlanner(repository, scheduler)

    record = await planner.create_manifest(document, user_id=user_id, profile_id=profile)
    await planner.approve(record.id)
    return await planner.produce(record.id)


def print_report(report: SchedulerReport):
    status_style = "green" if report.succeeded else "red"
    console.print(Panel.fit(
        f"[bold]Manifest {report.manifest_id}[/bold]\n"
        f"Status: [{status_style}]{report.status.value}[/{status_style}]\n"
        f"Cost: ${report.total_cost:.2f}",
        border_style=status_style,
    ))

    table = Table(title="Jobs", box=box.ROUNDED)
    table.add_column("Job", style="cyan")
    table.add_column("Outcome")
    table.add_column("Attempts", justify="right")
    table.add_column("Detail")

    for job_id in report.completed_jobs:
        table.add_row(escape(job_id), "[green]completed[/green]", str(report.attempts.get(job_id, 1)), "")
    for job_id, error in report.failed_jobs.items():
        table.add_row(escape(job_id), "[red]failed[/red]", str(report.attempts.get(job_id, 0)), escape(error))
    for job_id, reason in report.rejected_jobs.items():
        table.add_row(escape(job_id), "[red]rejected[/red]", "0", escape(reason))
    for job_id, root in report.blocked_jobs.items():
        table.add_row(escape(job_id), "[yellow]blocked[/yellow]", "0", escape(f"waiting on {root}"))
    for job_id in report.cancelled_jobs:
        table.add_row(escape(job_id), "[dim]cancelled[/dim]", str(report.attempts.get(job_id, 0)), "")
    console.print(table)

    for warning in report.warnings:
        console.print(f"[yellow]⚠ {escape(warning)}[/yellow]")
    if report.scene_order:
        console.print(f"Assembly order: {' → '.join(report.scene_order)}")
    if report.error_message:
        console.print(f"[red]{escape(report.error_message)}[/red]")


@click.command()
@click.argument("manifest_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--profile", "-p", default=None, help="Creative profile for governance")
@click.option("--user", "user_id", default="local", help="Owner user id")
@click.option("--fail", "fail_types", multiple=True, type=click.Choice(JOB_TYPE_CHOICES),
              help="Make mock workers fail this job type (repeatable)")
@click.option("--store", type=click.Path(file_okay=False), default=None,
              help="Keep manifests as JSON files in this directory")
@click.option("--json", "as_json", is_flag=True, help="Output results as JSON")
def run_cmd(
    manifest_file: str,
    profile: Optional[str],
    user_id: str,
    fail_types: Tuple[str, ...],
    store: Optional[str],
    as_json: bool,
):
    """Validate, approve and produce a manifest with mock workers

    \b
    Examples:
      production-planner run manifest.json
      production-planner run manifest.json -p educational_explainer
      production-planner run manifest.json --fail voiceover_generation
    """

    document = load_manifest_file(manifest_file)

    try:
        report = asyncio.run(_run_manifest(document, user_id, profile, fail_types, store))
    except ManifestValidationError as e:
        if as_json:
            click.echo(json.dumps(e.to_dict(), indent=2))
        else:
            console.print("[red]✗ Manifest is invalid[/red]")
            for error in e.validation_errors:
                console.print(f"  • {escape(error)}")
        sys.exit(1)
    except ProductionPlannerError as e:
        raise click.ClickException(f"{e.code}: {e.message}")

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report)

    if not report.succeeded:
        sys.exit(1)
