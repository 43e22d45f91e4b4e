"""Job dependency graph command"""

import json

import click
from rich.console import Console
from rich.table import Table
from rich import box
from rich.markup import escape

from planner.execution.graph import JobGraph, edges_from_pairs
from planner.models.manifest import DependencyType, JobType
from planner_cli.validate import load_manifest_file

console = Console()

EDGE_STYLES = {
    DependencyType.BLOCKING.value: "══blocking══>",
    DependencyType.OPTIONAL.value: "──optional──>",
    DependencyType.PARALLEL.value: "··parallel··>",
}


def _graph_from_document(document: dict) -> JobGraph:
    """Build the graph straight from job dicts so broken manifests still show"""
    jobs = [j for j in document.get("jobs") or [] if isinstance(j, dict) and j.get("id")]
    pairs = []
    for job in jobs:
        for dep in job.get("dependencies") or []:
            if isinstance(dep, dict) and dep.get("job_id"):
                kind = DependencyType(dep.get("dependency_type") or "blocking")
                pairs.append((job["id"], dep["job_id"], kind))

    return JobGraph([j["id"] for j in jobs], edges_from_pairs(pairs))


@click.command()
@click.argument("manifest_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def graph_cmd(manifest_file: str, as_json: bool):
    """Show a manifest's job graph and execution waves"""

    document = load_manifest_file(manifest_file)
    try:
        graph = _graph_from_document(document)
    except ValueError as e:
        raise click.ClickException(f"Invalid dependency type: {e}")

    errors = graph.validate()
    waves = [] if graph.find_cycle() else graph.get_execution_waves()

    if as_json:
        click.echo(json.dumps({
            "jobs": graph.job_ids,
            "edges": [
                {"from": e.dependency, "to": e.dependent, "kind": e.kind.value}
                for e in graph.edges
            ],
            "waves": waves,
            "errors": errors,
        }, indent=2))
        return

    types = {
        j["id"]: j.get("type", "?")
        for j in document.get("jobs") or []
        if isinstance(j, dict) and j.get("id")
    }

    if waves:
        table = Table(title="Execution waves", box=box.ROUNDED)
        table.add_column("Wave", justify="right", style="cyan")
        table.add_column("Jobs")
        for i, wave in enumerate(waves, 1):
            table.add_row(str(i), ", ".join(f"{escape(j)} [dim]({escape(str(types.get(j)))})[/dim]" for j in wave))
        console.print(table)

    for edge in graph.edges:
        console.print(f"  {escape(f'[{edge.dependency}]')} {EDGE_STYLES[edge.kind.value]} {escape(f'[{edge.dependent}]')}")

    if not any(types.get(j) in (JobType.FINAL_ASSEMBLY.value, JobType.RENDERING.value) for j in graph.job_ids):
        console.print("[yellow]⚠ No final assembly job[/yellow]")

    for error in errors:
        console.print(f"[red]✗ {escape(error)}[/red]")
