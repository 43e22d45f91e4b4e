"""Manifest validation and scoring commands"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List

import click
from rich.console import Console
from rich.table import Table
from rich import box
from rich.markup import escape

from planner.models.validation import ValidationIssue
from planner.quality import calculate_quality_score
from planner.validator import validate_manifest

console = Console()


def load_manifest_file(path: str) -> Dict[str, Any]:
    """Read a manifest JSON document, failing the command on bad input"""
    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{path} is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise click.ClickException(f"{path} must contain a JSON object")
    return data


def issues_table(title: str, issues: List[ValidationIssue], style: str) -> Table:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Path", style="cyan")
    table.add_column("Code", style=style)
    table.add_column("Message")
    for issue in issues:
        table.add_row(escape(issue.path), issue.code, escape(issue.message))
    return table


@click.command()
@click.argument("manifest_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def validate_cmd(manifest_file: str, as_json: bool):
    """Validate a production manifest"""

    document = load_manifest_file(manifest_file)
    result = validate_manifest(document)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        if result.errors:
            console.print(issues_table("Errors", result.errors, "red"))
        if result.warnings:
            console.print(issues_table("Warnings", result.warnings, "yellow"))

        if result.valid:
            console.print(f"[green]✓ Valid[/green] - quality score {calculate_quality_score(document):.2f}")
        else:
            console.print(f"[red]✗ Invalid[/red] - {len(result.errors)} error(s)")

    if not result.valid:
        sys.exit(1)


@click.command()
@click.argument("manifest_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def score_cmd(manifest_file: str, as_json: bool):
    """Show a manifest's quality score"""

    document = load_manifest_file(manifest_file)
    score = calculate_quality_score(document)

    if as_json:
        click.echo(json.dumps({"quality_score": score}))
        return

    console.print(f"Quality score: [bold]{score:.2f}[/bold]")
