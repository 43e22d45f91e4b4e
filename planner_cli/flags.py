"""Governance flags command"""

import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from rich import box
from rich.markup import escape

from planner.config import GovernanceConfig
from planner.governance import GovernanceEngine

console = Console()


@click.command()
@click.option("--profile", "-p", default=None, help="Creative profile to resolve")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def flags_cmd(profile: Optional[str], as_json: bool):
    """Show governance flags (from the environment) and profile overrides"""

    engine = GovernanceEngine(GovernanceConfig.from_env())

    if as_json:
        if profile:
            click.echo(json.dumps(engine.flags_for_profile(profile).to_dict(), indent=2))
        else:
            click.echo(json.dumps(engine.summary(), indent=2))
        return

    if profile and profile not in engine.config.profile_overrides:
        console.print(f"[yellow]Unknown profile '{escape(profile)}', showing global flags[/yellow]")

    flags = engine.flags_for_profile(profile).to_dict()
    flags.pop("profile_overrides")

    table = Table(title=f"Governance flags ({profile or 'global'})", box=box.ROUNDED)
    table.add_column("Flag", style="cyan")
    table.add_column("Value")
    for key, value in flags.items():
        if isinstance(value, bool):
            value = "[green]on[/green]" if value else "[dim]off[/dim]"
        table.add_row(key, str(value))
    console.print(table)

    if not profile:
        profiles = Table(title="Profiles", box=box.ROUNDED)
        profiles.add_column("Profile", style="cyan")
        profiles.add_column("Mode")
        profiles.add_column("Max cost/job", justify="right")
        profiles.add_column("Max total cost", justify="right")
        for name in engine.config.profile_overrides:
            resolved = engine.flags_for_profile(name)
            profiles.add_row(
                name,
                resolved.prompt_enhancement_mode.value,
                f"${resolved.max_cost_per_job:.2f}",
                f"${resolved.max_total_cost:.2f}",
            )
        console.print(profiles)
