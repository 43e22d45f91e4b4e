"""Production Planner CLI"""

import logging

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from .validate import validate_cmd, score_cmd
from .flags import flags_cmd
from .run import run_cmd
from .graph import graph_cmd

# Load .env file at CLI startup
load_dotenv()


@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", is_flag=True, help="Show planner logs on stderr")
def main(verbose: bool):
    """Production Planner - manifest validation and job orchestration

    \b
    Quick Start:
      production-planner validate manifest.json
      production-planner run manifest.json --profile marketing_dynamic

    \b
    Commands:
      validate  Validate a production manifest
      score     Show a manifest's quality score
      graph     Show the job dependency graph
      run       Produce a manifest with mock workers
      flags     Show governance flags and profiles
    """
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
        )
    else:
        # Failures are already in the command output
        logging.getLogger("planner").addHandler(logging.NullHandler())


# Manifest commands
main.add_command(validate_cmd, name="validate")
main.add_command(score_cmd, name="score")
main.add_command(graph_cmd, name="graph")

# Production commands
main.add_command(run_cmd, name="run")
main.add_command(flags_cmd, name="flags")


if __name__ == "__main__":
    main()
