"""CLI entry point for realty-intake."""

import sys
from pathlib import Path

import click

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cli.commands import generate, knowledge, offers, serve, stories, tenants
from cli.config import load_config_model
from cli.logging_config import setup_logging


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
def cli(verbose: bool, json_logs: bool):
    """Realty intake: personalized offers for real-estate leads."""
    try:
        config = load_config_model()
    except ValueError as e:
        raise click.ClickException(str(e))
    level = "DEBUG" if verbose else config.logging.level
    setup_logging(json_mode=json_logs or config.logging.json_mode, level=level, log_file=config.paths.log_file)


cli.add_command(offers)
cli.add_command(generate)
cli.add_command(tenants)
cli.add_command(knowledge)
cli.add_command(stories)
cli.add_command(serve)


if __name__ == "__main__":
    cli()
