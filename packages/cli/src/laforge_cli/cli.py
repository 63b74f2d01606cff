"""CLI entry point for laforge.

Commands, in workflow order:
  sync: write the PR snapshot the agent reads
  resolve: pick the agent, model and mode for this invocation
  run: run the agent with the resolved model
  publish: post the agent's status artifact back to the PR
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from laforge_cli.commands.publish import publish_cmd
from laforge_cli.commands.resolve import resolve_cmd
from laforge_cli.commands.run import run_cmd
from laforge_cli.commands.sync import sync_cmd

console = Console()
logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    """Send log records to stderr so stdout stays free for step outputs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO; our client already logs them at DEBUG.
    logging.getLogger("httpx").setLevel(logging.WARNING)


@click.group()
@click.version_option(
    version=importlib.metadata.version("laforge"),
    prog_name="laforge",
)
@click.option(
    "--config",
    "config_path",
    default=".laforge.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="LAFORGE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log HTTP requests and other debug detail.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Drive an AI agent from Gitea pull-request threads."""
    from laforge_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except (yaml.YAMLError, OSError, ValueError) as e:
        # resolve must always hand the workflow an agent, so it runs on defaults.
        if ctx.invoked_subcommand != "resolve":
            raise click.ClickException(f"Could not load {config_path}: {e}")
        logger.error("Could not load %s, using built-in defaults: %s", config_path, e)
        config = load_config(None)
    ctx.obj["config"] = config


main.add_command(sync_cmd)
main.add_command(resolve_cmd)
main.add_command(run_cmd)
main.add_command(publish_cmd)
