"""run command: run the agent with the model chosen by ``resolve``."""

from __future__ import annotations

import sys

import click
from rich.console import Console

from laforge_core.agents import AgentRegistry
from laforge_core.resolver import CRITIQUE_MODE, PRIMARY_MODE, AgentDecision
from laforge_core.runner import run_agent

console = Console()


@click.command("run")
@click.option("--agent-name", envvar="AGENT_NAME", default=None, help="Agent to run (defaults to the registry default).")
@click.option("--model-id", envvar="MODEL_ID", default=None, help="Model id; looked up from the agent name if omitted.")
@click.option(
    "--mode",
    envvar="AGENT_MODE",
    type=click.Choice([PRIMARY_MODE, CRITIQUE_MODE]),
    default=PRIMARY_MODE,
    show_default=True,
    help="Run mode chosen by resolve.",
)
@click.pass_context
def run_cmd(ctx, agent_name: str | None, model_id: str | None, mode: str):
    """Run the agent on the current PR checkout.

    Takes the resolve step's outputs as options or as the AGENT_NAME,
    MODEL_ID and AGENT_MODE environment variables.
    """
    config = ctx.obj["config"]
    registry = AgentRegistry.from_config(config)

    agent = agent_name or registry.default
    if model_id is None:
        if agent not in registry:
            raise click.UsageError(f"Unknown agent {agent!r}. Valid options: {', '.join(registry.names())}")
        model_id = registry.model_id(agent)

    decision = AgentDecision(agent=agent, model_id=model_id, mode=mode)
    try:
        returncode = run_agent(decision, config)
    except FileNotFoundError:
        raise click.ClickException(f"Agent executable {config.get('agent_command')!r} not found on PATH.")

    if returncode != 0:
        console.print(f"[red]Agent exited with status {returncode}[/red]")
        sys.exit(returncode)
