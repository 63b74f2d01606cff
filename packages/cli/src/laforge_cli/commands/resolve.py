"""resolve command: choose the agent, model and mode for this invocation."""

from __future__ import annotations

import asyncio
import logging

import click

from laforge_core.agents import AgentRegistry
from laforge_core.config import missing_api_settings, pr_path
from laforge_core.gitea.client import GiteaClient
from laforge_core.resolver import AgentDecision, default_decision, resolve_agent
from laforge_store.json_file import JsonSessionStore

logger = logging.getLogger(__name__)


def _build_registry(config: dict) -> AgentRegistry:
    try:
        return AgentRegistry.from_config(config)
    except (ValueError, AttributeError) as e:
        logger.error("Invalid agent registry in config, using built-in agents: %s", e)
        return AgentRegistry()


async def _resolve(config: dict, registry: AgentRegistry) -> AgentDecision:
    store = JsonSessionStore(pr_path(config, "session_file"))
    comment_id = config.get("comment_id")

    if comment_id is not None:
        missing = missing_api_settings(config)
        if missing:
            logger.error("Cannot fetch comment %s, missing %s", comment_id, ", ".join(missing))
            comment_id = None

    if comment_id is None:
        return await resolve_agent(None, store, registry)
    async with GiteaClient.from_config(config) as client:
        return await resolve_agent(client, store, registry, comment_id=comment_id)


def write_step_outputs(outputs: dict[str, str], output_path: str | None) -> None:
    """Append ``key=value`` lines to the Actions step-output file, if there is one."""
    if not output_path:
        return
    try:
        with open(output_path, "a", encoding="utf-8") as f:
            for name, value in outputs.items():
                f.write(f"{name}={value}\n")
    except OSError as e:
        logger.error("Could not write step outputs to %s: %s", output_path, e)


@click.command("resolve")
@click.pass_context
def resolve_cmd(ctx):
    """Resolve /agent and /critique directives into the agent for this run.

    Reads the triggering comment named by COMMENT_ID (if set) and the persisted
    agent selection. Always succeeds: on any error the default agent is used.

    \b
    Outputs (stdout and $GITHUB_OUTPUT):
      agent_mode, agent_name, model_id
    """
    config = ctx.obj["config"]
    registry = _build_registry(config)

    try:
        decision = asyncio.run(_resolve(config, registry))
    except Exception as e:
        # A broken resolution path must never block the automation.
        logger.error("Fatal error resolving agent, falling back to %s: %s", registry.default, e)
        decision = default_decision(registry)

    logger.info("Agent mode: %s", decision.mode)
    logger.info("Agent name: %s", decision.agent)
    logger.info("Model ID: %s", decision.model_id)

    outputs = decision.outputs()
    for name, value in outputs.items():
        click.echo(f"{name}={value}")
    write_step_outputs(outputs, config.get("github_output"))
