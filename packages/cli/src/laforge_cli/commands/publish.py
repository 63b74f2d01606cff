"""publish command: post the agent's status artifact back to the PR."""

from __future__ import annotations

import asyncio
import logging

import click
from rich.console import Console

from laforge_cli.env import require_api_settings
from laforge_core.config import pr_path
from laforge_core.errors import ArtifactParseError, GiteaError
from laforge_core.gitea.client import GiteaClient
from laforge_core.publisher import PublishResult, load_status_artifact, publish_status

console = Console()
logger = logging.getLogger(__name__)


def _build_ledger(config: dict):
    """Instantiate the publish ledger.

      dedupe_publish: true  (default) → JsonPublishLedger in pr_dir
      dedupe_publish: false           → NoOpLedger (every run publishes)
    """
    from laforge_store.json_file import JsonPublishLedger
    from laforge_store.noop import NoOpLedger

    if not config.get("dedupe_publish", True):
        return NoOpLedger()
    return JsonPublishLedger(pr_path(config, "ledger_file"))


async def _publish(config: dict, artifact, ledger, force: bool) -> PublishResult:
    async with GiteaClient.from_config(config) as client:
        return await publish_status(client, config["pr_index"], artifact, ledger, force=force)


@click.command("publish")
@click.option("--force", is_flag=True, help="Publish even if this exact artifact was published before.")
@click.pass_context
def publish_cmd(ctx, force: bool):
    """Post .pr/status.yaml (or legacy .pr/status.md) to the PR.

    \b
    Required environment variables:
      GITEA_API_URL, GITEA_TOKEN, GITEA_REPO_OWNER, GITEA_REPO_NAME, PR_INDEX
    """
    config = ctx.obj["config"]
    require_api_settings(config)

    try:
        artifact = load_status_artifact(pr_path(config, "status_file"), pr_path(config, "legacy_status_file"))
    except ArtifactParseError as e:
        logger.error("Error parsing status artifact: %s", e)
        raise click.ClickException(str(e))

    if artifact is None:
        console.print("[yellow]No status file found, skipping status post.[/yellow]")
        return

    try:
        result = asyncio.run(_publish(config, artifact, _build_ledger(config), force))
    except GiteaError as e:
        logger.error("Error posting status: %s", e)
        raise click.ClickException(str(e))

    if result.duplicate:
        console.print(
            "[yellow]This status was already published; nothing to do. Use --force to re-post.[/yellow]",
            soft_wrap=True,
        )
        return

    summary = f"{result.inline_posted} inline comment(s) posted"
    if result.inline_failed:
        summary += f", {result.inline_failed} failed"
    if result.inline_invalid:
        summary += f", {result.inline_invalid} invalid skipped"
    console.print(f"[green]Status processing completed successfully[/green] ({summary})", soft_wrap=True)
