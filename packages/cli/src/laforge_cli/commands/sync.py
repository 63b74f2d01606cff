"""sync command: write the PR snapshot and cache its attachments."""

from __future__ import annotations

import asyncio
import logging

import click
from rich.console import Console

from laforge_cli.env import require_api_settings
from laforge_core.config import pr_path
from laforge_core.errors import FatalContextError
from laforge_core.gitea.client import GiteaClient
from laforge_core.sync import sync_pr

console = Console()
logger = logging.getLogger(__name__)


async def _sync(config: dict):
    snapshot_path = pr_path(config, "snapshot_file")
    cache_dir = pr_path(config, "attachments_dir")
    async with GiteaClient.from_config(config) as client:
        return await sync_pr(client, config["pr_index"], snapshot_path, cache_dir)


@click.command("sync")
@click.pass_context
def sync_cmd(ctx):
    """Fetch the PR thread into the snapshot file the agent reads.

    \b
    Required environment variables:
      GITEA_API_URL, GITEA_TOKEN, GITEA_REPO_OWNER, GITEA_REPO_NAME, PR_INDEX
    """
    config = ctx.obj["config"]
    require_api_settings(config)

    try:
        snapshot = asyncio.run(_sync(config))
    except FatalContextError as e:
        logger.error("%s", e)
        raise click.ClickException(str(e))

    console.print(
        f"[green]Snapshot written to {pr_path(config, 'snapshot_file')}[/green] "
        f"({len(snapshot.comments)} comment(s), {len(snapshot.reviews)} review(s), "
        f"{len(snapshot.attachments)} attachment(s))",
        soft_wrap=True,
    )
