"""PR context synchronization: Gitea thread -> snapshot document for the agent."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from pathlib import Path

from laforge_core.errors import FatalContextError, GiteaError
from laforge_core.models import ConversationComment, PRSnapshot, Review, ReviewComment
from laforge_core.utils.attachments import AttachmentCache, collect_asset_names

logger = logging.getLogger(__name__)


def _login(obj: dict | None) -> str:
    # Deleted accounts come back as a null user.
    return ((obj or {}).get("login")) or "ghost"


def _comment_from_api(d: dict) -> ConversationComment:
    return ConversationComment(
        id=d.get("id", 0),
        author=_login(d.get("user")),
        created_at=d.get("created_at", ""),
        body=d.get("body") or "",
    )


def _review_comment_from_api(d: dict) -> ReviewComment:
    return ReviewComment(
        id=d.get("id", 0),
        author=_login(d.get("user")),
        path=d.get("path", ""),
        position=d.get("position") or d.get("original_position") or None,
        body=d.get("body") or "",
    )


def _review_from_api(d: dict, comments: list[dict]) -> Review:
    return Review(
        id=d.get("id", 0),
        author=_login(d.get("user")),
        state=d.get("state", ""),
        submitted_at=d.get("submitted_at", ""),
        body=d.get("body") or "",
        comments=tuple(_review_comment_from_api(c) for c in comments),
    )


async def _fetch_review_comments(client, pr_index: int, review_id: int) -> list[dict]:
    try:
        return await client.list_review_comments(pr_index, review_id)
    except GiteaError as e:
        logger.warning("Could not fetch comments for review %s: %s", review_id, e)
        return []


async def fetch_snapshot(client, pr_index: int, cache_dir: Path, link_base: Path) -> PRSnapshot:
    """Fetch the PR thread and return a snapshot with attachments cached locally.

    Raises FatalContextError if the PR, its comments or its reviews cannot be
    fetched. Inline review comments and attachments degrade per item.
    """
    try:
        pr = await client.get_pull(pr_index)
        raw_comments = await client.list_issue_comments(pr_index)
        raw_reviews = await client.list_reviews(pr_index)
    except GiteaError as e:
        raise FatalContextError(f"Could not fetch PR #{pr_index} context: {e}") from e

    review_comments = await asyncio.gather(*(_fetch_review_comments(client, pr_index, r["id"]) for r in raw_reviews))

    snapshot = PRSnapshot(
        index=pr_index,
        title=pr.get("title", ""),
        author=_login(pr.get("user")),
        head_branch=(pr.get("head") or {}).get("ref", ""),
        base_branch=(pr.get("base") or {}).get("ref", ""),
        head_sha=(pr.get("head") or {}).get("sha", ""),
        created_at=pr.get("created_at", ""),
        description=pr.get("body") or "",
        comments=tuple(_comment_from_api(c) for c in raw_comments),
        reviews=tuple(_review_from_api(r, rc) for r, rc in zip(raw_reviews, review_comments)),
    )

    cache = AttachmentCache(client, cache_dir, link_base, collect_asset_names(pr, *raw_comments))
    return await _rewrite_attachments(snapshot, cache)


async def _rewrite_attachments(snapshot: PRSnapshot, cache: AttachmentCache) -> PRSnapshot:
    """Rewrite attachment links in every text field, keeping document order."""
    description, comment_bodies, review_bodies, inline_bodies = await asyncio.gather(
        cache.rewrite(snapshot.description),
        asyncio.gather(*(cache.rewrite(c.body) for c in snapshot.comments)),
        asyncio.gather(*(cache.rewrite(r.body) for r in snapshot.reviews)),
        asyncio.gather(
            *(asyncio.gather(*(cache.rewrite(c.body) for c in r.comments)) for r in snapshot.reviews)
        ),
    )
    return replace(
        snapshot,
        description=description,
        comments=tuple(replace(c, body=b) for c, b in zip(snapshot.comments, comment_bodies)),
        reviews=tuple(
            replace(
                r,
                body=body,
                comments=tuple(replace(c, body=cb) for c, cb in zip(r.comments, bodies)),
            )
            for r, body, bodies in zip(snapshot.reviews, review_bodies, inline_bodies)
        ),
        attachments=dict(cache.files),
    )


def render_snapshot(snapshot: PRSnapshot) -> str:
    """Render a snapshot as the markdown document the agent reads."""
    lines = [f"# PR #{snapshot.index}: {snapshot.title}", ""]
    lines.append(f"**Author:** {snapshot.author}")
    if snapshot.head_branch:
        lines.append(f"**Branch:** {snapshot.head_branch} → {snapshot.base_branch}")
    if snapshot.head_sha:
        lines.append(f"**Head:** `{snapshot.head_sha}`")
    lines.append(f"**Created:** {snapshot.created_at}")
    lines.append("")
    lines.append("## PR Description")
    lines.append(snapshot.description)
    lines.append("")

    lines.append("## Conversation Comments")
    for c in snapshot.comments:
        lines.append("")
        lines.append(f"**{c.author}** ({c.created_at}):")
        lines.append(c.body)

    lines.append("")
    lines.append("## Reviews")
    for r in snapshot.reviews:
        lines.append("")
        lines.append(f"### {r.author} - {r.state} ({r.submitted_at})")
        if r.body:
            lines.append(r.body)
        if r.comments:
            lines.append("")
            lines.append("#### Review Comments:")
            for c in r.comments:
                location = f" (line {c.position})" if c.position else ""
                lines.append("")
                lines.append(f"**{c.author}** on `{c.path}`{location}:")
                lines.append(c.body)

    if snapshot.attachments:
        lines.append("")
        lines.append("## Attachments")
        for name in sorted(snapshot.attachments):
            lines.append(f"- `{name}`")

    return "\n".join(lines) + "\n"


async def sync_pr(client, pr_index: int, snapshot_path: Path, cache_dir: Path) -> PRSnapshot:
    """Fetch the PR thread, cache attachments and write the snapshot file."""
    snapshot_path = Path(snapshot_path)
    snapshot = await fetch_snapshot(client, pr_index, cache_dir, link_base=snapshot_path.parent)
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    snapshot_path.write_text(render_snapshot(snapshot), encoding="utf-8")
    logger.info(
        "Wrote %s: %d comment(s), %d review(s), %d attachment(s)",
        snapshot_path,
        len(snapshot.comments),
        len(snapshot.reviews),
        len(snapshot.attachments),
    )
    return snapshot
