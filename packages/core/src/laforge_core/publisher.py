"""Status publication: the agent's status artifact -> PR comments and assignees.

The agent writes ``.pr/status.yaml``:

    status: |
      Markdown posted as a top-level PR comment.
    file_comments:
      - file: src/app.py
        line: 42
        comment: Inline comment on that line.
    unassign: true

A plain ``.pr/status.md`` is still accepted and posted as the status text.
Publishing is not transactional; each inline comment and the unassign step
succeed or fail on their own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from laforge_core.errors import ArtifactParseError, GiteaError, PublishItemError
from laforge_core.models import FileComment, StatusArtifact
from laforge_store.base import BasePublishLedger
from laforge_store.noop import NoOpLedger

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    status_posted: bool = False
    inline_posted: int = 0
    inline_failed: int = 0
    inline_invalid: int = 0
    unassigned: bool = False
    unassign_failed: bool = False
    duplicate: bool = False  # skipped because the same artifact was already published


def _coerce_line(value) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        line = int(value)
    except (TypeError, ValueError):
        return None
    return line if line > 0 else None


def _file_comment_from_raw(raw) -> FileComment:
    if not isinstance(raw, dict):
        return FileComment(file="", line=None, comment="")
    return FileComment(
        file=str(raw.get("file") or "").strip(),
        line=_coerce_line(raw.get("line")),
        comment=str(raw.get("comment") or "").strip(),
    )


def parse_status_yaml(text: str) -> StatusArtifact:
    """Parse the structured status artifact; raise ArtifactParseError if malformed."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ArtifactParseError(f"status.yaml is not valid YAML: {e}") from e

    if data is None:
        return StatusArtifact()
    if not isinstance(data, dict):
        raise ArtifactParseError(f"status.yaml must be a mapping, got {type(data).__name__}")

    status = data.get("status")
    if status is not None and not isinstance(status, str):
        raise ArtifactParseError(f"'status' must be a string, got {type(status).__name__}")

    raw_comments = data.get("file_comments") or []
    if not isinstance(raw_comments, list):
        raise ArtifactParseError(f"'file_comments' must be a list, got {type(raw_comments).__name__}")

    return StatusArtifact(
        status=status or None,
        file_comments=tuple(_file_comment_from_raw(c) for c in raw_comments),
        unassign=bool(data.get("unassign", False)),
    )


def load_status_artifact(status_path: Path, legacy_path: Path) -> StatusArtifact | None:
    """Load the status artifact, preferring the structured file.

    Returns None when the agent produced neither file.
    """
    status_path, legacy_path = Path(status_path), Path(legacy_path)
    if status_path.exists():
        logger.info("Found %s, using structured format", status_path)
        return parse_status_yaml(status_path.read_text(encoding="utf-8"))
    if legacy_path.exists():
        logger.info("Found %s (legacy format), consider migrating to %s", legacy_path, status_path.name)
        text = legacy_path.read_text(encoding="utf-8")
        return StatusArtifact(status=text if text.strip() else None, legacy=True)
    return None


async def _post_file_comment(client, pr_index: int, fc: FileComment) -> None:
    try:
        pr = await client.get_pull(pr_index)
        head_sha = (pr.get("head") or {}).get("sha")
        await client.create_review(
            pr_index,
            body=fc.comment,
            comments=[{"path": fc.file, "body": fc.comment, "new_position": fc.line}],
            commit_id=head_sha,
        )
    except GiteaError as e:
        raise PublishItemError(f"Failed to post comment on {fc.file}:{fc.line}: {e}") from e


async def publish_status(
    client,
    pr_index: int,
    artifact: StatusArtifact,
    ledger: BasePublishLedger | None = None,
    force: bool = False,
) -> PublishResult:
    """Publish ``artifact`` to PR ``pr_index``.

    Order: status comment, inline comments, unassign. A failure posting the
    status comment propagates; inline comment and unassign failures are
    logged and do not stop the remaining steps. ``force`` skips the ledger
    check but the digest is still recorded.
    """
    ledger = ledger or NoOpLedger()
    result = PublishResult()

    digest = artifact.digest()
    if not force and ledger.contains(digest, pr_index):
        logger.info("Identical status artifact already published to PR #%d, skipping", pr_index)
        result.duplicate = True
        return result

    if artifact.status:
        await client.create_issue_comment(pr_index, artifact.status)
        result.status_posted = True
        logger.info("Status comment posted to PR")

    if artifact.file_comments:
        logger.info("Processing %d file comment(s)...", len(artifact.file_comments))
    for fc in artifact.file_comments:
        if not fc.is_valid:
            logger.warning("Skipping invalid file comment (missing file, line, or comment): %s", fc)
            result.inline_invalid += 1
            continue
        try:
            await _post_file_comment(client, pr_index, fc)
        except PublishItemError as e:
            logger.error("%s", e)
            result.inline_failed += 1
            continue
        result.inline_posted += 1
        logger.info("Posted comment on %s:%d", fc.file, fc.line)

    if artifact.unassign:
        try:
            await client.set_assignees(pr_index, [])
            result.unassigned = True
            logger.info("Cleared assignees on PR #%d", pr_index)
        except GiteaError as e:
            logger.error("Failed to clear assignees on PR #%d: %s", pr_index, e)
            result.unassign_failed = True

    try:
        ledger.record(digest, pr_index)
    except OSError as e:
        # Everything is already on the PR; losing the ledger entry only risks a re-post.
        logger.warning("Could not record published artifact: %s", e)
    return result
