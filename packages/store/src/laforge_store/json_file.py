"""JSON file backends for the session config and the publish ledger.

Both files live in the PR working directory (``.pr/`` by default) so they
travel with the branch between workflow invocations. Writes go to a
temporary file in the same directory and are moved into place with
os.replace, so a crash mid-write never leaves a truncated file behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from laforge_store.base import BasePublishLedger, BaseSessionStore
from laforge_store.models import AgentSessionConfig, PublishRecord, utc_now

logger = logging.getLogger(__name__)


def atomic_write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class JsonSessionStore(BaseSessionStore):
    """Stores the primary-agent selection in ``agent-config.json``.

    Written keys are camelCase (``primaryAgent``, ``lastUpdated``,
    ``updatedBy``). Files written by the earlier workflow scripts use
    snake_case keys and are still read.
    """

    def __init__(self, path: str | Path = ".pr/agent-config.json"):
        self.path = Path(path)

    def load(self) -> AgentSessionConfig | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read agent config %s: %s", self.path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring agent config %s: expected a JSON object", self.path)
            return None

        primary = data.get("primaryAgent") or data.get("primary_agent")
        if not primary:
            logger.warning("Ignoring agent config %s: no primary agent set", self.path)
            return None
        return AgentSessionConfig(
            primary_agent=primary,
            last_updated=data.get("lastUpdated") or data.get("last_updated") or "",
            updated_by=data.get("updatedBy") or data.get("updated_by") or "",
        )

    def save(self, config: AgentSessionConfig) -> None:
        atomic_write_json(
            self.path,
            {
                "primaryAgent": config.primary_agent,
                "lastUpdated": config.last_updated,
                "updatedBy": config.updated_by,
            },
        )
        logger.info("Updated agent config: %s", config.primary_agent)


class JsonPublishLedger(BasePublishLedger):
    """Append-only JSON array of PublishRecords in ``published.json``."""

    def __init__(self, path: str | Path = ".pr/published.json"):
        self.path = Path(path)

    def contains(self, digest: str, pr_index: int) -> bool:
        return any(r.digest == digest and r.pr_index == pr_index for r in self._read_records())

    def record(self, digest: str, pr_index: int) -> None:
        records = self._read_records()
        records.append(PublishRecord(digest=digest, pr_index=pr_index, published_at=utc_now()))
        atomic_write_json(
            self.path,
            [{"digest": r.digest, "prIndex": r.pr_index, "publishedAt": r.published_at} for r in records],
        )

    def _read_records(self) -> list[PublishRecord]:
        """Read the ledger, treating a missing or corrupt file as empty."""
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read publish ledger %s: %s", self.path, e)
            return []
        if not isinstance(data, list):
            return []
        return [
            PublishRecord(
                digest=d.get("digest", ""),
                pr_index=d.get("prIndex", 0),
                published_at=d.get("publishedAt", ""),
            )
            for d in data
            if isinstance(d, dict)
        ]
