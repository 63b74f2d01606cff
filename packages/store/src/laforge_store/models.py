"""Persisted state models.

Decoupled from laforge_core so the store layer can be used independently
and laforge_core has no knowledge of file formats.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AgentSessionConfig:
    """The agent selection that outlives a single invocation.

    Written only when an ``/agent`` directive names a registered agent.
    """

    primary_agent: str
    last_updated: str  # ISO-8601 UTC timestamp
    updated_by: str

    @classmethod
    def default(cls, agent: str) -> AgentSessionConfig:
        return cls(primary_agent=agent, last_updated=utc_now(), updated_by="system")


@dataclass
class PublishRecord:
    """One status artifact that has already been published to a PR."""

    digest: str  # SHA-256 of the artifact content
    pr_index: int
    published_at: str  # ISO-8601 UTC timestamp
