"""Abstract store interfaces.

The resolver and publisher depend on these interfaces, not on the JSON file
backends, so tests and alternative backends can be swapped in freely.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from laforge_store.models import AgentSessionConfig


class BaseSessionStore(ABC):
    """Persistence for the primary-agent selection.

    There is no locking: invocations for one PR are assumed to be serialized
    by the workflow runner, and the last writer wins.
    """

    @abstractmethod
    def load(self) -> AgentSessionConfig | None:
        """Return the persisted record, or None if there is no usable record."""

    @abstractmethod
    def save(self, config: AgentSessionConfig) -> None:
        """Persist ``config``, replacing any previous record."""


class BasePublishLedger(ABC):
    """Digests of status artifacts that were already published."""

    @abstractmethod
    def contains(self, digest: str, pr_index: int) -> bool:
        """Return True if an artifact with ``digest`` was published to ``pr_index``."""

    @abstractmethod
    def record(self, digest: str, pr_index: int) -> None:
        """Remember that an artifact with ``digest`` was published to ``pr_index``."""
