"""No-op ledger, used when ``dedupe_publish`` is turned off.

Using a NoOpLedger rather than None lets the publisher always call
ledger.contains()/record() without conditional checks.
"""

from __future__ import annotations

from laforge_store.base import BasePublishLedger


class NoOpLedger(BasePublishLedger):
    """Remembers nothing, so every artifact is published every time."""

    def contains(self, digest: str, pr_index: int) -> bool:
        return False

    def record(self, digest: str, pr_index: int) -> None:
        pass  # intentional no-op
