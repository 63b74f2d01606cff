"""Error taxonomy shared by the sync, resolve and publish steps.

Only FatalContextError and ArtifactParseError ever end an invocation.
The other errors are raised at the item level and caught by the step that
owns the item, which logs them and moves on.
"""

from __future__ import annotations


class LaforgeError(Exception):
    """Base class for all laforge errors."""


class GiteaError(LaforgeError):
    """A Gitea API call failed (transport error, non-2xx status or bad JSON)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FatalContextError(LaforgeError):
    """The minimum PR context (PR, comments, reviews) could not be fetched."""


class DegradedFetchError(LaforgeError):
    """One review's inline comments or one attachment could not be fetched."""


class InvalidDirectiveError(LaforgeError):
    """A directive named an agent that is not in the registry."""

    def __init__(self, agent: str, valid: list[str]):
        super().__init__(f"Invalid agent name {agent!r}. Valid options: {', '.join(valid)}")
        self.agent = agent
        self.valid = valid


class PublishItemError(LaforgeError):
    """One file comment or the unassign step could not be published."""


class ArtifactParseError(LaforgeError):
    """The structured status artifact is malformed."""
