"""Data carried between the sync, resolve and publish steps."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ConversationComment:
    id: int
    author: str
    created_at: str
    body: str


@dataclass(frozen=True)
class ReviewComment:
    """An inline comment anchored to a file and diff position."""

    id: int
    author: str
    path: str
    position: int | None
    body: str


@dataclass(frozen=True)
class Review:
    id: int
    author: str
    state: str
    submitted_at: str
    body: str
    comments: tuple[ReviewComment, ...] = ()


@dataclass(frozen=True)
class PRSnapshot:
    """The attachment-rewritten view of a PR at one point in time.

    Comments and reviews keep the order the API returned them in, which is
    chronological. ``attachments`` maps a cached filename to its local path;
    two attachments with the same filename collapse to the last one written.
    """

    index: int
    title: str
    author: str
    head_branch: str
    base_branch: str
    head_sha: str
    created_at: str
    description: str
    comments: tuple[ConversationComment, ...] = ()
    reviews: tuple[Review, ...] = ()
    attachments: dict[str, Path] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class FileComment:
    """A comment the agent wants anchored to ``file`` at new-file ``line``.

    Fields are kept as parsed; ``is_valid`` decides whether it gets posted.
    """

    file: str
    line: int | None
    comment: str

    @property
    def is_valid(self) -> bool:
        return bool(self.file and self.line and self.comment)


@dataclass(frozen=True)
class StatusArtifact:
    status: str | None = None
    file_comments: tuple[FileComment, ...] = ()
    unassign: bool = False
    legacy: bool = False  # read from the free-text status.md

    def digest(self) -> str:
        """SHA-256 of the artifact content, stable across key order and format."""
        content = {
            "status": self.status,
            "file_comments": [asdict(c) for c in self.file_comments],
            "unassign": self.unassign,
        }
        encoded = json.dumps(content, sort_keys=True, ensure_ascii=False).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()
