"""Tests for PR context synchronization."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from laforge_core.errors import FatalContextError, GiteaError
from laforge_core.sync import fetch_snapshot, render_snapshot, sync_pr

PR = {
    "number": 7,
    "title": "Add widgets",
    "user": {"login": "alice"},
    "created_at": "2025-01-01T10:00:00Z",
    "body": "Adds widgets.\n\n![screenshot](/attachments/abc123)",
    "head": {"ref": "feature/widgets", "sha": "f" * 40},
    "base": {"ref": "main"},
}

COMMENTS = [
    {"id": 1, "user": {"login": "bob"}, "created_at": "2025-01-01T11:00:00Z", "body": "First"},
    {"id": 2, "user": None, "created_at": "2025-01-01T12:00:00Z", "body": "Second"},
]

REVIEWS = [
    {"id": 10, "user": {"login": "carol"}, "state": "REQUEST_CHANGES", "submitted_at": "t1", "body": "Needs work"},
    {"id": 11, "user": {"login": "dave"}, "state": "APPROVED", "submitted_at": "t2", "body": ""},
]


def _client(review_comments=None, review_errors=(), pr=PR, comments=COMMENTS, reviews=REVIEWS):
    review_comments = review_comments or {}
    client = MagicMock()
    client.is_same_host.return_value = True
    client.get_pull = AsyncMock(return_value=pr)
    client.list_issue_comments = AsyncMock(return_value=comments)
    client.list_reviews = AsyncMock(return_value=reviews)

    async def list_review_comments(index, review_id):
        if review_id in review_errors:
            raise GiteaError("boom", 500)
        # Later reviews answer first, to prove ordering does not depend on completion order.
        await asyncio.sleep(0.01 * (20 - review_id))
        return review_comments.get(review_id, [])

    client.list_review_comments = AsyncMock(side_effect=list_review_comments)
    client.download = AsyncMock(return_value=b"PNG")
    return client


def _fetch(client, tmp_path):
    return asyncio.run(fetch_snapshot(client, 7, tmp_path / "attachments", tmp_path))


class TestFetchSnapshot:
    def test_metadata_and_order(self, tmp_path):
        snapshot = _fetch(_client(), tmp_path)

        assert snapshot.title == "Add widgets"
        assert snapshot.author == "alice"
        assert snapshot.head_branch == "feature/widgets"
        assert snapshot.base_branch == "main"
        assert [c.id for c in snapshot.comments] == [1, 2]
        assert snapshot.comments[1].author == "ghost"
        assert [r.id for r in snapshot.reviews] == [10, 11]

    def test_review_comments_attached_in_review_order(self, tmp_path):
        review_comments = {
            10: [{"id": 100, "user": {"login": "carol"}, "path": "a.py", "position": 3, "body": "here"}],
            11: [{"id": 101, "user": {"login": "dave"}, "path": "b.py", "original_position": 9, "body": "there"}],
        }
        snapshot = _fetch(_client(review_comments), tmp_path)

        assert [c.path for c in snapshot.reviews[0].comments] == ["a.py"]
        assert snapshot.reviews[1].comments[0].position == 9

    def test_failed_review_comments_degrade_to_empty(self, tmp_path, caplog):
        review_comments = {11: [{"id": 101, "user": {"login": "dave"}, "path": "b.py", "body": "ok"}]}
        snapshot = _fetch(_client(review_comments, review_errors={10}), tmp_path)

        assert snapshot.reviews[0].comments == ()
        assert len(snapshot.reviews[1].comments) == 1
        assert "review 10" in caplog.text

    @pytest.mark.parametrize("method", ["get_pull", "list_issue_comments", "list_reviews"])
    def test_minimum_context_failure_is_fatal(self, tmp_path, method):
        client = _client()
        setattr(client, method, AsyncMock(side_effect=GiteaError("down", 502)))

        with pytest.raises(FatalContextError):
            _fetch(client, tmp_path)

    def test_description_attachment_rewritten(self, tmp_path):
        snapshot = _fetch(_client(), tmp_path)

        assert "![screenshot](attachments/abc123)" in snapshot.description
        assert (tmp_path / "attachments" / "abc123").exists()
        assert snapshot.attachments == {"abc123": tmp_path / "attachments" / "abc123"}

    def test_attachments_rewritten_in_every_field(self, tmp_path):
        comments = [{"id": 1, "user": {"login": "bob"}, "created_at": "t", "body": "![c](/attachments/c1)"}]
        reviews = [{"id": 10, "user": {"login": "x"}, "state": "COMMENT", "submitted_at": "t", "body": "![r](/attachments/r1)"}]
        review_comments = {10: [{"id": 5, "user": {"login": "x"}, "path": "a.py", "body": "![i](/attachments/i1)"}]}
        snapshot = _fetch(_client(review_comments, comments=comments, reviews=reviews), tmp_path)

        assert snapshot.comments[0].body == "![c](attachments/c1)"
        assert snapshot.reviews[0].body == "![r](attachments/r1)"
        assert snapshot.reviews[0].comments[0].body == "![i](attachments/i1)"
        assert set(snapshot.attachments) == {"abc123", "c1", "r1", "i1"}

    def test_asset_display_name_used(self, tmp_path):
        pr = {**PR, "assets": [{"uuid": "abc123", "name": "screenshot.png"}]}
        snapshot = _fetch(_client(pr=pr), tmp_path)

        assert "![screenshot](attachments/screenshot.png)" in snapshot.description


class TestRenderSnapshot:
    def test_sections_present(self, tmp_path):
        review_comments = {10: [{"id": 100, "user": {"login": "carol"}, "path": "a.py", "position": 3, "body": "fix"}]}
        text = render_snapshot(_fetch(_client(review_comments), tmp_path))

        assert text.startswith("# PR #7: Add widgets\n")
        assert "**Author:** alice" in text
        assert f"**Head:** `{'f' * 40}`" in text
        assert "## PR Description" in text
        assert "**bob** (2025-01-01T11:00:00Z):\nFirst" in text
        assert "### carol - REQUEST_CHANGES (t1)\nNeeds work" in text
        assert "#### Review Comments:" in text
        assert "**carol** on `a.py` (line 3):\nfix" in text
        assert "## Attachments\n- `abc123`" in text

    def test_comments_keep_document_order(self, tmp_path):
        text = render_snapshot(_fetch(_client(), tmp_path))
        assert text.index("First") < text.index("Second")
        assert text.index("### carol") < text.index("### dave")


def test_sync_pr_writes_snapshot(tmp_path):
    snapshot_path = tmp_path / ".pr" / "pr.md"
    cache_dir = tmp_path / ".pr" / "attachments"

    asyncio.run(sync_pr(_client(), 7, snapshot_path, cache_dir))

    text = snapshot_path.read_text()
    assert "![screenshot](attachments/abc123)" in text
    assert (cache_dir / "abc123").read_bytes() == b"PNG"
