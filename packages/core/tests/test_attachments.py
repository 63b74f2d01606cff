"""Tests for attachment caching and link rewriting."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from laforge_core.errors import GiteaError
from laforge_core.utils.attachments import AttachmentCache, attachment_key, collect_asset_names, safe_filename


def _client(files: dict[str, bytes] | None = None, fail: set[str] | None = None):
    files = files or {}
    fail = fail or set()
    client = MagicMock()
    client.is_same_host.side_effect = lambda url: not url.startswith("http") or url.startswith(
        "https://git.example.com"
    )

    async def download(url):
        if url in fail:
            raise GiteaError(f"GET {url} returned 404", 404)
        return files.get(url, b"data")

    client.download = AsyncMock(side_effect=download)
    return client


def _cache(client, tmp_path, asset_names=None):
    return AttachmentCache(client, tmp_path / "attachments", tmp_path, asset_names)


class TestHelpers:
    def test_attachment_key_is_last_segment(self):
        assert attachment_key("/attachments/abc123") == "abc123"
        assert attachment_key("https://git.example.com/attachments/abc123?x=1") == "abc123"

    def test_safe_filename_strips_directories(self):
        assert safe_filename("../../etc/passwd") == "passwd"
        assert safe_filename("C:\\shots\\bug.png") == "bug.png"
        assert safe_filename("..") == "attachment"
        assert safe_filename("  ") == "attachment"

    def test_collect_asset_names(self):
        pr = {"assets": [{"uuid": "u1", "name": "bug.png"}]}
        comment = {"assets": [{"browser_download_url": "https://git.example.com/attachments/u2", "name": "log.txt"}]}
        assert collect_asset_names(pr, comment, {"assets": None}) == {"u1": "bug.png", "u2": "log.txt"}


class TestRewrite:
    def test_link_rewritten_to_cached_file_with_alt_text(self, tmp_path):
        client = _client({"/attachments/abc123": b"PNGDATA"})
        cache = _cache(client, tmp_path)

        out = asyncio.run(cache.rewrite("See ![screenshot](/attachments/abc123) here"))

        assert out == "See ![screenshot](attachments/abc123) here"
        assert (tmp_path / "attachments" / "abc123").read_bytes() == b"PNGDATA"
        assert cache.files == {"abc123": tmp_path / "attachments" / "abc123"}

    def test_display_name_used_when_known(self, tmp_path):
        cache = _cache(_client(), tmp_path, asset_names={"abc123": "crash.png"})

        out = asyncio.run(cache.rewrite("![](/attachments/abc123)"))

        assert out == "![](attachments/crash.png)"
        assert (tmp_path / "attachments" / "crash.png").exists()

    def test_failed_download_leaves_link_byte_identical(self, tmp_path, caplog):
        client = _client(fail={"/attachments/bad"})
        cache = _cache(client, tmp_path)
        text = "![a](/attachments/good) and ![b](/attachments/bad)"

        out = asyncio.run(cache.rewrite(text))

        assert out == "![a](attachments/good) and ![b](/attachments/bad)"
        assert "unrewritten" in caplog.text
        assert not (tmp_path / "attachments" / "bad").exists()

    def test_same_attachment_downloaded_once(self, tmp_path):
        client = _client()
        cache = _cache(client, tmp_path)

        async def _go():
            return await asyncio.gather(
                cache.rewrite("![x](/attachments/abc)"),
                cache.rewrite("again ![y](/attachments/abc) ![z](/attachments/abc)"),
            )

        first, second = asyncio.run(_go())

        assert client.download.await_count == 1
        assert first == "![x](attachments/abc)"
        assert second == "again ![y](attachments/abc) ![z](attachments/abc)"

    def test_non_attachment_images_untouched(self, tmp_path):
        client = _client()
        cache = _cache(client, tmp_path)
        text = "![logo](https://img.shields.io/badge.svg) [link](/attachments/abc)"

        assert asyncio.run(cache.rewrite(text)) == text
        client.download.assert_not_awaited()

    def test_foreign_host_attachment_not_downloaded(self, tmp_path):
        client = _client()
        cache = _cache(client, tmp_path)
        text = "![x](https://evil.example.org/attachments/abc)"

        assert asyncio.run(cache.rewrite(text)) == text
        client.download.assert_not_awaited()

    def test_absolute_same_host_attachment_rewritten(self, tmp_path):
        cache = _cache(_client(), tmp_path)

        out = asyncio.run(cache.rewrite("![x](https://git.example.com/attachments/abc)"))

        assert out == "![x](attachments/abc)"

    def test_name_collision_last_write_wins(self, tmp_path):
        client = _client({"/attachments/u1": b"first", "/attachments/u2": b"second"})
        cache = _cache(client, tmp_path, asset_names={"u1": "shot.png", "u2": "shot.png"})

        async def _go():
            await cache.rewrite("![](/attachments/u1)")
            await cache.rewrite("![](/attachments/u2)")

        asyncio.run(_go())

        assert (tmp_path / "attachments" / "shot.png").read_bytes() == b"second"
        assert list(cache.files) == ["shot.png"]

    def test_empty_text(self, tmp_path):
        assert asyncio.run(_cache(_client(), tmp_path).rewrite("")) == ""
