"""Attachment caching and markdown link rewriting for PR snapshots.

Images pasted into Gitea comments are stored as attachments and referenced
with markdown image syntax, e.g. ``![screenshot](/attachments/<uuid>)``.
The agent runs without Gitea credentials in its own session, so each
attachment is downloaded next to the snapshot and its link rewritten to the
local copy. A download that fails leaves its link exactly as it was.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlsplit

from laforge_core.errors import DegradedFetchError, GiteaError

logger = logging.getLogger(__name__)

_IMAGE_LINK_RE = re.compile(r"!\[(?P<alt>[^\]]*)\]\((?P<target>[^)\s]+)\)")
_ATTACHMENT_SEGMENT = "/attachments/"
_FALLBACK_NAME = "attachment"


def attachment_key(url: str) -> str:
    """Return the last path segment of an attachment URL (the attachment UUID)."""
    return PurePosixPath(unquote(urlsplit(url).path)).name


def safe_filename(name: str) -> str:
    """Reduce a display name to a bare filename that cannot escape the cache dir."""
    base = name.replace("\\", "/").rsplit("/", 1)[-1].strip()
    if base in ("", ".", ".."):
        return _FALLBACK_NAME
    return base


def collect_asset_names(*objects: dict) -> dict[str, str]:
    """Map attachment UUIDs to display names from the ``assets`` lists Gitea returns."""
    names: dict[str, str] = {}
    for obj in objects:
        for asset in obj.get("assets") or []:
            uuid = asset.get("uuid") or attachment_key(asset.get("browser_download_url") or "")
            if uuid and asset.get("name"):
                names[uuid] = asset["name"]
    return names


class AttachmentCache:
    """Downloads each attachment once and rewrites links to the cached copy.

    ``link_base`` is the directory the rewritten links are relative to,
    normally the directory the snapshot file lives in.
    """

    def __init__(self, client, cache_dir: Path, link_base: Path, asset_names: dict[str, str] | None = None):
        self._client = client
        self._cache_dir = Path(cache_dir)
        self._link_base = Path(link_base)
        self._asset_names = asset_names or {}
        self._downloads: dict[str, asyncio.Task] = {}
        self.files: dict[str, Path] = {}

    def is_attachment(self, target: str) -> bool:
        return _ATTACHMENT_SEGMENT in urlsplit(target).path and self._client.is_same_host(target)

    async def rewrite(self, text: str) -> str:
        """Return ``text`` with every downloadable attachment link pointing at the cache."""
        if not text:
            return text
        targets = {m.group("target") for m in _IMAGE_LINK_RE.finditer(text) if self.is_attachment(m.group("target"))}
        if not targets:
            return text

        ordered = sorted(targets)
        paths = await asyncio.gather(*(self.fetch(t) for t in ordered))
        local = {target: path for target, path in zip(ordered, paths) if path is not None}

        def _replace(match: re.Match) -> str:
            path = local.get(match.group("target"))
            if path is None:
                return match.group(0)
            return f"![{match.group('alt')}]({self._link_for(path)})"

        return _IMAGE_LINK_RE.sub(_replace, text)

    async def fetch(self, url: str) -> Path | None:
        """Download ``url`` into the cache once; concurrent callers share the download."""
        task = self._downloads.get(url)
        if task is None:
            task = asyncio.ensure_future(self._download(url))
            self._downloads[url] = task
        try:
            return await task
        except DegradedFetchError as e:
            logger.warning("Leaving attachment link unrewritten: %s", e)
            return None

    async def _download(self, url: str) -> Path:
        key = attachment_key(url)
        filename = safe_filename(self._asset_names.get(key) or key)
        try:
            data = await self._client.download(url)
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            path = self._cache_dir / filename
            if filename in self.files:
                logger.warning("Attachment name %r is used more than once; keeping the last download", filename)
            path.write_bytes(data)
        except (GiteaError, OSError) as e:
            raise DegradedFetchError(f"could not cache {url}: {e}") from e
        self.files[filename] = path
        logger.debug("Cached attachment %s as %s", url, path)
        return path

    def _link_for(self, path: Path) -> str:
        return Path(os.path.relpath(path, self._link_base)).as_posix()
