"""Async client for the subset of the Gitea v1 REST API that laforge uses.

Every remote read and write made by the sync, resolve and publish steps goes
through GiteaClient, so authentication, pagination and error mapping are
defined once. Failures of any kind surface as GiteaError; callers decide
whether a given failure is fatal.
"""

from __future__ import annotations

import logging
from urllib.parse import urljoin, urlsplit

import httpx

from laforge_core.errors import GiteaError

logger = logging.getLogger(__name__)

_PAGE_LIMIT = 50
_API_SUFFIX = "/api/v1"


class GiteaClient:
    def __init__(
        self,
        api_url: str,
        token: str,
        owner: str,
        repo: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.owner = owner
        self.repo = repo.split("/")[-1]
        # No timeout: the workflow runner enforces the overall time limit.
        self._http = httpx.AsyncClient(
            headers={"Authorization": f"token {token}", "Accept": "application/json"},
            timeout=None,
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: dict, transport: httpx.AsyncBaseTransport | None = None) -> GiteaClient:
        return cls(
            api_url=config["gitea_api_url"],
            token=config["gitea_token"],
            owner=config["repo_owner"],
            repo=config["repo_name"],
            transport=transport,
        )

    async def __aenter__(self) -> GiteaClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def web_url(self) -> str:
        """Server root URL, i.e. the API URL without its ``/api/v1`` suffix."""
        if self.api_url.endswith(_API_SUFFIX):
            return self.api_url[: -len(_API_SUFFIX)]
        return self.api_url

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    async def get_pull(self, index: int) -> dict:
        return await self._request("GET", f"{self._repo_path}/pulls/{index}")

    async def list_issue_comments(self, index: int) -> list[dict]:
        # This endpoint is not paginated; it always returns the full thread.
        return await self._get_list(f"{self._repo_path}/issues/{index}/comments")

    async def list_reviews(self, index: int) -> list[dict]:
        return await self._get_paginated(f"{self._repo_path}/pulls/{index}/reviews")

    async def list_review_comments(self, index: int, review_id: int) -> list[dict]:
        data = await self._request("GET", f"{self._repo_path}/pulls/{index}/reviews/{review_id}/comments")
        return data if isinstance(data, list) else []

    async def get_issue_comment(self, comment_id: int) -> dict:
        return await self._request("GET", f"{self._repo_path}/issues/comments/{comment_id}")

    async def download(self, url: str) -> bytes:
        """Download a binary resource. Relative URLs are resolved against ``web_url``."""
        absolute = self.resolve_url(url)
        logger.debug("Downloading %s", absolute)
        try:
            response = await self._http.get(absolute)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GiteaError(f"GET {absolute} returned {e.response.status_code}", e.response.status_code) from e
        except httpx.HTTPError as e:
            raise GiteaError(f"GET {absolute} failed: {e}") from e
        return response.content

    # ------------------------------------------------------------------ #
    # Writes                                                               #
    # ------------------------------------------------------------------ #

    async def create_issue_comment(self, index: int, body: str) -> dict:
        return await self._request("POST", f"{self._repo_path}/issues/{index}/comments", json={"body": body})

    async def create_review(
        self,
        index: int,
        body: str,
        comments: list[dict],
        commit_id: str | None = None,
        event: str = "COMMENT",
    ) -> dict:
        payload: dict = {"body": body, "event": event, "comments": comments}
        if commit_id:
            payload["commit_id"] = commit_id
        return await self._request("POST", f"{self._repo_path}/pulls/{index}/reviews", json=payload)

    async def set_assignees(self, index: int, assignees: list[str]) -> dict:
        return await self._request("PATCH", f"{self._repo_path}/issues/{index}", json={"assignees": assignees})

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    def resolve_url(self, url: str) -> str:
        if urlsplit(url).scheme:
            return url
        return urljoin(self.web_url + "/", url.lstrip("/"))

    def is_same_host(self, url: str) -> bool:
        netloc = urlsplit(url).netloc
        return not netloc or netloc == urlsplit(self.web_url).netloc

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def _send(self, method: str, path: str, params: dict | None = None, json: dict | None = None):
        url = self.api_url + path
        logger.debug("%s %s", method, url)
        try:
            response = await self._http.request(method, url, params=params, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise GiteaError(f"{method} {path} returned {status}: {e.response.text[:200]}", status) from e
        except httpx.HTTPError as e:
            raise GiteaError(f"{method} {path} failed: {e}") from e
        return response

    def _decode(self, method: str, path: str, response: httpx.Response):
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise GiteaError(f"{method} {path} returned invalid JSON", response.status_code) from e

    async def _request(self, method: str, path: str, params: dict | None = None, json: dict | None = None):
        response = await self._send(method, path, params=params, json=json)
        return self._decode(method, path, response)

    async def _get_list(self, path: str) -> list[dict]:
        data = await self._request("GET", path)
        if not isinstance(data, list):
            raise GiteaError(f"GET {path} did not return a list")
        return data

    async def _get_paginated(self, path: str) -> list[dict]:
        """Fetch every page of a list endpoint, preserving server order.

        Stops when ``X-Total-Count`` items have been read, on an empty page,
        or when a page repeats the previous one (the server ignored ``page``).
        The server may cap ``limit`` below what was asked for, so a short
        page alone does not end the listing.
        """
        items: list[dict] = []
        previous: list[dict] | None = None
        page = 1
        while True:
            response = await self._send("GET", path, params={"page": page, "limit": _PAGE_LIMIT})
            batch = self._decode("GET", path, response)
            if not isinstance(batch, list):
                raise GiteaError(f"GET {path} did not return a list")
            if not batch:
                return items
            if batch == previous:
                logger.warning("GET %s ignored pagination, stopping at page %d", path, page)
                return items
            items.extend(batch)

            total = _total_count(response)
            if total is not None and len(items) >= total:
                return items
            previous = batch
            page += 1


def _total_count(response: httpx.Response) -> int | None:
    raw = response.headers.get("X-Total-Count")
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None
