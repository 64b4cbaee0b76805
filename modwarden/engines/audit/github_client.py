"""Async GitHub API client for listing repositories and reading trees and blobs."""

from __future__ import annotations

import asyncio
import base64
import binascii
import os
import re
import time
from typing import Any

import httpx
import structlog

from modwarden.engines.audit.models import Repository

log = structlog.get_logger("modwarden.engine")

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

_PAGE_SIZE = 100


class RateLimitError(Exception):
    """Raised when GitHub rate limit is exhausted and we need to wait."""

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded, retry after {retry_after}s")


class GitHubClient:
    """Thin async wrapper around the GitHub REST API.

    Requests are issued once; failures surface as ``httpx.HTTPError`` (or
    :class:`RateLimitError`) and callers decide whether to retry.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = "https://api.github.com",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        resolved_token = token or os.environ.get("GITHUB_TOKEN")
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if resolved_token:
            headers["Authorization"] = f"token {resolved_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=30.0,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def list_org_repos_page(
        self,
        org: str,
        url: str | None = None,
    ) -> tuple[list[Repository], str | None]:
        """Fetch one page of ``GET /orgs/{org}/repos``.

        Pass the returned next-page URL back in as *url* to continue; it is
        None once the listing is complete.
        """
        if url is None:
            response = await self._request(
                f"/orgs/{org}/repos", {"per_page": _PAGE_SIZE, "type": "all"}
            )
        else:
            response = await self._request(url)
        repos = [Repository.from_api(item) for item in response.json()]
        return repos, self._parse_next_link(response.headers.get("Link", ""))

    async def get_tree(
        self,
        owner: str,
        repo: str,
        ref: str,
        *,
        recursive: bool = True,
    ) -> list[dict[str, Any]]:
        """Return the entries of a repository's git tree at *ref*."""
        params = {"recursive": "1"} if recursive else None
        response = await self._request(f"/repos/{owner}/{repo}/git/trees/{ref}", params)
        data = response.json()
        if data.get("truncated"):
            log.warning("github.tree_truncated", repo=f"{owner}/{repo}", ref=ref)
        return data.get("tree", [])

    async def get_blob(self, url: str) -> bytes:
        """Fetch a blob by its API URL and decode its content.

        The blob arrives as a JSON envelope whose ``content`` field carries the
        file in base64.
        """
        response = await self._request(url)
        data = response.json()
        content = data.get("content", "")
        encoding = data.get("encoding", "base64")
        if encoding != "base64":
            return content.encode("utf-8")
        try:
            return base64.b64decode(content)
        except (binascii.Error, ValueError) as exc:
            raise httpx.DecodingError(f"blob content is not valid base64: {exc}") from exc

    # ── internal ───────────────────────────────────────────────────────────

    async def _request(
        self,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Single GET. Raises on HTTP errors and on rate-limited 403s."""
        resp = await self._client.get(url, params=params)
        if resp.status_code == 403 and self._is_rate_limited(resp):
            wait = self._get_rate_limit_wait(resp)
            log.warning("github.rate_limit", url=url, wait_seconds=wait)
            raise RateLimitError(wait)
        resp.raise_for_status()
        await self._check_rate_limit(resp)
        return resp

    async def _check_rate_limit(self, response: httpx.Response) -> None:
        """Sleep until rate-limit resets if remaining == 0."""
        remaining = self._parse_header_int(response.headers.get("X-RateLimit-Remaining"))
        if remaining is not None and remaining == 0:
            wait = self._get_rate_limit_wait(response)
            log.warning("github.rate_limit_wait", wait_seconds=wait)
            await asyncio.sleep(wait)

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 403 response is due to rate limiting."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                return int(remaining) == 0
            except (ValueError, TypeError):
                pass
        # GitHub also uses Retry-After header for abuse rate limits
        return "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Calculate how long to wait based on rate-limit headers."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 1)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 1)
            except (ValueError, TypeError):
                pass
        return 60  # conservative fallback

    @staticmethod
    def _parse_header_int(value: str | None) -> int | None:
        """Safely parse an integer header value."""
        if value is None:
            return None
        try:
            return int(value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the ``next`` URL from a GitHub ``Link`` header."""
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None
