"""Shared pytest fixtures for modwarden tests.

``FakeGitHub`` serves the three GitHub endpoints the audit uses through an
``httpx.MockTransport``, so tests exercise the real client end to end.
"""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass, field

import httpx
import pytest

from modwarden.engines.audit.github_client import GitHubClient

API = "https://api.github.com"

_LIST_RE = re.compile(r"^/orgs/(?P<org>[^/]+)/repos$")
_TREE_RE = re.compile(r"^/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/git/trees/(?P<ref>.+)$")
_BLOB_RE = re.compile(r"^/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/git/blobs/(?P<sha>[^/]+)$")


def go_mod(*requires: str, indirect: tuple[str, ...] = ()) -> bytes:
    """Build a go.mod with ``module version`` require lines."""
    lines = ["module example.com/m", "", "go 1.21", "", "require ("]
    lines += [f"\t{r}" for r in requires]
    lines += [f"\t{r} // indirect" for r in indirect]
    lines.append(")")
    return ("\n".join(lines) + "\n").encode()


@dataclass
class FakeRepo:
    name: str
    files: dict[str, bytes | int]  # path -> content, or an HTTP status for the blob
    archived: bool = False
    disabled: bool = False
    default_branch: str = "main"
    tree_status: int | None = None


@dataclass
class FakeGitHub:
    org: str = "acme"
    page_size: int = 2
    list_failures: int = 0  # leading listing requests answered with 500
    repos: list[FakeRepo] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)

    go_mod = staticmethod(go_mod)

    def add_repo(self, name: str, files: dict[str, bytes | int] | None = None, **kwargs) -> FakeRepo:
        repo = FakeRepo(name=name, files=files or {}, **kwargs)
        self.repos.append(repo)
        return repo

    def client(self) -> GitHubClient:
        return GitHubClient(token="test-token", transport=httpx.MockTransport(self.handler))

    def paths_requested(self) -> list[str]:
        return [r.url.path for r in self.requests]

    # ── routing ──────────────────────────────────────────────────────────

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if m := _LIST_RE.match(path):
            return self._list(request, m.group("org"))
        if m := _TREE_RE.match(path):
            return self._tree(request, m.group("repo"), m.group("ref"))
        if m := _BLOB_RE.match(path):
            return self._blob(m.group("repo"), m.group("sha"))
        return httpx.Response(404, json={"message": "Not Found"})

    def _repo(self, name: str) -> FakeRepo | None:
        return next((r for r in self.repos if r.name == name), None)

    def _list(self, request: httpx.Request, org: str) -> httpx.Response:
        if self.list_failures > 0:
            self.list_failures -= 1
            return httpx.Response(500, json={"message": "Server Error"})
        if org != self.org:
            return httpx.Response(404, json={"message": "Not Found"})

        page = int(request.url.params.get("page", "1"))
        start = (page - 1) * self.page_size
        chunk = self.repos[start : start + self.page_size]
        body = [
            {
                "name": r.name,
                "full_name": f"{self.org}/{r.name}",
                "default_branch": r.default_branch,
                "archived": r.archived,
                "disabled": r.disabled,
            }
            for r in chunk
        ]
        headers = {}
        if start + self.page_size < len(self.repos):
            headers["Link"] = f'<{API}/orgs/{self.org}/repos?page={page + 1}>; rel="next"'
        return httpx.Response(200, json=body, headers=headers)

    def _tree(self, request: httpx.Request, name: str, ref: str) -> httpx.Response:
        repo = self._repo(name)
        if repo is None or ref != repo.default_branch:
            return httpx.Response(404, json={"message": "Not Found"})
        if repo.tree_status is not None:
            return httpx.Response(repo.tree_status, json={"message": "error"})

        recursive = request.url.params.get("recursive") == "1"
        entries = []
        dirs = set()
        for i, path in enumerate(repo.files):
            if "/" in path:
                dirs.add(path.split("/", 1)[0])
                if not recursive:
                    continue
            entries.append(
                {
                    "path": path,
                    "type": "blob",
                    "url": f"{API}/repos/{self.org}/{name}/git/blobs/{i}",
                }
            )
        for d in sorted(dirs):
            entries.append(
                {"path": d, "type": "tree", "url": f"{API}/repos/{self.org}/{name}/git/trees/{d}"}
            )
        return httpx.Response(200, json={"tree": entries, "truncated": False})

    def _blob(self, name: str, sha: str) -> httpx.Response:
        repo = self._repo(name)
        if repo is None:
            return httpx.Response(404, json={"message": "Not Found"})
        content = list(repo.files.values())[int(sha)]
        if isinstance(content, int):
            return httpx.Response(content, json={"message": "error"})
        return httpx.Response(
            200,
            json={
                "sha": sha,
                "encoding": "base64",
                "content": base64.encodebytes(content).decode(),
            },
        )


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()
