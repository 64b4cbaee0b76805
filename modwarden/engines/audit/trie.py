"""Segment-prefix matching for slash-separated module paths.

Paths are compared one whole segment at a time, so ``foo/ba`` never matches
``foo/bar``.
"""

from __future__ import annotations

from typing import Any


class SegmentTrie:
    """A tree of path segments.

    Every node reachable from the root is part of some inserted path. Nodes may
    carry payloads attached by :meth:`add`, which :meth:`covering` collects.
    """

    __slots__ = ("edges", "payloads", "separator")

    def __init__(self, separator: str = "/") -> None:
        self.separator = separator
        self.edges: dict[str, SegmentTrie] = {}
        self.payloads: list[Any] = []

    def add(self, path: str, payload: Any = None) -> None:
        """Insert *path*, attaching *payload* to its last node when given."""
        node = self
        for segment in path.split(self.separator):
            child = node.edges.get(segment)
            if child is None:
                child = SegmentTrie(self.separator)
                node.edges[segment] = child
            node = child
        if payload is not None:
            node.payloads.append(payload)

    def partial_match(self, path: str) -> bool:
        """Return True if *path* is an inserted path or a segment-aligned prefix of one.

        Examples, against a tree containing ``foo/bar/baz``:

        - ``foo/bar/baz`` => True
        - ``foo/bar`` => True
        - ``foo/bar/baz/qux`` => False
        - ``foo/ba`` => False
        """
        node = self
        for segment in path.split(self.separator):
            node = node.edges.get(segment)  # type: ignore[assignment]
            if node is None:
                return False
        return True

    def covering(self, path: str) -> list[Any]:
        """Return payloads of every inserted path that is a segment-aligned prefix of *path*.

        Payloads come back shortest prefix first; each node keeps insertion order.
        """
        found: list[Any] = []
        node = self
        for segment in path.split(self.separator):
            node = node.edges.get(segment)  # type: ignore[assignment]
            if node is None:
                break
            found.extend(node.payloads)
        return found


def covers(prefix: str, path: str, separator: str = "/") -> bool:
    """Linear segment-prefix test: is *prefix* a segment-aligned prefix of *path*?"""
    want = prefix.split(separator)
    have = path.split(separator)
    return len(want) <= len(have) and have[: len(want)] == want
