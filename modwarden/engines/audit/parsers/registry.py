"""Parser registry — match manifest paths to parsers."""

from __future__ import annotations

import posixpath
from typing import Protocol, runtime_checkable

from modwarden.engines.audit.models import Requirement


@runtime_checkable
class ManifestParser(Protocol):
    """Interface that every manifest parser must satisfy."""

    detection_method: str
    file_names: list[str]

    def parse(self, content: bytes) -> list[Requirement]: ...


PARSER_REGISTRY: dict[str, ManifestParser] = {}


def register_parser(parser: ManifestParser) -> None:
    """Register a parser instance by its detection_method."""
    PARSER_REGISTRY[parser.detection_method] = parser


def parser_for(path: str) -> ManifestParser | None:
    """Return the parser whose file names include the basename of *path*.

    Tree paths always use ``/``; ``go.mod`` and ``sub/dir/go.mod`` match,
    ``notgo.mod`` does not.
    """
    name = posixpath.basename(path)
    for parser in PARSER_REGISTRY.values():
        if name in parser.file_names:
            return parser
    return None


def is_manifest(path: str) -> bool:
    return parser_for(path) is not None
