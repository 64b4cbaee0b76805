"""Lenient parser for Go go.mod files.

Only ``require`` directives are read. Anything else, including lines this parser
does not understand, is skipped rather than treated as an error.
"""

from __future__ import annotations

import re

from modwarden.engines.audit.models import Requirement
from modwarden.engines.audit.parsers.registry import register_parser
from modwarden.exceptions import ManifestParseError

# Single require: require github.com/foo/bar v1.2.3 // indirect
_SINGLE_RE = re.compile(r'^require\s+("[^"]+"|\S+)\s+(\S+)')

# Inside require block: github.com/foo/bar v1.2.3
_BLOCK_RE = re.compile(r'^("[^"]+"|\S+)\s+(\S+)')

_BLOCK_START_RE = re.compile(r"^require\s*\($")

_INDIRECT_RE = re.compile(r"^\s*indirect\s*(;|$)")


def _split_comment(line: str) -> tuple[str, str]:
    code, _, comment = line.partition("//")
    return code.strip(), comment


def _unquote(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] == '"':
        return token[1:-1]
    return token


class GoModParser:
    detection_method = "go-mod"
    file_names = ["go.mod"]

    def parse(self, content: bytes) -> list[Requirement]:
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ManifestParseError(f"go.mod is not valid UTF-8: {exc}") from exc

        reqs: list[Requirement] = []
        in_require_block = False
        in_other_block = False

        for raw_line in text.splitlines():
            code, comment = _split_comment(raw_line)
            if not code:
                continue

            # Block boundaries: only require blocks are of interest
            if in_require_block or in_other_block:
                if code == ")":
                    in_require_block = in_other_block = False
                    continue
                if in_other_block:
                    continue
            elif _BLOCK_START_RE.match(code):
                in_require_block = True
                continue
            elif code.endswith("("):
                in_other_block = True
                continue

            m = _BLOCK_RE.match(code) if in_require_block else _SINGLE_RE.match(code)
            if not m:
                continue

            reqs.append(
                Requirement(
                    module=_unquote(m.group(1)),
                    version=m.group(2),
                    indirect=bool(_INDIRECT_RE.match(comment)),
                )
            )

        return reqs


register_parser(GoModParser())
