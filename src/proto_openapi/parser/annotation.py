"""Parser for HTTP annotations in RPC method comments.

An annotation is a single comment line of the form::

    <METHOD> <path> [- BODY] [[tag, tag, ...]]

for example ``POST /users/{userId:int} - BODY [Users, Admin]``.
"""

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict

from proto_openapi.errors import MalformedAnnotation

METHODS = ("GET", "PUT", "POST", "DELETE")

BODY_KEYWORD = "BODY"

# literal segments of word characters, dots, dashes and tildes; {name:type} placeholders
_PATH_RE = re.compile(r"^/(?:[\w.\-~/]|\{[^{}]*\})*$")


class AnnotationRecord(BaseModel):
    """HTTP binding extracted from one annotated RPC method."""

    model_config = ConfigDict(frozen=True)

    method: Literal["GET", "PUT", "POST", "DELETE"]
    raw_path: str
    omit_body: bool = False
    tags: tuple[str, ...] = ()
    line: str = ""


def parse_annotation(comment: str, rpc_name: str = "") -> AnnotationRecord | None:
    """Find and parse the annotation line of a comment block.

    Returns None when no line starts with a supported HTTP method; the RPC
    method is then left out of the document.
    """
    for line in comment.splitlines():
        line = line.strip()
        parts = line.split(None, 2)
        if not parts or parts[0] not in METHODS:
            continue
        return _parse_line(line, parts, rpc_name)
    return None


def _parse_line(line: str, parts: list[str], rpc_name: str) -> AnnotationRecord:
    method = parts[0]
    if len(parts) < 2:
        raise MalformedAnnotation(rpc_name, line, "missing path")

    path = parts[1]
    if not path.startswith("/"):
        raise MalformedAnnotation(rpc_name, line, "path must start with '/'")
    if path.rfind("{") > path.rfind("}"):
        raise MalformedAnnotation(rpc_name, line, "unterminated '{' in path")
    if not _PATH_RE.match(path):
        raise MalformedAnnotation(rpc_name, line, f"invalid character in path {path!r}")

    rest = parts[2] if len(parts) > 2 else ""
    body, tags = _scan_suffixes(rest, line, rpc_name)

    # GET never carries a body, whatever the annotation says
    omit_body = method == "GET" or body is False

    return AnnotationRecord(method=method, raw_path=path, omit_body=omit_body, tags=tags, line=line)


def _scan_suffixes(rest: str, line: str, rpc_name: str) -> tuple[bool | None, tuple[str, ...]]:
    """Scan the optional ``± BODY`` flag and ``[tags]`` list after the path.

    The body flag is None when absent, False for ``- BODY`` and True for
    ``+ BODY``.
    """
    body: bool | None = None
    tags: tuple[str, ...] | None = None

    i = 0
    while i < len(rest):
        ch = rest[i]
        if ch.isspace():
            i += 1
        elif ch == "[":
            if tags is not None:
                raise MalformedAnnotation(rpc_name, line, "more than one tag list")
            end = rest.find("]", i + 1)
            if end == -1:
                raise MalformedAnnotation(rpc_name, line, "unterminated tag list")
            tags = tuple(t.strip() for t in rest[i + 1:end].split(",") if t.strip())
            i = end + 1
        elif ch in "+-":
            word_start = i + 1
            while word_start < len(rest) and rest[word_start].isspace():
                word_start += 1
            word_end = word_start + len(BODY_KEYWORD)
            if rest[word_start:word_end] != BODY_KEYWORD or (word_end < len(rest) and not _is_boundary(rest[word_end])):
                raise MalformedAnnotation(rpc_name, line, f"expected '{ch} BODY'")
            if body is not None:
                raise MalformedAnnotation(rpc_name, line, "more than one BODY flag")
            body = ch == "+"
            i = word_end
        else:
            raise MalformedAnnotation(rpc_name, line, f"unexpected text {rest[i:]!r}")

    return body, tags or ()


def _is_boundary(ch: str) -> bool:
    return ch.isspace() or ch == "["
