"""Path template compiler.

Turns an annotated path such as ``/users/{userId:int}/posts`` into the
OpenAPI template ``/users/{userId}/posts`` plus its typed parameters.
"""

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict

from proto_openapi.errors import DuplicateParameterName, MalformedAnnotation, UnknownParameterType

PARAM_TYPES = {"string": "string", "int": "integer"}

_NAME_RE = re.compile(r"^\w+$")


class PathParameter(BaseModel):
    """A typed ``{name:type}`` segment of an annotated path."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: Literal["string", "int"]

    @property
    def openapi_type(self) -> str:
        return PARAM_TYPES[self.type]

    def to_openapi(self) -> dict:
        return {
            "name": self.name,
            "in": "path",
            "required": True,
            "schema": {"type": self.openapi_type},
        }


class CompiledPath(BaseModel):
    """OpenAPI path template and the parameters it declares, in order."""

    model_config = ConfigDict(frozen=True)

    template: str
    parameters: tuple[PathParameter, ...] = ()

    def render(self) -> str:
        """Rebuild the annotated ``{name:type}`` form of the path."""
        rendered = self.template
        for param in self.parameters:
            rendered = rendered.replace("{%s}" % param.name, "{%s:%s}" % (param.name, param.type), 1)
        return rendered


def compile_path(raw_path: str, rpc_name: str = "", line: str = "") -> CompiledPath:
    """Compile an annotated path into a template and its parameter list.

    ``line`` is the annotation line the path came from; errors report it
    instead of the bare path when given.
    """
    line = line or raw_path
    template: list[str] = []
    parameters: list[PathParameter] = []
    seen: set[str] = set()

    i = 0
    while i < len(raw_path):
        ch = raw_path[i]
        if ch == "}":
            raise MalformedAnnotation(rpc_name, line, f"unexpected '}}' at position {i}")
        if ch != "{":
            template.append(ch)
            i += 1
            continue

        end = raw_path.find("}", i + 1)
        if end == -1:
            raise MalformedAnnotation(rpc_name, line, f"unterminated '{{' at position {i}")
        inner = raw_path[i + 1:end]
        if "{" in inner:
            raise MalformedAnnotation(rpc_name, line, f"nested '{{' at position {i}")

        name, sep, param_type = inner.partition(":")
        if not sep:
            raise MalformedAnnotation(rpc_name, line, f"parameter {inner!r} has no type")
        if not _NAME_RE.match(name):
            raise MalformedAnnotation(rpc_name, line, f"invalid parameter name {name!r}")
        if param_type not in PARAM_TYPES:
            raise UnknownParameterType(rpc_name, name, param_type)
        if name in seen:
            raise DuplicateParameterName(rpc_name, name, raw_path)

        seen.add(name)
        parameters.append(PathParameter(name=name, type=param_type))
        template.append("{%s}" % name)
        i = end + 1

    return CompiledPath(template="".join(template), parameters=tuple(parameters))
