"""Loads protobuf sources into a DescriptorGraph.

Sources are compiled with ``protoc`` into a FileDescriptorSet (including
imports and source info, so method comments survive), which is then
decoded with the protobuf runtime and flattened into the graph models.
"""

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Iterable

from google.protobuf import descriptor_pb2
from google.protobuf.message import DecodeError

from proto_openapi.errors import DescriptorLoadError
from proto_openapi.proto.models import (
    DescriptorGraph,
    ProtoEnum,
    ProtoField,
    ProtoMessage,
    ProtoService,
    RpcMethod,
)

logger = logging.getLogger(__name__)

FieldDescriptorProto = descriptor_pb2.FieldDescriptorProto

# Field numbers of FileDescriptorProto.service and ServiceDescriptorProto.method,
# used to address comments in SourceCodeInfo.
_SERVICE_PATH = 6
_METHOD_PATH = 2


def compile_protos(protos: Iterable[Path], includes: Iterable[Path] = ()) -> descriptor_pb2.FileDescriptorSet:
    """Run protoc on the given files and return the resulting descriptor set.

    Include directories default to the parent directory of each proto file.
    The compiler binary is taken from the PROTOC environment variable.
    """
    protos = [Path(p) for p in protos]
    include_dirs = list(dict.fromkeys([*map(Path, includes), *(p.parent for p in protos)]))
    protoc = os.getenv("PROTOC", "protoc")

    with tempfile.TemporaryDirectory(prefix="proto-openapi") as tmpdir:
        out_path = Path(tmpdir) / "descriptor-set.pb"
        cmd = [protoc, "--include_imports", "--include_source_info", "-o", str(out_path)]
        for include in include_dirs:
            cmd.extend(["-I", str(include)])
        cmd.extend(str(p) for p in protos)

        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise DescriptorLoadError(f"Failed to invoke protoc ({protoc}): {e}") from e
        if result.returncode != 0:
            raise DescriptorLoadError(f"protoc failed: {result.stderr.strip()}")

        return load_descriptor_set(out_path)


def load_descriptor_set(path: Path) -> descriptor_pb2.FileDescriptorSet:
    """Read a serialized FileDescriptorSet from disk."""
    descriptor_set = descriptor_pb2.FileDescriptorSet()
    try:
        descriptor_set.ParseFromString(Path(path).read_bytes())
    except (OSError, DecodeError) as e:
        raise DescriptorLoadError(f"Failed to read descriptor set {path}: {e}") from e
    return descriptor_set


def build_graph(descriptor_set: descriptor_pb2.FileDescriptorSet) -> DescriptorGraph:
    """Flatten every file of a descriptor set into one DescriptorGraph."""
    graph = DescriptorGraph()
    for file in descriptor_set.file:
        logger.debug("Reading %s", file.name)
        comments = {
            tuple(location.path): location.leading_comments
            for location in file.source_code_info.location
        }
        for message in file.message_type:
            _add_message(graph, message, file.package)
        for enum in file.enum_type:
            _add_enum(graph, enum, file.package)
        for idx, service in enumerate(file.service):
            graph.services.append(_read_service(service, file.package, comments, idx))
    return graph


def _qualify(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


def _add_message(graph: DescriptorGraph, message: descriptor_pb2.DescriptorProto, prefix: str) -> None:
    full_name = _qualify(prefix, message.name)
    oneofs = [oneof.name for oneof in message.oneof_decl]

    fields = []
    for field in message.field:
        oneof = None
        # proto3 optional fields live in a synthetic oneof; treat them as plain fields
        if field.HasField("oneof_index") and not field.proto3_optional:
            oneof = oneofs[field.oneof_index]
        fields.append(
            ProtoField(
                name=field.name,
                number=field.number,
                type=FieldDescriptorProto.Type.Name(field.type).removeprefix("TYPE_").lower(),
                type_name=field.type_name.lstrip(".") or None,
                repeated=field.label == FieldDescriptorProto.LABEL_REPEATED,
                optional=field.proto3_optional,
                oneof=oneof,
            )
        )

    graph.messages[full_name] = ProtoMessage(
        full_name=full_name,
        fields=fields,
        map_entry=message.options.map_entry,
    )
    for nested in message.nested_type:
        _add_message(graph, nested, full_name)
    for enum in message.enum_type:
        _add_enum(graph, enum, full_name)


def _add_enum(graph: DescriptorGraph, enum: descriptor_pb2.EnumDescriptorProto, prefix: str) -> None:
    full_name = _qualify(prefix, enum.name)
    graph.enums[full_name] = ProtoEnum(
        full_name=full_name,
        values=[(value.name, value.number) for value in enum.value],
    )


def _read_service(
    service: descriptor_pb2.ServiceDescriptorProto,
    package: str,
    comments: dict[tuple[int, ...], str],
    idx: int,
) -> ProtoService:
    methods = [
        RpcMethod(
            name=method.name,
            input_type=method.input_type.lstrip("."),
            output_type=method.output_type.lstrip("."),
            comment=comments.get((_SERVICE_PATH, idx, _METHOD_PATH, m_idx), ""),
            client_streaming=method.client_streaming,
            server_streaming=method.server_streaming,
        )
        for m_idx, method in enumerate(service.method)
    ]
    return ProtoService(full_name=_qualify(package, service.name), methods=methods)
