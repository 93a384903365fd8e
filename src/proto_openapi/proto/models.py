"""Protobuf descriptor graph consumed by the document builder.

The loader converts compiled descriptor sets into these models; tests and
other callers can also build them by hand.
"""

from pydantic import BaseModel


class ProtoField(BaseModel):
    """A single message field."""

    name: str
    number: int
    type: str  # double / int32 / string / bytes / message / enum / group ...
    type_name: str | None = None  # fully-qualified name for message and enum fields
    repeated: bool = False
    optional: bool = False  # proto3 `optional`
    oneof: str | None = None  # name of the enclosing oneof group


class ProtoMessage(BaseModel):
    """A message type, keyed in the graph by its fully-qualified name."""

    full_name: str
    fields: list[ProtoField] = []
    map_entry: bool = False

    @property
    def name(self) -> str:
        return self.full_name.rsplit(".", 1)[-1]


class ProtoEnum(BaseModel):
    """An enum type with its (name, number) values in declaration order."""

    full_name: str
    values: list[tuple[str, int]] = []


class RpcMethod(BaseModel):
    """A service method with the leading comment that may carry an annotation."""

    name: str
    input_type: str
    output_type: str
    comment: str = ""
    client_streaming: bool = False
    server_streaming: bool = False


class ProtoService(BaseModel):
    full_name: str
    methods: list[RpcMethod] = []

    @property
    def name(self) -> str:
        return self.full_name.rsplit(".", 1)[-1]


class DescriptorGraph(BaseModel):
    """Services plus every message and enum they can reach."""

    services: list[ProtoService] = []
    messages: dict[str, ProtoMessage] = {}
    enums: dict[str, ProtoEnum] = {}
