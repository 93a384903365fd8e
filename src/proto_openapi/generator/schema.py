"""Schema mapper: converts protobuf messages into OpenAPI component schemas.

Each message or enum is registered once under its fully-qualified name and
referenced everywhere else. A name is marked as in progress before its
fields are visited, so self-referential and mutually recursive messages
resolve to references instead of recursing forever.
"""

import logging
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from proto_openapi.errors import UnknownMessageType, UnsupportedFieldType
from proto_openapi.proto.models import DescriptorGraph, ProtoField, ProtoMessage

logger = logging.getLogger(__name__)

COMPONENTS_PREFIX = "#/components/schemas/"

EMPTY_TYPE = "google.protobuf.Empty"


class PrimitiveSchema(BaseModel):
    kind: Literal["primitive"] = "primitive"
    type: Literal["string", "integer", "number", "boolean"]
    format: str | None = None
    enum: list[int] | None = None
    description: str | None = None

    def to_openapi(self) -> dict:
        result = {"type": self.type}
        if self.format:
            result["format"] = self.format
        if self.enum is not None:
            result["enum"] = list(self.enum)
        if self.description:
            result["description"] = self.description
        return result


class ReferenceSchema(BaseModel):
    kind: Literal["reference"] = "reference"
    name: str

    def to_openapi(self) -> dict:
        return {"$ref": COMPONENTS_PREFIX + self.name}


class ArraySchema(BaseModel):
    kind: Literal["array"] = "array"
    items: "SchemaNode"

    def to_openapi(self) -> dict:
        return {"type": "array", "items": self.items.to_openapi()}


class ObjectSchema(BaseModel):
    """An object with named properties, or a free-form map when
    ``additional_properties`` is set."""

    kind: Literal["object"] = "object"
    properties: dict[str, "SchemaNode"] = {}
    additional_properties: Optional["SchemaNode"] = None
    free_form: bool = False

    def to_openapi(self) -> dict:
        result: dict = {"type": "object"}
        if self.properties:
            result["properties"] = {name: node.to_openapi() for name, node in self.properties.items()}
        if self.additional_properties is not None:
            result["additionalProperties"] = self.additional_properties.to_openapi()
        elif self.free_form:
            result["additionalProperties"] = True
        return result


class OneOfSchema(BaseModel):
    """Alternatives of a protobuf oneof group."""

    kind: Literal["one_of"] = "one_of"
    options: list["SchemaNode"] = []

    def to_openapi(self) -> dict:
        return {"oneOf": [node.to_openapi() for node in self.options]}


class AnySchema(BaseModel):
    """Unconstrained value (google.protobuf.Value)."""

    kind: Literal["any"] = "any"

    def to_openapi(self) -> dict:
        return {}


SchemaNode = Annotated[
    Union[PrimitiveSchema, ReferenceSchema, ArraySchema, ObjectSchema, OneOfSchema, AnySchema],
    Field(discriminator="kind"),
]

ArraySchema.model_rebuild()
ObjectSchema.model_rebuild()
OneOfSchema.model_rebuild()


def _integer(fmt: str) -> PrimitiveSchema:
    return PrimitiveSchema(type="integer", format=fmt)


SCALARS = {
    "double": lambda: PrimitiveSchema(type="number", format="double"),
    "float": lambda: PrimitiveSchema(type="number", format="float"),
    "int32": lambda: _integer("int32"),
    "sint32": lambda: _integer("int32"),
    "sfixed32": lambda: _integer("int32"),
    "uint32": lambda: _integer("int64"),
    "fixed32": lambda: _integer("int64"),
    "int64": lambda: _integer("int64"),
    "sint64": lambda: _integer("int64"),
    "sfixed64": lambda: _integer("int64"),
    "uint64": lambda: _integer("int64"),
    "fixed64": lambda: _integer("int64"),
    "bool": lambda: PrimitiveSchema(type="boolean"),
    "string": lambda: PrimitiveSchema(type="string"),
    "bytes": lambda: PrimitiveSchema(type="string", format="binary"),
}

# JSON forms of the well-known types; these are inlined rather than registered,
# except Empty, which is a regular (empty) message.
WELL_KNOWN = {
    "google.protobuf.Timestamp": lambda: PrimitiveSchema(type="string", format="date-time"),
    "google.protobuf.Duration": lambda: PrimitiveSchema(type="string"),
    "google.protobuf.FieldMask": lambda: PrimitiveSchema(type="string"),
    "google.protobuf.Struct": lambda: ObjectSchema(free_form=True),
    "google.protobuf.Any": lambda: ObjectSchema(free_form=True),
    "google.protobuf.Value": lambda: AnySchema(),
    "google.protobuf.ListValue": lambda: ArraySchema(items=AnySchema()),
    "google.protobuf.DoubleValue": SCALARS["double"],
    "google.protobuf.FloatValue": SCALARS["float"],
    "google.protobuf.Int64Value": SCALARS["int64"],
    "google.protobuf.UInt64Value": SCALARS["uint64"],
    "google.protobuf.Int32Value": SCALARS["int32"],
    "google.protobuf.UInt32Value": SCALARS["uint32"],
    "google.protobuf.BoolValue": SCALARS["bool"],
    "google.protobuf.StringValue": SCALARS["string"],
    "google.protobuf.BytesValue": SCALARS["bytes"],
}

_IN_PROGRESS = object()


class SchemaMapper:
    """Maps messages of one DescriptorGraph into a fresh schema registry."""

    def __init__(self, graph: DescriptorGraph):
        self.graph = graph
        self._registry: dict[str, object] = {}

    @property
    def schemas(self) -> dict[str, SchemaNode]:
        """Completed component schemas in registration order."""
        return {name: node for name, node in self._registry.items() if node is not _IN_PROGRESS}

    def has_type(self, full_name: str) -> bool:
        return full_name in self.graph.messages or full_name == EMPTY_TYPE or full_name in WELL_KNOWN

    def map_message(self, full_name: str, rpc_name: str = "") -> SchemaNode:
        """Return a reference to the message, registering it on first use."""
        if not self.has_type(full_name):
            raise UnknownMessageType(rpc_name, full_name)
        if full_name in WELL_KNOWN:
            return WELL_KNOWN[full_name]()
        if full_name not in self._registry:
            self._register_message(full_name)
        return ReferenceSchema(name=full_name)

    def map_all(self) -> None:
        """Register every message and enum of the graph, used or not."""
        for full_name, message in self.graph.messages.items():
            if not message.map_entry and full_name not in WELL_KNOWN:
                self.map_message(full_name)
        for full_name in self.graph.enums:
            self._map_enum(full_name)

    def _register_message(self, full_name: str) -> None:
        # Empty may be used without its descriptor being in the graph
        message = self.graph.messages.get(full_name) or ProtoMessage(full_name=EMPTY_TYPE)

        logger.debug("Mapping message %s", full_name)
        self._registry[full_name] = _IN_PROGRESS
        self._registry[full_name] = self._build_object(message)

    def _build_object(self, message: ProtoMessage) -> ObjectSchema:
        properties: dict[str, SchemaNode] = {}
        groups: dict[str, list[SchemaNode]] = {}

        for field in message.fields:
            node = self._map_field(message, field)
            if field.oneof is None:
                properties[field.name] = node
            else:
                if field.oneof not in groups:
                    groups[field.oneof] = []
                    # reserve the slot so the group keeps its declaration position
                    properties[field.oneof] = None
                groups[field.oneof].append(ObjectSchema(properties={field.name: node}))

        for name, options in groups.items():
            properties[name] = OneOfSchema(options=options)

        return ObjectSchema(properties=properties)

    def _map_field(self, message: ProtoMessage, field: ProtoField) -> SchemaNode:
        entry = self.graph.messages.get(field.type_name) if field.type == "message" else None
        if entry is not None and entry.map_entry:
            value = next((f for f in entry.fields if f.name == "value"), None)
            if value is None:
                raise UnsupportedFieldType(message.full_name, field.name, field.type_name)
            return ObjectSchema(additional_properties=self._map_single(entry, value))

        node = self._map_single(message, field)
        if field.repeated:
            return ArraySchema(items=node)
        return node

    def _map_single(self, message: ProtoMessage, field: ProtoField) -> SchemaNode:
        if field.type in SCALARS:
            return SCALARS[field.type]()
        if field.type == "enum":
            if field.type_name not in self.graph.enums:
                raise UnsupportedFieldType(message.full_name, field.name, field.type_name or "enum")
            return self._map_enum(field.type_name)
        if field.type == "message" and field.type_name and self.has_type(field.type_name):
            return self.map_message(field.type_name)
        raise UnsupportedFieldType(message.full_name, field.name, field.type_name or field.type)

    def _map_enum(self, full_name: str) -> ReferenceSchema:
        if full_name not in self._registry:
            values = self.graph.enums[full_name].values
            self._registry[full_name] = PrimitiveSchema(
                type="integer",
                enum=[number for _, number in values],
                description="\n\n".join(f"{name} = {number}" for name, number in values),
            )
        return ReferenceSchema(name=full_name)
