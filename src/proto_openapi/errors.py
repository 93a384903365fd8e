"""Errors raised while turning protobuf services into an OpenAPI document.

Every error is fatal: the builder never catches them, so the first one
aborts generation and reaches the caller unchanged.
"""


class GenerationError(Exception):
    """Base class for all document generation failures."""


class MalformedAnnotation(GenerationError):
    """An annotation line starts with a known method but breaks the grammar."""

    def __init__(self, rpc_name: str, line: str, reason: str):
        self.rpc_name = rpc_name
        self.line = line
        self.reason = reason
        super().__init__(f"Malformed annotation on {rpc_name or '<unknown>'}: {reason} in {line!r}")


class UnknownParameterType(GenerationError):
    """A path parameter declares a type other than string or int."""

    def __init__(self, rpc_name: str, param: str, param_type: str):
        self.rpc_name = rpc_name
        self.param = param
        self.param_type = param_type
        super().__init__(
            f"Unknown type {param_type!r} for path parameter {param!r} on {rpc_name or '<unknown>'} "
            "(expected 'string' or 'int')"
        )


class DuplicateParameterName(GenerationError):
    """The same parameter name appears twice in one path."""

    def __init__(self, rpc_name: str, param: str, path: str):
        self.rpc_name = rpc_name
        self.param = param
        self.path = path
        super().__init__(f"Path parameter {param!r} used twice in {path!r} on {rpc_name or '<unknown>'}")


class UnsupportedFieldType(GenerationError):
    """A message field cannot be mapped to an OpenAPI schema."""

    def __init__(self, message: str, field: str, field_type: str):
        self.message = message
        self.field = field
        self.field_type = field_type
        super().__init__(f"Unsupported type {field_type!r} for field {field!r} of message {message!r}")


class UnknownMessageType(GenerationError):
    """An RPC method refers to a message missing from the descriptor set."""

    def __init__(self, rpc_name: str, type_name: str):
        self.rpc_name = rpc_name
        self.type_name = type_name
        super().__init__(f"Message {type_name!r} used by {rpc_name} is not in the descriptor set")


class DuplicatePathOperation(GenerationError):
    """Two RPC methods compile to the same path template and HTTP method."""

    def __init__(self, method: str, path: str, first_rpc: str, second_rpc: str):
        self.method = method
        self.path = path
        self.first_rpc = first_rpc
        self.second_rpc = second_rpc
        super().__init__(f"{method} {path} is declared by both {first_rpc} and {second_rpc}")


class DescriptorLoadError(GenerationError):
    """Protobuf sources could not be compiled or a descriptor set could not be read."""
