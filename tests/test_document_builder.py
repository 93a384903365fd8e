import pytest

from proto_openapi.config import GeneratorConfig
from proto_openapi.errors import (
    DuplicatePathOperation,
    MalformedAnnotation,
    UnknownMessageType,
    UnsupportedFieldType,
)
from proto_openapi.generator.document import DocumentBuilder
from proto_openapi.proto.models import DescriptorGraph, ProtoField, ProtoMessage, ProtoService, RpcMethod

EMPTY = "google.protobuf.Empty"


def _rpc(name: str, comment: str, input_type: str = EMPTY, output_type: str = "demo.HelloMessage") -> RpcMethod:
    return RpcMethod(name=name, input_type=input_type, output_type=output_type, comment=comment)


def _make_graph(*methods: RpcMethod, service: str = "demo.Greeter") -> DescriptorGraph:
    return DescriptorGraph(
        services=[ProtoService(full_name=service, methods=list(methods))],
        messages={
            "demo.HelloMessage": ProtoMessage(
                full_name="demo.HelloMessage",
                fields=[ProtoField(name="message", number=1, type="string")],
            ),
            "demo.UserRequest": ProtoMessage(
                full_name="demo.UserRequest",
                fields=[
                    ProtoField(name="userId", number=1, type="int32"),
                    ProtoField(name="name", number=2, type="string"),
                ],
            ),
            EMPTY: ProtoMessage(full_name=EMPTY),
        },
    )


def _build(graph: DescriptorGraph, **config) -> dict:
    config = GeneratorConfig(title="Demo", version="1.0.0", **config)
    return DocumentBuilder(config).build(graph).to_dict(config)


class TestDocumentBuilder:
    def test_hello_example(self):
        doc = _build(_make_graph(_rpc("Hello", " GET /hello [Greeting]\n")))

        assert doc["openapi"] == "3.0.0"
        assert doc["info"] == {"title": "Demo", "version": "1.0.0"}
        operation = doc["paths"]["/hello"]["get"]
        assert "requestBody" not in operation
        assert operation["tags"] == ["Greeting"]
        assert operation["operationId"] == "Greeter_Hello"
        response = operation["responses"]["200"]
        assert response["description"] == "A response containing HelloMessage"
        assert response["content"]["application/json"]["schema"] == {
            "$ref": "#/components/schemas/demo.HelloMessage",
        }
        assert doc["components"]["schemas"]["demo.HelloMessage"] == {
            "type": "object",
            "properties": {"message": {"type": "string"}},
        }

    def test_delete_with_explicit_omit(self):
        graph = _make_graph(_rpc("DeleteUser", "DELETE /users/{userId:int} - BODY", input_type="demo.UserRequest"))
        operation = _build(graph)["paths"]["/users/{userId}"]["delete"]

        assert operation["parameters"] == [
            {"name": "userId", "in": "path", "required": True, "schema": {"type": "integer"}},
        ]
        assert "requestBody" not in operation

    def test_post_carries_request_body(self):
        graph = _make_graph(_rpc("CreateUser", "POST /users [Users]", input_type="demo.UserRequest"))
        doc = _build(graph)

        operation = doc["paths"]["/users"]["post"]
        assert operation["requestBody"] == {
            "content": {"application/json": {"schema": {"$ref": "#/components/schemas/demo.UserRequest"}}},
        }
        assert "demo.UserRequest" in doc["components"]["schemas"]

    def test_empty_input_attaches_no_body(self):
        doc = _build(_make_graph(_rpc("Touch", "PUT /touch")))
        assert "requestBody" not in doc["paths"]["/touch"]["put"]

    def test_empty_output_is_an_empty_object(self):
        graph = _make_graph(_rpc("Remove", "DELETE /users/{id:string}", input_type="demo.UserRequest", output_type=EMPTY))
        doc = _build(graph)
        assert doc["components"]["schemas"][EMPTY] == {"type": "object"}

    def test_methods_share_a_path(self):
        graph = _make_graph(
            _rpc("GetUser", "GET /users/{id:int}", input_type="demo.UserRequest"),
            _rpc("UpdateUser", "PUT /users/{id:int}", input_type="demo.UserRequest"),
        )
        paths = _build(graph)["paths"]
        assert list(paths) == ["/users/{id}"]
        assert list(paths["/users/{id}"]) == ["get", "put"]

    def test_unannotated_methods_are_skipped(self):
        graph = _make_graph(
            _rpc("Internal", " Only used by workers.\n", input_type="demo.UserRequest"),
            _rpc("Hello", "GET /hello"),
        )
        doc = _build(graph)
        assert list(doc["paths"]) == ["/hello"]
        assert "demo.UserRequest" not in doc["components"]["schemas"]

    def test_all_schemas(self):
        doc = _build(_make_graph(_rpc("Hello", "GET /hello")), include_all_schemas=True)
        assert set(doc["components"]["schemas"]) == {"demo.HelloMessage", "demo.UserRequest", EMPTY}

    def test_custom_status_and_content_type(self):
        doc = _build(_make_graph(_rpc("Hello", "GET /hello")), success_status="201", content_type="application/x-json")
        responses = doc["paths"]["/hello"]["get"]["responses"]
        assert list(responses) == ["201"]
        assert "application/x-json" in responses["201"]["content"]

    def test_builder_is_reusable(self):
        builder = DocumentBuilder(GeneratorConfig(title="Demo", version="1"))
        first = builder.build(_make_graph(_rpc("Create", "POST /users", input_type="demo.UserRequest")))
        second = builder.build(_make_graph(_rpc("Hello", "GET /hello")))
        assert "demo.UserRequest" in first.schemas
        assert "demo.UserRequest" not in second.schemas
        assert list(second.paths) == ["/hello"]

    def test_cyclic_messages_become_references(self):
        graph = _make_graph(
            _rpc("GetTree", "GET /tree", output_type="demo.Node"),
            _rpc("Adopt", "POST /families", input_type="demo.Parent", output_type="demo.Child"),
        )
        graph.messages["demo.Node"] = ProtoMessage(full_name="demo.Node", fields=[
            ProtoField(name="children", number=1, type="message", type_name="demo.Node", repeated=True),
        ])
        graph.messages["demo.Parent"] = ProtoMessage(full_name="demo.Parent", fields=[
            ProtoField(name="child", number=1, type="message", type_name="demo.Child"),
        ])
        graph.messages["demo.Child"] = ProtoMessage(full_name="demo.Child", fields=[
            ProtoField(name="parent", number=1, type="message", type_name="demo.Parent"),
        ])

        schemas = _build(graph)["components"]["schemas"]

        assert set(schemas) == {"demo.Node", "demo.Parent", "demo.Child"}
        assert schemas["demo.Node"]["properties"]["children"]["items"] == {"$ref": "#/components/schemas/demo.Node"}
        assert schemas["demo.Parent"]["properties"]["child"] == {"$ref": "#/components/schemas/demo.Child"}
        assert schemas["demo.Child"]["properties"]["parent"] == {"$ref": "#/components/schemas/demo.Parent"}

    def test_references_resolve(self):
        graph = _make_graph(
            _rpc("Hello", "GET /hello"),
            _rpc("Create", "POST /users", input_type="demo.UserRequest", output_type=EMPTY),
        )
        doc = _build(graph)
        refs = []

        def collect(node):
            if isinstance(node, dict):
                if "$ref" in node:
                    refs.append(node["$ref"])
                for value in node.values():
                    collect(value)
            elif isinstance(node, list):
                for value in node:
                    collect(value)

        collect(doc["paths"])
        assert refs
        for ref in refs:
            assert ref.removeprefix("#/components/schemas/") in doc["components"]["schemas"]


class TestDocumentBuilderErrors:
    def test_duplicate_path_operation(self):
        graph = _make_graph(_rpc("Ping", "GET /ping"), _rpc("HealthCheck", "GET /ping"))
        with pytest.raises(DuplicatePathOperation) as exc_info:
            DocumentBuilder().build(graph)
        assert exc_info.value.first_rpc == "demo.Greeter.Ping"
        assert exc_info.value.second_rpc == "demo.Greeter.HealthCheck"

    def test_duplicate_after_type_stripping(self):
        graph = _make_graph(_rpc("ById", "GET /users/{id:int}"), _rpc("ByName", "GET /users/{id:string}"))
        with pytest.raises(DuplicatePathOperation):
            DocumentBuilder().build(graph)

    def test_malformed_annotation_aborts(self):
        graph = _make_graph(_rpc("Hello", "GET /hello"), _rpc("Broken", "POST users"))
        with pytest.raises(MalformedAnnotation) as exc_info:
            DocumentBuilder().build(graph)
        assert exc_info.value.rpc_name == "demo.Greeter.Broken"

    def test_unknown_output_type(self):
        graph = _make_graph(_rpc("Hello", "GET /hello", output_type="demo.Missing"))
        with pytest.raises(UnknownMessageType):
            DocumentBuilder().build(graph)

    def test_unsupported_field_aborts(self):
        graph = _make_graph(
            _rpc("Hello", "GET /hello"),
            _rpc("Import", "POST /legacy", input_type="demo.Legacy"),
        )
        graph.messages["demo.Legacy"] = ProtoMessage(full_name="demo.Legacy", fields=[
            ProtoField(name="data", number=1, type="group", type_name="demo.Legacy.Data"),
        ])
        with pytest.raises(UnsupportedFieldType) as exc_info:
            DocumentBuilder().build(graph)
        assert exc_info.value.message == "demo.Legacy"
        assert exc_info.value.field == "data"

    def test_path_error_reports_annotation_line(self):
        graph = _make_graph(_rpc("GetUser", " Fetch a user.\n GET /users/{id} [Users]\n"))
        with pytest.raises(MalformedAnnotation) as exc_info:
            DocumentBuilder().build(graph)
        assert exc_info.value.rpc_name == "demo.Greeter.GetUser"
        assert exc_info.value.line == "GET /users/{id} [Users]"
