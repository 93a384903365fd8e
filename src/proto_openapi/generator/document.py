"""Document builder: assembles the OpenAPI document from annotated services."""

import logging
from typing import Optional

from pydantic import BaseModel

from proto_openapi.config import GeneratorConfig
from proto_openapi.errors import DuplicatePathOperation
from proto_openapi.generator.schema import EMPTY_TYPE, SchemaMapper, SchemaNode
from proto_openapi.parser.annotation import parse_annotation
from proto_openapi.parser.path import PathParameter, compile_path
from proto_openapi.proto.models import DescriptorGraph, ProtoService, RpcMethod

logger = logging.getLogger(__name__)


class Operation(BaseModel):
    """One HTTP operation produced by an annotated RPC method."""

    rpc_name: str
    operation_id: str
    parameters: list[PathParameter] = []
    request_body: Optional[SchemaNode] = None
    response: SchemaNode
    response_description: str = ""
    tags: list[str] = []

    def to_openapi(self, config: GeneratorConfig) -> dict:
        result: dict = {}
        if self.tags:
            result["tags"] = list(self.tags)
        result["operationId"] = self.operation_id
        if self.parameters:
            result["parameters"] = [p.to_openapi() for p in self.parameters]
        if self.request_body is not None:
            result["requestBody"] = {
                "content": {config.content_type: {"schema": self.request_body.to_openapi()}},
            }
        result["responses"] = {
            config.success_status: {
                "description": self.response_description,
                "content": {config.content_type: {"schema": self.response.to_openapi()}},
            },
        }
        return result


class OpenApiDocument(BaseModel):
    """Finished document: info block, paths and component schemas."""

    title: str
    version: str
    paths: dict[str, dict[str, Operation]] = {}
    schemas: dict[str, SchemaNode] = {}

    def to_dict(self, config: GeneratorConfig | None = None) -> dict:
        """Render the plain OpenAPI tree handed to the writer."""
        config = config or GeneratorConfig()
        return {
            "openapi": config.openapi_version,
            "info": {"title": self.title, "version": self.version},
            "paths": {
                template: {method.lower(): op.to_openapi(config) for method, op in methods.items()}
                for template, methods in self.paths.items()
            },
            "components": {
                "schemas": {name: node.to_openapi() for name, node in self.schemas.items()},
            },
        }


class DocumentBuilder:
    """Builds an OpenApiDocument from a DescriptorGraph.

    A builder can be reused; every call to build() starts with a fresh
    schema registry.
    """

    def __init__(self, config: GeneratorConfig | None = None):
        self.config = config or GeneratorConfig()

    def build(self, graph: DescriptorGraph) -> OpenApiDocument:
        mapper = SchemaMapper(graph)
        doc = OpenApiDocument(title=self.config.title, version=self.config.version)

        for service in graph.services:
            logger.info("Generating service %s", service.full_name)
            for method in service.methods:
                self._add_method(doc, mapper, service, method)

        if self.config.include_all_schemas:
            mapper.map_all()

        doc.schemas = mapper.schemas
        return doc

    def _add_method(
        self,
        doc: OpenApiDocument,
        mapper: SchemaMapper,
        service: ProtoService,
        method: RpcMethod,
    ) -> None:
        rpc_name = f"{service.full_name}.{method.name}"
        annotation = parse_annotation(method.comment, rpc_name)
        if annotation is None:
            logger.debug("Skipping %s: no annotation", rpc_name)
            return

        compiled = compile_path(annotation.raw_path, rpc_name, annotation.line)
        existing = doc.paths.get(compiled.template, {}).get(annotation.method)
        if existing is not None:
            raise DuplicatePathOperation(annotation.method, compiled.template, existing.rpc_name, rpc_name)

        response = mapper.map_message(method.output_type, rpc_name)
        request_body = None
        if not annotation.omit_body and method.input_type != EMPTY_TYPE:
            request_body = mapper.map_message(method.input_type, rpc_name)

        logger.info("Generating path %s %s", annotation.method, compiled.template)
        doc.paths.setdefault(compiled.template, {})[annotation.method] = Operation(
            rpc_name=rpc_name,
            operation_id=f"{service.name}_{method.name}",
            parameters=list(compiled.parameters),
            request_body=request_body,
            response=response,
            response_description=f"A response containing {method.output_type.rsplit('.', 1)[-1]}",
            tags=list(annotation.tags),
        )
