"""Generator configuration defaults."""

from dataclasses import dataclass


@dataclass(slots=True)
class GeneratorConfig:
    title: str = "API"
    version: str = "0.1.0"
    openapi_version: str = "3.0.0"
    success_status: str = "200"
    content_type: str = "application/json"
    include_all_schemas: bool = False
