"""CLI entry point for proto-openapi."""

import logging
from pathlib import Path

import click

from proto_openapi.config import GeneratorConfig
from proto_openapi.errors import GenerationError
from proto_openapi.generator.document import DocumentBuilder
from proto_openapi.proto.loader import build_graph, compile_protos, load_descriptor_set
from proto_openapi.proto.models import DescriptorGraph
from proto_openapi.writer import write_document


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _load_graph(protos: tuple[Path, ...], includes: tuple[Path, ...], descriptor_set: Path | None) -> DescriptorGraph:
    """Load descriptors from a compiled set or by running protoc."""
    if descriptor_set is not None:
        return build_graph(load_descriptor_set(descriptor_set))
    return build_graph(compile_protos(protos, includes))


@click.command()
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.option("-p", "--proto", "protos", multiple=True, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="Protobuf file to read (repeatable).")
@click.option("-I", "--include", "includes", multiple=True, type=click.Path(exists=True, file_okay=False, path_type=Path), help="Extra import directory for protoc (repeatable).")
@click.option("--descriptor-set", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None, help="Pre-compiled FileDescriptorSet to read instead of running protoc.")
@click.option("--title", required=True, help="Title of the OpenAPI document.")
@click.option("--version", "api_version", required=True, help="Version of the OpenAPI document.")
@click.option("--all-schemas", is_flag=True, help="Emit schemas for every message, not only the ones in use.")
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
def main(
    output: Path,
    protos: tuple[Path, ...],
    includes: tuple[Path, ...],
    descriptor_set: Path | None,
    title: str,
    api_version: str,
    all_schemas: bool,
    verbose: bool,
):
    """Generate an OpenAPI document from annotated protobuf services."""
    _setup_logging(verbose)
    if not protos and descriptor_set is None:
        raise click.UsageError("Provide at least one -p/--proto file or --descriptor-set.")

    config = GeneratorConfig(title=title, version=api_version, include_all_schemas=all_schemas)
    try:
        graph = _load_graph(protos, includes, descriptor_set)
        click.echo(f"Found {sum(len(s.methods) for s in graph.services)} RPC methods in {len(graph.services)} services.")
        document = DocumentBuilder(config).build(graph)
    except GenerationError as e:
        raise click.ClickException(str(e)) from e

    write_document(document.to_dict(config), output)
    click.echo(f"OpenAPI document with {len(document.paths)} paths saved to {output}")
