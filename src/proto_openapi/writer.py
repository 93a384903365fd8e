"""Serializes the finished OpenAPI tree to YAML or JSON."""

import json
from pathlib import Path

import yaml


def detect_format(file_path: Path) -> str:
    """Pick the output format from the file extension.

    Returns: 'json' or 'yaml'.
    """
    return "json" if file_path.suffix.lower() == ".json" else "yaml"


def dump_document(document: dict, fmt: str = "yaml") -> str:
    if fmt == "json":
        return json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    return yaml.safe_dump(document, sort_keys=False, allow_unicode=True)


def write_document(document: dict, file_path: Path, fmt: str = "auto") -> None:
    """Write the document, creating parent directories as needed."""
    if fmt == "auto":
        fmt = detect_format(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(dump_document(document, fmt), encoding="utf-8")
