"""JSON output for analysis results."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
from pydantic import BaseModel


class ReportError(Exception):
    """Raised when results cannot be serialized or written."""


def to_json(data: Any) -> str:
    """Serialize with 2-space indentation; pydantic models are dumped first."""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    return json.dumps(data, indent=2, ensure_ascii=False)


def print_json(data: Any) -> None:
    click.echo(to_json(data))


def write_json_to_file(file_path: str | Path, data: Any) -> Path:
    """Write pretty JSON followed by a newline, creating parent directories."""
    path = Path(file_path)
    try:
        text = to_json(data)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text + "\n", encoding="utf-8")
    except (OSError, TypeError, ValueError) as e:
        raise ReportError(f"Failed to write JSON to file {file_path}: {e}") from e
    return path
