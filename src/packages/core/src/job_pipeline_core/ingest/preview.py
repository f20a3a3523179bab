"""File format detection and row loading."""
from pathlib import Path
from typing import Any

from job_pipeline_core.ingest.loaders import (
    CSVLoader,
    ExcelLoader,
    JSONLLoader,
    JSONLoader,
    TSVLoader,
)

LOADERS = [ExcelLoader(), JSONLLoader(), JSONLoader(), CSVLoader(), TSVLoader()]


def detect_format(file_path: str) -> str | None:
    """Detect the format of a file."""
    path = Path(file_path)
    if not path.exists():
        return None
    with open(file_path, "rb") as f:
        head = f.read(8192)
    for loader in LOADERS:
        if loader.detect(head, path.suffix.lower()):
            return loader.name
    return None


def get_loader(format_name: str):
    """Get a loader by format name."""
    for loader in LOADERS:
        if loader.name == format_name:
            return loader
    raise ValueError(f"Unknown format: {format_name}")


def preview_records(
    file_path: str, format_name: str, options: dict | None = None, max_rows: int = 25
) -> list[dict[str, Any]]:
    """Load a preview of rows from a file."""
    loader = get_loader(format_name)
    return loader.preview(file_path, options or {}, max_rows=max_rows)


def load_records(
    file_path: str, format_name: str, options: dict | None = None
) -> list[dict[str, Any]]:
    """Load all rows from a file."""
    loader = get_loader(format_name)
    return loader.load(file_path, options or {})
