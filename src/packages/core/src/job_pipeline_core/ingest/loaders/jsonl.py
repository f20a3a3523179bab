"""JSONL file loader."""
import json
from typing import Any

from job_pipeline_core.ingest.loaders.base import BaseLoader
from job_pipeline_core.ingest.normalize import normalize_record


class JSONLLoader(BaseLoader):
    """Loader for JSONL (newline-delimited JSON) files."""

    name = "jsonl"

    def detect(self, head: bytes, suffix: str) -> bool:
        if suffix not in (".jsonl", ".ndjson"):
            return False
        first_line = head.decode("utf-8", errors="replace").strip().split("\n")[0]
        if not first_line:
            return True
        try:
            json.loads(first_line)
        except json.JSONDecodeError:
            return False
        return True

    def load(self, file_path: str, options: dict) -> list[dict[str, Any]]:
        rows = []
        with open(file_path, "r", encoding="utf-8") as f:
            for i, line in enumerate(f):
                line = line.strip()
                if not line:
                    continue
                try:
                    obj = json.loads(line)
                except json.JSONDecodeError as e:
                    raise ValueError(f"JSONL line {i + 1} parse error: {e}") from e
                if isinstance(obj, dict):
                    rows.append(normalize_record(obj))
        return rows
