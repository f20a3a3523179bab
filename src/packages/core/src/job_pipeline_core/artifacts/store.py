"""Artifact store for generated report files."""
import os
import re
from pathlib import Path

import structlog

logger = structlog.get_logger()

EXTENSIONS = {"excel": "xlsx", "csv": "csv", "pdf": "pdf", "json": "json"}

MEDIA_TYPES = {
    "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
    "pdf": "application/pdf",
    "json": "application/json",
}

_SAFE_REF = re.compile(r"^[A-Za-z0-9_.-]+$")


def _get_artifact_dir() -> str:
    return os.environ.get("ARTIFACT_DIR", "/data/artifacts")


def media_type(export_format: str) -> str:
    return MEDIA_TYPES.get(export_format, "application/octet-stream")


class LocalArtifactStore:
    """Blob storage on the local filesystem, keyed by an opaque ref."""

    def __init__(self, base_dir: str | None = None):
        self.base_dir = Path(base_dir or _get_artifact_dir())

    def _path(self, ref: str) -> Path:
        if not _SAFE_REF.match(ref):
            raise ValueError(f"Invalid artifact ref: {ref!r}")
        return self.base_dir / ref

    def put(self, job_id: str, data: bytes, export_format: str) -> str:
        """Store an artifact and return its ref."""
        if not data:
            raise ValueError("Refusing to store an empty artifact")
        ext = EXTENSIONS.get(export_format)
        if ext is None:
            raise ValueError(f"Unsupported export format: {export_format}")
        ref = f"{job_id}.{ext}"
        os.makedirs(self.base_dir, exist_ok=True)
        path = self._path(ref)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_bytes(data)
        os.replace(tmp, path)
        logger.info("artifact_stored", ref=ref, size=len(data))
        return ref

    def get(self, ref: str) -> bytes:
        path = self._path(ref)
        if not path.exists():
            raise FileNotFoundError(ref)
        return path.read_bytes()

    def exists(self, ref: str) -> bool:
        return self._path(ref).exists()

    def delete(self, ref: str) -> None:
        path = self._path(ref)
        if path.exists():
            path.unlink()
            logger.info("artifact_deleted", ref=ref)
