"""Report artifact storage."""
from job_pipeline_core.artifacts.store import LocalArtifactStore, media_type, EXTENSIONS

__all__ = ["LocalArtifactStore", "media_type", "EXTENSIONS"]
