"""Ingest module for tabular file parsing."""
from job_pipeline_core.ingest.preview import detect_format, preview_records, load_records, get_loader

__all__ = ["detect_format", "preview_records", "load_records", "get_loader"]
