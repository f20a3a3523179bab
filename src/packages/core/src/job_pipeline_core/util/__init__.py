"""Utility modules."""
from job_pipeline_core.util.ids import generate_id
from job_pipeline_core.util.time import utc_now, utc_now_iso, to_iso, iso_after
from job_pipeline_core.util.errors import (
    PipelineError,
    ValidationError,
    BatchTooLargeError,
    JobNotFoundError,
    InvalidTransitionError,
    LeaseLostError,
    JobCancelledError,
    RecordError,
    PayloadError,
)

__all__ = [
    "generate_id",
    "utc_now",
    "utc_now_iso",
    "to_iso",
    "iso_after",
    "PipelineError",
    "ValidationError",
    "BatchTooLargeError",
    "JobNotFoundError",
    "InvalidTransitionError",
    "LeaseLostError",
    "JobCancelledError",
    "RecordError",
    "PayloadError",
]
