"""Scoped record persistence for import jobs."""
from job_pipeline_core.records.store import (
    STUDENT,
    STAFF,
    SELF_INTERNSHIP,
    ScopedRecordWriter,
    insert_record,
    get_record,
    query_records,
)

__all__ = [
    "STUDENT",
    "STAFF",
    "SELF_INTERNSHIP",
    "ScopedRecordWriter",
    "insert_record",
    "get_record",
    "query_records",
]
