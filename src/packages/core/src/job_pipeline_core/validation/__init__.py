"""Validation engine for import batches."""
from job_pipeline_core.validation.engine import (
    Record,
    ValidationResult,
    validate_rows,
    is_valid_email,
    is_valid_phone,
)
from job_pipeline_core.validation.schema import MAX_BATCH_SIZE, RowSchema, FieldSpec, get_schema
from job_pipeline_core.validation.template import TEMPLATE_FORMATS, build_template

__all__ = [
    "Record",
    "ValidationResult",
    "validate_rows",
    "is_valid_email",
    "is_valid_phone",
    "MAX_BATCH_SIZE",
    "RowSchema",
    "FieldSpec",
    "get_schema",
    "TEMPLATE_FORMATS",
    "build_template",
]
