"""Validation engine: raw tabular rows -> valid / invalid records.

Pure and stateless. Nothing here touches the job store, so the same call
serves both the dry-run preview and the real submission.
"""
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from job_pipeline_core.jobs.models import JobType
from job_pipeline_core.util.errors import BatchTooLargeError, ValidationError
from job_pipeline_core.validation.columns import canonicalize_row
from job_pipeline_core.validation.schema import (
    CHOICE,
    DATE,
    EMAIL,
    INT,
    MAX_BATCH_SIZE,
    PHONE,
    FieldSpec,
    RowSchema,
    get_schema,
)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15


@dataclass
class Record:
    """One validated row."""

    row_number: int
    identifier: str | None
    fields: dict[str, Any]
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowNumber": self.row_number,
            "identifier": self.identifier,
            "fields": self.fields,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Record":
        return cls(
            row_number=int(data["rowNumber"]),
            identifier=data.get("identifier"),
            fields=dict(data.get("fields") or {}),
            errors=list(data.get("errors") or []),
            warnings=list(data.get("warnings") or []),
        )


@dataclass
class ValidationResult:
    job_type: JobType
    valid: list[Record]
    invalid: list[Record]

    @property
    def total_rows(self) -> int:
        return len(self.valid) + len(self.invalid)

    def summary(self) -> dict[str, Any]:
        """Dry-run view returned to the uploader."""
        return {
            "type": self.job_type.value,
            "totalRows": self.total_rows,
            "validRows": len(self.valid),
            "invalidRows": len(self.invalid),
            "invalid": [r.to_dict() for r in self.invalid],
            "warnings": [
                {"rowNumber": r.row_number, "identifier": r.identifier, "warnings": r.warnings}
                for r in self.valid + self.invalid
                if r.warnings
            ],
        }


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value))


def is_valid_phone(value: str) -> bool:
    digits = re.sub(r"\D", "", value)
    return PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS


def is_valid_date(value: str) -> bool:
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_format(spec: FieldSpec, value: str) -> str | None:
    """Return a message if `value` violates the field's format."""
    if spec.kind == EMAIL and not is_valid_email(value):
        return f"Invalid {spec.label} format"
    if spec.kind == PHONE and not is_valid_phone(value):
        return f"Invalid {spec.label} number: expected {PHONE_MIN_DIGITS}-{PHONE_MAX_DIGITS} digits"
    if spec.kind == DATE and not is_valid_date(value):
        return f"Invalid date format: {value}. Expected format: YYYY-MM-DD"
    if spec.kind == INT:
        try:
            n = int(value)
        except ValueError:
            return f"{spec.label} must be a number"
        if spec.min_value is not None and spec.max_value is not None:
            if not spec.min_value <= n <= spec.max_value:
                return f"{spec.label} must be between {spec.min_value} and {spec.max_value}"
    if spec.kind == CHOICE and value.upper() not in spec.choices:
        return f"Invalid {spec.label}. Must be one of: {', '.join(spec.choices)}"
    return None


def _clean_fields(row: dict[str, Any], schema: RowSchema) -> dict[str, Any]:
    fields = canonicalize_row(row, schema)
    for spec in schema.fields:
        value = fields.get(spec.name)
        if isinstance(value, str):
            value = value.strip()
        if _is_blank(value):
            fields[spec.name] = None
            continue
        value = str(value)
        if spec.kind == EMAIL:
            value = value.lower()
        elif spec.kind == CHOICE:
            value = value.upper()
        fields[spec.name] = value
    return fields


def _validate_row(fields: dict[str, Any], schema: RowSchema, record: Record) -> None:
    for spec in schema.fields:
        value = fields.get(spec.name)
        if value is None:
            if spec.required:
                record.errors.append(f"{spec.label[0].upper()}{spec.label[1:]} is required")
            continue
        problem = _check_format(spec, value)
        if problem is None:
            continue
        if spec.hard:
            record.errors.append(problem)
        else:
            record.warnings.append(problem)


def _identifier(fields: dict[str, Any], schema: RowSchema) -> str | None:
    for name in schema.identifier_fields:
        value = fields.get(name)
        if value:
            return value
    return None


def validate_rows(
    rows: list[dict[str, Any]],
    job_type: JobType,
    *,
    header_rows: int = 1,
    max_batch_size: int = MAX_BATCH_SIZE,
) -> ValidationResult:
    """Classify raw rows for an import job type.

    The batch cap is checked before any row is looked at. Row numbers are
    1-based and offset by `header_rows` so they match the spreadsheet.
    """
    job_type = JobType(job_type)
    if not job_type.is_import:
        raise ValidationError("Report jobs take a report configuration, not rows")
    if len(rows) > max_batch_size:
        raise BatchTooLargeError(len(rows), max_batch_size)
    if not rows:
        raise ValidationError("No rows found")

    schema = get_schema(job_type)
    seen_ids: dict[str, int] = {}
    seen_unique: dict[str, dict[str, int]] = {name: {} for name in schema.unique_fields}
    valid: list[Record] = []
    invalid: list[Record] = []

    for i, row in enumerate(rows):
        fields = _clean_fields(row, schema)
        identifier = _identifier(fields, schema)
        record = Record(row_number=i + 1 + header_rows, identifier=identifier, fields=fields)

        if identifier is None:
            if len(schema.identifier_fields) > 1:
                record.errors.append(schema.missing_identifier_message)
        else:
            key = identifier.casefold()
            first = seen_ids.get(key)
            if first is not None:
                record.errors.append(schema.duplicate_message)
                record.errors.append(f"Also found in row {first}")
            else:
                seen_ids[key] = record.row_number

        _validate_row(fields, schema, record)

        for name in schema.unique_fields:
            value = fields.get(name)
            if not value:
                continue
            first = seen_unique[name].get(value.casefold())
            if first is not None:
                record.errors.append(
                    f"Duplicate {schema.field(name).label} in file (also found in row {first})"
                )
            else:
                seen_unique[name][value.casefold()] = record.row_number

        (valid if record.is_valid else invalid).append(record)

    return ValidationResult(job_type=job_type, valid=valid, invalid=invalid)
