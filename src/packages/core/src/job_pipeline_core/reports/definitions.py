"""Report types: title, source records and available columns."""
import re
from dataclasses import dataclass
from typing import Any

from job_pipeline_core.jobs.models import ReportConfig
from job_pipeline_core.records.store import SELF_INTERNSHIP, STAFF, STUDENT
from job_pipeline_core.util.errors import ValidationError

FILTER_KEY_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]{0,49}$")
MAX_FILTER_STRING = 1000
MAX_FILTER_ITEMS = 100
UNSAFE_FILTER_CHARS = re.compile(r"[<>{}]")


@dataclass(frozen=True)
class ColumnDef:
    field: str
    header: str


@dataclass(frozen=True)
class ReportDefinition:
    report_type: str
    title: str
    source_kind: str
    columns: tuple[ColumnDef, ...]

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(c.field for c in self.columns)

    def column(self, field: str) -> ColumnDef:
        for c in self.columns:
            if c.field == field:
                return c
        raise KeyError(field)


REPORT_DEFINITIONS: dict[str, ReportDefinition] = {
    d.report_type: d
    for d in (
        ReportDefinition(
            "student_directory",
            "Student Directory Report",
            STUDENT,
            (
                ColumnDef("enrollment_number", "Enrollment Number"),
                ColumnDef("roll_number", "Roll Number"),
                ColumnDef("name", "Student Name"),
                ColumnDef("email", "Email"),
                ColumnDef("phone", "Phone"),
                ColumnDef("batch", "Batch"),
                ColumnDef("branch", "Branch"),
                ColumnDef("semester", "Semester"),
                ColumnDef("gender", "Gender"),
            ),
        ),
        ReportDefinition(
            "staff_directory",
            "Staff Directory Report",
            STAFF,
            (
                ColumnDef("name", "Name"),
                ColumnDef("email", "Email"),
                ColumnDef("role", "Role"),
                ColumnDef("designation", "Designation"),
                ColumnDef("phone", "Phone"),
            ),
        ),
        ReportDefinition(
            "self_internships",
            "Self-Identified Internship Report",
            SELF_INTERNSHIP,
            (
                ColumnDef("student_email", "Student Email"),
                ColumnDef("roll_number", "Roll Number"),
                ColumnDef("enrollment_number", "Enrollment Number"),
                ColumnDef("company_name", "Company"),
                ColumnDef("job_profile", "Job Profile"),
                ColumnDef("stipend", "Stipend"),
                ColumnDef("start_date", "Start Date"),
                ColumnDef("end_date", "End Date"),
                ColumnDef("duration", "Duration"),
                ColumnDef("hr_name", "HR Name"),
                ColumnDef("hr_email", "HR Email"),
                ColumnDef("faculty_mentor_name", "Mentor"),
            ),
        ),
    )
}


def normalize_report_type(report_type: str) -> str:
    return report_type.strip().lower().replace("-", "_")


def get_definition(report_type: str) -> ReportDefinition:
    try:
        return REPORT_DEFINITIONS[normalize_report_type(report_type)]
    except KeyError:
        known = ", ".join(sorted(REPORT_DEFINITIONS))
        raise ValidationError(f"Unknown report type {report_type!r}. Available: {known}") from None


def _check_filter_value(key: str, value: Any, depth: int = 0) -> None:
    if value is None or isinstance(value, (bool, int, float)):
        return
    if isinstance(value, str):
        if len(value) > MAX_FILTER_STRING or UNSAFE_FILTER_CHARS.search(value):
            raise ValidationError(f"Filter {key!r} has an invalid value")
        return
    if isinstance(value, list) and depth == 0:
        if len(value) > MAX_FILTER_ITEMS:
            raise ValidationError(f"Filter {key!r} has more than {MAX_FILTER_ITEMS} values")
        for item in value:
            _check_filter_value(key, item, depth + 1)
        return
    if isinstance(value, dict) and depth == 0:
        unknown = set(value) - {"from", "to"}
        if unknown or not value:
            raise ValidationError(f"Range filter {key!r} takes only 'from' and 'to'")
        for item in value.values():
            _check_filter_value(key, item, depth + 1)
        return
    raise ValidationError(f"Filter {key!r} has an unsupported value")


def validate_report_config(config: ReportConfig) -> ReportDefinition:
    """Check a config against its report definition before a job is created."""
    definition = get_definition(config.report_type)
    fields = set(definition.fields)

    unknown = [c for c in config.columns if c not in fields]
    if unknown:
        raise ValidationError(f"Unknown columns for {definition.report_type}: {', '.join(unknown)}")
    for name, value in (("groupBy", config.group_by), ("sortBy", config.sort_by)):
        if value is not None and value not in fields:
            raise ValidationError(f"{name} {value!r} is not a column of {definition.report_type}")
    for key, value in config.filters.items():
        if not FILTER_KEY_RE.match(key):
            raise ValidationError(f"Invalid filter key {key!r}")
        if key not in fields:
            raise ValidationError(f"Cannot filter {definition.report_type} on {key!r}")
        _check_filter_value(key, value)
    return definition
