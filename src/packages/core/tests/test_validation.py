"""Tests for the validation engine."""
import pytest

from job_pipeline_core.jobs.models import JobType
from job_pipeline_core.util.errors import BatchTooLargeError, ValidationError
from job_pipeline_core.validation import validate_rows
from job_pipeline_core.validation.columns import resolve_columns
from job_pipeline_core.validation.schema import STUDENT_SCHEMA


def student(n, **overrides):
    row = {
        "Name": f"Student {n}",
        "Email": f"student{n}@example.com",
        "Enrollment Number": f"EN{n:03d}",
    }
    row.update(overrides)
    return row


def test_duplicate_identifier_flags_later_row():
    rows = [student(1), student(2), student(3, **{"Enrollment Number": "EN001"})]
    result = validate_rows(rows, JobType.IMPORT_STUDENTS)

    assert len(result.valid) == 2
    assert len(result.invalid) == 1
    dup = result.invalid[0]
    assert dup.row_number == 4
    assert "Duplicate student entry in file" in dup.errors
    assert "Also found in row 2" in dup.errors


def test_batch_cap_checked_before_rows():
    # Every row here would also be invalid; the cap must win.
    rows = [{} for _ in range(501)]
    with pytest.raises(BatchTooLargeError, match="Maximum batch size exceeded"):
        validate_rows(rows, JobType.IMPORT_STUDENTS)


def test_batch_at_cap_is_accepted():
    rows = [student(n) for n in range(500)]
    result = validate_rows(rows, JobType.IMPORT_STUDENTS)
    assert len(result.valid) == 500


def test_valid_plus_invalid_equals_total():
    rows = [student(1), student(2, Email="bad"), {}, student(4, Semester="9")]
    result = validate_rows(rows, JobType.IMPORT_STUDENTS)
    assert len(result.valid) + len(result.invalid) == result.total_rows == len(rows)


def test_required_fields():
    result = validate_rows([{"Name": "Asha"}], JobType.IMPORT_STUDENTS)
    errors = result.invalid[0].errors
    assert "Email is required" in errors
    assert "Enrollment number is required" in errors


def test_row_numbers_without_header():
    rows = [student(1), {"Name": "x"}]
    result = validate_rows(rows, JobType.IMPORT_STUDENTS, header_rows=0)
    assert result.valid[0].row_number == 1
    assert result.invalid[0].row_number == 2


def test_strict_and_soft_format_checks():
    rows = [
        student(1, Semester="9"),
        student(2, Gender="unknown"),
        student(3, Phone="12345", DOB="17/05/2004"),
    ]
    result = validate_rows(rows, JobType.IMPORT_STUDENTS)

    by_row = {r.row_number: r for r in result.valid + result.invalid}
    assert "Semester must be between 1 and 8" in by_row[2].errors
    assert by_row[3].errors[0].startswith("Invalid gender")
    # Phone and date of birth are optional, so bad values only warn.
    assert by_row[4].is_valid
    assert len(by_row[4].warnings) == 2


def test_values_are_normalized():
    rows = [student(1, Email="  Asha@Example.COM ", Gender="female")]
    record = validate_rows(rows, JobType.IMPORT_STUDENTS).valid[0]
    assert record.fields["email"] == "asha@example.com"
    assert record.fields["gender"] == "FEMALE"
    assert record.identifier == "EN001"


def test_duplicate_email_in_file():
    rows = [student(1), student(2, Email="student1@example.com")]
    result = validate_rows(rows, JobType.IMPORT_STUDENTS)
    assert result.invalid[0].errors == ["Duplicate email in file (also found in row 2)"]


def test_header_aliases():
    mapping = resolve_columns(["Student Name", "Admission Number", "ROLL NO", "Hobby"], STUDENT_SCHEMA)
    assert mapping == {
        "Student Name": "name",
        "Admission Number": "enrollment_number",
        "ROLL NO": "roll_number",
        "Hobby": "Hobby",
    }


def test_staff_role_is_required_choice():
    rows = [
        {"Name": "Dr. Rao", "Email": "rao@example.com", "Role": "faculty"},
        {"Name": "Ms. Iyer", "Email": "iyer@example.com", "Role": "janitor"},
    ]
    result = validate_rows(rows, JobType.IMPORT_STAFF)
    assert result.valid[0].fields["role"] == "FACULTY"
    assert result.invalid[0].errors == ["Invalid role. Must be one of: FACULTY, MENTOR, PRINCIPAL"]


def test_self_internship_needs_some_identifier():
    rows = [
        {"Company": "Acme"},
        {"Roll No": "17", "Company": "Acme"},
    ]
    result = validate_rows(rows, JobType.IMPORT_SELF_INTERNSHIPS)
    assert result.invalid[0].errors[0].startswith("At least one student identifier")
    assert result.valid[0].identifier == "17"


def test_empty_and_report_batches_rejected():
    with pytest.raises(ValidationError, match="No rows found"):
        validate_rows([], JobType.IMPORT_STUDENTS)
    with pytest.raises(ValidationError):
        validate_rows([student(1)], JobType.GENERATE_REPORT)


def test_summary_shape():
    result = validate_rows([student(1), {}], JobType.IMPORT_STUDENTS)
    summary = result.summary()
    assert summary["totalRows"] == 2
    assert summary["validRows"] == 1
    assert summary["invalid"][0]["rowNumber"] == 3
