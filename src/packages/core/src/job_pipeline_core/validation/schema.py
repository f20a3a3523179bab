"""Row schemas for each import job type.

Each import type is described by an explicit table of FieldSpecs rather than
ad hoc lookups, so the validation engine can treat every type the same way.
"""
from dataclasses import dataclass

from job_pipeline_core.jobs.models import JobType

MAX_BATCH_SIZE = 500

TEXT = "text"
EMAIL = "email"
PHONE = "phone"
DATE = "date"
INT = "int"
CHOICE = "choice"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    label: str
    aliases: tuple[str, ...] = ()
    kind: str = TEXT
    required: bool = False
    # Identifying fields are how a row is matched to a real person.
    identifying: bool = False
    # Domain constraints whose violation is an error even on optional fields.
    strict: bool = False
    choices: tuple[str, ...] = ()
    min_value: int | None = None
    max_value: int | None = None

    @property
    def hard(self) -> bool:
        """Whether a format violation is an error rather than a warning."""
        return self.required or self.identifying or self.strict


@dataclass(frozen=True)
class RowSchema:
    job_type: JobType
    record_kind: str
    fields: tuple[FieldSpec, ...]
    # First non-empty field wins.
    identifier_fields: tuple[str, ...]
    missing_identifier_message: str
    duplicate_message: str
    # Other fields that must be unique within a file.
    unique_fields: tuple[str, ...] = ()

    def field(self, name: str) -> FieldSpec:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    @property
    def template_headers(self) -> tuple[str, ...]:
        """Column headers for a blank upload sheet; each resolves back to its field."""
        return tuple(f.label[:1].upper() + f.label[1:] for f in self.fields)


STUDENT_SCHEMA = RowSchema(
    job_type=JobType.IMPORT_STUDENTS,
    record_kind="student",
    fields=(
        FieldSpec("name", "Name", ("Student Name", "Full Name"), required=True),
        FieldSpec("email", "email", ("Student Email",), kind=EMAIL, required=True, identifying=True),
        FieldSpec(
            "enrollment_number",
            "Enrollment number",
            ("Admission Number", "Enrollment No"),
            required=True,
            identifying=True,
        ),
        FieldSpec("roll_number", "Roll number", ("Roll No",)),
        FieldSpec("phone", "phone", ("Contact", "Mobile"), kind=PHONE),
        FieldSpec("batch", "Batch", ("Batch Name",)),
        FieldSpec("branch", "Branch", ("Department",)),
        FieldSpec(
            "semester",
            "Semester",
            ("Current Semester",),
            kind=INT,
            strict=True,
            min_value=1,
            max_value=8,
        ),
        FieldSpec("gender", "gender", kind=CHOICE, strict=True, choices=("MALE", "FEMALE", "OTHER")),
        FieldSpec("date_of_birth", "date of birth", ("DOB",), kind=DATE),
        FieldSpec("parent_name", "Parent name", ("Father Name",)),
        FieldSpec("parent_contact", "parent contact", ("Parent Phone",), kind=PHONE),
    ),
    identifier_fields=("enrollment_number",),
    missing_identifier_message="Enrollment number is required",
    duplicate_message="Duplicate student entry in file",
    unique_fields=("email",),
)

STAFF_SCHEMA = RowSchema(
    job_type=JobType.IMPORT_STAFF,
    record_kind="staff",
    fields=(
        FieldSpec("name", "Name", ("Full Name",), required=True),
        FieldSpec("email", "email", (), kind=EMAIL, required=True, identifying=True),
        FieldSpec(
            "role",
            "role",
            (),
            kind=CHOICE,
            required=True,
            choices=("FACULTY", "MENTOR", "PRINCIPAL"),
        ),
        FieldSpec("phone", "phone", ("Contact", "Mobile"), kind=PHONE),
        FieldSpec("designation", "Designation"),
    ),
    identifier_fields=("email",),
    missing_identifier_message="Email is required",
    duplicate_message="Duplicate staff entry in file",
)

SELF_INTERNSHIP_SCHEMA = RowSchema(
    job_type=JobType.IMPORT_SELF_INTERNSHIPS,
    record_kind="self_internship",
    fields=(
        FieldSpec("student_email", "student email", ("Email",), kind=EMAIL, identifying=True),
        FieldSpec("roll_number", "Roll number", ("Roll No",), identifying=True),
        FieldSpec("enrollment_number", "Enrollment number", ("Admission Number",), identifying=True),
        FieldSpec("company_name", "Company name", ("Company",), required=True),
        FieldSpec("company_address", "Company address"),
        FieldSpec("company_contact", "company contact", ("Company Phone",), kind=PHONE),
        FieldSpec("company_email", "company email", (), kind=EMAIL),
        FieldSpec("hr_name", "HR name", ("Contact Person",)),
        FieldSpec("hr_designation", "HR designation"),
        FieldSpec("hr_contact", "HR contact", ("HR Phone",), kind=PHONE),
        FieldSpec("hr_email", "HR email", (), kind=EMAIL),
        FieldSpec("job_profile", "Job profile", ("Role", "Position")),
        FieldSpec("stipend", "Stipend"),
        FieldSpec("start_date", "start date", (), kind=DATE),
        FieldSpec("end_date", "end date", (), kind=DATE),
        FieldSpec("duration", "Duration"),
        FieldSpec("faculty_mentor_name", "Faculty mentor name", ("Mentor Name",)),
        FieldSpec("faculty_mentor_email", "faculty mentor email", ("Mentor Email",), kind=EMAIL),
        FieldSpec("faculty_mentor_contact", "faculty mentor contact", ("Mentor Contact",), kind=PHONE),
    ),
    identifier_fields=("student_email", "roll_number", "enrollment_number"),
    missing_identifier_message=(
        "At least one student identifier (Email, Roll Number, or Enrollment Number) is required"
    ),
    duplicate_message="Duplicate student entry in file",
)

SCHEMAS: dict[JobType, RowSchema] = {
    s.job_type: s for s in (STUDENT_SCHEMA, STAFF_SCHEMA, SELF_INTERNSHIP_SCHEMA)
}


def get_schema(job_type: JobType) -> RowSchema:
    """Row schema for an import job type."""
    try:
        return SCHEMAS[JobType(job_type)]
    except KeyError:
        raise ValueError(f"No row schema for job type {job_type}") from None
