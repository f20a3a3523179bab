"""Job models."""
import json
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class JobType(str, Enum):
    IMPORT_STUDENTS = "IMPORT_STUDENTS"
    IMPORT_STAFF = "IMPORT_STAFF"
    IMPORT_SELF_INTERNSHIPS = "IMPORT_SELF_INTERNSHIPS"
    GENERATE_REPORT = "GENERATE_REPORT"

    @property
    def is_import(self) -> bool:
        return self is not JobType.GENERATE_REPORT


class JobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class CamelModel(BaseModel):
    """Serializes with camelCase keys, accepts either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecordFailure(CamelModel):
    """Diagnostics for one record that failed during processing."""

    row_number: int
    identifier: str | None = None
    errors: list[str] = Field(default_factory=list)


class JobProgress(CamelModel):
    processed: int = 0
    total: int = 0


class JobResult(CamelModel):
    success_count: int = 0
    failure_count: int = 0
    record_errors: list[RecordFailure] = Field(default_factory=list)
    artifact_ref: str | None = None
    row_count: int | None = None


ExportFormat = Literal["excel", "csv", "pdf", "json"]


class ReportConfig(CamelModel):
    """Payload for GENERATE_REPORT jobs."""

    report_type: str
    columns: list[str] = Field(default_factory=list, max_length=100)
    filters: dict[str, Any] = Field(default_factory=dict)
    group_by: str | None = None
    sort_by: str | None = None
    sort_order: Literal["asc", "desc"] | None = None
    export_format: ExportFormat = "excel"

    @field_validator("report_type")
    @classmethod
    def _strip_type(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("reportType is required")
        return v


class Job(CamelModel):
    """A job row as stored in the job store."""

    id: str
    type: JobType
    scope_id: str
    status: JobStatus
    payload_ref: str
    progress: JobProgress
    result: JobResult
    result_history: list[dict[str, Any]] = Field(default_factory=list)
    retry_count: int = 0
    priority: int = 0
    lease_owner: str | None = None
    lease_id: str | None = None
    lease_expires_at: str | None = None
    created_at: str
    started_at: str | None = None
    completed_at: str | None = None
    updated_at: str | None = None
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        from job_pipeline_core.jobs.state import TERMINAL_STATES

        return self.status in TERMINAL_STATES

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Job":
        """Build a Job from a `jobs` table row."""
        return cls(
            id=row["id"],
            type=JobType(row["type"]),
            scope_id=row["scope_id"],
            status=JobStatus(row["status"]),
            payload_ref=row["payload_ref"],
            progress=JobProgress(
                processed=row["progress_processed"], total=row["progress_total"]
            ),
            result=JobResult(
                success_count=row["success_count"],
                failure_count=row["failure_count"],
                record_errors=json.loads(row["record_errors"] or "[]"),
                artifact_ref=row["artifact_ref"],
                row_count=row["row_count"],
            ),
            result_history=json.loads(row["result_history"] or "[]"),
            retry_count=row["retry_count"],
            priority=row["priority"],
            lease_owner=row["lease_owner"],
            lease_id=row["lease_id"],
            lease_expires_at=row["lease_expires_at"],
            created_at=row["created_at"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            updated_at=row["updated_at"],
            error_message=row["error_message"],
        )

    def status_snapshot(self) -> dict[str, Any]:
        """The polling view of this job."""
        out: dict[str, Any] = {
            "jobId": self.id,
            "type": self.type.value,
            "scopeId": self.scope_id,
            "status": self.status.value,
            "progress": self.progress.model_dump(by_alias=True),
            "retryCount": self.retry_count,
        }
        if self.status is not JobStatus.PENDING or self.result.success_count or self.result.failure_count:
            out["result"] = self.result.model_dump(by_alias=True, exclude_none=True)
        if self.error_message:
            out["errorMessage"] = self.error_message
        return out
