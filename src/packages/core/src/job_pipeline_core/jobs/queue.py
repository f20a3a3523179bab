"""Job admission and lease reaping."""
from datetime import datetime
from typing import Any

import structlog

from job_pipeline_core.jobs import repo
from job_pipeline_core.jobs.models import Job, JobType, ReportConfig
from job_pipeline_core.reports.definitions import validate_report_config
from job_pipeline_core.util.errors import BatchTooLargeError, ValidationError
from job_pipeline_core.validation import MAX_BATCH_SIZE, Record

logger = structlog.get_logger()

# A report job is a single unit of work.
REPORT_TOTAL = 1


def submit_import(
    job_type: JobType,
    scope_id: str,
    records: list[Record],
    priority: int = 0,
    max_batch_size: int = MAX_BATCH_SIZE,
) -> Job:
    """Admit a batch of validated records as a PENDING import job."""
    job_type = JobType(job_type)
    if not job_type.is_import:
        raise ValidationError(f"{job_type.value} is not an import job type")
    if not scope_id or not scope_id.strip():
        raise ValidationError("scopeId is required")
    if not records:
        raise ValidationError("No valid records to import")
    if len(records) > max_batch_size:
        raise BatchTooLargeError(len(records), max_batch_size)
    bad = [r.row_number for r in records if r.errors]
    if bad:
        raise ValidationError(f"Records with errors cannot be submitted (rows {bad[:10]})")

    payload = {"records": [r.to_dict() for r in records]}
    return repo.create_job(job_type, scope_id, payload, total=len(records), priority=priority)


def submit_report(scope_id: str, config: ReportConfig, priority: int = 0) -> Job:
    """Admit a report configuration as a PENDING GENERATE_REPORT job."""
    if not scope_id or not scope_id.strip():
        raise ValidationError("scopeId is required")
    validate_report_config(config)
    payload = {"config": config.model_dump(by_alias=True)}
    return repo.create_job(
        JobType.GENERATE_REPORT, scope_id, payload, total=REPORT_TOTAL, priority=priority
    )


def submit(
    job_type: JobType,
    scope_id: str,
    work: list[Record] | ReportConfig | dict[str, Any],
    priority: int = 0,
) -> str:
    """Route a submission by job type; returns the new job id."""
    job_type = JobType(job_type)
    if job_type is JobType.GENERATE_REPORT:
        if isinstance(work, dict):
            try:
                work = ReportConfig.model_validate(work)
            except ValueError as e:
                raise ValidationError(f"Invalid report configuration: {e}") from e
        if not isinstance(work, ReportConfig):
            raise ValidationError("GENERATE_REPORT needs a report configuration")
        return submit_report(scope_id, work, priority).id
    if not isinstance(work, list):
        raise ValidationError(f"{job_type.value} needs a list of validated records")
    return submit_import(job_type, scope_id, work, priority).id


class Dispatcher:
    """Hands out leases and recovers jobs whose worker died."""

    def __init__(self, lease_seconds: float):
        self.lease_seconds = lease_seconds

    def claim(self, worker_id: str, now: datetime | None = None) -> Job | None:
        return repo.claim_next(worker_id, self.lease_seconds, now=now)

    def reap(self, now: datetime | None = None) -> list[str]:
        """Requeue every PROCESSING job whose lease has expired."""
        requeued = repo.requeue_expired(now=now)
        if requeued:
            logger.info("dispatcher_requeued_jobs", count=len(requeued), job_ids=requeued)
        return requeued
