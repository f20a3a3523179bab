"""Job store, state machine and models.

Admission (`jobs.queue`), the status controller (`jobs.control`) and the
polling loop (`jobs.polling`) are imported from their own modules.
"""
from job_pipeline_core.jobs.repo import (
    init_db,
    create_job,
    get_job,
    claim_next,
    claim_job,
    renew_lease,
    checkpoint,
    complete_job,
    fail_job,
    cancel_job,
    retry_job,
    requeue_expired,
    list_jobs,
    job_stats,
    cleanup_old_jobs,
    load_payload,
    set_queue_paused,
    is_queue_paused,
    queue_status,
)
from job_pipeline_core.jobs.models import (
    Job,
    JobType,
    JobStatus,
    JobProgress,
    JobResult,
    RecordFailure,
    ReportConfig,
)

__all__ = [
    "init_db",
    "create_job",
    "get_job",
    "claim_next",
    "claim_job",
    "renew_lease",
    "checkpoint",
    "complete_job",
    "fail_job",
    "cancel_job",
    "retry_job",
    "requeue_expired",
    "list_jobs",
    "job_stats",
    "cleanup_old_jobs",
    "load_payload",
    "set_queue_paused",
    "is_queue_paused",
    "queue_status",
    "Job",
    "JobType",
    "JobStatus",
    "JobProgress",
    "JobResult",
    "RecordFailure",
    "ReportConfig",
]
