"""Status, cancel and retry over the job store."""
from typing import Any

from job_pipeline_core.jobs import repo
from job_pipeline_core.jobs.models import Job, JobStatus
from job_pipeline_core.jobs.state import assert_transition
from job_pipeline_core.util.errors import JobNotFoundError


def require_job(job_id: str) -> Job:
    job = repo.get_job(job_id)
    if job is None:
        raise JobNotFoundError(job_id)
    return job


def get_status(job_id: str) -> dict[str, Any]:
    """Polling snapshot: status, progress, result, errorMessage, retryCount."""
    return require_job(job_id).status_snapshot()


def cancel(job_id: str) -> Job:
    """Cancel a PENDING or PROCESSING job.

    Cancelling an already cancelled job succeeds and changes nothing; any
    other terminal status is an invalid transition.
    """
    if repo.cancel_job(job_id):
        return require_job(job_id)
    job = require_job(job_id)
    if job.status is JobStatus.CANCELLED:
        return job
    assert_transition(job_id, job.status, "cancel")
    # Lost a race with a claim/complete between the UPDATE and the read.
    return cancel(job_id)


def retry(job_id: str) -> Job:
    """Re-enqueue a FAILED or CANCELLED job as a new attempt."""
    if repo.retry_job(job_id):
        return require_job(job_id)
    job = require_job(job_id)
    assert_transition(job_id, job.status, "retry")
    return retry(job_id)
