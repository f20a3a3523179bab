"""Owner-side handle on a claimed job."""
from typing import Any

from job_pipeline_core.jobs import repo
from job_pipeline_core.jobs.models import Job, JobResult


class JobLease:
    """Everything a worker may write while it holds a job.

    All writes are fenced on the lease id; once the lease is reaped or the
    job is cancelled they raise instead of landing.
    """

    def __init__(self, job: Job, lease_seconds: float):
        if job.lease_id is None:
            raise ValueError(f"Job {job.id} is not leased")
        self.job = job
        self.job_id = job.id
        self.lease_id = job.lease_id
        self.worker_id = job.lease_owner
        self.lease_seconds = lease_seconds

    def renew(self) -> bool:
        return repo.renew_lease(self.job_id, self.lease_id, self.lease_seconds)

    def checkpoint(
        self,
        processed: int,
        success_count: int,
        failure_count: int,
        record_errors: list[dict[str, Any]],
    ) -> None:
        repo.checkpoint(self.job_id, self.lease_id, processed, success_count, failure_count, record_errors)

    def complete(self, processed: int, result: JobResult) -> Job:
        return repo.complete_job(self.job_id, self.lease_id, processed, result)

    def fail(self, error_message: str) -> Job:
        return repo.fail_job(self.job_id, self.lease_id, error_message)
