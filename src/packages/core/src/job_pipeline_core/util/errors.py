"""Exception hierarchy shared by the API and the worker."""


class PipelineError(Exception):
    """Base class for job pipeline errors."""


class ValidationError(PipelineError):
    """Submission rejected before any job was created."""


class BatchTooLargeError(ValidationError):
    """Batch exceeds the hard row cap."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Maximum batch size exceeded: {size} rows (limit {limit})")


class JobNotFoundError(PipelineError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class InvalidTransitionError(PipelineError):
    """Requested action is not allowed from the job's current status."""

    def __init__(self, job_id: str, status: str, action: str):
        self.job_id = job_id
        self.status = status
        self.action = action
        super().__init__(f"Invalid transition: cannot {action} job {job_id} in status {status}")


class LeaseLostError(PipelineError):
    """The worker no longer owns the job it was processing."""


class JobCancelledError(PipelineError):
    """The job was cancelled while the worker held it."""


class RecordError(PipelineError):
    """A single record failed; the job carries on."""


class PayloadError(PipelineError):
    """Job payload is missing or unreadable."""
