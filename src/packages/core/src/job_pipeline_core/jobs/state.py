"""Job state machine.

Every status change in the job store goes through one of the actions
below. The store turns ``sources_for(action)`` into the WHERE clause of a
single UPDATE, so a transition either applies atomically or not at all.
"""
from job_pipeline_core.jobs.models import JobStatus
from job_pipeline_core.util.errors import InvalidTransitionError

PENDING = JobStatus.PENDING
PROCESSING = JobStatus.PROCESSING
COMPLETED = JobStatus.COMPLETED
FAILED = JobStatus.FAILED
CANCELLED = JobStatus.CANCELLED

TERMINAL_STATES = frozenset({COMPLETED, FAILED, CANCELLED})

# (action, from) -> to
TRANSITIONS: dict[tuple[str, JobStatus], JobStatus] = {
    ("claim", PENDING): PROCESSING,
    ("complete", PROCESSING): COMPLETED,
    ("fail", PROCESSING): FAILED,
    ("cancel", PENDING): CANCELLED,
    ("cancel", PROCESSING): CANCELLED,
    ("retry", FAILED): PENDING,
    ("retry", CANCELLED): PENDING,
    # lease expiry; not a user-visible retry
    ("requeue", PROCESSING): PENDING,
}


def sources_for(action: str) -> tuple[JobStatus, ...]:
    """Statuses from which `action` is allowed."""
    return tuple(src for (act, src) in TRANSITIONS if act == action)


def target_of(action: str, current: JobStatus) -> JobStatus | None:
    return TRANSITIONS.get((action, current))


def can_transition(current: JobStatus, action: str) -> bool:
    return (action, current) in TRANSITIONS


def assert_transition(job_id: str, current: JobStatus, action: str) -> JobStatus:
    """Return the target status or raise InvalidTransitionError."""
    target = target_of(action, current)
    if target is None:
        raise InvalidTransitionError(job_id, current.value, action)
    return target
