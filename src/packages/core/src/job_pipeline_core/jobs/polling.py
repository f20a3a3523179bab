"""Client-side polling with adaptive backoff.

Independent of any UI runtime: `poll_until_terminal` drives an abstract
status-fetch callable and a sleep callable, so it works the same against
the HTTP API, the job store directly, or a fake in tests.
"""
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import structlog

from job_pipeline_core.jobs.models import JobStatus
from job_pipeline_core.jobs.state import TERMINAL_STATES

logger = structlog.get_logger()

TERMINAL_VALUES = frozenset(s.value for s in TERMINAL_STATES)


@dataclass(frozen=True)
class BackoffPolicy:
    base: float = 2.0
    factor: float = 1.5
    cap: float = 30.0

    def __post_init__(self):
        if self.base <= 0 or self.factor < 1 or self.cap < self.base:
            raise ValueError("need base > 0, factor >= 1 and cap >= base")


def _status_value(snapshot: dict[str, Any]) -> str:
    status = snapshot.get("status")
    return status.value if isinstance(status, JobStatus) else str(status)


def _processed(snapshot: dict[str, Any]) -> int | None:
    progress = snapshot.get("progress") or {}
    return progress.get("processed")


def is_terminal(snapshot: dict[str, Any]) -> bool:
    return _status_value(snapshot) in TERMINAL_VALUES


@dataclass
class PollState:
    """Tracks the last observation and the next interval."""

    policy: BackoffPolicy = field(default_factory=BackoffPolicy)
    interval: float = 0.0
    last_status: str | None = None
    last_processed: int | None = None
    polls: int = 0

    def __post_init__(self):
        self.interval = self.policy.base

    def observe(self, snapshot: dict[str, Any]) -> bool:
        """Record a snapshot; returns True if it differs from the previous one.

        A change resets the interval to the base; no change multiplies it by
        the backoff factor, up to the cap.
        """
        status = _status_value(snapshot)
        processed = _processed(snapshot)
        changed = self.polls == 0 or status != self.last_status or processed != self.last_processed
        self.polls += 1
        self.last_status = status
        self.last_processed = processed
        if changed:
            self.interval = self.policy.base
        else:
            self.interval = min(self.interval * self.policy.factor, self.policy.cap)
        return changed

    @property
    def done(self) -> bool:
        return self.last_status in TERMINAL_VALUES


def poll_until_terminal(
    fetch: Callable[[], dict[str, Any]],
    sleep: Callable[[float], Any] = time.sleep,
    policy: BackoffPolicy | None = None,
    max_polls: int | None = None,
    on_update: Callable[[dict[str, Any]], Any] | None = None,
) -> dict[str, Any]:
    """Poll `fetch` until the job is terminal; return the final snapshot.

    Raises TimeoutError if `max_polls` is reached first.
    """
    state = PollState(policy=policy or BackoffPolicy())
    while True:
        snapshot = fetch()
        changed = state.observe(snapshot)
        if changed and on_update is not None:
            on_update(snapshot)
        if state.done:
            return snapshot
        if max_polls is not None and state.polls >= max_polls:
            raise TimeoutError(f"Job still {state.last_status} after {state.polls} polls")
        logger.debug("poll_wait", status=state.last_status, interval=state.interval)
        sleep(state.interval)
