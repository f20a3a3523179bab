"""Job store using SQLite.

The `jobs` row is the only shared mutable state between the API and the
workers. Every status change is one guarded UPDATE (or a short
BEGIN IMMEDIATE block), never a read followed by an unguarded write.
Writes from the worker that owns a job are fenced on `lease_id`, so a
worker whose lease was reaped cannot overwrite the job afterwards.
"""
import json
from datetime import datetime, timedelta
from typing import Any

import structlog

from job_pipeline_core.jobs.models import Job, JobResult, JobStatus, JobType
from job_pipeline_core.jobs.state import TERMINAL_STATES, sources_for, target_of
from job_pipeline_core.util.db import get_conn as _get_conn
from job_pipeline_core.util.db import transaction
from job_pipeline_core.util.errors import JobCancelledError, LeaseLostError, PayloadError
from job_pipeline_core.util.ids import generate_id
from job_pipeline_core.util.time import iso_after, to_iso, utc_now

logger = structlog.get_logger()

SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    scope_id TEXT NOT NULL,
    status TEXT NOT NULL,
    payload_ref TEXT NOT NULL,
    progress_processed INTEGER NOT NULL DEFAULT 0,
    progress_total INTEGER NOT NULL,
    success_count INTEGER NOT NULL DEFAULT 0,
    failure_count INTEGER NOT NULL DEFAULT 0,
    record_errors TEXT NOT NULL DEFAULT '[]',
    artifact_ref TEXT,
    row_count INTEGER,
    result_history TEXT NOT NULL DEFAULT '[]',
    retry_count INTEGER NOT NULL DEFAULT 0,
    priority INTEGER NOT NULL DEFAULT 0,
    lease_owner TEXT,
    lease_id TEXT,
    lease_expires_at TEXT,
    created_at TEXT NOT NULL,
    started_at TEXT,
    completed_at TEXT,
    updated_at TEXT NOT NULL,
    error_message TEXT
);
CREATE INDEX IF NOT EXISTS idx_jobs_claim ON jobs(status, priority, created_at);
CREATE INDEX IF NOT EXISTS idx_jobs_scope ON jobs(scope_id, created_at);
CREATE TABLE IF NOT EXISTS job_payloads (
    ref TEXT PRIMARY KEY,
    body TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS queue_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

PROCESSING = JobStatus.PROCESSING.value

# Claims are refused while this row holds "1".
PAUSED_KEY = "paused"


def get_conn():
    """Get a job store connection."""
    return _get_conn(SCHEMA)


def init_db():
    """Initialize the database."""
    with get_conn():
        pass


def _now(now: datetime | None) -> datetime:
    return now or utc_now()


def _placeholders(values) -> str:
    return ", ".join("?" for _ in values)


def _from_states(action: str) -> tuple[str, list[str]]:
    """SQL guard and params restricting a row to the states `action` leaves."""
    sources = [s.value for s in sources_for(action)]
    return f"status IN ({_placeholders(sources)})", sources


def _target(action: str) -> str:
    targets = {target_of(action, s) for s in sources_for(action)}
    (target,) = targets
    return target.value


def _fetch(conn, job_id: str) -> Job | None:
    row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
    return Job.from_row(dict(row)) if row else None


def create_job(
    job_type: JobType,
    scope_id: str,
    payload: dict[str, Any],
    total: int,
    priority: int = 0,
) -> Job:
    """Store the payload and create the job in PENDING with progress {0, total}."""
    job_id = generate_id()
    payload_ref = generate_id()
    now = to_iso(utc_now())
    with get_conn() as conn:
        with transaction(conn):
            conn.execute(
                "INSERT INTO job_payloads (ref, body) VALUES (?, ?)",
                (payload_ref, json.dumps(payload)),
            )
            conn.execute(
                """
                INSERT INTO jobs (id, type, scope_id, status, payload_ref, progress_processed,
                                  progress_total, priority, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 0, ?, ?, ?, ?)
                """,
                (
                    job_id,
                    JobType(job_type).value,
                    scope_id,
                    JobStatus.PENDING.value,
                    payload_ref,
                    total,
                    priority,
                    now,
                    now,
                ),
            )
        job = _fetch(conn, job_id)
    logger.info("job_created", job_id=job_id, type=job.type.value, scope_id=scope_id, total=total)
    return job


def get_job(job_id: str) -> Job | None:
    """Get a job by ID."""
    with get_conn() as conn:
        return _fetch(conn, job_id)


def load_payload(payload_ref: str) -> dict[str, Any]:
    """Read a job payload; PayloadError if it is gone or corrupt."""
    with get_conn() as conn:
        row = conn.execute("SELECT body FROM job_payloads WHERE ref = ?", (payload_ref,)).fetchone()
    if row is None:
        raise PayloadError(f"Payload {payload_ref} not found")
    try:
        body = json.loads(row["body"])
    except (TypeError, json.JSONDecodeError) as e:
        raise PayloadError(f"Payload {payload_ref} is unreadable: {e}") from e
    if not isinstance(body, dict):
        raise PayloadError(f"Payload {payload_ref} is not an object")
    return body


def _claim(conn, where: str, params: tuple, worker_id: str, lease_seconds: float, now: datetime) -> Job | None:
    lease_id = generate_id()
    now_iso = to_iso(now)
    guard, sources = _from_states("claim")
    cur = conn.execute(
        f"""
        UPDATE jobs
        SET status = ?, lease_owner = ?, lease_id = ?, lease_expires_at = ?,
            started_at = COALESCE(started_at, ?), updated_at = ?
        WHERE id = ({where}) AND {guard}
          AND NOT EXISTS (SELECT 1 FROM queue_state WHERE key = ? AND value = '1')
        """,
        (
            _target("claim"),
            worker_id,
            lease_id,
            iso_after(now, lease_seconds),
            now_iso,
            now_iso,
            *params,
            *sources,
            PAUSED_KEY,
        ),
    )
    if cur.rowcount != 1:
        return None
    row = conn.execute("SELECT * FROM jobs WHERE lease_id = ?", (lease_id,)).fetchone()
    return Job.from_row(dict(row)) if row else None


def claim_next(worker_id: str, lease_seconds: float, now: datetime | None = None) -> Job | None:
    """Atomically move the next PENDING job to PROCESSING under a new lease.

    Returns None when nothing is claimable or the queue is paused.
    """
    guard, sources = _from_states("claim")
    with get_conn() as conn:
        job = _claim(
            conn,
            f"SELECT id FROM jobs WHERE {guard} ORDER BY priority ASC, created_at ASC LIMIT 1",
            tuple(sources),
            worker_id,
            lease_seconds,
            _now(now),
        )
    if job:
        logger.info("job_claimed", job_id=job.id, worker_id=worker_id, lease_expires_at=job.lease_expires_at)
    return job


def claim_job(job_id: str, worker_id: str, lease_seconds: float, now: datetime | None = None) -> Job | None:
    """Claim one specific PENDING job (used for inline synchronous runs)."""
    with get_conn() as conn:
        job = _claim(conn, "?", (job_id,), worker_id, lease_seconds, _now(now))
    if job:
        logger.info("job_claimed", job_id=job.id, worker_id=worker_id, lease_expires_at=job.lease_expires_at)
    return job


def _raise_lost(conn, job_id: str, lease_id: str):
    job = _fetch(conn, job_id)
    if job is not None and job.status is JobStatus.CANCELLED:
        raise JobCancelledError(f"Job {job_id} was cancelled")
    raise LeaseLostError(f"Lease {lease_id} on job {job_id} is no longer held")


def _owner_update(
    conn, job_id: str, lease_id: str, assignments: str, params: tuple, action: str | None = None
) -> None:
    """Write as the lease holder; plain progress writes need only PROCESSING."""
    guard, sources = _from_states(action) if action else ("status = ?", [PROCESSING])
    cur = conn.execute(
        f"UPDATE jobs SET {assignments} WHERE id = ? AND lease_id = ? AND {guard}",
        (*params, job_id, lease_id, *sources),
    )
    if cur.rowcount != 1:
        _raise_lost(conn, job_id, lease_id)


def renew_lease(job_id: str, lease_id: str, lease_seconds: float, now: datetime | None = None) -> bool:
    """Extend the lease. False if the caller no longer owns the job."""
    now = _now(now)
    with get_conn() as conn:
        cur = conn.execute(
            """
            UPDATE jobs SET lease_expires_at = ?, updated_at = ?
            WHERE id = ? AND lease_id = ? AND status = ?
            """,
            (iso_after(now, lease_seconds), to_iso(now), job_id, lease_id, PROCESSING),
        )
        return cur.rowcount == 1


def checkpoint(
    job_id: str,
    lease_id: str,
    processed: int,
    success_count: int,
    failure_count: int,
    record_errors: list[dict[str, Any]],
) -> None:
    """Persist progress. Raises JobCancelledError / LeaseLostError if not owned.

    `progress_processed` never decreases and never exceeds the fixed total.
    """
    with get_conn() as conn:
        _owner_update(
            conn,
            job_id,
            lease_id,
            """progress_processed = MIN(progress_total, MAX(progress_processed, ?)),
               success_count = ?, failure_count = ?, record_errors = ?, updated_at = ?""",
            (processed, success_count, failure_count, json.dumps(record_errors), to_iso(utc_now())),
        )


def complete_job(job_id: str, lease_id: str, processed: int, result: JobResult) -> Job:
    """PROCESSING -> COMPLETED, written only by the lease holder."""
    now = to_iso(utc_now())
    with get_conn() as conn:
        _owner_update(
            conn,
            job_id,
            lease_id,
            """status = ?, progress_processed = MIN(progress_total, MAX(progress_processed, ?)),
               success_count = ?, failure_count = ?, record_errors = ?, artifact_ref = ?,
               row_count = ?, lease_id = NULL, lease_expires_at = NULL, completed_at = ?,
               updated_at = ?""",
            (
                _target("complete"),
                processed,
                result.success_count,
                result.failure_count,
                json.dumps([e.model_dump(by_alias=True) for e in result.record_errors]),
                result.artifact_ref,
                result.row_count,
                now,
                now,
            ),
            action="complete",
        )
        job = _fetch(conn, job_id)
    logger.info(
        "job_completed",
        job_id=job_id,
        success_count=result.success_count,
        failure_count=result.failure_count,
    )
    return job


def fail_job(job_id: str, lease_id: str, error_message: str) -> Job:
    """PROCESSING -> FAILED with an error message, keeping the last checkpoint."""
    now = to_iso(utc_now())
    with get_conn() as conn:
        _owner_update(
            conn,
            job_id,
            lease_id,
            """status = ?, error_message = ?, lease_id = NULL, lease_expires_at = NULL,
               completed_at = ?, updated_at = ?""",
            (_target("fail"), error_message[:2000], now, now),
            action="fail",
        )
        job = _fetch(conn, job_id)
    logger.warning("job_failed", job_id=job_id, error=error_message)
    return job


def cancel_job(job_id: str, now: datetime | None = None) -> bool:
    """Force PENDING/PROCESSING -> CANCELLED. False if the job was not active."""
    now_iso = to_iso(_now(now))
    sources = [s.value for s in sources_for("cancel")]
    with get_conn() as conn:
        cur = conn.execute(
            f"""
            UPDATE jobs
            SET status = ?, lease_id = NULL, lease_expires_at = NULL, completed_at = ?,
                updated_at = ?, error_message = 'Cancelled by user'
            WHERE id = ? AND status IN ({_placeholders(sources)})
            """,
            (JobStatus.CANCELLED.value, now_iso, now_iso, job_id, *sources),
        )
        changed = cur.rowcount == 1
    if changed:
        logger.info("job_cancelled", job_id=job_id)
    return changed


def retry_job(job_id: str, now: datetime | None = None) -> bool:
    """FAILED/CANCELLED -> PENDING as a new attempt.

    The previous attempt's result is appended to `result_history` and the
    progress resets to {0, total}. False if the job is not retryable.
    """
    now_iso = to_iso(_now(now))
    sources = {s.value for s in sources_for("retry")}
    with get_conn() as conn:
        with transaction(conn):
            job = _fetch(conn, job_id)
            if job is None or job.status.value not in sources:
                return False
            history = list(job.result_history)
            history.append(
                {
                    "attempt": job.retry_count,
                    "status": job.status.value,
                    "progress": job.progress.model_dump(by_alias=True),
                    "result": job.result.model_dump(by_alias=True, exclude_none=True),
                    "errorMessage": job.error_message,
                    "startedAt": job.started_at,
                    "completedAt": job.completed_at,
                }
            )
            conn.execute(
                """
                UPDATE jobs
                SET status = ?, retry_count = retry_count + 1, progress_processed = 0,
                    success_count = 0, failure_count = 0, record_errors = '[]',
                    artifact_ref = NULL, row_count = NULL, error_message = NULL,
                    lease_owner = NULL, lease_id = NULL, lease_expires_at = NULL,
                    started_at = NULL, completed_at = NULL, result_history = ?, updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (JobStatus.PENDING.value, json.dumps(history), now_iso, job_id, job.status.value),
            )
    logger.info("job_retried", job_id=job_id, retry_count=job.retry_count + 1)
    return True


def requeue_expired(now: datetime | None = None) -> list[str]:
    """Move PROCESSING jobs with an expired lease back to PENDING.

    `retry_count` and the progress checkpoint are left alone; the next
    worker resumes after the last checkpointed record.
    """
    now_iso = to_iso(_now(now))
    guard, sources = _from_states("requeue")
    with get_conn() as conn:
        with transaction(conn):
            rows = conn.execute(
                f"SELECT id, lease_owner FROM jobs WHERE {guard} AND lease_expires_at < ?",
                (*sources, now_iso),
            ).fetchall()
            if not rows:
                return []
            conn.execute(
                f"""
                UPDATE jobs
                SET status = ?, lease_owner = NULL, lease_id = NULL, lease_expires_at = NULL,
                    updated_at = ?
                WHERE {guard} AND lease_expires_at < ?
                """,
                (_target("requeue"), now_iso, *sources, now_iso),
            )
    for r in rows:
        logger.warning("job_lease_expired_requeued", job_id=r["id"], lease_owner=r["lease_owner"])
    return [r["id"] for r in rows]


def list_jobs(
    scope_id: str | None = None,
    job_type: JobType | None = None,
    status: JobStatus | None = None,
    limit: int = 20,
) -> list[Job]:
    """List jobs, active first, then most recently updated."""
    clauses = []
    params: list[Any] = []
    if scope_id:
        clauses.append("scope_id = ?")
        params.append(scope_id)
    if job_type:
        clauses.append("type = ?")
        params.append(JobType(job_type).value)
    if status:
        clauses.append("status = ?")
        params.append(JobStatus(status).value)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    with get_conn() as conn:
        rows = conn.execute(
            f"""
            SELECT * FROM jobs
            {where}
            ORDER BY
                CASE status
                    WHEN 'PROCESSING' THEN 0
                    WHEN 'PENDING' THEN 1
                    ELSE 2
                END,
                updated_at DESC
            LIMIT ?
            """,
            (*params, limit),
        ).fetchall()
        return [Job.from_row(dict(r)) for r in rows]


def job_stats(scope_id: str | None = None) -> dict[str, Any]:
    """Counts by status and by type."""
    where = "WHERE scope_id = ?" if scope_id else ""
    params = (scope_id,) if scope_id else ()
    with get_conn() as conn:
        by_status = conn.execute(
            f"SELECT status, COUNT(*) AS c FROM jobs {where} GROUP BY status", params
        ).fetchall()
        by_type = conn.execute(
            f"SELECT type, COUNT(*) AS c FROM jobs {where} GROUP BY type", params
        ).fetchall()
    status_counts = {s.value: 0 for s in JobStatus}
    status_counts.update({r["status"]: r["c"] for r in by_status})
    return {
        "total": sum(status_counts.values()),
        "byStatus": status_counts,
        "byType": {r["type"]: r["c"] for r in by_type},
    }


def cleanup_old_jobs(days_old: int = 30, now: datetime | None = None) -> list[Job]:
    """Delete terminal jobs completed more than `days_old` days ago.

    Returns the deleted jobs so the caller can drop their artifacts.
    Non-terminal jobs are never touched.
    """
    cutoff = to_iso(_now(now) - timedelta(days=days_old))
    terminal = [s.value for s in TERMINAL_STATES]
    with get_conn() as conn:
        with transaction(conn):
            rows = conn.execute(
                f"""
                SELECT * FROM jobs
                WHERE status IN ({_placeholders(terminal)}) AND completed_at < ?
                """,
                (*terminal, cutoff),
            ).fetchall()
            jobs = [Job.from_row(dict(r)) for r in rows]
            for job in jobs:
                conn.execute(
                    f"DELETE FROM jobs WHERE id = ? AND status IN ({_placeholders(terminal)})",
                    (job.id, *terminal),
                )
                conn.execute("DELETE FROM job_payloads WHERE ref = ?", (job.payload_ref,))
    if jobs:
        logger.info("old_jobs_cleaned", count=len(jobs), cutoff=cutoff)
    return jobs


def set_queue_paused(paused: bool, now: datetime | None = None) -> None:
    """Pause or resume claiming. Jobs already PROCESSING run to the end."""
    with get_conn() as conn:
        conn.execute(
            """
            INSERT INTO queue_state (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (PAUSED_KEY, "1" if paused else "0", to_iso(_now(now))),
        )
    if paused:
        logger.warning("queue_paused")
    else:
        logger.info("queue_resumed")


def is_queue_paused() -> bool:
    with get_conn() as conn:
        row = conn.execute("SELECT value FROM queue_state WHERE key = ?", (PAUSED_KEY,)).fetchone()
    return bool(row) and row["value"] == "1"


def queue_status() -> dict[str, Any]:
    """Waiting and active counts plus the pause flag."""
    counts = job_stats()["byStatus"]
    return {
        "paused": is_queue_paused(),
        "waiting": counts[JobStatus.PENDING.value],
        "active": counts[JobStatus.PROCESSING.value],
        "completed": counts[JobStatus.COMPLETED.value],
        "failed": counts[JobStatus.FAILED.value],
        "cancelled": counts[JobStatus.CANCELLED.value],
        "total": sum(counts.values()),
    }
