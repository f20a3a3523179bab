"""Tests for the worker pool."""
import sqlite3
import time

from job_pipeline_core.jobs import JobType
from job_pipeline_core.jobs.control import get_status
from job_pipeline_core.jobs.polling import BackoffPolicy, poll_until_terminal
from job_pipeline_core.jobs.queue import submit_import
from job_pipeline_core.records import STUDENT, query_records
from job_pipeline_core.validation import validate_rows
from job_pipeline_worker import pool as pool_module
from job_pipeline_worker.pool import WorkerPool


def test_pool_drains_queue():
    job_ids = []
    for batch in range(3):
        rows = [
            {"name": f"S{batch}-{i}", "email": f"s{batch}-{i}@example.com", "enrollment_number": f"EN{batch}-{i}"}
            for i in range(5)
        ]
        valid = validate_rows(rows, JobType.IMPORT_STUDENTS, header_rows=0).valid
        job_ids.append(submit_import(JobType.IMPORT_STUDENTS, "inst-1", valid).id)

    pool = WorkerPool(count=2, lease_seconds=30, poll_interval=0.01, lease_check_interval=0.05, retention_days=30)
    pool.start()
    try:
        policy = BackoffPolicy(base=0.02, factor=1.5, cap=0.2)
        finals = [
            poll_until_terminal(lambda job_id=job_id: get_status(job_id), policy=policy, max_polls=200)
            for job_id in job_ids
        ]
    finally:
        pool.stop(timeout=5)

    assert [f["status"] for f in finals] == ["COMPLETED"] * 3
    assert all(f["result"]["successCount"] == 5 for f in finals)
    assert len(query_records("inst-1", STUDENT)) == 15
    assert all(not t.is_alive() for t in pool._threads)


def submit_batch(prefix, n=2):
    rows = [
        {"name": f"{prefix}-{i}", "email": f"{prefix}-{i}@example.com", "enrollment_number": f"{prefix}-{i}"}
        for i in range(n)
    ]
    valid = validate_rows(rows, JobType.IMPORT_STUDENTS, header_rows=0).valid
    return submit_import(JobType.IMPORT_STUDENTS, "inst-1", valid).id


def test_worker_survives_job_error(monkeypatch):
    from job_pipeline_worker import tasks

    real_process = tasks.process_job
    calls = []

    def flaky(job, lease_seconds, keep_lease=True):
        calls.append(job.id)
        if len(calls) == 1:
            raise sqlite3.OperationalError("database is locked")
        return real_process(job, lease_seconds, keep_lease)

    monkeypatch.setattr(pool_module, "process_job", flaky)
    broken = submit_batch("A")

    pool = WorkerPool(count=1, lease_seconds=0.3, poll_interval=0.01, lease_check_interval=0.05, retention_days=30)
    pool.start()
    try:
        policy = BackoffPolicy(base=0.02, factor=1.5, cap=0.2)
        final = poll_until_terminal(lambda: get_status(broken), policy=policy, max_polls=200)
        assert pool._threads[0].is_alive()
    finally:
        pool.stop(timeout=5)

    assert final["status"] == "COMPLETED"
    assert calls == [broken, broken]


def test_paused_queue_is_not_claimed():
    from job_pipeline_core.jobs import set_queue_paused

    set_queue_paused(True)
    job_id = submit_batch("P")
    pool = WorkerPool(count=1, lease_seconds=30, poll_interval=0.01, lease_check_interval=0.05, retention_days=30)
    pool.start()
    try:
        time.sleep(0.2)
        assert get_status(job_id)["status"] == "PENDING"
        set_queue_paused(False)
        policy = BackoffPolicy(base=0.02, factor=1.5, cap=0.2)
        final = poll_until_terminal(lambda: get_status(job_id), policy=policy, max_polls=200)
    finally:
        pool.stop(timeout=5)

    assert final["status"] == "COMPLETED"
