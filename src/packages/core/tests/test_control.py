"""Tests for job admission, status, cancel and retry."""
import pytest

from job_pipeline_core.jobs import (
    JobResult,
    JobStatus,
    JobType,
    ReportConfig,
    checkpoint,
    claim_next,
    complete_job,
    fail_job,
    get_job,
)
from job_pipeline_core.jobs.control import cancel, get_status, retry
from job_pipeline_core.jobs.queue import Dispatcher, submit, submit_import, submit_report
from job_pipeline_core.util.errors import (
    BatchTooLargeError,
    InvalidTransitionError,
    JobNotFoundError,
    ValidationError,
)
from job_pipeline_core.validation import Record, validate_rows


def valid_records(n):
    rows = [
        {"name": f"S{i}", "email": f"s{i}@example.com", "enrollment_number": f"EN{i}"}
        for i in range(n)
    ]
    return validate_rows(rows, JobType.IMPORT_STUDENTS, header_rows=0).valid


def test_submit_import_creates_pending_job():
    job = submit_import(JobType.IMPORT_STUDENTS, "inst-1", valid_records(3))
    assert job.status is JobStatus.PENDING
    assert job.progress.total == 3
    assert job.scope_id == "inst-1"


def test_submit_rejects_bad_batches():
    with pytest.raises(ValidationError, match="No valid records"):
        submit_import(JobType.IMPORT_STUDENTS, "inst-1", [])
    with pytest.raises(ValidationError, match="scopeId"):
        submit_import(JobType.IMPORT_STUDENTS, " ", valid_records(1))
    with pytest.raises(BatchTooLargeError):
        submit_import(JobType.IMPORT_STUDENTS, "inst-1", valid_records(3), max_batch_size=2)
    bad = Record(row_number=2, identifier=None, fields={}, errors=["Email is required"])
    with pytest.raises(ValidationError, match="errors"):
        submit_import(JobType.IMPORT_STUDENTS, "inst-1", [bad])
    with pytest.raises(ValidationError):
        submit_import(JobType.GENERATE_REPORT, "inst-1", valid_records(1))


def test_submit_report_validates_config():
    job = submit_report("inst-1", ReportConfig(report_type="student_directory", sort_by="name"))
    assert job.type is JobType.GENERATE_REPORT
    assert job.progress.total == 1
    with pytest.raises(ValidationError, match="Unknown columns"):
        submit_report("inst-1", ReportConfig(report_type="student_directory", columns=["salary"]))
    with pytest.raises(ValidationError, match="Unknown report type"):
        submit_report("inst-1", ReportConfig(report_type="payroll"))


def test_submit_routes_by_type():
    report_id = submit(
        JobType.GENERATE_REPORT,
        "inst-1",
        {"reportType": "staff_directory", "exportFormat": "csv"},
    )
    assert get_job(report_id).type is JobType.GENERATE_REPORT
    with pytest.raises(ValidationError, match="Invalid report configuration"):
        submit(JobType.GENERATE_REPORT, "inst-1", {"reportType": "staff_directory", "exportFormat": "docx"})
    staff = validate_rows(
        [{"name": "Dr. Rao", "email": "rao@example.com", "role": "FACULTY"}],
        JobType.IMPORT_STAFF,
        header_rows=0,
    ).valid
    import_id = submit(JobType.IMPORT_STAFF, "inst-1", staff)
    assert get_job(import_id).progress.total == 1
    with pytest.raises(ValidationError, match="list of validated records"):
        submit(JobType.IMPORT_STAFF, "inst-1", {"rows": []})


def test_status_snapshot():
    job = submit_import(JobType.IMPORT_STUDENTS, "inst-1", valid_records(2))
    snap = get_status(job.id)
    assert snap == {
        "jobId": job.id,
        "type": "IMPORT_STUDENTS",
        "scopeId": "inst-1",
        "status": "PENDING",
        "progress": {"processed": 0, "total": 2},
        "retryCount": 0,
    }
    with pytest.raises(JobNotFoundError):
        get_status("missing")


def test_terminal_snapshot_is_stable():
    job = submit_import(JobType.IMPORT_STUDENTS, "inst-1", valid_records(2))
    leased = Dispatcher(30).claim("w")
    complete_job(job.id, leased.lease_id, 2, JobResult(success_count=2))
    first = get_status(job.id)
    assert first["result"] == {"successCount": 2, "failureCount": 0, "recordErrors": []}
    assert get_status(job.id) == first


def test_cancel_processing_then_retry():
    job = submit_import(JobType.IMPORT_STUDENTS, "inst-1", valid_records(4))
    leased = claim_next("w", 30)
    checkpoint(job.id, leased.lease_id, 2, 2, 0, [])

    cancelled = cancel(job.id)
    assert cancelled.status is JobStatus.CANCELLED

    retried = retry(job.id)
    assert retried.status is JobStatus.PENDING
    assert retried.retry_count == 1
    assert retried.progress.processed == 0
    assert retried.progress.total == 4
    assert retried.result_history[0]["status"] == "CANCELLED"
    assert retried.result_history[0]["progress"] == {"processed": 2, "total": 4}


def test_cancel_is_idempotent():
    job = submit_import(JobType.IMPORT_STUDENTS, "inst-1", valid_records(1))
    first = cancel(job.id)
    second = cancel(job.id)
    assert second.status is JobStatus.CANCELLED
    assert second.updated_at == first.updated_at


def test_cancel_completed_is_invalid():
    job = submit_import(JobType.IMPORT_STUDENTS, "inst-1", valid_records(1))
    leased = claim_next("w", 30)
    complete_job(job.id, leased.lease_id, 1, JobResult(success_count=1))
    with pytest.raises(InvalidTransitionError, match="cannot cancel"):
        cancel(job.id)
    with pytest.raises(InvalidTransitionError, match="cannot retry"):
        retry(job.id)


def test_retry_in_flight_is_invalid():
    job = submit_import(JobType.IMPORT_STUDENTS, "inst-1", valid_records(1))
    with pytest.raises(InvalidTransitionError):
        retry(job.id)
    claim_next("w", 30)
    with pytest.raises(InvalidTransitionError):
        retry(job.id)


def test_retry_keeps_previous_failure_diagnostics():
    job = submit_import(JobType.IMPORT_STUDENTS, "inst-1", valid_records(2))
    leased = claim_next("w", 30)
    errors = [{"rowNumber": 1, "identifier": "EN0", "errors": ["Enrollment number already exists in the system"]}]
    checkpoint(job.id, leased.lease_id, 1, 0, 1, errors)
    fail_job(job.id, leased.lease_id, "database is locked")

    retried = retry(job.id)
    assert retried.retry_count == 1
    assert retried.result.failure_count == 0
    assert retried.error_message is None
    previous = retried.result_history[0]
    assert previous["errorMessage"] == "database is locked"
    assert previous["result"]["recordErrors"] == errors

    again = retry(cancel(job.id).id)
    assert again.retry_count == 2
    assert len(again.result_history) == 2


def test_dispatcher_reap():
    from datetime import timedelta

    from job_pipeline_core.util.time import utc_now

    job = submit_import(JobType.IMPORT_STUDENTS, "inst-1", valid_records(1))
    t0 = utc_now()
    dispatcher = Dispatcher(lease_seconds=5)
    assert dispatcher.claim("w", now=t0).id == job.id
    assert dispatcher.reap(now=t0 + timedelta(seconds=6)) == [job.id]
    assert get_job(job.id).status is JobStatus.PENDING
