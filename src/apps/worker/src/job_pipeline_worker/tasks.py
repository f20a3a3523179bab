"""Job processors.

Imports write their records one at a time through the scoped record
writer and checkpoint after each one. Reports run query, assemble,
export and store as separate phases. Every write goes through the
job's lease, so a cancelled or reaped job stops at the next write.
"""
import sqlite3
import threading
from contextlib import nullcontext

import structlog

from job_pipeline_core.artifacts import LocalArtifactStore
from job_pipeline_core.jobs import repo
from job_pipeline_core.jobs.lease import JobLease
from job_pipeline_core.jobs.models import Job, JobResult, JobType, RecordFailure, ReportConfig
from job_pipeline_core.records import ScopedRecordWriter, query_records
from job_pipeline_core.reports import assemble_report, export_report, get_definition
from job_pipeline_core.util.errors import (
    JobCancelledError,
    LeaseLostError,
    PayloadError,
    RecordError,
    ValidationError,
)
from job_pipeline_core.validation import Record, get_schema

logger = structlog.get_logger()

NO_DATA_MESSAGE = "No data found for the given filters"

# Errors that belong to one record rather than to the whole job.
RECORD_LEVEL_ERRORS = (RecordError, ValueError, TypeError, KeyError)


class LeaseKeeper:
    """Renews a job's lease from a background thread while it runs."""

    def __init__(self, lease: JobLease, interval: float | None = None):
        self.lease = lease
        self.interval = interval if interval is not None else max(lease.lease_seconds / 3, 0.05)
        self.lost = threading.Event()
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"lease-{lease.job_id}", daemon=True
        )

    def _run(self):
        while not self._stop.wait(self.interval):
            try:
                renewed = self.lease.renew()
            except sqlite3.OperationalError as e:
                logger.warning("lease_renew_error", job_id=self.lease.job_id, error=str(e))
                continue
            if not renewed:
                logger.warning("lease_renew_rejected", job_id=self.lease.job_id)
                self.lost.set()
                return

    def __enter__(self):
        self._thread.start()
        return self

    def __exit__(self, *exc):
        self._stop.set()
        self._thread.join()
        return False


def _load_records(job: Job) -> list[Record]:
    payload = repo.load_payload(job.payload_ref)
    try:
        return [Record.from_dict(r) for r in payload["records"]]
    except (KeyError, TypeError, ValueError) as e:
        raise PayloadError(f"Payload for job {job.id} is malformed: {e}") from e


def run_import_job(lease: JobLease) -> Job:
    """Write every record of an import job; record failures do not stop it."""
    job = lease.job
    records = _load_records(job)
    if len(records) != job.progress.total:
        raise PayloadError(
            f"Payload has {len(records)} records but the job expects {job.progress.total}"
        )
    kind = get_schema(job.type).record_kind
    writer = ScopedRecordWriter(job.scope_id, job.id)

    start = job.progress.processed
    success = job.result.success_count
    failures = [e.model_dump(by_alias=True) for e in job.result.record_errors]
    if start:
        logger.info("import_resumed", job_id=job.id, processed=start, total=len(records))

    for index in range(start, len(records)):
        record = records[index]
        try:
            writer.write(kind, record.identifier, record.fields)
            success += 1
        except RECORD_LEVEL_ERRORS as e:
            failure = RecordFailure(
                row_number=record.row_number, identifier=record.identifier, errors=[str(e)]
            )
            failures.append(failure.model_dump(by_alias=True))
            logger.warning(
                "record_failed", job_id=job.id, row=record.row_number, error=str(e)
            )
        # Doubles as the cancellation check between records.
        lease.checkpoint(index + 1, success, len(failures), failures)

    result = JobResult(
        success_count=success,
        failure_count=len(failures),
        record_errors=[RecordFailure.model_validate(f) for f in failures],
    )
    return lease.complete(len(records), result)


def _report_config(job: Job) -> ReportConfig:
    payload = repo.load_payload(job.payload_ref)
    try:
        return ReportConfig.model_validate(payload["config"])
    except (KeyError, ValueError) as e:
        raise PayloadError(f"Report configuration for job {job.id} is unreadable: {e}") from e


def _still_owned(lease: JobLease) -> None:
    """Cancellation check between report phases."""
    lease.checkpoint(0, 0, 0, [])


def run_report_job(lease: JobLease, store: LocalArtifactStore | None = None) -> Job:
    """Query, assemble, export and store one report."""
    job = lease.job
    config = _report_config(job)
    definition = get_definition(config.report_type)

    rows = query_records(job.scope_id, definition.source_kind)
    _still_owned(lease)
    table = assemble_report(rows, config, definition)
    if table.row_count == 0:
        return lease.fail(NO_DATA_MESSAGE)
    _still_owned(lease)

    data = export_report(table, config.export_format)
    _still_owned(lease)

    store = store or LocalArtifactStore()
    ref = store.put(job.id, data, config.export_format)
    result = JobResult(
        success_count=1, failure_count=0, artifact_ref=ref, row_count=table.row_count
    )
    try:
        return lease.complete(1, result)
    except (JobCancelledError, LeaseLostError):
        store.delete(ref)
        raise


def process_job(job: Job, lease_seconds: float, keep_lease: bool = True) -> Job | None:
    """Run a claimed job to a terminal state.

    Returns the final job, or None when the job was cancelled or its lease
    was lost while running (the job is then left to whoever holds it now).
    """
    lease = JobLease(job, lease_seconds)
    log = logger.bind(job_id=job.id, type=job.type.value, worker_id=job.lease_owner)
    log.info("job_started", processed=job.progress.processed, total=job.progress.total)
    keeper = LeaseKeeper(lease) if keep_lease else nullcontext()
    with keeper:
        try:
            if job.type is JobType.GENERATE_REPORT:
                return run_report_job(lease)
            return run_import_job(lease)
        except JobCancelledError:
            log.info("job_stopped_cancelled")
            return None
        except LeaseLostError:
            log.warning("job_stopped_lease_lost")
            return None
        except (PayloadError, ValidationError, RecordError) as e:
            log.warning("job_systemic_failure", error=str(e))
            return _fail(lease, str(e))
        except Exception as e:
            log.exception("job_crashed", error=str(e))
            return _fail(lease, f"{type(e).__name__}: {e}")


def _fail(lease: JobLease, message: str) -> Job | None:
    """Mark the job FAILED; on a store error leave it for lease expiry."""
    try:
        return lease.fail(message)
    except (JobCancelledError, LeaseLostError) as e:
        logger.info("job_fail_skipped", job_id=lease.job_id, reason=str(e))
        return None
    except sqlite3.OperationalError as e:
        logger.error("job_fail_not_recorded", job_id=lease.job_id, error=str(e))
        return None


def run_once(worker_id: str, lease_seconds: float) -> Job | None:
    """Claim and process at most one PENDING job."""
    job = repo.claim_next(worker_id, lease_seconds)
    if job is None:
        return None
    return process_job(job, lease_seconds)


def run_inline(job_id: str, worker_id: str, lease_seconds: float) -> Job | None:
    """Claim one specific job and run it in the caller's thread."""
    job = repo.claim_job(job_id, worker_id, lease_seconds)
    if job is None:
        return None
    return process_job(job, lease_seconds)
