"""Worker pool: N job threads plus one maintenance thread."""
import signal
import socket
import sqlite3
import threading
import time

import structlog

from job_pipeline_core.artifacts import LocalArtifactStore
from job_pipeline_core.jobs import cleanup_old_jobs
from job_pipeline_core.jobs.queue import Dispatcher
from job_pipeline_worker.settings import (
    get_lease_check_interval,
    get_lease_seconds,
    get_poll_interval,
    get_retention_days,
    get_worker_count,
)
from job_pipeline_worker.tasks import process_job

logger = structlog.get_logger()

RETENTION_INTERVAL_SECONDS = 3600


def purge_expired(days_old: int, store: LocalArtifactStore | None = None) -> int:
    """Delete old terminal jobs and their report artifacts."""
    store = store or LocalArtifactStore()
    removed = cleanup_old_jobs(days_old=days_old)
    for job in removed:
        if job.result.artifact_ref:
            store.delete(job.result.artifact_ref)
    if removed:
        logger.info("retention_cleanup", deleted=len(removed), days_old=days_old)
    return len(removed)


class WorkerPool:
    def __init__(
        self,
        count: int | None = None,
        lease_seconds: float | None = None,
        poll_interval: float | None = None,
        lease_check_interval: float | None = None,
        retention_days: int | None = None,
    ):
        self.count = count or get_worker_count()
        self.lease_seconds = lease_seconds or get_lease_seconds()
        self.poll_interval = poll_interval or get_poll_interval()
        self.lease_check_interval = lease_check_interval or get_lease_check_interval()
        self.retention_days = retention_days or get_retention_days()
        self.dispatcher = Dispatcher(self.lease_seconds)
        self.stopping = threading.Event()
        self._threads: list[threading.Thread] = []
        self._prefix = f"{socket.gethostname()}-{id(self):x}"

    def _work(self, worker_id: str):
        log = logger.bind(worker_id=worker_id)
        log.info("worker_started")
        while not self.stopping.is_set():
            try:
                job = self.dispatcher.claim(worker_id)
            except sqlite3.OperationalError as e:
                log.warning("claim_failed", error=str(e))
                job = None
            if job is None:
                self.stopping.wait(self.poll_interval)
                continue
            try:
                process_job(job, self.lease_seconds)
            except Exception:
                # The lease lapses and the maintenance thread requeues the job.
                log.exception("worker_job_error", job_id=job.id)
        log.info("worker_stopped")

    def _maintain(self):
        last_cleanup = 0.0
        while not self.stopping.wait(self.lease_check_interval):
            try:
                self.dispatcher.reap()
                if time.monotonic() - last_cleanup >= RETENTION_INTERVAL_SECONDS:
                    purge_expired(self.retention_days)
                    last_cleanup = time.monotonic()
            except sqlite3.OperationalError as e:
                logger.warning("maintenance_failed", error=str(e))

    def start(self):
        for i in range(self.count):
            t = threading.Thread(
                target=self._work, args=(f"{self._prefix}-{i}",), name=f"worker-{i}", daemon=True
            )
            t.start()
            self._threads.append(t)
        t = threading.Thread(target=self._maintain, name="maintenance", daemon=True)
        t.start()
        self._threads.append(t)
        logger.info("worker_pool_started", workers=self.count, lease_seconds=self.lease_seconds)

    def stop(self, timeout: float | None = None):
        """Stop claiming; jobs in flight finish their current run."""
        self.stopping.set()
        for t in self._threads:
            t.join(timeout)
        logger.info("worker_pool_stopped")

    def install_signal_handlers(self):
        def _handle(signum, frame):
            logger.info("shutdown_signal", signal=signal.Signals(signum).name)
            self.stopping.set()

        signal.signal(signal.SIGINT, _handle)
        signal.signal(signal.SIGTERM, _handle)

    def run_forever(self):
        self.install_signal_handlers()
        self.start()
        while not self.stopping.wait(1.0):
            pass
        self.stop()
