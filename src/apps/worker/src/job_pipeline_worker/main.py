"""Worker entrypoint."""
import structlog

from job_pipeline_core.jobs import init_db
from job_pipeline_worker.logging import configure_logging
from job_pipeline_worker.pool import WorkerPool

logger = structlog.get_logger()


def main():
    """Start the worker pool."""
    configure_logging()
    logger.info("initializing_database")
    init_db()
    WorkerPool().run_forever()


if __name__ == "__main__":
    main()
