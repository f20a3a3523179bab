"""Health check endpoint."""
from fastapi import APIRouter

from job_pipeline_core.jobs import is_queue_paused, job_stats

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Health check, with the number of jobs waiting and running."""
    by_status = job_stats()["byStatus"]
    return {
        "status": "ok",
        "pending": by_status["PENDING"],
        "processing": by_status["PROCESSING"],
        "queuePaused": is_queue_paused(),
    }
