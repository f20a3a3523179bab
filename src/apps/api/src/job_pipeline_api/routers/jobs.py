"""Job endpoints: submit, status, cancel, retry, download."""
import os
import re
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, Response
from pydantic import BaseModel, ConfigDict, Field

from job_pipeline_api.routers.uploads import get_upload_path, header_rows_for
from job_pipeline_api.settings import get_settings
from job_pipeline_core.artifacts import EXTENSIONS, LocalArtifactStore, media_type
from job_pipeline_core.ingest import detect_format, load_records
from job_pipeline_core.jobs import job_stats, list_jobs, load_payload, queue_status, set_queue_paused
from job_pipeline_core.jobs.control import cancel, get_status, require_job, retry
from job_pipeline_core.jobs.models import JobStatus, JobType
from job_pipeline_core.jobs.queue import submit, submit_import
from job_pipeline_core.util import (
    InvalidTransitionError,
    JobNotFoundError,
    PipelineError,
    ValidationError,
)
from job_pipeline_core.validation import validate_rows

router = APIRouter(prefix="/jobs", tags=["jobs"])
logger = structlog.get_logger()

_UPLOAD_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class JobCreate(BaseModel):
    """Request to submit a job."""

    model_config = ConfigDict(populate_by_name=True)

    type: JobType
    scope_id: str = Field(..., alias="scopeId", min_length=1)
    payload: dict[str, Any]
    priority: int = 0
    run_async: bool = Field(True, alias="async")


def _to_http(e: PipelineError) -> HTTPException:
    if isinstance(e, JobNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _import_rows(payload: dict[str, Any]) -> tuple[list[dict[str, Any]], int]:
    """Rows to validate and the number of header lines before them."""
    if "rows" in payload:
        rows = payload["rows"]
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise ValidationError("payload.rows must be a list of objects")
        return rows, 0
    upload_id = payload.get("uploadId")
    if not upload_id:
        raise ValidationError("Import payload needs 'rows' or 'uploadId'")
    path = get_upload_path(upload_id) if _UPLOAD_ID.match(str(upload_id)) else None
    if not path:
        raise HTTPException(status_code=404, detail="Upload not found or expired; please re-upload")
    detected = detect_format(path)
    if not detected:
        raise ValidationError("Could not detect file format")
    try:
        rows = load_records(path, detected)
    except ValueError as e:
        raise ValidationError(f"Unreadable file: {e}") from e
    return rows, header_rows_for(detected)


def _run_inline(job_id: str):
    from job_pipeline_worker.tasks import run_inline

    run_inline(job_id, f"api-{os.getpid()}", get_settings().lease_seconds)


@router.post("")
def create_job(body: JobCreate):
    """Submit an import batch or a report configuration."""
    settings = get_settings()
    rejected: list[dict[str, Any]] = []
    try:
        if body.type is JobType.GENERATE_REPORT:
            config = body.payload.get("config", body.payload)
            job_id = submit(body.type, body.scope_id, config, body.priority)
            size = 1
        else:
            rows, header_rows = _import_rows(body.payload)
            result = validate_rows(
                rows, body.type, header_rows=header_rows, max_batch_size=settings.max_batch_size
            )
            rejected = [r.to_dict() for r in result.invalid]
            if not result.valid:
                raise HTTPException(
                    status_code=400,
                    detail={"message": "No valid records to import", "rejected": rejected},
                )
            job = submit_import(
                body.type,
                body.scope_id,
                result.valid,
                priority=body.priority,
                max_batch_size=settings.max_batch_size,
            )
            job_id, size = job.id, len(result.valid)
    except PipelineError as e:
        raise _to_http(e) from e

    inline = not body.run_async and size <= settings.sync_max_rows
    if inline:
        _run_inline(job_id)
    snapshot = get_status(job_id)
    response: dict[str, Any] = {"jobId": job_id, "status": snapshot["status"]}
    if inline:
        response.update(snapshot)
    if rejected:
        response["rejected"] = rejected
    logger.info("job_submitted", job_id=job_id, type=body.type.value, inline=inline, rejected=len(rejected))
    return response


@router.get("")
def list_job_history(
    scope_id: str | None = Query(None, alias="scopeId"),
    job_type: JobType | None = Query(None, alias="type"),
    status: JobStatus | None = None,
    limit: int = Query(20, ge=1, le=100),
):
    """List jobs, active ones first."""
    jobs = list_jobs(scope_id=scope_id, job_type=job_type, status=status, limit=limit)
    return {
        "jobs": [
            {**j.status_snapshot(), "createdAt": j.created_at, "updatedAt": j.updated_at}
            for j in jobs
        ]
    }


@router.get("/stats")
def get_job_stats(scope_id: str | None = Query(None, alias="scopeId")):
    """Job counts by status and by type."""
    return job_stats(scope_id)


@router.get("/queue-status")
def get_queue_status():
    """Waiting and active job counts, and whether claiming is paused."""
    return queue_status()


@router.post("/queue/pause")
def pause_queue():
    """Stop workers from claiming new jobs; running jobs finish."""
    set_queue_paused(True)
    return {"success": True, "message": "Queue paused"}


@router.post("/queue/resume")
def resume_queue():
    """Let workers claim jobs again."""
    set_queue_paused(False)
    return {"success": True, "message": "Queue resumed"}


@router.get("/{job_id}")
def get_job_status(job_id: str):
    """Get job status."""
    try:
        return get_status(job_id)
    except PipelineError as e:
        raise _to_http(e) from e


@router.post("/{job_id}/cancel")
def cancel_job(job_id: str):
    """Cancel a pending or processing job."""
    try:
        job = cancel(job_id)
    except PipelineError as e:
        raise _to_http(e) from e
    return {"jobId": job.id, "status": job.status.value}


@router.post("/{job_id}/retry")
def retry_job(job_id: str):
    """Re-enqueue a failed or cancelled job."""
    try:
        job = retry(job_id)
    except PipelineError as e:
        raise _to_http(e) from e
    return {"jobId": job.id, "status": job.status.value, "retryCount": job.retry_count}


@router.get("/{job_id}/artifact")
def download_artifact(job_id: str):
    """Download a completed report."""
    try:
        job = require_job(job_id)
    except PipelineError as e:
        raise _to_http(e) from e
    ref = job.result.artifact_ref
    if job.type is not JobType.GENERATE_REPORT or job.status is not JobStatus.COMPLETED or not ref:
        raise HTTPException(status_code=404, detail="No artifact available for this job")

    export_format = load_payload(job.payload_ref)["config"].get("exportFormat", "excel")
    try:
        data = LocalArtifactStore().get(ref)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail="Artifact has expired") from e
    filename = f"report-{job_id}.{EXTENSIONS.get(export_format, 'bin')}"
    return Response(
        content=data,
        media_type=media_type(export_format),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
