"""File upload and dry-run validation endpoints."""
import os
from pathlib import Path

import structlog
from fastapi import APIRouter, File, HTTPException, Query, Response, UploadFile

from job_pipeline_api.settings import get_settings
from job_pipeline_core.ingest import detect_format, load_records
from job_pipeline_core.jobs.models import JobType
from job_pipeline_core.util import ValidationError, generate_id
from job_pipeline_core.validation import build_template, validate_rows

router = APIRouter(prefix="/uploads", tags=["uploads"])
logger = structlog.get_logger()

UPLOAD_PATHS: dict[str, str] = {}
UPLOAD_EXTENSIONS = [".csv", ".tsv", ".json", ".jsonl", ".xlsx"]

# Spreadsheet-like formats spend their first line on the header.
HEADER_ROWS = {"csv": 1, "tsv": 1, "xlsx": 1}


def header_rows_for(format_name: str) -> int:
    return HEADER_ROWS.get(format_name, 0)


def _discard(upload_id: str, path: str):
    os.remove(path)
    UPLOAD_PATHS.pop(upload_id, None)


TEMPLATE_MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
}


@router.get("/template")
def download_template(
    job_type: JobType = Query(..., alias="type"),
    template_format: str = Query("xlsx", alias="format"),
):
    """Download a blank upload sheet with the columns an import type accepts."""
    try:
        data = build_template(job_type, template_format)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    filename = f"{job_type.value.lower()}-template.{template_format}"
    return Response(
        content=data,
        media_type=TEMPLATE_MEDIA_TYPES[template_format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/validate")
async def upload_validate(
    job_type: JobType = Query(..., alias="type"),
    file: UploadFile = File(...),
):
    """Upload a file and validate it without creating a job."""
    if not job_type.is_import:
        raise HTTPException(status_code=400, detail=f"{job_type.value} does not take a file")
    settings = get_settings()
    max_bytes = settings.max_upload_mb * 1024 * 1024
    content = await file.read()
    if len(content) > max_bytes:
        raise HTTPException(
            status_code=413, detail=f"File too large (max {settings.max_upload_mb} MB)"
        )

    upload_id = generate_id()
    suffix = Path(file.filename or "").suffix.lower() or ".bin"
    os.makedirs(settings.upload_dir, exist_ok=True)
    save_path = os.path.join(settings.upload_dir, f"{upload_id}{suffix}")
    with open(save_path, "wb") as f:
        f.write(content)
    UPLOAD_PATHS[upload_id] = save_path

    detected = detect_format(save_path)
    if not detected:
        _discard(upload_id, save_path)
        raise HTTPException(status_code=400, detail="Unsupported or unrecognized file format")

    try:
        rows = load_records(save_path, detected)
        result = validate_rows(
            rows,
            job_type,
            header_rows=header_rows_for(detected),
            max_batch_size=settings.max_batch_size,
        )
    except (ValueError, ValidationError) as e:
        _discard(upload_id, save_path)
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.info(
        "upload_validated",
        upload_id=upload_id,
        type=job_type.value,
        total=result.total_rows,
        invalid=len(result.invalid),
    )
    return {"uploadId": upload_id, "detectedFormat": detected, **result.summary()}


def get_upload_path(upload_id: str) -> str | None:
    """Get the path for an upload ID."""
    path = UPLOAD_PATHS.get(upload_id)
    if path and os.path.exists(path):
        return path
    settings = get_settings()
    for ext in UPLOAD_EXTENSIONS:
        p = os.path.join(settings.upload_dir, f"{upload_id}{ext}")
        if os.path.exists(p):
            return p
    return None
