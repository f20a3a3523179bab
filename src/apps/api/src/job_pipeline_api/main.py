"""FastAPI application entrypoint."""
import os

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from job_pipeline_api.logging import configure_logging
from job_pipeline_api.routers import health, jobs, uploads
from job_pipeline_api.settings import get_settings
from job_pipeline_core.jobs import init_db

configure_logging()
logger = structlog.get_logger()

app = FastAPI(title="Job Pipeline API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix="/api")
app.include_router(uploads.router, prefix="/api")
app.include_router(jobs.router, prefix="/api")


@app.on_event("startup")
def startup():
    """Initialize on startup."""
    settings = get_settings()
    # The core stores read their locations from the environment.
    os.environ.setdefault("SQLITE_PATH", settings.sqlite_path)
    os.environ.setdefault("ARTIFACT_DIR", settings.artifact_dir)
    logger.info("initializing_database", sqlite_path=os.environ["SQLITE_PATH"])
    init_db()
