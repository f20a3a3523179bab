import pytest


@pytest.fixture(autouse=True)
def job_db(tmp_path, monkeypatch):
    """Fresh job store and artifact directory per test."""
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "jobs.db"))
    monkeypatch.setenv("ARTIFACT_DIR", str(tmp_path / "artifacts"))
    from job_pipeline_core.jobs import init_db

    init_db()
    return tmp_path
