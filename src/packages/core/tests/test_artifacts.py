"""Tests for the local artifact store."""
import pytest

from job_pipeline_core.artifacts import LocalArtifactStore, media_type


def test_put_get_delete(tmp_path):
    store = LocalArtifactStore(str(tmp_path / "a"))
    ref = store.put("job-1", b"a,b\n1,2\n", "csv")
    assert ref == "job-1.csv"
    assert store.get(ref) == b"a,b\n1,2\n"
    store.delete(ref)
    assert not store.exists(ref)
    with pytest.raises(FileNotFoundError):
        store.get(ref)


def test_default_dir_from_env(job_db):
    ref = LocalArtifactStore().put("job-2", b"{}", "json")
    assert (job_db / "artifacts" / ref).exists()


def test_rejects_bad_refs_and_formats(tmp_path):
    store = LocalArtifactStore(str(tmp_path))
    with pytest.raises(ValueError):
        store.get("../jobs.db")
    with pytest.raises(ValueError):
        store.put("job-3", b"x", "docx")
    with pytest.raises(ValueError):
        store.put("job-3", b"", "csv")


def test_media_types():
    assert media_type("excel").endswith("spreadsheetml.sheet")
    assert media_type("pdf") == "application/pdf"
