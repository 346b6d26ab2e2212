"""
Tests for context document routes.
"""
from fastapi import status

from app.config import settings
from app.exceptions import TransportError
from app.models.context import Context
from app.services.vector_store_client import FileIndexingStatus


def upload(client, project_id, name="brief.txt", content=b"Checkout must support PayPal."):
    return client.post(
        f"/api/projects/{project_id}/contexts/upload",
        files={"file": (name, content, "text/plain")},
    )


def test_upload_context(client, project, vector_client, db):
    """Test an upload is attached and reported as indexing."""
    response = upload(client, project.id)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "indexing"
    context = db.query(Context).filter(Context.id == data["id"]).one()
    assert context.file_name == "brief.txt"
    assert context.mime_type == "text/plain"
    assert vector_client.attached == [("vs_stub1", context.openai_file_id)]


def test_upload_without_file(client, project, db):
    """Test a request without a file is a 400 and writes nothing."""
    response = client.post(f"/api/projects/{project.id}/contexts/upload")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "file is required"
    assert db.query(Context).count() == 0


def test_upload_too_large(client, project, db, monkeypatch):
    """Test an oversized file is rejected before any row is written."""
    monkeypatch.setattr(settings, "MAX_FILE_SIZE", 4)

    response = upload(client, project.id, content=b"12345")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert db.query(Context).count() == 0


def test_upload_failure_records_error(client, project, vector_client, db):
    """Test a failed upload answers with the error and leaves a failed row."""
    vector_client.upload_error = TransportError("OpenAI", "Network error: connection reset")

    response = upload(client, project.id)

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["code"] == "TRANSPORT_ERROR"
    context = db.query(Context).one()
    assert context.status == "failed"
    assert context.last_error == "Network error: connection reset"


def test_status_reconciles(client, project, vector_client):
    """Test polling status picks up provider completion."""
    context_id = upload(client, project.id).json()["id"]
    file_id = vector_client.uploaded[0][0]
    vector_client.statuses[file_id] = FileIndexingStatus(status="completed", chunk_count=3)

    response = client.get(f"/api/projects/{project.id}/contexts/{context_id}/status")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ready", "chunkCount": 3, "lastError": None}


def test_status_unknown_context(client, project):
    """Test polling a missing context is a 404."""
    response = client.get(f"/api/projects/{project.id}/contexts/missing/status")
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_list_and_delete(client, project, vector_client):
    """Test deleted contexts disappear from the list."""
    first = upload(client, project.id, "a.txt", b"a").json()["id"]
    second = upload(client, project.id, "b.txt", b"b").json()["id"]

    response = client.delete(f"/api/projects/{project.id}/contexts/{first}")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"ok": True}

    listed = client.get(f"/api/projects/{project.id}/contexts").json()
    assert [c["id"] for c in listed] == [second]
    assert listed[0]["fileName"] == "b.txt"
    assert len(vector_client.deleted_files) == 1


def test_delete_survives_cleanup_failure(client, project, vector_client):
    """Test deletion succeeds even when the remote file cannot be removed."""
    context_id = upload(client, project.id).json()["id"]
    vector_client.cleanup_ok = False

    response = client.delete(f"/api/projects/{project.id}/contexts/{context_id}")

    assert response.status_code == status.HTTP_200_OK
    status_response = client.get(f"/api/projects/{project.id}/contexts/{context_id}/status")
    assert status_response.json()["status"] == "deleted"
