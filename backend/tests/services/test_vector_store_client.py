"""
Tests for VectorStoreClient error translation and status reads.
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from app.exceptions import ConfigurationError, ProviderError, TransportError
from app.services.vector_store_client import (
    VectorStoreClient,
    looks_like_file_id,
    looks_like_vector_store_id,
)

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/files")


def status_error(code, body="{}"):
    response = httpx.Response(code, request=REQUEST, text=body)
    return openai.APIStatusError(f"Error code: {code}", response=response, body=None)


@pytest.fixture
def sdk():
    return MagicMock()


@pytest.fixture
def client(sdk):
    return VectorStoreClient(client=sdk)


def test_id_shapes():
    assert looks_like_vector_store_id("vs_abc")
    assert not looks_like_vector_store_id("file-abc")
    assert looks_like_file_id("file-abc")
    assert not looks_like_file_id(None)


def test_missing_api_key(monkeypatch):
    from app.config import settings

    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY not set"):
        VectorStoreClient().create_vector_store("project-1")


def test_create_vector_store(client, sdk):
    sdk.vector_stores.create.return_value = SimpleNamespace(id="vs_123")
    assert client.create_vector_store("project-1") == "vs_123"
    sdk.vector_stores.create.assert_called_once_with(name="project-1")


def test_upload_sends_name_and_mime(client, sdk):
    sdk.files.create.return_value = SimpleNamespace(id="file-9")
    assert client.upload_file("brief.pdf", b"%PDF", "application/pdf") == "file-9"
    sdk.files.create.assert_called_once_with(file=("brief.pdf", b"%PDF", "application/pdf"), purpose="assistants")


def test_connection_error_is_transport_error(client, sdk):
    sdk.files.create.side_effect = openai.APIConnectionError(request=REQUEST)
    with pytest.raises(TransportError, match="Network error"):
        client.upload_file("a.txt", b"a")


def test_status_error_is_provider_error(client, sdk):
    sdk.vector_stores.files.create.side_effect = status_error(404, '{"error": "No such vector store"}')
    with pytest.raises(ProviderError) as exc_info:
        client.attach_file("vs_1", "file-1")
    assert exc_info.value.provider_status == 404


def test_retrieve_file_status(client, sdk):
    sdk.vector_stores.files.retrieve.return_value = SimpleNamespace(
        status="failed",
        last_error=SimpleNamespace(code="unsupported_file", message="File type not supported"),
    )

    result = client.retrieve_file_status("vs_1", "file-1")

    assert result.status == "failed"
    assert result.last_error == "File type not supported"
    assert result.chunk_count is None
    sdk.vector_stores.files.retrieve.assert_called_once_with("file-1", vector_store_id="vs_1")


def test_cleanup_failures_are_reported_not_raised(client, sdk):
    sdk.vector_stores.files.delete.side_effect = status_error(404)
    sdk.files.delete.side_effect = openai.APIConnectionError(request=REQUEST)

    assert client.detach_file("vs_1", "file-1") is False
    assert client.delete_file("file-1") is False


def test_cleanup_success(client, sdk):
    assert client.detach_file("vs_1", "file-1") is True
    assert client.delete_file("file-1") is True
