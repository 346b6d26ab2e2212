"""
Vector Store Client - thin wrapper over the OpenAI vector-store and file APIs.

Store ids start with ``vs_`` and file ids with ``file-``; the context
indexing service relies on these prefixes to detect swapped identifiers.
Every ``openai`` exception is translated into the app error taxonomy here.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

import openai
from openai import OpenAI

from app.config import settings
from app.exceptions import ConfigurationError, IntegrationError, ProviderError, TransportError

logger = logging.getLogger(__name__)

PROVIDER = "OpenAI"
VECTOR_STORE_ID_PREFIX = "vs_"
FILE_ID_PREFIX = "file-"
FILE_PURPOSE = "assistants"


def looks_like_vector_store_id(value: Optional[str]) -> bool:
    return isinstance(value, str) and value.startswith(VECTOR_STORE_ID_PREFIX)


def looks_like_file_id(value: Optional[str]) -> bool:
    return isinstance(value, str) and value.startswith(FILE_ID_PREFIX)


@dataclass
class FileIndexingStatus:
    """Provider-side state of one file inside a vector store."""
    status: str  # in_progress | completed | failed | cancelled | expired | ...
    chunk_count: Optional[int] = None
    last_error: Optional[str] = None


def _translate(action: str, e: Exception) -> IntegrationError:
    if isinstance(e, openai.APIConnectionError):
        # APITimeoutError is a subclass
        logger.warning("%s %s failed: %s", PROVIDER, action, type(e).__name__)
        return TransportError(PROVIDER, f"Network error: {PROVIDER} {action} failed ({e})")
    if isinstance(e, openai.APIStatusError):
        logger.info("%s %s rejected with HTTP %s", PROVIDER, action, e.status_code)
        return ProviderError(
            PROVIDER,
            f"{PROVIDER} error: {e.status_code} {e.message}",
            provider_status=e.status_code,
            body=e.response.text if e.response is not None else None,
        )
    return ProviderError(PROVIDER, f"{PROVIDER} {action} failed: {e}")


class VectorStoreClient:
    """Creates stores, uploads and attaches files, and reads indexing status."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[Any] = None):
        """
        Args:
            api_key: OpenAI key (settings value if None)
            client: Pre-built OpenAI client, mainly for tests
        """
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            api_key = self._api_key or settings.OPENAI_API_KEY
            if not api_key:
                raise ConfigurationError("OPENAI_API_KEY not set")
            self._client = OpenAI(api_key=api_key)
        return self._client

    def create_vector_store(self, name: str) -> str:
        """Create a vector store and return its id."""
        client = self.client
        try:
            store = client.vector_stores.create(name=name)
        except openai.OpenAIError as e:
            raise _translate("vector store creation", e)
        logger.info("Created vector store %s (%s)", store.id, name)
        return store.id

    def upload_file(self, file_name: str, content: bytes, mime_type: Optional[str] = None) -> str:
        """Upload raw bytes to the file store and return the file id."""
        client = self.client
        upload = (file_name, content, mime_type) if mime_type else (file_name, content)
        try:
            uploaded = client.files.create(file=upload, purpose=FILE_PURPOSE)
        except openai.OpenAIError as e:
            raise _translate("file upload", e)
        return uploaded.id

    def attach_file(self, vector_store_id: str, file_id: str) -> None:
        client = self.client
        try:
            client.vector_stores.files.create(vector_store_id=vector_store_id, file_id=file_id)
        except openai.OpenAIError as e:
            raise _translate("file attach", e)

    def retrieve_file_status(self, vector_store_id: str, file_id: str) -> FileIndexingStatus:
        """Read the indexing status of a file in a store."""
        client = self.client
        try:
            vector_file = client.vector_stores.files.retrieve(file_id, vector_store_id=vector_store_id)
        except openai.OpenAIError as e:
            raise _translate("status check", e)

        last_error = getattr(vector_file, "last_error", None)
        return FileIndexingStatus(
            status=getattr(vector_file, "status", None) or "",
            chunk_count=getattr(vector_file, "chunk_count", None),
            last_error=getattr(last_error, "message", None) if last_error else None,
        )

    # Best-effort cleanup: errors are logged and reported as False.

    def detach_file(self, vector_store_id: str, file_id: str) -> bool:
        try:
            self.client.vector_stores.files.delete(file_id, vector_store_id=vector_store_id)
        except (openai.OpenAIError, IntegrationError) as e:
            logger.warning("Could not detach file %s from vector store %s: %s", file_id, vector_store_id, e)
            return False
        return True

    def delete_file(self, file_id: str) -> bool:
        try:
            self.client.files.delete(file_id)
        except (openai.OpenAIError, IntegrationError) as e:
            logger.warning("Could not delete file %s: %s", file_id, e)
            return False
        return True


_client_instance: Optional[VectorStoreClient] = None


def get_vector_store_client() -> VectorStoreClient:
    """Get the process-wide vector store client."""
    global _client_instance
    if _client_instance is None:
        _client_instance = VectorStoreClient()
    return _client_instance
