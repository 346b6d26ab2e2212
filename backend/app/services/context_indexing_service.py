"""
Context Indexing Service - lifecycle of uploaded context documents in the
project's external vector store.

Per context row:

    uploading -> indexing -> ready | failed
    any non-deleted state -> deleted   (terminal, set by explicit delete)

Status is pull-based: every status check re-reads the provider and
overwrites status, chunk count and last error on the row.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import ConfigurationError, IntegrationError, NotFoundError
from app.models.context import Context, ContextStatus, DEFAULT_CONTEXT_PROVIDER
from app.models.project import Project
from app.services.vector_store_client import (
    VectorStoreClient,
    get_vector_store_client,
    looks_like_file_id,
    looks_like_vector_store_id,
)

logger = logging.getLogger(__name__)

# Provider status vocabulary -> internal status. Anything else is still indexing.
PROVIDER_STATUS_MAP = {
    "completed": ContextStatus.READY,
    "failed": ContextStatus.FAILED,
    "cancelled": ContextStatus.FAILED,
    "expired": ContextStatus.FAILED,
}


def map_indexing_status(provider_status: Optional[str]) -> ContextStatus:
    """Map a provider file status onto ready / failed / indexing."""
    return PROVIDER_STATUS_MAP.get((provider_status or "").lower(), ContextStatus.INDEXING)


@dataclass
class ContextStatusView:
    status: str
    chunk_count: Optional[int] = None
    last_error: Optional[str] = None

    @classmethod
    def of(cls, context: Context) -> "ContextStatusView":
        return cls(status=context.status, chunk_count=context.chunk_count, last_error=context.last_error)

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "chunkCount": self.chunk_count, "lastError": self.last_error}


class ContextIndexingService:
    """Service for uploading, indexing and polling project context documents."""

    def __init__(self, db: Session, client: Optional[VectorStoreClient] = None):
        self.db = db
        self.client = client or get_vector_store_client()

    # ========================================
    # LOOKUPS
    # ========================================

    def get_project(self, project_id: str) -> Project:
        project = self.db.query(Project).filter(Project.id == project_id).first()
        if not project:
            raise NotFoundError("Project", project_id)
        return project

    def get_context(self, project_id: str, context_id: str) -> Context:
        context = self.db.query(Context).filter(
            Context.id == context_id,
            Context.project_id == project_id,
        ).first()
        if not context:
            raise NotFoundError("Context", context_id)
        return context

    def list_contexts(self, project_id: str) -> List[Context]:
        """Contexts of a project, newest first, deleted ones excluded."""
        return self.db.query(Context).filter(
            Context.project_id == project_id,
            Context.status != ContextStatus.DELETED.value,
        ).order_by(Context.created_at.desc()).all()

    # ========================================
    # VECTOR STORE
    # ========================================

    def ensure_vector_store(self, project: Project) -> str:
        """
        Return the project's vector store id, creating and persisting one if missing.

        Idempotent through the stored id: a store is created only when the
        project row has none.
        """
        if project.openai_vector_store_id:
            return project.openai_vector_store_id

        vector_store_id = self.client.create_vector_store(f"{settings.VECTOR_STORE_NAME_PREFIX}{project.id}")

        locked = self.db.query(Project).filter(Project.id == project.id).with_for_update().first()
        if locked is None:
            raise NotFoundError("Project", project.id)
        if locked.openai_vector_store_id:
            # Another request persisted a store first; keep theirs.
            logger.warning(
                "Project %s already has vector store %s; leaving %s unused",
                project.id, locked.openai_vector_store_id, vector_store_id,
            )
            self.db.commit()
            return locked.openai_vector_store_id
        locked.openai_vector_store_id = vector_store_id
        self.db.commit()
        return vector_store_id

    # ========================================
    # UPLOAD
    # ========================================

    def create_context(
        self,
        project_id: str,
        file_name: str,
        file_size: Optional[int] = None,
        mime_type: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Context:
        """Insert a context row in ``uploading`` state."""
        context = Context(
            project_id=project_id,
            source_type="upload",
            file_name=file_name,
            file_size=file_size,
            mime_type=mime_type,
            provider=DEFAULT_CONTEXT_PROVIDER,
            status=ContextStatus.UPLOADING.value,
            metadata_=metadata or {},
        )
        self.db.add(context)
        self.db.commit()
        self.db.refresh(context)
        return context

    def upload_and_attach(self, file_name: str, content: bytes, vector_store_id: str, mime_type: Optional[str] = None) -> str:
        """Upload a file and attach it to a store. Returns the external file id."""
        file_id = self.client.upload_file(file_name, content, mime_type)
        self.client.attach_file(vector_store_id, file_id)
        return file_id

    def ingest_upload(
        self,
        project_id: str,
        file_name: str,
        content: bytes,
        mime_type: Optional[str] = None,
    ) -> Context:
        """
        Full upload flow: create the row, ensure the store, upload, attach.

        On success the row is ``indexing`` with its external file id. On any
        failure the row is ``failed`` with ``last_error`` set and the error
        is re-raised.

        Raises:
            ConfigurationError: No file, or file above MAX_FILE_SIZE
            NotFoundError: Unknown project
        """
        if not file_name or content is None:
            raise ConfigurationError("file is required")
        if len(content) > settings.MAX_FILE_SIZE:
            raise ConfigurationError(
                f"File too large (max {settings.MAX_FILE_SIZE // (1024 * 1024)}MB)",
                details={"file_size": len(content), "max_file_size": settings.MAX_FILE_SIZE},
            )

        project = self.get_project(project_id)
        context = self.create_context(
            project_id,
            file_name=file_name,
            file_size=len(content),
            mime_type=mime_type,
            metadata={
                "originalName": file_name,
                "uploadedAt": datetime.now(timezone.utc).isoformat(),
            },
        )

        try:
            vector_store_id = self.ensure_vector_store(project)
            file_id = self.upload_and_attach(file_name, content, vector_store_id, mime_type)
        except Exception as e:
            self.db.rollback()
            message = e.message if isinstance(e, IntegrationError) else str(e)
            self._mark_failed(context, message)
            logger.warning("Upload of context %s failed: %s", context.id, message)
            if isinstance(e, IntegrationError):
                raise
            raise IntegrationError(f"Upload failed: {message}", code="UPLOAD_FAILED") from e

        self.db.refresh(context)
        if context.is_deleted:
            return context
        context.openai_file_id = file_id
        context.status = ContextStatus.INDEXING.value
        self.db.commit()
        self.db.refresh(context)
        return context

    # ========================================
    # STATUS
    # ========================================

    def heal_identifiers(self, project: Project, context: Context) -> bool:
        """
        Repair a project/context pair whose store and file ids were written
        into each other's columns.

        Returns:
            True when both identifiers have the expected shape afterwards
        """
        store_id = project.openai_vector_store_id
        file_id = context.openai_file_id
        if looks_like_file_id(store_id) and looks_like_vector_store_id(file_id):
            project.openai_vector_store_id, context.openai_file_id = file_id, store_id
            self.db.commit()
            logger.warning(
                "Swapped identifiers corrected for project %s / context %s (store %s, file %s)",
                project.id, context.id, file_id, store_id,
            )
        return looks_like_vector_store_id(project.openai_vector_store_id) and looks_like_file_id(context.openai_file_id)

    def reconcile_status(self, project_id: str, context_id: str) -> ContextStatusView:
        """
        Re-read the provider's indexing status and persist the mapped result.

        Provider failures are recorded on the row as ``failed``. Deleted rows
        and rows with unusable identifiers return their last-known status
        without calling the provider.
        """
        context = self.get_context(project_id, context_id)
        if context.is_deleted:
            return ContextStatusView.of(context)
        project = self.get_project(project_id)

        if not self.heal_identifiers(project, context):
            logger.warning(
                "Skipping status check for context %s: store id %r / file id %r not usable",
                context.id, project.openai_vector_store_id, context.openai_file_id,
            )
            return ContextStatusView.of(context)

        try:
            remote = self.client.retrieve_file_status(project.openai_vector_store_id, context.openai_file_id)
        except IntegrationError as e:
            self._mark_failed(context, e.message)
            return ContextStatusView.of(context)

        mapped = map_indexing_status(remote.status)
        self.db.refresh(context)
        if context.is_deleted:
            return ContextStatusView.of(context)
        context.status = mapped.value
        if remote.chunk_count is not None:
            context.chunk_count = remote.chunk_count
        context.last_error = remote.last_error if mapped == ContextStatus.FAILED else None
        self.db.commit()
        self.db.refresh(context)
        return ContextStatusView.of(context)

    # ========================================
    # DELETE
    # ========================================

    def delete_context(self, project_id: str, context_id: str) -> Context:
        """
        Soft delete a context after best-effort removal of its external file.

        Remote cleanup failures are logged and ignored.
        """
        context = self.get_context(project_id, context_id)
        if context.is_deleted:
            return context

        project = self.get_project(project_id)
        if project.openai_vector_store_id and context.openai_file_id:
            self.client.detach_file(project.openai_vector_store_id, context.openai_file_id)
            self.client.delete_file(context.openai_file_id)

        context.status = ContextStatus.DELETED.value
        self.db.commit()
        self.db.refresh(context)
        logger.info("Context %s of project %s deleted", context.id, project_id)
        return context

    def _mark_failed(self, context: Context, message: str) -> None:
        self.db.refresh(context)
        if context.is_deleted:
            return
        context.status = ContextStatus.FAILED.value
        context.last_error = message
        self.db.commit()


def serialize_context(context: Context) -> Dict[str, Any]:
    """API view of a context row."""
    return {
        "id": context.id,
        "fileName": context.file_name,
        "fileSize": context.file_size,
        "mimeType": context.mime_type,
        "metadata": context.metadata_ or {},
        "provider": context.provider,
        "status": context.status,
        "openaiFileId": context.openai_file_id,
        "chunkCount": context.chunk_count,
        "lastError": context.last_error,
        "createdAt": context.created_at.isoformat() if context.created_at else None,
    }
