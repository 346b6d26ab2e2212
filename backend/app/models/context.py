"""
Context model - a document uploaded to a project for AI grounding and
indexed in the project's external vector store.

Status flow: uploading -> indexing -> ready | failed. ``deleted`` is
terminal and set instead of removing the row.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from app.database import Base
from app.models.project import new_uuid


class ContextStatus(str, enum.Enum):
    """Indexing status of an uploaded context document."""
    UPLOADING = "uploading"
    INDEXING = "indexing"
    READY = "ready"
    FAILED = "failed"
    DELETED = "deleted"


DEFAULT_CONTEXT_PROVIDER = "openai"


class Context(Base):
    """Uploaded document associated with a project's retrieval context."""

    __tablename__ = "contexts"

    id = Column(String(36), primary_key=True, default=new_uuid)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    source_type = Column(String(50), default="upload", nullable=False)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer)  # bytes
    mime_type = Column(String(100))
    provider = Column(String(50), default=DEFAULT_CONTEXT_PROVIDER, nullable=False)
    openai_file_id = Column(String(100))  # set once attached to the vector store
    status = Column(String(20), default=ContextStatus.UPLOADING.value, nullable=False)
    chunk_count = Column(Integer)
    last_error = Column(Text)
    metadata_ = Column("metadata", JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="contexts")

    @property
    def is_deleted(self) -> bool:
        return self.status == ContextStatus.DELETED.value

    def __repr__(self):
        return f"<Context {self.id} {self.file_name} ({self.status})>"
