"""
Project model (partial).

Only the columns the integration core reads or writes live here; workspace
membership, templates and runs are owned by the CRUD layer.
"""
import uuid

from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


class Project(Base):
    """A project inside a workspace."""

    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=new_uuid)
    workspace_id = Column(String(36), index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)

    # External vector store, created lazily by the context indexing service
    openai_vector_store_id = Column(String(100))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    integrations = relationship("Integration", back_populates="project", cascade="all, delete-orphan")
    secrets = relationship("Secret", back_populates="project", cascade="all, delete-orphan")
    contexts = relationship("Context", back_populates="project", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Project {self.id} ({self.name})>"
