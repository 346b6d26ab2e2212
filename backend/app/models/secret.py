"""
Secret model for storing encrypted tracker credentials.
Exactly zero or one row per (project, provider).
"""
from sqlalchemy import Column, String, Text, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.models.project import new_uuid


class Secret(Base):
    """Encrypted credentials storage for project integrations."""

    __tablename__ = "secrets"
    __table_args__ = (
        UniqueConstraint("project_id", "provider", name="uq_secrets_project_provider"),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String(50), nullable=False)

    # v1:iv:data:tag token, or plain JSON when no encryption key is configured
    encrypted_value = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationship
    project = relationship("Project", back_populates="secrets")

    def __repr__(self):
        return f"<Secret {self.project_id}/{self.provider}>"
