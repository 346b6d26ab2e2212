"""
Integration model - one configured tracker or document-provider connection
for a project.

Within a project at most one tracker-kind integration (jira, azure_devops)
may be active at a time; IntegrationRegistry enforces it.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from app.database import Base
from app.models.project import new_uuid


class IntegrationType(str, enum.Enum):
    """Provider behind an integration."""
    JIRA = "jira"
    AZURE_DEVOPS = "azure_devops"
    CONFLUENCE = "confluence"
    SHAREPOINT = "sharepoint"


TRACKER_INTEGRATION_TYPES = (IntegrationType.AZURE_DEVOPS, IntegrationType.JIRA)

PROVIDER_LABELS = {
    IntegrationType.JIRA: "Jira",
    IntegrationType.AZURE_DEVOPS: "Azure DevOps",
    IntegrationType.CONFLUENCE: "Confluence",
    IntegrationType.SHAREPOINT: "SharePoint",
}


def is_tracker_integration(integration_type) -> bool:
    """True for jira / azure_devops, whether given as enum or raw string."""
    value = getattr(integration_type, "value", integration_type)
    return value in {t.value for t in TRACKER_INTEGRATION_TYPES}


def provider_label(integration_type) -> str:
    value = getattr(integration_type, "value", integration_type)
    try:
        return PROVIDER_LABELS[IntegrationType(value)]
    except ValueError:
        return str(value)


class Integration(Base):
    """Tracker / document provider connection for a project."""

    __tablename__ = "integrations"

    id = Column(String(36), primary_key=True, default=new_uuid)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String(50), nullable=False)  # IntegrationType value
    # Provider-specific: baseUrl/projectKey (jira), organization/project (azure_devops)
    metadata_ = Column("metadata", JSON)
    is_active = Column(Boolean, default=True, nullable=False)
    credentials_ref = Column(String(255))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationship
    project = relationship("Project", back_populates="integrations")

    @property
    def is_tracker(self) -> bool:
        return is_tracker_integration(self.type)

    def __repr__(self):
        return f"<Integration {self.id} ({self.type}, active={self.is_active})>"
