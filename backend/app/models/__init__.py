"""
Database models package.
Import all models to ensure they are registered with SQLAlchemy.
"""
from app.models.project import Project
from app.models.integration import (
    Integration,
    IntegrationType,
    TRACKER_INTEGRATION_TYPES,
    is_tracker_integration,
    provider_label,
)
from app.models.secret import Secret
from app.models.context import Context, ContextStatus, DEFAULT_CONTEXT_PROVIDER

__all__ = [
    "Project",
    # Integrations
    "Integration",
    "IntegrationType",
    "TRACKER_INTEGRATION_TYPES",
    "is_tracker_integration",
    "provider_label",
    "Secret",
    # Context documents
    "Context",
    "ContextStatus",
    "DEFAULT_CONTEXT_PROVIDER",
]
