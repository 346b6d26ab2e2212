"""
Integration Registry - CRUD and activation state for a project's
tracker / document-provider integrations.

Within a project at most one tracker-kind integration (jira, azure_devops)
is active. Every activation write is committed first and then followed by a
sweep in its own transaction that locks the project's tracker rows,
deactivates all others and re-asserts the kept row. Sweeps serialize on the
row locks, so when two activations race the last sweep wins and exactly one
tracker stays active.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import ConfigurationError, NotFoundError
from app.models.integration import (
    Integration,
    IntegrationType,
    TRACKER_INTEGRATION_TYPES,
)

logger = logging.getLogger(__name__)

TRACKER_TYPE_VALUES = [t.value for t in TRACKER_INTEGRATION_TYPES]


def parse_integration_type(value: Any) -> IntegrationType:
    """Validate a raw type string from a request."""
    try:
        return IntegrationType(getattr(value, "value", value))
    except ValueError:
        allowed = ", ".join(t.value for t in IntegrationType)
        raise ConfigurationError(f"Unsupported integration type '{value}' (expected one of: {allowed})")


class IntegrationRegistry:
    """Service for managing project integrations."""

    def __init__(self, db: Session):
        self.db = db

    # ========================================
    # QUERIES
    # ========================================

    def list_integrations(self, project_id: str) -> List[Integration]:
        """All integrations for a project, ordered by provider type."""
        return self.db.query(Integration).filter(
            Integration.project_id == project_id
        ).order_by(Integration.type, Integration.created_at).all()

    def get(self, project_id: str, integration_id: str) -> Integration:
        integration = self.db.query(Integration).filter(
            Integration.id == integration_id,
            Integration.project_id == project_id,
        ).first()
        if not integration:
            raise NotFoundError("Integration", integration_id)
        return integration

    def get_active_tracker(self, project_id: str, integration_type: IntegrationType) -> Optional[Integration]:
        """The active integration of one tracker type, if any."""
        return self.db.query(Integration).filter(
            Integration.project_id == project_id,
            Integration.type == integration_type.value,
            Integration.is_active.is_(True),
        ).order_by(Integration.updated_at.desc()).first()

    def active_trackers(self, project_id: str) -> List[Integration]:
        return self.db.query(Integration).filter(
            Integration.project_id == project_id,
            Integration.type.in_(TRACKER_TYPE_VALUES),
            Integration.is_active.is_(True),
        ).all()

    # ========================================
    # MUTATIONS
    # ========================================

    def create(
        self,
        project_id: str,
        integration_type: Any,
        metadata: Optional[Mapping[str, Any]] = None,
        is_active: bool = True,
        credentials_ref: Optional[str] = None,
    ) -> Integration:
        """Create an integration. Active by default."""
        integration_type = parse_integration_type(integration_type)
        integration = Integration(
            project_id=project_id,
            type=integration_type.value,
            metadata_=dict(metadata or {}),
            is_active=bool(is_active),
            credentials_ref=credentials_ref,
        )
        self.db.add(integration)
        self.db.commit()
        self.db.refresh(integration)
        logger.info("Created %s integration %s for project %s", integration.type, integration.id, project_id)

        if integration.is_active and integration.is_tracker:
            self._sweep_after_activation(project_id, integration.id)
        return integration

    def update(
        self,
        project_id: str,
        integration_id: str,
        is_active: Optional[bool] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        credentials_ref: Optional[str] = None,
    ) -> Integration:
        """
        Patch activation flag, metadata and/or credentials reference.

        Setting ``is_active=True`` on a tracker integration deactivates every
        other tracker integration of the project.
        """
        integration = self.get(project_id, integration_id)
        if metadata is not None:
            integration.metadata_ = dict(metadata)
        if credentials_ref is not None:
            integration.credentials_ref = credentials_ref
        if is_active is not None:
            integration.is_active = bool(is_active)
        self.db.commit()
        self.db.refresh(integration)

        if is_active and integration.is_tracker:
            self._sweep_after_activation(project_id, integration.id)
            self.db.refresh(integration)
        return integration

    def activate(self, project_id: str, integration_id: str) -> Integration:
        """Mark an integration active (and enforce the single-tracker rule)."""
        return self.update(project_id, integration_id, is_active=True)

    def delete(self, project_id: str, integration_id: str) -> None:
        """Hard delete. The provider's Secret row is kept for reuse."""
        integration = self.get(project_id, integration_id)
        self.db.delete(integration)
        self.db.commit()
        logger.info("Deleted integration %s for project %s", integration_id, project_id)

    # ========================================
    # SINGLE ACTIVE TRACKER
    # ========================================

    def enforce_single_active_tracker(self, project_id: str, keep_id: str) -> List[str]:
        """
        Deactivate every tracker integration of the project except ``keep_id``.

        Runs in its own transaction with the project's tracker rows locked.
        The kept row is re-asserted active so concurrent sweeps converge on
        the last one to run.

        Returns:
            Ids of the integrations that were deactivated
        """
        rows = self.db.query(Integration).filter(
            Integration.project_id == project_id,
            Integration.type.in_(TRACKER_TYPE_VALUES),
        ).order_by(Integration.id).with_for_update().all()

        deactivated = []
        for row in rows:
            if row.id == keep_id:
                row.is_active = True
            elif row.is_active:
                row.is_active = False
                deactivated.append(row.id)
        self.db.commit()

        if deactivated:
            logger.info(
                "Project %s: kept tracker %s active, deactivated %s",
                project_id, keep_id, ", ".join(deactivated),
            )
        return deactivated

    def _sweep_after_activation(self, project_id: str, keep_id: str) -> None:
        # The activation itself is already committed; a failed sweep is logged only.
        try:
            self.enforce_single_active_tracker(project_id, keep_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Single-active-tracker sweep failed for project %s (kept %s): %s",
                project_id, keep_id, e,
            )


def serialize_integration(integration: Integration) -> Dict[str, Any]:
    """API view of an integration row."""
    return {
        "id": integration.id,
        "projectId": integration.project_id,
        "type": integration.type,
        "credentialsRef": integration.credentials_ref,
        "metadata": integration.metadata_ or {},
        "isActive": bool(integration.is_active),
        "createdAt": integration.created_at.isoformat() if integration.created_at else None,
        "updatedAt": integration.updated_at.isoformat() if integration.updated_at else None,
    }
