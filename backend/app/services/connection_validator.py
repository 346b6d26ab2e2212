"""
Connection Validator Service
Tests live connections to Jira and Azure DevOps with the project's stored
credentials.

``verify`` only reports. ``verify_and_activate`` additionally marks the
integration active on success; a failed check never deactivates anything.
"""
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.exceptions import ConfigurationError, CryptoError, IntegrationError
from app.models.integration import Integration, provider_label
from app.services.integration_registry import IntegrationRegistry
from app.services.secret_service import SecretService
from app.services.trackers import ConnectionTestResult, TrackerAdapter, get_tracker_adapter

logger = logging.getLogger(__name__)


class ConnectionValidatorService:
    """Service for validating tracker connections."""

    def __init__(
        self,
        db: Session,
        secrets: Optional[SecretService] = None,
        adapter_factory: Callable[..., TrackerAdapter] = get_tracker_adapter,
    ):
        self.db = db
        self.registry = IntegrationRegistry(db)
        self.secrets = secrets or SecretService(db)
        self.adapter_factory = adapter_factory

    def verify(self, project_id: str, integration_id: str) -> ConnectionTestResult:
        """
        Run a live round-trip against the integration's tracker.

        Args:
            project_id: Owning project
            integration_id: Integration to test

        Returns:
            ConnectionTestResult; failures are values, not exceptions

        Raises:
            NotFoundError: If the integration does not exist in the project
        """
        integration = self.registry.get(project_id, integration_id)
        if not integration.is_tracker:
            return ConnectionTestResult.failed(ConfigurationError(
                f"Connection testing is not supported for {provider_label(integration.type)} integrations"
            ))

        try:
            credentials = self._load_credentials(integration)
            adapter = self.adapter_factory(integration.type)
        except IntegrationError as e:
            logger.info("Connection test for integration %s not attempted: %s", integration.id, e.code)
            return ConnectionTestResult.failed(e)

        result = adapter.test_connection(credentials, integration.metadata_ or {})
        logger.info(
            "Connection test for %s integration %s: %s",
            integration.type, integration.id, "ok" if result.success else "failed",
        )
        return result

    def verify_and_activate(self, project_id: str, integration_id: str) -> ConnectionTestResult:
        """Verify, and on success activate the integration (single active tracker enforced)."""
        result = self.verify(project_id, integration_id)
        if result.success:
            self.registry.activate(project_id, integration_id)
        return result

    def _load_credentials(self, integration: Integration) -> dict:
        # Trackers store their secret under the integration type.
        try:
            return self.secrets.load_credentials(integration.project_id, integration.type)
        except CryptoError as e:
            raise CryptoError(f"Decrypt failed: {e.message}", code=e.code)


def get_connection_validator(db: Session) -> ConnectionValidatorService:
    """Build a validator bound to a request's session."""
    return ConnectionValidatorService(db)
