"""
Work Item Fetcher - resolves a project's active tracker integration and its
credentials, then delegates to the matching adapter.

A half-configured tracker (integration without secret or the reverse) is
reported the same way as a missing one.
"""
import logging
from typing import Callable, Optional, Tuple

from sqlalchemy.orm import Session

from app.exceptions import ConfigurationError, CredentialsNotFound
from app.models.integration import Integration, IntegrationType, provider_label
from app.services.integration_registry import IntegrationRegistry
from app.services.secret_service import SecretService
from app.services.trackers import (
    SOURCE_TO_PROVIDER,
    NormalizedWorkItem,
    TrackerAdapter,
    WorkItemPage,
    WorkItemQuery,
    get_tracker_adapter,
)

logger = logging.getLogger(__name__)


def resolve_source(source: str) -> IntegrationType:
    """Map a URL source tag (``ado`` / ``jira``) to its integration type."""
    provider = SOURCE_TO_PROVIDER.get((source or "").lower())
    if provider is None:
        raise ConfigurationError("Source not implemented", details={"source": source})
    return provider


class WorkItemFetcher:
    """Fetch and list tracker work items for a project."""

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

    def _resolve(self, project_id: str, provider: IntegrationType) -> Tuple[Integration, dict]:
        integration = self.registry.get_active_tracker(project_id, provider)
        missing = ConfigurationError(
            f"{provider_label(provider)} integration/secret missing",
            details={"provider": provider.value},
        )
        if integration is None:
            raise missing
        try:
            credentials = self.secrets.load_credentials(project_id, provider.value)
        except CredentialsNotFound:
            raise missing
        return integration, credentials

    def fetch(self, project_id: str, source: str, external_id: str) -> NormalizedWorkItem:
        """
        Fetch one external work item in the normalized shape.

        Raises:
            ConfigurationError: Unknown source, or integration/secret missing
            ProviderError: Tracker rejected the request
            TransportError: Tracker unreachable
            CryptoError: Stored credentials could not be decrypted
        """
        provider = resolve_source(source)
        integration, credentials = self._resolve(project_id, provider)
        adapter = self.adapter_factory(provider)
        return adapter.fetch_work_item(credentials, integration.metadata_ or {}, external_id)

    def list_work_items(self, project_id: str, source: str, query: Optional[WorkItemQuery] = None) -> WorkItemPage:
        """
        One page of work items from the project's tracker.

        Only Azure DevOps supports listing. With no active Azure DevOps
        integration the result is an empty page.
        """
        provider = resolve_source(source)
        query = (query or WorkItemQuery()).normalized()
        if provider != IntegrationType.AZURE_DEVOPS:
            raise ConfigurationError("Source not implemented", details={"source": source})

        integration = self.registry.get_active_tracker(project_id, provider)
        if integration is None:
            return WorkItemPage.empty(query.page, query.page_size)
        credentials = self.secrets.load_credentials(project_id, provider.value)

        adapter = self.adapter_factory(provider)
        return adapter.list_work_items(credentials, integration.metadata_ or {}, query)
