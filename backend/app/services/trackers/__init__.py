"""
Tracker adapters
- JiraAdapter: Jira Cloud REST v3
- AzureDevOpsAdapter: Azure DevOps REST v7.1
Both map provider payloads onto NormalizedWorkItem.
"""
from typing import Optional

import requests

from app.exceptions import ConfigurationError
from app.models.integration import IntegrationType, provider_label

from .base import (
    ConnectionTestResult,
    NormalizedWorkItem,
    TrackerAdapter,
    WorkItemPage,
    WorkItemQuery,
)
from .jira import JiraAdapter, JiraConfig
from .azure_devops import AzureDevOpsAdapter, AzureDevOpsConfig

ADAPTERS = {
    IntegrationType.JIRA: JiraAdapter,
    IntegrationType.AZURE_DEVOPS: AzureDevOpsAdapter,
}

# URL source tags used by the work-item routes
SOURCE_TO_PROVIDER = {
    "ado": IntegrationType.AZURE_DEVOPS,
    "jira": IntegrationType.JIRA,
}


def get_tracker_adapter(integration_type, session: Optional[requests.Session] = None) -> TrackerAdapter:
    """Build the adapter for a tracker integration type.

    Raises:
        ConfigurationError: If the type is not a tracker
    """
    try:
        adapter_cls = ADAPTERS[IntegrationType(getattr(integration_type, "value", integration_type))]
    except (KeyError, ValueError):
        raise ConfigurationError(
            f"Connection testing is not supported for {provider_label(integration_type)} integrations"
        )
    return adapter_cls(session=session)


__all__ = [
    "ConnectionTestResult",
    "NormalizedWorkItem",
    "TrackerAdapter",
    "WorkItemPage",
    "WorkItemQuery",
    "JiraAdapter",
    "JiraConfig",
    "AzureDevOpsAdapter",
    "AzureDevOpsConfig",
    "ADAPTERS",
    "SOURCE_TO_PROVIDER",
    "get_tracker_adapter",
]
