"""Jira Cloud adapter (REST API v3).

Auth is HTTP Basic built from ``email:apiToken``. Descriptions come from
``renderedFields`` so callers get HTML instead of Atlassian Document
Format.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from app.exceptions import ConfigurationError
from app.models.integration import IntegrationType

from .base import NormalizedWorkItem, TrackerAdapter, as_text, basic_auth_header, dig


@dataclass(frozen=True)
class JiraConfig:
    """Resolved Jira connection settings."""

    base_url: str
    email: str
    api_token: str
    project_key: Optional[str] = None

    @classmethod
    def resolve(cls, credentials: Mapping[str, Any], metadata: Mapping[str, Any]) -> "JiraConfig":
        """Merge integration metadata over stored credentials.

        Raises:
            ConfigurationError: If base URL, email or API token is missing
        """
        base_url = as_text(metadata.get("baseUrl") or credentials.get("baseUrl")).strip().rstrip("/")
        email = as_text(credentials.get("email")).strip()
        api_token = as_text(credentials.get("apiToken")).strip()
        if not base_url or not email or not api_token:
            raise ConfigurationError("Missing Jira base URL, email, or API token")
        project_key = as_text(metadata.get("projectKey")).strip() or None
        return cls(base_url=base_url, email=email, api_token=api_token, project_key=project_key)

    def headers(self, user_agent: str) -> Dict[str, str]:
        return {
            "Authorization": basic_auth_header(self.email, self.api_token),
            "Accept": "application/json",
            "User-Agent": user_agent,
        }


class JiraAdapter(TrackerAdapter):
    """Jira Cloud REST v3 client."""

    provider = IntegrationType.JIRA
    source = "jira"
    label = "Jira"

    def _probe(self, credentials: Mapping[str, Any], metadata: Mapping[str, Any]) -> Optional[List[Dict[str, Any]]]:
        config = JiraConfig.resolve(credentials, metadata)
        if config.project_key:
            url = f"{config.base_url}/rest/api/3/project/{quote(config.project_key, safe='')}"
        else:
            url = f"{config.base_url}/rest/api/3/myself"
        self._request("GET", url, config.headers(self.user_agent))
        return None

    def fetch_work_item(
        self,
        credentials: Mapping[str, Any],
        metadata: Mapping[str, Any],
        external_id: str,
    ) -> NormalizedWorkItem:
        config = JiraConfig.resolve(credentials or {}, metadata or {})
        url = f"{config.base_url}/rest/api/3/issue/{quote(str(external_id), safe='')}?expand=renderedFields"
        payload = self._request("GET", url, config.headers(self.user_agent))
        return self.normalize(payload, config.base_url, fallback_id=str(external_id))

    @staticmethod
    def normalize(payload: Any, base_url: str, fallback_id: str = "") -> NormalizedWorkItem:
        """Map a ``GET /issue/{id}?expand=renderedFields`` payload."""
        key = as_text(dig(payload, "key") or dig(payload, "id")) or fallback_id
        return NormalizedWorkItem(
            id=key,
            title=as_text(dig(payload, "fields", "summary")),
            state=as_text(dig(payload, "fields", "status", "name")),
            type=as_text(dig(payload, "fields", "issuetype", "name")),
            assigned_to=dig(payload, "fields", "assignee", "displayName"),
            changed_date=dig(payload, "fields", "updated"),
            description_html=as_text(dig(payload, "renderedFields", "description")),
            acceptance_criteria_html="",
            link=f"{base_url}/browse/{key}" if key else "",
            source="jira",
        )
