"""Azure DevOps adapter (REST API v7.1).

Auth is HTTP Basic with an empty username and the PAT as password. Every
call sends ``X-TFS-FedAuthRedirect: Suppress``; without it an expired or
wrong PAT yields a 200 HTML sign-in page instead of a 401.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from app.exceptions import ConfigurationError
from app.models.integration import IntegrationType

from .base import (
    NormalizedWorkItem,
    TrackerAdapter,
    WorkItemPage,
    WorkItemQuery,
    as_text,
    basic_auth_header,
    dig,
)

ADO_BASE_URL = "https://dev.azure.com"
WORK_ITEM_API_VERSION = "7.1"
PROJECTS_API_VERSION = "7.1-preview.4"
SAMPLE_PROJECTS = 3
DESCRIPTION_PREVIEW_CHARS = 160

# Field reference names
F_ID = "System.Id"
F_TITLE = "System.Title"
F_STATE = "System.State"
F_TYPE = "System.WorkItemType"
F_ASSIGNED_TO = "System.AssignedTo"
F_CHANGED_DATE = "System.ChangedDate"
F_DESCRIPTION = "System.Description"
F_ITERATION = "System.IterationPath"
F_ACCEPTANCE = "Microsoft.VSTS.Common.AcceptanceCriteria"

LIST_FIELDS = [F_ID, F_TITLE, F_DESCRIPTION, F_STATE, F_TYPE, F_ASSIGNED_TO, F_CHANGED_DATE, F_ITERATION]

SORT_FIELDS = {
    "Title": F_TITLE,
    "State": F_STATE,
    "Type": F_TYPE,
    "ChangedDate": F_CHANGED_DATE,
}

_TAG_RE = re.compile(r"<[^>]+>")


def wiql_quote(value: str) -> str:
    """Quote a literal for WIQL (single quotes doubled)."""
    return "'" + str(value).replace("'", "''") + "'"


def build_wiql(query: WorkItemQuery) -> str:
    """Build the WIQL statement for a listing query."""
    clauses = ["[System.TeamProject] = @project"]
    if query.q:
        clauses.append(f"[{F_TITLE}] CONTAINS {wiql_quote(query.q)}")
    for field_name, values in (
        (F_TYPE, query.types),
        (F_STATE, query.states),
        (F_ASSIGNED_TO, query.assigned_to),
        (F_ITERATION, query.iterations),
    ):
        if values:
            clauses.append(f"[{field_name}] IN ({', '.join(wiql_quote(v) for v in values)})")
    order_field = SORT_FIELDS.get(query.sort_by, F_CHANGED_DATE)
    return (
        f"Select [{F_ID}] From WorkItems Where {' AND '.join(clauses)} "
        f"Order By [{order_field}] {query.sort_dir}"
    )


def strip_html(html: str) -> str:
    return _TAG_RE.sub("", html or "")


@dataclass(frozen=True)
class AzureDevOpsConfig:
    """Resolved Azure DevOps connection settings."""

    organization: str
    personal_access_token: str
    project: Optional[str] = None

    @classmethod
    def resolve(cls, credentials: Mapping[str, Any], metadata: Mapping[str, Any]) -> "AzureDevOpsConfig":
        """Merge integration metadata over stored credentials.

        Raises:
            ConfigurationError: If organization or PAT is missing
        """
        organization = as_text(metadata.get("organization") or credentials.get("organization")).strip()
        pat = as_text(credentials.get("personalAccessToken")).strip()
        if not organization or not pat:
            raise ConfigurationError("Missing organization or PAT")
        project = as_text(metadata.get("project") or credentials.get("project")).strip() or None
        return cls(organization=organization, personal_access_token=pat, project=project)

    @property
    def org_url(self) -> str:
        return f"{ADO_BASE_URL}/{quote(self.organization, safe='')}"

    def project_url(self) -> str:
        if not self.project:
            raise ConfigurationError("Incomplete Azure DevOps credentials")
        return f"{self.org_url}/{quote(self.project, safe='')}"

    def item_link(self, item_id: Any) -> str:
        if self.project:
            return f"{self.project_url()}/_workitems/edit/{item_id}"
        return f"{self.org_url}/_workitems/edit/{item_id}"

    def headers(self, user_agent: str, with_body: bool = False) -> Dict[str, str]:
        headers = {
            "Authorization": basic_auth_header("", self.personal_access_token),
            "Accept": "application/json",
            "X-TFS-FedAuthRedirect": "Suppress",
            "User-Agent": user_agent,
        }
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers


class AzureDevOpsAdapter(TrackerAdapter):
    """Azure DevOps REST v7.1 client."""

    provider = IntegrationType.AZURE_DEVOPS
    source = "ado"
    label = "Azure DevOps"

    def _probe(self, credentials: Mapping[str, Any], metadata: Mapping[str, Any]) -> Optional[List[Dict[str, Any]]]:
        config = AzureDevOpsConfig.resolve(credentials, metadata)
        url = f"{config.org_url}/_apis/projects?api-version={PROJECTS_API_VERSION}"
        payload = self._request("GET", url, config.headers(self.user_agent))
        projects = dig(payload, "value")
        if not isinstance(projects, list):
            return []
        return projects[:SAMPLE_PROJECTS]

    def fetch_work_item(
        self,
        credentials: Mapping[str, Any],
        metadata: Mapping[str, Any],
        external_id: str,
    ) -> NormalizedWorkItem:
        config = AzureDevOpsConfig.resolve(credentials or {}, metadata or {})
        url = (
            f"{config.org_url}/_apis/wit/workitems/{quote(str(external_id), safe='')}"
            f"?api-version={WORK_ITEM_API_VERSION}"
        )
        payload = self._request("GET", url, config.headers(self.user_agent))
        return self.normalize(payload, config, fallback_id=str(external_id))

    @staticmethod
    def normalize(payload: Any, config: AzureDevOpsConfig, fallback_id: str = "") -> NormalizedWorkItem:
        """Map a ``GET /wit/workitems/{id}`` payload."""
        fields = dig(payload, "fields", default={})
        item_id = as_text(dig(payload, "id")) or fallback_id
        return NormalizedWorkItem(
            id=item_id,
            title=as_text(dig(fields, F_TITLE)),
            state=as_text(dig(fields, F_STATE)),
            type=as_text(dig(fields, F_TYPE)),
            assigned_to=dig(fields, F_ASSIGNED_TO, "displayName"),
            changed_date=dig(fields, F_CHANGED_DATE),
            description_html=as_text(dig(fields, F_DESCRIPTION)),
            acceptance_criteria_html=as_text(dig(fields, F_ACCEPTANCE)),
            link=config.item_link(item_id),
            source="ado",
        )

    def list_work_items(
        self,
        credentials: Mapping[str, Any],
        metadata: Mapping[str, Any],
        query: Optional[WorkItemQuery] = None,
    ) -> WorkItemPage:
        """Run a WIQL query and fetch one page of item details in a batch.

        Raises:
            ConfigurationError: Organization, project or PAT missing
            ProviderError: WIQL or batch call rejected
            TransportError: Provider unreachable
        """
        config = AzureDevOpsConfig.resolve(credentials or {}, metadata or {})
        if not config.project:
            raise ConfigurationError("Incomplete Azure DevOps credentials")
        query = (query or WorkItemQuery()).normalized()

        wiql_url = f"{config.project_url()}/_apis/wit/wiql?api-version={WORK_ITEM_API_VERSION}"
        wiql = self._request(
            "POST",
            wiql_url,
            config.headers(self.user_agent, with_body=True),
            json_body={"query": build_wiql(query)},
        )
        all_ids = [w.get("id") for w in (dig(wiql, "workItems") or []) if isinstance(w, Mapping) and w.get("id") is not None]
        total = len(all_ids)
        start = (query.page - 1) * query.page_size
        ids = all_ids[start:start + query.page_size]
        if not ids:
            return WorkItemPage(items=[], total=total, page=query.page, page_size=query.page_size)

        batch_url = f"{config.org_url}/_apis/wit/workitemsbatch?api-version={WORK_ITEM_API_VERSION}"
        detail = self._request(
            "POST",
            batch_url,
            config.headers(self.user_agent, with_body=True),
            json_body={"ids": ids, "fields": LIST_FIELDS},
        )
        rows = [w for w in (dig(detail, "value") or []) if isinstance(w, Mapping)]
        order = {item_id: index for index, item_id in enumerate(ids)}
        rows.sort(key=lambda w: order.get(w.get("id"), len(order)))
        items = [self._summarize(w, config) for w in rows]
        return WorkItemPage(items=items, total=total, page=query.page, page_size=query.page_size)

    @staticmethod
    def _summarize(row: Mapping[str, Any], config: AzureDevOpsConfig) -> Dict[str, Any]:
        fields = dig(row, "fields", default={})
        item_id = row.get("id")
        return {
            "id": item_id,
            "title": dig(fields, F_TITLE),
            "state": dig(fields, F_STATE),
            "type": dig(fields, F_TYPE),
            "assignedTo": dig(fields, F_ASSIGNED_TO, "displayName"),
            "changedDate": dig(fields, F_CHANGED_DATE),
            "iterationPath": dig(fields, F_ITERATION),
            "descriptionPreview": strip_html(as_text(dig(fields, F_DESCRIPTION)))[:DESCRIPTION_PREVIEW_CHARS],
            "source": "ado",
            "links": {"html": config.item_link(item_id)},
        }
