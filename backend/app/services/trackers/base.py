"""Shared contract for issue tracker adapters.

Each adapter turns decrypted credentials plus integration metadata into
authenticated REST calls and maps the provider payload onto
``NormalizedWorkItem``. HTTP failures are translated into the
``app.exceptions`` taxonomy here, so no ``requests`` exception ever
reaches a caller.
"""

from __future__ import annotations

import base64
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import requests

from app.config import settings
from app.exceptions import (
    IntegrationError,
    ProviderError,
    TransportError,
    truncate_body,
)
from app.models.integration import IntegrationType

logger = logging.getLogger(__name__)


def dig(payload: Any, *path: str, default: Any = None) -> Any:
    """Walk nested dicts, returning ``default`` as soon as a step is missing."""
    current = payload
    for key in path:
        if not isinstance(current, Mapping):
            return default
        current = current.get(key)
        if current is None:
            return default
    return current


def as_text(value: Any) -> str:
    """Coerce an optional provider field into a string ('' for null)."""
    if value is None:
        return ""
    return str(value)


def basic_auth_header(username: str, secret: str) -> str:
    token = base64.b64encode(f"{username}:{secret}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


@dataclass(frozen=True)
class NormalizedWorkItem:
    """Provider-agnostic view of one tracker issue."""

    id: str
    title: str
    state: str
    type: str
    source: str  # "ado" or "jira"
    link: str = ""
    assigned_to: Optional[str] = None
    changed_date: Optional[str] = None
    description_html: str = ""
    # Jira has no dedicated field; always "" there.
    acceptance_criteria_html: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the API response shape."""
        return {
            "id": self.id,
            "title": self.title,
            "state": self.state,
            "type": self.type,
            "assignedTo": self.assigned_to,
            "changedDate": self.changed_date,
            "descriptionHtml": self.description_html,
            "acceptanceCriteriaHtml": self.acceptance_criteria_html,
            "link": self.link,
            "source": self.source,
        }


@dataclass
class ConnectionTestResult:
    """Outcome of a live credential check. Failure is a value, not an exception."""

    success: bool
    message: str
    sample: Optional[List[Dict[str, Any]]] = None
    error: Optional[IntegrationError] = None

    @classmethod
    def ok(cls, sample: Optional[List[Dict[str, Any]]] = None) -> "ConnectionTestResult":
        return cls(success=True, message="Connection successful", sample=sample)

    @classmethod
    def failed(cls, error: IntegrationError) -> "ConnectionTestResult":
        return cls(success=False, message=error.message, error=error)

    @property
    def status_code(self) -> int:
        """HTTP status a route should answer with."""
        if self.success or self.error is None:
            return 200
        return self.error.status_code

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.sample is not None:
            body["projects"] = self.sample
        if self.error is not None:
            body["code"] = self.error.code
        return body


@dataclass
class WorkItemQuery:
    """Filters and paging for tracker work-item listings."""

    q: str = ""
    types: List[str] = field(default_factory=list)
    states: List[str] = field(default_factory=list)
    assigned_to: List[str] = field(default_factory=list)
    iterations: List[str] = field(default_factory=list)
    sort_by: str = "ChangedDate"
    sort_dir: str = "DESC"
    page: int = 1
    page_size: int = 25

    def normalized(self) -> "WorkItemQuery":
        """Clamp paging and direction into the accepted ranges."""
        return WorkItemQuery(
            q=(self.q or "").strip(),
            types=list(self.types or []),
            states=list(self.states or []),
            assigned_to=list(self.assigned_to or []),
            iterations=list(self.iterations or []),
            sort_by=self.sort_by or "ChangedDate",
            sort_dir="ASC" if (self.sort_dir or "").upper() == "ASC" else "DESC",
            page=max(1, int(self.page or 1)),
            page_size=min(100, max(1, int(self.page_size or 25))),
        )


@dataclass
class WorkItemPage:
    """One page of a work-item listing."""

    items: List[Dict[str, Any]]
    total: int
    page: int
    page_size: int

    @classmethod
    def empty(cls, page: int = 1, page_size: int = 25) -> "WorkItemPage":
        return cls(items=[], total=0, page=page, page_size=page_size)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": self.items,
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
        }


class TrackerAdapter(ABC):
    """Abstract base class for tracker adapters."""

    provider: IntegrationType
    source: str
    label: str

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
    ):
        """Initialize the adapter.

        Args:
            session: HTTP session to send requests through (a fresh one if None)
            timeout: Per-request timeout in seconds (settings default if None)
            user_agent: User-Agent header value (settings default if None)
        """
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.TRACKER_HTTP_TIMEOUT
        self.user_agent = user_agent or settings.TRACKER_USER_AGENT

    @abstractmethod
    def _probe(self, credentials: Mapping[str, Any], metadata: Mapping[str, Any]) -> Optional[List[Dict[str, Any]]]:
        """Issue the cheapest authenticated call; return an optional sample."""

    @abstractmethod
    def fetch_work_item(
        self,
        credentials: Mapping[str, Any],
        metadata: Mapping[str, Any],
        external_id: str,
    ) -> NormalizedWorkItem:
        """Fetch one item and map it to the normalized shape.

        Raises:
            ConfigurationError: Credentials or metadata incomplete
            ProviderError: Non-2xx response or unparseable body
            TransportError: Provider unreachable
        """

    def test_connection(
        self,
        credentials: Optional[Mapping[str, Any]],
        metadata: Optional[Mapping[str, Any]],
    ) -> ConnectionTestResult:
        """Perform one authenticated GET and report the outcome.

        Never raises for configuration, HTTP or network failures.
        """
        try:
            sample = self._probe(credentials or {}, metadata or {})
        except IntegrationError as e:
            logger.info("%s connection test failed: %s", self.label, e.code)
            return ConnectionTestResult.failed(e)
        return ConnectionTestResult.ok(sample)

    def _request(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body."""
        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                json=json_body,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.warning("%s request timed out: %s %s", self.label, method, url)
            raise TransportError(self.label, f"Network error: {self.label} did not respond within {self.timeout}s")
        except requests.exceptions.RequestException as e:
            logger.warning("%s request failed: %s %s (%s)", self.label, method, url, type(e).__name__)
            raise TransportError(self.label, f"Network error: {e}")

        raw = response.text or ""
        status = response.status_code
        if not 200 <= status < 300:
            raise ProviderError(
                self.label,
                f"{self.label} error: {status} {truncate_body(raw)}".rstrip(),
                provider_status=status,
                body=raw,
            )
        if not raw.strip():
            return {}
        try:
            return json.loads(raw)
        except ValueError:
            # HTML sign-in pages come back with a 200.
            raise ProviderError(
                self.label,
                f"{self.label} returned a non-JSON response (HTTP {status}): {truncate_body(raw)}",
                provider_status=status,
                body=raw,
            )
