"""
Tests for WorkItemFetcher.
"""
import pytest

from app.exceptions import ConfigurationError, CredentialsNotFound
from app.models.integration import IntegrationType
from app.services.integration_registry import IntegrationRegistry
from app.services.secret_service import SecretService
from app.services.trackers import WorkItemQuery, get_tracker_adapter
from app.services.work_item_fetcher import WorkItemFetcher, resolve_source

JIRA_CREDS = {"email": "pm@acme.io", "apiToken": "tok-1"}
ADO_CREDS = {"organization": "contoso", "personalAccessToken": "pat-123"}


@pytest.fixture
def fetcher(db, vault, fake_session):
    return WorkItemFetcher(
        db,
        secrets=SecretService(db, vault=vault),
        adapter_factory=lambda integration_type: get_tracker_adapter(integration_type, session=fake_session),
    )


@pytest.fixture
def secrets(db, vault):
    return SecretService(db, vault=vault)


class TestResolveSource:

    def test_known_sources(self):
        assert resolve_source("ado") == IntegrationType.AZURE_DEVOPS
        assert resolve_source("JIRA") == IntegrationType.JIRA

    def test_unknown_source(self):
        with pytest.raises(ConfigurationError, match="Source not implemented"):
            resolve_source("github")


class TestFetch:

    def test_delegates_to_jira(self, db, project, secrets, fetcher, fake_session):
        IntegrationRegistry(db).create(project.id, "jira", {"baseUrl": "https://acme.atlassian.net"})
        secrets.upsert(project.id, "jira", JIRA_CREDS)
        fake_session.add(200, {"key": "ACME-42", "fields": {"summary": "Checkout fails"}})

        item = fetcher.fetch(project.id, "jira", "ACME-42")

        assert item.id == "ACME-42"
        assert item.title == "Checkout fails"
        assert fake_session.calls[0]["url"].startswith("https://acme.atlassian.net/rest/api/3/issue/ACME-42")

    def test_delegates_to_ado(self, db, project, secrets, fetcher, fake_session):
        IntegrationRegistry(db).create(project.id, "azure_devops", {"project": "Web"})
        secrets.upsert(project.id, "azure_devops", ADO_CREDS)
        fake_session.add(200, {"id": 7, "fields": {"System.Title": "Login page"}})

        item = fetcher.fetch(project.id, "ado", "7")

        assert item.source == "ado"
        assert item.link == "https://dev.azure.com/contoso/Web/_workitems/edit/7"

    def test_missing_integration(self, project, secrets, fetcher, fake_session):
        secrets.upsert(project.id, "jira", JIRA_CREDS)
        with pytest.raises(ConfigurationError, match="Jira integration/secret missing"):
            fetcher.fetch(project.id, "jira", "ACME-1")
        assert fake_session.calls == []

    def test_inactive_integration_counts_as_missing(self, db, project, secrets, fetcher):
        IntegrationRegistry(db).create(project.id, "jira", is_active=False)
        secrets.upsert(project.id, "jira", JIRA_CREDS)
        with pytest.raises(ConfigurationError, match="integration/secret missing"):
            fetcher.fetch(project.id, "jira", "ACME-1")

    def test_missing_secret(self, db, project, fetcher, fake_session):
        IntegrationRegistry(db).create(project.id, "azure_devops", {"organization": "contoso"})
        with pytest.raises(ConfigurationError, match="Azure DevOps integration/secret missing"):
            fetcher.fetch(project.id, "ado", "7")
        assert fake_session.calls == []


class TestListWorkItems:

    def test_no_integration_is_empty_page(self, project, fetcher, fake_session):
        page = fetcher.list_work_items(project.id, "ado")
        assert page.to_dict() == {"items": [], "total": 0, "page": 1, "pageSize": 25}
        assert fake_session.calls == []

    def test_empty_page_keeps_requested_paging(self, project, fetcher):
        page = fetcher.list_work_items(project.id, "ado", WorkItemQuery(page=2, page_size=10))
        assert (page.page, page.page_size) == (2, 10)

    def test_missing_secret(self, db, project, fetcher):
        IntegrationRegistry(db).create(project.id, "azure_devops", {"organization": "contoso", "project": "Web"})
        with pytest.raises(CredentialsNotFound, match="Azure DevOps credentials not found"):
            fetcher.list_work_items(project.id, "ado")

    def test_lists_through_adapter(self, db, project, secrets, fetcher, fake_session):
        IntegrationRegistry(db).create(project.id, "azure_devops", {"project": "Web"})
        secrets.upsert(project.id, "azure_devops", ADO_CREDS)
        fake_session.add(200, {"workItems": [{"id": 1}]})
        fake_session.add(200, {"value": [{"id": 1, "fields": {"System.Title": "One"}}]})

        page = fetcher.list_work_items(project.id, "ado", WorkItemQuery(q="One"))

        assert page.total == 1
        assert page.items[0]["title"] == "One"
        assert "CONTAINS 'One'" in fake_session.calls[0]["json"]["query"]

    def test_jira_listing_not_implemented(self, project, fetcher):
        with pytest.raises(ConfigurationError, match="Source not implemented"):
            fetcher.list_work_items(project.id, "jira")
