import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from fastapi.testclient import TestClient

from main import app
from testscope.config.settings import settings
from testscope.core.dependencies import get_traceability
from testscope.models.schemas import (
    ChangeRequest,
    FileDelta,
    TestCase,
    Ticket,
    TraceabilityTable,
)

WEBFORM_TABLE = TraceabilityTable.from_mapping({
    "Webform": ["webform", "form-submission"],
    "PHS Templates": ["phs", "templates"],
    "Authentication": ["login", "auth"],
})


def override_get_traceability():
    return WEBFORM_TABLE


app.dependency_overrides[get_traceability] = override_get_traceability


@pytest.fixture
def traceability():
    return WEBFORM_TABLE


@pytest.fixture
def webform_ticket():
    return Ticket(
        id="WEB-101",
        title="Disable webform submit until required fields are filled",
        components=["Applicant-Webform"],
    )


@pytest.fixture
def webform_change():
    return ChangeRequest(
        title="Disable submit button until required fields are filled",
        description="The submit button stays disabled while required fields are empty.",
        changed_files=[
            FileDelta(path="src/app/forms/webform/webform-submit.component.ts", lines_added=40, lines_removed=12),
        ],
    )


@pytest.fixture
def inventory():
    return [
        TestCase(
            id=1,
            title="Verify webform submit button disabled when required fields empty",
            section_id=30,
            section_path="Forms › Applicant › Webform",
        ),
        TestCase(
            id=2,
            title="Verify login with valid credentials",
            section_id=40,
            section_path="Authentication › Login",
        ),
        TestCase(
            id=3,
            title="Webform",
            section_id=31,
            section_path="Webform",
        ),
        TestCase(
            id=4,
            title="Export report as CSV",
            section_id=50,
            section_path="Reports",
            refs="WEB-101, WEB-7",
        ),
        TestCase(
            id=5,
            title="Webform save draft keeps entered values",
            section_id=32,
            section_path="Forms › Applicant › Webform › Drafts",
        ),
    ]


@pytest.fixture
def configured_settings(monkeypatch):
    """Point every upstream at a fake host with credentials."""
    monkeypatch.setattr(settings, "jira_base_url", "https://jira.example.com")
    monkeypatch.setattr(settings, "jira_username", "qa@example.com")
    monkeypatch.setattr(settings, "jira_api_token", "token")
    monkeypatch.setattr(settings, "bitbucket_base_url", "https://bitbucket.example.com")
    monkeypatch.setattr(settings, "bitbucket_username", "qa")
    monkeypatch.setattr(settings, "bitbucket_password", "secret")
    monkeypatch.setattr(settings, "bitbucket_project_key", "WEB")
    monkeypatch.setattr(settings, "bitbucket_repo_slug", "portal")
    monkeypatch.setattr(settings, "testrail_base_url", "https://testrail.example.com")
    monkeypatch.setattr(settings, "testrail_username", "qa@example.com")
    monkeypatch.setattr(settings, "testrail_api_key", "key")
    monkeypatch.setattr(settings, "testrail_project_id", 7)
    monkeypatch.setattr(settings, "testrail_page_size", 2)
    monkeypatch.setattr(settings, "enable_caching", False)
    return settings


@pytest_asyncio.fixture
async def client():
    """Async test client so async tests can await requests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def test_client():
    """Synchronous test client for simple tests"""
    return TestClient(app)
