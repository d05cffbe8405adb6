import pytest

from main import app
from testscope.core.dependencies import get_analysis_service, get_jira_service
from testscope.models.schemas import LinkedPullRequest
from testscope.services.analysis_service import AnalysisService

from tests.fakes import (
    PR_URL,
    WEBFORM_RAW_CASES,
    WEBFORM_SECTIONS,
    FakeJiraService,
    FakeSourceControlService,
    FakeTestRepositoryService,
)


@pytest.fixture
def fakes(webform_ticket, webform_change, traceability):
    """Route every upstream through in-memory fakes for one test."""
    ticket = webform_ticket.model_copy(update={"linked_pull_requests": [LinkedPullRequest(url=PR_URL)]})
    jira = FakeJiraService({"WEB-101": ticket})
    test_repo = FakeTestRepositoryService(
        WEBFORM_SECTIONS, WEBFORM_RAW_CASES, existing=[{"id": 13, "title": "Webform attachment upload", "refs": "WEB-101"}]
    )
    service = AnalysisService(
        jira_service=jira,
        source_control_service=FakeSourceControlService({PR_URL: webform_change}),
        test_repository_service=test_repo,
        traceability=traceability,
        component_mapping={},
    )
    app.dependency_overrides[get_analysis_service] = lambda: service
    app.dependency_overrides[get_jira_service] = lambda: jira
    yield service
    app.dependency_overrides.pop(get_analysis_service, None)
    app.dependency_overrides.pop(get_jira_service, None)


def test_health_check(test_client):
    """Test health check endpoint"""
    response = test_client.get("/api/v1/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data
    assert "version" in data
    assert "environment" in data


def test_readiness_check(test_client):
    """Test readiness check endpoint"""
    response = test_client.get("/api/v1/health/readiness")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] in ("ready", "not_ready")
    assert data["checks"]["traceability"] == "ok"
    assert "timestamp" in data


def test_config_omits_credentials(test_client):
    response = test_client.get("/api/v1/config")
    assert response.status_code == 200

    data = response.json()
    assert data["traceability_components"] == ["Webform", "PHS Templates", "Authentication"]
    assert not any("token" in key or "password" in key or "api_key" in key for key in data)


@pytest.mark.asyncio
async def test_classify_from_metrics(client, fakes):
    response = await client.post("/api/v1/analysis/classify", json={
        "pr_title": "Refactor checkout",
        "files_changed": 12,
        "shared_components_touched": 1,
        "total_lines_changed": 380,
    })
    assert response.status_code == 200

    data = response.json()
    assert data["category"] == "Angry"
    assert data["risk_score"] == 41
    assert data["risk_level"] == "Medium"
    assert data["size"] == "large"


@pytest.mark.asyncio
async def test_classify_style_only_files(client, fakes):
    response = await client.post("/api/v1/analysis/classify", json={
        "pr_title": "Tweak spacing",
        "files": [{"path": "src/styles/app.scss", "lines_added": 3, "lines_removed": 1}],
    })
    assert response.status_code == 200
    assert response.json()["category"] == "Sleepy"
    assert response.json()["metrics"]["only_style_changes"] is True


@pytest.mark.asyncio
async def test_classify_rejects_negative_metrics(client, fakes):
    response = await client.post("/api/v1/analysis/classify", json={"files_changed": -1})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_impact_over_supplied_inventory(client, fakes, webform_ticket, webform_change, inventory):
    response = await client.post("/api/v1/analysis/impact", json={
        "ticket": webform_ticket.model_dump(mode="json"),
        "change": webform_change.model_dump(mode="json"),
        "test_cases": [tc.model_dump(mode="json") for tc in inventory],
    })
    assert response.status_code == 200

    data = response.json()
    assert [m["test_case"]["id"] for m in data["all_cases"]] == [4, 1, 3, 5]
    assert data["direct_matches"][0]["match_type"] == "jira_reference"


@pytest.mark.asyncio
async def test_impact_with_request_traceability(client, fakes, webform_ticket, webform_change, inventory):
    response = await client.post("/api/v1/analysis/impact", json={
        "ticket": webform_ticket.model_dump(mode="json"),
        "change": webform_change.model_dump(mode="json"),
        "test_cases": [tc.model_dump(mode="json") for tc in inventory],
        "traceability": {"Webform": ["drafts"]},
    })
    assert response.status_code == 200

    data = response.json()
    assert [m["test_case"]["id"] for m in data["component_matches"]] == [5]
    assert [m["test_case"]["id"] for m in data["all_cases"]] == [4, 5]


@pytest.mark.asyncio
async def test_score_single_case(client, fakes, webform_ticket, webform_change, inventory):
    response = await client.post("/api/v1/analysis/score", json={
        "test_case": inventory[0].model_dump(mode="json"),
        "change": webform_change.model_dump(mode="json"),
        "ticket": webform_ticket.model_dump(mode="json"),
    })
    assert response.status_code == 200

    data = response.json()
    assert 65 <= data["score"] <= 100
    assert data["match_reasons"]


@pytest.mark.asyncio
async def test_pull_request_analysis_requires_an_id(client, fakes):
    response = await client.post("/api/v1/analysis/pull-request", json={})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_pull_request_analysis(client, fakes):
    response = await client.post("/api/v1/analysis/pull-request", json={"jira_id": "WEB-101"})
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "completed"
    assert data["classification"]["category"] == "Relaxed"
    assert [m["test_case"]["id"] for m in data["impact"]["all_cases"]] == [13, 11]
    assert data["estimated_hours"] == 0.5


@pytest.mark.asyncio
async def test_pull_request_analysis_unknown_ticket(client, fakes):
    response = await client.post("/api/v1/analysis/pull-request", json={"jira_id": "WEB-404"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_pull_request_analysis_unsupported_url(client, fakes):
    response = await client.post(
        "/api/v1/analysis/pull-request", json={"pr_url": "https://github.com/acme/portal/pull/9"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_jira_ticket(client, fakes):
    response = await client.get("/api/v1/integrations/jira/WEB-101")
    assert response.status_code == 200
    assert response.json()["components"] == ["Applicant-Webform"]

    missing = await client.get("/api/v1/integrations/jira/WEB-404")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_ticket_pull_requests(client, fakes):
    response = await client.get("/api/v1/integrations/jira/WEB-101/pull-requests")
    assert response.status_code == 200
    assert [pr["url"] for pr in response.json()] == [PR_URL]


@pytest.mark.asyncio
async def test_upload_conflicts_with_existing_cases(client, fakes):
    response = await client.post("/api/v1/integrations/testrail/upload", json={
        "section_name": "Webform",
        "ticket_ids": ["WEB-101"],
        "test_cases": [{"title": "Webform shows inline errors"}],
    })
    assert response.status_code == 409

    detail = response.json()["detail"]
    assert detail["section_id"] == 3
    assert detail["duplicates"][0]["id"] == 13


@pytest.mark.asyncio
async def test_upload_creates_cases(client, fakes):
    response = await client.post("/api/v1/integrations/testrail/upload", json={
        "section_name": "Generated",
        "ticket_ids": ["WEB-202"],
        "test_cases": [{"title": "Webform shows inline errors"}],
    })
    assert response.status_code == 201

    data = response.json()
    assert data["section_id"] == 904
    assert data["result"]["success"][0]["title"] == "Webform shows inline errors"


@pytest.mark.asyncio
async def test_upload_requires_cases(client, fakes):
    response = await client.post("/api/v1/integrations/testrail/upload", json={
        "section_name": "Generated",
        "test_cases": [],
    })
    assert response.status_code == 422
