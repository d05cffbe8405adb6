from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from datetime import datetime

from testscope.config.settings import settings
from testscope.core.dependencies import get_traceability
from testscope.models.api import ConfigResponse
from testscope.models.schemas import TraceabilityTable

APP_VERSION = "1.0.0"

router = APIRouter(prefix="/health", tags=["health"])
config_router = APIRouter(prefix="/config", tags=["config"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str


@router.get("/", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check():
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        version=APP_VERSION,
        environment=settings.environment
    )


@router.get("/readiness")
async def readiness_check(table: TraceabilityTable = Depends(get_traceability)):
    """Readiness check endpoint"""
    checks = {
        "jira": "ok" if settings.jira_base_url and settings.jira_username and settings.jira_api_token else "not_configured",
        "bitbucket": "ok" if settings.bitbucket_username and settings.bitbucket_password else "not_configured",
        "testrail": "ok" if settings.testrail_base_url and settings.testrail_username and settings.testrail_api_key else "not_configured",
        "traceability": "ok" if table.components else "empty",
    }

    all_ok = all(check == "ok" for check in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "timestamp": datetime.utcnow()
    }


@config_router.get("/", response_model=ConfigResponse)
async def get_config(table: TraceabilityTable = Depends(get_traceability)):
    """Effective configuration without credentials"""
    return ConfigResponse(
        environment=settings.environment,
        jira_configured=bool(settings.jira_base_url and settings.jira_username and settings.jira_api_token),
        bitbucket_base_url=settings.bitbucket_base_url,
        bitbucket_server="bitbucket.org" not in settings.bitbucket_base_url,
        testrail_configured=bool(settings.testrail_base_url and settings.testrail_username and settings.testrail_api_key),
        testrail_project_id=settings.testrail_project_id,
        testrail_suite_id=settings.testrail_suite_id,
        traceability_components=list(table.components),
        component_mapping=settings.component_mapping,
        regression_method=settings.regression_method,
        caching_enabled=settings.enable_caching,
    )
