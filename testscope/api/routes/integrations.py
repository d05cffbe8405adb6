from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from testscope.core.dependencies import (
    get_analysis_service,
    get_jira_service,
    get_test_repository_service,
)
from testscope.core.exceptions import UpstreamUnavailable, to_http_exception
from testscope.models.api import UploadTestCasesRequest, UploadTestCasesResponse
from testscope.models.schemas import LinkedPullRequest, Ticket
from testscope.repositories.interfaces.jira_service import IJiraService
from testscope.repositories.interfaces.test_repository_service import ITestRepositoryService
from testscope.services.analysis_service import AnalysisService

logger = structlog.get_logger()

router = APIRouter(prefix="/integrations", tags=["integrations"])


@router.get("/jira/{ticket_key}", response_model=Ticket)
async def get_jira_ticket(ticket_key: str, jira: IJiraService = Depends(get_jira_service)):
    """Fetch JIRA ticket details by ticket key (e.g., PROJ-123)"""
    try:
        logger.info("Fetching JIRA ticket", ticket_key=ticket_key)
        return await jira.get_ticket(ticket_key)
    except UpstreamUnavailable as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Failed to fetch JIRA ticket", ticket_key=ticket_key, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch JIRA ticket {ticket_key}",
        )


@router.get("/jira/{ticket_key}/pull-requests", response_model=List[LinkedPullRequest])
async def get_ticket_pull_requests(ticket_key: str, service: AnalysisService = Depends(get_analysis_service)):
    """Pull requests linked to a ticket, falling back to a repository search"""
    try:
        return await service.find_pull_requests(ticket_key)
    except UpstreamUnavailable as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Failed to find pull requests", ticket_key=ticket_key, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to find pull requests for {ticket_key}",
        )


@router.get("/testrail/fields")
async def get_testrail_fields(testrail: ITestRepositoryService = Depends(get_test_repository_service)):
    """Custom case fields defined in TestRail"""
    try:
        return await testrail.get_case_fields()
    except UpstreamUnavailable as e:
        raise to_http_exception(e)


@router.post("/testrail/upload", response_model=UploadTestCasesResponse, status_code=status.HTTP_201_CREATED)
async def upload_test_cases(
    request: UploadTestCasesRequest,
    service: AnalysisService = Depends(get_analysis_service),
):
    """Upload test cases into a section, skipping when the tickets are already covered"""
    try:
        section_id, duplicates, result = await service.upload_test_cases(
            test_cases=request.test_cases,
            ticket_ids=request.ticket_ids,
            section_name=request.section_name,
            suite_id=request.suite_id,
            skip_duplicates=request.skip_duplicates,
        )
    except UpstreamUnavailable as e:
        raise to_http_exception(e)
    if duplicates and request.skip_duplicates:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "Test cases referencing these tickets already exist",
                "section_id": section_id,
                "duplicates": [{"id": d.get("id"), "title": d.get("title"), "refs": d.get("refs")} for d in duplicates],
            },
        )
    return UploadTestCasesResponse(section_id=section_id, duplicates=duplicates, result=result)
