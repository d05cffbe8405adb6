import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from testscope.core.dependencies import get_analysis_service
from testscope.core.exceptions import InvalidPullRequestUrl, UpstreamUnavailable, to_http_exception
from testscope.models.api import (
    ClassifyRequest,
    ImpactRequest,
    PullRequestAnalysisRequest,
    ScoreRequest,
)
from testscope.models.schemas import (
    ChangeClassification,
    ImpactResult,
    PullRequestAnalysis,
    ScoredTestCase,
    TraceabilityTable,
)
from testscope.services.analysis_service import AnalysisService

logger = structlog.get_logger()

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.post("/classify", response_model=ChangeClassification)
async def classify_change(request: ClassifyRequest, service: AnalysisService = Depends(get_analysis_service)):
    """Categorize a change by size and risk"""
    return service.classify(
        files_changed=request.files_changed,
        shared_components_touched=request.shared_components_touched,
        total_lines_changed=request.total_lines_changed,
        pr_title=request.pr_title,
        files=request.files,
    )


@router.post("/impact", response_model=ImpactResult)
async def compute_impact(request: ImpactRequest, service: AnalysisService = Depends(get_analysis_service)):
    """Impacted test cases for a ticket and change over a supplied inventory"""
    table = TraceabilityTable.from_mapping(request.traceability) if request.traceability is not None else None
    return service.impact(request.ticket, request.change, request.test_cases, table)


@router.post("/score", response_model=ScoredTestCase)
async def score_test_case(request: ScoreRequest, service: AnalysisService = Depends(get_analysis_service)):
    """Relevance of one test case to a change"""
    table = TraceabilityTable.from_mapping(request.traceability) if request.traceability is not None else None
    return service.score(request.test_case, request.change, request.ticket, table)


@router.post("/pull-request", response_model=PullRequestAnalysis)
async def analyze_pull_request(
    request: PullRequestAnalysisRequest,
    service: AnalysisService = Depends(get_analysis_service),
):
    """Full analysis: fetch ticket and PR, classify, select impacted and regression tests"""
    if not request.jira_id and not request.pr_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either jira_id or pr_url is required",
        )
    try:
        logger.info("Analyzing pull request", jira_id=request.jira_id, pr_url=request.pr_url)
        return await service.analyze_pull_request(
            jira_id=request.jira_id,
            pr_url=request.pr_url,
            suite_id=request.suite_id,
        )
    except HTTPException:
        raise
    except (UpstreamUnavailable, InvalidPullRequestUrl) as e:
        logger.warning("Pull request analysis failed upstream", error=str(e))
        raise to_http_exception(e)
    except Exception as e:
        logger.error("Failed to analyze pull request", jira_id=request.jira_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to analyze pull request",
        )
