from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from testscope.models.schemas import (
    BulkUploadResult,
    ChangeRequest,
    FileDelta,
    TestCase,
    Ticket,
)


class ClassifyRequest(BaseModel):
    """Either raw metrics or the changed files to derive them from"""

    pr_title: str = ""
    files_changed: int = Field(0, ge=0)
    shared_components_touched: int = Field(0, ge=0)
    total_lines_changed: int = Field(0, ge=0)
    files: Optional[List[FileDelta]] = None


class ImpactRequest(BaseModel):
    ticket: Ticket
    change: ChangeRequest
    test_cases: List[TestCase] = Field(default_factory=list)
    traceability: Optional[Dict[str, List[str]]] = Field(
        None, description="Component name -> tags; the configured matrix is used when omitted"
    )


class ScoreRequest(BaseModel):
    test_case: TestCase
    change: ChangeRequest
    ticket: Optional[Ticket] = None
    traceability: Optional[Dict[str, List[str]]] = None


class PullRequestAnalysisRequest(BaseModel):
    jira_id: Optional[str] = None
    pr_url: Optional[str] = None
    suite_id: Optional[int] = None


class UploadTestCasesRequest(BaseModel):
    section_name: str
    ticket_ids: List[str] = Field(default_factory=list)
    test_cases: List[Dict[str, Any]] = Field(..., min_length=1)
    suite_id: Optional[int] = None
    skip_duplicates: bool = True


class UploadTestCasesResponse(BaseModel):
    section_id: int
    duplicates: List[Dict[str, Any]] = Field(default_factory=list)
    result: BulkUploadResult


class ConfigResponse(BaseModel):
    environment: str
    jira_configured: bool
    bitbucket_base_url: str
    bitbucket_server: bool
    testrail_configured: bool
    testrail_project_id: int
    testrail_suite_id: int
    traceability_components: List[str]
    component_mapping: Dict[str, str]
    regression_method: str
    caching_enabled: bool
