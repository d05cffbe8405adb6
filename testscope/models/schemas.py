from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from enum import Enum


UNKNOWN_PATH = "[unknown]"
SECTION_SEPARATOR = " › "


class ChangeKind(str, Enum):
    ADD = "ADD"
    MODIFY = "MODIFY"
    DELETE = "DELETE"


class ChangeCategory(str, Enum):
    RELAXED = "Relaxed"
    SLEEPY = "Sleepy"
    SARCASTIC = "Sarcastic"
    OVERLOADED = "Overloaded"
    ANGRY = "Angry"

    @property
    def max_test_cases(self) -> int:
        return _CATEGORY_CAPS[self]

    @property
    def emoji(self) -> str:
        return _CATEGORY_EMOJI[self]

    @property
    def label(self) -> str:
        return f"{self.value} PR"


_CATEGORY_CAPS = {
    ChangeCategory.RELAXED: 20,
    ChangeCategory.SLEEPY: 30,
    ChangeCategory.SARCASTIC: 40,
    ChangeCategory.OVERLOADED: 60,
    ChangeCategory.ANGRY: 80,
}

_CATEGORY_EMOJI = {
    ChangeCategory.RELAXED: "😂",
    ChangeCategory.SLEEPY: "😴",
    ChangeCategory.SARCASTIC: "🙃",
    ChangeCategory.OVERLOADED: "🤯",
    ChangeCategory.ANGRY: "😡",
}


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ChangeSize(str, Enum):
    SMALL = "small"
    MODERATE = "moderate"
    STANDARD = "standard"
    LARGE = "large"
    VERY_LARGE = "very large"

    @property
    def max_tests_to_show(self) -> int:
        return _SIZE_LIMITS[self][0]

    @property
    def time_multiplier(self) -> float:
        return _SIZE_LIMITS[self][1]


# (max tests to show, time multiplier)
_SIZE_LIMITS = {
    ChangeSize.SMALL: (10, 0.5),
    ChangeSize.MODERATE: (15, 0.75),
    ChangeSize.STANDARD: (20, 1.0),
    ChangeSize.LARGE: (40, 1.5),
    ChangeSize.VERY_LARGE: (60, 2.0),
}


class FileDelta(BaseModel):
    path: str = Field(..., description="Repository-relative path of the changed file")
    lines_added: int = 0
    lines_removed: int = 0
    change_kind: ChangeKind = ChangeKind.MODIFY

    class Config:
        frozen = True

    @property
    def lines_changed(self) -> int:
        return self.lines_added + self.lines_removed

    @property
    def is_unknown(self) -> bool:
        return self.path == UNKNOWN_PATH


class ChangeMetrics(BaseModel):
    files_changed: int = Field(0, ge=0)
    shared_components_touched: int = Field(0, ge=0)
    total_lines_changed: int = Field(0, ge=0)
    only_style_changes: bool = False


class ChangeClassification(BaseModel):
    category: ChangeCategory
    risk_score: int = Field(..., ge=0, le=100)
    risk_level: RiskLevel
    size: ChangeSize
    metrics: ChangeMetrics

    @property
    def max_test_cases(self) -> int:
        return self.category.max_test_cases


class ChangeRequest(BaseModel):
    title: str = ""
    description: str = ""
    author: str = ""
    state: str = ""
    url: Optional[str] = None
    created: Optional[Any] = None
    updated: Optional[Any] = None
    changed_files: List[FileDelta] = Field(default_factory=list)
    category: ChangeCategory = ChangeCategory.RELAXED
    risk_score: int = Field(0, ge=0, le=100)
    risk_level: RiskLevel = RiskLevel.LOW

    class Config:
        frozen = True

    @property
    def paths(self) -> List[str]:
        return [f.path for f in self.changed_files]


class LinkedPullRequest(BaseModel):
    url: str
    title: str = "Pull Request"
    status: str = "open"
    branch: Optional[str] = None
    author: Optional[str] = None
    created: Optional[Any] = None
    updated: Optional[Any] = None


class Ticket(BaseModel):
    id: str = ""
    title: str = ""
    components: List[str] = Field(default_factory=list)
    description: str = ""
    acceptance_criteria: List[str] = Field(default_factory=list)
    status: Optional[str] = None
    priority: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    linked_pull_requests: List[LinkedPullRequest] = Field(default_factory=list)


class TraceabilityEntry(BaseModel):
    tags: List[str] = Field(default_factory=list)


class TraceabilityTable(BaseModel):
    """Component name -> search tags. Iteration order is match priority."""

    components: Dict[str, TraceabilityEntry] = Field(default_factory=dict)

    class Config:
        frozen = True

    @classmethod
    def from_mapping(cls, mapping: Dict[str, List[str]]) -> "TraceabilityTable":
        return cls(components={name: TraceabilityEntry(tags=list(tags)) for name, tags in mapping.items()})


class TestSection(BaseModel):
    id: int
    name: str = ""
    parent_id: Optional[int] = None
    suite_id: Optional[int] = None
    depth: Optional[int] = None


class TestCase(BaseModel):
    id: int
    title: str = ""
    section_id: Optional[int] = None
    section_path: str = ""
    refs: str = Field("", description="Free-text reference field, may hold ticket ids")
    priority: Optional[int] = Field(None, description="TestRail priority_id, lower is more important")
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    url: Optional[str] = None
    section_url: Optional[str] = None

    class Config:
        frozen = True


class ScoredTestCase(BaseModel):
    test_case: TestCase
    score: int = Field(..., ge=0, le=100)
    match_reasons: List[str] = Field(default_factory=list)


class MatchType(str, Enum):
    JIRA_REFERENCE = "jira_reference"
    COMPONENT = "component"
    COMPONENT_WITH_KEYWORDS = "component_with_keywords"


class MatchedTestCase(BaseModel):
    test_case: TestCase
    match_type: MatchType
    match_reason: str
    matched_component: Optional[str] = None
    matched_keywords: List[str] = Field(default_factory=list)
    matched_file_keywords: List[str] = Field(default_factory=list)
    score: int = Field(0, ge=0, le=100)
    match_reasons: List[str] = Field(default_factory=list)


class ImpactResult(BaseModel):
    direct_matches: List[MatchedTestCase] = Field(default_factory=list)
    component_matches: List[MatchedTestCase] = Field(default_factory=list)
    refined_matches: List[MatchedTestCase] = Field(default_factory=list)
    all_cases: List[MatchedTestCase] = Field(default_factory=list)
    grouped_by_section: Dict[str, List[TestCase]] = Field(default_factory=dict)
    max_test_cases: int = 0

    @property
    def impacted_sections(self) -> int:
        return len(self.grouped_by_section)


class UploadOutcome(BaseModel):
    title: str = ""
    id: Optional[int] = None
    error: Optional[str] = None


class BulkUploadResult(BaseModel):
    success: List[UploadOutcome] = Field(default_factory=list)
    failed: List[UploadOutcome] = Field(default_factory=list)
    skipped: List[UploadOutcome] = Field(default_factory=list)


class AnalysisStatus(str, Enum):
    COMPLETED = "completed"
    NO_PR_FOUND = "no_pr_found"


class PullRequestAnalysis(BaseModel):
    status: AnalysisStatus = AnalysisStatus.COMPLETED
    ticket: Optional[Ticket] = None
    change: Optional[ChangeRequest] = None
    classification: Optional[ChangeClassification] = None
    impact: Optional[ImpactResult] = None
    regression_tests: List[ScoredTestCase] = Field(default_factory=list)
    regression_from_full_inventory: bool = False
    linked_pull_requests: List[LinkedPullRequest] = Field(default_factory=list)
    estimated_hours: float = 0.0
    message: Optional[str] = None
