import asyncio
from typing import Any, Dict, List, Optional, Tuple

import structlog

from testscope.config.settings import settings
from testscope.core.exceptions import InvalidPullRequestUrl
from testscope.models.schemas import (
    AnalysisStatus,
    BulkUploadResult,
    ChangeClassification,
    ChangeRequest,
    FileDelta,
    ImpactResult,
    LinkedPullRequest,
    PullRequestAnalysis,
    ScoredTestCase,
    TestCase,
    Ticket,
    TraceabilityTable,
)
from testscope.repositories.interfaces.jira_service import IJiraService
from testscope.repositories.interfaces.source_control_service import ISourceControlService
from testscope.repositories.interfaces.test_repository_service import ITestRepositoryService
from testscope.services import change_classifier, impact_selector, inventory, relevance_scorer

logger = structlog.get_logger()


class AnalysisService:
    """Business logic for change analysis and test scope selection"""

    def __init__(
        self,
        jira_service: IJiraService,
        source_control_service: ISourceControlService,
        test_repository_service: ITestRepositoryService,
        traceability: TraceabilityTable,
        component_mapping: Optional[Dict[str, str]] = None,
    ):
        self.jira_service = jira_service
        self.source_control_service = source_control_service
        self.test_repository_service = test_repository_service
        self.traceability = traceability
        self.component_mapping = component_mapping if component_mapping is not None else settings.component_mapping

    def classify(
        self,
        files_changed: int = 0,
        shared_components_touched: int = 0,
        total_lines_changed: int = 0,
        pr_title: str = "",
        files: Optional[List[FileDelta]] = None,
    ) -> ChangeClassification:
        if files is not None:
            return change_classifier.classify_change(files, pr_title)
        return change_classifier.classify(files_changed, shared_components_touched, total_lines_changed, pr_title)

    def _context(self, change: ChangeRequest, ticket: Optional[Ticket], table: TraceabilityTable):
        return relevance_scorer.ChangeContext.build(change, ticket, table, self.component_mapping)

    def impact(
        self,
        ticket: Ticket,
        change: ChangeRequest,
        test_cases: List[TestCase],
        table: Optional[TraceabilityTable] = None,
    ) -> ImpactResult:
        table = table or self.traceability
        category = change_classifier.classify_change(change.changed_files, change.title).category
        return impact_selector.compute_impact(
            ticket, change, test_cases, table, context=self._context(change, ticket, table), category=category
        )

    def score(
        self,
        test_case: TestCase,
        change: ChangeRequest,
        ticket: Optional[Ticket] = None,
        table: Optional[TraceabilityTable] = None,
    ) -> ScoredTestCase:
        return relevance_scorer.score(test_case, self._context(change, ticket, table or self.traceability))

    def estimate_hours(self, impact: ImpactResult, classification: ChangeClassification) -> float:
        return change_classifier.estimate_hours(
            impacted_sections=impact.impacted_sections,
            total_tests=len(impact.all_cases),
            size=classification.size,
            hours_per_section=settings.hours_per_section,
            minutes_per_test=settings.time_per_test_medium,
        )

    async def get_ticket(self, ticket_id: str) -> Ticket:
        return await self.jira_service.get_ticket(ticket_id)

    async def find_pull_requests(self, ticket_id: str, ticket: Optional[Ticket] = None) -> List[LinkedPullRequest]:
        """Jira-linked pull requests, else those found by searching the repository."""
        linked = list(ticket.linked_pull_requests) if ticket else await self.jira_service.get_linked_pull_requests(ticket_id)
        if linked:
            return linked
        logger.info("No pull requests linked in JIRA, searching repository", ticket_id=ticket_id)
        return await self.source_control_service.search_pull_requests(ticket_id)

    def _first_supported(self, pull_requests: List[LinkedPullRequest]) -> Optional[str]:
        for pr in pull_requests:
            try:
                self.source_control_service.parse_pull_request_url(pr.url)
            except InvalidPullRequestUrl:
                logger.debug("Skipping unsupported pull request link", url=pr.url)
                continue
            return pr.url
        return None

    async def analyze_pull_request(
        self,
        jira_id: Optional[str] = None,
        pr_url: Optional[str] = None,
        suite_id: Optional[int] = None,
    ) -> PullRequestAnalysis:
        if not jira_id and not pr_url:
            raise ValueError("Either jira_id or pr_url is required")
        suite_id = suite_id or settings.testrail_suite_id

        ticket = await self.jira_service.get_ticket(jira_id) if jira_id else Ticket()
        linked: List[LinkedPullRequest] = []
        if not pr_url:
            linked = await self.find_pull_requests(jira_id, ticket)
            pr_url = self._first_supported(linked)
            if not pr_url:
                logger.info("No pull request found for ticket", ticket_id=jira_id, linked=len(linked))
                return PullRequestAnalysis(
                    status=AnalysisStatus.NO_PR_FOUND,
                    ticket=ticket,
                    linked_pull_requests=linked,
                    message=f"No pull request found for {jira_id}",
                )

        change, test_cases = await asyncio.gather(
            self.source_control_service.get_change_request(pr_url),
            inventory.fetch_inventory(self.test_repository_service, suite_id),
        )

        classification = change_classifier.classify_change(change.changed_files, change.title)
        context = self._context(change, ticket, self.traceability)
        impact = impact_selector.compute_impact(
            ticket, change, test_cases, self.traceability, context=context, category=classification.category
        )

        candidates, from_full_inventory = inventory.select_regression_suite(
            test_cases,
            method=settings.regression_method,
            keyword=settings.regression_folder_keyword,
            field_name=settings.regression_field_name,
            field_value=settings.regression_field_value,
        )
        regression = relevance_scorer.rank_regression_candidates(
            candidates, context, classification.metrics.files_changed
        )

        analysis = PullRequestAnalysis(
            ticket=ticket,
            change=change,
            classification=classification,
            impact=impact,
            regression_tests=regression,
            regression_from_full_inventory=from_full_inventory,
            linked_pull_requests=linked,
            estimated_hours=self.estimate_hours(impact, classification),
        )
        logger.info(
            "Pull request analysis completed",
            ticket_id=ticket.id,
            pr_url=pr_url,
            category=classification.category.value,
            impacted=len(impact.all_cases),
            regression=len(regression),
            estimated_hours=analysis.estimated_hours,
        )
        return analysis

    async def upload_test_cases(
        self,
        test_cases: List[Dict[str, Any]],
        ticket_ids: List[str],
        section_name: str,
        suite_id: Optional[int] = None,
        skip_duplicates: bool = True,
    ) -> Tuple[int, List[Dict[str, Any]], BulkUploadResult]:
        """Create the cases in a named section unless the section already covers the tickets."""
        suite_id = suite_id or settings.testrail_suite_id
        section = await self.test_repository_service.get_or_create_section(suite_id, section_name)
        duplicates = await self.test_repository_service.find_duplicates(section.id, ticket_ids)
        if duplicates and skip_duplicates:
            logger.info("Duplicate test cases found, upload skipped", section_id=section.id, duplicates=len(duplicates))
            return section.id, duplicates, BulkUploadResult()
        result = await self.test_repository_service.bulk_add_test_cases(section.id, test_cases)
        logger.info(
            "Test case upload finished",
            section_id=section.id,
            uploaded=len(result.success),
            failed=len(result.failed),
        )
        return section.id, duplicates, result
