from functools import lru_cache
from typing import Optional

from testscope.config.settings import settings
from testscope.core.cache import TTLCache
from testscope.core.traceability import load_traceability_table
from testscope.models.schemas import TraceabilityTable
from testscope.repositories.interfaces.jira_service import IJiraService
from testscope.repositories.interfaces.source_control_service import ISourceControlService
from testscope.repositories.interfaces.test_repository_service import ITestRepositoryService

from testscope.repositories.implementations.bitbucket_service import BitbucketService
from testscope.repositories.implementations.jira_service import AtlassianJiraService
from testscope.repositories.implementations.testrail_service import TestRailService

from testscope.services.analysis_service import AnalysisService


class Container:
    """Dependency injection container"""

    def __init__(self):
        self._jira_service = None
        self._source_control_service = None
        self._test_repository_service = None
        self._traceability = None
        self._inventory_cache = None

    @lru_cache()
    def jira_service(self) -> IJiraService:
        """Get JIRA service instance (singleton)"""
        if self._jira_service is None:
            self._jira_service = AtlassianJiraService()
        return self._jira_service

    @lru_cache()
    def source_control_service(self) -> ISourceControlService:
        """Get Bitbucket service instance (singleton)"""
        if self._source_control_service is None:
            self._source_control_service = BitbucketService()
        return self._source_control_service

    @lru_cache()
    def test_repository_service(self) -> ITestRepositoryService:
        """Get TestRail service instance (singleton)"""
        if self._test_repository_service is None:
            self._test_repository_service = TestRailService(cache=self.inventory_cache())
        return self._test_repository_service

    @lru_cache()
    def inventory_cache(self) -> Optional[TTLCache]:
        """TestRail sections/cases cache keyed by (listing, project_id, suite_id), None when caching is off"""
        if not settings.enable_caching:
            return None
        if self._inventory_cache is None:
            self._inventory_cache = TTLCache(max_items=32, sweep_interval_seconds=60.0)
        return self._inventory_cache

    @lru_cache()
    def traceability(self) -> TraceabilityTable:
        """Traceability matrix, read once from the configured file"""
        if self._traceability is None:
            self._traceability = load_traceability_table(settings.traceability_file)
        return self._traceability

    def shutdown(self) -> None:
        if self._inventory_cache is not None:
            self._inventory_cache.stop()

    def analysis_service(self) -> AnalysisService:
        """Get analysis service instance"""
        return AnalysisService(
            jira_service=self.jira_service(),
            source_control_service=self.source_control_service(),
            test_repository_service=self.test_repository_service(),
            traceability=self.traceability(),
            component_mapping=settings.component_mapping,
        )


# Global container instance
container = Container()


# Dependency providers for FastAPI
def get_jira_service() -> IJiraService:
    """FastAPI dependency for JIRA service"""
    return container.jira_service()


def get_source_control_service() -> ISourceControlService:
    """FastAPI dependency for Bitbucket service"""
    return container.source_control_service()


def get_test_repository_service() -> ITestRepositoryService:
    """FastAPI dependency for TestRail service"""
    return container.test_repository_service()


def get_traceability() -> TraceabilityTable:
    """FastAPI dependency for the traceability matrix"""
    return container.traceability()


def get_analysis_service() -> AnalysisService:
    """FastAPI dependency for analysis service"""
    return container.analysis_service()
