import asyncio
from typing import Any, Dict, List, Optional

import httpx
import structlog

from testscope.config.settings import settings
from testscope.core.cache import TTLCache
from testscope.core.exceptions import UpstreamUnavailable, raise_for_upstream
from testscope.models.schemas import BulkUploadResult, TestSection, UploadOutcome
from testscope.repositories.interfaces.test_repository_service import ITestRepositoryService

logger = structlog.get_logger()

SERVICE = "testrail"


def _items(payload: Any, key: str) -> List[Dict[str, Any]]:
    """Listings come back as a bare array or wrapped as {"<key>": [...]}, depending on version."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]
    return []


class TestRailService(ITestRepositoryService):
    """TestRail API v2 implementation of the test repository"""

    __test__ = False

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[TTLCache] = None,
    ):
        self.base_url = (settings.testrail_base_url or "").rstrip("/")
        self.username = settings.testrail_username
        self.api_key = settings.testrail_api_key
        self.project_id = settings.testrail_project_id
        self.page_size = settings.testrail_page_size
        self.auth = (self.username, self.api_key) if self.username and self.api_key else None
        self._transport = transport
        # None disables caching of sections and cases
        self._cache = cache

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/index.php?/api/v2"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            auth=self.auth,
            timeout=settings.http_timeout_seconds,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
        )

    def _ensure_configured(self) -> None:
        if not self._is_configured():
            logger.warning("TestRail service not configured")
            raise UpstreamUnavailable(SERVICE, "TestRail service not configured")

    async def _get(self, client: httpx.AsyncClient, endpoint: str, resource: str) -> Any:
        # TestRail takes its query after the endpoint, joined with "&"
        try:
            response = await client.get(f"{self.api_url}{endpoint}")
        except httpx.HTTPError as e:
            logger.error("TestRail request failed", endpoint=endpoint, error=str(e))
            raise UpstreamUnavailable(SERVICE, f"failed to fetch {resource}: {e}") from e
        raise_for_upstream(response, SERVICE, resource)
        return response.json()

    async def _post(self, client: httpx.AsyncClient, endpoint: str, payload: Dict[str, Any], resource: str) -> Any:
        try:
            response = await client.post(f"{self.api_url}{endpoint}", json=payload)
        except httpx.HTTPError as e:
            logger.error("TestRail request failed", endpoint=endpoint, error=str(e))
            raise UpstreamUnavailable(SERVICE, f"failed to create {resource}: {e}") from e
        raise_for_upstream(response, SERVICE, resource)
        return response.json()

    async def _get_all_pages(self, endpoint: str, key: str, resource: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        offset = 0
        async with self._client() as client:
            while True:
                page = _items(
                    await self._get(client, f"{endpoint}&limit={self.page_size}&offset={offset}", resource),
                    key,
                )
                items.extend(page)
                if len(page) < self.page_size:
                    break
                offset += self.page_size
        return items

    async def _cached_listing(self, listing: str, suite_id: int, key: str) -> List[Dict[str, Any]]:
        cache_key = (listing, self.project_id, suite_id)
        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.debug("TestRail listing served from cache", listing=listing, suite_id=suite_id)
                return cached
        items = await self._get_all_pages(f"/{listing}/{self.project_id}&suite_id={suite_id}", key, listing)
        if self._cache is not None:
            self._cache.set(cache_key, items, settings.cache_ttl_seconds)
        return items

    async def get_all_sections(self, suite_id: int) -> List[TestSection]:
        self._ensure_configured()
        raw = await self._cached_listing("get_sections", suite_id, "sections")
        sections = [
            TestSection(
                id=s["id"],
                name=s.get("name") or "",
                parent_id=s.get("parent_id"),
                suite_id=s.get("suite_id", suite_id),
                depth=s.get("depth"),
            )
            for s in raw
            if "id" in s
        ]
        logger.info("TestRail sections fetched", suite_id=suite_id, count=len(sections))
        return sections

    async def get_all_test_cases(self, suite_id: int) -> List[Dict[str, Any]]:
        self._ensure_configured()
        cases = await self._cached_listing("get_cases", suite_id, "cases")
        logger.info("TestRail test cases fetched", suite_id=suite_id, count=len(cases))
        return cases

    async def get_case_fields(self) -> List[Dict[str, Any]]:
        self._ensure_configured()
        async with self._client() as client:
            fields = await self._get(client, "/get_case_fields", "case fields")
        return fields if isinstance(fields, list) else []

    async def get_or_create_section(self, suite_id: int, name: str, description: str = "") -> TestSection:
        self._ensure_configured()
        sections = await self._get_all_pages(
            f"/get_sections/{self.project_id}&suite_id={suite_id}", "sections", "sections"
        )
        for s in sections:
            if (s.get("name") or "").lower() == name.lower():
                logger.info("Found existing TestRail section", section_id=s["id"], name=name)
                return TestSection(id=s["id"], name=s["name"], parent_id=s.get("parent_id"), suite_id=suite_id)

        payload = {"suite_id": suite_id, "name": name, "description": description}
        async with self._client() as client:
            created = await self._post(client, f"/add_section/{self.project_id}", payload, "section")
        logger.info("Created TestRail section", section_id=created.get("id"), name=name)
        return TestSection(id=created["id"], name=created.get("name", name), parent_id=created.get("parent_id"), suite_id=suite_id)

    async def add_test_case(self, section_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._ensure_configured()
        async with self._client() as client:
            created = await self._post(client, f"/add_case/{section_id}", payload, "test case")
        logger.info("Created TestRail test case", case_id=created.get("id"), title=payload.get("title"))
        return created

    async def bulk_add_test_cases(
        self,
        section_id: int,
        cases: List[Dict[str, Any]],
        delay_seconds: float = 0.2,
    ) -> BulkUploadResult:
        result = BulkUploadResult()
        for index, case in enumerate(cases):
            title = case.get("title", "")
            try:
                created = await self.add_test_case(section_id, case)
            except UpstreamUnavailable as e:
                result.failed.append(UploadOutcome(title=title, error=e.message))
                result.skipped.extend(UploadOutcome(title=c.get("title", "")) for c in cases[index + 1:])
                logger.error("Stopping upload after failure", section_id=section_id, title=title, error=e.message)
                break
            result.success.append(UploadOutcome(title=title, id=created.get("id")))
            # Spaces out uploads for TestRail's rate limit
            if delay_seconds and index < len(cases) - 1:
                await asyncio.sleep(delay_seconds)
        return result

    async def find_duplicates(self, section_id: int, ticket_ids: List[str]) -> List[Dict[str, Any]]:
        self._ensure_configured()
        try:
            async with self._client() as client:
                existing = _items(
                    await self._get(client, f"/get_cases/{self.project_id}&section_id={section_id}", "test cases"),
                    "cases",
                )
        except UpstreamUnavailable as e:
            logger.warning("Could not check for duplicates", section_id=section_id, error=e.message)
            return []
        wanted = [t.upper() for t in ticket_ids if t]
        return [c for c in existing if any(t in (c.get("refs") or "").upper() for t in wanted)]

    def build_test_case_url(self, case_id: int) -> Optional[str]:
        if not self.base_url:
            return None
        return f"{self.base_url}/index.php?/cases/view/{case_id}"

    def build_section_url(self, suite_id: int, section_id: int) -> Optional[str]:
        if not self.base_url:
            return None
        return f"{self.base_url}/index.php?/suites/view/{suite_id}&group_by=cases:section_id&group_id={section_id}"

    def _is_configured(self) -> bool:
        """Check if TestRail service is properly configured"""
        return bool(self.base_url and self.username and self.api_key)
