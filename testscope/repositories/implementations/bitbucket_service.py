import re
from typing import Any, Dict, List, Optional, Tuple

import httpx
import structlog

from testscope.config.settings import settings
from testscope.core.exceptions import InvalidPullRequestUrl, UpstreamUnavailable, raise_for_upstream
from testscope.models.schemas import ChangeRequest, LinkedPullRequest
from testscope.repositories.interfaces.source_control_service import ISourceControlService
from testscope.services.change_classifier import classify_change
from testscope.services.file_delta_adapter import normalize_file_entries

logger = structlog.get_logger()

SERVICE = "bitbucket"
CLOUD_API_URL = "https://api.bitbucket.org/2.0"
SERVER_PR_URL = re.compile(r"projects/([^/]+)/repos/([^/]+)/pull-requests/(\d+)")
CLOUD_PR_URL = re.compile(r"bitbucket\.org/([^/]+)/([^/]+)/pull-requests/(\d+)")
SEARCH_PAGE_SIZE = 100


class BitbucketService(ISourceControlService):
    """Bitbucket Server/Data Center and Bitbucket Cloud implementation"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (settings.bitbucket_base_url or "").rstrip("/")
        self.username = settings.bitbucket_username
        self.password = settings.bitbucket_password
        self.project_key = settings.bitbucket_project_key
        self.repo_slug = settings.bitbucket_repo_slug
        self.auth = (self.username, self.password) if self.username and self.password else None
        self.is_server = "bitbucket.org" not in self.base_url
        self._transport = transport

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/rest/api/1.0" if self.is_server else CLOUD_API_URL

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            auth=self.auth,
            timeout=settings.http_timeout_seconds,
            headers={"Accept": "application/json"},
        )

    async def _get(self, client: httpx.AsyncClient, url: str, resource: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.error("Bitbucket request failed", url=url, error=str(e))
            raise UpstreamUnavailable(SERVICE, f"failed to fetch {resource}: {e}") from e
        raise_for_upstream(response, SERVICE, resource)
        return response.json()

    def parse_pull_request_url(self, pr_url: str) -> Tuple[str, str, int]:
        pattern = SERVER_PR_URL if self.is_server else CLOUD_PR_URL
        match = pattern.search(pr_url or "")
        if not match:
            raise InvalidPullRequestUrl(f"Invalid Bitbucket PR URL format: {pr_url}")
        return match.group(1), match.group(2), int(match.group(3))

    async def _server_files(self, client: httpx.AsyncClient, pr_path: str) -> List[Dict[str, Any]]:
        files: List[Dict[str, Any]] = []
        start = 0
        while True:
            page = await self._get(client, f"{pr_path}/changes", "pull request changes", params={"start": start})
            files.extend(page.get("values") or [])
            if page.get("isLastPage", True) or page.get("nextPageStart") is None:
                return files
            start = page["nextPageStart"]

    async def _cloud_files(self, client: httpx.AsyncClient, pr_path: str) -> List[Dict[str, Any]]:
        files: List[Dict[str, Any]] = []
        url: Optional[str] = f"{pr_path}/diffstat"
        while url:
            page = await self._get(client, url, "pull request diffstat")
            files.extend(page.get("values") or [])
            url = page.get("next")
        return files

    async def get_change_request(self, pr_url: str) -> ChangeRequest:
        owner, repo, pr_id = self.parse_pull_request_url(pr_url)
        logger.info("Fetching pull request", owner=owner, repo=repo, pr_id=pr_id, server=self.is_server)

        async with self._client() as client:
            if self.is_server:
                pr_path = f"{self.api_url}/projects/{owner}/repos/{repo}/pull-requests/{pr_id}"
                pr = await self._get(client, pr_path, "pull request")
                raw_files = await self._server_files(client, pr_path)
                author = ((pr.get("author") or {}).get("user") or {}).get("displayName", "")
            else:
                pr_path = f"{self.api_url}/repositories/{owner}/{repo}/pullrequests/{pr_id}"
                pr = await self._get(client, pr_path, "pull request")
                raw_files = await self._cloud_files(client, pr_path)
                author = (pr.get("author") or {}).get("display_name", "")

        files = normalize_file_entries(raw_files)
        description = pr.get("description") or ""
        classification = classify_change(files, pr.get("title") or "")
        logger.info(
            "Pull request fetched",
            pr_id=pr_id,
            files=len(files),
            category=classification.category.value,
            risk_score=classification.risk_score,
        )
        return ChangeRequest(
            title=pr.get("title") or "",
            description=description,
            author=author,
            state=pr.get("state") or "",
            url=pr_url,
            created=pr.get("createdDate") or pr.get("created_on"),
            updated=pr.get("updatedDate") or pr.get("updated_on"),
            changed_files=files,
            category=classification.category,
            risk_score=classification.risk_score,
            risk_level=classification.risk_level,
        )

    async def search_pull_requests(self, ticket_id: str) -> List[LinkedPullRequest]:
        if not (self.project_key and self.repo_slug):
            logger.warning("Bitbucket repository for ticket search not configured")
            return []
        pattern = re.compile(re.escape(ticket_id), re.IGNORECASE)
        async with self._client() as client:
            if self.is_server:
                found = await self._search_server(client, pattern)
            else:
                found = await self._search_cloud(client, pattern)
        logger.info("Pull request search finished", ticket_id=ticket_id, found=len(found))
        return found

    async def _search_server(self, client: httpx.AsyncClient, pattern: re.Pattern) -> List[LinkedPullRequest]:
        found: List[LinkedPullRequest] = []
        url = f"{self.api_url}/projects/{self.project_key}/repos/{self.repo_slug}/pull-requests"
        start = 0
        while True:
            page = await self._get(
                client, url, "pull requests", params={"state": "ALL", "limit": SEARCH_PAGE_SIZE, "start": start}
            )
            for pr in page.get("values") or []:
                branch = (pr.get("fromRef") or {}).get("displayId") or ""
                haystack = (pr.get("title") or "", pr.get("description") or "", branch)
                if any(pattern.search(text) for text in haystack):
                    found.append(LinkedPullRequest(
                        url=f"{self.base_url}/projects/{self.project_key}/repos/{self.repo_slug}/pull-requests/{pr.get('id')}",
                        title=pr.get("title") or "Pull Request",
                        status=(pr.get("state") or "open").lower(),
                        branch=branch,
                        author=((pr.get("author") or {}).get("user") or {}).get("displayName", "Unknown"),
                        created=pr.get("createdDate"),
                        updated=pr.get("updatedDate"),
                    ))
            if page.get("isLastPage", True) or page.get("nextPageStart") is None:
                return found
            start = page["nextPageStart"]

    async def _search_cloud(self, client: httpx.AsyncClient, pattern: re.Pattern) -> List[LinkedPullRequest]:
        found: List[LinkedPullRequest] = []
        url: Optional[str] = f"{self.api_url}/repositories/{self.project_key}/{self.repo_slug}/pullrequests"
        params: Optional[Dict[str, Any]] = {"state": ["OPEN", "MERGED", "DECLINED"], "pagelen": 50}
        while url:
            page = await self._get(client, url, "pull requests", params=params)
            for pr in page.get("values") or []:
                branch = ((pr.get("source") or {}).get("branch") or {}).get("name") or ""
                haystack = (pr.get("title") or "", pr.get("description") or "", branch)
                if any(pattern.search(text) for text in haystack):
                    found.append(LinkedPullRequest(
                        url=((pr.get("links") or {}).get("html") or {}).get("href")
                        or f"https://bitbucket.org/{self.project_key}/{self.repo_slug}/pull-requests/{pr.get('id')}",
                        title=pr.get("title") or "Pull Request",
                        status=(pr.get("state") or "open").lower(),
                        branch=branch,
                        author=(pr.get("author") or {}).get("display_name", "Unknown"),
                        created=pr.get("created_on"),
                        updated=pr.get("updated_on"),
                    ))
            # "next" already carries the query
            url, params = page.get("next"), None
        return found
