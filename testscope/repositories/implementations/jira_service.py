import asyncio
import re
from typing import Any, Dict, List, Optional, Tuple

import httpx
import structlog

from testscope.config.settings import settings
from testscope.core.exceptions import UpstreamUnavailable, raise_for_upstream
from testscope.models.schemas import LinkedPullRequest, Ticket
from testscope.repositories.interfaces.jira_service import IJiraService

logger = structlog.get_logger()

SERVICE = "jira"
ISSUE_FIELDS = (
    "summary,description,status,priority,assignee,reporter,components,labels,"
    "customfield_10000,remotelink,issuelinks"
)
ACCEPTANCE_CRITERIA_FIELD = "customfield_10000"
PULL_REQUEST_URL_MARKERS = ("pull-request", "/pull/", "/commits/")

_AC_SPLIT = re.compile(r"Acceptance Criteria[:\s]*\n|Acceptance Criteria:", re.IGNORECASE)
_BULLET = re.compile(r"^[-*•\d.)\s]+")
_IMAGE_MARKUP = re.compile(r"!\S+?\.(jpg|png|jpeg|gif)[^!]*!", re.IGNORECASE)
_SMART_LINK = re.compile(r"\[.*?\|.*?\]")
_ADF_BLOCKS = ("paragraph", "heading", "listItem", "codeBlock", "blockquote", "tableRow")


def extract_plain_text(desc: Any) -> str:
    """Plain text of an Atlassian Document Format node, one line per block."""
    if isinstance(desc, str):
        return desc
    if not isinstance(desc, dict) or "content" not in desc:
        return ""

    lines: List[str] = []
    current: List[str] = []

    def flush():
        if current:
            lines.append("".join(current).strip())
            current.clear()

    def extract(node):
        if isinstance(node, dict):
            if node.get("type") == "text":
                current.append(node.get("text", ""))
            elif node.get("type") == "hardBreak":
                flush()
            elif "content" in node:
                for child in node["content"]:
                    extract(child)
                if node.get("type") in _ADF_BLOCKS:
                    flush()
        elif isinstance(node, list):
            for item in node:
                extract(item)

    extract(desc["content"])
    flush()
    return "\n".join(line for line in lines if line)


def _criteria_lines(text: str) -> List[str]:
    text = _IMAGE_MARKUP.sub("", text)
    text = _SMART_LINK.sub("", text)
    return [
        cleaned
        for cleaned in (_BULLET.sub("", line).strip() for line in text.splitlines())
        if cleaned
    ]


def split_acceptance_criteria(full_text: str, custom_field: Any = None) -> Tuple[str, List[str]]:
    """(description without the criteria, criteria lines); falls back to the custom field."""
    parts = _AC_SPLIT.split(full_text or "", maxsplit=1)
    description = parts[0].strip()
    criteria = _criteria_lines(parts[1]) if len(parts) > 1 else []
    if not criteria and custom_field:
        criteria = _criteria_lines(extract_plain_text(custom_field) or str(custom_field))
    return description, criteria


def is_pull_request_url(url: str) -> bool:
    return any(marker in (url or "") for marker in PULL_REQUEST_URL_MARKERS)


class AtlassianJiraService(IJiraService):
    """Atlassian JIRA Cloud implementation of JIRA service"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (settings.jira_base_url or "").rstrip("/")
        self.username = settings.jira_username
        self.api_token = settings.jira_api_token
        self.auth = (self.username, self.api_token) if self.username and self.api_token else None
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            auth=self.auth,
            timeout=settings.http_timeout_seconds,
            headers={"Accept": "application/json"},
        )

    async def get_ticket(self, issue_key: str, include_pull_requests: bool = True) -> Ticket:
        if not self._is_configured():
            logger.warning("JIRA service not configured")
            raise UpstreamUnavailable(SERVICE, "JIRA service not configured")

        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.base_url}/rest/api/3/issue/{issue_key}",
                    params={"fields": ISSUE_FIELDS},
                )
        except httpx.HTTPError as e:
            logger.error("Error getting JIRA issue", issue_key=issue_key, error=str(e))
            raise UpstreamUnavailable(SERVICE, f"failed to fetch issue {issue_key}: {e}") from e
        if response.status_code != 200:
            logger.error("Failed to get JIRA issue", issue_key=issue_key, status_code=response.status_code)
        raise_for_upstream(response, SERVICE, f"issue {issue_key}")

        issue = response.json()
        fields = issue.get("fields") or {}
        description, criteria = split_acceptance_criteria(
            extract_plain_text(fields.get("description")),
            fields.get(ACCEPTANCE_CRITERIA_FIELD),
        )
        linked = []
        if include_pull_requests:
            linked = await self.get_linked_pull_requests(issue_key, issue_id=issue.get("id"))

        ticket = Ticket(
            id=issue.get("key") or issue_key,
            title=fields.get("summary") or "",
            components=list(dict.fromkeys(c.get("name") for c in fields.get("components") or [] if c.get("name"))),
            description=description,
            acceptance_criteria=criteria,
            status=(fields.get("status") or {}).get("name"),
            priority=(fields.get("priority") or {}).get("name") or "Medium",
            labels=fields.get("labels") or [],
            linked_pull_requests=linked,
        )
        logger.info(
            "JIRA issue fetched",
            issue_key=ticket.id,
            components=ticket.components,
            acceptance_criteria=len(ticket.acceptance_criteria),
            linked_pull_requests=len(linked),
        )
        return ticket

    async def get_tickets(self, issue_keys: List[str]) -> Tuple[List[Ticket], Dict[str, str]]:
        results = await asyncio.gather(*(self.get_ticket(k) for k in issue_keys), return_exceptions=True)
        tickets: List[Ticket] = []
        errors: Dict[str, str] = {}
        for key, result in zip(issue_keys, results):
            if isinstance(result, UpstreamUnavailable):
                errors[key] = result.message
            elif isinstance(result, BaseException):
                raise result
            else:
                tickets.append(result)
        return tickets, errors

    async def _remote_links(self, client: httpx.AsyncClient, issue_key: str) -> List[LinkedPullRequest]:
        response = await client.get(f"{self.base_url}/rest/api/3/issue/{issue_key}/remotelink")
        if response.status_code != 200:
            logger.warning("Remote links API failed", issue_key=issue_key, status_code=response.status_code)
            return []
        links = []
        for link in response.json() or []:
            obj = link.get("object") or {}
            url = obj.get("url") or ""
            if is_pull_request_url(url):
                links.append(LinkedPullRequest(
                    url=url,
                    title=obj.get("title") or "Pull Request",
                    status="merged" if (obj.get("status") or {}).get("resolved") else "open",
                ))
        return links

    async def _development_links(
        self, client: httpx.AsyncClient, issue_key: str, issue_id: Optional[str]
    ) -> List[LinkedPullRequest]:
        endpoints = [("1.0", {"issueKey": issue_key})]
        if issue_id:
            endpoints += [("1.0", {"issueId": issue_id}), ("latest", {"issueId": issue_id})]

        for version, ident in endpoints:
            url = f"{self.base_url}/rest/dev-status/{version}/issue/detail"
            params = {**ident, "applicationType": "bitbucket", "dataType": "pullrequest"}
            try:
                response = await client.get(url, params=params)
            except httpx.HTTPError as e:
                logger.warning("Development info endpoint failed", url=url, error=str(e))
                continue
            if response.status_code != 200:
                logger.warning("Development info endpoint failed", url=url, status_code=response.status_code)
                continue
            details = (response.json() or {}).get("detail")
            if details is None:
                continue
            return [
                LinkedPullRequest(
                    url=pr.get("url") or "",
                    title=pr.get("name") or pr.get("title") or "Pull Request",
                    status="merged" if pr.get("status") == "MERGED" else "open",
                    branch=(pr.get("source") or {}).get("branch"),
                    author=(pr.get("author") or {}).get("name"),
                    updated=pr.get("lastUpdate"),
                )
                for detail in details
                for pr in detail.get("pullRequests") or []
                if pr.get("url")
            ]
        return []

    async def get_linked_pull_requests(self, issue_key: str, issue_id: Optional[str] = None) -> List[LinkedPullRequest]:
        """Linked PRs from remote links and the development panel; lookup failures only warn."""
        if not self._is_configured():
            logger.warning("JIRA service not configured")
            return []
        links: List[LinkedPullRequest] = []
        try:
            async with self._client() as client:
                links.extend(await self._remote_links(client, issue_key))
                links.extend(await self._development_links(client, issue_key, issue_id))
        except httpx.HTTPError as e:
            logger.warning("Could not fetch PR links", issue_key=issue_key, error=str(e))

        unique: Dict[str, LinkedPullRequest] = {}
        for link in links:
            unique[link.url] = link
        logger.info("Linked pull requests resolved", issue_key=issue_key, count=len(unique))
        return list(unique.values())

    def _is_configured(self) -> bool:
        """Check if JIRA service is properly configured"""
        return bool(self.base_url and self.username and self.api_token)
