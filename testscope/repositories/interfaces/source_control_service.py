from abc import ABC, abstractmethod
from typing import List, Tuple

from testscope.models.schemas import ChangeRequest, LinkedPullRequest


class ISourceControlService(ABC):
    """Interface for pull request hosting operations"""

    @abstractmethod
    def parse_pull_request_url(self, pr_url: str) -> Tuple[str, str, int]:
        """Split a pull request URL into (project or workspace, repository, id)"""
        pass

    @abstractmethod
    async def get_change_request(self, pr_url: str) -> ChangeRequest:
        """Fetch a pull request with its complete changed-file list, classified"""
        pass

    @abstractmethod
    async def search_pull_requests(self, ticket_id: str) -> List[LinkedPullRequest]:
        """Pull requests whose title, description or branch mention the ticket id"""
        pass
