from abc import ABC, abstractmethod
from typing import Dict, List, Tuple

from testscope.models.schemas import LinkedPullRequest, Ticket


class IJiraService(ABC):
    """Interface for JIRA integration operations"""

    @abstractmethod
    async def get_ticket(self, issue_key: str) -> Ticket:
        """Fetch a JIRA issue as a Ticket, raising UpstreamNotFound or UpstreamAuthError"""
        pass

    @abstractmethod
    async def get_tickets(self, issue_keys: List[str]) -> Tuple[List[Ticket], Dict[str, str]]:
        """Fetch several issues; returns the tickets found and an error message per failed key"""
        pass

    @abstractmethod
    async def get_linked_pull_requests(self, issue_key: str) -> List[LinkedPullRequest]:
        """Pull requests linked to the issue through remote links or the development panel"""
        pass
