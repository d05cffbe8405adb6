from typing import Optional

import httpx
from fastapi import HTTPException, status


class UpstreamUnavailable(Exception):
    """A ticket, pull request or test repository fetch failed."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        self.service = service
        self.message = message
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class UpstreamNotFound(UpstreamUnavailable):
    """The requested entity does not exist upstream."""


class UpstreamAuthError(UpstreamUnavailable):
    """Credentials were rejected by the upstream service."""


class InvalidPullRequestUrl(ValueError):
    """The pull request URL does not match the configured host format."""


def raise_for_upstream(response: httpx.Response, service: str, resource: str) -> None:
    """Translate an HTTP error status into the matching upstream exception."""
    code = response.status_code
    if code < 400:
        return
    if code in (401, 403):
        raise UpstreamAuthError(service, f"not authorized to fetch {resource}", code)
    if code == 404:
        raise UpstreamNotFound(service, f"{resource} not found", code)
    raise UpstreamUnavailable(service, f"failed to fetch {resource} (HTTP {code})", code)


def to_http_exception(exc: Exception) -> HTTPException:
    """HTTP status for an upstream failure or a bad pull request URL."""
    if isinstance(exc, InvalidPullRequestUrl):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, UpstreamNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, UpstreamUnavailable):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"{exc.service}: {exc.message}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
