"""
Shared contract for lead sources.

An adapter is any object with a `kind` and an async `discover(request)` that
returns a SourceResult. Adapters never raise for expected failures; they
return no candidates and an error tag instead.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Protocol

import httpx
from pydantic import ValidationError

from pipeline import config
from pipeline.models import RawCandidate, SearchRequest, SourceKind


@dataclass
class SourceResult:
    candidates: List[RawCandidate] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "SourceResult":
        return cls(candidates=[], error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


class SourceAdapter(Protocol):
    kind: SourceKind

    async def discover(self, request: SearchRequest) -> SourceResult:
        ...


def build_candidate(**fields) -> Optional[RawCandidate]:
    """RawCandidate from source fields, or None when name or company is unusable."""
    try:
        return RawCandidate(**fields)
    except ValidationError:
        return None


def error_tag(exc: Exception) -> str:
    """Short, loggable description of an HTTP failure."""
    if isinstance(exc, httpx.HTTPStatusError):
        return f"http_error:{exc.response.status_code}"
    if isinstance(exc, httpx.TimeoutException):
        return "timeout"
    if isinstance(exc, httpx.RequestError):
        return "network_error"
    return "bad_payload"


def http_client(transport: Optional[httpx.AsyncBaseTransport] = None, **kwargs) -> httpx.AsyncClient:
    headers = {"User-Agent": config.USER_AGENT}
    headers.update(kwargs.pop("headers", {}))
    return httpx.AsyncClient(
        timeout=kwargs.pop("timeout", 20),
        headers=headers,
        transport=transport,
        follow_redirects=True,
        **kwargs,
    )
