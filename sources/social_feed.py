import asyncio
import os
import re
from typing import Any, Dict, Optional, Tuple

import httpx
from loguru import logger

from pipeline import config
from pipeline.models import RawCandidate, SearchRequest, SourceKind
from sources.base import SourceResult, build_candidate, error_tag, http_client

# "VP Sales at Acme Corp | ..." or "CTO @acme"
BIO_EMPLOYER_RE = re.compile(
    r"(?P<title>[^|@•\n]*?)\s*(?:\bat\b|@)\s*(?P<company>[A-Za-z0-9][\w&.\- ]{0,60}?)\s*(?:[|,.;•!\n]|$)",
    re.IGNORECASE,
)


def employer_from_bio(bio: str) -> Tuple[Optional[str], Optional[str]]:
    """(job title, company) parsed from a profile bio, or (None, None)."""
    match = BIO_EMPLOYER_RE.search(bio or "")
    if not match:
        return None, None
    title = match.group("title").strip(" -–,") or None
    return title, match.group("company").strip()


class SocialFeedSource:
    """Finds people posting about the industry on X/Twitter recent search."""

    kind = SourceKind.SOCIAL

    def __init__(self, bearer_token: str = None, transport: httpx.AsyncBaseTransport = None):
        self.bearer_token = bearer_token if bearer_token is not None else os.getenv("SOCIAL_BEARER_TOKEN")
        self.base_url = "https://api.twitter.com/2/tweets/search/recent"
        self.transport = transport

    async def discover(self, request: SearchRequest) -> SourceResult:
        if not self.bearer_token:
            logger.warning("No social API bearer token, skipping source")
            return SourceResult.failed("missing_credentials")

        params = {
            "query": self._build_query(request),
            "max_results": max(10, min(config.SOURCE_PAGE_SIZE, 100)),
            "expansions": "author_id",
            "user.fields": "name,username,description,location,url",
        }
        candidates = []
        seen_authors = set()
        try:
            async with http_client(self.transport, headers={"Authorization": f"Bearer {self.bearer_token}"}) as client:
                for page in range(config.SOURCE_MAX_PAGES):
                    if page:
                        await asyncio.sleep(config.SOURCE_PAGE_DELAY_S)
                    response = await client.get(self.base_url, params=params)
                    response.raise_for_status()
                    data = response.json()

                    for user in (data.get("includes") or {}).get("users") or []:
                        if user.get("id") in seen_authors:
                            continue
                        seen_authors.add(user.get("id"))
                        candidate = self._to_candidate(user, request)
                        if candidate:
                            candidates.append(candidate)

                    next_token = (data.get("meta") or {}).get("next_token")
                    if not next_token:
                        break
                    params = {**params, "next_token": next_token}

        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error(f"Error discovering leads from social media: {e}")
            return SourceResult.failed(error_tag(e))

        logger.info(f"Social returned {len(candidates)} candidates")
        return SourceResult(candidates)

    def _build_query(self, request: SearchRequest) -> str:
        terms = " OR ".join(f'"{t}"' if " " in t else t for t in request.search_terms())
        return f"({terms}) -is:retweet lang:en"

    def _to_candidate(self, user: Dict[str, Any], request: SearchRequest) -> Optional[RawCandidate]:
        title, company = employer_from_bio(user.get("description") or "")
        if not company:
            return None
        return build_candidate(
            name=user.get("name") or "",
            company=company,
            job_title=title,
            industry=request.industry,
            company_website=user.get("url"),
            location=user.get("location"),
            description=user.get("description"),
            source=self.kind,
            source_url=f"https://x.com/{user['username']}" if user.get("username") else None,
        )
