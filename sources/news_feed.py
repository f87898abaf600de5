import asyncio
import os
from typing import Any, Dict, List

import httpx
from loguru import logger

from integrations import llm
from pipeline import config
from pipeline.models import RawCandidate, SearchRequest, SourceKind
from sources.base import SourceResult, build_candidate, error_tag, http_client

# Articles sent to contact extraction per run
MAX_ARTICLES = 5

# Share of the source timeout available to contact extraction
EXTRACTION_BUDGET_SHARE = 0.75

class NewsFeedSource:
    """Finds people named in recent news coverage of the industry."""

    kind = SourceKind.NEWS

    def __init__(self, api_key: str = None, transport: httpx.AsyncBaseTransport = None):
        self.api_key = api_key if api_key is not None else os.getenv("NEWS_API_KEY")
        self.base_url = "https://newsapi.org/v2/everything"
        self.transport = transport

    async def discover(self, request: SearchRequest) -> SourceResult:
        if not self.api_key:
            logger.warning("News API key not configured, skipping source")
            return SourceResult.failed("missing_credentials")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + config.SOURCE_TIMEOUT_S * EXTRACTION_BUDGET_SHARE
        params = {
            "q": f"{request.industry.value} {' '.join(request.search_terms())}",
            "language": "en",
            "sortBy": "publishedAt",
            "pageSize": min(config.SOURCE_PAGE_SIZE, MAX_ARTICLES),
        }
        try:
            async with http_client(self.transport, headers={"X-Api-Key": self.api_key}) as client:
                response = await client.get(self.base_url, params=params)
                response.raise_for_status()
                articles = response.json().get("articles") or []
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error(f"Error discovering leads from news: {e}")
            return SourceResult.failed(error_tag(e))

        candidates = []
        processed = 0
        for i, article in enumerate(articles[:MAX_ARTICLES]):
            if i:
                await asyncio.sleep(config.ANALYSIS_DELAY_S)
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(f"News extraction budget spent after {processed} articles")
                break
            try:
                found = await asyncio.wait_for(self._candidates_from_article(article, request), timeout=remaining)
            except asyncio.TimeoutError:
                logger.warning(f"News extraction budget spent after {processed} articles")
                break
            candidates.extend(found)
            processed += 1

        logger.info(f"News returned {len(candidates)} candidates from {processed} of {len(articles)} articles")
        return SourceResult(candidates)

    async def _candidates_from_article(self, article: Dict[str, Any], request: SearchRequest) -> List[RawCandidate]:
        text = article.get("content") or article.get("description") or ""
        extracted = await llm.extract_contact_info(text)

        leads = []
        # names[i] is taken to work at companies[i]
        for i, (name, company) in enumerate(zip(extracted.names, extracted.companies)):
            candidate = build_candidate(
                name=name,
                company=company,
                job_title=extracted.job_titles[i] if i < len(extracted.job_titles) else None,
                industry=request.industry,
                description=article.get("description"),
                source=self.kind,
                source_url=article.get("url"),
            )
            if candidate:
                leads.append(candidate)
        return leads
