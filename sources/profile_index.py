import asyncio
import os
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from pipeline import config
from pipeline.models import RawCandidate, SearchRequest, SourceKind
from sources.base import SourceResult, build_candidate, error_tag, http_client

class ProfileIndexSource:
    """People search against a professional-network profile index."""

    kind = SourceKind.PROFILE_INDEX

    def __init__(self, api_key: str = None, base_url: str = None, transport: httpx.AsyncBaseTransport = None):
        self.api_key = api_key if api_key is not None else os.getenv("PROFILE_INDEX_API_KEY")
        self.base_url = base_url or os.getenv("PROFILE_INDEX_URL", "https://nubela.co/proxycurl/api/v2/search/person")
        self.transport = transport

    async def discover(self, request: SearchRequest) -> SourceResult:
        if not self.api_key:
            logger.warning("No profile index API key, skipping source")
            return SourceResult.failed("missing_credentials")

        candidates = []
        try:
            async with http_client(self.transport, headers={"Authorization": f"Bearer {self.api_key}"}) as client:
                url, params = self.base_url, self._build_params(request)
                for page in range(config.SOURCE_MAX_PAGES):
                    if page:
                        await asyncio.sleep(config.SOURCE_PAGE_DELAY_S)
                    response = await client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()

                    for item in data.get("results") or []:
                        candidate = self._to_candidate(item, request)
                        if candidate:
                            candidates.append(candidate)

                    # next_page is a fully formed URL carrying its own query
                    url, params = data.get("next_page"), None
                    if not url:
                        break

        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error(f"Profile index search failed: {e}")
            return SourceResult.failed(error_tag(e))

        logger.info(f"Profile index returned {len(candidates)} candidates")
        return SourceResult(candidates)

    def _build_params(self, request: SearchRequest) -> Dict[str, Any]:
        params = {
            "current_company_industry": request.industry.value,
            "keyword": " OR ".join(request.search_terms()),
            "page_size": config.SOURCE_PAGE_SIZE,
            "enrich_profiles": "enrich",
        }
        if request.location:
            params["region"] = request.location
        if request.company_size:
            params["current_company_employee_count"] = request.company_size.value
        return params

    def _to_candidate(self, item: Dict[str, Any], request: SearchRequest) -> Optional[RawCandidate]:
        profile = item.get("profile") or {}
        experiences = profile.get("experiences") or [{}]
        current = experiences[0] or {}
        location = ", ".join(p for p in (profile.get("city"), profile.get("country_full_name")) if p)

        return build_candidate(
            name=profile.get("full_name") or "",
            company=current.get("company") or "",
            job_title=current.get("title") or profile.get("occupation"),
            industry=request.industry,
            location=location or request.location,
            description=profile.get("headline") or profile.get("summary"),
            source=self.kind,
            source_url=item.get("linkedin_profile_url"),
        )
