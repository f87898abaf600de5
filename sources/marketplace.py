import asyncio
import os
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from pipeline import config
from pipeline.models import CompanySize, RawCandidate, SearchRequest, SourceKind
from sources.base import SourceResult, build_candidate, error_tag, http_client

DECISION_MAKER_TITLES = ["CEO", "CTO", "VP", "Director", "Manager"]

APOLLO_EMPLOYEE_RANGES = {
    CompanySize.MICRO: "1,10",
    CompanySize.SMALL: "11,50",
    CompanySize.MEDIUM: "51,200",
    CompanySize.MID_MARKET: "201,500",
    CompanySize.LARGE: "501,1000",
    CompanySize.ENTERPRISE: "1001,1000000",
}

class MarketplaceSource:
    """People search on the Apollo data-enrichment marketplace."""

    kind = SourceKind.MARKETPLACE

    def __init__(self, api_key: str = None, transport: httpx.AsyncBaseTransport = None):
        self.api_key = api_key if api_key is not None else os.getenv("APOLLO_API_KEY")
        self.base_url = "https://api.apollo.io/v1"
        self.transport = transport

    async def discover(self, request: SearchRequest) -> SourceResult:
        if not self.api_key:
            logger.warning("No Apollo API key, skipping source")
            return SourceResult.failed("missing_credentials")

        candidates = []
        headers = {"X-Api-Key": self.api_key, "Cache-Control": "no-cache"}
        try:
            async with http_client(self.transport, headers=headers) as client:
                for page in range(1, config.SOURCE_MAX_PAGES + 1):
                    if page > 1:
                        await asyncio.sleep(config.SOURCE_PAGE_DELAY_S)
                    response = await client.post(
                        f"{self.base_url}/mixed_people/search",
                        json=self._build_body(request, page),
                    )
                    response.raise_for_status()
                    data = response.json()

                    for person in data.get("people") or []:
                        candidate = self._to_candidate(person, request)
                        if candidate:
                            candidates.append(candidate)

                    pagination = data.get("pagination") or {}
                    if page >= int(pagination.get("total_pages") or 1):
                        break

        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error(f"Apollo search failed: {e}")
            return SourceResult.failed(error_tag(e))

        logger.info(f"Apollo returned {len(candidates)} candidates")
        return SourceResult(candidates)

    def _build_body(self, request: SearchRequest, page: int) -> Dict[str, Any]:
        body = {
            "q_keywords": " ".join(request.search_terms()),
            "person_titles": DECISION_MAKER_TITLES,
            "page": page,
            "per_page": config.SOURCE_PAGE_SIZE,
        }
        if request.location:
            body["organization_locations"] = [request.location]
        if request.company_size:
            body["organization_num_employees_ranges"] = [APOLLO_EMPLOYEE_RANGES[request.company_size]]
        return body

    @staticmethod
    def _usable_email(email: Optional[str]) -> Optional[str]:
        # Locked contacts come back as a placeholder address
        if not email or email.startswith("email_not_unlocked"):
            return None
        return email

    def _to_candidate(self, person: Dict[str, Any], request: SearchRequest) -> Optional[RawCandidate]:
        organization = person.get("organization") or {}
        phones = person.get("phone_numbers") or [{}]
        name = person.get("name") or f"{person.get('first_name') or ''} {person.get('last_name') or ''}".strip()
        location = ", ".join(p for p in (person.get("city"), person.get("state"), person.get("country")) if p)

        return build_candidate(
            name=name,
            company=organization.get("name") or "",
            email=self._usable_email(person.get("email")),
            phone=(phones[0] or {}).get("sanitized_number"),
            job_title=person.get("title"),
            industry=request.industry,
            company_size=organization.get("estimated_num_employees"),
            company_revenue=organization.get("annual_revenue_printed"),
            company_website=organization.get("website_url"),
            location=location or None,
            source=self.kind,
            source_url=person.get("linkedin_url"),
        )
