import asyncio
import os
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from pipeline import config
from pipeline.models import RawCandidate, SearchRequest, SourceKind
from sources.base import SourceResult, build_candidate, error_tag, http_client

MAX_COMPANIES = 5

class RegistrySource:
    """Officers of active registered companies matching the industry, via OpenCorporates."""

    kind = SourceKind.REGISTRY

    def __init__(self, api_token: str = None, transport: httpx.AsyncBaseTransport = None):
        self.api_token = api_token if api_token is not None else os.getenv("REGISTRY_API_TOKEN")
        self.base_url = "https://api.opencorporates.com/v0.4"
        self.transport = transport

        if not self.api_token:
            logger.warning("No registry API token, using anonymous registry access")

    async def discover(self, request: SearchRequest) -> SourceResult:
        candidates = []
        try:
            async with http_client(self.transport) as client:
                companies = await self._search_companies(client, request)
                for i, company in enumerate(companies[:MAX_COMPANIES]):
                    if i:
                        await asyncio.sleep(config.SOURCE_PAGE_DELAY_S)
                    candidates.extend(await self._officers(client, company, request))

        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error(f"Error discovering leads from registry: {e}")
            return SourceResult.failed(error_tag(e))

        logger.info(f"Registry returned {len(candidates)} candidates")
        return SourceResult(candidates)

    def _params(self, **extra) -> Dict[str, Any]:
        params = dict(extra)
        if self.api_token:
            params["api_token"] = self.api_token
        return params

    async def _search_companies(self, client: httpx.AsyncClient, request: SearchRequest) -> List[Dict[str, Any]]:
        response = await client.get(
            f"{self.base_url}/companies/search",
            params=self._params(
                q=request.search_terms()[0],
                inactive="false",
                per_page=config.SOURCE_PAGE_SIZE,
            ),
        )
        response.raise_for_status()
        companies = (response.json().get("results") or {}).get("companies") or []
        return [item.get("company") or {} for item in companies]

    async def _officers(self, client: httpx.AsyncClient, company: Dict[str, Any], request: SearchRequest) -> List[RawCandidate]:
        jurisdiction, number = company.get("jurisdiction_code"), company.get("company_number")
        if not jurisdiction or not number:
            return []

        response = await client.get(f"{self.base_url}/companies/{jurisdiction}/{number}", params=self._params())
        response.raise_for_status()
        detail = (response.json().get("results") or {}).get("company") or {}

        leads = []
        for item in detail.get("officers") or []:
            officer = item.get("officer") or {}
            # Former officers are no use as contacts
            if officer.get("end_date"):
                continue
            candidate = self._to_candidate(officer, detail, request)
            if candidate:
                leads.append(candidate)
        return leads

    def _to_candidate(self, officer: Dict[str, Any], company: Dict[str, Any], request: SearchRequest) -> Optional[RawCandidate]:
        address = company.get("registered_address") or {}
        location = ", ".join(p for p in (address.get("locality"), address.get("country")) if p)
        return build_candidate(
            name=(officer.get("name") or "").title(),
            company=company.get("name") or "",
            job_title=(officer.get("position") or "").title() or None,
            industry=request.industry,
            location=location or None,
            source=self.kind,
            source_url=officer.get("opencorporates_url") or company.get("opencorporates_url"),
        )
