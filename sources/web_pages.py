"""
Best-effort contact extraction from public company web pages.

Team/about/leadership pages are located from each seed site's home page and
scanned for "Name, Title" headings with an email or phone nearby. Page layouts
vary wildly, so results are advisory.
"""

import asyncio
import re
from typing import List, Optional
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from pipeline import config
from pipeline.models import RawCandidate, SearchRequest, SourceKind
from sources.base import SourceResult, build_candidate, error_tag, http_client

TEAM_LINK_HINTS = ("team", "about", "leadership", "people", "management")
MAX_TEAM_PAGES = 3

EMAIL_RE = re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
PHONE_RE = re.compile(r"(\+?1?[-.\s]?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4})")
NAME_TITLE_RE = re.compile(r"^([^,]+),\s*(.+)$")


def company_name_from_page(url: str, soup: BeautifulSoup) -> str:
    meta = soup.find("meta", attrs={"property": "og:site_name"})
    if meta and meta.get("content", "").strip():
        return meta["content"].strip()
    if soup.title and soup.title.get_text(strip=True):
        # "Acme Corp | Home" -> "Acme Corp"
        return re.split(r"\s[|\-–]\s", soup.title.get_text(strip=True))[0].strip()
    host = urlparse(url).netloc.lower()
    return host[4:] if host.startswith("www.") else host


def pick_team_links(base_url: str, soup: BeautifulSoup, limit: int = MAX_TEAM_PAGES) -> List[str]:
    base_netloc = urlparse(base_url).netloc.lower()
    links = []
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if not href or href.startswith(("#", "mailto:", "tel:")):
            continue
        text = a.get_text(" ", strip=True).lower()
        full = urljoin(base_url, href)
        if urlparse(full).netloc.lower() != base_netloc:
            continue
        if any(hint in text or hint in href.lower() for hint in TEAM_LINK_HINTS) and full not in links:
            links.append(full)
        if len(links) >= limit:
            break
    return links


def extract_people(html: str, company: str, page_url: str, website: Optional[str] = None) -> List[RawCandidate]:
    """Find "Name, Title" headings that have an email or phone in the surrounding markup."""
    soup = BeautifulSoup(html, "lxml")
    people = []
    for el in soup.select("h1, h2, h3, h4, .name, .title, .person"):
        match = NAME_TITLE_RE.match(el.get_text(" ", strip=True))
        if not match:
            continue

        context = str(el.parent) if el.parent is not None else str(el)
        email_match = EMAIL_RE.search(context)
        phone_match = PHONE_RE.search(context)
        if not (email_match or phone_match):
            continue

        candidate = build_candidate(
            name=match.group(1),
            company=company,
            job_title=match.group(2),
            email=email_match.group(1) if email_match else None,
            phone=phone_match.group(1).strip() if phone_match else None,
            company_website=website or page_url,
            source=SourceKind.WEB_PAGES,
            source_url=page_url,
        )
        if candidate:
            people.append(candidate)
    return people


class WebPageSource:
    """Scrapes seed company websites for team members with contact details."""

    kind = SourceKind.WEB_PAGES

    def __init__(self, transport: httpx.AsyncBaseTransport = None):
        self.transport = transport

    async def discover(self, request: SearchRequest) -> SourceResult:
        if not request.websites:
            logger.info("No seed websites in request, skipping web page source")
            return SourceResult.failed("no_seed_websites")

        candidates = []
        failures = []
        headers = {"Accept": "text/html,application/xhtml+xml"}
        async with http_client(self.transport, headers=headers, timeout=15) as client:
            for i, site in enumerate(request.websites):
                if i:
                    await asyncio.sleep(config.SOURCE_PAGE_DELAY_S)
                try:
                    found = await self._scrape_site(client, self._normalize_url(site))
                except httpx.HTTPError as e:
                    logger.error(f"Error scraping {site}: {e}")
                    failures.append(error_tag(e))
                    continue
                for candidate in found:
                    candidates.append(candidate.model_copy(update={"industry": request.industry}))

        if failures and len(failures) == len(request.websites):
            return SourceResult.failed(failures[-1])

        logger.info(f"Web pages returned {len(candidates)} candidates from {len(request.websites)} sites")
        return SourceResult(candidates)

    async def _scrape_site(self, client: httpx.AsyncClient, url: str) -> List[RawCandidate]:
        response = await client.get(url)
        response.raise_for_status()
        soup = BeautifulSoup(response.text, "lxml")
        company = company_name_from_page(str(response.url), soup)

        home = str(response.url)
        leads = extract_people(response.text, company, home)
        for link in pick_team_links(home, soup):
            await asyncio.sleep(config.SOURCE_PAGE_DELAY_S)
            try:
                page = await client.get(link)
                page.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"Error scraping team page {link}: {e}")
                continue
            leads.extend(extract_people(page.text, company, str(page.url), website=home))
        return leads

    @staticmethod
    def _normalize_url(site: str) -> str:
        site = site.strip()
        return site if site.startswith(("http://", "https://")) else f"https://{site}"
