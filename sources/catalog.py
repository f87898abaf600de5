from typing import Dict

from pipeline.errors import InvalidRequest
from pipeline.models import SourceKind
from sources.base import SourceAdapter
from sources.marketplace import MarketplaceSource
from sources.news_feed import NewsFeedSource
from sources.profile_index import ProfileIndexSource
from sources.registry import RegistrySource
from sources.social_feed import SocialFeedSource
from sources.web_pages import WebPageSource

# One adapter per source kind; adding a source means adding an entry here
ADAPTERS: Dict[SourceKind, SourceAdapter] = {
    SourceKind.PROFILE_INDEX: ProfileIndexSource(),
    SourceKind.MARKETPLACE: MarketplaceSource(),
    SourceKind.WEB_PAGES: WebPageSource(),
    SourceKind.NEWS: NewsFeedSource(),
    SourceKind.SOCIAL: SocialFeedSource(),
    SourceKind.REGISTRY: RegistrySource(),
}

def resolve_adapter(kind) -> SourceAdapter:
    """Adapter for a source kind; unknown kinds are rejected, never skipped."""
    try:
        return ADAPTERS[SourceKind(kind)]
    except (KeyError, ValueError):
        raise InvalidRequest(f"Unknown source kind: {kind}") from None
