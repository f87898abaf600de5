from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from pipeline.errors import InvalidRequest


class Industry(str, Enum):
    TECHNOLOGY = "Technology"
    HEALTHCARE = "Healthcare"
    FINANCE = "Finance"
    EDUCATION = "Education"
    MANUFACTURING = "Manufacturing"
    RETAIL = "Retail"
    REAL_ESTATE = "Real Estate"
    CONSULTING = "Consulting"
    MARKETING = "Marketing"
    LEGAL = "Legal"
    CONSTRUCTION = "Construction"
    TRANSPORTATION = "Transportation"
    ENERGY = "Energy"
    MEDIA = "Media"
    GOVERNMENT = "Government"
    NON_PROFIT = "Non-Profit"
    AGRICULTURE = "Agriculture"
    HOSPITALITY = "Hospitality"
    SPORTS = "Sports"
    ENTERTAINMENT = "Entertainment"


# Default search terms when a request carries no keywords of its own
INDUSTRY_KEYWORDS: Dict[Industry, List[str]] = {
    Industry.TECHNOLOGY: ["software", "SaaS", "cloud", "AI", "machine learning", "cybersecurity", "devops"],
    Industry.HEALTHCARE: ["medical", "healthcare", "pharmaceutical", "telemedicine", "health tech", "clinical"],
    Industry.FINANCE: ["fintech", "banking", "investment", "trading", "blockchain", "payments", "insurance"],
    Industry.EDUCATION: ["edtech", "online learning", "educational technology", "e-learning", "training"],
    Industry.MANUFACTURING: ["automation", "industrial", "supply chain", "logistics", "production"],
    Industry.RETAIL: ["e-commerce", "retail tech", "omnichannel", "inventory", "customer experience"],
    Industry.REAL_ESTATE: ["proptech", "real estate tech", "property management", "commercial real estate"],
    Industry.CONSULTING: ["management consulting", "strategy", "advisory", "business consulting"],
    Industry.MARKETING: ["digital marketing", "advertising", "marketing automation", "content marketing"],
    Industry.LEGAL: ["legal tech", "law firm", "compliance", "legal services", "litigation"],
    Industry.CONSTRUCTION: ["construction tech", "building", "infrastructure", "project management"],
    Industry.TRANSPORTATION: ["logistics", "fleet management", "transportation tech", "shipping"],
    Industry.ENERGY: ["renewable energy", "oil and gas", "utilities", "energy management"],
    Industry.MEDIA: ["digital media", "content creation", "streaming", "publishing", "broadcasting"],
    Industry.GOVERNMENT: ["government tech", "public sector", "civic tech", "government services"],
    Industry.NON_PROFIT: ["nonprofit", "charity", "social impact", "foundation", "NGO"],
    Industry.AGRICULTURE: ["agtech", "farming", "agricultural technology", "food production"],
    Industry.HOSPITALITY: ["hotel tech", "restaurant", "tourism", "hospitality management"],
    Industry.SPORTS: ["sports tech", "fitness", "athletics", "sports management"],
    Industry.ENTERTAINMENT: ["entertainment tech", "gaming", "music", "film", "events"],
}


class CompanySize(str, Enum):
    MICRO = "1-10"
    SMALL = "11-50"
    MEDIUM = "51-200"
    MID_MARKET = "201-500"
    LARGE = "501-1000"
    ENTERPRISE = "1000+"

    @classmethod
    def from_headcount(cls, headcount: int) -> "CompanySize":
        if headcount > 1000:
            return cls.ENTERPRISE
        if headcount > 500:
            return cls.LARGE
        if headcount > 200:
            return cls.MID_MARKET
        if headcount > 50:
            return cls.MEDIUM
        if headcount > 10:
            return cls.SMALL
        return cls.MICRO


class SourceKind(str, Enum):
    PROFILE_INDEX = "profile_index"
    MARKETPLACE = "marketplace"
    WEB_PAGES = "web_pages"
    NEWS = "news"
    SOCIAL = "social"
    REGISTRY = "registry"


class Level(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    UNKNOWN = "Unknown"


class Timeline(str, Enum):
    IMMEDIATE = "Immediate"
    ONE_TO_THREE_MONTHS = "1-3mo"
    THREE_TO_SIX_MONTHS = "3-6mo"
    SIX_MONTHS_PLUS = "6mo+"
    UNKNOWN = "Unknown"


class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


def _unique(values) -> tuple:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen = {}
    for value in values or ():
        if isinstance(value, str):
            value = value.strip()
        if value and value not in seen:
            seen[value] = None
    return tuple(seen)


class SearchRequest(BaseModel):
    """What to look for and where. Frozen once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    industry: Industry
    location: Optional[str] = None
    company_size: Optional[CompanySize] = Field(
        default=None, validation_alias=AliasChoices("company_size", "companySize")
    )
    keywords: Tuple[str, ...] = ()
    sources: Tuple[SourceKind, ...]
    websites: Tuple[str, ...] = ()

    @field_validator("keywords", "websites", mode="before")
    @classmethod
    def _clean_terms(cls, v):
        if isinstance(v, str):
            v = [v]
        return _unique(v)

    @field_validator("sources")
    @classmethod
    def _require_sources(cls, v):
        # _unique strips, which turns str-enum members back into plain str
        v = tuple(SourceKind(kind) for kind in _unique(v))
        if not v:
            raise ValueError("at least one source is required")
        return v

    @classmethod
    def parse(cls, payload: Mapping[str, Any]) -> "SearchRequest":
        """Build a request from an untrusted payload, raising InvalidRequest on bad input."""
        if isinstance(payload, cls):
            return payload
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidRequest(problems) from e

    def search_terms(self) -> List[str]:
        return list(self.keywords) or list(INDUSTRY_KEYWORDS[self.industry])


class RawCandidate(BaseModel):
    """A lead as one source reported it, before deduplication."""

    name: str = Field(min_length=1)
    company: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    industry: Optional[Industry] = None
    company_size: Optional[CompanySize] = None
    company_revenue: Optional[str] = None
    company_website: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    source: SourceKind
    source_url: Optional[str] = None

    @field_validator("name", "company", mode="before")
    @classmethod
    def _strip_required(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        if not isinstance(v, str):
            return None
        return v.strip().lower() or None

    @field_validator("phone", "job_title", "company_website", "location", "description", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("company_size", mode="before")
    @classmethod
    def _coerce_size(cls, v):
        if isinstance(v, bool):
            return None
        if isinstance(v, int):
            return CompanySize.from_headcount(v)
        if isinstance(v, str) and v not in CompanySize._value2member_map_:
            return None
        return v

    @field_validator("industry", mode="before")
    @classmethod
    def _coerce_industry(cls, v):
        if isinstance(v, str) and v not in Industry._value2member_map_:
            return None
        return v


_TIMELINE_ALIASES = {
    "immediate": Timeline.IMMEDIATE,
    "1-3mo": Timeline.ONE_TO_THREE_MONTHS,
    "1-3months": Timeline.ONE_TO_THREE_MONTHS,
    "3-6mo": Timeline.THREE_TO_SIX_MONTHS,
    "3-6months": Timeline.THREE_TO_SIX_MONTHS,
    "6mo+": Timeline.SIX_MONTHS_PLUS,
    "6+mo": Timeline.SIX_MONTHS_PLUS,
    "6+months": Timeline.SIX_MONTHS_PLUS,
    "6months+": Timeline.SIX_MONTHS_PLUS,
}


def _match_enum(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return default
    wanted = value.strip().lower()
    for member in enum_cls:
        if member.value.lower() == wanted:
            return member
    return default


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "y", "1")
    return False


class Annotation(BaseModel):
    """AI-derived qualitative signals for one lead. Every field always has a value."""

    intent: Level = Level.UNKNOWN
    pain_points: List[str] = Field(default_factory=list)
    budget: Level = Level.UNKNOWN
    timeline: Timeline = Timeline.UNKNOWN
    decision_maker: bool = False
    sentiment: Sentiment = Sentiment.NEUTRAL

    @classmethod
    def default(cls) -> "Annotation":
        return cls()

    @classmethod
    def coerce(cls, data: Mapping[str, Any]) -> "Annotation":
        """
        Build an annotation from loosely shaped model output.

        Keys may be snake_case or camelCase; values are matched case-insensitively.
        Anything unrecognised falls back to that field's default.
        """
        if not isinstance(data, Mapping):
            return cls.default()

        pain_points = data.get("pain_points", data.get("painPoints", []))
        if isinstance(pain_points, str):
            pain_points = [pain_points]
        if not isinstance(pain_points, list):
            pain_points = []

        raw_timeline = data.get("timeline")
        timeline = Timeline.UNKNOWN
        if isinstance(raw_timeline, str):
            timeline = _TIMELINE_ALIASES.get(raw_timeline.strip().lower().replace(" ", ""), Timeline.UNKNOWN)

        return cls(
            intent=_match_enum(Level, data.get("intent"), Level.UNKNOWN),
            pain_points=[str(p).strip() for p in pain_points if str(p).strip()],
            budget=_match_enum(Level, data.get("budget"), Level.UNKNOWN),
            timeline=timeline,
            decision_maker=_as_bool(data.get("decision_maker", data.get("decisionMaker", False))),
            sentiment=_match_enum(Sentiment, data.get("sentiment"), Sentiment.NEUTRAL),
        )


class ScoreFactor(BaseModel):
    """Advisory scoring breakdown suggested by the analysis model. Never feeds the score."""

    factor: str
    weight: float = Field(ge=0.0, le=1.0)
    value: Any = None
    reason: Optional[str] = None

    @field_validator("weight", mode="before")
    @classmethod
    def _normalize_weight(cls, v):
        try:
            weight = float(v)
        except (TypeError, ValueError):
            return 0.0
        if 1.0 < weight <= 100.0:
            weight = weight / 100.0
        return max(0.0, min(1.0, weight))


class ContactExtraction(BaseModel):
    names: List[str] = Field(default_factory=list)
    companies: List[str] = Field(default_factory=list)
    job_titles: List[str] = Field(default_factory=list, validation_alias=AliasChoices("job_titles", "jobTitles"))
    emails: List[str] = Field(default_factory=list)
    phones: List[str] = Field(default_factory=list)


class EnrichedLead(RawCandidate):
    """Pipeline output: a candidate plus its annotation, advisory factors and final score."""

    annotation: Annotation
    score_factors: List[ScoreFactor] = Field(default_factory=list)
    score: int = Field(ge=0, le=100)
    discovered_at: datetime
