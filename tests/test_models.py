import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pipeline.errors import InvalidRequest
from pipeline.models import (
    INDUSTRY_KEYWORDS,
    Annotation,
    CompanySize,
    ContactExtraction,
    Industry,
    Level,
    RawCandidate,
    ScoreFactor,
    Sentiment,
    SearchRequest,
    SourceKind,
    Timeline,
)


class TestSearchRequest:
    """Test request parsing and validation."""

    def test_parse_full_payload(self):
        request = SearchRequest.parse({
            "industry": "Technology",
            "location": "Austin, TX",
            "companySize": "201-500",
            "keywords": ["devops", " cloud ", "devops", ""],
            "sources": ["marketplace", "news", "marketplace"],
            "websites": "https://acme.example",
        })

        assert request.industry == Industry.TECHNOLOGY
        assert request.company_size == CompanySize.MID_MARKET
        assert request.keywords == ("devops", "cloud")
        assert request.sources == (SourceKind.MARKETPLACE, SourceKind.NEWS)
        assert request.websites == ("https://acme.example",)

    def test_sources_stay_source_kinds(self):
        request = SearchRequest.parse({"industry": "Technology", "sources": ["marketplace", "news"]})

        assert all(isinstance(kind, SourceKind) for kind in request.sources)
        assert [kind.value for kind in request.sources] == ["marketplace", "news"]

    def test_search_terms_fall_back_to_industry_keywords(self):
        request = SearchRequest.parse({"industry": "Non-Profit", "sources": ["news"]})

        assert request.search_terms() == INDUSTRY_KEYWORDS[Industry.NON_PROFIT]

    def test_search_terms_prefer_request_keywords(self):
        request = SearchRequest.parse({"industry": "Finance", "keywords": ["payments"], "sources": ["news"]})

        assert request.search_terms() == ["payments"]

    def test_request_is_frozen(self):
        request = SearchRequest.parse({"industry": "Finance", "sources": ["news"]})

        with pytest.raises(Exception):
            request.location = "Berlin"

    @pytest.mark.parametrize("payload", [
        {},
        {"sources": ["news"]},
        {"industry": "Alchemy", "sources": ["news"]},
        {"industry": "Finance"},
        {"industry": "Finance", "sources": []},
        {"industry": "Finance", "sources": ["carrier_pigeon"]},
        {"industry": "Finance", "sources": ["news"], "company_size": "huge"},
    ])
    def test_invalid_payloads(self, payload):
        with pytest.raises(InvalidRequest):
            SearchRequest.parse(payload)

    def test_every_industry_has_keywords(self):
        assert set(INDUSTRY_KEYWORDS) == set(Industry)
        assert all(INDUSTRY_KEYWORDS[industry] for industry in Industry)


class TestRawCandidate:
    def test_normalizes_fields(self):
        c = RawCandidate(
            name="  Ann Lee ",
            company="Acme",
            email=" Ann@Acme.IO ",
            phone="  ",
            company_size=742,
            industry="Underwater Basketry",
            source="marketplace",
        )

        assert c.name == "Ann Lee"
        assert c.email == "ann@acme.io"
        assert c.phone is None
        assert c.company_size == CompanySize.LARGE
        assert c.industry is None

    def test_unknown_size_bracket_is_dropped(self):
        c = RawCandidate(name="Ann Lee", company="Acme", company_size="lots", source="news")

        assert c.company_size is None

    def test_name_and_company_required(self):
        with pytest.raises(ValueError):
            RawCandidate(name=" ", company="Acme", source="news")
        with pytest.raises(ValueError):
            RawCandidate(name="Ann Lee", company="", source="news")


class TestCompanySize:
    @pytest.mark.parametrize("headcount,size", [
        (1, CompanySize.MICRO),
        (10, CompanySize.MICRO),
        (11, CompanySize.SMALL),
        (51, CompanySize.MEDIUM),
        (200, CompanySize.MEDIUM),
        (201, CompanySize.MID_MARKET),
        (1000, CompanySize.LARGE),
        (1001, CompanySize.ENTERPRISE),
    ])
    def test_from_headcount(self, headcount, size):
        assert CompanySize.from_headcount(headcount) == size


class TestAnnotationCoerce:
    def test_loose_model_output(self):
        annotation = Annotation.coerce({
            "intent": "high",
            "painPoints": ["slow onboarding", " ", "churn"],
            "budget": "Medium",
            "timeline": "1-3 months",
            "decisionMaker": "true",
            "sentiment": "POSITIVE",
        })

        assert annotation.intent == Level.HIGH
        assert annotation.pain_points == ["slow onboarding", "churn"]
        assert annotation.budget == Level.MEDIUM
        assert annotation.timeline == Timeline.ONE_TO_THREE_MONTHS
        assert annotation.decision_maker is True
        assert annotation.sentiment == Sentiment.POSITIVE

    def test_unrecognised_values_fall_back(self):
        annotation = Annotation.coerce({
            "intent": "very keen",
            "timeline": "someday",
            "decision_maker": "maybe",
            "pain_points": "budget freeze",
        })

        assert annotation.intent == Level.UNKNOWN
        assert annotation.timeline == Timeline.UNKNOWN
        assert annotation.decision_maker is False
        assert annotation.pain_points == ["budget freeze"]

    def test_non_mapping_gives_default(self):
        assert Annotation.coerce(["not", "a", "dict"]) == Annotation.default()


class TestScoreFactor:
    @pytest.mark.parametrize("raw,expected", [
        (0.4, 0.4),
        (40, 0.4),
        ("25", 0.25),
        (250, 1.0),
        (-3, 0.0),
        ("heavy", 0.0),
    ])
    def test_weight_normalized(self, raw, expected):
        assert ScoreFactor(factor="fit", weight=raw).weight == pytest.approx(expected)


class TestContactExtraction:
    def test_accepts_camel_case_titles(self):
        extraction = ContactExtraction.model_validate({"names": ["Ann Lee"], "jobTitles": ["CTO"]})

        assert extraction.job_titles == ["CTO"]
        assert extraction.emails == []
