import os
import sys
from datetime import datetime, timezone
from unittest.mock import patch, AsyncMock

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app
from pipeline.errors import InvalidRequest, QuotaExceeded
from pipeline.models import Annotation, RawCandidate, SourceKind
from pipeline.nodes.score import build_lead


@pytest.fixture
def client():
    return TestClient(app, raise_server_exceptions=False)


def sample_lead():
    return build_lead(
        RawCandidate(name="Ann Lee", company="Acme", email="ann@acme.io", source=SourceKind.MARKETPLACE),
        Annotation.default(),
        [],
        datetime(2026, 10, 19, tzinfo=timezone.utc),
    )


class TestDiscoverEndpoint:
    """Test the discovery HTTP surface with the workflow stubbed out."""

    def test_success(self, client):
        result = {"leads": [sample_lead()], "errors": ["source news unavailable: timeout"], "stats": {"leads": 1}}
        with patch("app.run_discovery", AsyncMock(return_value=result)) as run:
            response = client.post(
                "/leads/discover",
                json={"industry": "Technology", "sources": ["marketplace"]},
                headers={"X-Account-Id": "acct-1"},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["leads"][0]["email"] == "ann@acme.io"
        assert body["leads"][0]["score"] == 3
        assert body["errors"] == ["source news unavailable: timeout"]
        assert run.call_args.args == ({"industry": "Technology", "sources": ["marketplace"]}, "acct-1")

    def test_invalid_request(self, client):
        with patch("app.run_discovery", AsyncMock(side_effect=InvalidRequest("industry: Field required"))):
            response = client.post("/leads/discover", json={"sources": ["marketplace"]}, headers={"X-Account-Id": "acct-1"})

        assert response.status_code == 400
        assert "industry" in response.json()["message"]

    def test_non_json_body(self, client):
        response = client.post("/leads/discover", content=b"industry=Technology", headers={"X-Account-Id": "acct-1"})

        assert response.status_code == 400

    def test_quota_exceeded(self, client):
        with patch("app.run_discovery", AsyncMock(side_effect=QuotaExceeded("acct-1"))):
            response = client.post(
                "/leads/discover",
                json={"industry": "Technology", "sources": ["marketplace"]},
                headers={"X-Account-Id": "acct-1"},
            )

        assert response.status_code == 429
        assert response.json()["error"] == "Lead generation limit reached"

    def test_unexpected_error(self, client):
        with patch("app.run_discovery", AsyncMock(side_effect=RuntimeError("boom"))):
            response = client.post(
                "/leads/discover",
                json={"industry": "Technology", "sources": ["marketplace"]},
                headers={"X-Account-Id": "acct-1"},
            )

        assert response.status_code == 500
        assert response.json()["message"] == "Internal server error"


class TestScoreEndpoint:
    def test_rescore(self, client):
        with patch("app.rescore_lead", AsyncMock(return_value=sample_lead())):
            response = client.post("/leads/score", json={"name": "Ann Lee", "company": "Acme", "source": "marketplace"})

        assert response.status_code == 200
        assert response.json()["lead"]["name"] == "Ann Lee"

    def test_rescore_invalid(self, client):
        with patch("app.rescore_lead", AsyncMock(side_effect=InvalidRequest("Invalid lead"))):
            response = client.post("/leads/score", json={"name": "Ann Lee"})

        assert response.status_code == 400


class TestIndustryEndpoints:
    def test_list(self, client):
        response = client.get("/industries")

        assert response.status_code == 200
        industries = response.json()["industries"]
        assert len(industries) == 20
        assert "Real Estate" in industries

    def test_keywords(self, client):
        response = client.get("/industries/Technology/keywords")

        assert response.status_code == 200
        assert "SaaS" in response.json()["keywords"]

    def test_unknown_industry(self, client):
        response = client.get("/industries/Alchemy/keywords")

        assert response.status_code == 404


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["services"]["redis"] in ("connected", "disconnected")
