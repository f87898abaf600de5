import asyncio
import os
import sys
from types import SimpleNamespace
from unittest.mock import patch, AsyncMock, MagicMock

import pytest
import redis
from slack_sdk.errors import SlackApiError

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from integrations.llm import AnalysisClient
from integrations.quota import QuotaGate, USAGE_TTL_S
from integrations.slack import SlackNotifier
from pipeline.errors import AnalysisDegraded
from pipeline.models import Annotation, Level, RawCandidate, SourceKind, Timeline
from pipeline.nodes.score import build_lead


def completion(content):
    """Shape of an openai chat completion, as far as the client reads it."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestAnalysisClient:
    """Test the AI analysis integration."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = AnalysisClient(api_key="")
        self.create = AsyncMock()
        self.client._client = MagicMock()
        self.client._client.chat.completions.create = self.create
        self.candidate = RawCandidate(
            name="Ann Lee",
            company="Acme",
            job_title="CTO",
            source=SourceKind.MARKETPLACE,
        )

    def run(self, coro):
        return asyncio.run(coro)

    def test_unconfigured_client_returns_default(self):
        offline = AnalysisClient(api_key="")

        assert self.run(offline.analyze(self.candidate)) == Annotation.default()
        assert self.run(offline.suggest_score_factors(self.candidate)) == []
        assert self.run(offline.extract_contacts("Ann Lee, CTO at Acme")).names == []

    def test_analyze_parses_response(self):
        self.create.return_value = completion(
            'Sure! {"intent": "High", "pain_points": ["legacy CRM"], "budget": "medium", '
            '"timeline": "Immediate", "decision_maker": true, "sentiment": "Positive"}'
        )

        annotation = self.run(self.client.analyze(self.candidate))

        assert annotation.intent == Level.HIGH
        assert annotation.budget == Level.MEDIUM
        assert annotation.timeline == Timeline.IMMEDIATE
        assert annotation.pain_points == ["legacy CRM"]
        assert annotation.decision_maker is True

        kwargs = self.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "Ann Lee" in kwargs["messages"][1]["content"]

    def test_analyze_malformed_response_degrades(self):
        self.create.return_value = completion("I cannot help with that")

        assert self.run(self.client.analyze(self.candidate)) == Annotation.default()

    def test_analyze_upstream_error_degrades(self):
        self.create.side_effect = RuntimeError("connection reset")

        assert self.run(self.client.analyze(self.candidate)) == Annotation.default()

    def test_complete_raises_analysis_degraded(self):
        self.create.side_effect = RuntimeError("rate limited")

        with pytest.raises(AnalysisDegraded):
            self.run(self.client._complete("system", "prompt", temperature=0.1, max_tokens=10))

    def test_score_factors(self):
        self.create.return_value = completion(
            '{"factors": [{"factor": "Job Title Relevance", "weight": 30, "value": "High", "reason": "CTO"},'
            ' {"weight": 0.2}, "noise"]}'
        )

        factors = self.run(self.client.suggest_score_factors(self.candidate))

        assert len(factors) == 1
        assert factors[0].factor == "Job Title Relevance"
        assert factors[0].weight == pytest.approx(0.3)

    @pytest.mark.parametrize("content", [
        '{"factors": 5}',
        '{"factors": null}',
        '{"factors": {"factor": "Job Title Relevance"}}',
    ])
    def test_score_factors_not_a_list(self, content):
        self.create.return_value = completion(content)

        assert self.run(self.client.suggest_score_factors(self.candidate)) == []
        with pytest.raises(AnalysisDegraded):
            self.run(self.client.suggest_score_factors(self.candidate, strict=True))

    def test_malformed_factor_entries_are_skipped(self):
        self.create.return_value = completion(
            '{"factors": [{"factor": 7, "weight": 0.5}, {"factor": "Industry Fit", "weight": [1]},'
            ' {"factor": "Company Size", "weight": 0.2, "value": 1500}]}'
        )

        factors = self.run(self.client.suggest_score_factors(self.candidate, strict=True))

        assert [f.factor for f in factors] == ["Industry Fit", "Company Size"]
        assert factors[0].weight == 0.0

    def test_strict_analyze_raises(self):
        self.create.side_effect = RuntimeError("connection reset")

        with pytest.raises(AnalysisDegraded):
            self.run(self.client.analyze(self.candidate, strict=True))

    def test_extract_contacts(self):
        self.create.return_value = completion(
            '{"names": ["Ann Lee"], "companies": ["Acme"], "jobTitles": ["CTO"], "emails": [], "phones": []}'
        )

        extraction = self.run(self.client.extract_contacts("Acme CTO Ann Lee said..."))

        assert extraction.names == ["Ann Lee"]
        assert extraction.job_titles == ["CTO"]

    def test_extract_contacts_skips_blank_text(self):
        extraction = self.run(self.client.extract_contacts("   "))

        assert extraction.names == []
        self.create.assert_not_called()


class TestQuotaGate:
    """Test monthly discovery quota with the in-memory store."""

    def setup_method(self):
        self.gate = QuotaGate(redis_url="", default_limit=2)

    def test_allows_until_limit(self):
        assert self.gate.can_discover("acct-1")
        assert self.gate.record_usage("acct-1") == 1
        assert self.gate.can_discover("acct-1")
        assert self.gate.record_usage("acct-1") == 2
        assert not self.gate.can_discover("acct-1")

    def test_accounts_are_independent(self):
        self.gate.record_usage("acct-1")
        self.gate.record_usage("acct-1")

        assert self.gate.can_discover("acct-2")

    def test_api_usage_does_not_count_against_discovery(self):
        self.gate.record_usage("acct-1", "api")
        self.gate.record_usage("acct-1", "api")

        assert self.gate.usage("acct-1", "api") == 2
        assert self.gate.can_discover("acct-1")

    def test_set_limit(self):
        self.gate.set_limit("acct-1", 0)

        assert self.gate.limit_for("acct-1") == 0
        assert not self.gate.can_discover("acct-1")

        with pytest.raises(ValueError):
            self.gate.set_limit("acct-1", -1)

    def test_empty_account_is_refused(self):
        assert not self.gate.can_discover("")

    def test_unknown_usage_kind(self):
        with pytest.raises(ValueError):
            self.gate.record_usage("acct-1", "exports")

    def test_usage_key_is_monthly(self):
        from datetime import datetime

        assert self.gate._usage_key("acct-1", "discovery", datetime(2026, 10, 19)) == "quota:acct-1:discovery:2026-10"


class TestQuotaGateRedis:
    """Test the Redis-backed paths against a mocked connection."""

    def setup_method(self):
        self.gate = QuotaGate(redis_url="", default_limit=100)
        self.gate.r = MagicMock()

    def test_record_usage_increments_with_expiry(self):
        pipe = self.gate.r.pipeline.return_value
        pipe.execute.return_value = [3, True]

        assert self.gate.record_usage("acct-1") == 3
        key = pipe.incr.call_args.args[0]
        assert key.startswith("quota:acct-1:discovery:")
        pipe.expire.assert_called_once_with(key, USAGE_TTL_S)

    def test_stored_limit_overrides_default(self):
        self.gate.r.get.side_effect = lambda key: b"5" if key == "quota:limit:acct-1" else b"7"

        assert not self.gate.can_discover("acct-1")

    def test_corrupted_limit_uses_default(self):
        self.gate.r.get.side_effect = lambda key: b"unlimited" if key == "quota:limit:acct-1" else b"7"

        assert self.gate.limit_for("acct-1") == 100
        assert self.gate.can_discover("acct-1")

    def test_corrupted_usage_reads_as_zero(self):
        self.gate.r.get.side_effect = lambda key: b"1" if key == "quota:limit:acct-1" else b"oops"

        assert self.gate.usage("acct-1") == 0
        assert self.gate.can_discover("acct-1")

    def test_store_down_fails_open(self):
        self.gate.r.get.side_effect = redis.ConnectionError("down")

        assert self.gate.can_discover("acct-1")

    def test_record_usage_store_down(self):
        self.gate.r.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")

        assert self.gate.record_usage("acct-1") == 0


class TestSlackNotifier:
    """Test the discovery announcement."""

    def setup_method(self):
        self.leads = [
            build_lead(
                RawCandidate(name=name, company="Acme", source=SourceKind.MARKETPLACE, email=f"{name.lower()}@acme.io"),
                Annotation(intent=intent),
                [],
            )
            for name, intent in [("Ann", Level.LOW), ("Bo", Level.HIGH), ("Cy", Level.MEDIUM), ("Di", Level.UNKNOWN)]
        ]

    def test_mock_mode(self):
        notifier = SlackNotifier(token="")

        assert notifier.send_discovery_notification("acct-1", self.leads) == "mock_timestamp_123"

    def test_message_lists_top_three(self):
        message = SlackNotifier(token="")._build_discovery_message("acct-1", self.leads)

        assert message["text"].endswith("4 leads discovered for account acct-1")
        top = message["blocks"][-1]["text"]["text"]
        assert top.index("Bo") < top.index("Cy") < top.index("Ann")
        assert "Di" not in top

    @patch("integrations.slack.WebClient")
    def test_posts_to_channel(self, mock_client):
        mock_client.return_value.chat_postMessage.return_value = {"ts": "1700000000.0001"}
        notifier = SlackNotifier(token="xoxb-test", default_channel="#leads")

        assert notifier.send_discovery_notification("acct-1", self.leads) == "1700000000.0001"
        assert mock_client.return_value.chat_postMessage.call_args.kwargs["channel"] == "#leads"

    @patch("integrations.slack.WebClient")
    def test_api_error_returns_none(self, mock_client):
        mock_client.return_value.chat_postMessage.side_effect = SlackApiError("channel_not_found", {"ok": False})
        notifier = SlackNotifier(token="xoxb-test")

        assert notifier.send_discovery_notification("acct-1", self.leads) is None
