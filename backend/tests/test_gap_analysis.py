"""Gap analysis workflow tests — scripted ranking client, pinned randomness."""

import asyncio
import random
from unittest.mock import MagicMock

import httpx
import pytest

from utils.config import (
    CONSERVATIVE,
    FALLBACK_PROBE_COUNT,
    METRICS_KEYWORD_CAP,
    RANKED_KEYWORD_CAP,
)
from utils.dataforseo import OPTIMIZED_SERP, VOLUME_ENDPOINT, RankingClient
from utils.errors import AcquisitionFailure, InvalidInput
from utils.models import KeywordMetrics, SearchResultItem
from utils.rate_limiter import RateLimiter
from workflows.gap_analysis import (
    KEYWORD_TEMPLATES,
    build_gap_keywords,
    run_gap_analysis,
    score_ranked_keyword,
)

TEAM = "Duke Blue Devils"
SPORT = "basketball"
CONTACT = "ops@goduke.com"
TICKETS = "duke blue devils tickets"


def run(client, **kwargs):
    kwargs.setdefault("profile", CONSERVATIVE)
    kwargs.setdefault("rng", random.Random(7))
    return asyncio.run(run_gap_analysis(TEAM, SPORT, CONTACT, client=client, **kwargs))


def no_gap_rng():
    rng = MagicMock(spec=random.Random)
    rng.random.return_value = 0.99
    return rng


class TestBuildGapKeywords:
    """Template expansion."""

    def test_lowercase_and_bound_to_team(self):
        keywords = build_gap_keywords(TEAM, SPORT)

        assert keywords[0] == TICKETS
        assert all(kw == kw.lower() for kw in keywords)
        assert all("duke blue devils" in kw for kw in keywords)
        assert len(keywords) == len(set(keywords))

    def test_dedup_after_whitespace_collapse(self):
        keywords = build_gap_keywords("Duke", "")

        assert keywords.count("duke tickets") == 1
        assert len(keywords) < len(KEYWORD_TEMPLATES)
        assert all("  " not in kw for kw in keywords)

    def test_length_filter(self):
        long_name = "x" * 90
        assert build_gap_keywords(long_name, SPORT) == []


class TestInputValidation:
    """Blank required fields fail before any external call."""

    @pytest.mark.parametrize("org,cat,contact,missing", [
        ("", SPORT, CONTACT, ["organizationName"]),
        ("   ", SPORT, CONTACT, ["organizationName"]),
        (TEAM, "", CONTACT, ["category"]),
        (TEAM, SPORT, "", ["contact"]),
        (None, None, None, ["organizationName", "category", "contact"]),
    ])
    def test_blank_fields(self, make_client, org, cat, contact, missing):
        client = make_client()

        with pytest.raises(InvalidInput) as exc:
            asyncio.run(run_gap_analysis(org, cat, contact, client=client))

        assert exc.value.fields == missing
        assert client.ranking_calls == []
        assert client.metrics_calls == []


class TestLiveAnalysis:
    """Ranking data available for every keyword."""

    def test_reseller_gap_ranked_first(self, make_client, make_items):
        client = make_client(
            rankings={TICKETS: make_items("stubhub.com", "ticketmaster.com", "goduke.com")},
            default=make_items("goduke.com", "espn.com"),
        )

        summary = run(client)

        top = summary.results[0]
        assert top.keyword == TICKETS
        assert top.has_gap is True
        assert top.opportunity >= 6
        assert top.actual_rank == 3
        assert top.team_sites == ["goduke.com"]
        assert summary.gaps_found == 1
        assert summary.gap_types == ["reseller"]
        assert summary.real_data_points == RANKED_KEYWORD_CAP
        assert summary.synthetic_data_points == 0
        assert summary.keywords_analyzed == RANKED_KEYWORD_CAP
        assert summary.profile == "conservative"

    def test_results_sorted_descending(self, make_client, make_items):
        client = make_client(
            rankings={TICKETS: make_items("stubhub.com", "ticketmaster.com", "goduke.com")},
            default=make_items("espn.com", "reddit.com"),
        )

        summary = run(client)

        scores = [r.opportunity for r in summary.results]
        assert scores == sorted(scores, reverse=True)
        assert summary.high_opportunity_count == sum(1 for s in scores if s >= 7)

    def test_ranking_calls_capped(self, make_client, make_items):
        client = make_client(default=make_items("goduke.com"))
        run(client)

        assert len(client.ranking_calls) == RANKED_KEYWORD_CAP
        assert len(client.metrics_calls[0]) == METRICS_KEYWORD_CAP

    def test_metrics_flow_into_results(self, make_client, make_items):
        client = make_client(
            rankings={TICKETS: make_items("stubhub.com", "ticketmaster.com", "goduke.com")},
            default=make_items("goduke.com"),
            metrics={TICKETS: KeywordMetrics(keyword=TICKETS, search_volume=5000, difficulty=10)},
        )

        summary = run(client)

        top = summary.results[0]
        assert top.search_volume == 5000
        assert top.opportunity == 7
        assert summary.total_search_volume == 5000


class TestDegradedAnalysis:
    """Outages and bad data never abort the batch."""

    def test_full_outage(self, make_client):
        client = make_client(default=None, metrics=None)

        summary = run(client)

        assert summary.results
        assert summary.real_data_points == 0
        assert all(r.is_real_data is False for r in summary.results)
        assert summary.synthetic_data_points == len(summary.results)

    def test_one_keyword_raising(self, make_client, make_items):
        client = make_client(
            default=make_items("goduke.com"),
            errors={TICKETS: AcquisitionFailure("socket closed")},
        )

        summary = run(client)

        assert summary.real_data_points == RANKED_KEYWORD_CAP - 1
        broken = [r for r in summary.results if r.keyword == TICKETS]
        assert broken and broken[0].is_real_data is False

    def test_malformed_item_skipped(self):
        items = [
            SearchResultItem(domain="", url="", rank=1),
            SearchResultItem(domain="goduke.com", rank=2),
            SearchResultItem(domain="stubhub.com", rank=3),
        ]

        result = score_ranked_keyword(TICKETS, items, TEAM, profile=CONSERVATIVE)

        assert result.actual_rank == 2
        assert [c.domain for c in result.competitors] == ["stubhub.com"]
        assert result.is_real_data is True

    def test_metrics_failure_scores_without_metrics(self, make_client, make_items):
        client = make_client(
            default=make_items("goduke.com"),
            metrics_error=AcquisitionFailure("metrics endpoint down"),
        )

        summary = run(client, rng=no_gap_rng())

        assert summary.real_data_points == RANKED_KEYWORD_CAP
        assert summary.total_search_volume == 0
        assert all(r.search_volume is None for r in summary.results)

    def test_malformed_metrics_payload_from_provider(self, fake_clock):
        serp = {"status_code": 20000, "tasks": [{"status_code": 20000, "result": [{"items": [
            {"type": "organic", "domain": "goduke.com", "title": "Duke", "url": "https://goduke.com/"},
        ]}]}]}
        bad_volumes = {"status_code": 20000, "tasks": [{"status_code": 20000, "result": ["oops"]}]}
        empty = {"status_code": 20000, "tasks": [{"status_code": 20000, "result": [{"items": []}]}]}

        def handler(request):
            endpoint = request.url.path.removeprefix("/v3/")
            if endpoint == VOLUME_ENDPOINT:
                return httpx.Response(200, json=bad_volumes)
            if endpoint == OPTIMIZED_SERP:
                return httpx.Response(200, json=serp)
            return httpx.Response(200, json=empty)

        client = RankingClient(
            credentials=("login@example.com", "secret"),
            limiter=RateLimiter(0.0, clock=fake_clock),
            transport=httpx.MockTransport(handler),
        )

        summary = run(client, rng=no_gap_rng())

        assert summary.real_data_points == RANKED_KEYWORD_CAP
        assert summary.total_search_volume == 0
        assert summary.results[0].team_rank == "Excellent (#1)"

    def test_unexpected_errors_propagate(self, make_client, make_items):
        client = make_client(
            default=make_items("goduke.com"),
            errors={TICKETS: RuntimeError("bug in scoring")},
        )

        with pytest.raises(RuntimeError):
            run(client)


class TestFallbackProbing:
    """No live gaps → a few estimated probes, high scores only."""

    def test_only_high_opportunity_probes_kept(self, make_client, make_items):
        client = make_client(default=make_items("goduke.com"))
        rng = MagicMock(spec=random.Random)
        # probe 1: gap with jitter 2 (score 8); probes 2 and 3: no gap
        rng.random.side_effect = [0.01, 0.9, 0.99, 0.9, 0.99, 0.9]
        rng.randint.return_value = 2

        summary = run(client, rng=rng)

        assert summary.keywords_analyzed == RANKED_KEYWORD_CAP + FALLBACK_PROBE_COUNT
        assert summary.synthetic_data_points == 1
        assert summary.results[0].is_real_data is False
        assert summary.results[0].opportunity == 8
        assert summary.gap_types == ["estimated"]

    def test_low_probes_discarded(self, make_client, make_items):
        client = make_client(default=make_items("goduke.com"))
        rng = MagicMock(spec=random.Random)
        # probe 1 is a gap but only scores 6, below the acceptance bar
        rng.random.side_effect = [0.01, 0.9, 0.99, 0.9, 0.99, 0.9]
        rng.randint.return_value = 0

        summary = run(client, rng=rng)

        assert summary.synthetic_data_points == 0
        assert summary.gaps_found == 0

    def test_no_probe_when_live_gap_exists(self, make_client, make_items):
        client = make_client(
            rankings={TICKETS: make_items("stubhub.com", "ticketmaster.com", "goduke.com")},
            default=make_items("goduke.com"),
        )
        rng = MagicMock(spec=random.Random)

        summary = run(client, rng=rng)

        rng.random.assert_not_called()
        assert summary.keywords_analyzed == RANKED_KEYWORD_CAP
