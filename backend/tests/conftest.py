"""Shared fixtures: a virtual clock, a scripted ranking client, result helpers."""

import pytest

from utils.config import CONSERVATIVE
from utils.models import SearchResultItem


class FakeClock:
    """Virtual time. sleep() advances now() instantly and records the wait."""

    def __init__(self, start: float = 1000.0):
        self.t = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.t

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds

    def advance(self, seconds: float) -> None:
        self.t += seconds


class FakeRankingClient:
    """Stands in for RankingClient; answers from dicts and records every call."""

    def __init__(self, rankings=None, default=None, metrics=None, errors=None, metrics_error=None):
        self.rankings = rankings or {}
        self.default = default
        self.metrics = metrics
        self.errors = errors or {}
        self.metrics_error = metrics_error
        self.ranking_calls: list[str] = []
        self.metrics_calls: list[list[str]] = []
        self.has_credentials = True

    async def fetch_ranking(self, keyword):
        self.ranking_calls.append(keyword)
        if keyword in self.errors:
            raise self.errors[keyword]
        return self.rankings.get(keyword, self.default)

    async def fetch_keyword_metrics(self, keywords):
        self.metrics_calls.append(list(keywords))
        if self.metrics_error is not None:
            raise self.metrics_error
        return self.metrics


def items(*domains: str) -> list[SearchResultItem]:
    """SearchResultItems ranked in argument order."""
    return [
        SearchResultItem(domain=d, title=f"{d} result", rank=i, url=f"https://{d}/")
        for i, d in enumerate(domains, start=1)
    ]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_client():
    return FakeRankingClient


@pytest.fixture
def make_items():
    return items


@pytest.fixture
def profile():
    return CONSERVATIVE
