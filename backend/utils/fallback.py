"""
Fallback synthesizer — a structurally identical GapResult for keywords the
ranking provider could not answer (no credentials, outage, timeout, bad status).

Intent detection is deterministic. Only the gap/no-gap draw, the score jitter
and the display rank use the injected random source, so tests pin outcomes
with random.Random(seed). Results are always is_real_data=False.
"""

import logging
import random
from typing import Optional

from utils.config import MAX_COMPETITORS, ScoringProfile, get_profile
from utils.domains import categorize_domain
from utils.gap_scoring import RECOMMENDATIONS, clamp_opportunity, display_rank
from utils.models import ClassifiedResult, GapResult, KeywordMetrics

logger = logging.getLogger(__name__)

HIGH_VALUE_GAP_PROBABILITY = 0.15
GENERIC_GAP_PROBABILITY = 0.03

SYNTHETIC_GAP_BASE = 6
SYNTHETIC_GAP_JITTER = 2
SYNTHETIC_NO_GAP_SCORE = 2

ESTIMATED_REASON = "API data unavailable - estimated opportunity based on keyword value"
ESTIMATED_NO_GAP_REASON = "No significant gap detected in market analysis"

_SIMULATED = {
    "tickets": ["stubhub.com", "ticketmaster.com", "seatgeek.com", "vividseats.com"],
    "travel":  ["spothero.com", "tripadvisor.com", "booking.com"],
    "general": ["espn.com", "reddit.com", "cbssports.com", "wikipedia.org"],
}


def is_high_value(keyword: str) -> bool:
    kw = keyword.lower()
    return "ticket" in kw or "first time" in kw


def simulated_competitors(keyword: str) -> list[ClassifiedResult]:
    """Typical competitor set for the keyword's intent. Deterministic."""
    kw = keyword.lower()
    if "ticket" in kw:
        domains = _SIMULATED["tickets"]
    elif any(t in kw for t in ("parking", "hotel", "stay", "travel")):
        domains = _SIMULATED["travel"]
    else:
        domains = _SIMULATED["general"]

    return [
        ClassifiedResult(
            domain=d,
            title="",
            rank=i,
            url=f"https://{d}/",
            is_official=False,
            category=categorize_domain(d),
        )
        for i, d in enumerate(domains[:MAX_COMPETITORS], start=1)
    ]


def synthesize_gap(
    keyword: str,
    organization_name: str,
    metrics: Optional[KeywordMetrics] = None,
    rng: Optional[random.Random] = None,
    profile: Optional[ScoringProfile] = None,
) -> GapResult:
    """Estimated GapResult for `keyword`; is_real_data is always False."""
    rng = rng or random.Random()
    profile = profile or get_profile()

    chance = HIGH_VALUE_GAP_PROBABILITY if is_high_value(keyword) else GENERIC_GAP_PROBABILITY
    has_gap = rng.random() < chance

    if has_gap:
        opportunity = SYNTHETIC_GAP_BASE + rng.randint(0, SYNTHETIC_GAP_JITTER)
        if (
            metrics is not None
            and metrics.search_volume > profile.high_volume
            and metrics.difficulty < profile.low_difficulty
        ):
            opportunity += profile.metrics_bonus
    else:
        opportunity = SYNTHETIC_NO_GAP_SCORE

    team_rank = profile.not_found_label if rng.random() < 0.4 else display_rank(8, profile)
    gap_type = "estimated" if has_gap else "none"

    logger.warning(
        "Using estimated result for %r (%s): opportunity=%d gap=%s",
        keyword, organization_name, opportunity, has_gap,
    )

    return GapResult(
        keyword=keyword,
        has_gap=has_gap,
        opportunity=clamp_opportunity(opportunity),
        gap_reason=ESTIMATED_REASON if has_gap else ESTIMATED_NO_GAP_REASON,
        gap_type=gap_type,
        recommendation=RECOMMENDATIONS[gap_type],
        team_rank=team_rank,
        actual_rank=None,
        competitors=simulated_competitors(keyword),
        team_sites=[],
        search_volume=metrics.search_volume if metrics else None,
        difficulty=metrics.difficulty if metrics else None,
        is_real_data=False,
    )
