"""
Official Site Gap Analysis Workflow

Finds the search keywords where a team's official site is losing visibility
to ticket resellers, media outlets and fan sites, and ranks them by
opportunity score.

Flow:
  1. Validate inputs (organization name, category/sport, contact)
  2. Expand the keyword templates for the organization + sport
  3. Batch-fetch volume + difficulty for the first METRICS_KEYWORD_CAP keywords
  4. Rank the first RANKED_KEYWORD_CAP keywords one at a time (rate limited),
     classify each result, score the gap — estimated result on any failure
  5. No gaps at all → probe a few more keywords with estimated data, keeping
     only high-opportunity ones
  6. Sort by opportunity, truncate, summarize

inputs:
    organization_name   e.g. "Duke Blue Devils"
    category            e.g. "basketball"
    contact             e.g. "ops@goduke.com" — required, only ever logged masked
"""

import logging
import random
import time
from typing import Optional

from utils.config import (
    FALLBACK_PROBE_COUNT,
    HIGH_OPPORTUNITY,
    MAX_RESULTS,
    METRICS_KEYWORD_CAP,
    RANKED_KEYWORD_CAP,
    ScoringProfile,
    get_profile,
)
from utils.dataforseo import RankingClient
from utils.domains import classify_result
from utils.errors import ClassificationError, GapAnalysisError, InvalidInput
from utils.fallback import synthesize_gap
from utils.gap_scoring import score_gap
from utils.models import (
    AnalysisSummary,
    ClassifiedResult,
    GapResult,
    KeywordMetrics,
    SearchResultItem,
)

logger = logging.getLogger(__name__)


# ── Keyword generation ───────────────────────────────────────────────────────

# Ordered so the ranked subset covers every intent: tickets, schedule,
# logistics, onboarding, experience.
KEYWORD_TEMPLATES = [
    "{team} tickets",
    "{team} {sport} tickets",
    "{team} {sport} schedule",
    "{team} parking",
    "{team} first time visitor guide",
    "{team} game day experience",
    "{team} season tickets",
    "what to bring to {team} {sport} game",
    "cheap {team} tickets",
    "{team} student tickets",
    "{team} stadium parking",
    "{team} {sport} roster",
    "{team} tailgating",
    "hotels near {team} stadium",
    "where to sit at {team} {sport} game",
    "{team} merchandise",
]

MIN_KEYWORD_LENGTH = 3
MAX_KEYWORD_LENGTH = 80


def build_gap_keywords(organization_name: str, category: str) -> list[str]:
    """
    Expand KEYWORD_TEMPLATES for one organization + sport.

    Lower-cased, whitespace-collapsed, deduplicated in template order, and
    limited to 3-80 characters with at least two words.
    """
    team = organization_name.lower().strip()
    sport = category.lower().strip()

    seen: set[str] = set()
    keywords: list[str] = []
    for template in KEYWORD_TEMPLATES:
        kw = " ".join(template.format(team=team, sport=sport).split())
        if not MIN_KEYWORD_LENGTH <= len(kw) <= MAX_KEYWORD_LENGTH:
            continue
        if len(kw.split()) < 2 or kw in seen:
            continue
        seen.add(kw)
        keywords.append(kw)

    return keywords


# ── Per-keyword scoring ──────────────────────────────────────────────────────

def score_ranked_keyword(
    keyword: str,
    items: list[SearchResultItem],
    organization_name: str,
    metrics: Optional[KeywordMetrics] = None,
    profile: Optional[ScoringProfile] = None,
) -> GapResult:
    """Classify live results for one keyword and score the gap."""
    classified: list[ClassifiedResult] = []
    for item in items:
        try:
            classified.append(classify_result(item, organization_name))
        except ClassificationError as e:
            logger.warning("Skipping result for %r: %s", keyword, e)

    official = [c for c in classified if c.is_official]
    competitors = [c for c in classified if not c.is_official]
    official_rank = min((c.rank for c in official), default=None)

    team_sites: list[str] = []
    for c in official:
        if c.domain not in team_sites:
            team_sites.append(c.domain)

    return score_gap(
        keyword,
        official_rank,
        competitors,
        metrics=metrics,
        profile=profile,
        team_sites=team_sites,
    )


def _mask_contact(contact: str) -> str:
    name, at, domain = contact.partition("@")
    if not at:
        return contact[:2] + "***"
    return f"{name[:1]}***@{domain}"


def summarize(
    organization_name: str,
    category: str,
    profile: ScoringProfile,
    results: list[GapResult],
    keywords_generated: int,
    keywords_analyzed: int,
) -> AnalysisSummary:
    """Sort results by opportunity (highest first), truncate and aggregate."""
    ranked = sorted(results, key=lambda r: r.opportunity, reverse=True)[:MAX_RESULTS]
    gaps = [r for r in ranked if r.has_gap]

    gap_types: list[str] = []
    for r in gaps:
        if r.gap_type not in gap_types:
            gap_types.append(r.gap_type)

    return AnalysisSummary(
        organization=organization_name,
        category=category,
        profile=profile.name,
        results=ranked,
        keywords_generated=keywords_generated,
        keywords_analyzed=keywords_analyzed,
        gaps_found=len(gaps),
        high_opportunity_count=sum(1 for r in ranked if r.opportunity >= HIGH_OPPORTUNITY),
        total_search_volume=sum(r.search_volume or 0 for r in ranked),
        gap_types=gap_types,
        real_data_points=sum(1 for r in ranked if r.is_real_data),
        synthetic_data_points=sum(1 for r in ranked if not r.is_real_data),
    )


# ── Workflow ──────────────────────────────────────────────────────────────────

async def run_gap_analysis(
    organization_name: str,
    category: str,
    contact: str,
    client: Optional[RankingClient] = None,
    profile: Optional[ScoringProfile] = None,
    rng: Optional[random.Random] = None,
) -> AnalysisSummary:
    """
    Run the full gap analysis for one organization.

    Raises InvalidInput before any external call when a required field is
    blank. Every other failure degrades to estimated data for that keyword.
    """
    organization_name = (organization_name or "").strip()
    category = (category or "").strip()
    contact = (contact or "").strip()

    missing = [
        field for field, value in (
            ("organizationName", organization_name),
            ("category", category),
            ("contact", contact),
        )
        if not value
    ]
    if missing:
        raise InvalidInput(missing)

    profile = profile or get_profile()
    client = client or RankingClient.from_env()
    rng = rng or random.Random()

    start = time.monotonic()
    logger.info(
        "Gap analysis started: %s (%s) for %s, profile=%s",
        organization_name, category, _mask_contact(contact), profile.name,
    )

    keywords = build_gap_keywords(organization_name, category)

    try:
        metrics = await client.fetch_keyword_metrics(keywords[:METRICS_KEYWORD_CAP]) or {}
    except GapAnalysisError as e:
        logger.warning("Keyword metrics unavailable, scoring without them: %s", e)
        metrics = {}

    results: list[GapResult] = []
    ranked_keywords = keywords[:RANKED_KEYWORD_CAP]
    for kw in ranked_keywords:
        kw_metrics = metrics.get(kw)
        try:
            items = await client.fetch_ranking(kw)
            if items is None:
                result = synthesize_gap(kw, organization_name, kw_metrics, rng=rng, profile=profile)
            else:
                result = score_ranked_keyword(kw, items, organization_name, kw_metrics, profile)
        except GapAnalysisError as e:
            logger.warning("Scoring failed for %r, using estimated result: %s", kw, e)
            result = synthesize_gap(kw, organization_name, kw_metrics, rng=rng, profile=profile)
        results.append(result)

    probed = 0
    if not any(r.has_gap for r in results):
        extra = keywords[RANKED_KEYWORD_CAP:RANKED_KEYWORD_CAP + FALLBACK_PROBE_COUNT]
        for kw in extra:
            probed += 1
            estimate = synthesize_gap(kw, organization_name, metrics.get(kw), rng=rng, profile=profile)
            if estimate.has_gap and estimate.opportunity >= profile.fallback_accept:
                results.append(estimate)
        logger.info("No gaps in ranked keywords; probed %d more", probed)

    summary = summarize(
        organization_name,
        category,
        profile,
        results,
        keywords_generated=len(keywords),
        keywords_analyzed=len(ranked_keywords) + probed,
    )

    logger.info(
        "Gap analysis done: %s — %d gaps, %d real / %d estimated, %.1fs",
        organization_name, summary.gaps_found, summary.real_data_points,
        summary.synthetic_data_points, time.monotonic() - start,
    )
    return summary
