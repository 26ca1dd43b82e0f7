"""
Gap scorer — turns one keyword's official rank + classified competitors
(+ optional keyword metrics) into an opportunity score and gap reason.

Scoring cascade (weights and thresholds come from the ScoringProfile):
  rank          official site absent or below poor_rank_threshold
  reseller      a ticket reseller outranks the official site
  media         media / fan content outranks it on a question or experience keyword
  ticket_intent "ticket" keyword with official rank worse than ticket threshold
  onboarding    "first time" / "experience" keyword worse than onboarding threshold
  logistics     "parking" keyword worse than parking threshold

Every rule that fires adds its weight; only the last one to fire names the
gap. Keyword metrics then nudge the score (bonus for high volume + low
difficulty, penalty for very high difficulty) and the total is clamped to
0-10. A gap is only flagged when a rule fired; metrics alone never make one.
"""

import logging
import re
from typing import Optional

from utils.config import MAX_COMPETITORS, ScoringProfile, get_profile
from utils.models import Category, ClassifiedResult, GapResult, KeywordMetrics

logger = logging.getLogger(__name__)

MIN_OPPORTUNITY = 0
MAX_OPPORTUNITY = 10

NO_GAP_REASON = "No significant competitive gap detected"

RECOMMENDATIONS = {
    "none":          "No action needed - keep the official page current for this query.",
    "rank":          "Build a dedicated official landing page for this query and link it from the main navigation.",
    "reseller":      "Promote official ticket sales: add an event ticket page with structured data and verified-seller messaging.",
    "media":         "Publish official answers (FAQ, previews, game notes) so the team site becomes the authoritative source.",
    "ticket_intent": "Create an official ticket hub page optimized for this query with a clear purchase path.",
    "onboarding":    "Add a first-time fan guide covering seating, entry, bag policy and what to expect on game day.",
    "logistics":     "Publish a parking and transportation guide with lot maps, pricing and arrival times.",
    "estimated":     "Confirm with live ranking data before investing - score estimated from keyword value.",
}

_QUESTION_WORDS = {
    "how", "what", "where", "when", "why", "who", "which",
    "is", "are", "can", "do", "does", "best",
}
_EXPERIENCE_PHRASES = (
    "experience", "first time", "game day", "gameday", "tailgat",
    "visitor", "guide", "what to bring", "things to do",
)


def clamp_opportunity(value: int) -> int:
    return max(MIN_OPPORTUNITY, min(MAX_OPPORTUNITY, int(value)))


def display_rank(rank: Optional[int], profile: Optional[ScoringProfile] = None) -> str:
    """Bucket an actual rank into its display label ('Excellent (#1)', ...)."""
    profile = profile or get_profile()
    if not rank or rank < 1:
        return profile.not_found_label
    for max_rank, label in profile.rank_buckets:
        if max_rank is None or rank <= max_rank:
            return label
    return profile.not_found_label


def is_question_or_experience(keyword: str) -> bool:
    kw = keyword.lower()
    words = re.findall(r"[a-z']+", kw)
    if "?" in kw or (words and words[0] in _QUESTION_WORDS) or "best" in words:
        return True
    return any(phrase in kw for phrase in _EXPERIENCE_PHRASES)


def _fails(rank: Optional[int], threshold: int) -> bool:
    """Official rank counts as failing when absent or worse than threshold."""
    return rank is None or rank > threshold


def _outranking(
    competitors: list[ClassifiedResult],
    categories: set,
    official_rank: Optional[int],
) -> list[ClassifiedResult]:
    return sorted(
        (
            c for c in competitors
            if c.category in categories
            and (official_rank is None or c.rank < official_rank)
        ),
        key=lambda c: c.rank,
    )


def score_gap(
    keyword: str,
    official_rank: Optional[int],
    competitors: list[ClassifiedResult],
    metrics: Optional[KeywordMetrics] = None,
    profile: Optional[ScoringProfile] = None,
    team_sites: Optional[list[str]] = None,
) -> GapResult:
    """
    Score one keyword from live data. Pure; is_real_data is always True.

    Args:
        keyword:       the search phrase that was ranked
        official_rank: best rank of any official-site result, None if absent
        competitors:   non-official results, already categorized
        metrics:       volume/difficulty for this keyword, if the provider had them
        profile:       scoring policy (defaults to GAP_PROFILE)
        team_sites:    official domains seen in the results, for reporting
    """
    profile = profile or get_profile()
    kw = keyword.lower()
    rank = official_rank if official_rank and official_rank > 0 else None
    rank_text = f"#{rank}" if rank else "not found"

    opportunity = profile.base_opportunity
    fired = False
    gap_reason = ""
    gap_type = "none"

    if _fails(rank, profile.poor_rank_threshold):
        opportunity += profile.rank_weight
        fired = True
        gap_type = "rank"
        gap_reason = (
            f"Official site ranks #{rank}, outside the top {profile.poor_rank_threshold}"
            if rank else "Official site not found in the top results"
        )

    resellers = _outranking(competitors, {Category.TICKET_RESELLER}, rank)
    if resellers:
        opportunity += profile.reseller_weight
        fired = True
        gap_type = "reseller"
        names = ", ".join(f"{r.domain} (#{r.rank})" for r in resellers[:2])
        gap_reason = f"Revenue loss: {names} outrank the official site ({rank_text})"

    if is_question_or_experience(kw):
        media = _outranking(competitors, {Category.SPORTS_MEDIA, Category.FAN_CONTENT}, rank)
        if media:
            opportunity += profile.media_weight
            fired = True
            gap_type = "media"
            top = media[0]
            gap_reason = (
                f"{top.domain} (#{top.rank}) answers this fan question ahead of "
                f"the official site ({rank_text})"
            )

    if "ticket" in kw and _fails(rank, profile.ticket_rank_threshold):
        opportunity += profile.ticket_weight
        fired = True
        gap_type = "ticket_intent"
        gap_reason = "Critical revenue keyword - official ticket sales opportunity"

    if ("first time" in kw or "experience" in kw) and _fails(rank, profile.onboarding_rank_threshold):
        opportunity += profile.onboarding_weight
        fired = True
        gap_type = "onboarding"
        gap_reason = "Missing fan onboarding content - high conversion potential"

    if "parking" in kw and _fails(rank, profile.parking_rank_threshold):
        opportunity += profile.parking_weight
        fired = True
        gap_type = "logistics"
        gap_reason = "Missing game day logistics - fan experience gap"

    if metrics is not None:
        if (
            metrics.search_volume > profile.high_volume
            and metrics.difficulty < profile.low_difficulty
        ):
            opportunity += profile.metrics_bonus
            if fired:
                gap_reason += (
                    f" (quick win: {metrics.search_volume:,}/mo, difficulty {metrics.difficulty})"
                )
        if metrics.difficulty > profile.high_difficulty:
            opportunity -= profile.metrics_penalty
            if fired:
                gap_reason += f" (saturated: difficulty {metrics.difficulty})"

    opportunity = clamp_opportunity(opportunity)

    if profile.flag_any_signal:
        has_gap = fired and opportunity > 0
    else:
        has_gap = fired and opportunity >= profile.min_gap_opportunity

    if not has_gap:
        gap_type = "none"
        gap_reason = (
            f"Official site ranks #{rank} - performing well"
            if rank and rank <= 3 else NO_GAP_REASON
        )

    logger.info(
        "Scored %r: official=%s opportunity=%d gap=%s (%s)",
        keyword, rank_text, opportunity, has_gap, gap_type,
    )

    return GapResult(
        keyword=keyword,
        has_gap=has_gap,
        opportunity=opportunity,
        gap_reason=gap_reason,
        gap_type=gap_type,
        recommendation=RECOMMENDATIONS[gap_type],
        team_rank=display_rank(rank, profile),
        actual_rank=rank,
        competitors=sorted(competitors, key=lambda c: c.rank)[:MAX_COMPETITORS],
        team_sites=list(team_sites or []),
        search_volume=metrics.search_volume if metrics else None,
        difficulty=metrics.difficulty if metrics else None,
        is_real_data=True,
    )
