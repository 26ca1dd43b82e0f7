"""
Gap engine configuration — environment lookups, caps, and scoring profiles.

Required env vars (live data only; without them every fetch degrades to fallback):
    DATAFORSEO_LOGIN      your DataForSEO account email
    DATAFORSEO_PASSWORD   your DataForSEO account password

Optional env vars:
    GAP_PROFILE           "conservative" (default) or "aggressive"
    DATAFORSEO_LOCATION   DataForSEO location_name (default "United States")
    RATE_LIMIT_MS         minimum gap between outbound calls (default 3000)
    DATAFORSEO_TIMEOUT    per-call timeout in seconds (default 25)
"""

import os
from dataclasses import dataclass
from typing import Optional


# ── Request caps ──────────────────────────────────────────────────────────────
# Every ranked keyword costs one rate-limited call, so these bound latency.

METRICS_KEYWORD_CAP = 10
RANKED_KEYWORD_CAP = 8
FALLBACK_PROBE_COUNT = 3
MAX_RESULTS = 10
MAX_COMPETITORS = 5
HIGH_OPPORTUNITY = 7

DEFAULT_LOCATION = "United States"
DEFAULT_RATE_LIMIT_MS = 3000
DEFAULT_TIMEOUT = 25.0


def get_credentials() -> Optional[tuple[str, str]]:
    """Return (login, password), or None when either half is missing."""
    login = os.environ.get("DATAFORSEO_LOGIN", "").strip()
    password = os.environ.get("DATAFORSEO_PASSWORD", "").strip()
    if not login or not password:
        return None
    return login, password


def get_location_name() -> str:
    return os.environ.get("DATAFORSEO_LOCATION", "").strip() or DEFAULT_LOCATION


def get_rate_limit_seconds() -> float:
    raw = os.environ.get("RATE_LIMIT_MS", "")
    try:
        return max(int(raw), 0) / 1000.0
    except ValueError:
        return DEFAULT_RATE_LIMIT_MS / 1000.0


def get_request_timeout() -> float:
    raw = os.environ.get("DATAFORSEO_TIMEOUT", "")
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_TIMEOUT
    return value if value > 0 else DEFAULT_TIMEOUT


# ── Scoring profiles ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ScoringProfile:
    """
    One deployment's scoring policy. The rule cascade itself lives in
    utils.gap_scoring; everything tunable about it lives here.

    rank_buckets is an ordered tuple of (max_rank, label); the first bucket
    whose max_rank >= rank wins, None max_rank catches everything else.
    """
    name: str
    base_opportunity: int
    poor_rank_threshold: int
    rank_weight: int
    reseller_weight: int
    media_weight: int
    ticket_weight: int
    ticket_rank_threshold: int
    onboarding_weight: int
    onboarding_rank_threshold: int
    parking_weight: int
    parking_rank_threshold: int
    metrics_bonus: int
    metrics_penalty: int
    high_volume: int
    low_difficulty: int
    high_difficulty: int
    min_gap_opportunity: int
    flag_any_signal: bool
    fallback_accept: int
    rank_buckets: tuple
    not_found_label: str = "Not Found"


CONSERVATIVE = ScoringProfile(
    name="conservative",
    base_opportunity=3,
    poor_rank_threshold=5,
    rank_weight=3,
    reseller_weight=3,
    media_weight=1,
    ticket_weight=2,
    ticket_rank_threshold=5,
    onboarding_weight=2,
    onboarding_rank_threshold=3,
    parking_weight=1,
    parking_rank_threshold=3,
    metrics_bonus=1,
    metrics_penalty=1,
    high_volume=1000,
    low_difficulty=30,
    high_difficulty=70,
    min_gap_opportunity=4,
    flag_any_signal=False,
    fallback_accept=7,
    rank_buckets=(
        (1, "Excellent (#1)"),
        (3, "Very Good (#2-3)"),
        (5, "Good (#4-5)"),
        (10, "Fair (#6-10)"),
        (None, "Poor (#11+)"),
    ),
)

AGGRESSIVE = ScoringProfile(
    name="aggressive",
    base_opportunity=3,
    poor_rank_threshold=3,
    rank_weight=3,
    reseller_weight=4,
    media_weight=2,
    ticket_weight=2,
    ticket_rank_threshold=5,
    onboarding_weight=2,
    onboarding_rank_threshold=3,
    parking_weight=1,
    parking_rank_threshold=3,
    metrics_bonus=2,
    metrics_penalty=1,
    high_volume=1000,
    low_difficulty=30,
    high_difficulty=70,
    min_gap_opportunity=4,
    flag_any_signal=True,
    fallback_accept=7,
    rank_buckets=(
        (1, "Excellent (#1)"),
        (3, "Good (#2-3)"),
        (5, "Fair (#4-5)"),
        (None, "Poor (#6+)"),
    ),
)

PROFILES = {
    CONSERVATIVE.name: CONSERVATIVE,
    AGGRESSIVE.name: AGGRESSIVE,
}


def get_profile(name: Optional[str] = None) -> ScoringProfile:
    """
    Resolve a profile by name, falling back to GAP_PROFILE and then to
    conservative. Unknown names raise KeyError so a typo in deployment
    config is loud rather than silently conservative.
    """
    key = (name or os.environ.get("GAP_PROFILE", "") or CONSERVATIVE.name).strip().lower()
    if key not in PROFILES:
        raise KeyError(f"Unknown gap profile: {key!r} (expected one of {sorted(PROFILES)})")
    return PROFILES[key]
