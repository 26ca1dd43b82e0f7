"""
Gap engine data model.

Field names are snake_case in Python and camelCase on the wire
(hasGap, isRealData, teamRank, realDataPoints, ...).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Category(str, Enum):
    TICKET_RESELLER = "TicketReseller"
    SPORTS_MEDIA = "SportsMedia"
    FAN_CONTENT = "FanContent"
    TRAVEL_SITE = "TravelSite"
    OTHER = "Other"


class SearchResultItem(_CamelModel):
    """One organic result. rank is the 1-based position on the page."""
    domain: str = ""
    title: str = ""
    rank: int = Field(ge=1)
    url: str = ""


class ClassifiedResult(SearchResultItem):
    is_official: bool = False
    category: Optional[Category] = None


class KeywordMetrics(_CamelModel):
    keyword: str
    search_volume: int = Field(default=0, ge=0)
    difficulty: int = Field(default=0, ge=0, le=100)


class GapResult(_CamelModel):
    keyword: str
    has_gap: bool
    opportunity: int = Field(ge=0, le=10)
    gap_reason: str = Field(min_length=1)
    gap_type: str = "none"
    recommendation: str = ""
    team_rank: str
    actual_rank: Optional[int] = None
    competitors: list[ClassifiedResult] = Field(default_factory=list, max_length=5)
    team_sites: list[str] = Field(default_factory=list)
    search_volume: Optional[int] = None
    difficulty: Optional[int] = None
    is_real_data: bool


class AnalysisSummary(_CamelModel):
    organization: str
    category: str
    profile: str
    results: list[GapResult] = Field(default_factory=list)
    keywords_generated: int = 0
    keywords_analyzed: int = 0
    gaps_found: int = 0
    high_opportunity_count: int = 0
    total_search_volume: int = 0
    gap_types: list[str] = Field(default_factory=list)
    real_data_points: int = 0
    synthetic_data_points: int = 0
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
