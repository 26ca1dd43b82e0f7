"""
DataForSEO client — organic rankings and keyword metrics for gap analysis.

Core calls (live, pay-per-result):
  SERP:
    fetch_ranking()          — top N organic Google results for one keyword
  Keywords Data + DataForSEO Labs:
    fetch_keyword_metrics()  — monthly search volume + difficulty (0-100), batched

Every call goes through one shared RateLimiter and is bounded by a timeout.
Failures never reach the caller: a fetch that times out, gets a non-20000
status, or has no credentials to send returns None and the orchestrator
substitutes an estimated result.

SERP requests try the cheaper "regular" endpoint first and hop once to
"advanced" when the provider answers not-found. There is no further retry.

Required env vars:
    DATAFORSEO_LOGIN      your DataForSEO account email
    DATAFORSEO_PASSWORD   your DataForSEO account password
"""

import asyncio
import base64
import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from utils.config import (
    get_credentials,
    get_location_name,
    get_request_timeout,
)
from utils.errors import AcquisitionFailure
from utils.models import KeywordMetrics, SearchResultItem
from utils.rate_limiter import RateLimiter, get_rate_limiter

logger = logging.getLogger(__name__)

DFS_BASE = "https://api.dataforseo.com/v3"

OPTIMIZED_SERP = "serp/google/organic/live/regular"
STANDARD_SERP = "serp/google/organic/live/advanced"
VOLUME_ENDPOINT = "keywords_data/google_ads/search_volume/live"
DIFFICULTY_ENDPOINT = "dataforseo_labs/google/bulk_keyword_difficulty/live"

NOT_FOUND_CODES = {404, 40400}


class DataForSEOError(AcquisitionFailure):
    """Non-success status from DataForSEO (HTTP, API or task level)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def not_found(self) -> bool:
        return self.status_code in NOT_FOUND_CODES


# ── Auth ─────────────────────────────────────────────────────────────────────

def _auth_header(login: str, password: str) -> str:
    token = base64.b64encode(f"{login}:{password}".encode()).decode()
    return f"Basic {token}"


def _domain_from_url(url: str) -> str:
    """Extract bare domain from any URL string."""
    if not url:
        return ""
    if not url.startswith("http"):
        url = "https://" + url
    return urlparse(url).netloc.replace("www.", "").strip("/")


def _check_status(data: dict) -> None:
    """
    DataForSEO wraps everything in a status code — 20000 = success.
    Raises DataForSEOError on API-level or task-level errors.
    """
    if data.get("status_code", 20000) != 20000:
        raise DataForSEOError(
            f"DataForSEO error {data['status_code']}: {data.get('status_message', 'Unknown')}",
            data["status_code"],
        )

    try:
        task = data["tasks"][0]
    except (KeyError, IndexError, TypeError):
        raise DataForSEOError("Unexpected DataForSEO response structure")
    if not isinstance(task, dict):
        raise DataForSEOError("Unexpected DataForSEO task structure")

    if task.get("status_code", 20000) != 20000:
        raise DataForSEOError(
            f"DataForSEO task error {task['status_code']}: {task.get('status_message', '')}",
            task["status_code"],
        )


class RankingClient:
    """
    DataForSEO acquisition layer.

    Args:
        credentials:   (login, password); None puts the client in fallback mode
        limiter:       shared RateLimiter (one per process in production)
        timeout:       seconds allowed per outbound call, including the HTTP round trip
        location_name: DataForSEO location, e.g. "United States"
        depth:         organic results requested per keyword
        transport:     optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        credentials: Optional[tuple[str, str]] = None,
        limiter: Optional[RateLimiter] = None,
        timeout: float = 25.0,
        location_name: str = "United States",
        depth: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.limiter = limiter or get_rate_limiter()
        self.timeout = timeout
        self.location_name = location_name
        self.depth = depth
        self._transport = transport

    @classmethod
    def from_env(cls, limiter: Optional[RateLimiter] = None) -> "RankingClient":
        client = cls(
            credentials=get_credentials(),
            limiter=limiter,
            timeout=get_request_timeout(),
            location_name=get_location_name(),
        )
        if not client.has_credentials:
            logger.warning(
                "DATAFORSEO_LOGIN / DATAFORSEO_PASSWORD not set — all keywords will use estimated data"
            )
        return client

    @property
    def has_credentials(self) -> bool:
        return bool(self.credentials and all(self.credentials))

    # ── Core HTTP call ────────────────────────────────────────────────────────

    async def _send(self, endpoint: str, payload: list[dict]) -> dict:
        login, password = self.credentials
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(
                f"{DFS_BASE}/{endpoint}",
                headers={
                    "Authorization": _auth_header(login, password),
                    "Content-Type": "application/json",
                },
                json=payload,
            )
            if resp.is_error:
                raise DataForSEOError(
                    f"DataForSEO HTTP {resp.status_code} on {endpoint}", resp.status_code
                )
            data = resp.json()

        if not isinstance(data, dict):
            raise DataForSEOError(f"DataForSEO returned a non-object body on {endpoint}")
        _check_status(data)
        return data

    async def _post(self, endpoint: str, payload: list[dict]) -> dict:
        """
        One rate-limited, time-bounded DataForSEO call.
        Raises AcquisitionFailure (or DataForSEOError) on any failure.
        """
        async with self.limiter.throttle(endpoint):
            try:
                return await asyncio.wait_for(self._send(endpoint, payload), self.timeout)
            except asyncio.TimeoutError:
                raise AcquisitionFailure(f"{endpoint} timed out after {self.timeout:.0f}s")
            except httpx.HTTPError as e:
                raise AcquisitionFailure(f"{endpoint} transport error: {e}") from e
            except ValueError as e:
                raise AcquisitionFailure(f"{endpoint} returned invalid JSON: {e}") from e

    # ── Organic SERP ──────────────────────────────────────────────────────────

    async def _fetch_serp(self, keyword: str) -> dict:
        payload = [{
            "keyword": keyword,
            "location_name": self.location_name,
            "language_name": "English",
            "depth": self.depth,
        }]
        try:
            return await self._post(OPTIMIZED_SERP, payload)
        except DataForSEOError as e:
            if not e.not_found:
                raise
            logger.info("Optimized SERP not found for %r — retrying standard endpoint", keyword)
        return await self._post(STANDARD_SERP, payload)

    async def fetch_ranking(self, keyword: str) -> Optional[list[SearchResultItem]]:
        """
        Get top organic Google results for `keyword`.

        Returns:
            SearchResultItems ranked 1..N in page order, or None when the data
            could not be acquired or parsed. An empty list means the provider
            answered with no organic results.
        """
        if not self.has_credentials:
            return None

        try:
            data = await self._fetch_serp(keyword)
        except AcquisitionFailure as e:
            logger.warning("Ranking fetch failed for %r: %s", keyword, e)
            return None

        try:
            items = data["tasks"][0]["result"][0]["items"] or []
        except (KeyError, IndexError, TypeError):
            return []

        results: list[SearchResultItem] = []
        try:
            for item in items:
                if not isinstance(item, dict) or item.get("type") != "organic":
                    continue

                url = item.get("url") or ""
                results.append(SearchResultItem(
                    domain=item.get("domain") or _domain_from_url(url),
                    title=item.get("title") or "",
                    rank=len(results) + 1,
                    url=url,
                ))

                if len(results) >= self.depth:
                    break
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Malformed SERP payload for %r: %s", keyword, e)
            return None

        return results

    # ── Keywords Data + DFS Labs — volume and difficulty ──────────────────────

    async def fetch_keyword_metrics(
        self, keywords: list[str]
    ) -> Optional[dict[str, KeywordMetrics]]:
        """
        Get monthly search volume and keyword difficulty for a batch of keywords.

        Returns:
            {keyword: KeywordMetrics} for every keyword the provider had both
            numbers for (keys lower-cased), or None when either call failed or
            answered with a malformed payload.
        """
        if not keywords:
            return {}
        if not self.has_credentials:
            return None

        payload = [{
            "keywords": keywords[:700],
            "location_name": self.location_name,
            "language_name": "English",
        }]

        try:
            volume_data = await self._post(VOLUME_ENDPOINT, payload)
            difficulty_data = await self._post(DIFFICULTY_ENDPOINT, payload)
        except AcquisitionFailure as e:
            logger.warning("Keyword metrics fetch failed: %s", e)
            return None

        try:
            volume_items = volume_data["tasks"][0]["result"] or []
        except (KeyError, IndexError, TypeError):
            volume_items = []
        try:
            difficulty_items = difficulty_data["tasks"][0]["result"][0]["items"] or []
        except (KeyError, IndexError, TypeError):
            difficulty_items = []

        try:
            volumes = {
                (item.get("keyword") or "").lower(): item.get("search_volume") or 0
                for item in volume_items if item
            }
            difficulties = {
                (item.get("keyword") or "").lower(): item.get("keyword_difficulty")
                for item in difficulty_items if item
            }

            metrics: dict[str, KeywordMetrics] = {}
            for kw, volume in volumes.items():
                kd = difficulties.get(kw)
                if not kw or kd is None:
                    continue
                metrics[kw] = KeywordMetrics(
                    keyword=kw,
                    search_volume=max(int(volume), 0),
                    difficulty=max(0, min(100, int(kd))),
                )
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Malformed keyword metrics payload: %s", e)
            return None

        return metrics
