"""
Listing Store Client
====================
Read-only access to the hosted listing store through its PostgREST
endpoint (``{base_url}/rest/v1/<table>``).  Supplies the live views
that the static price model does not cover: latest per-location
summaries, trends, deal listings, filtered listings and hero stats.

The predictor never calls this module.  Transient failures (connection
errors, timeouts, 5xx) are retried with exponential backoff; anything
left over surfaces as ``StoreError``.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import requests
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.records import (
    GeocodedLocation,
    HeroStats,
    Listing,
    LocationSummary,
    LocationWithGeo,
    ScrapeRun,
)
from ml.config import (
    APPLICATION_NAME,
    BOTH,
    DEFAULT_ACTIVE_SOURCES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_TREND_DAYS,
    SUMMARY_ROW_LIMIT,
)

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The listing store could not be queried."""


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code >= 500
    return False


def _parse_total(content_range: Optional[str]) -> int:
    # "0-19/134" -> 134, "*/0" -> 0
    if not content_range or "/" not in content_range:
        return 0
    total = content_range.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else 0


def _quote(value: str) -> str:
    return '"' + value.replace('"', '\\"') + '"'


class ListingStore:
    """Thin PostgREST client over a ``requests.Session``."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_wait=None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, max=4)

        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "x-application-name": APPLICATION_NAME,
            "Accept": "application/json",
        })

    # ── Transport ────────────────────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Any = None,
        headers: Optional[dict] = None,
    ) -> requests.Response:
        url = f"{self.base_url}/rest/v1/{path}"
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=self._retry_wait,
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    response = self.session.request(
                        method, url, params=params, json=json,
                        headers=headers, timeout=self.timeout,
                    )
                    response.raise_for_status()
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise StoreError(f"{method} {path} failed: {e}") from e

        logger.debug("%s %s -> %d", method, path, response.status_code)
        return response

    def _select(self, table: str, params: dict, headers: Optional[dict] = None):
        response = self._request("GET", table, params={"select": "*", **params}, headers=headers)
        try:
            return response.json(), response
        except ValueError as e:
            raise StoreError(f"GET {table} returned invalid JSON") from e

    # ── Queries ──────────────────────────────────────────────────────────

    def latest_run(self) -> Optional[ScrapeRun]:
        """The most recent successful scrape run."""
        rows, _ = self._select("scrape_runs", {
            "status": "eq.success",
            "order": "completed_at.desc",
            "limit": 1,
        })
        return ScrapeRun.model_validate(rows[0]) if rows else None

    def latest_summaries(self, listing_type: str = BOTH) -> list[LocationSummary]:
        """Summaries for the newest ``summary_date`` present, cheapest first."""
        rows, _ = self._select("location_summary", {
            "listing_type": f"eq.{listing_type}",
            "order": "summary_date.desc,affordability_rank.asc",
            "limit": SUMMARY_ROW_LIMIT,
        })
        if not rows:
            return []
        latest = rows[0]["summary_date"]
        return [LocationSummary.model_validate(r) for r in rows if r["summary_date"] == latest]

    def location_trend(
        self,
        location: str,
        listing_type: str = BOTH,
        days: int = DEFAULT_TREND_DAYS,
    ) -> list[LocationSummary]:
        since = (datetime.now(timezone.utc).date() - timedelta(days=days)).isoformat()
        rows, _ = self._select("location_summary", {
            "location": f"eq.{location}",
            "listing_type": f"eq.{listing_type}",
            "summary_date": f"gte.{since}",
            "order": "summary_date.asc",
        })
        return [LocationSummary.model_validate(r) for r in rows or []]

    def deals(self, page: int = 0, page_size: int = DEFAULT_PAGE_SIZE) -> list[Listing]:
        """Listings flagged as deals, newest first."""
        rows, _ = self._select("listings", {
            "is_deal": "eq.true",
            "order": "scraped_at.desc",
            "offset": page * page_size,
            "limit": page_size,
        })
        return [Listing.model_validate(r) for r in rows or []]

    def listings(
        self,
        location: Optional[str] = None,
        listing_type: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        bedrooms: Optional[int] = None,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> tuple[list[Listing], int]:
        """Filtered listings and the total number of matches."""
        params: dict = {
            "order": "scraped_at.desc",
            "offset": page * page_size,
            "limit": page_size,
        }
        if location:
            params["location"] = f"ilike.*{location}*"
        if listing_type:
            params["listing_type"] = f"eq.{listing_type}"
        # both price bounds share one key
        bounds = []
        if min_price is not None:
            bounds.append(f"price_kes.gte.{min_price}")
        if max_price is not None:
            bounds.append(f"price_kes.lte.{max_price}")
        if bounds:
            params["and"] = f"({','.join(bounds)})"
        if bedrooms is not None:
            params["bedrooms"] = f"eq.{bedrooms}"

        rows, response = self._select("listings", params, headers={"Prefer": "count=exact"})
        total = _parse_total(response.headers.get("Content-Range"))
        return [Listing.model_validate(r) for r in rows or []], total

    def summaries_with_geo(self, listing_type: str = BOTH) -> list[LocationWithGeo]:
        """Latest summaries joined with cached coordinates."""
        summaries = self.latest_summaries(listing_type)
        if not summaries:
            return []

        names = ",".join(_quote(s.location) for s in summaries)
        rows, _ = self._select("geocoded_cache", {"location": f"in.({names})"})
        geo = {g.location: g for g in (GeocodedLocation.model_validate(r) for r in rows or [])}

        merged = []
        for s in summaries:
            point = geo.get(s.location)
            merged.append(LocationWithGeo(
                **s.model_dump(),
                lat=point.lat if point else None,
                lon=point.lon if point else None,
            ))
        return merged

    def count_distinct_sources(self) -> Optional[int]:
        response = self._request("POST", "rpc/count_distinct_sources", json={})
        try:
            value = response.json()
        except ValueError as e:
            raise StoreError("count_distinct_sources returned invalid JSON") from e
        return int(value) if value is not None else None

    def hero_stats(self) -> HeroStats:
        """Headline numbers for the landing page."""
        run = self.latest_run()
        summaries = self.latest_summaries(BOTH)
        sources = self.count_distinct_sources()

        medians = sorted(s.median_price for s in summaries if s.median_price is not None)
        median_price = medians[len(medians) // 2] if medians else None
        most_affordable = next(
            (s.location for s in summaries if s.affordability_rank == 1), None
        )

        if run is not None and run.listings_scraped is not None:
            total = run.listings_scraped
        else:
            total = sum(s.listing_count or 0 for s in summaries)

        return HeroStats(
            total_listings=total,
            median_price=median_price,
            most_affordable=most_affordable,
            last_updated=run.completed_at if run else None,
            active_sources=sources if sources is not None else DEFAULT_ACTIVE_SOURCES,
        )
