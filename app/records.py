"""
Row types of the hosted listing store.

Mirrors the ``scrape_runs``, ``listings``, ``location_summary`` and
``geocoded_cache`` tables as read through PostgREST.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

ListingKind = Literal["Sale", "Rent", "Both"]


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ScrapeRun(_Row):
    id: str
    started_at: str
    completed_at: Optional[str] = None
    listings_scraped: Optional[int] = None
    status: Literal["running", "success", "error"]
    error_msg: Optional[str] = None


class Listing(_Row):
    id: str
    scrape_run_id: Optional[str] = None
    source: str
    listing_type: ListingKind
    title: Optional[str] = None
    price_kes: Optional[float] = None
    location: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    size_sqm: Optional[float] = None
    property_type: Optional[str] = None
    url: Optional[str] = None
    scraped_at: Optional[str] = None
    price_per_bedroom: Optional[float] = None
    price_per_sqm: Optional[float] = None
    is_deal: bool = False


class LocationSummary(_Row):
    id: str
    location: str
    summary_date: str
    listing_type: ListingKind
    avg_price: Optional[float] = None
    median_price: Optional[float] = None
    avg_price_per_bedroom: Optional[float] = None
    median_price_per_bedroom: Optional[float] = None
    affordability_rank: Optional[int] = None
    listing_count: Optional[int] = None
    median_bedrooms: Optional[float] = None


class GeocodedLocation(_Row):
    location: str
    lat: Optional[float] = None
    lon: Optional[float] = None
    strategy: Optional[str] = None
    geocoded_at: Optional[str] = None


class LocationWithGeo(LocationSummary):
    lat: Optional[float] = None
    lon: Optional[float] = None


class HeroStats(_Row):
    total_listings: int
    median_price: Optional[float] = None
    most_affordable: Optional[str] = None
    last_updated: Optional[str] = None
    active_sources: int
