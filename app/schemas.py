"""
Pydantic Schemas for Request / Response Validation
===================================================
Request bounds for price queries and the structured payloads the
API returns.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ml.config import MAX_BEDROOMS
from ml.price_model import PriceBucket


class PredictionRequest(BaseModel):
    """Input schema for a price estimate."""

    location: str = Field(
        ..., min_length=1, max_length=120,
        description="Location name or slug (e.g. 'Kilimani', 'kiambu-road')",
        json_schema_extra={"example": "Kilimani"},
    )
    bedrooms: int = Field(
        ..., ge=0, le=MAX_BEDROOMS,
        description=f"Number of bedrooms (0–{MAX_BEDROOMS}; 0 = studio/bedsitter)",
        json_schema_extra={"example": 2},
    )
    listing_type: Literal["Sale", "Rent"] = Field(
        ..., description="Sale or Rent",
        json_schema_extra={"example": "Sale"},
    )


class DisplayAmounts(BaseModel):
    predicted: str
    low: str
    high: str


class Comparable(BaseModel):
    slug: str
    name: str
    median: float
    count: int


class PredictionResponse(BaseModel):
    """Estimate with its multiplicative confidence band."""

    model_config = ConfigDict(protected_namespaces=())

    location: str
    location_name: str
    bedrooms: int
    listing_type: Literal["Sale", "Rent"]
    predicted_price: int = Field(..., description="Point estimate in KES")
    confidence_low: int = Field(..., description="predicted / RMSE multiplier")
    confidence_high: int = Field(..., description="predicted * RMSE multiplier")
    confidence: Literal["high", "medium", "low"]
    in_model: bool = Field(..., description="Location has a learned premium")
    currency: str = Field(default="KES", description="Currency code")
    display: DisplayAmounts
    bucket: Optional[PriceBucket] = Field(
        None, description="Observed prices for this location and listing type"
    )
    comparables: list[Comparable] = Field(default_factory=list)
    model_version: str = Field(..., description="Model training timestamp")


class HealthResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    status: str
    model_loaded: bool
    model_version: Optional[str] = None
    store_configured: bool = False


class LocationIndexItem(BaseModel):
    slug: str
    name: str
    in_model: bool
    sale_median: Optional[float] = None
    rent_median: Optional[float] = None
    count: int = 0


class SummaryRow(BaseModel):
    """Public projection of a ``location_summary`` row."""

    location: str
    avg_price: Optional[float] = None
    avg_price_per_bedroom: Optional[float] = None
    median_price: Optional[float] = None
    listing_count: Optional[int] = None
    affordability_rank: Optional[int] = None
    median_bedrooms: Optional[float] = None


class NeighborhoodRow(SummaryRow):
    slug: str
    tier: str


# ── Calculator Schemas ───────────────────────────────────────────────────

class AffordabilityResponse(BaseModel):
    mode: Literal["buy", "rent"]
    monthly_income: float
    budget: float = Field(..., description="Rent ceiling or maximum purchase price")
    monthly_payment: float
    bedrooms: int
    affordable: list[SummaryRow]
    stretch: list[SummaryRow]
    budget_ratio: int = Field(..., description="Percent of locations within budget")
    total: int


class InvestmentResponse(BaseModel):
    purchase_price: float
    monthly_rent: float
    annual_gross_rent: float
    gross_yield: float
    effective_gross_income: float
    net_operating_income: float
    cap_rate: float


# ── Monitoring Schemas ───────────────────────────────────────────────────

class MonitoringMetricsResponse(BaseModel):
    uptime_seconds: float
    total_requests: int
    total_errors: int
    error_rate: float
    requests_per_minute_5m: float
    latency_ms: dict[str, float]
    predictions: dict[str, float]
    confidence: dict[str, int]
    in_model_rate: float
    recorded_at: str
