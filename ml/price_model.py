"""
Price Model Artifact
====================
Typed, immutable representation of ``model.json``, the statistical
snapshot produced by the offline batch job: training provenance,
log-linear regression coefficients, per-location price buckets and
the descriptive aggregates rendered by the dashboard.

The artifact is validated once, at load time.  Anything structurally
wrong (missing coefficients, non-finite numbers, an RMSE multiplier
below 1, unordered quartiles, a location keyed under the wrong slug
or listed twice)
raises ``ModelLoadError`` so the service refuses to start rather than
serving silently wrong estimates.
"""

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, ValidationError, model_validator

logger = logging.getLogger(__name__)


class ModelLoadError(Exception):
    """The price model artifact is missing, unreadable or invalid."""


# ── Base ────────────────────────────────────────────────────────────────

class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False, extra="ignore")


# ── Regression ──────────────────────────────────────────────────────────

class ModelMeta(_Frozen):
    """Training provenance."""

    approx_rmse_multiplier: StrictFloat = Field(
        ..., ge=1, description="exp(rmse_log); width of the multiplicative band"
    )
    trained_at: Optional[str] = None
    training_rows: int = Field(0, ge=0)
    r2: Optional[StrictFloat] = None
    rmse_log: Optional[StrictFloat] = Field(None, ge=0)
    locations_in_model: int = Field(0, ge=0)


class Regression(_Frozen):
    """Log-price = intercept + coef_bedrooms*b + coef_rent*is_rent + premium."""

    intercept: StrictFloat
    coef_bedrooms: StrictFloat
    coef_rent: StrictFloat
    location_premiums: dict[str, StrictFloat] = Field(default_factory=dict)


# ── Location Statistics ─────────────────────────────────────────────────

class PriceBucket(_Frozen):
    """Observed prices for one location and listing type."""

    count: int = Field(..., ge=0)
    median: float
    q25: float
    q75: float
    min: float
    max: float

    @model_validator(mode="after")
    def _check_order(self) -> "PriceBucket":
        if self.count == 0:
            raise ValueError("a zero-count bucket must be null")
        if not (self.min <= self.q25 <= self.median <= self.q75 <= self.max):
            raise ValueError(
                "bucket must satisfy min <= q25 <= median <= q75 <= max "
                f"(got {self.min}, {self.q25}, {self.median}, {self.q75}, {self.max})"
            )
        return self


class LocationTotals(_Frozen):
    count: int = Field(..., ge=0)
    median: Optional[float] = None


class LocationStats(_Frozen):
    name: str
    slug: str
    sale: Optional[PriceBucket] = None
    rent: Optional[PriceBucket] = None
    all: Optional[LocationTotals] = None


# ── Display Aggregates ──────────────────────────────────────────────────

class BedroomBucket(_Frozen):
    count: int = Field(..., ge=0)
    median_sale: Optional[float] = None
    median_rent: Optional[float] = None


class PriceRange(_Frozen):
    sale_min: float
    sale_max: float
    rent_min: float
    rent_max: float

    @model_validator(mode="after")
    def _check_range(self) -> "PriceRange":
        if self.sale_min > self.sale_max or self.rent_min > self.rent_max:
            raise ValueError("price_range minimum exceeds maximum")
        return self


class GlobalStats(_Frozen):
    total_listings: int = Field(..., ge=0)
    total_sale: int = Field(..., ge=0)
    total_rent: int = Field(..., ge=0)
    median_sale_price: float
    median_rent_price: float
    avg_bedrooms: float
    price_range: PriceRange


class PriceTiers(_Frozen):
    """Tier boundaries per listing type, listed in ascending order."""

    sale: dict[str, float] = Field(default_factory=dict)
    rent: dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_monotonic(self) -> "PriceTiers":
        for kind, tiers in (("sale", self.sale), ("rent", self.rent)):
            bounds = list(tiers.values())
            if any(a > b for a, b in zip(bounds, bounds[1:])):
                raise ValueError(f"price_tiers.{kind} boundaries must be non-decreasing")
        return self


class TopItem(_Frozen):
    slug: str
    name: str
    median: float


class TopLists(_Frozen):
    affordable_sale: list[TopItem] = Field(default_factory=list)
    expensive_sale: list[TopItem] = Field(default_factory=list)
    affordable_rent: list[TopItem] = Field(default_factory=list)
    expensive_rent: list[TopItem] = Field(default_factory=list)


# ── Root Aggregate ──────────────────────────────────────────────────────

class PriceModel(_Frozen):
    """The whole artifact.  Shared read-only by every request handler."""

    meta: ModelMeta
    regression: Regression
    location_stats: dict[str, LocationStats] = Field(default_factory=dict)
    bedroom_median_price: dict[str, float] = Field(default_factory=dict)
    bedroom_distribution: dict[str, BedroomBucket] = Field(default_factory=dict)
    global_stats: Optional[GlobalStats] = None
    price_tiers: PriceTiers = Field(default_factory=PriceTiers)
    top_lists: TopLists = Field(default_factory=TopLists)

    @model_validator(mode="after")
    def _check_slugs(self) -> "PriceModel":
        for key, stats in self.location_stats.items():
            if stats.slug != key:
                raise ValueError(
                    f"location_stats[{key!r}].slug is {stats.slug!r}; expected {key!r}"
                )
        return self

    @property
    def version(self) -> str:
        return self.meta.trained_at or "unknown"


# ── Loading ─────────────────────────────────────────────────────────────

def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict:
    """``object_pairs_hook`` for ``json.load``: keys must be unique per object."""
    obj = {}
    for key, value in pairs:
        if key in obj:
            raise ModelLoadError(f"Duplicate key {key!r} in price model")
        obj[key] = value
    return obj


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def parse_price_model(data: Mapping[str, Any]) -> PriceModel:
    """Validate an already-decoded artifact."""
    try:
        return PriceModel.model_validate(data)
    except ValidationError as e:
        raise ModelLoadError(f"Invalid price model: {_describe(e)}") from e


def load_price_model(path: Union[str, Path]) -> PriceModel:
    """Read and validate ``model.json`` from disk."""
    path = Path(path)
    if not path.exists():
        raise ModelLoadError(
            f"Price model artifact not found at {path}. "
            "Export model.json from the batch job first."
        )

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f, object_pairs_hook=_reject_duplicate_keys)
    except (OSError, json.JSONDecodeError) as e:
        raise ModelLoadError(f"Could not read price model {path}: {e}") from e

    if not isinstance(data, dict):
        raise ModelLoadError(f"Price model {path} must be a JSON object")

    model = parse_price_model(data)
    logger.info(
        "Price model loaded from %s (trained %s, %d premiums, %d locations)",
        path,
        model.version,
        len(model.regression.location_premiums),
        len(model.location_stats),
    )
    return model
