"""
Price Predictor
===============
Evaluates the log-linear regression stored in a ``PriceModel``:

    log_price = intercept
              + coef_bedrooms * bedrooms
              + coef_rent     * is_rent
              + location_premiums.get(location, 0)

The point estimate is ``exp(log_price)`` rounded to a whole shilling,
bracketed by a band that is symmetric in log space: the rounded
estimate divided and multiplied by the model's RMSE multiplier.

``predict`` is total over any location string.  A location the
regression never saw falls back to the citywide baseline and is
labelled ``low`` confidence; a known location whose listing-type
bucket holds fewer than ``ENOUGH_DATA_MIN_COUNT`` listings is
labelled ``medium``.
"""

import math
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Union

from ml.config import COMPARABLES_LIMIT, ENOUGH_DATA_MIN_COUNT
from ml.price_model import LocationStats, PriceBucket, PriceModel, parse_price_model


class ListingType(str, Enum):
    SALE = "Sale"
    RENT = "Rent"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class PredictionResult:
    predicted: int
    low: int
    high: int
    confidence: Confidence
    in_model: bool

    def to_dict(self) -> dict:
        return {
            "predicted": self.predicted,
            "low": self.low,
            "high": self.high,
            "confidence": self.confidence.value,
            "in_model": self.in_model,
        }


_MAX_FLOAT = sys.float_info.max


def _round_half_up(value: float) -> int:
    # Halves round toward +inf; values past the float range saturate.
    if not math.isfinite(value):
        value = _MAX_FLOAT
    return int(math.floor(min(value, _MAX_FLOAT) + 0.5))


def _coerce_model(model: Union[PriceModel, Mapping[str, Any]]) -> PriceModel:
    if isinstance(model, PriceModel):
        return model
    return parse_price_model(model)


def bucket_for(
    model: PriceModel,
    location_id: str,
    listing_type: Union[ListingType, str],
) -> Optional[PriceBucket]:
    """The sale or rent bucket for a location, or None when absent."""
    stats = model.location_stats.get(location_id)
    if stats is None:
        return None
    if ListingType(listing_type) is ListingType.RENT:
        return stats.rent
    return stats.sale


def predict(
    model: Union[PriceModel, Mapping[str, Any]],
    location_id: str,
    bedrooms: int,
    listing_type: Union[ListingType, str],
) -> PredictionResult:
    """
    Estimate the price of a listing.

    Parameters
    ----------
    model : PriceModel
        A validated artifact (a raw mapping is validated first).
    location_id : str
        Location slug, e.g. ``"kilimani"``.  Unknown slugs are allowed.
    bedrooms : int
        Bedroom count, ``>= 0``.
    listing_type : ListingType or str
        ``"Sale"`` or ``"Rent"``.

    Raises
    ------
    ValueError
        ``bedrooms`` is negative or ``listing_type`` is not Sale/Rent.
    """
    model = _coerce_model(model)
    kind = ListingType(listing_type)
    if bedrooms < 0:
        raise ValueError(f"bedrooms must be >= 0, got {bedrooms}")

    reg = model.regression
    in_model = location_id in reg.location_premiums
    premium = reg.location_premiums.get(location_id, 0.0)
    is_rent = 1 if kind is ListingType.RENT else 0

    log_price = (
        reg.intercept
        + reg.coef_bedrooms * bedrooms
        + reg.coef_rent * is_rent
        + premium
    )
    try:
        raw = math.exp(log_price)
    except OverflowError:
        raw = _MAX_FLOAT
    predicted = _round_half_up(raw)

    multiplier = model.meta.approx_rmse_multiplier
    low = _round_half_up(predicted / multiplier)
    high = _round_half_up(predicted * multiplier)

    if in_model:
        bucket = bucket_for(model, location_id, kind)
        enough_data = (bucket.count if bucket else 0) >= ENOUGH_DATA_MIN_COUNT
        confidence = Confidence.HIGH if enough_data else Confidence.MEDIUM
    else:
        confidence = Confidence.LOW

    return PredictionResult(
        predicted=predicted,
        low=low,
        high=high,
        confidence=confidence,
        in_model=in_model,
    )


def sorted_locations(model: PriceModel) -> list[LocationStats]:
    """All locations, alphabetical by display name."""
    return sorted(model.location_stats.values(), key=lambda s: s.name.lower())


def comparables(
    model: PriceModel,
    location_id: str,
    listing_type: Union[ListingType, str],
    predicted: float,
    limit: int = COMPARABLES_LIMIT,
) -> list[dict]:
    """
    Other locations whose median for the same listing type sits
    closest to ``predicted``.
    """
    kind = ListingType(listing_type)
    candidates = []
    for slug, stats in model.location_stats.items():
        if slug == location_id:
            continue
        bucket = stats.rent if kind is ListingType.RENT else stats.sale
        if bucket is None:
            continue
        candidates.append((abs(bucket.median - predicted), stats.name, stats, bucket))

    candidates.sort(key=lambda c: (c[0], c[1]))
    return [
        {
            "slug": stats.slug,
            "name": stats.name,
            "median": bucket.median,
            "count": bucket.count,
        }
        for _, _, stats, bucket in candidates[:limit]
    ]
