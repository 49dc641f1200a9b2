"""
Inference Service
=================
Wraps the pure predictor with the context the API returns alongside
an estimate: the location's observed price bucket, comparable
locations and formatted shilling amounts.

The ``PriceModel`` is always passed in; the FastAPI app loads it once
in its lifespan and hands it to each request through a dependency.
"""

import logging
from typing import Optional

from app.format import format_kes, title_case
from app.preprocessing import Query
from ml import predictor
from ml.config import CURRENCY
from ml.predictor import PredictionResult
from ml.price_model import PriceModel

logger = logging.getLogger(__name__)


def estimate(model: PriceModel, query: Query) -> tuple[PredictionResult, dict]:
    """
    Run the predictor for one query.

    Returns
    -------
    (PredictionResult, dict)
        The raw result, and a response payload with predicted_price,
        confidence_low, confidence_high, confidence, in_model, the
        location bucket, comparables, currency and model_version.
    """
    result = predictor.predict(model, query.location_id, query.bedrooms, query.listing_type)
    stats = model.location_stats.get(query.location_id)
    bucket = predictor.bucket_for(model, query.location_id, query.listing_type)

    if not result.in_model:
        logger.info("Location %r not in regression; using citywide baseline", query.location_id)

    payload = {
        "location": query.location_id,
        "location_name": stats.name if stats else title_case(query.location_id),
        "bedrooms": query.bedrooms,
        "listing_type": query.listing_type.value,
        "predicted_price": result.predicted,
        "confidence_low": result.low,
        "confidence_high": result.high,
        "confidence": result.confidence.value,
        "in_model": result.in_model,
        "currency": CURRENCY,
        "display": {
            "predicted": format_kes(result.predicted),
            "low": format_kes(result.low),
            "high": format_kes(result.high),
        },
        "bucket": bucket.model_dump() if bucket else None,
        "comparables": predictor.comparables(
            model, query.location_id, query.listing_type, result.predicted
        ),
        "model_version": model.version,
    }
    return result, payload


def location_index(model: PriceModel) -> list[dict]:
    """Every location with its sale/rent medians, alphabetical."""
    return [
        {
            "slug": s.slug,
            "name": s.name,
            "in_model": s.slug in model.regression.location_premiums,
            "sale_median": s.sale.median if s.sale else None,
            "rent_median": s.rent.median if s.rent else None,
            "count": s.all.count if s.all else 0,
        }
        for s in predictor.sorted_locations(model)
    ]


def location_detail(model: PriceModel, slug: str) -> Optional[dict]:
    stats = model.location_stats.get(slug)
    if stats is None:
        return None
    detail = stats.model_dump()
    detail["in_model"] = slug in model.regression.location_premiums
    detail["premium"] = model.regression.location_premiums.get(slug)
    return detail
