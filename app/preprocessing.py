"""
Query Preprocessing
===================
Turns a validated request body into the ``Query`` the predictor
expects: the free-text location becomes a slug (the key used by the
model artifact) and the listing type becomes a ``ListingType``.
"""

from dataclasses import dataclass

from app.format import to_slug
from ml.predictor import ListingType


@dataclass(frozen=True)
class Query:
    location_id: str
    bedrooms: int
    listing_type: ListingType


def preprocess_input(data: dict) -> Query:
    """
    Parameters
    ----------
    data : dict
        Keys ``location``, ``bedrooms``, ``listing_type``.

    Returns
    -------
    Query
        ``location`` slugged (``"Kiambu Road"`` -> ``"kiambu-road"``).
    """
    bedrooms = int(data["bedrooms"])
    if bedrooms < 0:
        raise ValueError(f"bedrooms must be >= 0, got {bedrooms}")
    return Query(
        location_id=to_slug(str(data["location"])),
        bedrooms=bedrooms,
        listing_type=ListingType(data["listing_type"]),
    )
