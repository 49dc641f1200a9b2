"""
Shared fixtures: synthetic price models that need no artifact on disk.
"""

import copy

import pytest

from ml.price_model import parse_price_model


def _bucket(count, median, spread=0.25):
    return {
        "count": count,
        "median": median,
        "q25": median * (1 - spread),
        "q75": median * (1 + spread),
        "min": median * 0.5,
        "max": median * 2,
    }


BASE_MODEL = {
    "meta": {
        "trained_at": "2026-09-30T04:00:00+00:00",
        "training_rows": 1200,
        "r2": 0.78,
        "rmse_log": 0.2624,
        "approx_rmse_multiplier": 1.3,
        "locations_in_model": 2,
    },
    "regression": {
        "intercept": 15.0,
        "coef_bedrooms": 0.1,
        "coef_rent": -2.0,
        "location_premiums": {"kilimani": 0.2, "westlands": 0.4},
    },
    "location_stats": {
        "kilimani": {
            "name": "Kilimani",
            "slug": "kilimani",
            "sale": _bucket(10, 4_500_000),
            "rent": _bucket(9, 90_000),
            "all": {"count": 19, "median": 120_000},
        },
        "westlands": {
            "name": "Westlands",
            "slug": "westlands",
            "sale": _bucket(40, 6_000_000),
            "rent": None,
            "all": {"count": 40, "median": 6_000_000},
        },
        "karen": {
            "name": "Karen",
            "slug": "karen",
            "sale": _bucket(55, 30_000_000),
            "rent": _bucket(12, 300_000),
            "all": {"count": 67, "median": 25_000_000},
        },
        "ruaka": {
            "name": "Ruaka",
            "slug": "ruaka",
            "sale": _bucket(30, 3_800_000),
            "rent": _bucket(25, 35_000),
            "all": {"count": 55, "median": 40_000},
        },
    },
    "price_tiers": {
        "sale": {"budget": 5_000_000, "mid": 15_000_000, "premium": 40_000_000},
        "rent": {"budget": 40_000, "mid": 100_000, "premium": 250_000},
    },
}


@pytest.fixture
def model_dict():
    """A fresh, mutable copy of the synthetic artifact."""
    return copy.deepcopy(BASE_MODEL)


@pytest.fixture
def price_model(model_dict):
    return parse_price_model(model_dict)
