"""
Predictor Tests

1. Reference scenarios - known inputs with hand-computed outputs
2. Properties - monotonicity, bounds, totality, idempotence
3. Confidence - labels driven by premiums and bucket volume
4. Helpers - bucket lookup and comparables
"""

import math

import pytest

from ml.predictor import (
    Confidence,
    ListingType,
    PredictionResult,
    bucket_for,
    comparables,
    predict,
    sorted_locations,
)
from ml.price_model import ModelLoadError, parse_price_model


def half_up(x):
    return math.floor(x + 0.5)


# =============================================================================
# REFERENCE SCENARIOS
# =============================================================================


class TestScenarios:
    def test_known_location_sale(self, price_model):
        result = predict(price_model, "kilimani", 2, "Sale")

        assert result.predicted == round(math.exp(15.0 + 0.1 * 2 + 0.2))
        assert result.in_model is True
        assert result.low == half_up(result.predicted / 1.3)
        assert result.high == half_up(result.predicted * 1.3)

    def test_unknown_location_uses_baseline(self, price_model):
        result = predict(price_model, "unknown-area", 2, "Sale")

        assert result.predicted == round(math.exp(15.0 + 0.1 * 2))
        assert result.in_model is False
        assert result.confidence == Confidence.LOW
        assert result.confidence == "low"

    def test_bedroom_and_rent_terms_add_in_log_space(self, price_model):
        sale = predict(price_model, "kilimani", 2, "Sale")
        rent = predict(price_model, "kilimani", 3, "Rent")

        expected_ratio = math.exp(0.1 * 1 - 2.0)
        assert rent.predicted == round(math.exp(15.0 + 0.1 * 3 - 2.0 + 0.2))
        assert rent.predicted / sale.predicted == pytest.approx(expected_ratio, rel=1e-5)

    def test_bucket_count_ten_is_enough(self, price_model):
        # kilimani: sale bucket count 10, rent bucket count 9
        assert predict(price_model, "kilimani", 2, "Sale").confidence == Confidence.HIGH
        assert predict(price_model, "kilimani", 2, "Rent").confidence == Confidence.MEDIUM


# =============================================================================
# PROPERTIES
# =============================================================================


class TestProperties:
    @pytest.mark.parametrize("listing_type", ["Sale", "Rent"])
    def test_monotonic_in_bedrooms(self, price_model, listing_type):
        previous = predict(price_model, "westlands", 0, listing_type).predicted
        for b in range(1, 12):
            current = predict(price_model, "westlands", b, listing_type).predicted
            assert current > previous
            previous = current

    @pytest.mark.parametrize("location", ["kilimani", "westlands", "karen", "nowhere", ""])
    @pytest.mark.parametrize("bedrooms", [0, 1, 3, 7])
    def test_band_brackets_estimate(self, price_model, location, bedrooms):
        result = predict(price_model, location, bedrooms, "Rent")
        assert result.low < result.predicted < result.high
        assert result.low > 0

    def test_multiplier_of_one_collapses_band(self, model_dict):
        model_dict["meta"]["approx_rmse_multiplier"] = 1.0
        result = predict(parse_price_model(model_dict), "kilimani", 2, "Sale")
        assert result.low == result.predicted == result.high

    @pytest.mark.parametrize("location", ["", "KILIMANI", "kilimani ", "🏠", "x" * 500])
    def test_total_for_any_location(self, price_model, location):
        result = predict(price_model, location, 2, "Sale")
        assert result.in_model is False
        assert result.confidence == Confidence.LOW

    def test_idempotent(self, price_model):
        first = predict(price_model, "kilimani", 3, "Rent")
        second = predict(price_model, "kilimani", 3, "Rent")
        assert first == second

    def test_does_not_mutate_model(self, price_model):
        before = price_model.model_dump()
        predict(price_model, "kilimani", 3, "Rent")
        predict(price_model, "elsewhere", 1, "Sale")
        assert price_model.model_dump() == before

    def test_huge_bedroom_count_saturates(self, price_model):
        result = predict(price_model, "kilimani", 10**6, "Sale")
        assert result.predicted > 0
        assert result.low <= result.predicted <= result.high

    def test_sub_shilling_estimate_rounds_to_zero(self, model_dict):
        model_dict["regression"]["intercept"] = -3.0
        result = predict(parse_price_model(model_dict), "nowhere", 0, "Sale")
        assert (result.predicted, result.low, result.high) == (0, 0, 0)
        assert result.confidence is Confidence.LOW

    def test_result_is_frozen(self, price_model):
        result = predict(price_model, "kilimani", 2, "Sale")
        assert isinstance(result, PredictionResult)
        with pytest.raises(AttributeError):
            result.predicted = 0

    def test_to_dict(self, price_model):
        d = predict(price_model, "nowhere", 2, "Sale").to_dict()
        assert d["confidence"] == "low"
        assert d["in_model"] is False
        assert set(d) == {"predicted", "low", "high", "confidence", "in_model"}


# =============================================================================
# CONFIDENCE
# =============================================================================


class TestConfidence:
    def test_high_requires_premium(self, price_model):
        # karen has 55 sale listings but no learned premium
        result = predict(price_model, "karen", 3, "Sale")
        assert result.in_model is False
        assert result.confidence == Confidence.LOW

    def test_in_model_without_bucket_is_medium(self, price_model):
        # westlands has no rent bucket
        result = predict(price_model, "westlands", 2, "Rent")
        assert result.in_model is True
        assert result.confidence == Confidence.MEDIUM

    def test_in_model_without_location_stats_is_medium(self, model_dict):
        model_dict["regression"]["location_premiums"]["parklands"] = 0.1
        result = predict(parse_price_model(model_dict), "parklands", 2, "Sale")
        assert result.confidence == Confidence.MEDIUM

    def test_high_with_premium_and_volume(self, price_model):
        result = predict(price_model, "westlands", 2, "Sale")
        assert result.confidence == Confidence.HIGH


# =============================================================================
# INPUTS
# =============================================================================


class TestInputs:
    def test_accepts_enum_and_any_case(self, price_model):
        a = predict(price_model, "kilimani", 2, ListingType.RENT)
        b = predict(price_model, "kilimani", 2, "rent")
        assert a == b

    def test_rejects_unknown_listing_type(self, price_model):
        with pytest.raises(ValueError):
            predict(price_model, "kilimani", 2, "Lease")

    def test_rejects_negative_bedrooms(self, price_model):
        with pytest.raises(ValueError):
            predict(price_model, "kilimani", -1, "Sale")

    def test_accepts_raw_mapping(self, model_dict, price_model):
        assert predict(model_dict, "kilimani", 2, "Sale") == predict(
            price_model, "kilimani", 2, "Sale"
        )

    def test_raw_mapping_is_validated(self, model_dict):
        model_dict["meta"]["approx_rmse_multiplier"] = 0.5
        with pytest.raises(ModelLoadError):
            predict(model_dict, "kilimani", 2, "Sale")


# =============================================================================
# HELPERS
# =============================================================================


class TestHelpers:
    def test_bucket_for(self, price_model):
        assert bucket_for(price_model, "kilimani", "Sale").count == 10
        assert bucket_for(price_model, "kilimani", "Rent").count == 9
        assert bucket_for(price_model, "westlands", "Rent") is None
        assert bucket_for(price_model, "nowhere", "Sale") is None

    def test_comparables_sorted_by_distance(self, price_model):
        predicted = predict(price_model, "kilimani", 2, "Sale").predicted
        found = comparables(price_model, "kilimani", "Sale", predicted)

        assert [c["slug"] for c in found] == ["ruaka", "westlands", "karen"]
        assert all(c["slug"] != "kilimani" for c in found)

    def test_comparables_skip_missing_buckets_and_limit(self, price_model):
        found = comparables(price_model, "kilimani", "Rent", 50_000, limit=1)
        assert [c["slug"] for c in found] == ["ruaka"]
        assert all(c["slug"] != "westlands" for c in comparables(price_model, "x", "Rent", 0))

    def test_sorted_locations(self, price_model):
        names = [s.name for s in sorted_locations(price_model)]
        assert names == ["Karen", "Kilimani", "Ruaka", "Westlands"]
