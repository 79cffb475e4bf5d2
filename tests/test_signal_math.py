"""
Tests for the pure signal math helpers.

Run with: pytest tests/test_signal_math.py -v
"""

import math

import pytest

from pickgen.core.signal_math import (
    calculate_edge_confidence,
    calculate_legacy_confidence,
    calculate_market_mismatch,
    clamp,
    is_finite_number,
    odds_to_probability,
    pace_harmonic,
    probability_to_odds,
    scores_from_spread_total,
    sigmoid,
    sigmoid_scaled,
    signal_to_scores,
    tanh_signal,
    total_from_ortgs,
)


class TestBasicHelpers:
    def test_clamp_inside_range_is_identity(self):
        assert clamp(0.3, -1.0, 1.0) == 0.3

    def test_clamp_bounds(self):
        assert clamp(5.0, -1.0, 1.0) == 1.0
        assert clamp(-5.0, -1.0, 1.0) == -1.0

    def test_sigmoid_midpoint(self):
        assert sigmoid(0.0) == pytest.approx(0.5)

    def test_sigmoid_large_negative_does_not_overflow(self):
        assert sigmoid(-1000.0) == pytest.approx(0.0)

    def test_sigmoid_scaled_default_scale(self):
        assert sigmoid_scaled(0.4) == pytest.approx(sigmoid(1.0))

    @pytest.mark.parametrize("values, expected", [
        ((1, 2.5), True),
        ((float("nan"),), False),
        ((float("inf"),), False),
        ((None,), False),
        (("3",), False),
        ((True,), False),
    ])
    def test_is_finite_number(self, values, expected):
        assert is_finite_number(*values) is expected


class TestTanhSignal:
    def test_zero_is_neutral(self):
        signal, capped = tanh_signal(0.0, 4.0)
        assert signal == 0.0
        assert capped is False

    def test_scale_value_gives_tanh_one(self):
        signal, _ = tanh_signal(4.0, 4.0)
        assert signal == pytest.approx(math.tanh(1.0))

    def test_signal_is_odd(self):
        pos, _ = tanh_signal(3.0, 2.0)
        neg, _ = tanh_signal(-3.0, 2.0)
        assert pos == pytest.approx(-neg)

    def test_cap_applied_before_squash(self):
        signal, capped = tanh_signal(50.0, 10.0, cap=30.0)
        assert capped is True
        assert signal == pytest.approx(math.tanh(3.0))

    def test_huge_input_stays_in_range(self):
        signal, _ = tanh_signal(1e9, 1.0)
        assert -1.0 <= signal <= 1.0

    def test_non_positive_scale_raises(self):
        with pytest.raises(ValueError):
            tanh_signal(1.0, 0.0)


class TestSignalToScores:
    def test_positive_signal_credits_positive_side_only(self):
        scores = signal_to_scores(0.5, 5.0, "overScore", "underScore")
        assert scores == {"overScore": pytest.approx(2.5), "underScore": 0.0}

    def test_negative_signal_credits_negative_side_only(self):
        scores = signal_to_scores(-0.2, 5.0, "awayScore", "homeScore")
        assert scores == {"awayScore": 0.0, "homeScore": pytest.approx(1.0)}

    def test_zero_signal_credits_nobody(self):
        assert signal_to_scores(0.0, 5.0, "a", "b") == {"a": 0.0, "b": 0.0}


class TestOddsConversion:
    def test_minus_110(self):
        assert odds_to_probability(-110) == pytest.approx(110 / 210)

    def test_plus_150(self):
        assert odds_to_probability(150) == pytest.approx(0.4)

    def test_invalid_odds_raise(self):
        with pytest.raises(ValueError):
            odds_to_probability(50)

    def test_probability_to_odds_favourite(self):
        assert probability_to_odds(0.6) == pytest.approx(-150.0)

    def test_probability_to_odds_dog(self):
        assert probability_to_odds(0.4) == pytest.approx(150.0)

    def test_probability_out_of_range_raises(self):
        with pytest.raises(ValueError):
            probability_to_odds(1.0)


class TestConfidenceHelpers:
    def test_legacy_confidence_ignores_direction(self):
        factors = [
            {"normalized_value": 0.5, "weight": 0.2},
            {"normalized_value": -0.5, "weight": 0.2},
        ]
        assert calculate_legacy_confidence(factors) == pytest.approx(5.0 * 0.2 / 0.7)

    def test_legacy_confidence_saturates_at_five(self):
        factors = [{"normalized_value": 1.0, "weight": 1.0}]
        assert calculate_legacy_confidence(factors) == 5.0

    def test_edge_confidence_neutral_is_half_scale(self):
        result = calculate_edge_confidence([{"normalized_value": 0.0, "weight": 1.0}])
        assert result["edge_raw"] == 0.0
        assert result["edge_pct"] == pytest.approx(0.5)
        assert result["conf_score"] == pytest.approx(2.5)

    def test_edge_confidence_is_signed(self):
        result = calculate_edge_confidence([
            {"normalized_value": 0.8, "weight": 0.5},
            {"normalized_value": -0.2, "weight": 0.5},
        ])
        assert result["edge_raw"] == pytest.approx(0.3)
        assert result["conf_score"] > 2.5

    def test_market_mismatch_units_need_three_percent(self):
        small = calculate_market_mismatch(222.0, 220.0, confidence=4.5)
        big = calculate_market_mismatch(230.0, 220.0, confidence=4.5)
        assert small["units"] == 0
        assert big["units"] == 3
        assert big["mismatch_points"] == pytest.approx(10.0)

    def test_market_mismatch_zero_line_raises(self):
        with pytest.raises(ValueError):
            calculate_market_mismatch(220.0, 0.0, confidence=3.0)


class TestBasketballIdentities:
    def test_pace_harmonic_equal_paces(self):
        assert pace_harmonic(100.0, 100.0) == pytest.approx(100.0)

    def test_pace_harmonic_pulled_toward_slower(self):
        assert pace_harmonic(90.0, 110.0) < 100.0

    def test_pace_harmonic_rejects_zero(self):
        with pytest.raises(ValueError):
            pace_harmonic(0.0, 100.0)

    def test_total_from_ortgs(self):
        assert total_from_ortgs(115.0, 105.0, 100.0) == pytest.approx(220.0)

    def test_scores_from_spread_total(self):
        assert scores_from_spread_total(6.0, 220.0) == {"home": 113, "away": 107}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
