"""
Tests for the confidence calculator and unit thresholds.

Run with: pytest tests/test_confidence.py -v
"""

import pytest

from pickgen.core.factor_types import ComputedFactor
from pickgen.core.sport_config import BetType
from pickgen.services.confidence import (
    CONF_SOURCE,
    calculate_confidence,
    units_for_confidence,
)


def _factor(key, signal, weight=None, bet_type=BetType.TOTAL, with_scores=True):
    pos, neg = ("overScore", "underScore") if bet_type is BetType.TOTAL else ("awayScore", "homeScore")
    parsed = {}
    if with_scores:
        parsed = {
            pos: abs(signal) * 5.0 if signal > 0 else 0.0,
            neg: abs(signal) * 5.0 if signal < 0 else 0.0,
        }
    return ComputedFactor(
        factor_no=1, key=key, name=key, normalized_value=signal,
        parsed_values_json=parsed, weight_total_pct=weight,
    )


class TestCalculateConfidence:
    def test_single_over_factor(self):
        result = calculate_confidence([_factor("paceIndex", 0.8)], {"paceIndex": 50.0})
        # 0.8 × 5 × 0.5 = 2.0
        assert result["conf_score"] == pytest.approx(2.0)
        assert result["edge_raw"] == pytest.approx(2.0)
        assert result["direction"] == "OVER"
        assert result["conf_source"] == CONF_SOURCE

    def test_opposing_factors_net_out(self):
        factors = [_factor("paceIndex", 0.6), _factor("offForm", -0.6)]
        result = calculate_confidence(factors, {"paceIndex": 50.0, "offForm": 50.0})
        assert result["edge_raw"] == pytest.approx(0.0)
        assert result["conf_score"] == pytest.approx(0.0)
        assert result["direction"] is None

    def test_under_direction(self):
        factors = [_factor("paceIndex", -1.0), _factor("offForm", 0.2)]
        result = calculate_confidence(factors, {"paceIndex": 60.0, "offForm": 40.0})
        assert result["total_negative"] == pytest.approx(3.0)
        assert result["total_positive"] == pytest.approx(0.4)
        assert result["direction"] == "UNDER"
        assert result["conf_score"] == pytest.approx(2.6)

    def test_spread_uses_away_home(self):
        factors = [_factor("netRatingDiff", -0.5, bet_type=BetType.SPREAD)]
        result = calculate_confidence(factors, {"netRatingDiff": 100.0}, BetType.SPREAD)
        assert result["direction"] == "HOME"
        assert result["factor_contributions"][0]["homeScore"] == pytest.approx(2.5)

    def test_weight_falls_back_to_factor(self):
        result = calculate_confidence([_factor("paceIndex", 1.0, weight=20.0)])
        assert result["conf_score"] == pytest.approx(1.0)

    def test_scores_rebuilt_from_signal_when_missing(self):
        factor = _factor("paceIndex", 0.4, with_scores=False)
        result = calculate_confidence([factor], {"paceIndex": 100.0})
        assert result["conf_score"] == pytest.approx(2.0)

    def test_accepts_dicts(self):
        result = calculate_confidence([_factor("paceIndex", 0.8).to_dict()], {"paceIndex": 50.0})
        assert result["conf_score"] == pytest.approx(2.0)

    def test_confidence_capped_at_ten(self):
        factors = [_factor(f"f{i}", 1.0) for i in range(3)]
        factors.append(_factor("edgeVsMarket", 1.0))
        weights = {"f0": 80.0, "f1": 80.0, "f2": 80.0, "edgeVsMarket": 100.0}
        result = calculate_confidence(factors, weights)
        assert result["edge_raw"] == pytest.approx(17.0)
        assert result["conf_score"] == 10.0

    def test_edge_factor_excluded_from_budget(self):
        factors = [_factor("paceIndex", 0.5), _factor("edgeVsMarket", 0.5)]
        result = calculate_confidence(factors, {"paceIndex": 250.0, "edgeVsMarket": 100.0})
        # 0.5 × 5 × 2.5 + 0.5 × 5 × 1.0
        assert result["conf_score"] == pytest.approx(8.75)

    def test_budget_exceeded_raises(self):
        factors = [_factor("paceIndex", 0.5), _factor("offForm", 0.5)]
        with pytest.raises(ValueError, match="budget"):
            calculate_confidence(factors, {"paceIndex": 150.0, "offForm": 150.0})


class TestUnitsForConfidence:
    @pytest.mark.parametrize("conf, units", [
        (9.5, 5),
        (9.0, 4),
        (8.01, 4),
        (7.5, 3),
        (6.5, 2),
        (5.01, 1),
        (5.0, 0),
        (0.0, 0),
    ])
    def test_thresholds(self, conf, units):
        assert units_for_confidence(conf) == units


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
