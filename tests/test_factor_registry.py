"""
Tests for the factor registry.

Run with: pytest tests/test_factor_registry.py -v
"""

import pytest

from pickgen.core.factor_types import (
    DataSource,
    FactorCategory,
    FactorDefinition,
    FactorResult,
    NBAStatsBundle,
    RunContext,
)
from pickgen.core.sport_config import BetType, Sport
from pickgen.factors.registry import FactorRegistry, build_default_registry, get_factor_registry


def _definition(key="testFactor", bet_type=BetType.TOTAL, compute=None, number=1, weight=10.0):
    return FactorDefinition(
        key=key,
        factor_number=number,
        name=f"Test {key}",
        short_name=key[:4].upper(),
        sport=Sport.NBA,
        bet_type=bet_type,
        category=FactorCategory.PACE,
        icon="*",
        description="test factor",
        logic="signal = constant",
        data_source=DataSource.NONE,
        data_requirements=[],
        default_weight=weight,
        compute=compute or (lambda bundle, ctx: FactorResult(signal=0.5, meta={"x": 1})),
    )


def _ctx(bet_type=BetType.TOTAL, weights=None):
    return RunContext(
        game_id="g1",
        away="Boston Celtics",
        home="Miami Heat",
        bet_type=bet_type,
        factor_weights=weights or {},
    )


class TestRegistration:
    def test_register_and_lookup(self):
        registry = FactorRegistry()
        registry.register(_definition())
        assert registry.get_by_key("testFactor").key == "testFactor"
        assert registry.has("testFactor")

    def test_duplicate_key_rejected(self):
        registry = FactorRegistry()
        registry.register(_definition())
        with pytest.raises(ValueError):
            registry.register(_definition())

    def test_same_key_allowed_across_bet_types(self):
        registry = FactorRegistry()
        registry.register(_definition(bet_type=BetType.TOTAL))
        registry.register(_definition(bet_type=BetType.SPREAD))
        assert len(registry.get_all()) == 2

    def test_lookup_is_scoped_to_context(self):
        registry = FactorRegistry()
        registry.register(_definition(bet_type=BetType.TOTAL))
        assert registry.get_by_key("testFactor", Sport.NBA, BetType.SPREAD) is None

    def test_alias_resolves(self):
        registry = FactorRegistry()
        registry.register(_definition(key="newKey"))
        registry.register_alias("oldKey", "newKey")
        assert registry.get_by_key("oldKey").key == "newKey"

    def test_get_keys_preserves_registration_order(self):
        registry = FactorRegistry()
        registry.register(_definition(key="b"))
        registry.register(_definition(key="a"))
        assert registry.get_keys(Sport.NBA, BetType.TOTAL) == ["b", "a"]
        assert registry.get_keys() == ["a", "b"]

    def test_details_and_logic(self):
        registry = FactorRegistry()
        registry.register(_definition())
        details = registry.get_factor_details("testFactor")
        assert details["category"] == "pace"
        assert "compute" not in details
        assert registry.get_factor_logic("testFactor") == "signal = constant"
        assert registry.get_factor_details("missing") is None

    def test_grouped_by_category(self):
        registry = FactorRegistry()
        registry.register(_definition(key="a"))
        registry.register(_definition(key="b"))
        grouped = registry.get_grouped_by_category(Sport.NBA, BetType.TOTAL)
        assert [d["key"] for d in grouped["pace"]] == ["a", "b"]


class TestCompute:
    def test_compute_shapes_result(self):
        registry = FactorRegistry()
        registry.register(_definition())
        row = registry.compute("testFactor", NBAStatsBundle(), _ctx(weights={"testFactor": 20.0}))

        assert row.normalized_value == pytest.approx(0.5)
        assert row.parsed_values_json["overScore"] == pytest.approx(2.5)
        assert row.parsed_values_json["underScore"] == 0.0
        assert row.parsed_values_json["points"] == pytest.approx(2.5)
        assert row.parsed_values_json["x"] == 1
        assert row.weight_total_pct == 20.0

    def test_spread_factors_score_away_and_home(self):
        registry = FactorRegistry()
        registry.register(_definition(
            bet_type=BetType.SPREAD,
            compute=lambda b, c: FactorResult(signal=-0.4),
        ))
        row = registry.compute("testFactor", NBAStatsBundle(), _ctx(BetType.SPREAD))
        assert row.parsed_values_json["homeScore"] == pytest.approx(2.0)
        assert row.parsed_values_json["awayScore"] == 0.0

    def test_out_of_range_signal_is_clamped(self):
        registry = FactorRegistry()
        registry.register(_definition(compute=lambda b, c: FactorResult(signal=3.0)))
        row = registry.compute("testFactor", NBAStatsBundle(), _ctx())
        assert row.normalized_value == 1.0

    def test_unknown_key_raises(self):
        with pytest.raises(KeyError):
            FactorRegistry().compute("nope", NBAStatsBundle(), _ctx())

    def test_compute_many_neutralises_failures(self):
        def boom(bundle, ctx):
            raise ValueError("bad data")

        registry = FactorRegistry()
        registry.register(_definition(key="good"))
        registry.register(_definition(key="bad", compute=boom, number=2))
        rows = registry.compute_many(["good", "bad"], NBAStatsBundle(), _ctx(weights={"bad": 15.0}))

        assert [r.key for r in rows] == ["good", "bad"]
        bad = rows[1]
        assert bad.normalized_value == 0.0
        assert bad.cap_reason == "computation_error"
        assert bad.notes == "Error: bad data"
        assert bad.factor_no == 2
        assert bad.weight_total_pct == 15.0


class TestDefaultRegistry:
    def test_totals_factors_registered(self):
        keys = build_default_registry().get_keys(Sport.NBA, BetType.TOTAL)
        assert keys == [
            "paceIndex", "offForm", "defErosion", "threeEnv",
            "whistleEnv", "injuryAvailability", "restAdvantage",
        ]

    def test_spread_factors_registered(self):
        keys = build_default_registry().get_keys(Sport.NBA, BetType.SPREAD)
        assert keys[0] == "netRatingDiff"
        assert "shootingEfficiencyMomentum" in keys
        assert len(keys) == 11

    def test_legacy_spread_alias(self):
        registry = build_default_registry()
        definition = registry.get_by_key("shootingMomentum", Sport.NBA, BetType.SPREAD)
        assert definition.key == "shootingEfficiencyMomentum"

    def test_singleton(self):
        assert get_factor_registry() is get_factor_registry()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
