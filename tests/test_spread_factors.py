"""
Tests for the NBA spread factors.

Positive signal = AWAY covers, negative = HOME covers.

Run with: pytest tests/test_spread_factors.py -v
"""

import math

import pytest

from pickgen.core.factor_types import NBAStatsBundle, PlayerInjury, RunContext
from pickgen.core.sport_config import BetType
from pickgen.factors.spread import (
    DEFINITIONS,
    assist_to_turnover,
    compute_assist_efficiency,
    compute_defensive_pressure,
    compute_four_factors_diff,
    compute_home_away_splits,
    compute_injury_availability_spread,
    compute_momentum_index,
    compute_net_rating_diff,
    compute_pace_mismatch,
    compute_rebounding_diff,
    compute_shooting_efficiency_momentum,
    compute_turnover_diff,
    four_factor_rating,
    momentum_score,
    pace_mismatch_category,
)

AWAY = "Denver Nuggets"
HOME = "Phoenix Suns"


def _ctx(spread_line=None, injuries=None):
    return RunContext(
        game_id="g1", away=AWAY, home=HOME, bet_type=BetType.SPREAD,
        spread_line=spread_line, injuries=injuries or [],
    )


class TestSymmetricBundleIsNeutral:
    @pytest.mark.parametrize("definition", DEFINITIONS, ids=lambda d: d.key)
    def test_defaults_give_zero_signal(self, definition):
        result = definition.compute(NBAStatsBundle(), _ctx())
        assert result.signal == pytest.approx(0.0, abs=1e-9)

    def test_factor_numbers_unique(self):
        numbers = [d.factor_number for d in DEFINITIONS]
        assert len(numbers) == len(set(numbers))


class TestNetRatingDiff:
    def test_better_away_team_without_line(self):
        bundle = NBAStatsBundle(away_ortg=118, away_drtg=110, home_ortg=112, home_drtg=112,
                                away_pace_season=100, home_pace_season=100)
        result = compute_net_rating_diff(bundle, _ctx())
        assert result.meta["expectedMargin"] == pytest.approx(8.0)
        assert result.signal == pytest.approx(math.tanh(8.0 / 3.5))

    def test_line_is_added_from_away_perspective(self):
        # Away projected +8, but laying 6 (away line −6) → 2-point edge.
        bundle = NBAStatsBundle(away_ortg=118, away_drtg=110, home_ortg=112, home_drtg=112,
                                away_pace_season=100, home_pace_season=100)
        result = compute_net_rating_diff(bundle, _ctx(spread_line=-6.0))
        assert result.meta["spreadEdge"] == pytest.approx(2.0)
        assert result.signal == pytest.approx(math.tanh(2.0 / 3.5))

    def test_dog_getting_too_many_points_is_positive(self):
        result = compute_net_rating_diff(NBAStatsBundle(), _ctx(spread_line=4.5))
        assert result.signal > 0

    def test_edge_capped_at_twenty(self):
        bundle = NBAStatsBundle(away_ortg=140, away_drtg=100, home_ortg=100, home_drtg=120)
        result = compute_net_rating_diff(bundle, _ctx())
        assert result.caps_applied is True
        assert result.cap_reason == "edge_capped"

    def test_bad_input_is_neutral(self):
        result = compute_net_rating_diff(NBAStatsBundle(away_pace_season=0), _ctx())
        assert result.signal == 0.0
        assert result.cap_reason == "bad_input"


class TestTurnoverDiff:
    def test_sloppy_home_team_favours_away(self):
        bundle = NBAStatsBundle(away_tov_last10=12.0, home_tov_last10=16.0)
        result = compute_turnover_diff(bundle, _ctx())
        assert result.meta["expectedPointsImpact"] == pytest.approx(4.4)
        assert result.signal == pytest.approx(math.tanh(4.4 / 5.0))

    def test_negative_turnovers_raise(self):
        with pytest.raises(ValueError):
            compute_turnover_diff(NBAStatsBundle(away_tov_last10=-1.0), _ctx())

    def test_nan_turnovers_raise(self):
        with pytest.raises(ValueError):
            compute_turnover_diff(NBAStatsBundle(home_tov_last10=float("nan")), _ctx())


class TestShootingEfficiencyMomentum:
    def test_better_shooting_away(self):
        bundle = NBAStatsBundle(away_efg=0.58, home_efg=0.52)
        result = compute_shooting_efficiency_momentum(bundle, _ctx())
        assert result.meta["shootingDiff"] == pytest.approx(4.2)
        assert result.signal > 0

    def test_hot_home_offense_favours_home(self):
        bundle = NBAStatsBundle(home_ortg_last3=121.0, home_ortg_last10=110.0)
        result = compute_shooting_efficiency_momentum(bundle, _ctx())
        assert result.meta["homeMomentum"] == pytest.approx(0.1)
        assert result.signal < 0


class TestHomeAwaySplits:
    def test_strong_home_team(self):
        bundle = NBAStatsBundle(home_home_ortg=118.0, home_home_drtg=108.0)
        result = compute_home_away_splits(bundle, _ctx())
        assert result.meta["splitDiff"] == pytest.approx(-10.0)
        assert result.signal == pytest.approx(math.tanh(-10.0 / 6.0))


class TestFourFactors:
    def test_rating_weights(self):
        assert four_factor_rating(0.5, 0.1, 0.2, 0.2) == pytest.approx(0.25 - 0.03 + 0.03 + 0.01)

    def test_away_edge(self):
        bundle = NBAStatsBundle(away_efg=0.56, home_efg=0.54)
        result = compute_four_factors_diff(bundle, _ctx())
        assert result.meta["expectedMargin"] == pytest.approx(1.2)
        assert result.signal == pytest.approx(math.tanh(1.2 / 8.0), abs=1e-6)


class TestInjuryAvailabilitySpread:
    def test_away_star_out_favours_home(self):
        injuries = [PlayerInjury(team=AWAY, player="Star", status="OUT", ppg=28.0, mpg=36.0)]
        result = compute_injury_availability_spread(None, _ctx(injuries=injuries))
        # impact = 2.8 + 1.5 = 4.3
        assert result.meta["awayImpact"] == pytest.approx(4.3)
        assert result.signal == pytest.approx(-math.tanh(4.3 / 5.0), abs=1e-6)

    def test_home_injuries_favour_away(self):
        injuries = [PlayerInjury(team=HOME, player="Guard", status="DOUBTFUL", ppg=15.0, mpg=30.0)]
        result = compute_injury_availability_spread(None, _ctx(injuries=injuries))
        assert result.signal > 0

    def test_team_match_is_case_insensitive(self):
        injuries = [PlayerInjury(team=AWAY.upper(), player="Star", status="OUT", ppg=20.0, mpg=30.0)]
        result = compute_injury_availability_spread(None, _ctx(injuries=injuries))
        assert result.signal < 0

    def test_no_injuries_note(self):
        result = compute_injury_availability_spread(None, _ctx())
        assert result.notes == "No significant injuries for either team"


class TestMomentumIndex:
    def test_momentum_score(self):
        assert momentum_score(3, 8, 2) == pytest.approx(1.5 + 1.5)

    def test_streak_clamped(self):
        assert momentum_score(12, 5, 5) == pytest.approx(2.5)

    def test_hot_away_team(self):
        bundle = NBAStatsBundle(away_win_streak=4, away_last10_wins=8, away_last10_losses=2)
        result = compute_momentum_index(bundle, _ctx())
        assert result.signal > 0


class TestDefensivePressure:
    def test_disruptive_home_team(self):
        bundle = NBAStatsBundle(home_steals=9.5, home_blocks=6.0)
        result = compute_defensive_pressure(bundle, _ctx())
        assert result.meta["disruptionDiff"] == pytest.approx(-(2.0 * 1.5 + 1.0 * 0.8))
        assert result.signal < 0


class TestAssistEfficiency:
    @pytest.mark.parametrize("ast, tov, expected", [
        (26.0, 13.0, 2.0),
        (20.0, 0.0, 3.0),
        (0.0, 0.0, 1.0),
    ])
    def test_assist_to_turnover(self, ast, tov, expected):
        assert assist_to_turnover(ast, tov) == pytest.approx(expected)

    def test_better_ball_movement_away(self):
        bundle = NBAStatsBundle(away_assists=30.0, away_tov_last10=12.0)
        result = compute_assist_efficiency(bundle, _ctx())
        assert result.signal > 0


class TestSupplementary:
    def test_rebounding_edge(self):
        bundle = NBAStatsBundle(away_oreb=12.5, away_dreb=34.0)
        result = compute_rebounding_diff(bundle, _ctx())
        assert result.meta["expectedPointsImpact"] == pytest.approx(2.0 * 1.1 + 3.0 * 0.3)
        assert result.signal > 0

    def test_rebounding_invalid_input(self):
        result = compute_rebounding_diff(NBAStatsBundle(away_oreb=float("inf")), _ctx())
        assert result.cap_reason == "invalid_input"

    @pytest.mark.parametrize("diff, category", [
        (9.0, "Extreme"), (-6.0, "High"), (4.0, "Moderate"), (1.0, "Minimal"),
    ])
    def test_pace_mismatch_category(self, diff, category):
        assert pace_mismatch_category(diff) == category

    def test_fast_away_team_favours_home(self):
        bundle = NBAStatsBundle(away_pace_last10=106.1, home_pace_last10=100.1)
        result = compute_pace_mismatch(bundle, _ctx())
        assert result.meta["mismatchCategory"] == "High"
        assert result.signal < 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
