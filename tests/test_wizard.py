"""
Tests for the seven-step SHIVA wizard.

Stats, injuries and the capper profile are all injected (``db=None`` falls
back to the generated default profile), so no network or database is used.

Run with: pytest tests/test_wizard.py -v
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from pickgen.core.factor_types import NBAStatsBundle, PlayerInjury
from pickgen.core.sport_config import BetType
from pickgen.services.stats import clear_bundle_cache
from pickgen.services.wizard import WizardResult, execute_wizard_pipeline, format_line, pick_direction

AWAY = "Denver Nuggets"
HOME = "Phoenix Suns"


def _game(total=220.0, spread_home=-3.5, books=("draftkings", "fanduel")):
    odds = [
        {
            "name": name,
            "total": total,
            "total_over_odds": -110,
            "total_under_odds": -110,
            "spread_home": spread_home,
            "spread_home_odds": -110,
            "spread_away": -spread_home,
            "spread_away_odds": -110,
            "moneyline_home": -150,
            "moneyline_away": 130,
        }
        for name in books
    ]
    return {
        "game_id": "evt_123",
        "home_team": HOME,
        "away_team": AWAY,
        "start_time": (datetime.utcnow() + timedelta(hours=6)).isoformat(),
        "odds": odds,
    }


def _fetcher(bundle):
    return lambda ctx: bundle


def _over_bundle():
    return NBAStatsBundle(
        away_pace_season=110, away_pace_last10=110, home_pace_season=110, home_pace_last10=110,
        away_ortg_last10=130, home_ortg_last10=130,
        away_drtg_last10=125, home_drtg_last10=125,
        away_three_par=0.45, home_three_par=0.45, away_opp_three_par=0.45, home_opp_three_par=0.45,
        away_ftr=0.30, home_ftr=0.30,
        away_rest_days=3, home_rest_days=3,
    )


def _away_spread_bundle():
    return NBAStatsBundle(
        away_ortg=125, away_drtg=100, home_ortg=100, home_drtg=125,
        away_ortg_last3=125, away_ortg_last10=115,
        away_road_ortg=125, away_road_drtg=100, home_home_ortg=100, home_home_drtg=125,
        away_efg=0.60, home_efg=0.48,
        away_tov_last10=10.0, home_tov_last10=18.0,
        away_win_streak=5, away_last10_wins=9, away_last10_losses=1,
        home_win_streak=-5, home_last10_wins=1, home_last10_losses=9,
        away_steals=10.0, away_blocks=7.0,
        away_assists=32.0,
    )


def _run(game, bundle, bet_type=BetType.TOTAL, injuries=None):
    return execute_wizard_pipeline(
        game,
        bet_type=bet_type,
        ai_provider=None,
        fetch_bundle=_fetcher(bundle),
        injuries=injuries or [],
    )


class TestFormatLine:
    @pytest.mark.parametrize("line, expected", [(4.5, "+4.5"), (-3.0, "-3"), (0.0, "+0"), (-0.0, "+0")])
    def test_format_line(self, line, expected):
        assert format_line(line) == expected


class TestPickDirection:
    def test_total_follows_predicted_total_not_confidence_sign(self):
        snapshot = {"total": {"line": 200.0}}
        # An UNDER-leaning run that still projects above a low market line.
        assert pick_direction(BetType.TOTAL, {"predicted_total": 204.0}, snapshot) == "OVER"
        assert pick_direction(BetType.TOTAL, {"predicted_total": 198.5}, snapshot) == "UNDER"

    def test_total_at_market_is_under(self):
        assert pick_direction(BetType.TOTAL, {"predicted_total": 200.0}, {"total": {"line": 200.0}}) == "UNDER"

    @pytest.mark.parametrize("margin, expected", [(2.5, "AWAY"), (-0.5, "HOME"), (0.0, "HOME")])
    def test_spread_follows_margin_sign(self, margin, expected):
        assert pick_direction(BetType.SPREAD, {"predicted_margin": margin}, {}) == expected


class TestTotalsPipeline:
    def test_neutral_game_passes(self):
        result = _run(_game(total=220.0), NBAStatsBundle())

        assert result.success is True
        assert result.decision == "PASS"
        assert result.pick is None
        assert result.steps["step4"]["prediction"]["predicted_total"] == pytest.approx(220.0)
        assert result.steps["step5"]["conf_final"] == pytest.approx(0.0)
        assert result.steps["step7"]["decision"] == "PASS"
        assert result.steps["step7"]["units"] == 0

    def test_records_every_step(self):
        result = _run(_game(), NBAStatsBundle())
        assert set(result.steps) == {"step1", "step2", "step3", "step4", "step5", "step6", "step7"}
        assert result.steps["step1"]["game_id"] == "evt_123"
        assert result.steps["step2"]["books_considered"] == ["draftkings", "fanduel"]
        assert result.steps["step3"]["profile_id"] == "shiva-nba-total-default"
        assert len(result.steps["step3"]["factors"]) == 7
        assert result.steps["step6"]["skipped"] is True
        assert result.run_id.startswith("shiva_")

    def test_strong_over_lean_makes_pick(self):
        result = _run(_game(total=205.0), _over_bundle())

        assert result.decision == "PICK"
        assert result.pick["pick_type"] == "total_over"
        assert result.pick["selection"] == "OVER 205"
        assert result.pick["line"] == 205.0
        assert result.pick["odds"] == -110
        assert result.pick["units"] >= 1
        assert result.pick["confidence"] > 5.0
        assert result.pick["game_snapshot"]["total"]["line"] == 205.0
        assert result.steps["step4"]["prediction"]["predicted_total"] > 220.0

    def test_market_edge_added_in_step5(self):
        result = _run(_game(total=205.0), _over_bundle())
        step5 = result.steps["step5"]

        assert step5["edge_factor"]["key"] == "edgeVsMarket"
        assert step5["edge_factor"]["factor_no"] == 8
        assert step5["edge_factor"]["weight_total_pct"] == 100.0
        assert step5["conf_final"] > step5["conf_base"]
        assert step5["conf_market_adj"] == pytest.approx(step5["conf_final"] - step5["conf_base"], abs=1e-3)
        assert result.log["confidenceBreakdown"]["conf_source"] == "factor_weighted_v1"

    def test_star_out_blocks_pick(self):
        injuries = [PlayerInjury(team=HOME, player="Star Guard", status="OUT", position="G", ppg=27.0, mpg=35.0)]
        result = _run(_game(total=205.0), _over_bundle(), injuries=injuries)

        assert result.success is True
        assert result.decision == "PASS"
        assert result.steps["step7"]["blocked_reason"].startswith("Star player Star Guard")

    def test_missing_odds_is_an_error(self):
        game = _game()
        game["odds"] = []
        result = _run(game, NBAStatsBundle())

        assert isinstance(result, WizardResult)
        assert result.success is False
        assert result.decision == "ERROR"
        assert "No total line" in result.error
        assert "step1" in result.steps
        assert "step2" not in result.steps

    def test_missing_bundle_is_an_error(self):
        result = _run(_game(), None)
        assert result.decision == "ERROR"
        assert "Stats bundle unavailable" in result.error

    def test_to_dict_includes_decision(self):
        data = _run(_game(), NBAStatsBundle()).to_dict()
        assert data["decision"] == "PASS"
        assert data["success"] is True


class TestSpreadPipeline:
    def test_neutral_spread_passes(self):
        result = _run(_game(spread_home=0.0), NBAStatsBundle(), bet_type=BetType.SPREAD)
        assert result.decision == "PASS"
        assert result.steps["step3"]["baseline_avg"] == 0.0

    def test_strong_away_lean_takes_away_points(self):
        result = _run(_game(spread_home=-6.0), _away_spread_bundle(), bet_type=BetType.SPREAD)

        assert result.decision == "PICK"
        assert result.steps["step7"]["direction"] == "AWAY"
        assert result.pick["pick_type"] == "spread"
        assert result.pick["team"] == AWAY
        assert result.pick["selection"] == f"{AWAY} +6"
        assert result.pick["line"] == 6.0
        assert result.steps["step4"]["prediction"]["predicted_margin"] > 0
        assert result.steps["step4"]["prediction"]["winner"] == AWAY

    def test_large_spread_edge_saturates(self):
        result = _run(_game(spread_home=-6.0), _away_spread_bundle(), bet_type=BetType.SPREAD)
        edge = result.steps["step5"]["edge_factor"]

        assert edge["key"] == "edgeVsMarketSpread"
        assert edge["factor_no"] == 12
        assert edge["caps_applied"] is True
        assert edge["cap_reason"] == "edge_saturated"


class TestDefaultStatsSource:
    def setup_method(self):
        clear_bundle_cache()

    def teardown_method(self):
        clear_bundle_cache()

    @patch("pickgen.services.odds.OddsAPIClient")
    def test_two_runs_share_one_upstream_fetch(self, mock_client_cls):
        played = (datetime.utcnow() - timedelta(days=1)).isoformat() + "Z"
        client = MagicMock()
        client.get_scores.return_value = [{
            "completed": True,
            "home_team": HOME,
            "away_team": AWAY,
            "commence_time": played,
            "scores": [{"name": HOME, "score": "112"}, {"name": AWAY, "score": "108"}],
        }]
        mock_client_cls.return_value = client

        for _ in range(2):
            result = execute_wizard_pipeline(_game(), ai_provider=None, injuries=[])
            assert result.success is True

        client.get_scores.assert_called_once()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
