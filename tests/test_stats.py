"""
Tests for recent-form math and the stats bundle fetcher.

Run with: pytest tests/test_stats.py -v
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from pickgen.core.factor_types import RunContext
from pickgen.services.stats import (
    StatsFetcher,
    TeamResult,
    clear_bundle_cache,
    current_streak,
    estimate_pace,
    summarize_recent_form,
)

TIP = datetime(2026, 1, 20, 19, 0)


@pytest.fixture(autouse=True)
def _empty_bundle_cache():
    clear_bundle_cache()
    yield
    clear_bundle_cache()


def _result(days_before, points, opp_points, is_home=True):
    return TeamResult(date=TIP - timedelta(days=days_before), points=points, opp_points=opp_points, is_home=is_home)


def _score(days_before, home, away, home_pts, away_pts):
    return {
        "completed": True,
        "home_team": home,
        "away_team": away,
        "commence_time": (TIP - timedelta(days=days_before)).isoformat() + "Z",
        "scores": [{"name": home, "score": str(home_pts)}, {"name": away, "score": str(away_pts)}],
    }


class TestRecentForm:
    def test_league_average_game_is_league_pace(self):
        assert estimate_pace(112, 112) == pytest.approx(100.1)

    @pytest.mark.parametrize("outcomes, expected", [
        ([], 0),
        ([True, True, False], 2),
        ([False, False, False, True], -3),
    ])
    def test_current_streak(self, outcomes, expected):
        results = [_result(i + 1, 110 if won else 100, 100 if won else 110) for i, won in enumerate(outcomes)]
        assert current_streak(results) == expected

    def test_summary(self):
        results = [_result(1, 120, 104), _result(3, 100, 124), _result(5, 112, 112)]
        summary = summarize_recent_form(results, as_of=TIP)

        assert summary["games"] == 3
        assert summary["wins"] == 1
        assert summary["losses"] == 2
        assert summary["streak"] == 1
        assert summary["ppg"] == pytest.approx(332 / 3)
        # Every game totals 224 points → league pace, so ORtg is points × 100 / 100.1.
        assert summary["pace_last10"] == pytest.approx(100.1)
        assert summary["ortg_last3"] == pytest.approx((332 / 3) / 100.1 * 100.0)

    def test_back_to_back(self):
        summary = summarize_recent_form([_result(1, 110, 100)], as_of=TIP)
        assert summary["rest_days"] == 0
        assert summary["back_to_back"] is True

    def test_rest_days(self):
        summary = summarize_recent_form([_result(3, 110, 100)], as_of=TIP)
        assert summary["rest_days"] == 2
        assert summary["back_to_back"] is False

    def test_no_results(self):
        assert summarize_recent_form([]) == {}


class TestStatsFetcher:
    def _ctx(self):
        return RunContext(game_id="g1", away="Miami Heat", home="Boston Celtics", start_time=TIP)

    def test_bundle_from_scores_feed(self):
        client = MagicMock()
        client.get_scores.return_value = [
            _score(1, "Boston Celtics", "New York Knicks", 120, 104),
            _score(2, "Miami Heat", "Chicago Bulls", 100, 110),
        ]
        bundle = StatsFetcher(odds_client=client).fetch_bundle(self._ctx())

        assert bundle.home_points_per_game == 120.0
        assert bundle.away_points_per_game == 100.0
        assert bundle.home_win_streak == 1
        assert bundle.away_win_streak == -1
        assert bundle.home_back_to_back is True
        assert bundle.away_rest_days == 1
        assert bundle.home_pace_season == bundle.home_pace_last10

    def test_future_games_ignored(self):
        client = MagicMock()
        client.get_scores.return_value = [
            _score(1, "Boston Celtics", "New York Knicks", 120, 104),
            _score(-1, "Miami Heat", "Chicago Bulls", 100, 110),
        ]
        bundle = StatsFetcher(odds_client=client).fetch_bundle(self._ctx())
        assert bundle.away_points_per_game is None

    def test_bundle_cached(self):
        client = MagicMock()
        client.get_scores.return_value = [_score(1, "Boston Celtics", "Miami Heat", 120, 104)]
        fetcher = StatsFetcher(odds_client=client)
        first = fetcher.fetch_bundle(self._ctx())
        assert fetcher.fetch_bundle(self._ctx()) is first
        fetcher.clear_cache()
        assert fetcher.fetch_bundle(self._ctx()) is not first

    def test_cache_shared_across_fetchers(self):
        client = MagicMock()
        client.get_scores.return_value = [_score(1, "Boston Celtics", "Miami Heat", 120, 104)]
        first = StatsFetcher(odds_client=client).fetch_bundle(self._ctx())
        second = StatsFetcher(odds_client=client).fetch_bundle(self._ctx())
        assert second is first
        client.get_scores.assert_called_once()

    def test_scores_feed_requested_once_per_bundle(self):
        client = MagicMock()
        client.get_scores.return_value = [
            _score(1, "Boston Celtics", "New York Knicks", 120, 104),
            _score(2, "Miami Heat", "Chicago Bulls", 100, 110),
        ]
        StatsFetcher(odds_client=client).fetch_bundle(self._ctx())
        assert client.get_scores.call_count == 1

    def test_no_data_raises(self):
        with pytest.raises(RuntimeError, match="No stats available"):
            StatsFetcher().fetch_bundle(self._ctx())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
