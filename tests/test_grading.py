"""
Tests for pick grading.

Run with: pytest tests/test_grading.py -v
"""

from unittest.mock import MagicMock, patch

import pytest

from pickgen.services.grading import grade_completed_games, grade_pick, parse_selection

HOME = "Boston Celtics"
AWAY = "Miami Heat"


class TestParseSelection:
    @pytest.mark.parametrize("selection, expected", [
        ("OVER 220.5", ("OVER", 220.5)),
        ("under 198", ("UNDER", 198.0)),
        ("Boston Celtics -4.5", ("Boston Celtics", -4.5)),
        ("Miami Heat +6", ("Miami Heat", 6.0)),
        ("Boston Celtics", ("Boston Celtics", None)),
    ])
    def test_parse(self, selection, expected):
        assert parse_selection(selection) == expected


class TestGradeTotals:
    def test_over_wins(self):
        result = grade_pick("total_over", "OVER 220.5", 2, HOME, AWAY, 115, 110)
        assert result.result == "won"
        assert result.units_delta == 2.0

    def test_under_loses(self):
        result = grade_pick("total_under", "UNDER 220.5", 3, HOME, AWAY, 115, 110)
        assert result.result == "lost"
        assert result.units_delta == -3.0

    def test_push_on_whole_number(self):
        result = grade_pick("total_over", "OVER 225", 1, HOME, AWAY, 115, 110)
        assert result.result == "push"
        assert result.units_delta == 0.0

    def test_total_needs_over_or_under(self):
        with pytest.raises(ValueError, match="not OVER/UNDER"):
            grade_pick("total_over", "Boston Celtics -4.5", 1, HOME, AWAY, 115, 110)


class TestGradeSpread:
    def test_favourite_covers(self):
        result = grade_pick("spread", "Boston Celtics -4.5", 2, HOME, AWAY, 115, 110)
        assert result.result == "won"

    def test_favourite_fails_to_cover(self):
        result = grade_pick("spread", "Boston Celtics -6.5", 2, HOME, AWAY, 115, 110)
        assert result.result == "lost"
        assert result.units_delta == -2.0

    def test_dog_covers_with_points(self):
        result = grade_pick("spread", "Miami Heat +6.5", 1, HOME, AWAY, 115, 110)
        assert result.result == "won"

    def test_spread_push(self):
        result = grade_pick("spread", "Miami Heat +5", 4, HOME, AWAY, 115, 110)
        assert result.result == "push"

    def test_team_match_ignores_case(self):
        result = grade_pick("spread", "miami heat +6.5", 1, HOME, AWAY, 115, 110)
        assert result.result == "won"

    def test_unknown_team_raises(self):
        with pytest.raises(ValueError, match="names neither"):
            grade_pick("spread", "Denver Nuggets +3", 1, HOME, AWAY, 115, 110)


class TestGradeErrors:
    def test_missing_line(self):
        with pytest.raises(ValueError, match="Cannot parse line"):
            grade_pick("spread", "Boston Celtics", 1, HOME, AWAY, 100, 90)

    def test_unsupported_pick_type(self):
        with pytest.raises(ValueError, match="Unsupported pick type"):
            grade_pick("moneyline", "Boston Celtics +0", 1, HOME, AWAY, 100, 90)


class TestGradeCompletedGames:
    def _scores(self):
        return [
            {
                "id": "evt_1",
                "completed": True,
                "home_team": HOME,
                "scores": [{"name": HOME, "score": "115"}, {"name": AWAY, "score": "110"}],
            },
            {"id": "evt_2", "completed": False, "home_team": HOME, "scores": None},
        ]

    @patch("pickgen.services.grading.SessionLocal")
    def test_grades_pending_picks(self, mock_session):
        game = MagicMock(id=1, home_team=HOME, away_team=AWAY, completed=False, home_score=None, away_score=None)
        pick = MagicMock(id=7, pick_type="total_over", selection="OVER 220.5", units=2.0, status="pending")

        db = MagicMock()
        db.query.return_value.filter.return_value.first.return_value = game
        db.query.return_value.filter.return_value.all.return_value = [pick]
        mock_session.return_value = db

        client = MagicMock()
        client.get_scores.return_value = self._scores()

        summary = grade_completed_games(odds_client=client)

        assert summary["games_updated"] == 1
        assert summary["picks_graded"] == 1
        assert summary["errors"] == []
        assert game.home_score == 115 and game.away_score == 110
        assert game.status == "final"
        assert pick.status == "won"
        assert pick.units_result == 2.0
        db.close.assert_called_once()

    @patch("pickgen.services.grading.SessionLocal")
    def test_bad_selection_recorded_as_error(self, mock_session):
        game = MagicMock(id=1, home_team=HOME, away_team=AWAY, completed=True, home_score=115, away_score=110)
        pick = MagicMock(id=9, pick_type="spread", selection="Denver Nuggets +3", units=1.0, status="pending")

        db = MagicMock()
        db.query.return_value.filter.return_value.first.return_value = game
        db.query.return_value.filter.return_value.all.return_value = [pick]
        mock_session.return_value = db

        client = MagicMock()
        client.get_scores.return_value = self._scores()

        summary = grade_completed_games(odds_client=client)

        assert summary["games_updated"] == 0
        assert summary["picks_graded"] == 0
        assert len(summary["errors"]) == 1
        assert summary["errors"][0].startswith("Pick 9")
        assert pick.status == "pending"

    @patch("pickgen.services.grading.SessionLocal")
    def test_scores_api_failure(self, mock_session):
        db = MagicMock()
        mock_session.return_value = db
        client = MagicMock()
        client.get_scores.side_effect = ValueError("ODDS_API_KEY not set")

        summary = grade_completed_games(odds_client=client)

        assert summary["errors"] == ["Scores API unavailable: ODDS_API_KEY not set"]
        db.add.assert_called_once()
        db.close.assert_called_once()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
