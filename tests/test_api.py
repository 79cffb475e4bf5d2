"""
API endpoint tests.  The database session is a MagicMock injected through
``get_db``; the scheduler lifespan is not started.

Run with: pytest tests/test_api.py -v
"""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from pickgen.main import app
from pickgen.models import get_db


@pytest.fixture
def db():
    session = MagicMock()
    app.dependency_overrides[get_db] = lambda: session
    yield session
    app.dependency_overrides.clear()


@pytest.fixture
def client(db):
    return TestClient(app)


class TestPublicEndpoints:
    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["status"] == "operational"

    def test_factor_config(self, client):
        resp = client.get("/api/factors/config", params={"bet_type": "spread"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["bet_type"] == "SPREAD"
        keys = [f["key"] for f in body["factors"]]
        assert "netRatingDiff" in keys
        assert "edgeVsMarketSpread" not in keys

    def test_bad_bet_type(self, client):
        resp = client.get("/api/factors/config", params={"bet_type": "PARLAY"})
        assert resp.status_code == 400

    def test_registry(self, client):
        body = client.get("/api/factors/registry").json()
        assert body["keys"][0] == "paceIndex"
        assert "pace" in body["categories"]


class TestCapperProfileEndpoints:
    def test_default_profile_when_none_saved(self, client, db):
        db.query.return_value.filter.return_value.order_by.return_value.all.return_value = []
        resp = client.get("/api/cappers/shiva/profile", params={"bet_type": "TOTAL"})
        assert resp.status_code == 200
        assert resp.json()["id"] == "shiva-nba-total-default"

    def test_edge_factor_rejected_by_schema(self, client):
        payload = {"bet_type": "TOTAL", "factors": [{"key": "edgeVsMarket", "weight": 100}]}
        resp = client.put("/api/cappers/shiva/profile", json=payload)
        assert resp.status_code == 422

    def test_wrong_bet_type_factor_is_400(self, client, db):
        payload = {"bet_type": "TOTAL", "factors": [{"key": "netRatingDiff", "weight": 30}]}
        resp = client.put("/api/cappers/shiva/profile", json=payload)
        assert resp.status_code == 400
        assert "not available for NBA TOTAL" in resp.json()["detail"]


class TestShivaEndpoints:
    def test_generate_pick_unknown_game(self, client, db):
        db.query.return_value.filter.return_value.first.return_value = None
        resp = client.post("/api/shiva/generate-pick", json={"game_id": 99})
        assert resp.status_code == 404

    @patch("pickgen.main.run_pick_generation")
    def test_generate_pick_validation_error(self, mock_run, client, db):
        db.query.return_value.filter.return_value.first.return_value = MagicMock()
        mock_run.side_effect = ValueError("Game already started 5 minutes ago")
        resp = client.post("/api/shiva/generate-pick", json={"game_id": 1, "bet_type": "SPREAD"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Game already started 5 minutes ago"

    @patch("pickgen.main.run_pick_generation")
    def test_generate_pick_pass(self, mock_run, client, db):
        db.query.return_value.filter.return_value.first.return_value = MagicMock()
        mock_run.return_value = {"run_id": "shiva_x", "decision": "PASS", "pick": None, "error": None, "steps": {}}
        resp = client.post("/api/shiva/generate-pick", json={"game_id": 1, "ai_provider": None})

        assert resp.status_code == 200
        assert resp.json()["decision"] == "PASS"
        assert mock_run.call_args.kwargs["ai_provider"] is None

    def test_bad_bet_type_payload(self, client):
        resp = client.post("/api/shiva/generate-pick", json={"game_id": 1, "bet_type": "MONEYLINE"})
        assert resp.status_code == 422

    def test_run_not_found(self, client, db):
        db.query.return_value.filter.return_value.first.return_value = None
        assert client.get("/api/shiva/runs/nope").status_code == 404


class TestJobEndpoints:
    @patch("pickgen.main.grade_completed_games")
    def test_grade(self, mock_grade, client):
        mock_grade.return_value = {
            "games_updated": 2, "picks_graded": 3, "pushes": 0, "errors": [], "timestamp": "2026-01-01T00:00:00",
        }
        resp = client.post("/api/picks/grade")
        assert resp.status_code == 200
        assert resp.json()["picks_graded"] == 3

    @patch("pickgen.main.get_latest_calibration", return_value=None)
    def test_latest_calibration_missing(self, mock_latest, client):
        assert client.get("/api/calibration/latest").status_code == 404


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
