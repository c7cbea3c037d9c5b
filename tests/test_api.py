"""API tests against an in-memory context (no database, no scheduler)."""

import pytest
from fastapi.testclient import TestClient

from backend.main import create_app
from backend.services.predictions import Prediction, StaticPredictionSource
from backend.services.session import BettingContext
from backend.services.storage import InMemoryStore


@pytest.fixture
def context():
    source = StaticPredictionSource([
        Prediction(game_id="101", home_team="Lakers", away_team="Celtics",
                   pick="Lakers", confidence=0.72, spread=-3.5, sport="basketball_nba"),
        Prediction(game_id="102", home_team="Heat", away_team="Knicks",
                   pick="Knicks", confidence=0.58, sport="basketball_nba"),
    ])
    ctx = BettingContext(InMemoryStore(), source)
    ctx.refresh_predictions()
    return ctx


@pytest.fixture
def client(context):
    return TestClient(create_app(context, start_scheduler=False))


# ---------------------------------------------------------------------------
# Health / predictions
# ---------------------------------------------------------------------------

def test_root(client):
    body = client.get("/").json()
    assert body["status"] == "operational"


def test_health_without_scheduler(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["scheduler"] == "disabled"


def test_todays_predictions(client):
    body = client.get("/api/predictions/today").json()
    assert body["total_games"] == 2
    assert body["predictions"][0]["confidenceLevel"] == "high"
    assert body["last_refresh"] is not None


def test_refresh(client):
    resp = client.post("/api/predictions/refresh")
    assert resp.status_code == 200
    assert resp.json()["total_games"] == 2


# ---------------------------------------------------------------------------
# Bets
# ---------------------------------------------------------------------------

class TestBets:

    def test_place_bet_on_prediction(self, client):
        resp = client.post("/api/bankroll/bets", json={"game_id": "101", "units": 2})
        assert resp.status_code == 200
        bet = resp.json()
        assert bet["riskAmount"] == pytest.approx(20.0)
        assert bet["potentialWin"] == pytest.approx(18.18, abs=0.01)
        assert bet["predictionId"] == "101"
        assert bet["result"] == "pending"

    def test_place_manual_bet(self, client):
        resp = client.post("/api/bankroll/bets", json={
            "game": {"homeTeam": "Chiefs", "awayTeam": "Bills"}, "units": 1, "odds": 150,
        })
        assert resp.status_code == 200
        assert resp.json()["potentialWin"] == pytest.approx(15.0)

    def test_place_bet_needs_a_game(self, client):
        resp = client.post("/api/bankroll/bets", json={"units": 1})
        assert resp.status_code == 422

    @pytest.mark.parametrize("payload", [
        {"game_id": "101", "units": 0},
        {"game_id": "101", "units": -1},
        {"game_id": "101", "units": 1, "odds": 0},
        {"game_id": "101", "units": 1, "odds": "NaN"},
        {"game_id": "101", "units": 1, "odds": "Infinity"},
        {"game_id": "101", "units": "inf", "odds": -110},
    ])
    def test_place_bet_validation(self, client, payload):
        assert client.post("/api/bankroll/bets", json=payload).status_code == 422

    def test_large_stake_hits_risk_policy_not_schema(self, client):
        resp = client.post("/api/bankroll/bets", json={"game_id": "101", "units": 11})
        assert resp.status_code == 400
        assert resp.json()["type"] == "DailyRiskExceeded"

    def test_unknown_prediction_is_404(self, client):
        resp = client.post("/api/bankroll/bets", json={"game_id": "999", "units": 1})
        assert resp.status_code == 404
        assert resp.json()["type"] == "PredictionNotFound"

    def test_daily_risk_exceeded_is_400(self, client, context):
        resp = client.post("/api/bankroll/bets", json={"game_id": "101", "units": 6})
        assert resp.status_code == 400
        body = resp.json()
        assert body["type"] == "DailyRiskExceeded"
        assert body["details"]["cap"] == pytest.approx(50.0)
        assert context.ledger.active_bets == []

    def test_resolve_bet(self, client):
        bet_id = client.post("/api/bankroll/bets", json={"game_id": "101", "units": 1}).json()["id"]

        resp = client.put(f"/api/bankroll/bets/{bet_id}/outcome", json={"outcome": "loss"})
        assert resp.status_code == 200
        assert resp.json()["result"] == "loss"

        bankroll = client.get("/api/bankroll").json()
        assert bankroll["settings"]["currentBankroll"] == pytest.approx(990.0)
        assert bankroll["losses"] == 1

        settled = client.get("/api/bankroll/bets", params={"status": "settled"}).json()
        assert settled["total"] == 1

    def test_resolve_twice_is_404(self, client):
        bet_id = client.post("/api/bankroll/bets", json={"game_id": "101", "units": 1}).json()["id"]
        client.put(f"/api/bankroll/bets/{bet_id}/outcome", json={"outcome": "win"})
        resp = client.put(f"/api/bankroll/bets/{bet_id}/outcome", json={"outcome": "win"})
        assert resp.status_code == 404

    def test_resolve_bad_outcome_is_422(self, client):
        resp = client.put("/api/bankroll/bets/1/outcome", json={"outcome": "pending"})
        assert resp.status_code == 422

    def test_active_bets_listing(self, client):
        client.post("/api/bankroll/bets", json={"game_id": "101", "units": 1})
        body = client.get("/api/bankroll/bets").json()
        assert body["status"] == "active"
        assert body["total"] == 1


# ---------------------------------------------------------------------------
# Picks
# ---------------------------------------------------------------------------

class TestPicks:

    def test_score_settles_linked_bet(self, client):
        client.post("/api/bankroll/bets", json={"game_id": "101", "units": 1})

        resp = client.post("/api/picks/101/score", json={"result": "w"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["pick"]["result"] == "W"
        assert body["settled_bet"]["result"] == "win"
        today = client.get("/api/predictions/today").json()
        assert [p["id"] for p in today["predictions"]] == ["102"]

    def test_score_without_bet(self, client):
        body = client.post("/api/picks/102/score", json={"result": "L"}).json()
        assert body["settled_bet"] is None
        assert body["pick"]["profit"] == pytest.approx(-1.10)

    def test_score_invalid_result(self, client):
        assert client.post("/api/picks/101/score", json={"result": "X"}).status_code == 422

    def test_score_unknown_game(self, client):
        assert client.post("/api/picks/999/score", json={"result": "W"}).status_code == 404

    def test_history_and_summary(self, client):
        client.post("/api/picks/101/score", json={"result": "W"})
        client.post("/api/picks/102/score", json={"result": "L"})

        history = client.get("/api/picks/history").json()
        assert [p["gameId"] for p in history["picks"]] == ["102", "101"]

        wins = client.get("/api/picks/history", params={"result": "W"}).json()
        assert wins["total"] == 1

        summary = client.get("/api/picks/summary").json()
        assert summary["wins"] == 1 and summary["losses"] == 1
        assert summary["accuracy"] == pytest.approx(0.5)

        recent = client.get("/api/picks/recent", params={"n": 1}).json()
        assert [p["gameId"] for p in recent["picks"]] == ["102"]

    def test_history_rejects_unknown_period(self, client):
        assert client.get("/api/picks/history", params={"period": "year"}).status_code == 422


# ---------------------------------------------------------------------------
# Settings / admin / performance
# ---------------------------------------------------------------------------

def test_update_settings(client):
    resp = client.put("/api/bankroll/settings", json={
        "starting_bankroll": 2000, "unit_percentage": 2, "max_daily_risk": 10,
    })
    assert resp.status_code == 200
    assert resp.json()["settings"]["currentBankroll"] == pytest.approx(2000.0)
    assert client.get("/api/bankroll").json()["unit_size"] == pytest.approx(40.0)


@pytest.mark.parametrize("payload", [
    {"starting_bankroll": 50},
    {"starting_bankroll": 1000, "unit_percentage": 20},
    {"starting_bankroll": 1000, "max_daily_risk": 0.5},
    {"starting_bankroll": "Infinity"},
])
def test_update_settings_validation(client, payload):
    assert client.put("/api/bankroll/settings", json=payload).status_code == 422


def test_export_reset_import(client):
    client.post("/api/bankroll/bets", json={"game_id": "101", "units": 1})
    exported = client.get("/api/bankroll/export").json()
    assert len(exported["activeBets"]) == 1
    assert "exportDate" in exported

    client.post("/admin/bankroll/reset")
    assert client.get("/api/bankroll/bets").json()["total"] == 0

    resp = client.post("/admin/bankroll/import", json=exported)
    assert resp.status_code == 200
    assert resp.json()["active_bets"] == 1


def test_import_malformed_is_400(client):
    resp = client.post("/admin/bankroll/import", json={"activeBets": [{"id": "1"}]})
    assert resp.status_code == 400


def test_performance_endpoints(client):
    client.post("/api/bankroll/bets", json={"game_id": "101", "units": 1})
    client.post("/api/picks/101/score", json={"result": "W"})

    summary = client.get("/api/performance/summary").json()
    assert summary["picks"]["wins"] == 1
    assert summary["bankroll"]["wins"] == 1

    timeline = client.get("/api/performance/timeline").json()
    assert len(timeline["timeline"]) == 1

    analytics = client.get("/api/performance/analytics").json()
    assert analytics["bankroll_series"][0] == pytest.approx(1000.0)
    assert analytics["bankroll_series"][-1] == pytest.approx(1009.09, abs=0.01)


def test_scheduler_status_without_scheduler(client):
    assert client.get("/admin/scheduler/status").json() == {"running": False, "jobs": []}
