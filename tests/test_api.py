"""Tests for the REST API."""

import pytest
from fastapi.testclient import TestClient

import api.main
from api.main import app


@pytest.fixture
def client(pipeline, monkeypatch):
    """Client whose pipeline is bound to the in-memory test database."""
    monkeypatch.setattr(api.main, "pipeline", pipeline)
    return TestClient(app)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ==================== STATELESS ====================

def test_create_projection(client, nba_matchup_dict):
    response = client.post("/api/projections", json=nba_matchup_dict)

    assert response.status_code == 200
    data = response.json()
    assert data["projected_total"] == 224.3
    assert data["fair_spread"] == 2.9
    assert data["sport"] == "NBA"
    assert data["kill_switches"] == ["No Four Factors data for either side"]


def test_projection_with_rest(client, nba_matchup_dict):
    payload = {**nba_matchup_dict, "away_rest_days": 0, "home_rest_days": 3, "is_away_traveling": True}

    data = client.post("/api/projections", json=payload).json()

    assert data["rest_adjustment"]["away_adjustment"] == -3.5
    assert data["rest_adjustment"]["home_adjustment"] == 1.0


def test_projection_rejects_unknown_sport(client, nba_matchup_dict):
    response = client.post("/api/projections", json={**nba_matchup_dict, "sport": "MLB"})

    assert response.status_code == 400
    assert "Unsupported sport" in response.json()["detail"]


def test_detect_opportunities(client, nba_matchup_dict):
    response = client.post("/api/opportunities/detect", json={
        "projection": nba_matchup_dict,
        "current_spread": -1.5,
        "current_total": 215,
    })

    assert response.status_code == 200
    data = response.json()
    assert data["projection"]["fair_total"] == 224.3
    assert [o["market_type"] for o in data["opportunities"]] == ["spread", "total", "first_half"]
    assert data["opportunities"][0]["play_description"] == "Boston +1.5"


def test_detect_opportunities_unknown_model(client, nba_matchup_dict):
    response = client.post("/api/opportunities/detect", json={
        "projection": nba_matchup_dict,
        "current_spread": -1.5,
        "confidence_model": "kelly",
    })
    assert response.status_code == 400


def test_rlm_detect(client):
    response = client.post("/api/rlm/detect", json={
        "market_type": "spread",
        "percentages": [{"market_type": "spread", "side": "home", "ticket_pct": 65, "money_pct": 49}],
        "movements": [{"market_type": "spread", "previous_value": -3.0, "current_value": -1.4}],
    })

    signal = response.json()["signal"]
    assert signal["strength"] == "moderate"
    assert signal["side"] == "away"


def test_rlm_detect_without_data(client):
    assert client.post("/api/rlm/detect", json={}).json() == {"signal": None}


def test_handle_split(client):
    data = client.post("/api/handle-split", json={"ticket_pct": 40, "money_pct": 65}).json()

    assert data["is_sharp_money"] is True
    assert data["divergence"] == 25


def test_handle_split_validates_range(client):
    response = client.post("/api/handle-split", json={"ticket_pct": 120, "money_pct": 65})
    assert response.status_code == 422


# ==================== STORED DATA ====================

def test_pipeline_run_and_listings(client, seeded):
    run = client.post("/api/pipeline/run", json={"sports": ["nba"]})

    assert run.status_code == 200
    assert run.json()["opportunities_created"] == 3

    opportunities = client.get("/api/opportunities", params={"sport": "NBA", "min_edge": 5}).json()
    assert sorted(o["market_type"] for o in opportunities) == ["first_half", "spread"]
    assert all(o["edge_percentage"] >= 5 for o in opportunities)

    signals = client.get("/api/rlm-signals").json()
    assert len(signals) == 1
    assert signals[0]["signal_strength"] == "moderate"


def test_pipeline_run_without_body(client, seeded):
    response = client.post("/api/pipeline/run")
    assert response.json()["games_processed"] == 1


def test_list_opportunities_rejects_unknown_sport(client):
    assert client.get("/api/opportunities", params={"sport": "XFL"}).status_code == 400


def test_backtest_endpoint(client):
    response = client.post("/api/backtest", json={"signal_type": "all", "save": False})

    assert response.status_code == 200
    assert response.json()["total_signals"] == 0


def test_backtest_rejects_unknown_signal(client):
    assert client.post("/api/backtest", json={"signal_type": "steam"}).status_code == 400
