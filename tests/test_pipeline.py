"""Tests for the DB-backed projection pipeline."""

from datetime import date, datetime

import pytest

from models.database import (
    BacktestResult,
    BettingPercentageRecord,
    Game,
    LineMovementRecord,
    OddsSnapshot,
    OpportunityRecord,
    Projection,
    RlmSignalRecord,
    TeamStat,
)
from services.backtesting import BacktestConfig


def finish_game(session_factory, game_id, home, away, first_half=None):
    session = session_factory()
    try:
        game = session.get(Game, game_id)
        game.status = "final"
        game.home_score = home
        game.away_score = away
        if first_half:
            game.home_first_half_score, game.away_first_half_score = first_half
        session.commit()
    finally:
        session.close()


# ==================== IMPORT ====================

def test_import_team_stats_upserts(pipeline, session_factory, stat_rows):
    assert pipeline.import_team_stats(stat_rows) == 2
    pipeline.import_team_stats([{**stat_rows[0], "offensive_rating": 120}])

    session = session_factory()
    try:
        rows = session.query(TeamStat).filter(TeamStat.team_name == "Boston").all()
        assert len(rows) == 1
        assert rows[0].offensive_rating == 120
        assert rows[0].raw_data["offensive_rating"] == 120
    finally:
        session.close()


def test_import_rejects_unknown_sport(pipeline):
    with pytest.raises(ValueError):
        pipeline.import_team_stats([{"team_name": "X", "sport": "MLS"}])


# ==================== RUN ====================

def test_run_creates_projection_opportunities_and_signal(pipeline, session_factory, seeded):
    result = pipeline.run(game_date=date(2024, 1, 15))

    assert result.errors == []
    assert result.games_processed == 1
    assert result.projections_generated == 1
    assert result.opportunities_created == 3
    assert result.rlm_signals_detected == 1

    session = session_factory()
    try:
        projection = session.query(Projection).one()
        assert projection.fair_spread == 2.9
        assert projection.fair_total == 224.3
        assert projection.algorithm_version == "NBA v3.5R1"

        signal = session.query(RlmSignalRecord).one()
        assert signal.market_type == "spread"
        assert signal.signal_strength == "moderate"
        assert signal.line_movement_direction == "down"
        assert signal.line_movement_size == 1.5
    finally:
        session.close()

    opportunities = {o["market_type"]: o for o in pipeline.list_opportunities()}
    assert set(opportunities) == {"spread", "total", "first_half"}
    assert opportunities["spread"]["side"] == "away"
    assert opportunities["spread"]["current_line"] == 2.0
    assert opportunities["spread"]["is_reverse_line_movement"]
    assert opportunities["total"]["play_description"] == "Over 215"
    assert not opportunities["total"]["is_reverse_line_movement"]
    assert opportunities["first_half"]["play_description"] == "1H Boston +0.9"
    assert opportunities["spread"]["matchup"] == "Boston @ Miami"


def test_run_prefers_ticket_based_signals(pipeline, session_factory, seeded):
    session = session_factory()
    try:
        session.add(BettingPercentageRecord(
            game_id=seeded, market_type="spread", side="home", ticket_percentage=72, money_percentage=45,
        ))
        session.add(LineMovementRecord(game_id=seeded, market_type="spread", previous_value=-0.5, current_value=-2.0))
        session.commit()
    finally:
        session.close()

    pipeline.run()

    signals = pipeline.list_rlm_signals()
    assert len(signals) == 1
    assert signals[0]["side"] == "away"
    assert signals[0]["ticket_percentage"] == 72
    assert signals[0]["signal_strength"] == "strong"

    spread = next(o for o in pipeline.list_opportunities() if o["market_type"] == "spread")
    assert spread["ticket_percentage"] == 72
    assert spread["money_percentage"] == 45


def test_run_records_the_price_of_the_chosen_side(pipeline, session_factory, stat_rows, add_game):
    pipeline.import_team_stats(stat_rows)
    game_id = add_game(odds=False)
    session = session_factory()
    try:
        session.add(OddsSnapshot(
            game_id=game_id, captured_at=datetime(2024, 1, 15, 17, 0),
            spread_home=-2.0, spread_home_odds=-180, spread_away_odds=150,
            total=230.0, over_odds=-180, under_odds=150,
        ))
        session.commit()
    finally:
        session.close()

    pipeline.run()

    opportunities = {o["market_type"]: o for o in pipeline.list_opportunities()}
    assert (opportunities["spread"]["side"], opportunities["spread"]["current_odds"]) == ("away", 150)
    assert (opportunities["total"]["side"], opportunities["total"]["current_odds"]) == ("under", 150)
    assert opportunities["first_half"]["current_odds"] == 150

    finish_game(session_factory, game_id, home=100, away=110)
    summary = pipeline.backtest(save=False)

    assert (summary.wins, summary.losses) == (2, 0)
    assert summary.units_profit_loss == 3.0


def test_rerun_expires_previous_opportunities(pipeline, seeded):
    pipeline.run()
    pipeline.run()

    assert len(pipeline.list_opportunities()) == 3
    assert len(pipeline.list_opportunities(status="expired")) == 3


def test_game_without_odds_only_projects(pipeline, session_factory, stat_rows, add_game):
    pipeline.import_team_stats(stat_rows)
    add_game(away="BOSTON", home="miami", odds=False)

    result = pipeline.run()

    assert result.projections_generated == 1
    assert result.opportunities_created == 0
    session = session_factory()
    try:
        # Stats are matched regardless of name casing
        assert session.query(Projection).one().projected_away_score == 113.6
    finally:
        session.close()


def test_sport_filter_skips_other_games(pipeline, seeded):
    assert pipeline.run(sports=["NFL"]).games_processed == 0
    assert pipeline.run(game_date=date(2024, 1, 16)).games_processed == 0


def test_failing_game_is_collected(pipeline, monkeypatch, seeded):
    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(pipeline.assembler, "project", explode)

    result = pipeline.run()

    assert result.games_processed == 0
    assert result.errors == [f"Game {seeded}: boom"]


# ==================== SETTLE / BACKTEST ====================

def test_settle_results(pipeline, session_factory, seeded):
    pipeline.run()
    finish_game(session_factory, seeded, home=100, away=110)

    assert pipeline.settle_results() == 2

    session = session_factory()
    try:
        statuses = {o.market_type: (o.status, o.result) for o in session.query(OpportunityRecord)}
    finally:
        session.close()
    assert statuses["spread"] == ("won", "win")
    assert statuses["total"] == ("lost", "loss")
    # No first-half score to grade against
    assert statuses["first_half"] == ("active", None)


def test_backtest_saves_summary(pipeline, session_factory, seeded):
    pipeline.run()
    finish_game(session_factory, seeded, home=100, away=110)

    summary = pipeline.backtest()

    assert (summary.wins, summary.losses, summary.skipped) == (1, 1, 1)
    assert summary.units_profit_loss == -0.09
    assert pipeline.backtest(BacktestConfig(signal_type="rlm"), save=False).wins == 1

    session = session_factory()
    try:
        saved = session.query(BacktestResult).one()
        assert saved.sport == "ALL"
        assert saved.by_market_type["spread"]["wins"] == 1
    finally:
        session.close()


def test_backtest_grades_first_half_when_available(pipeline, session_factory, seeded):
    pipeline.run()
    finish_game(session_factory, seeded, home=100, away=110, first_half=(48, 55))

    summary = pipeline.backtest(save=False)

    assert summary.skipped == 0
    assert summary.by_market_type["first_half"]["wins"] == 1
