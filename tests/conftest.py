"""Shared fixtures for the test suite."""

from datetime import datetime

import pytest

from models.connection import create_db_engine, create_session_factory, init_db
from models.database import Game, OddsSnapshot
from services import MatchupContext, SideStats, Sport, TeamStatProfile
from services.pipeline import ProjectionPipeline

TIPOFF = datetime(2024, 1, 15, 19, 30)


def season_row(team, sport, **stats):
    return TeamStatProfile.from_row({"team_name": team, "sport": sport, "split_type": "season", **stats})


@pytest.fixture
def nba_matchup():
    """Season-only NBA matchup with no Four Factors data."""
    return MatchupContext(
        game_id=1,
        sport=Sport.NBA,
        away_team="Boston",
        home_team="Miami",
        away_stats=SideStats(season=season_row(
            "Boston", "NBA", offensive_rating=118, defensive_rating=110, pace=102
        )),
        home_stats=SideStats(season=season_row(
            "Miami", "NBA", offensive_rating=112, defensive_rating=116, pace=96
        )),
    )


@pytest.fixture
def nba_matchup_dict():
    return {
        "sport": "NBA",
        "away_team": "Boston",
        "home_team": "Miami",
        "away_stats": {"season": {"offensive_rating": 118, "defensive_rating": 110, "pace": 102}},
        "home_stats": {"season": {"offensive_rating": 112, "defensive_rating": 116, "pace": 96}},
    }


@pytest.fixture
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def pipeline(session_factory):
    return ProjectionPipeline(session_factory)


@pytest.fixture
def stat_rows():
    return [
        {"team_name": "Boston", "sport": "NBA", "split_type": "season",
         "offensive_rating": 118, "defensive_rating": 110, "pace": 102},
        {"team_name": "Miami", "sport": "NBA", "split_type": "season",
         "offensive_rating": 112, "defensive_rating": 116, "pace": 96},
    ]


@pytest.fixture
def add_game(session_factory):
    """Insert a scheduled NBA game with an opening and a current odds snapshot."""
    def _add(away="Boston", home="Miami", odds=True):
        session = session_factory()
        try:
            game = Game(sport="NBA", away_team_name=away, home_team_name=home, game_date=TIPOFF)
            session.add(game)
            session.flush()
            if odds:
                session.add(OddsSnapshot(
                    game_id=game.id, captured_at=datetime(2024, 1, 14, 9, 0), is_opening=True,
                    spread_home=-0.5, total=215.0,
                ))
                session.add(OddsSnapshot(
                    game_id=game.id, captured_at=datetime(2024, 1, 15, 17, 0),
                    spread_home=-2.0, total=215.0,
                ))
            session.commit()
            return game.id
        finally:
            session.close()

    return _add


@pytest.fixture
def seeded(pipeline, stat_rows, add_game):
    """Stats for both teams plus one game; returns the game id."""
    pipeline.import_team_stats(stat_rows)
    return add_game()
