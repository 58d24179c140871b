"""Tests for database connection helpers."""

import pytest
from sqlalchemy import inspect

from models.connection import create_db_engine, create_session_factory, drop_db, get_session, init_db
from models.database import TeamStat


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    yield engine
    engine.dispose()


def test_init_and_drop_tables(engine):
    init_db(engine)
    tables = set(inspect(engine).get_table_names())
    assert {"team_stats", "games", "odds_snapshots", "opportunities", "rlm_signals", "backtest_results"} <= tables

    drop_db(engine)
    assert inspect(engine).get_table_names() == []


def test_get_session_commits(engine):
    init_db(engine)
    factory = create_session_factory(engine)

    with get_session(factory) as session:
        session.add(TeamStat(team_name="Boston", sport="NBA", split_type="season", source="import", pace=99.0))

    with get_session(factory) as session:
        assert session.query(TeamStat).one().pace == 99.0


def test_get_session_rolls_back_on_error(engine):
    init_db(engine)
    factory = create_session_factory(engine)

    with pytest.raises(RuntimeError):
        with get_session(factory) as session:
            session.add(TeamStat(team_name="Boston", sport="NBA", split_type="season", source="import"))
            session.flush()
            raise RuntimeError("abort")

    with get_session(factory) as session:
        assert session.query(TeamStat).count() == 0
