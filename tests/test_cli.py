"""Tests for the command-line interface."""

import json

import pytest
from typer.testing import CliRunner

import cli
from cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_pipeline(pipeline, monkeypatch):
    monkeypatch.setattr(cli, "ProjectionPipeline", lambda: pipeline)
    return pipeline


@pytest.fixture
def matchup_file(tmp_path, nba_matchup_dict):
    path = tmp_path / "matchup.json"
    path.write_text(json.dumps({**nba_matchup_dict, "current_spread": -1.5, "current_total": 215}))
    return path


def test_project_prints_projection_and_opportunities(matchup_file):
    result = runner.invoke(app, ["project", str(matchup_file)])

    assert result.exit_code == 0
    assert "Boston @ Miami" in result.output
    assert "Boston +1.5" in result.output
    assert "No Four Factors data for either side" in result.output


def test_project_option_overrides_file_lines(matchup_file):
    result = runner.invoke(app, ["project", str(matchup_file), "--spread", "2.0", "--total", "224"])

    assert result.exit_code == 0
    assert "No opportunities meet the minimum edge thresholds." in result.output


def test_project_rejects_bad_input(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")

    assert runner.invoke(app, ["project", str(bad)]).exit_code == 1
    assert runner.invoke(app, ["project", str(tmp_path / "missing.json")]).exit_code == 1


def test_project_rejects_unknown_model(matchup_file):
    result = runner.invoke(app, ["project", str(matchup_file), "--model", "kelly"])
    assert result.exit_code == 1


def test_handle_split():
    result = runner.invoke(app, ["handle-split", "40", "65"])

    assert result.exit_code == 0
    assert "Strong sharp money indicator" in result.output


def test_import_stats(tmp_path, stat_rows):
    path = tmp_path / "stats.json"
    path.write_text(json.dumps(stat_rows))

    result = runner.invoke(app, ["import-stats", str(path)])

    assert result.exit_code == 0
    assert "Imported 2 stat rows" in result.output


def test_import_stats_requires_list(tmp_path):
    path = tmp_path / "stats.json"
    path.write_text(json.dumps({"team_name": "Boston"}))

    assert runner.invoke(app, ["import-stats", str(path)]).exit_code == 1


def test_run_and_list_opportunities(seeded):
    result = runner.invoke(app, ["run", "--sport", "NBA", "--date", "2024-01-15"])

    assert result.exit_code == 0
    assert "Processed 1 games" in result.output
    assert "3 opportunities" in result.output

    listing = runner.invoke(app, ["opportunities", "--sport", "NBA"])
    assert listing.exit_code == 0
    assert "Active Opportunities" in listing.output


def test_run_rejects_bad_date():
    assert runner.invoke(app, ["run", "--date", "01/15/2024"]).exit_code == 1


def test_opportunities_when_empty():
    result = runner.invoke(app, ["opportunities"])

    assert result.exit_code == 0
    assert "No active opportunities." in result.output


def test_backtest_and_settle():
    backtest = runner.invoke(app, ["backtest"])
    assert backtest.exit_code == 0
    assert "Record: 0-0-0" in backtest.output

    assert runner.invoke(app, ["backtest", "--signal", "steam"]).exit_code == 1

    settle = runner.invoke(app, ["settle"])
    assert settle.exit_code == 0
    assert "Settled 0 opportunities" in settle.output


def test_init_with_reset(monkeypatch):
    calls = []
    monkeypatch.setattr(cli, "drop_db", lambda: calls.append("drop"))
    monkeypatch.setattr(cli, "init_db", lambda: calls.append("init"))

    result = runner.invoke(app, ["init", "--reset"])

    assert result.exit_code == 0
    assert calls == ["drop", "init"]
    assert "Database initialized successfully!" in result.output
