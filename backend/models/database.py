"""
Database Models

SQLAlchemy models for team stats, games, market data, projections,
opportunities, RLM signals and backtest runs.
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime,
    ForeignKey, JSON, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


class TeamStat(Base):
    """One imported stat row for a team/sport/split/source."""
    __tablename__ = "team_stats"

    id = Column(Integer, primary_key=True)
    team_name = Column(String(255), nullable=False)
    sport = Column(String(10), nullable=False)
    split_type = Column(String(20), nullable=False)   # home, away, season, last3, last5, last10
    source = Column(String(50), nullable=False)       # import, kenpom, teamrankings

    # Efficiency
    offensive_ppp = Column(Float)
    defensive_ppp = Column(Float)
    offensive_rating = Column(Float)
    defensive_rating = Column(Float)

    # Pace
    pace = Column(Float)
    possessions_per_game = Column(Float)
    plays_per_game = Column(Float)

    # Four Factors
    effective_field_goal_pct = Column(Float)
    turnover_pct = Column(Float)
    offensive_rebound_pct = Column(Float)
    free_throw_rate = Column(Float)

    # Shooting
    three_point_pct = Column(Float)
    three_point_rate = Column(Float)

    # Football
    yards_per_play = Column(Float)
    opponent_yards_per_play = Column(Float)
    red_zone_scoring_pct = Column(Float)
    third_down_conversion_pct = Column(Float)

    # Schedule / KenPom
    strength_of_schedule = Column(Float)
    kenpom_rank = Column(Float)
    kenpom_adjusted_efficiency = Column(Float)
    kenpom_tempo = Column(Float)
    kenpom_luck = Column(Float)

    raw_data = Column(JSON)
    captured_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("team_name", "sport", "split_type", "source", name="unique_team_stat_split"),
        Index("idx_team_stat_lookup", "sport", "team_name"),
    )


class Game(Base):
    """A scheduled or completed game."""
    __tablename__ = "games"

    id = Column(Integer, primary_key=True)
    external_id = Column(String(100), unique=True, nullable=True)
    sport = Column(String(10), nullable=False)

    away_team_name = Column(String(255), nullable=False)
    home_team_name = Column(String(255), nullable=False)
    game_date = Column(DateTime, nullable=False)
    status = Column(String(20), default="scheduled")  # scheduled, live, final
    venue = Column(String(255))
    is_neutral_site = Column(Boolean, default=False)

    # Rest context (basketball)
    away_rest_days = Column(Integer)
    home_rest_days = Column(Integer)
    is_away_traveling = Column(Boolean, default=False)

    # Actual results (filled in after game)
    away_score = Column(Integer)
    home_score = Column(Integer)
    away_first_half_score = Column(Integer)
    home_first_half_score = Column(Integer)

    odds_snapshots = relationship("OddsSnapshot", back_populates="game")
    projections = relationship("Projection", back_populates="game")
    opportunities = relationship("OpportunityRecord", back_populates="game")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_game_date", "game_date"),
        Index("idx_game_sport_status", "sport", "status"),
    )


class OddsSnapshot(Base):
    """Market odds from one book at a point in time."""
    __tablename__ = "odds_snapshots"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    sportsbook = Column(String(50), default="consensus")
    captured_at = Column(DateTime, default=datetime.utcnow)
    is_opening = Column(Boolean, default=False)

    spread_home = Column(Float)         # e.g., -6.5
    spread_home_odds = Column(Integer)  # e.g., -110
    spread_away_odds = Column(Integer)

    total = Column(Float)               # e.g., 145.5
    over_odds = Column(Integer)
    under_odds = Column(Integer)

    moneyline_home = Column(Integer)    # e.g., -250
    moneyline_away = Column(Integer)    # e.g., +200

    game = relationship("Game", back_populates="odds_snapshots")

    __table_args__ = (
        Index("idx_odds_game_time", "game_id", "captured_at"),
    )


class LineMovementRecord(Base):
    __tablename__ = "line_movements"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    market_type = Column(String(20), nullable=False)   # spread, total, moneyline
    previous_value = Column(Float, nullable=False)
    current_value = Column(Float, nullable=False)
    captured_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_line_movement_game", "game_id", "market_type"),
    )


class BettingPercentageRecord(Base):
    """Ticket and money share on one side of a market."""
    __tablename__ = "betting_percentages"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    market_type = Column(String(20), nullable=False)
    side = Column(String(10), nullable=False)          # home, away, over, under
    ticket_percentage = Column(Float, nullable=False)
    money_percentage = Column(Float, nullable=False)
    captured_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_betting_pct_game", "game_id", "market_type"),
    )


class Projection(Base):
    """A stored projection for a game."""
    __tablename__ = "projections"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    algorithm_version = Column(String(50), nullable=False)   # e.g., "NBA v3.5R1"

    projected_away_score = Column(Float, nullable=False)
    projected_home_score = Column(Float, nullable=False)
    projected_total = Column(Float, nullable=False)
    projected_margin = Column(Float, nullable=False)

    fair_spread = Column(Float, nullable=False)
    fair_total = Column(Float, nullable=False)
    fair_moneyline_home = Column(Integer)
    fair_moneyline_away = Column(Integer)

    expected_possessions = Column(Float)
    volatility_score = Column(Integer, nullable=False)

    blend_primary = Column(Float)
    blend_season = Column(Float)
    blend_recent = Column(Float)
    sos_adjustment = Column(Float)

    # Four Factors, rest, first half, volatility drivers
    detailed_metrics = Column(JSON)
    drivers = Column(JSON)
    kill_switches = Column(JSON)

    game = relationship("Game", back_populates="projections")

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_projection_game", "game_id"),
    )


class OpportunityRecord(Base):
    """A stored opportunity, graded once the game is final."""
    __tablename__ = "opportunities"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    projection_id = Column(Integer, ForeignKey("projections.id"), nullable=True)
    sport = Column(String(10), nullable=False)

    market_type = Column(String(20), nullable=False)   # spread, total, moneyline, first_half
    side = Column(String(10), nullable=False)          # home, away, over, under
    play_description = Column(String(255), nullable=False)
    current_line = Column(Float)
    current_odds = Column(Integer)
    fair_line = Column(Float)
    edge_points = Column(Float)
    edge_percentage = Column(Float, nullable=False)
    confidence = Column(String(10), nullable=False)    # High, Medium, Lean
    confidence_model = Column(String(20), default="enhanced")
    volatility_score = Column(Integer, nullable=False)

    is_reverse_line_movement = Column(Boolean, default=False)
    ticket_percentage = Column(Float)
    money_percentage = Column(Float)

    drivers = Column(JSON)
    kill_switches = Column(JSON)

    status = Column(String(20), default="active")      # active, expired, won, lost, push
    result = Column(String(10))                        # win, loss, push

    game = relationship("Game", back_populates="opportunities")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_opportunity_status", "status"),
        Index("idx_opportunity_edge", "edge_percentage"),
    )


class RlmSignalRecord(Base):
    __tablename__ = "rlm_signals"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    market_type = Column(String(20), nullable=False)
    side = Column(String(10))
    ticket_percentage = Column(Float)
    money_percentage = Column(Float)
    line_movement_direction = Column(String(10), nullable=False)   # up, down
    line_movement_size = Column(Float, nullable=False)
    signal_strength = Column(String(10), nullable=False)           # strong, moderate, weak
    detected_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_rlm_signal_game", "game_id"),
    )


class BacktestResult(Base):
    """Summary of one backtest run."""
    __tablename__ = "backtest_results"

    id = Column(Integer, primary_key=True)
    sport = Column(String(10), nullable=False)
    signal_type = Column(String(20), nullable=False)
    date_range_start = Column(DateTime)
    date_range_end = Column(DateTime)

    total_signals = Column(Integer, nullable=False)
    wins = Column(Integer, nullable=False)
    losses = Column(Integer, nullable=False)
    pushes = Column(Integer, nullable=False)
    win_percentage = Column(Float, nullable=False)
    roi = Column(Float)
    average_edge = Column(Float)
    units_profit_loss = Column(Float)

    by_confidence = Column(JSON)
    by_market_type = Column(JSON)
    parameters = Column(JSON)

    created_at = Column(DateTime, default=datetime.utcnow)
