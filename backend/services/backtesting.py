"""
Backtesting

Grades historical opportunities against final scores and summarizes the
record, units and ROI.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .edge_detector import Confidence, MarketType, Opportunity
from .sports import Sport

logger = logging.getLogger(__name__)

SIGNAL_TYPES = ("all", "rlm", "edge", "high_confidence")


@dataclass
class CompletedGame:
    game_id: Any
    sport: Sport
    home_score: float
    away_score: float
    game_date: Optional[datetime] = None
    home_first_half_score: Optional[float] = None
    away_first_half_score: Optional[float] = None

    @property
    def has_first_half(self) -> bool:
        return self.home_first_half_score is not None and self.away_first_half_score is not None


@dataclass
class BacktestConfig:
    sport: Optional[str] = None           # None or "ALL" for every sport
    signal_type: str = "all"
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_edge: Optional[float] = None
    confidence: Optional[str] = None
    confidence_model: Optional[str] = None

    def __post_init__(self):
        if self.signal_type not in SIGNAL_TYPES:
            raise ValueError(f"Unknown signal type: {self.signal_type}")


@dataclass
class BacktestOutcome:
    game_id: Any
    market_type: MarketType
    side: str
    line: Optional[float]
    result: str
    profit_units: float
    confidence: Confidence
    edge_percentage: float
    actual_margin: Optional[float] = None


def _empty_record() -> Dict[str, int]:
    return {"wins": 0, "losses": 0, "pushes": 0}


@dataclass
class BacktestSummary:
    total_signals: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    skipped: int = 0
    win_percentage: float = 0.0
    roi: float = 0.0
    avg_edge: float = 0.0
    units_profit_loss: float = 0.0
    by_confidence: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: {c.value.lower(): _empty_record() for c in Confidence}
    )
    by_market_type: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: {m.value: _empty_record() for m in MarketType}
    )
    outcomes: List[BacktestOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_signals": self.total_signals,
            "wins": self.wins,
            "losses": self.losses,
            "pushes": self.pushes,
            "skipped": self.skipped,
            "win_percentage": self.win_percentage,
            "roi": self.roi,
            "avg_edge": self.avg_edge,
            "units_profit_loss": self.units_profit_loss,
            "by_confidence": self.by_confidence,
            "by_market_type": self.by_market_type,
        }


# ==================== GRADING ====================

def _grade(value: float) -> str:
    if value > 0:
        return "win"
    if value < 0:
        return "loss"
    return "push"


def grade_spread(side: str, line: float, home_score: float, away_score: float) -> str:
    """Grade a spread bet; `line` is relative to the bet side."""
    side_margin = home_score - away_score if side == "home" else away_score - home_score
    return _grade(side_margin + line)


def grade_total(side: str, line: float, home_score: float, away_score: float) -> str:
    diff = (home_score + away_score) - line
    return _grade(diff if side == "over" else -diff)


def grade_moneyline(side: str, home_score: float, away_score: float) -> str:
    margin = home_score - away_score
    return _grade(margin if side == "home" else -margin)


def win_payout(odds: Optional[int]) -> float:
    """Units won on a 1-unit stake at American odds."""
    if not odds:
        odds = -110
    if odds < 0:
        return 100 / -odds
    return odds / 100


# ==================== ENGINE ====================

class BacktestEngine:
    """Replay graded opportunities under a filter config."""

    def matches(self, opportunity: Opportunity, game: CompletedGame, config: BacktestConfig) -> bool:
        if config.sport and config.sport.upper() != "ALL":
            if game.sport is not Sport.parse(config.sport):
                return False

        if config.signal_type == "rlm" and not opportunity.is_reverse_line_movement:
            return False
        if config.signal_type == "edge" and opportunity.is_reverse_line_movement:
            return False
        if config.signal_type == "high_confidence" and opportunity.confidence is not Confidence.HIGH:
            return False

        if config.min_edge is not None and config.min_edge > 0:
            if opportunity.edge_percentage < config.min_edge:
                return False
        if config.confidence and opportunity.confidence.value.lower() != config.confidence.lower():
            return False
        if config.confidence_model and opportunity.confidence_model != config.confidence_model:
            return False

        if game.game_date is not None:
            played = game.game_date.date() if isinstance(game.game_date, datetime) else game.game_date
            if config.date_from is not None and played < config.date_from:
                return False
            if config.date_to is not None and played > config.date_to:
                return False
        return True

    def grade(self, opportunity: Opportunity, game: CompletedGame) -> Optional[BacktestOutcome]:
        """Grade one opportunity, or None if it cannot be graded."""
        market = opportunity.market_type
        side = opportunity.side
        line = opportunity.current_line if opportunity.current_line is not None else 0.0

        if market is MarketType.SPREAD:
            result = grade_spread(side, line, game.home_score, game.away_score)
        elif market is MarketType.TOTAL:
            result = grade_total(side, line, game.home_score, game.away_score)
        elif market is MarketType.MONEYLINE:
            result = grade_moneyline(side, game.home_score, game.away_score)
        elif market is MarketType.FIRST_HALF:
            if not game.has_first_half:
                return None
            result = grade_spread(side, line, game.home_first_half_score, game.away_first_half_score)
        else:
            return None

        if result == "win":
            profit = win_payout(opportunity.current_odds)
        elif result == "loss":
            profit = -1.0
        else:
            profit = 0.0

        return BacktestOutcome(
            game_id=game.game_id,
            market_type=market,
            side=side,
            line=opportunity.current_line,
            result=result,
            profit_units=profit,
            confidence=opportunity.confidence,
            edge_percentage=opportunity.edge_percentage,
            actual_margin=game.home_score - game.away_score,
        )

    def run(
        self,
        records: Iterable[Tuple[Opportunity, CompletedGame]],
        config: Optional[BacktestConfig] = None,
    ) -> BacktestSummary:
        """
        Grade every (opportunity, completed game) pair that passes the filters.

        Args:
            records: Opportunities paired with their final game
            config: Filters; defaults to everything

        Returns:
            BacktestSummary with record, ROI and breakdowns
        """
        config = config or BacktestConfig()
        summary = BacktestSummary()
        edges = []

        for opportunity, game in records:
            if not self.matches(opportunity, game, config):
                continue
            outcome = self.grade(opportunity, game)
            if outcome is None:
                summary.skipped += 1
                continue

            summary.outcomes.append(outcome)
            edges.append(outcome.edge_percentage)
            key = {"win": "wins", "loss": "losses", "push": "pushes"}[outcome.result]
            summary.by_confidence[outcome.confidence.value.lower()][key] += 1
            summary.by_market_type[outcome.market_type.value][key] += 1

        outcomes = summary.outcomes
        summary.total_signals = len(outcomes)
        summary.wins = sum(1 for o in outcomes if o.result == "win")
        summary.losses = sum(1 for o in outcomes if o.result == "loss")
        summary.pushes = sum(1 for o in outcomes if o.result == "push")

        decided = summary.wins + summary.losses
        units = sum(o.profit_units for o in outcomes)
        summary.units_profit_loss = round(units, 2)
        if decided > 0:
            summary.win_percentage = round(summary.wins / decided * 100, 1)
            summary.roi = round(units / decided * 100, 1)
        if edges:
            summary.avg_edge = round(sum(edges) / len(edges), 1)

        logger.info(
            f"Backtest graded {summary.total_signals} signals: "
            f"{summary.wins}-{summary.losses}-{summary.pushes}, ROI {summary.roi}%"
        )
        return summary
