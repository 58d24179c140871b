"""
Edge Detector

Compares a projection's fair lines with current market lines and produces
opportunity drafts with a confidence tier.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Union

from .projection_engine import ProjectionResult, round_tenth
from .rlm_detector import LineMoveSignal, RlmSignal
from .sports import FIRST_HALF_RATIOS, Sport

logger = logging.getLogger(__name__)


class MarketType(Enum):
    SPREAD = "spread"
    TOTAL = "total"
    MONEYLINE = "moneyline"
    FIRST_HALF = "first_half"


class Confidence(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LEAN = "Lean"

    @property
    def rank(self) -> int:
        return {"Lean": 0, "Medium": 1, "High": 2}[self.value]


def american_to_implied_prob(odds: int) -> float:
    """Convert American odds to implied probability."""
    if odds < 0:
        return -odds / (-odds + 100)
    return 100 / (odds + 100)


def format_line(line: float) -> str:
    if line == 0:
        return "PK"
    return f"{line:+g}"


@dataclass
class Opportunity:
    """A flagged market where the fair line differs enough from the market."""
    game_id: Any
    sport: Sport
    market_type: MarketType
    side: str
    play_description: str
    current_line: Optional[float]
    current_odds: int
    fair_line: Optional[float]
    edge_points: float
    edge_percentage: float
    confidence: Confidence
    volatility_score: int
    confidence_model: str = "enhanced"
    is_reverse_line_movement: bool = False
    ticket_percentage: Optional[float] = None
    money_percentage: Optional[float] = None
    drivers: List[str] = field(default_factory=list)
    kill_switches: List[str] = field(default_factory=list)
    status: str = "active"
    result: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "game_id": self.game_id,
            "sport": self.sport.value,
            "market_type": self.market_type.value,
            "side": self.side,
            "play_description": self.play_description,
            "current_line": self.current_line,
            "current_odds": self.current_odds,
            "fair_line": self.fair_line,
            "edge_points": self.edge_points,
            "edge_percentage": self.edge_percentage,
            "confidence": self.confidence.value,
            "volatility_score": self.volatility_score,
            "confidence_model": self.confidence_model,
            "is_reverse_line_movement": self.is_reverse_line_movement,
            "ticket_percentage": self.ticket_percentage,
            "money_percentage": self.money_percentage,
            "drivers": list(self.drivers),
            "kill_switches": list(self.kill_switches),
            "status": self.status,
            "result": self.result,
        }


# ==================== CONFIDENCE STRATEGIES ====================

class ConfidenceScorer:
    """Maps an edge to a confidence tier."""

    name = "base"

    def score(
        self,
        sport: Sport,
        edge_percentage: float,
        edge_points: float,
        volatility: int,
        kill_switches: List[str],
        four_factors_aligned: bool = False,
    ) -> Confidence:
        raise NotImplementedError


class EnhancedConfidenceScorer(ConfidenceScorer):
    """Kill-switch and Four Factors aware tiering on edge percentage."""

    name = "enhanced"

    MAX_KILL_SWITCHES = 2

    BASKETBALL_HIGH_EDGE = 4.5
    BASKETBALL_HIGH_VOLATILITY = 50
    BASKETBALL_GUARANTEED_EDGE = 5.5
    BASKETBALL_MEDIUM_EDGE = 3.0
    BASKETBALL_MEDIUM_VOLATILITY = 60

    FOOTBALL_HIGH_EDGE = 4.0
    FOOTBALL_HIGH_VOLATILITY = 55
    FOOTBALL_MEDIUM_EDGE = 2.5
    FOOTBALL_MEDIUM_VOLATILITY = 65

    def score(self, sport, edge_percentage, edge_points, volatility, kill_switches, four_factors_aligned=False):
        if len(kill_switches) >= self.MAX_KILL_SWITCHES:
            return Confidence.LEAN

        if sport.is_basketball:
            if edge_percentage >= self.BASKETBALL_HIGH_EDGE and volatility < self.BASKETBALL_HIGH_VOLATILITY:
                if edge_percentage >= self.BASKETBALL_GUARANTEED_EDGE or four_factors_aligned:
                    return Confidence.HIGH
                return Confidence.MEDIUM
            if edge_percentage >= self.BASKETBALL_MEDIUM_EDGE and volatility < self.BASKETBALL_MEDIUM_VOLATILITY:
                return Confidence.MEDIUM
            return Confidence.LEAN

        if (
            edge_percentage >= self.FOOTBALL_HIGH_EDGE
            and volatility < self.FOOTBALL_HIGH_VOLATILITY
            and not kill_switches
        ):
            return Confidence.HIGH
        if edge_percentage >= self.FOOTBALL_MEDIUM_EDGE and volatility < self.FOOTBALL_MEDIUM_VOLATILITY:
            return Confidence.MEDIUM
        return Confidence.LEAN


class LegacyConfidenceScorer(ConfidenceScorer):
    """Earlier tiering on raw point edge and volatility only."""

    name = "legacy"

    def score(self, sport, edge_percentage, edge_points, volatility, kill_switches, four_factors_aligned=False):
        edge = abs(edge_points)
        if edge >= 3 and volatility < 55:
            return Confidence.HIGH
        if edge >= 2 and volatility < 65:
            return Confidence.MEDIUM
        return Confidence.LEAN


SCORERS = {
    EnhancedConfidenceScorer.name: EnhancedConfidenceScorer,
    LegacyConfidenceScorer.name: LegacyConfidenceScorer,
}


def get_scorer(name: str = "enhanced") -> ConfidenceScorer:
    try:
        return SCORERS[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown confidence model: {name}")


# ==================== DETECTION ====================

class EdgeDetector:
    """
    Flag spread, total, first-half and moneyline edges for one projection.

    Edge percentages are point deltas expressed as a share of the market
    line (not probabilities), capped at MAX_EDGE_PCT.
    """

    MAX_EDGE_PCT = 15.0
    MIN_SPREAD_EDGE = 1.0
    MIN_TOTAL_EDGE = 2.0
    MIN_FIRST_HALF_EDGE = 1.5
    MIN_FIRST_HALF_EDGE_PCT = 3.0
    FIRST_HALF_VOLATILITY = 5
    MIN_MONEYLINE_EDGE_PCT = 3.0
    FOUR_FACTORS_ALIGNMENT = 1.0
    DEFAULT_ODDS = -110

    def __init__(self, scorer: Optional[ConfidenceScorer] = None):
        self.scorer = scorer or EnhancedConfidenceScorer()

    def _edge_pct(self, edge: float, base: float) -> float:
        return min(self.MAX_EDGE_PCT, round_tenth(abs(edge) / max(base, 1) * 100))

    def _four_factors_aligned(self, projection: ProjectionResult, side: str) -> bool:
        """Whether the Four Factors edge points at the bet side."""
        edge = projection.four_factors_edge
        if edge is None:
            return False
        if side == "home":
            return edge > self.FOUR_FACTORS_ALIGNMENT
        if side == "away":
            return edge < -self.FOUR_FACTORS_ALIGNMENT
        return False

    def _build(
        self,
        projection: ProjectionResult,
        game_id: Any,
        market_type: MarketType,
        side: str,
        play: str,
        current_line: Optional[float],
        current_odds: int,
        fair_line: Optional[float],
        edge_points: float,
        edge_pct: float,
        volatility: int,
    ) -> Opportunity:
        kill_switches = list(projection.kill_switches)
        confidence = self.scorer.score(
            projection.sport,
            edge_pct,
            edge_points,
            volatility,
            kill_switches,
            self._four_factors_aligned(projection, side),
        )
        return Opportunity(
            game_id=game_id,
            sport=projection.sport,
            market_type=market_type,
            side=side,
            play_description=play,
            current_line=current_line,
            current_odds=current_odds,
            fair_line=fair_line,
            edge_points=round_tenth(edge_points),
            edge_percentage=edge_pct,
            confidence=confidence,
            volatility_score=volatility,
            confidence_model=self.scorer.name,
            drivers=list(projection.drivers),
            kill_switches=kill_switches,
        )

    def _team(self, projection: ProjectionResult, side: str) -> str:
        return projection.home_team if side == "home" else projection.away_team

    # ==================== MARKETS ====================

    def detect_spread(
        self,
        projection: ProjectionResult,
        market_spread: Optional[float],
        game_id: Any = None,
        home_odds: int = DEFAULT_ODDS,
        away_odds: int = DEFAULT_ODDS,
    ) -> Optional[Opportunity]:
        """Spread lines are from the home team's perspective."""
        if market_spread is None:
            return None

        edge = projection.fair_spread - market_spread
        if abs(edge) < self.MIN_SPREAD_EDGE:
            return None

        side = "away" if edge > 0 else "home"
        sign = -1 if side == "away" else 1
        current_line = sign * market_spread + 0.0
        fair_line = sign * projection.fair_spread + 0.0

        return self._build(
            projection, game_id, MarketType.SPREAD, side,
            f"{self._team(projection, side)} {format_line(current_line)}",
            current_line, home_odds if side == "home" else away_odds,
            fair_line, abs(edge),
            self._edge_pct(edge, abs(market_spread)),
            projection.volatility_score,
        )

    def detect_total(
        self,
        projection: ProjectionResult,
        market_total: Optional[float],
        game_id: Any = None,
        over_odds: int = DEFAULT_ODDS,
        under_odds: int = DEFAULT_ODDS,
    ) -> Optional[Opportunity]:
        if market_total is None:
            return None

        edge = projection.fair_total - market_total
        if abs(edge) < self.MIN_TOTAL_EDGE:
            return None

        side = "over" if edge > 0 else "under"
        return self._build(
            projection, game_id, MarketType.TOTAL, side,
            f"{side.capitalize()} {market_total:g}",
            market_total, over_odds if side == "over" else under_odds,
            projection.fair_total, abs(edge),
            self._edge_pct(edge, market_total),
            projection.volatility_score,
        )

    def detect_first_half(
        self,
        projection: ProjectionResult,
        market_spread: Optional[float],
        game_id: Any = None,
        home_odds: int = DEFAULT_ODDS,
        away_odds: int = DEFAULT_ODDS,
    ) -> Optional[Opportunity]:
        """First-half spread derived by scaling the full-game market line."""
        if market_spread is None or projection.first_half is None:
            return None

        ratio = FIRST_HALF_RATIOS[projection.sport].spread
        half_market = round_tenth(market_spread * ratio)
        half_fair = projection.first_half.spread

        edge = half_fair - half_market
        edge_pct = self._edge_pct(edge, abs(half_market))
        if abs(edge) < self.MIN_FIRST_HALF_EDGE or edge_pct < self.MIN_FIRST_HALF_EDGE_PCT:
            return None

        side = "away" if edge > 0 else "home"
        sign = -1 if side == "away" else 1
        current_line = sign * half_market + 0.0
        fair_line = sign * half_fair + 0.0

        return self._build(
            projection, game_id, MarketType.FIRST_HALF, side,
            f"1H {self._team(projection, side)} {format_line(current_line)}",
            current_line, home_odds if side == "home" else away_odds,
            fair_line, abs(edge), edge_pct,
            min(100, projection.volatility_score + self.FIRST_HALF_VOLATILITY),
        )

    def detect_moneyline(
        self,
        projection: ProjectionResult,
        moneyline_home: Optional[int],
        moneyline_away: Optional[int],
        game_id: Any = None,
    ) -> Optional[Opportunity]:
        """Compare implied win probabilities of the fair and market moneylines."""
        if moneyline_home is None or moneyline_away is None:
            return None

        candidates = []
        for side, fair, market in (
            ("home", projection.fair_moneyline_home, moneyline_home),
            ("away", projection.fair_moneyline_away, moneyline_away),
        ):
            edge = (american_to_implied_prob(fair) - american_to_implied_prob(market)) * 100
            candidates.append((edge, side, fair, market))

        edge, side, fair, market = max(candidates)
        if edge < self.MIN_MONEYLINE_EDGE_PCT:
            return None

        return self._build(
            projection, game_id, MarketType.MONEYLINE, side,
            f"{self._team(projection, side)} ML {market:+d}",
            market, market, fair, edge,
            min(self.MAX_EDGE_PCT, round_tenth(edge)),
            projection.volatility_score,
        )

    def detect(
        self,
        projection: ProjectionResult,
        market_spread: Optional[float] = None,
        market_total: Optional[float] = None,
        game_id: Any = None,
        moneyline_home: Optional[int] = None,
        moneyline_away: Optional[int] = None,
        spread_home_odds: int = DEFAULT_ODDS,
        spread_away_odds: int = DEFAULT_ODDS,
        over_odds: int = DEFAULT_ODDS,
        under_odds: int = DEFAULT_ODDS,
    ) -> List[Opportunity]:
        """
        Detect every qualifying opportunity for a projection.

        Args:
            projection: Projection for the game
            market_spread: Current spread, home perspective (None if unavailable)
            market_total: Current total (None if unavailable)
            game_id: Identifier copied onto each opportunity
            moneyline_home: Current home moneyline, optional
            moneyline_away: Current away moneyline, optional
            spread_home_odds: Price on the home spread
            spread_away_odds: Price on the away spread
            (both spread prices are reused for the first half)
            over_odds: Price on the over
            under_odds: Price on the under

        Returns:
            List of opportunities, possibly empty
        """
        game_id = projection.game_id if game_id is None else game_id
        candidates = [
            self.detect_spread(projection, market_spread, game_id, spread_home_odds, spread_away_odds),
            self.detect_total(projection, market_total, game_id, over_odds, under_odds),
            self.detect_first_half(projection, market_spread, game_id, spread_home_odds, spread_away_odds),
            self.detect_moneyline(projection, moneyline_home, moneyline_away, game_id),
        ]
        opportunities = [o for o in candidates if o is not None]

        for opp in opportunities:
            logger.debug(
                f"{opp.market_type.value} edge on {opp.play_description}: "
                f"{opp.edge_percentage}% ({opp.confidence.value})"
            )
        return opportunities


def detect_opportunities(
    game_id: Any,
    sport: Union[Sport, str],
    projection: ProjectionResult,
    current_spread: Optional[float],
    current_total: Optional[float],
    moneyline_home: Optional[int] = None,
    moneyline_away: Optional[int] = None,
    confidence_model: str = "enhanced",
) -> List[Opportunity]:
    """Detect opportunities for one projected game."""
    sport = Sport.parse(sport)
    if sport is not projection.sport:
        raise ValueError(f"Sport mismatch: {sport.value} vs projection {projection.sport.value}")
    detector = EdgeDetector(get_scorer(confidence_model))
    return detector.detect(
        projection,
        market_spread=current_spread,
        market_total=current_total,
        game_id=game_id,
        moneyline_home=moneyline_home,
        moneyline_away=moneyline_away,
    )


def attach_rlm(opportunity: Opportunity, signal: Union[RlmSignal, LineMoveSignal]) -> bool:
    """
    Mark an opportunity with a reverse line movement signal.

    Signals that name a side only attach to opportunities on that side.

    Returns:
        True if the signal was attached
    """
    if signal.side is not None and signal.side != opportunity.side:
        return False
    opportunity.is_reverse_line_movement = True
    if isinstance(signal, RlmSignal):
        opportunity.ticket_percentage = signal.ticket_pct
        opportunity.money_percentage = signal.money_pct
    opportunity.drivers.append(signal.describe())
    return True
