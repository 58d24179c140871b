"""
Reverse Line Movement Detector

Flags markets where the line moves against the side holding the majority of
tickets, a sign that larger (sharper) bets sit on the other side.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

OPPOSITE_SIDES = {
    "home": "away",
    "away": "home",
    "over": "under",
    "under": "over",
}

MARKET_TYPES = ("spread", "total", "moneyline")


def opposite_side(side: str) -> str:
    """The other side of a two-way market."""
    return OPPOSITE_SIDES.get(side.lower(), side)


# ==================== OBSERVATIONS ====================

@dataclass
class BettingPercentage:
    """Ticket and money share on the stated side of one market."""
    market_type: str
    side: str
    ticket_pct: float
    money_pct: float
    recorded_at: Optional[datetime] = None


@dataclass
class LineMovement:
    market_type: str
    previous_value: float
    current_value: float
    recorded_at: Optional[datetime] = None


# ==================== SIGNALS ====================

@dataclass(frozen=True)
class RlmSignal:
    market_type: str
    side: str                 # money side
    public_side: str
    strength: str             # strong | moderate | weak
    ticket_pct: float
    money_pct: float
    divergence: float
    line_movement: float      # absolute points
    direction: str            # up | down

    def describe(self) -> str:
        return (
            f"RLM detected ({self.strength}): {self.ticket_pct:.0f}% of tickets on "
            f"{self.public_side}, line moved {self.direction} {self.line_movement:.1f} toward {self.side}"
        )


@dataclass(frozen=True)
class LineMoveSignal:
    """Opening-vs-current line move, no ticket/money data involved."""
    market_type: str
    opening_line: float
    current_line: float
    strength: str
    side: Optional[str] = None

    @property
    def delta(self) -> float:
        return self.current_line - self.opening_line

    @property
    def line_movement(self) -> float:
        return abs(self.delta)

    @property
    def direction(self) -> str:
        return "up" if self.delta > 0 else "down"

    def describe(self) -> str:
        return f"RLM detected ({self.strength}): line moved {self.direction}"


@dataclass(frozen=True)
class HandleSplit:
    divergence: float
    is_sharp_money: bool
    sharp_side: str           # sharp | public
    recommendation: str

    def to_dict(self) -> dict:
        return {
            "divergence": self.divergence,
            "is_sharp_money": self.is_sharp_money,
            "sharp_side": self.sharp_side,
            "recommendation": self.recommendation,
        }


# ==================== DETECTION ====================

class RlmDetector:
    """Ticket/money divergence plus line movement detector."""

    # Ticket/money divergence, percentage points
    STRONG_DIVERGENCE = 15.0
    MODERATE_DIVERGENCE = 10.0
    WEAK_DIVERGENCE = 5.0

    # Line movement, points
    STRONG_MOVEMENT = 1.5
    MODERATE_MOVEMENT = 1.0
    WEAK_MOVEMENT = 0.5

    # Public ticket share
    PUBLIC_THRESHOLD = 60.0
    HEAVY_PUBLIC = 70.0

    # Opening-vs-current detector
    LINE_MOVE_MIN = 0.5
    LINE_MOVE_MODERATE = 1.0
    LINE_MOVE_STRONG = 2.0

    def detect(
        self,
        percentages: Iterable[BettingPercentage],
        movements: Iterable[LineMovement],
        market_type: str,
    ) -> Optional[RlmSignal]:
        """
        Detect reverse line movement for one market of one game.

        Args:
            percentages: Ticket/money observations (any markets, any order)
            movements: Line movement observations (any markets, any order)
            market_type: spread, total or moneyline

        Returns:
            RlmSignal on the money side, or None if the market does not qualify
        """
        market_pcts = [p for p in percentages if p.market_type == market_type]
        if not market_pcts:
            return None
        latest = max(market_pcts, key=lambda p: p.recorded_at or datetime.min)

        market_moves = sorted(
            (m for m in movements if m.market_type == market_type),
            key=lambda m: m.recorded_at or datetime.min,
        )
        if not market_moves:
            return None

        total_movement = market_moves[-1].current_value - market_moves[0].previous_value
        movement = abs(total_movement)

        ticket_pct = latest.ticket_pct
        money_pct = latest.money_pct
        divergence = abs(money_pct - ticket_pct)

        public_side = latest.side if ticket_pct > 50 else opposite_side(latest.side)
        money_side = latest.side if money_pct > 50 else opposite_side(latest.side)

        is_rlm = (
            public_side != money_side
            and ticket_pct >= self.PUBLIC_THRESHOLD
            and divergence >= self.WEAK_DIVERGENCE
            and movement >= self.WEAK_MOVEMENT
        )
        if not is_rlm:
            return None

        if (
            divergence >= self.STRONG_DIVERGENCE
            and movement >= self.STRONG_MOVEMENT
            and ticket_pct >= self.HEAVY_PUBLIC
        ):
            strength = "strong"
        elif divergence >= self.MODERATE_DIVERGENCE and movement >= self.MODERATE_MOVEMENT:
            strength = "moderate"
        else:
            strength = "weak"

        logger.debug(
            f"RLM on {market_type}: {strength}, tickets {ticket_pct}% on {public_side}, "
            f"money {money_pct}%, moved {movement:.1f}"
        )
        return RlmSignal(
            market_type=market_type,
            side=money_side,
            public_side=public_side,
            strength=strength,
            ticket_pct=ticket_pct,
            money_pct=money_pct,
            divergence=divergence,
            line_movement=movement,
            direction="up" if total_movement > 0 else "down",
        )

    def detect_all(
        self,
        percentages: List[BettingPercentage],
        movements: List[LineMovement],
    ) -> List[RlmSignal]:
        """Run detect() for every market type."""
        signals = []
        for market_type in MARKET_TYPES:
            signal = self.detect(percentages, movements, market_type)
            if signal is not None:
                signals.append(signal)
        return signals

    def detect_from_lines(
        self,
        opening_line: Optional[float],
        current_line: Optional[float],
        market_type: str,
    ) -> Optional[LineMoveSignal]:
        """
        Lighter detector driven only by the opening and current line.

        Fires on any move of at least LINE_MOVE_MIN points, in either
        direction.
        """
        if opening_line is None or current_line is None:
            return None

        movement = abs(current_line - opening_line)
        if movement < self.LINE_MOVE_MIN:
            return None

        if movement >= self.LINE_MOVE_STRONG:
            strength = "strong"
        elif movement >= self.LINE_MOVE_MODERATE:
            strength = "moderate"
        else:
            strength = "weak"

        return LineMoveSignal(
            market_type=market_type,
            opening_line=opening_line,
            current_line=current_line,
            strength=strength,
        )


def detect_rlm(
    percentages: Iterable[BettingPercentage],
    movements: Iterable[LineMovement],
    market_type: str,
) -> Optional[RlmSignal]:
    return RlmDetector().detect(percentages, movements, market_type)


def analyze_handle_split(ticket_pct: float, money_pct: float) -> HandleSplit:
    """
    Compare ticket share with money share on one side.

    Money running ahead of tickets by 10+ points suggests fewer, larger bets
    on that side.
    """
    divergence = abs(money_pct - ticket_pct)
    is_sharp_money = divergence >= 10 and money_pct > ticket_pct

    if divergence >= 20:
        recommendation = "Strong sharp money indicator. Consider fading the public."
    elif divergence >= 15:
        recommendation = "Moderate sharp money divergence. Worth monitoring."
    elif divergence >= 10:
        recommendation = "Slight sharp money lean detected."
    else:
        recommendation = "No significant handle split detected."

    return HandleSplit(
        divergence=divergence,
        is_sharp_money=is_sharp_money,
        sharp_side="sharp" if is_sharp_money else "public",
        recommendation=recommendation,
    )
