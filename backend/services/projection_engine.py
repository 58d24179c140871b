"""
Projection Engine

Assembles blended stats, pace, raw scores, Four Factors and rest into a
fair-value projection with volatility scoring, drivers and kill switches.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .four_factors import FourFactorsAnalyzer, FourFactorsEdge
from .possessions import PossessionModel
from .rest_adjuster import RestAdjuster, RestAdjustment
from .score_projector import ScoreProjector
from .sports import ALGORITHM_VERSIONS, BLEND_WEIGHTS, FIRST_HALF_RATIOS, Sport
from .team_stats import SideStats, SplitType, StatBlender, TeamMetrics, TeamStatProfile

logger = logging.getLogger(__name__)


def round_tenth(value: float) -> float:
    """Round half-up to one decimal place."""
    rounded = math.floor(value * 10 + 0.5) / 10
    return rounded + 0.0  # normalize -0.0


def spread_to_moneyline(spread: float) -> int:
    """
    Rough fair moneyline for a team getting/laying `spread` points.

    Negative spread = favorite. Each step of the table is worth roughly
    40-50 cents of moneyline.
    """
    steps = (
        (1, -110, 110),
        (3, -130, 110),
        (5, -160, 135),
        (7, -200, 170),
        (10, -280, 230),
    )
    abs_spread = abs(spread)
    for limit, favorite, underdog in steps:
        if abs_spread < limit:
            return favorite if spread < 0 else underdog
    return -400 if spread < 0 else 320


@dataclass
class ProjectionOptions:
    home_rest_days: Optional[int] = None
    away_rest_days: Optional[int] = None
    is_away_traveling: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectionOptions":
        return cls(
            home_rest_days=data.get("home_rest_days"),
            away_rest_days=data.get("away_rest_days"),
            is_away_traveling=bool(data.get("is_away_traveling", False)),
        )


@dataclass
class MatchupContext:
    """Everything needed to project one game. Built fresh per request."""
    game_id: Any
    sport: Sport
    away_team: str
    home_team: str
    away_stats: SideStats = field(default_factory=SideStats)
    home_stats: SideStats = field(default_factory=SideStats)
    is_neutral_site: bool = False

    def __post_init__(self):
        self.sport = Sport.parse(self.sport)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatchupContext":
        """
        Build a matchup from a JSON-style mapping.

        Each of `away_stats` / `home_stats` may hold `primary`, `season` and
        `recent` stat rows keyed like the team_stats columns.
        """
        sport = Sport.parse(data["sport"])
        away_team, home_team = data["away_team"], data["home_team"]

        def side(key: str, team: str, primary_split: SplitType) -> SideStats:
            rows = data.get(key) or {}

            def parse(row, split: SplitType):
                if row is None:
                    return None
                return TeamStatProfile.from_row(
                    {"split_type": split.value, **row, "team_name": team, "sport": sport.value}
                )

            return SideStats(
                primary=parse(rows.get("primary"), primary_split),
                season=parse(rows.get("season"), SplitType.SEASON),
                recent=parse(rows.get("recent"), SplitType.LAST5),
            )

        return cls(
            game_id=data.get("game_id"),
            sport=sport,
            away_team=away_team,
            home_team=home_team,
            away_stats=side("away_stats", away_team, SplitType.AWAY),
            home_stats=side("home_stats", home_team, SplitType.HOME),
            is_neutral_site=bool(data.get("is_neutral_site", False)),
        )


@dataclass(frozen=True)
class FirstHalfProjection:
    away_score: float
    home_score: float
    total: float
    spread: float


@dataclass(frozen=True)
class ProjectionResult:
    game_id: Any
    sport: Sport
    away_team: str
    home_team: str
    algorithm_version: str

    projected_away_score: float
    projected_home_score: float
    projected_total: float
    projected_margin: float          # home minus away
    fair_spread: float               # home perspective, = -margin
    fair_total: float
    fair_moneyline_home: int
    fair_moneyline_away: int
    expected_possessions: float

    volatility_score: int
    volatility_drivers: List[str] = field(default_factory=list)

    efficiency_margin: float = 0.0   # margin before Four Factors and rest
    sos_adjustment: float = 0.0
    pace_clash_adjustment: float = 0.0
    four_factors: Optional[FourFactorsEdge] = None
    rest_adjustment: Optional[RestAdjustment] = None
    blend_weights: Dict[str, float] = field(default_factory=dict)

    drivers: List[str] = field(default_factory=list)
    kill_switches: List[str] = field(default_factory=list)
    first_half: Optional[FirstHalfProjection] = None

    @property
    def four_factors_edge(self) -> Optional[float]:
        return self.four_factors.total_edge if self.four_factors else None

    def to_dict(self) -> Dict[str, Any]:
        """Flatten to JSON-friendly primitives."""
        return {
            "game_id": self.game_id,
            "sport": self.sport.value,
            "away_team": self.away_team,
            "home_team": self.home_team,
            "algorithm_version": self.algorithm_version,
            "projected_away_score": self.projected_away_score,
            "projected_home_score": self.projected_home_score,
            "projected_total": self.projected_total,
            "projected_margin": self.projected_margin,
            "fair_spread": self.fair_spread,
            "fair_total": self.fair_total,
            "fair_moneyline_home": self.fair_moneyline_home,
            "fair_moneyline_away": self.fair_moneyline_away,
            "expected_possessions": self.expected_possessions,
            "volatility_score": self.volatility_score,
            "volatility_drivers": list(self.volatility_drivers),
            "efficiency_margin": self.efficiency_margin,
            "sos_adjustment": self.sos_adjustment,
            "pace_clash_adjustment": self.pace_clash_adjustment,
            "four_factors": self.four_factors.to_dict() if self.four_factors else None,
            "rest_adjustment": self.rest_adjustment.to_dict() if self.rest_adjustment else None,
            "blend_weights": dict(self.blend_weights),
            "drivers": list(self.drivers),
            "kill_switches": list(self.kill_switches),
            "first_half": {
                "away_score": self.first_half.away_score,
                "home_score": self.first_half.home_score,
                "total": self.first_half.total,
                "spread": self.first_half.spread,
            } if self.first_half else None,
        }


class ProjectionAssembler:
    """
    Build a ProjectionResult for a matchup.

    Adjustments are layered onto the raw scores in a fixed order:
    strength of schedule (split between sides), Four Factors edge (split
    between sides), then rest (applied fully to each side).
    """

    VOLATILITY_BASELINE = 45
    SOS_POINTS_PER_UNIT = 0.5
    SOS_VOLATILITY_PER_UNIT = 4.0
    SOS_VOLATILITY_CAP = 15.0
    COLLEGE_VOLATILITY = 8
    PACE_VOLATILITY_PER_UNIT = 1.5
    PACE_VOLATILITY_CAP = 10.0
    FOUR_FACTORS_DISAGREE_VOLATILITY = 8
    BACK_TO_BACK_VOLATILITY = 5
    INCOMPLETE_FOUR_FACTORS_VOLATILITY = 5
    CONFIRMED_EDGE_BONUS = -8
    CONFIRMED_EDGE_MARGIN = 8.0

    # Kill switch thresholds
    KILL_VOLATILITY = 70
    KILL_MIN_EDGE = 3.0
    KILL_FOUR_FACTORS_DIVERGENCE = 1.5
    KILL_REST_ASYMMETRY = 4.0

    # Driver thresholds
    EFFICIENCY_DRIVER_DIFF = 5.0
    SOS_DRIVER_POINTS = 1.0
    FOUR_FACTORS_SUMMARY_EDGE = 1.0
    THREE_POINT_DRIVER_DIFF = 3.0

    def project(
        self,
        matchup: MatchupContext,
        options: Optional[ProjectionOptions] = None,
    ) -> ProjectionResult:
        sport = matchup.sport
        options = options or ProjectionOptions()
        away_name, home_name = matchup.away_team, matchup.home_team

        blender = StatBlender(sport)
        away = blender.blend(matchup.away_stats)
        home = blender.blend(matchup.home_stats)

        pace = PossessionModel(sport).estimate(away.pace, home.pace, away_name, home_name)
        raw = ScoreProjector(sport).project(away, home, pace.possessions, matchup.is_neutral_site)

        away_score, home_score = raw.away_score, raw.home_score

        sos_adjustment = (home.strength_of_schedule - away.strength_of_schedule) * self.SOS_POINTS_PER_UNIT
        away_score -= sos_adjustment / 2
        home_score += sos_adjustment / 2
        efficiency_margin = home_score - away_score

        four_factors = FourFactorsAnalyzer(sport).analyze(away, home, away_name, home_name)
        if four_factors is not None:
            away_score -= four_factors.total_edge / 2
            home_score += four_factors.total_edge / 2

        rest = None
        if sport.is_basketball and (options.away_rest_days is not None or options.home_rest_days is not None):
            rest = RestAdjuster(sport).adjust(
                options.away_rest_days,
                options.home_rest_days,
                options.is_away_traveling,
                away_name,
                home_name,
            )
            away_score += rest.away_adjustment
            home_score += rest.home_adjustment

        # Derive every line from the rounded scores so they stay consistent
        projected_away = round_tenth(away_score)
        projected_home = round_tenth(home_score)
        projected_total = round_tenth(projected_away + projected_home)
        projected_margin = round_tenth(projected_home - projected_away)
        fair_spread = -projected_margin + 0.0
        fair_total = projected_total

        volatility, volatility_drivers = self._score_volatility(
            sport, away, home, projected_margin, efficiency_margin, four_factors, rest
        )
        kill_switches = self._kill_switches(sport, away, home, volatility, projected_margin, four_factors, rest)
        drivers = self._drivers(
            away, home, away_name, home_name, pace.driver, sos_adjustment, four_factors, rest
        )

        ratio = FIRST_HALF_RATIOS[sport]
        first_half = FirstHalfProjection(
            away_score=round_tenth(projected_away * ratio.total),
            home_score=round_tenth(projected_home * ratio.total),
            total=round_tenth(fair_total * ratio.total),
            spread=round_tenth(fair_spread * ratio.spread),
        )

        weights = BLEND_WEIGHTS[sport]
        result = ProjectionResult(
            game_id=matchup.game_id,
            sport=sport,
            away_team=away_name,
            home_team=home_name,
            algorithm_version=ALGORITHM_VERSIONS[sport],
            projected_away_score=projected_away,
            projected_home_score=projected_home,
            projected_total=projected_total,
            projected_margin=projected_margin,
            fair_spread=fair_spread,
            fair_total=fair_total,
            fair_moneyline_home=spread_to_moneyline(fair_spread),
            fair_moneyline_away=spread_to_moneyline(-fair_spread),
            expected_possessions=round_tenth(pace.possessions),
            volatility_score=volatility,
            volatility_drivers=volatility_drivers,
            efficiency_margin=round_tenth(efficiency_margin),
            sos_adjustment=round_tenth(sos_adjustment),
            pace_clash_adjustment=round_tenth(pace.pace_clash_adjustment),
            four_factors=four_factors,
            rest_adjustment=rest,
            blend_weights={"primary": weights.primary, "season": weights.season, "recent": weights.recent},
            drivers=drivers,
            kill_switches=kill_switches,
            first_half=first_half,
        )

        logger.debug(
            f"Projected {away_name} @ {home_name} ({sport.value}): "
            f"{projected_away}-{projected_home}, spread {fair_spread}, total {fair_total}, "
            f"volatility {volatility}"
        )
        return result

    # ==================== VOLATILITY ====================

    def _score_volatility(
        self,
        sport: Sport,
        away: TeamMetrics,
        home: TeamMetrics,
        margin: float,
        efficiency_margin: float,
        four_factors: Optional[FourFactorsEdge],
        rest: Optional[RestAdjustment],
    ) -> "tuple[int, List[str]]":
        """Score 0-100 game volatility and name every contributing term."""
        score = float(self.VOLATILITY_BASELINE)
        drivers: List[str] = []

        def add(points: float, label: str):
            nonlocal score
            score += points
            drivers.append(f"{label} ({points:+.1f})")

        sos_term = min(
            self.SOS_VOLATILITY_CAP,
            self.SOS_VOLATILITY_PER_UNIT * abs(home.strength_of_schedule - away.strength_of_schedule),
        )
        if sos_term > 0:
            add(sos_term, "Strength of schedule mismatch")

        abs_margin = abs(margin)
        if abs_margin < 2:
            add(18, "Near pick'em")
        elif abs_margin < 4:
            add(10, "Close projected margin")
        elif abs_margin < 7:
            add(3, "Moderate projected margin")

        if sport.is_college:
            add(self.COLLEGE_VOLATILITY, "College game")

        if sport.is_basketball:
            pace_term = min(self.PACE_VOLATILITY_CAP, self.PACE_VOLATILITY_PER_UNIT * abs(away.pace - home.pace))
            if pace_term > 0:
                add(pace_term, "Pace mismatch")

        ff_edge = four_factors.total_edge if four_factors else None
        if ff_edge is not None and ff_edge * efficiency_margin < 0:
            add(self.FOUR_FACTORS_DISAGREE_VOLATILITY, "Four Factors disagree with efficiency model")

        if rest is not None and rest.has_back_to_back:
            add(self.BACK_TO_BACK_VOLATILITY, "Back-to-back")

        if sport.is_basketball and not (away.has_four_factors and home.has_four_factors):
            add(self.INCOMPLETE_FOUR_FACTORS_VOLATILITY, "Incomplete Four Factors data")

        if abs_margin > self.CONFIRMED_EDGE_MARGIN and ff_edge is not None and ff_edge * efficiency_margin > 0:
            add(self.CONFIRMED_EDGE_BONUS, "Large edge confirmed by Four Factors")

        clamped = max(0.0, min(100.0, score))
        return int(math.floor(clamped + 0.5)), drivers

    # ==================== KILL SWITCHES ====================

    def _kill_switches(
        self,
        sport: Sport,
        away: TeamMetrics,
        home: TeamMetrics,
        volatility: int,
        margin: float,
        four_factors: Optional[FourFactorsEdge],
        rest: Optional[RestAdjustment],
    ) -> List[str]:
        """Advisory warnings. They never block a projection."""
        switches = []

        if volatility > self.KILL_VOLATILITY and abs(margin) < self.KILL_MIN_EDGE:
            switches.append(
                f"High volatility ({volatility}) with thin projected edge ({abs(margin):.1f} pts)"
            )

        if four_factors is not None and abs(four_factors.total_edge) > self.KILL_FOUR_FACTORS_DIVERGENCE:
            switches.append(
                f"Four Factors divergence of {four_factors.total_edge:+.1f} pts - verify play direction"
            )

        if rest is not None and rest.asymmetry > self.KILL_REST_ASYMMETRY:
            switches.append(f"Rest asymmetry of {rest.asymmetry:.1f} pts between sides")

        if sport.is_basketball and not away.has_any_four_factors and not home.has_any_four_factors:
            switches.append("No Four Factors data for either side")

        return switches

    # ==================== DRIVERS ====================

    def _drivers(
        self,
        away: TeamMetrics,
        home: TeamMetrics,
        away_name: str,
        home_name: str,
        pace_driver: Optional[str],
        sos_adjustment: float,
        four_factors: Optional[FourFactorsEdge],
        rest: Optional[RestAdjustment],
    ) -> List[str]:
        drivers: List[str] = []

        if abs(away.offensive_efficiency - home.offensive_efficiency) > self.EFFICIENCY_DRIVER_DIFF:
            better = away_name if away.offensive_efficiency > home.offensive_efficiency else home_name
            drivers.append(f"{better} has significant offensive efficiency advantage")

        if abs(away.defensive_efficiency - home.defensive_efficiency) > self.EFFICIENCY_DRIVER_DIFF:
            # Lower defensive efficiency allows fewer points
            better = away_name if away.defensive_efficiency < home.defensive_efficiency else home_name
            drivers.append(f"{better} has defensive edge")

        if pace_driver:
            drivers.append(pace_driver)

        if abs(sos_adjustment) > self.SOS_DRIVER_POINTS:
            drivers.append(f"SoS adjustment of {sos_adjustment:+.1f} points applied")

        if four_factors is not None:
            drivers.extend(four_factors.drivers)
            edge = four_factors.total_edge
            if abs(edge) > self.FOUR_FACTORS_SUMMARY_EDGE:
                favored = home_name if edge > 0 else away_name
                drivers.append(f"Four Factors net edge: {favored} by {abs(edge):.1f} pts")

        if rest is not None:
            drivers.extend(rest.drivers)

        if away.three_point_pct is not None and home.three_point_pct is not None:
            diff = away.three_point_pct - home.three_point_pct
            if abs(diff) > self.THREE_POINT_DRIVER_DIFF:
                better = away_name if diff > 0 else home_name
                drivers.append(
                    f"{better} has three-point shooting edge "
                    f"({away.three_point_pct:.1f}% vs {home.three_point_pct:.1f}%)"
                )

        return drivers


def project_matchup(
    matchup: MatchupContext,
    options: Optional[ProjectionOptions] = None,
) -> ProjectionResult:
    """Project a single matchup with the default assembler."""
    return ProjectionAssembler().project(matchup, options)
