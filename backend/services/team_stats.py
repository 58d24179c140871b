"""
Team Stat Blending

Normalized team statistics and the blender that turns a team's split,
season and recent-form rows into one efficiency profile for a matchup.
"""

import math
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Optional

from .sports import BLEND_WEIGHTS, DEFAULT_PACE, DEFAULT_RATINGS, Sport

# Basketball ratings below this are per-possession fractions (1.12 -> 112)
FRACTIONAL_RATING_CUTOFF = 2.0
# Football rate stats are scaled into a points-per-possession-like unit
FOOTBALL_EFFICIENCY_SCALE = 7.0


class SplitType(Enum):
    HOME = "home"
    AWAY = "away"
    SEASON = "season"
    LAST3 = "last3"
    LAST5 = "last5"
    LAST10 = "last10"


# Preference order when choosing the "recent form" row
RECENT_SPLITS = (SplitType.LAST5, SplitType.LAST10, SplitType.LAST3)


def _to_optional_float(value: Any) -> Optional[float]:
    """Coerce an upstream value to a finite float, or None if absent/unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_percentage(value: Optional[float]) -> Optional[float]:
    """Percentages supplied as fractions (0.52) are scaled to percentage units (52.0)."""
    if value is None:
        return None
    return value * 100 if abs(value) <= 1.0 else value


def _first_present(*values: Optional[float]) -> Optional[float]:
    for value in values:
        if value is not None:
            return value
    return None


@dataclass
class TeamStatProfile:
    """One imported stat row for a team/sport/split/source.

    Every numeric field is optional: None means "no data for this split",
    which is different from a present zero.
    """
    team_name: str
    sport: Sport
    split_type: SplitType = SplitType.SEASON
    source: str = "import"

    # Efficiency
    offensive_ppp: Optional[float] = None
    defensive_ppp: Optional[float] = None
    offensive_rating: Optional[float] = None
    defensive_rating: Optional[float] = None

    # Pace
    pace: Optional[float] = None
    possessions_per_game: Optional[float] = None
    plays_per_game: Optional[float] = None

    # Four Factors
    effective_field_goal_pct: Optional[float] = None
    turnover_pct: Optional[float] = None
    offensive_rebound_pct: Optional[float] = None
    free_throw_rate: Optional[float] = None

    # Shooting
    three_point_pct: Optional[float] = None
    three_point_rate: Optional[float] = None

    # Football
    yards_per_play: Optional[float] = None
    opponent_yards_per_play: Optional[float] = None
    red_zone_scoring_pct: Optional[float] = None
    third_down_conversion_pct: Optional[float] = None

    # Schedule / KenPom
    strength_of_schedule: Optional[float] = None
    kenpom_rank: Optional[float] = None
    kenpom_adjusted_efficiency: Optional[float] = None
    kenpom_tempo: Optional[float] = None
    kenpom_luck: Optional[float] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TeamStatProfile":
        """Build a profile from a raw collaborator row.

        Unknown keys are ignored and numeric values that cannot be parsed
        (or are not finite) are treated as absent.
        """
        numeric = {
            f.name: _to_optional_float(row.get(f.name))
            for f in fields(cls)
            if f.name not in ("team_name", "sport", "split_type", "source")
        }
        split = row.get("split_type") or SplitType.SEASON.value
        return cls(
            team_name=str(row.get("team_name", "")),
            sport=Sport.parse(row["sport"]),
            split_type=split if isinstance(split, SplitType) else SplitType(str(split).lower()),
            source=str(row.get("source") or "import"),
            **numeric,
        )


@dataclass
class SideStats:
    """The stat rows selected for one side of a matchup."""
    primary: Optional[TeamStatProfile] = None   # home split for home team, away split for away team
    season: Optional[TeamStatProfile] = None
    recent: Optional[TeamStatProfile] = None

    @property
    def is_empty(self) -> bool:
        return self.primary is None and self.season is None and self.recent is None


@dataclass(frozen=True)
class TeamMetrics:
    """Blended efficiency profile for one side of a matchup."""
    offensive_efficiency: float
    defensive_efficiency: float
    pace: float
    strength_of_schedule: float = 0.0

    # Four Factors (basketball only, percentage units)
    efg_pct: Optional[float] = None
    turnover_pct: Optional[float] = None
    offensive_rebound_pct: Optional[float] = None
    free_throw_rate: Optional[float] = None

    three_point_pct: Optional[float] = None
    three_point_rate: Optional[float] = None

    @property
    def has_four_factors(self) -> bool:
        """Whether all four factors are present."""
        return None not in (
            self.efg_pct, self.turnover_pct, self.offensive_rebound_pct, self.free_throw_rate
        )

    @property
    def has_any_four_factors(self) -> bool:
        return any(v is not None for v in (
            self.efg_pct, self.turnover_pct, self.offensive_rebound_pct, self.free_throw_rate
        ))


class StatBlender:
    """
    Blend a side's primary split, season baseline and recent form.

    Efficiencies are a weighted average over whichever inputs are present;
    the weighted sum is divided by the weights actually used. Pace, schedule
    strength and the Four Factors are not blended.
    """

    def __init__(self, sport: Sport):
        self.sport = Sport.parse(sport)
        self.weights = BLEND_WEIGHTS[self.sport]

    # ==================== FIELD EXTRACTION ====================

    def _efficiency(self, stats: Optional[TeamStatProfile], side: str) -> Optional[float]:
        if stats is None:
            return None
        if self.sport.is_football:
            ppp = stats.offensive_ppp if side == "offense" else stats.defensive_ppp
            return ppp * FOOTBALL_EFFICIENCY_SCALE if ppp is not None else None

        if side == "offense":
            value = _first_present(stats.offensive_rating, stats.offensive_ppp)
        else:
            value = _first_present(stats.defensive_rating, stats.defensive_ppp)
        if value is not None and value < FRACTIONAL_RATING_CUTOFF:
            value *= 100
        return value

    @staticmethod
    def _pace(stats: Optional[TeamStatProfile]) -> Optional[float]:
        if stats is None:
            return None
        return _first_present(stats.pace, stats.possessions_per_game, stats.plays_per_game)

    @staticmethod
    def _best(primary: Optional[TeamStatProfile], season: Optional[TeamStatProfile], attr: str) -> Optional[float]:
        return _first_present(
            getattr(primary, attr) if primary is not None else None,
            getattr(season, attr) if season is not None else None,
        )

    # ==================== BLENDING ====================

    def weighted_average(
        self,
        primary: Optional[float],
        season: Optional[float],
        recent: Optional[float],
    ) -> Optional[float]:
        """Weighted average of the present values, or None if all are absent."""
        weighted_sum = 0.0
        total_weight = 0.0
        for value, weight in (
            (primary, self.weights.primary),
            (season, self.weights.season),
            (recent, self.weights.recent),
        ):
            if value is not None:
                weighted_sum += value * weight
                total_weight += weight
        if total_weight == 0:
            return None
        return weighted_sum / total_weight

    def blend(self, stats: SideStats) -> TeamMetrics:
        """Produce blended TeamMetrics for one side."""
        default_rating = DEFAULT_RATINGS[self.sport]

        off_eff = self.weighted_average(
            self._efficiency(stats.primary, "offense"),
            self._efficiency(stats.season, "offense"),
            self._efficiency(stats.recent, "offense"),
        )
        def_eff = self.weighted_average(
            self._efficiency(stats.primary, "defense"),
            self._efficiency(stats.season, "defense"),
            self._efficiency(stats.recent, "defense"),
        )

        pace = _first_present(self._pace(stats.primary), self._pace(stats.season))
        if pace is None:
            pace = DEFAULT_PACE[self.sport]

        # Schedule strength is a season-long measure
        sos = stats.season.strength_of_schedule if stats.season else None

        metrics = TeamMetrics(
            offensive_efficiency=off_eff if off_eff is not None else default_rating,
            defensive_efficiency=def_eff if def_eff is not None else default_rating,
            pace=pace,
            strength_of_schedule=sos if sos is not None else 0.0,
        )

        if not self.sport.is_basketball:
            return metrics

        return TeamMetrics(
            offensive_efficiency=metrics.offensive_efficiency,
            defensive_efficiency=metrics.defensive_efficiency,
            pace=metrics.pace,
            strength_of_schedule=metrics.strength_of_schedule,
            efg_pct=_as_percentage(self._best(stats.primary, stats.season, "effective_field_goal_pct")),
            turnover_pct=_as_percentage(self._best(stats.primary, stats.season, "turnover_pct")),
            offensive_rebound_pct=_as_percentage(
                self._best(stats.primary, stats.season, "offensive_rebound_pct")
            ),
            free_throw_rate=_as_percentage(self._best(stats.primary, stats.season, "free_throw_rate")),
            three_point_pct=_as_percentage(self._best(stats.primary, stats.season, "three_point_pct")),
            three_point_rate=_as_percentage(self._best(stats.primary, stats.season, "three_point_rate")),
        )
