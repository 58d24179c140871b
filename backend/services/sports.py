"""
Sport Constants

Closed set of supported sports plus the per-sport constant tables the
projection model reads. Tables are module-level and never mutated.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class Sport(Enum):
    NFL = "NFL"
    NBA = "NBA"
    CFB = "CFB"
    CBB = "CBB"

    @classmethod
    def parse(cls, value: "str | Sport") -> "Sport":
        """Parse a sport code (case-insensitive)."""
        if isinstance(value, Sport):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unsupported sport: {value!r}") from None

    @property
    def is_football(self) -> bool:
        return self in (Sport.NFL, Sport.CFB)

    @property
    def is_basketball(self) -> bool:
        return self in (Sport.NBA, Sport.CBB)

    @property
    def is_college(self) -> bool:
        return self in (Sport.CFB, Sport.CBB)


@dataclass(frozen=True)
class BlendWeights:
    """Blend weights for primary (home/away split), season and recent form."""
    primary: float
    season: float
    recent: float


@dataclass(frozen=True)
class FirstHalfRatio:
    total: float
    spread: float


@dataclass(frozen=True)
class LeagueAverages:
    """League-average Four Factors in percentage units."""
    efg_pct: float
    turnover_pct: float
    offensive_rebound_pct: float
    free_throw_rate: float


@dataclass(frozen=True)
class RestConstants:
    back_to_back: float            # Penalty for zero rest days
    back_to_back_travel: float     # Penalty for zero rest days while traveling
    extra_rest_bonus: float        # Bonus for 2+ rest days


ALGORITHM_VERSIONS: Mapping[Sport, str] = MappingProxyType({
    Sport.NFL: "NFL v4.0R1",
    Sport.NBA: "NBA v3.5R1",
    Sport.CFB: "CFB v3.5R1",
    Sport.CBB: "CBB v3.6R1",
})

BLEND_WEIGHTS: Mapping[Sport, BlendWeights] = MappingProxyType({
    Sport.NFL: BlendWeights(primary=55, season=35, recent=10),
    Sport.NBA: BlendWeights(primary=50, season=40, recent=10),
    Sport.CFB: BlendWeights(primary=55, season=35, recent=10),
    Sport.CBB: BlendWeights(primary=50, season=40, recent=10),
})

# Full home/away swing in points; half is applied to each side
VENUE_ADJUSTMENTS: Mapping[Sport, float] = MappingProxyType({
    Sport.NFL: 2.5,
    Sport.NBA: 3.0,
    Sport.CFB: 3.0,
    Sport.CBB: 4.0,
})

# Football ratings are points-per-play x 7; basketball is points per 100
DEFAULT_RATINGS: Mapping[Sport, float] = MappingProxyType({
    Sport.NFL: 21.0,
    Sport.NBA: 114.0,
    Sport.CFB: 21.0,
    Sport.CBB: 105.0,
})

DEFAULT_PACE: Mapping[Sport, float] = MappingProxyType({
    Sport.NFL: 23.0,
    Sport.NBA: 100.0,
    Sport.CFB: 70.0,
    Sport.CBB: 68.0,
})

FIRST_HALF_RATIOS: Mapping[Sport, FirstHalfRatio] = MappingProxyType({
    Sport.NFL: FirstHalfRatio(total=0.47, spread=0.45),
    Sport.NBA: FirstHalfRatio(total=0.485, spread=0.47),
    Sport.CFB: FirstHalfRatio(total=0.47, spread=0.45),
    Sport.CBB: FirstHalfRatio(total=0.48, spread=0.46),
})

LEAGUE_AVERAGES: Mapping[Sport, LeagueAverages] = MappingProxyType({
    Sport.NBA: LeagueAverages(
        efg_pct=54.0, turnover_pct=13.5, offensive_rebound_pct=25.0, free_throw_rate=25.0
    ),
    Sport.CBB: LeagueAverages(
        efg_pct=50.5, turnover_pct=17.5, offensive_rebound_pct=29.5, free_throw_rate=32.0
    ),
})

REST_ADJUSTMENTS: Mapping[Sport, RestConstants] = MappingProxyType({
    Sport.NBA: RestConstants(back_to_back=-2.5, back_to_back_travel=-3.5, extra_rest_bonus=1.0),
    Sport.CBB: RestConstants(back_to_back=-1.5, back_to_back_travel=-2.5, extra_rest_bonus=0.5),
})
