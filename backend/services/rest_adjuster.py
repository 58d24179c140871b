"""
Rest Adjuster

Fixed point penalties/bonuses for back-to-backs, travel and extra rest.
Rest effects are not modeled for football.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .sports import REST_ADJUSTMENTS, Sport

EXTRA_REST_DAYS = 2


@dataclass(frozen=True)
class RestAdjustment:
    away_adjustment: float = 0.0
    home_adjustment: float = 0.0
    away_back_to_back: bool = False
    home_back_to_back: bool = False
    drivers: List[str] = field(default_factory=list)

    @property
    def has_back_to_back(self) -> bool:
        return self.away_back_to_back or self.home_back_to_back

    @property
    def asymmetry(self) -> float:
        return abs(self.home_adjustment - self.away_adjustment)

    def to_dict(self) -> dict:
        return {
            "away_adjustment": self.away_adjustment,
            "home_adjustment": self.home_adjustment,
            "away_back_to_back": self.away_back_to_back,
            "home_back_to_back": self.home_back_to_back,
        }


class RestAdjuster:

    def __init__(self, sport: Sport):
        self.sport = Sport.parse(sport)

    def _side_adjustment(self, rest_days: Optional[int], traveling: bool) -> float:
        constants = REST_ADJUSTMENTS[self.sport]
        if rest_days is None:
            return 0.0
        if rest_days <= 0:
            return constants.back_to_back_travel if traveling else constants.back_to_back
        if rest_days >= EXTRA_REST_DAYS:
            return constants.extra_rest_bonus
        return 0.0

    def adjust(
        self,
        away_rest_days: Optional[int],
        home_rest_days: Optional[int],
        is_away_traveling: bool = False,
        away_team: str = "Away",
        home_team: str = "Home",
    ) -> RestAdjustment:
        """Compute per-side rest adjustments in points."""
        if not self.sport.is_basketball:
            return RestAdjustment()

        away_adj = self._side_adjustment(away_rest_days, is_away_traveling)
        home_adj = self._side_adjustment(home_rest_days, False)
        away_b2b = away_rest_days is not None and away_rest_days <= 0
        home_b2b = home_rest_days is not None and home_rest_days <= 0

        drivers = []
        for team, adj, b2b, traveling in (
            (away_team, away_adj, away_b2b, is_away_traveling),
            (home_team, home_adj, home_b2b, False),
        ):
            if b2b:
                suffix = " with travel" if traveling else ""
                drivers.append(f"{team} on back-to-back{suffix} ({adj:+.1f} pts)")
            elif adj > 0:
                drivers.append(f"{team} rested ({adj:+.1f} pts)")

        return RestAdjustment(
            away_adjustment=away_adj,
            home_adjustment=home_adj,
            away_back_to_back=away_b2b,
            home_back_to_back=home_b2b,
            drivers=drivers,
        )
