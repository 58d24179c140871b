"""
Score Projector

Converts blended efficiencies and expected pace into raw projected scores.
"""

from dataclasses import dataclass

from .sports import VENUE_ADJUSTMENTS, Sport
from .team_stats import FOOTBALL_EFFICIENCY_SCALE, TeamMetrics


@dataclass(frozen=True)
class RawScores:
    away_score: float
    home_score: float

    @property
    def margin(self) -> float:
        """Home minus away."""
        return self.home_score - self.away_score


class ScoreProjector:
    """Project raw away/home scores before schedule, Four Factors and rest adjustments."""

    def __init__(self, sport: Sport):
        self.sport = Sport.parse(sport)

    def project(
        self,
        away: TeamMetrics,
        home: TeamMetrics,
        expected_possessions: float,
        is_neutral_site: bool = False,
    ) -> RawScores:
        # Each offense meets the opposing defense halfway
        away_eff = (away.offensive_efficiency + home.defensive_efficiency) / 2
        home_eff = (home.offensive_efficiency + away.defensive_efficiency) / 2

        if self.sport.is_football:
            away_score = away_eff / FOOTBALL_EFFICIENCY_SCALE * expected_possessions
            home_score = home_eff / FOOTBALL_EFFICIENCY_SCALE * expected_possessions
        else:
            away_score = away_eff * (expected_possessions / 100)
            home_score = home_eff * (expected_possessions / 100)

        if not is_neutral_site:
            venue = VENUE_ADJUSTMENTS[self.sport]
            away_score -= venue / 2
            home_score += venue / 2

        return RawScores(away_score=away_score, home_score=home_score)
