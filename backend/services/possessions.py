"""
Possession Model

Expected possessions (basketball) or plays (football) for a matchup.
"""

from dataclasses import dataclass
from typing import Optional

from .sports import Sport

# Home teams control tempo slightly
HOME_TEMPO_BOOST = 1.01
# Basketball pace gap that triggers slow-team tempo control
PACE_CLASH_THRESHOLD = 3.0
SLOW_TEAM_WEIGHT = 0.6
FAST_TEAM_WEIGHT = 0.4


@dataclass(frozen=True)
class PossessionEstimate:
    possessions: float
    pace_clash_adjustment: float = 0.0
    driver: Optional[str] = None

    @property
    def is_pace_clash(self) -> bool:
        return self.driver is not None


class PossessionModel:
    """Estimate game pace from both teams' pace figures."""

    def __init__(self, sport: Sport):
        self.sport = Sport.parse(sport)

    def estimate(
        self,
        away_pace: float,
        home_pace: float,
        away_team: str = "Away",
        home_team: str = "Home",
    ) -> PossessionEstimate:
        """
        Estimate expected possessions.

        When two basketball teams' paces differ by more than
        PACE_CLASH_THRESHOLD, the slower team is assumed to control tempo:
        its pace is weighted 60/40 instead of a simple average.

        Args:
            away_pace: Away team pace
            home_pace: Home team pace
            away_team: Away team name (for the driver string)
            home_team: Home team name (for the driver string)

        Returns:
            PossessionEstimate with the pace-clash delta and driver, if any
        """
        simple_average = (away_pace + home_pace) / 2

        if self.sport.is_basketball and abs(away_pace - home_pace) > PACE_CLASH_THRESHOLD:
            if away_pace < home_pace:
                slow_team, slow_pace, fast_team, fast_pace = away_team, away_pace, home_team, home_pace
            else:
                slow_team, slow_pace, fast_team, fast_pace = home_team, home_pace, away_team, away_pace

            adjusted = slow_pace * SLOW_TEAM_WEIGHT + fast_pace * FAST_TEAM_WEIGHT
            delta = adjusted - simple_average
            driver = (
                f"Pace clash: {slow_team} ({slow_pace:.1f}) controls tempo vs "
                f"{fast_team} ({fast_pace:.1f}), pace {delta:+.1f}"
            )
            return PossessionEstimate(possessions=adjusted, pace_clash_adjustment=delta, driver=driver)

        return PossessionEstimate(possessions=simple_average * HOME_TEMPO_BOOST)
