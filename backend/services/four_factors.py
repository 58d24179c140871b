"""
Four Factors Analyzer

Point-value edge from shooting, turnovers, rebounding and free-throw rate,
computed independently of the efficiency-rating model as a cross-check.
Basketball only.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .sports import LEAGUE_AVERAGES, Sport
from .team_stats import TeamMetrics


@dataclass(frozen=True)
class FactorSpec:
    attr: str
    label: str
    points_per_unit: float
    weight: float
    driver_threshold: float
    lower_is_better: bool = False


# Weights intentionally do not sum to 1.0
FACTORS = (
    FactorSpec("efg_pct", "eFG%", points_per_unit=1.2, weight=0.40, driver_threshold=2.0),
    FactorSpec("turnover_pct", "TOV%", points_per_unit=0.8, weight=0.25, driver_threshold=2.0,
               lower_is_better=True),
    FactorSpec("offensive_rebound_pct", "ORB%", points_per_unit=0.5, weight=0.14, driver_threshold=3.0),
    FactorSpec("free_throw_rate", "FT rate", points_per_unit=0.3, weight=0.15, driver_threshold=5.0),
)


@dataclass(frozen=True)
class FourFactorsEdge:
    """Signed point edge; positive favors the home team."""
    efg_edge: float
    turnover_edge: float
    rebounding_edge: float
    free_throw_edge: float
    drivers: List[str] = field(default_factory=list)

    @property
    def total_edge(self) -> float:
        return self.efg_edge + self.turnover_edge + self.rebounding_edge + self.free_throw_edge

    def to_dict(self) -> dict:
        return {
            "efg_edge": round(self.efg_edge, 2),
            "turnover_edge": round(self.turnover_edge, 2),
            "rebounding_edge": round(self.rebounding_edge, 2),
            "free_throw_edge": round(self.free_throw_edge, 2),
            "total_edge": round(self.total_edge, 2),
        }


class FourFactorsAnalyzer:
    """Compare both sides' Four Factors against the league average."""

    def __init__(self, sport: Sport):
        self.sport = Sport.parse(sport)

    def analyze(
        self,
        away: TeamMetrics,
        home: TeamMetrics,
        away_team: str = "Away",
        home_team: str = "Home",
    ) -> Optional[FourFactorsEdge]:
        """
        Compute the Four Factors edge.

        Returns None for football or when neither side has an eFG%. A side
        missing an individual factor is treated as league average.
        """
        if not self.sport.is_basketball:
            return None
        if away.efg_pct is None and home.efg_pct is None:
            return None

        averages = LEAGUE_AVERAGES[self.sport]
        components = {}
        drivers: List[str] = []

        for factor in FACTORS:
            league_avg = getattr(averages, factor.attr)
            home_value = getattr(home, factor.attr)
            away_value = getattr(away, factor.attr)

            home_dev = (home_value if home_value is not None else league_avg) - league_avg
            away_dev = (away_value if away_value is not None else league_avg) - league_avg

            edge = (home_dev - away_dev) * factor.points_per_unit * factor.weight
            if factor.lower_is_better:
                edge = -edge
            components[factor.attr] = edge

            if home_value is None or away_value is None:
                continue
            if abs(home_value - away_value) > factor.driver_threshold:
                if factor.lower_is_better:
                    better = home_team if home_value < away_value else away_team
                else:
                    better = home_team if home_value > away_value else away_team
                drivers.append(
                    f"{better} {factor.label} edge ({away_team} {away_value:.1f} vs {home_team} {home_value:.1f})"
                )

        return FourFactorsEdge(
            efg_edge=components["efg_pct"],
            turnover_edge=components["turnover_pct"],
            rebounding_edge=components["offensive_rebound_pct"],
            free_throw_edge=components["free_throw_rate"],
            drivers=drivers,
        )
