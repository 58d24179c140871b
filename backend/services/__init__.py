from .sports import Sport
from .team_stats import (
    SplitType,
    TeamStatProfile,
    SideStats,
    TeamMetrics,
    StatBlender,
)
from .possessions import PossessionModel, PossessionEstimate
from .score_projector import ScoreProjector, RawScores
from .four_factors import FourFactorsAnalyzer, FourFactorsEdge
from .rest_adjuster import RestAdjuster, RestAdjustment
from .projection_engine import (
    MatchupContext,
    ProjectionOptions,
    ProjectionResult,
    FirstHalfProjection,
    ProjectionAssembler,
    project_matchup,
    spread_to_moneyline,
)
from .edge_detector import (
    Opportunity,
    MarketType,
    Confidence,
    EnhancedConfidenceScorer,
    LegacyConfidenceScorer,
    EdgeDetector,
    detect_opportunities,
    attach_rlm,
)
from .rlm_detector import (
    BettingPercentage,
    LineMovement,
    RlmSignal,
    LineMoveSignal,
    HandleSplit,
    RlmDetector,
    detect_rlm,
    analyze_handle_split,
)
from .backtesting import BacktestConfig, BacktestEngine, BacktestSummary, CompletedGame

__all__ = [
    "Sport",
    "SplitType",
    "TeamStatProfile",
    "SideStats",
    "TeamMetrics",
    "StatBlender",
    "PossessionModel",
    "PossessionEstimate",
    "ScoreProjector",
    "RawScores",
    "FourFactorsAnalyzer",
    "FourFactorsEdge",
    "RestAdjuster",
    "RestAdjustment",
    "MatchupContext",
    "ProjectionOptions",
    "ProjectionResult",
    "FirstHalfProjection",
    "ProjectionAssembler",
    "project_matchup",
    "spread_to_moneyline",
    "Opportunity",
    "MarketType",
    "Confidence",
    "EnhancedConfidenceScorer",
    "LegacyConfidenceScorer",
    "EdgeDetector",
    "detect_opportunities",
    "attach_rlm",
    "BettingPercentage",
    "LineMovement",
    "RlmSignal",
    "LineMoveSignal",
    "HandleSplit",
    "RlmDetector",
    "detect_rlm",
    "analyze_handle_split",
    "BacktestConfig",
    "BacktestEngine",
    "BacktestSummary",
    "CompletedGame",
]
