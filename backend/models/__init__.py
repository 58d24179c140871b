from .database import (
    Base,
    TeamStat,
    Game,
    OddsSnapshot,
    LineMovementRecord,
    BettingPercentageRecord,
    Projection,
    OpportunityRecord,
    RlmSignalRecord,
    BacktestResult,
)
from .connection import (
    engine,
    SessionLocal,
    init_db,
    drop_db,
    get_session,
)

__all__ = [
    # Models
    "Base",
    "TeamStat",
    "Game",
    "OddsSnapshot",
    "LineMovementRecord",
    "BettingPercentageRecord",
    "Projection",
    "OpportunityRecord",
    "RlmSignalRecord",
    "BacktestResult",
    # Connection
    "engine",
    "SessionLocal",
    "init_db",
    "drop_db",
    "get_session",
]
