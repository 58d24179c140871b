"""
FastAPI Backend

REST API for projections, edge detection, RLM signals and backtesting.
"""

import logging
import os
from dataclasses import asdict
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from services import (
    BettingPercentage,
    LineMovement,
    MatchupContext,
    ProjectionOptions,
    analyze_handle_split,
    detect_opportunities,
    detect_rlm,
    project_matchup,
)
from services.backtesting import BacktestConfig
from services.pipeline import ProjectionPipeline
from services.scheduler import create_scheduler
from models import init_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# CORS configuration - set allowed origins from environment or use defaults
DEFAULT_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", DEFAULT_ORIGINS).split(",")

ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "false").lower() == "true"


# ==================== PYDANTIC MODELS ====================

class SideStatsRequest(BaseModel):
    """Raw stat rows for one side; keys follow the team_stats columns."""
    primary: Optional[Dict[str, Any]] = None
    season: Optional[Dict[str, Any]] = None
    recent: Optional[Dict[str, Any]] = None


class ProjectionRequest(BaseModel):
    game_id: Optional[int] = None
    sport: str
    away_team: str
    home_team: str
    is_neutral_site: bool = False
    away_stats: SideStatsRequest = Field(default_factory=SideStatsRequest)
    home_stats: SideStatsRequest = Field(default_factory=SideStatsRequest)
    home_rest_days: Optional[int] = None
    away_rest_days: Optional[int] = None
    is_away_traveling: bool = False


class OpportunityDetectRequest(BaseModel):
    projection: ProjectionRequest
    current_spread: Optional[float] = None
    current_total: Optional[float] = None
    moneyline_home: Optional[int] = None
    moneyline_away: Optional[int] = None
    confidence_model: str = "enhanced"


class BettingPercentageModel(BaseModel):
    market_type: str
    side: str
    ticket_pct: float = Field(ge=0, le=100)
    money_pct: float = Field(ge=0, le=100)
    recorded_at: Optional[datetime] = None


class LineMovementModel(BaseModel):
    market_type: str
    previous_value: float
    current_value: float
    recorded_at: Optional[datetime] = None


class RlmDetectRequest(BaseModel):
    market_type: str = "spread"
    percentages: List[BettingPercentageModel] = []
    movements: List[LineMovementModel] = []


class HandleSplitRequest(BaseModel):
    ticket_pct: float = Field(ge=0, le=100)
    money_pct: float = Field(ge=0, le=100)


class BacktestRequest(BaseModel):
    sport: Optional[str] = None
    signal_type: str = "all"
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_edge: Optional[float] = None
    confidence: Optional[str] = None
    confidence_model: Optional[str] = None
    save: bool = True


class PipelineRunRequest(BaseModel):
    sports: Optional[List[str]] = None
    game_date: Optional[date] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str


# ==================== APP SETUP ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and services on startup."""
    init_db()
    logger.info("[Startup] Database initialized")
    scheduler = None
    if ENABLE_SCHEDULER:
        scheduler = create_scheduler(pipeline)
    yield
    if scheduler is not None:
        scheduler.stop()


app = FastAPI(
    title="Sharpline API",
    description="Sports projections, betting edge detection and reverse line movement signals",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware - restricted to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Service instances
pipeline = ProjectionPipeline()


def _project(request: ProjectionRequest):
    data = request.model_dump()
    return project_matchup(MatchupContext.from_dict(data), ProjectionOptions.from_dict(data))


# ==================== ENDPOINTS ====================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version="1.0.0"
    )


@app.post("/api/projections")
async def create_projection(request: ProjectionRequest):
    """Project a single matchup from raw stat rows."""
    try:
        return _project(request).to_dict()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Projection failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/opportunities/detect")
async def detect_matchup_opportunities(request: OpportunityDetectRequest):
    """Project a matchup and compare it with the supplied market lines."""
    try:
        projection = _project(request.projection)
        opportunities = detect_opportunities(
            projection.game_id,
            projection.sport,
            projection,
            request.current_spread,
            request.current_total,
            moneyline_home=request.moneyline_home,
            moneyline_away=request.moneyline_away,
            confidence_model=request.confidence_model,
        )
        return {
            "projection": projection.to_dict(),
            "opportunities": [o.to_dict() for o in opportunities],
        }
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Opportunity detection failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/rlm/detect")
async def detect_reverse_line_movement(request: RlmDetectRequest):
    """Detect reverse line movement for one market."""
    signal = detect_rlm(
        [BettingPercentage(**p.model_dump()) for p in request.percentages],
        [LineMovement(**m.model_dump()) for m in request.movements],
        request.market_type,
    )
    return {"signal": asdict(signal) if signal else None}


@app.post("/api/handle-split")
async def handle_split(request: HandleSplitRequest):
    """Compare ticket share with money share."""
    return analyze_handle_split(request.ticket_pct, request.money_pct).to_dict()


@app.post("/api/backtest")
async def run_backtest(request: BacktestRequest):
    """Backtest stored opportunities against final scores."""
    try:
        config = BacktestConfig(
            sport=request.sport,
            signal_type=request.signal_type,
            date_from=request.date_from,
            date_to=request.date_to,
            min_edge=request.min_edge,
            confidence=request.confidence,
            confidence_model=request.confidence_model,
        )
        return pipeline.backtest(config, save=request.save).to_dict()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Backtest failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/pipeline/run")
async def run_pipeline(request: Optional[PipelineRunRequest] = None):
    """Run the projection pipeline over stored scheduled games."""
    request = request or PipelineRunRequest()
    try:
        return pipeline.run(sports=request.sports, game_date=request.game_date).to_dict()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Pipeline run failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/opportunities", response_model=List[dict])
async def list_opportunities(
    sport: Optional[str] = Query(None, description="Sport code (NFL, NBA, CFB, CBB)"),
    min_edge: float = Query(0.0, ge=0, description="Minimum edge percentage"),
    status: str = Query("active"),
    limit: int = Query(100, ge=1, le=500),
):
    """Stored opportunities, highest edge first."""
    try:
        return pipeline.list_opportunities(sport=sport, min_edge=min_edge, status=status, limit=limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/rlm-signals", response_model=List[dict])
async def list_rlm_signals(
    sport: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
):
    """Stored RLM signals, newest first."""
    try:
        return pipeline.list_rlm_signals(sport=sport, limit=limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
