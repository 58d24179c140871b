"""
Projection Pipeline

Runs projections, edge detection and RLM detection for stored games and
persists the results. Also settles and backtests stored opportunities.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker

from models.connection import SessionLocal, get_session
from models.database import (
    BacktestResult,
    BettingPercentageRecord,
    Game,
    LineMovementRecord,
    OddsSnapshot,
    OpportunityRecord,
    Projection,
    RlmSignalRecord,
    TeamStat,
)

from .backtesting import BacktestConfig, BacktestEngine, BacktestSummary, CompletedGame
from .edge_detector import (
    Confidence,
    EdgeDetector,
    MarketType,
    Opportunity,
    attach_rlm,
    get_scorer,
)
from .projection_engine import MatchupContext, ProjectionAssembler, ProjectionOptions, ProjectionResult
from .rlm_detector import BettingPercentage, LineMovement, RlmDetector
from .sports import Sport
from .team_stats import RECENT_SPLITS, SideStats, SplitType, TeamStatProfile

logger = logging.getLogger(__name__)

PROFILE_FIELDS = [
    "offensive_ppp", "defensive_ppp", "offensive_rating", "defensive_rating",
    "pace", "possessions_per_game", "plays_per_game",
    "effective_field_goal_pct", "turnover_pct", "offensive_rebound_pct", "free_throw_rate",
    "three_point_pct", "three_point_rate",
    "yards_per_play", "opponent_yards_per_play", "red_zone_scoring_pct", "third_down_conversion_pct",
    "strength_of_schedule", "kenpom_rank", "kenpom_adjusted_efficiency", "kenpom_tempo", "kenpom_luck",
]

RESULT_STATUS = {"win": "won", "loss": "lost", "push": "push"}


@dataclass
class PipelineResult:
    games_processed: int = 0
    projections_generated: int = 0
    opportunities_created: int = 0
    rlm_signals_detected: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "games_processed": self.games_processed,
            "projections_generated": self.projections_generated,
            "opportunities_created": self.opportunities_created,
            "rlm_signals_detected": self.rlm_signals_detected,
            "errors": list(self.errors),
        }


def profile_from_record(record: TeamStat) -> TeamStatProfile:
    return TeamStatProfile(
        team_name=record.team_name,
        sport=Sport.parse(record.sport),
        split_type=SplitType(record.split_type),
        source=record.source,
        **{name: getattr(record, name) for name in PROFILE_FIELDS},
    )


def opportunity_from_record(record: OpportunityRecord) -> Opportunity:
    return Opportunity(
        game_id=record.game_id,
        sport=Sport.parse(record.sport),
        market_type=MarketType(record.market_type),
        side=record.side,
        play_description=record.play_description,
        current_line=record.current_line,
        current_odds=record.current_odds or EdgeDetector.DEFAULT_ODDS,
        fair_line=record.fair_line,
        edge_points=record.edge_points or 0.0,
        edge_percentage=record.edge_percentage,
        confidence=Confidence(record.confidence),
        volatility_score=record.volatility_score,
        confidence_model=record.confidence_model or "enhanced",
        is_reverse_line_movement=bool(record.is_reverse_line_movement),
        ticket_percentage=record.ticket_percentage,
        money_percentage=record.money_percentage,
        drivers=list(record.drivers or []),
        kill_switches=list(record.kill_switches or []),
        status=record.status,
        result=record.result,
    )


def completed_game_from_record(game: Game) -> CompletedGame:
    return CompletedGame(
        game_id=game.id,
        sport=Sport.parse(game.sport),
        home_score=game.home_score,
        away_score=game.away_score,
        game_date=game.game_date,
        home_first_half_score=game.home_first_half_score,
        away_first_half_score=game.away_first_half_score,
    )


class ProjectionPipeline:
    """
    DB-backed orchestration around the projection engine.

    One failing game never aborts a run: its error is logged and collected
    in PipelineResult.errors.
    """

    def __init__(self, session_factory: sessionmaker = None, confidence_model: str = "enhanced"):
        self.session_factory = session_factory or SessionLocal
        self.assembler = ProjectionAssembler()
        self.detector = EdgeDetector(get_scorer(confidence_model))
        self.rlm_detector = RlmDetector()
        self.backtest_engine = BacktestEngine()

    def _get_session(self) -> Session:
        """Get a database session."""
        return self.session_factory()

    # ==================== IMPORT ====================

    def import_team_stats(self, rows: Sequence[Dict[str, Any]]) -> int:
        """
        Upsert team stat rows keyed by team/sport/split/source.

        Re-importing a row overwrites the stored values.

        Returns:
            Number of rows written
        """
        session = self._get_session()
        try:
            written = 0
            for row in rows:
                profile = TeamStatProfile.from_row(row)
                record = session.query(TeamStat).filter(
                    TeamStat.team_name == profile.team_name,
                    TeamStat.sport == profile.sport.value,
                    TeamStat.split_type == profile.split_type.value,
                    TeamStat.source == profile.source,
                ).first()
                if record is None:
                    record = TeamStat(
                        team_name=profile.team_name,
                        sport=profile.sport.value,
                        split_type=profile.split_type.value,
                        source=profile.source,
                    )
                    session.add(record)
                for name in PROFILE_FIELDS:
                    setattr(record, name, getattr(profile, name))
                record.raw_data = {k: v for k, v in row.items() if isinstance(v, (str, int, float, bool))}
                written += 1
            session.commit()
            logger.info(f"Imported {written} team stat rows")
            return written
        except Exception as e:
            session.rollback()
            logger.error(f"Error importing team stats: {e}")
            raise
        finally:
            session.close()

    # ==================== LOOKUPS ====================

    def _find_stats(self, session: Session, team_name: str, sport: Sport, split: SplitType) -> Optional[TeamStatProfile]:
        record = session.query(TeamStat).filter(
            func.lower(TeamStat.team_name) == team_name.strip().lower(),
            TeamStat.sport == sport.value,
            TeamStat.split_type == split.value,
        ).order_by(TeamStat.captured_at.desc()).first()
        return profile_from_record(record) if record else None

    def _side_stats(self, session: Session, team_name: str, sport: Sport, primary: SplitType) -> SideStats:
        recent = None
        for split in RECENT_SPLITS:
            recent = self._find_stats(session, team_name, sport, split)
            if recent is not None:
                break
        return SideStats(
            primary=self._find_stats(session, team_name, sport, primary),
            season=self._find_stats(session, team_name, sport, SplitType.SEASON),
            recent=recent,
        )

    @staticmethod
    def _market_lines(session: Session, game_id: int):
        """Latest and opening odds snapshots for a game."""
        snapshots = session.query(OddsSnapshot).filter(
            OddsSnapshot.game_id == game_id
        ).order_by(OddsSnapshot.captured_at.asc(), OddsSnapshot.id.asc()).all()
        if not snapshots:
            return None, None
        latest = snapshots[-1]
        opening = next((s for s in snapshots if s.is_opening), snapshots[0])
        return latest, opening

    # ==================== RUN ====================

    def run(self, sports: Optional[Sequence[str]] = None, game_date: Optional[date] = None) -> PipelineResult:
        """
        Project every scheduled game and store projections, opportunities
        and RLM signals.

        Args:
            sports: Sport codes to include (default all)
            game_date: Only games on this date (default every scheduled game)

        Returns:
            PipelineResult with counts and per-game errors
        """
        result = PipelineResult()
        selected = [Sport.parse(s).value for s in sports] if sports else [s.value for s in Sport]

        session = self._get_session()
        try:
            query = session.query(Game.id).filter(
                Game.status == "scheduled",
                Game.sport.in_(selected),
            )
            if game_date is not None:
                start = datetime.combine(game_date, time.min)
                query = query.filter(Game.game_date >= start, Game.game_date < start + timedelta(days=1))
            game_ids = [row.id for row in query.order_by(Game.game_date.asc()).all()]
        finally:
            session.close()

        logger.info(f"Pipeline starting: {len(game_ids)} games for {', '.join(selected)}")

        for game_id in game_ids:
            session = self._get_session()
            try:
                created, signals = self._process_game(session, game_id)
                session.commit()
                result.games_processed += 1
                result.projections_generated += 1
                result.opportunities_created += created
                result.rlm_signals_detected += signals
            except Exception as e:
                session.rollback()
                logger.error(f"Error processing game {game_id}: {e}")
                result.errors.append(f"Game {game_id}: {e}")
            finally:
                session.close()

        logger.info(
            f"Pipeline complete: {result.projections_generated} projections, "
            f"{result.opportunities_created} opportunities, {len(result.errors)} errors"
        )
        return result

    def _process_game(self, session: Session, game_id: int):
        game = session.get(Game, game_id)
        sport = Sport.parse(game.sport)

        matchup = MatchupContext(
            game_id=game.id,
            sport=sport,
            away_team=game.away_team_name,
            home_team=game.home_team_name,
            away_stats=self._side_stats(session, game.away_team_name, sport, SplitType.AWAY),
            home_stats=self._side_stats(session, game.home_team_name, sport, SplitType.HOME),
            is_neutral_site=bool(game.is_neutral_site),
        )
        if matchup.away_stats.is_empty and matchup.home_stats.is_empty:
            logger.warning(f"No team stats for {game.away_team_name} @ {game.home_team_name}, using defaults")

        projection = self.assembler.project(
            matchup,
            ProjectionOptions(
                home_rest_days=game.home_rest_days,
                away_rest_days=game.away_rest_days,
                is_away_traveling=bool(game.is_away_traveling),
            ),
        )
        projection_record = self._save_projection(session, projection)

        latest, opening = self._market_lines(session, game.id)
        if latest is None:
            logger.info(f"No market odds for {game.away_team_name} @ {game.home_team_name}, skipping edges")
            return 0, 0

        opportunities = self.detector.detect(
            projection,
            market_spread=latest.spread_home,
            market_total=latest.total,
            game_id=game.id,
            moneyline_home=latest.moneyline_home,
            moneyline_away=latest.moneyline_away,
            spread_home_odds=latest.spread_home_odds or EdgeDetector.DEFAULT_ODDS,
            spread_away_odds=latest.spread_away_odds or EdgeDetector.DEFAULT_ODDS,
            over_odds=latest.over_odds or EdgeDetector.DEFAULT_ODDS,
            under_odds=latest.under_odds or EdgeDetector.DEFAULT_ODDS,
        )

        signals = self._detect_rlm(session, game.id, latest, opening)
        for signal in signals:
            for opp in opportunities:
                if opp.market_type.value == signal.market_type:
                    attach_rlm(opp, signal)

        # Earlier opportunities for this game are superseded
        session.query(OpportunityRecord).filter(
            OpportunityRecord.game_id == game.id,
            OpportunityRecord.status == "active",
        ).update({"status": "expired"}, synchronize_session=False)

        for opp in opportunities:
            session.add(self._opportunity_record(opp, projection_record.id))

        return len(opportunities), len(signals)

    def _detect_rlm(self, session: Session, game_id: int, latest: OddsSnapshot, opening: OddsSnapshot) -> list:
        percentages = [
            BettingPercentage(r.market_type, r.side, r.ticket_percentage, r.money_percentage, r.captured_at)
            for r in session.query(BettingPercentageRecord).filter(BettingPercentageRecord.game_id == game_id)
        ]
        movements = [
            LineMovement(r.market_type, r.previous_value, r.current_value, r.captured_at)
            for r in session.query(LineMovementRecord).filter(LineMovementRecord.game_id == game_id)
        ]

        signals = list(self.rlm_detector.detect_all(percentages, movements))
        covered = {s.market_type for s in signals}

        # Without ticket/money data, fall back to opening-vs-current line moves
        for market_type, opening_line, current_line in (
            ("spread", opening.spread_home, latest.spread_home),
            ("total", opening.total, latest.total),
        ):
            if market_type in covered or opening is latest:
                continue
            line_signal = self.rlm_detector.detect_from_lines(opening_line, current_line, market_type)
            if line_signal is not None:
                signals.append(line_signal)

        for signal in signals:
            session.add(RlmSignalRecord(
                game_id=game_id,
                market_type=signal.market_type,
                side=signal.side,
                ticket_percentage=getattr(signal, "ticket_pct", None),
                money_percentage=getattr(signal, "money_pct", None),
                line_movement_direction=signal.direction,
                line_movement_size=round(signal.line_movement, 1),
                signal_strength=signal.strength,
            ))
        return signals

    @staticmethod
    def _save_projection(session: Session, projection: ProjectionResult) -> Projection:
        data = projection.to_dict()
        record = Projection(
            game_id=projection.game_id,
            algorithm_version=projection.algorithm_version,
            projected_away_score=projection.projected_away_score,
            projected_home_score=projection.projected_home_score,
            projected_total=projection.projected_total,
            projected_margin=projection.projected_margin,
            fair_spread=projection.fair_spread,
            fair_total=projection.fair_total,
            fair_moneyline_home=projection.fair_moneyline_home,
            fair_moneyline_away=projection.fair_moneyline_away,
            expected_possessions=projection.expected_possessions,
            volatility_score=projection.volatility_score,
            blend_primary=projection.blend_weights.get("primary"),
            blend_season=projection.blend_weights.get("season"),
            blend_recent=projection.blend_weights.get("recent"),
            sos_adjustment=projection.sos_adjustment,
            detailed_metrics={
                "four_factors": data["four_factors"],
                "rest_adjustment": data["rest_adjustment"],
                "first_half": data["first_half"],
                "pace_clash_adjustment": data["pace_clash_adjustment"],
                "volatility_drivers": data["volatility_drivers"],
            },
            drivers=list(projection.drivers),
            kill_switches=list(projection.kill_switches),
        )
        session.add(record)
        session.flush()
        return record

    @staticmethod
    def _opportunity_record(opp: Opportunity, projection_id: int) -> OpportunityRecord:
        return OpportunityRecord(
            game_id=opp.game_id,
            projection_id=projection_id,
            sport=opp.sport.value,
            market_type=opp.market_type.value,
            side=opp.side,
            play_description=opp.play_description,
            current_line=opp.current_line,
            current_odds=opp.current_odds,
            fair_line=opp.fair_line,
            edge_points=opp.edge_points,
            edge_percentage=opp.edge_percentage,
            confidence=opp.confidence.value,
            confidence_model=opp.confidence_model,
            volatility_score=opp.volatility_score,
            is_reverse_line_movement=opp.is_reverse_line_movement,
            ticket_percentage=opp.ticket_percentage,
            money_percentage=opp.money_percentage,
            drivers=list(opp.drivers),
            kill_switches=list(opp.kill_switches),
            status=opp.status,
        )

    # ==================== RESULTS ====================

    def settle_results(self) -> int:
        """
        Grade active opportunities on final games.

        Returns:
            Number of opportunities settled
        """
        session = self._get_session()
        try:
            rows = session.query(OpportunityRecord, Game).join(
                Game, OpportunityRecord.game_id == Game.id
            ).filter(
                OpportunityRecord.status == "active",
                Game.status == "final",
                Game.home_score.isnot(None),
                Game.away_score.isnot(None),
            ).all()

            settled = 0
            for record, game in rows:
                outcome = self.backtest_engine.grade(opportunity_from_record(record), completed_game_from_record(game))
                if outcome is None:
                    continue
                record.result = outcome.result
                record.status = RESULT_STATUS[outcome.result]
                settled += 1

            session.commit()
            logger.info(f"Settled {settled} opportunities")
            return settled
        except Exception as e:
            session.rollback()
            logger.error(f"Error settling results: {e}")
            raise
        finally:
            session.close()

    def backtest(self, config: Optional[BacktestConfig] = None, save: bool = True) -> BacktestSummary:
        """Backtest stored opportunities on final games and optionally store the summary."""
        config = config or BacktestConfig()
        session = self._get_session()
        try:
            rows = session.query(OpportunityRecord, Game).join(
                Game, OpportunityRecord.game_id == Game.id
            ).filter(
                Game.status == "final",
                Game.home_score.isnot(None),
                Game.away_score.isnot(None),
            ).all()

            records = [(opportunity_from_record(o), completed_game_from_record(g)) for o, g in rows]
            summary = self.backtest_engine.run(records, config)

            if save:
                session.add(BacktestResult(
                    sport=(config.sport or "ALL").upper(),
                    signal_type=config.signal_type,
                    date_range_start=datetime.combine(config.date_from, time.min) if config.date_from else None,
                    date_range_end=datetime.combine(config.date_to, time.max) if config.date_to else None,
                    total_signals=summary.total_signals,
                    wins=summary.wins,
                    losses=summary.losses,
                    pushes=summary.pushes,
                    win_percentage=summary.win_percentage,
                    roi=summary.roi,
                    average_edge=summary.avg_edge,
                    units_profit_loss=summary.units_profit_loss,
                    by_confidence=summary.by_confidence,
                    by_market_type=summary.by_market_type,
                    parameters={
                        "min_edge": config.min_edge,
                        "confidence": config.confidence,
                        "confidence_model": config.confidence_model,
                    },
                ))
            session.commit()
            return summary
        except Exception as e:
            session.rollback()
            logger.error(f"Error running backtest: {e}")
            raise
        finally:
            session.close()

    # ==================== QUERIES ====================

    def list_opportunities(
        self,
        sport: Optional[str] = None,
        min_edge: float = 0.0,
        status: str = "active",
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """Stored opportunities, highest edge first."""
        with get_session(self.session_factory) as session:
            query = session.query(OpportunityRecord, Game).join(
                Game, OpportunityRecord.game_id == Game.id
            ).filter(OpportunityRecord.edge_percentage >= min_edge)
            if status:
                query = query.filter(OpportunityRecord.status == status)
            if sport:
                query = query.filter(OpportunityRecord.sport == Sport.parse(sport).value)
            rows = query.order_by(OpportunityRecord.edge_percentage.desc()).limit(limit).all()

            results = []
            for record, game in rows:
                data = opportunity_from_record(record).to_dict()
                data["id"] = record.id
                data["matchup"] = f"{game.away_team_name} @ {game.home_team_name}"
                data["game_date"] = game.game_date.isoformat() if game.game_date else None
                results.append(data)
            return results

    def list_rlm_signals(self, sport: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        with get_session(self.session_factory) as session:
            query = session.query(RlmSignalRecord, Game).join(Game, RlmSignalRecord.game_id == Game.id)
            if sport:
                query = query.filter(Game.sport == Sport.parse(sport).value)
            rows = query.order_by(RlmSignalRecord.detected_at.desc(), RlmSignalRecord.id.desc()).limit(limit).all()
            return [
                {
                    "id": signal.id,
                    "game_id": signal.game_id,
                    "sport": game.sport,
                    "matchup": f"{game.away_team_name} @ {game.home_team_name}",
                    "market_type": signal.market_type,
                    "side": signal.side,
                    "ticket_percentage": signal.ticket_percentage,
                    "money_percentage": signal.money_percentage,
                    "line_movement_direction": signal.line_movement_direction,
                    "line_movement_size": signal.line_movement_size,
                    "signal_strength": signal.signal_strength,
                }
                for signal, game in rows
            ]
