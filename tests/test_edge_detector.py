"""Tests for edge detection and confidence tiering."""

import pytest

from services import (
    Confidence,
    EdgeDetector,
    EnhancedConfidenceScorer,
    LegacyConfidenceScorer,
    LineMoveSignal,
    MarketType,
    ProjectionResult,
    RlmSignal,
    Sport,
    attach_rlm,
    detect_opportunities,
)
from services.edge_detector import american_to_implied_prob, format_line, get_scorer
from services.projection_engine import FirstHalfProjection
from services.four_factors import FourFactorsEdge


def make_projection(
    sport=Sport.NBA,
    fair_spread=2.9,
    fair_total=224.3,
    volatility=55,
    kill_switches=None,
    ml_home=110,
    ml_away=-130,
    first_half_spread=1.4,
    four_factors=None,
):
    margin = -fair_spread
    return ProjectionResult(
        game_id=11,
        sport=sport,
        away_team="Boston",
        home_team="Miami",
        algorithm_version="test",
        projected_away_score=(fair_total - margin) / 2,
        projected_home_score=(fair_total + margin) / 2,
        projected_total=fair_total,
        projected_margin=margin,
        fair_spread=fair_spread,
        fair_total=fair_total,
        fair_moneyline_home=ml_home,
        fair_moneyline_away=ml_away,
        expected_possessions=98.4,
        volatility_score=volatility,
        four_factors=four_factors,
        drivers=["Boston has defensive edge"],
        kill_switches=kill_switches or [],
        first_half=FirstHalfProjection(
            away_score=55.1, home_score=53.7, total=108.8, spread=first_half_spread
        ),
    )


@pytest.fixture
def detector():
    return EdgeDetector()


# ==================== SPREAD / TOTAL ====================

def test_spread_edge_on_away_side(detector):
    opp = detector.detect_spread(make_projection(), market_spread=-1.5)

    assert opp.market_type is MarketType.SPREAD
    assert opp.side == "away"
    assert opp.current_line == 1.5
    assert opp.fair_line == -2.9
    assert opp.edge_points == 4.4
    assert opp.edge_percentage == 15.0
    assert opp.play_description == "Boston +1.5"
    assert opp.current_odds == -110


def test_spread_edge_on_home_side(detector):
    opp = detector.detect_spread(make_projection(fair_spread=-6.0), market_spread=-3.0)

    assert opp.side == "home"
    assert opp.current_line == -3.0
    assert opp.fair_line == -6.0
    assert opp.play_description == "Miami -3"


def test_spread_below_threshold_is_ignored(detector):
    assert detector.detect_spread(make_projection(), market_spread=2.0) is None
    assert detector.detect_spread(make_projection(), market_spread=None) is None


def test_total_over_edge(detector):
    opp = detector.detect_total(make_projection(), market_total=215)

    assert opp.side == "over"
    assert opp.play_description == "Over 215"
    assert opp.edge_percentage == 4.3
    assert opp.confidence is Confidence.MEDIUM
    assert opp.fair_line == 224.3


def test_total_under_and_threshold(detector):
    assert detector.detect_total(make_projection(fair_total=216.8), market_total=215) is None

    opp = detector.detect_total(make_projection(fair_total=210.0), market_total=215.5)
    assert opp.side == "under"
    assert opp.play_description == "Under 215.5"


def test_pick_em_market_formats_as_pk(detector):
    opp = detector.detect_spread(make_projection(fair_spread=-2.0), market_spread=0.0)

    assert opp.play_description == "Miami PK"
    # Pick'em lines divide by one point
    assert opp.edge_percentage == 15.0


# ==================== FIRST HALF ====================

def test_first_half_edge_from_scaled_market(detector):
    projection = make_projection(fair_spread=-8.0, first_half_spread=-3.8, volatility=97)

    opp = detector.detect_first_half(projection, market_spread=-2.0)

    assert opp.market_type is MarketType.FIRST_HALF
    assert opp.side == "home"
    assert opp.current_line == -0.9
    assert opp.fair_line == -3.8
    assert opp.edge_points == 2.9
    assert opp.play_description == "1H Miami -0.9"
    assert opp.volatility_score == 100


def test_first_half_requires_minimum_edge(detector):
    projection = make_projection(fair_spread=-3.0, first_half_spread=-1.4)
    assert detector.detect_first_half(projection, market_spread=-1.0) is None


# ==================== MONEYLINE ====================

def test_implied_probability():
    assert american_to_implied_prob(-110) == pytest.approx(110 / 210)
    assert american_to_implied_prob(150) == pytest.approx(0.4)


def test_moneyline_edge_picks_best_side(detector):
    projection = make_projection(ml_home=-200, ml_away=170)

    opp = detector.detect_moneyline(projection, moneyline_home=-110, moneyline_away=-110)

    assert opp.side == "home"
    assert opp.play_description == "Miami ML -110"
    assert opp.current_line == -110
    assert opp.fair_line == -200
    assert opp.edge_percentage == 14.3


def test_moneyline_small_edge_is_ignored(detector):
    projection = make_projection(ml_home=-130, ml_away=110)
    assert detector.detect_moneyline(projection, moneyline_home=-120, moneyline_away=100) is None
    assert detector.detect_moneyline(projection, moneyline_home=None, moneyline_away=100) is None


# ==================== CONFIDENCE ====================

@pytest.mark.parametrize("sport, pct, vol, kills, aligned, expected", [
    (Sport.NBA, 6.0, 40, [], False, Confidence.HIGH),
    (Sport.NBA, 4.6, 40, [], False, Confidence.MEDIUM),
    (Sport.NBA, 4.6, 40, [], True, Confidence.HIGH),
    (Sport.CBB, 3.0, 59, [], False, Confidence.MEDIUM),
    (Sport.CBB, 3.0, 60, [], False, Confidence.LEAN),
    (Sport.NBA, 9.0, 20, ["a", "b"], True, Confidence.LEAN),
    (Sport.NFL, 4.0, 50, [], False, Confidence.HIGH),
    (Sport.NFL, 4.0, 50, ["a"], False, Confidence.MEDIUM),
    (Sport.CFB, 2.5, 64, [], False, Confidence.MEDIUM),
    (Sport.CFB, 2.4, 30, [], False, Confidence.LEAN),
])
def test_enhanced_confidence(sport, pct, vol, kills, aligned, expected):
    assert EnhancedConfidenceScorer().score(sport, pct, 2.0, vol, kills, aligned) is expected


@pytest.mark.parametrize("sport", list(Sport))
def test_enhanced_confidence_is_monotonic(sport):
    scorer = EnhancedConfidenceScorer()
    edges = [0.5, 2.5, 3.0, 4.0, 4.5, 5.5, 8.0, 15.0]
    volatilities = [20, 49, 50, 54, 55, 59, 60, 64, 65, 90]

    for vol in volatilities:
        ranks = [scorer.score(sport, e, 1.0, vol, []).rank for e in edges]
        assert ranks == sorted(ranks)
    for edge in edges:
        ranks = [scorer.score(sport, edge, 1.0, v, []).rank for v in volatilities]
        assert ranks == sorted(ranks, reverse=True)


@pytest.mark.parametrize("points, vol, expected", [
    (3.0, 54, Confidence.HIGH),
    (3.0, 55, Confidence.MEDIUM),
    (2.5, 60, Confidence.MEDIUM),
    (3.0, 70, Confidence.LEAN),
    (1.5, 10, Confidence.LEAN),
])
def test_legacy_confidence(points, vol, expected):
    assert LegacyConfidenceScorer().score(Sport.NBA, 15.0, points, vol, ["a", "b"]) is expected


def test_get_scorer():
    assert get_scorer("LEGACY").name == "legacy"
    with pytest.raises(ValueError):
        get_scorer("kelly")


def test_four_factors_alignment_lifts_home_spread_to_high():
    aligned = FourFactorsEdge(efg_edge=1.5, turnover_edge=0.0, rebounding_edge=0.0, free_throw_edge=0.0)

    plain = EdgeDetector().detect_spread(make_projection(fair_spread=-21.0, volatility=45), market_spread=-20.0)
    boosted = EdgeDetector().detect_spread(
        make_projection(fair_spread=-21.0, volatility=45, four_factors=aligned), market_spread=-20.0
    )

    assert plain.edge_percentage == boosted.edge_percentage == 5.0
    assert plain.confidence is Confidence.MEDIUM
    assert boosted.confidence is Confidence.HIGH


# ==================== ENTRY POINTS ====================

def test_detect_collects_every_market(detector):
    opportunities = detector.detect(make_projection(), market_spread=-1.5, market_total=215)
    markets = [o.market_type for o in opportunities]

    assert markets == [MarketType.SPREAD, MarketType.TOTAL, MarketType.FIRST_HALF]
    assert all(o.game_id == 11 for o in opportunities)
    assert all(o.drivers == ["Boston has defensive edge"] for o in opportunities)


def test_detect_with_no_lines_is_empty(detector):
    assert detector.detect(make_projection()) == []


def test_detect_prices_each_side(detector):
    prices = {"spread_home_odds": -180, "spread_away_odds": 150, "over_odds": -180, "under_odds": 150}

    underdog = detector.detect(make_projection(fair_total=210.0), market_spread=-1.5, market_total=215.5, **prices)
    assert {o.market_type: (o.side, o.current_odds) for o in underdog} == {
        MarketType.SPREAD: ("away", 150),
        MarketType.TOTAL: ("under", 150),
        MarketType.FIRST_HALF: ("away", 150),
    }

    favorite = detector.detect(make_projection(fair_spread=-6.0), market_spread=-3.0, market_total=215, **prices)
    priced = {o.market_type: (o.side, o.current_odds) for o in favorite}
    assert priced[MarketType.SPREAD] == ("home", -180)
    assert priced[MarketType.TOTAL] == ("over", -180)


def test_detect_opportunities_uses_requested_model():
    opportunities = detect_opportunities(
        99, "nba", make_projection(), -1.5, 215, confidence_model="legacy"
    )

    assert opportunities
    assert all(o.confidence_model == "legacy" for o in opportunities)
    assert all(o.game_id == 99 for o in opportunities)


def test_detect_opportunities_rejects_sport_mismatch():
    with pytest.raises(ValueError):
        detect_opportunities(1, "NFL", make_projection(), -1.5, 215)


def test_opportunity_to_dict(detector):
    data = detector.detect_spread(make_projection(), market_spread=-1.5).to_dict()

    assert data["market_type"] == "spread"
    assert data["confidence"] in ("High", "Medium", "Lean")
    assert data["status"] == "active"


def test_format_line():
    assert format_line(0.0) == "PK"
    assert format_line(3.5) == "+3.5"
    assert format_line(-7.0) == "-7"


# ==================== RLM ATTACHMENT ====================

def rlm_signal(side):
    return RlmSignal(
        market_type="spread",
        side=side,
        public_side="home" if side == "away" else "away",
        strength="moderate",
        ticket_pct=65.0,
        money_pct=49.0,
        divergence=16.0,
        line_movement=1.5,
        direction="down",
    )


def test_attach_rlm_on_matching_side(detector):
    opp = detector.detect_spread(make_projection(), market_spread=-1.5)

    assert attach_rlm(opp, rlm_signal("away"))
    assert opp.is_reverse_line_movement
    assert opp.ticket_percentage == 65.0
    assert opp.money_percentage == 49.0
    assert opp.drivers[-1].startswith("RLM detected (moderate)")


def test_attach_rlm_skips_other_side(detector):
    opp = detector.detect_spread(make_projection(), market_spread=-1.5)

    assert not attach_rlm(opp, rlm_signal("home"))
    assert not opp.is_reverse_line_movement
    assert opp.drivers == ["Boston has defensive edge"]


def test_attach_line_move_signal(detector):
    opp = detector.detect_total(make_projection(), market_total=215)

    assert attach_rlm(opp, LineMoveSignal("total", 213.5, 215.0, "moderate"))
    assert opp.is_reverse_line_movement
    assert opp.ticket_percentage is None
    assert "RLM detected (moderate): line moved up" in opp.drivers
