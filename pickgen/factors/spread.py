"""
NBA SPREAD factors.  Positive signal = AWAY covers, negative = HOME covers.

S1  netRatingDiff                net rating gap scaled to a projected margin
S2  turnoverDiff                 ball security over the last 10
S3  shootingEfficiencyMomentum   eFG/FTr gap plus last-3 vs last-10 form
S4  homeAwaySplits               away team on the road vs home team at home
S5  fourFactorsDiff              Dean Oliver's four factors, weighted
S6  injuryAvailability           team strength lost to the injury report
S7  momentumIndex                win streak and last-10 record
S8  defensivePressure            steals and blocks
S9  assistEfficiency             assist-to-turnover ratio
--  reboundingDiff, paceMismatch supplementary factors

Spread lines on the run context are from the away team's perspective
(+4.5 = away team getting 4.5), so a projected away margin covers when
``margin + line > 0``.

Run tests with::

    pytest tests/test_spread_factors.py -v
"""

from typing import Optional

from pickgen.core.factor_types import (
    DataSource,
    FactorCategory,
    FactorDefinition,
    FactorResult,
    NBAStatsBundle,
    RunContext,
)
from pickgen.core.injury_impact import team_injury_impact_spread
from pickgen.core.signal_math import clamp, is_finite_number, tanh_signal
from pickgen.core.sport_config import BetType, Sport

#: Profile keys from older capper configurations.
LEGACY_ALIASES = {
    "shootingMomentum": "shootingEfficiencyMomentum",
}


# ---------------------------------------------------------------------------
# S1 - Net Rating Differential
# ---------------------------------------------------------------------------

def compute_net_rating_diff(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    raw = {
        "awayORtg": bundle.away_ortg,
        "awayDRtg": bundle.away_drtg,
        "homeORtg": bundle.home_ortg,
        "homeDRtg": bundle.home_drtg,
        "awayPace": bundle.away_pace_season,
        "homePace": bundle.home_pace_season,
        "spreadLine": ctx.spread_line,
    }
    values = [bundle.away_ortg, bundle.away_drtg, bundle.home_ortg, bundle.home_drtg,
              bundle.away_pace_season, bundle.home_pace_season]
    if not is_finite_number(*values) or min(values) <= 0:
        return FactorResult(signal=0.0, raw=raw, cap_reason="bad_input", notes="Invalid rating or pace input")

    away_net = bundle.away_ortg - bundle.away_drtg
    home_net = bundle.home_ortg - bundle.home_drtg
    pace = (bundle.away_pace_season + bundle.home_pace_season) / 2.0
    expected_margin = (away_net - home_net) * pace / 100.0

    edge = expected_margin
    if ctx.spread_line is not None and is_finite_number(ctx.spread_line):
        edge = expected_margin + ctx.spread_line

    signal, capped = tanh_signal(edge, 3.5, cap=20.0)

    return FactorResult(
        signal=signal,
        raw=raw,
        meta={
            "awayNet": round(away_net, 2),
            "homeNet": round(home_net, 2),
            "expectedMargin": round(expected_margin, 2),
            "spreadEdge": round(edge, 2),
        },
        caps_applied=capped,
        cap_reason="edge_capped" if capped else None,
        notes=f"Net rating projects away {expected_margin:+.1f}, edge {edge:+.1f} vs line",
    )


# ---------------------------------------------------------------------------
# S2 - Turnover Differential
# ---------------------------------------------------------------------------

def compute_turnover_diff(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    away_tov, home_tov = bundle.away_tov_last10, bundle.home_tov_last10
    if not is_finite_number(away_tov, home_tov) or away_tov < 0 or home_tov < 0:
        raise ValueError(f"Invalid turnover input: away={away_tov!r}, home={home_tov!r}")

    expected_points = (home_tov - away_tov) * 1.1
    signal, _ = tanh_signal(expected_points, 5.0)

    return FactorResult(
        signal=signal,
        raw={"awayTOV": away_tov, "homeTOV": home_tov},
        meta={"tovDiff": round(home_tov - away_tov, 2), "expectedPointsImpact": round(expected_points, 2)},
        notes=f"Turnover edge worth {expected_points:+.1f} pts to away",
    )


# ---------------------------------------------------------------------------
# S3 - Shooting Efficiency + Momentum
# ---------------------------------------------------------------------------

def _momentum(last3: float, last10: float) -> float:
    return (last3 - last10) / last10 if last10 > 0 else 0.0


def compute_shooting_efficiency_momentum(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    away_shooting = bundle.away_efg * 0.7 + bundle.away_ftr * 0.3
    home_shooting = bundle.home_efg * 0.7 + bundle.home_ftr * 0.3
    shooting_diff = (away_shooting - home_shooting) * 100.0

    away_momentum = _momentum(bundle.away_ortg_last3, bundle.away_ortg_last10)
    home_momentum = _momentum(bundle.home_ortg_last3, bundle.home_ortg_last10)
    momentum_diff = (away_momentum - home_momentum) * 50.0

    combined = shooting_diff * 0.6 + momentum_diff * 0.4
    signal, _ = tanh_signal(combined, 6.0)

    return FactorResult(
        signal=signal,
        raw={
            "awayEFG": bundle.away_efg, "homeEFG": bundle.home_efg,
            "awayFTr": bundle.away_ftr, "homeFTr": bundle.home_ftr,
            "awayORtgLast3": bundle.away_ortg_last3, "awayORtgLast10": bundle.away_ortg_last10,
            "homeORtgLast3": bundle.home_ortg_last3, "homeORtgLast10": bundle.home_ortg_last10,
        },
        meta={
            "shootingDiff": round(shooting_diff, 2),
            "awayMomentum": round(away_momentum, 4),
            "homeMomentum": round(home_momentum, 4),
            "momentumDiff": round(momentum_diff, 2),
            "combined": round(combined, 2),
        },
        notes=f"Shooting {shooting_diff:+.1f}, momentum {momentum_diff:+.1f}",
    )


# ---------------------------------------------------------------------------
# S4 - Home/Away Splits
# ---------------------------------------------------------------------------

def compute_home_away_splits(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    away_road_net = bundle.away_road_ortg - bundle.away_road_drtg
    home_home_net = bundle.home_home_ortg - bundle.home_home_drtg
    diff = away_road_net - home_home_net
    signal, _ = tanh_signal(diff, 6.0)

    return FactorResult(
        signal=signal,
        raw={
            "awayRoadORtg": bundle.away_road_ortg, "awayRoadDRtg": bundle.away_road_drtg,
            "homeHomeORtg": bundle.home_home_ortg, "homeHomeDRtg": bundle.home_home_drtg,
        },
        meta={"awayRoadNet": round(away_road_net, 2), "homeHomeNet": round(home_home_net, 2),
              "splitDiff": round(diff, 2)},
        notes=f"Away road net {away_road_net:+.1f} vs home home net {home_home_net:+.1f}",
    )


# ---------------------------------------------------------------------------
# S5 - Four Factors
# ---------------------------------------------------------------------------

def four_factor_rating(efg: float, tov_pct: float, oreb_pct: float, ftr: float) -> float:
    return 0.50 * efg - 0.30 * tov_pct + 0.15 * oreb_pct + 0.05 * ftr


def compute_four_factors_diff(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    away = four_factor_rating(bundle.away_efg, bundle.away_tov_pct, bundle.away_oreb_pct, bundle.away_ftr)
    home = four_factor_rating(bundle.home_efg, bundle.home_tov_pct, bundle.home_oreb_pct, bundle.home_ftr)
    margin = (away - home) * 120.0
    signal, _ = tanh_signal(margin, 8.0)

    return FactorResult(
        signal=signal,
        raw={
            "awayEFG": bundle.away_efg, "awayTOVPct": bundle.away_tov_pct,
            "awayOREBPct": bundle.away_oreb_pct, "awayFTr": bundle.away_ftr,
            "homeEFG": bundle.home_efg, "homeTOVPct": bundle.home_tov_pct,
            "homeOREBPct": bundle.home_oreb_pct, "homeFTr": bundle.home_ftr,
        },
        meta={"awayRating": round(away, 4), "homeRating": round(home, 4), "expectedMargin": round(margin, 2)},
        notes=f"Four factors project away {margin:+.1f}",
    )


# ---------------------------------------------------------------------------
# S6 - Injuries (spread variant)
# ---------------------------------------------------------------------------

def compute_injury_availability_spread(bundle: Optional[NBAStatsBundle], ctx: RunContext) -> FactorResult:
    away_key, home_key = ctx.away.lower(), ctx.home.lower()
    away_inj = [i for i in ctx.injuries if i.team.lower() == away_key]
    home_inj = [i for i in ctx.injuries if i.team.lower() == home_key]

    away_impact = team_injury_impact_spread(away_inj)
    home_impact = team_injury_impact_spread(home_inj)
    diff = away_impact - home_impact
    signal, _ = tanh_signal(diff, 5.0)
    signal = -signal

    if away_impact == 0 and home_impact == 0:
        notes = "No significant injuries for either team"
    else:
        notes = f"{ctx.away} lose {away_impact:.1f}, {ctx.home} lose {home_impact:.1f}"

    return FactorResult(
        signal=signal,
        raw={"awayInjuries": [i.player for i in away_inj], "homeInjuries": [i.player for i in home_inj]},
        meta={"awayImpact": round(away_impact, 3), "homeImpact": round(home_impact, 3),
              "impactDiff": round(diff, 3)},
        notes=notes,
    )


# ---------------------------------------------------------------------------
# S7 - Momentum Index
# ---------------------------------------------------------------------------

def momentum_score(win_streak: int, wins: int, losses: int) -> float:
    return clamp(win_streak, -5, 5) * 0.5 + (wins - losses) / 10.0 * 2.5


def compute_momentum_index(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    away = momentum_score(bundle.away_win_streak, bundle.away_last10_wins, bundle.away_last10_losses)
    home = momentum_score(bundle.home_win_streak, bundle.home_last10_wins, bundle.home_last10_losses)
    diff = away - home
    signal, _ = tanh_signal(diff, 4.0)

    return FactorResult(
        signal=signal,
        raw={
            "awayStreak": bundle.away_win_streak,
            "awayLast10": f"{bundle.away_last10_wins}-{bundle.away_last10_losses}",
            "homeStreak": bundle.home_win_streak,
            "homeLast10": f"{bundle.home_last10_wins}-{bundle.home_last10_losses}",
        },
        meta={"awayMomentum": round(away, 2), "homeMomentum": round(home, 2), "momentumDiff": round(diff, 2)},
        notes=f"Momentum {away:+.1f} vs {home:+.1f}",
    )


# ---------------------------------------------------------------------------
# S8 - Defensive Pressure
# ---------------------------------------------------------------------------

def compute_defensive_pressure(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    away = bundle.away_steals * 1.5 + bundle.away_blocks * 0.8
    home = bundle.home_steals * 1.5 + bundle.home_blocks * 0.8
    diff = away - home
    signal, _ = tanh_signal(diff, 4.0)

    return FactorResult(
        signal=signal,
        raw={"awaySTL": bundle.away_steals, "awayBLK": bundle.away_blocks,
             "homeSTL": bundle.home_steals, "homeBLK": bundle.home_blocks},
        meta={"awayDisruption": round(away, 2), "homeDisruption": round(home, 2), "disruptionDiff": round(diff, 2)},
        notes=f"Disruption {away:.1f} vs {home:.1f}",
    )


# ---------------------------------------------------------------------------
# S9 - Assist Efficiency
# ---------------------------------------------------------------------------

def assist_to_turnover(assists: float, turnovers: float) -> float:
    if turnovers <= 0:
        return 3.0 if assists > 0 else 1.0
    return assists / turnovers


def compute_assist_efficiency(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    away = assist_to_turnover(bundle.away_assists, bundle.away_tov_last10)
    home = assist_to_turnover(bundle.home_assists, bundle.home_tov_last10)
    diff = away - home
    signal, _ = tanh_signal(diff, 0.5)

    return FactorResult(
        signal=signal,
        raw={"awayAST": bundle.away_assists, "awayTOV": bundle.away_tov_last10,
             "homeAST": bundle.home_assists, "homeTOV": bundle.home_tov_last10},
        meta={"awayAstTov": round(away, 3), "homeAstTov": round(home, 3), "astTovDiff": round(diff, 3)},
        notes=f"AST/TOV {away:.2f} vs {home:.2f}",
    )


# ---------------------------------------------------------------------------
# Supplementary: rebounding and pace mismatch
# ---------------------------------------------------------------------------

def compute_rebounding_diff(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    raw = {"awayOREB": bundle.away_oreb, "awayDREB": bundle.away_dreb,
           "homeOREB": bundle.home_oreb, "homeDREB": bundle.home_dreb}
    if not is_finite_number(bundle.away_oreb, bundle.away_dreb, bundle.home_oreb, bundle.home_dreb):
        return FactorResult(signal=0.0, raw=raw, cap_reason="invalid_input", notes="Rebounding data unavailable")

    oreb_diff = bundle.away_oreb - bundle.home_oreb
    total_diff = (bundle.away_oreb + bundle.away_dreb) - (bundle.home_oreb + bundle.home_dreb)
    expected_points = oreb_diff * 1.1 + total_diff * 0.3
    signal, _ = tanh_signal(expected_points, 6.0)

    return FactorResult(
        signal=signal,
        raw=raw,
        meta={"orebDiff": round(oreb_diff, 2), "totalRebDiff": round(total_diff, 2),
              "expectedPointsImpact": round(expected_points, 2)},
        notes=f"Rebounding worth {expected_points:+.1f} pts to away",
    )


def pace_mismatch_category(pace_diff: float) -> str:
    magnitude = abs(pace_diff)
    if magnitude > 8:
        return "Extreme"
    if magnitude > 5:
        return "High"
    if magnitude > 3:
        return "Moderate"
    return "Minimal"


def compute_pace_mismatch(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    """A faster away team is dragged into the home team's tempo, which
    favours the home side."""
    pace_diff = bundle.away_pace_last10 - bundle.home_pace_last10
    expected_impact = -pace_diff * 0.3
    signal, _ = tanh_signal(expected_impact, 3.0)
    category = pace_mismatch_category(pace_diff)

    return FactorResult(
        signal=signal,
        raw={"awayPaceLast10": bundle.away_pace_last10, "homePaceLast10": bundle.home_pace_last10},
        meta={"paceDiff": round(pace_diff, 2), "expectedImpact": round(expected_impact, 2),
              "mismatchCategory": category},
        notes=f"{category} pace mismatch ({pace_diff:+.1f})",
    )


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------

def _spread(**kwargs) -> FactorDefinition:
    return FactorDefinition(sport=Sport.NBA, bet_type=BetType.SPREAD, **kwargs)


DEFINITIONS = [
    _spread(
        key="netRatingDiff", factor_number=1, name="Net Rating Differential", short_name="Net Rtg",
        category=FactorCategory.EFFICIENCY, icon="📊",
        description="Projected margin from offensive minus defensive rating",
        logic="margin = (awayNet − homeNet) × pace / 100; edge = margin + away line, capped ±20; signal = tanh(edge / 3.5)",
        data_source=DataSource.ODDS_API_SCORES,
        data_requirements=["away_ortg", "away_drtg", "home_ortg", "home_drtg", "away_pace_season", "home_pace_season"],
        default_weight=30.0, compute=compute_net_rating_diff,
    ),
    _spread(
        key="turnoverDiff", factor_number=2, name="Turnover Differential", short_name="TOV",
        category=FactorCategory.EFFICIENCY, icon="🔄",
        description="Ball security over the last 10 games",
        logic="points = (homeTOV − awayTOV) × 1.1; signal = tanh(points / 5)",
        data_source=DataSource.SEASON_STATS,
        data_requirements=["away_tov_last10", "home_tov_last10"],
        default_weight=15.0, compute=compute_turnover_diff,
    ),
    _spread(
        key="shootingEfficiencyMomentum", factor_number=3, name="Shooting Efficiency + Momentum",
        short_name="Shooting",
        category=FactorCategory.SHOOTING, icon="🎯",
        description="Shooting quality gap plus recent offensive trend",
        logic="shooting = (eFG·0.7 + FTr·0.3) diff × 100; momentum = (last3 − last10)/last10 diff × 50; "
              "signal = tanh((0.6·shooting + 0.4·momentum) / 6)",
        data_source=DataSource.SEASON_STATS,
        data_requirements=["away_efg", "home_efg", "away_ftr", "home_ftr",
                           "away_ortg_last3", "away_ortg_last10", "home_ortg_last3", "home_ortg_last10"],
        default_weight=15.0, compute=compute_shooting_efficiency_momentum,
    ),
    _spread(
        key="homeAwaySplits", factor_number=4, name="Home/Away Splits", short_name="Splits",
        category=FactorCategory.SITUATIONAL, icon="🏠",
        description="Away team's road form against home team's home form",
        logic="diff = (awayRoadORtg − awayRoadDRtg) − (homeHomeORtg − homeHomeDRtg); signal = tanh(diff / 6)",
        data_source=DataSource.SEASON_STATS,
        data_requirements=["away_road_ortg", "away_road_drtg", "home_home_ortg", "home_home_drtg"],
        default_weight=10.0, compute=compute_home_away_splits,
    ),
    _spread(
        key="fourFactorsDiff", factor_number=5, name="Four Factors Differential", short_name="4 Factors",
        category=FactorCategory.EFFICIENCY, icon="🧮",
        description="Weighted eFG%, turnover, offensive rebound and free-throw rates",
        logic="rating = 0.50·eFG − 0.30·TOV% + 0.15·OREB% + 0.05·FTr; margin = diff × 120; signal = tanh(margin / 8)",
        data_source=DataSource.SEASON_STATS,
        data_requirements=["away_efg", "away_tov_pct", "away_oreb_pct", "away_ftr",
                           "home_efg", "home_tov_pct", "home_oreb_pct", "home_ftr"],
        default_weight=10.0, compute=compute_four_factors_diff,
    ),
    _spread(
        key="injuryAvailability", factor_number=6, name="Key Injuries & Availability", short_name="Injuries",
        category=FactorCategory.INJURY, icon="🏥",
        description="Team strength lost to the injury report",
        logic="impact = (PPG/10 + MPG/48 × 2) × status (×1.3 / ×1.5 for 2+ / 3+); signal = −tanh((away − home) / 5)",
        data_source=DataSource.INJURY_REPORT,
        data_requirements=["injuries"],
        default_weight=10.0, compute=compute_injury_availability_spread,
        needs_bundle=False,
    ),
    _spread(
        key="momentumIndex", factor_number=7, name="Momentum Index", short_name="Momentum",
        category=FactorCategory.MOMENTUM, icon="📈",
        description="Win streak and last-10 record",
        logic="momentum = clamp(streak, ±5) × 0.5 + (W − L)/10 × 2.5; signal = tanh(diff / 4)",
        data_source=DataSource.ODDS_API_SCORES,
        data_requirements=["away_win_streak", "away_last10_wins", "away_last10_losses",
                           "home_win_streak", "home_last10_wins", "home_last10_losses"],
        default_weight=5.0, compute=compute_momentum_index,
    ),
    _spread(
        key="defensivePressure", factor_number=8, name="Defensive Pressure", short_name="Pressure",
        category=FactorCategory.DEFENSE, icon="🛡️",
        description="Steals and blocks",
        logic="disruption = STL × 1.5 + BLK × 0.8; signal = tanh(diff / 4)",
        data_source=DataSource.SEASON_STATS,
        data_requirements=["away_steals", "away_blocks", "home_steals", "home_blocks"],
        default_weight=5.0, compute=compute_defensive_pressure,
    ),
    _spread(
        key="assistEfficiency", factor_number=9, name="Assist Efficiency", short_name="AST/TOV",
        category=FactorCategory.OFFENSE, icon="🤝",
        description="Assist-to-turnover ratio",
        logic="ratio = AST / TOV (3.0 if TOV = 0 with assists, else 1.0); signal = tanh(diff / 0.5)",
        data_source=DataSource.SEASON_STATS,
        data_requirements=["away_assists", "away_tov_last10", "home_assists", "home_tov_last10"],
        default_weight=5.0, compute=compute_assist_efficiency,
    ),
    _spread(
        key="reboundingDiff", factor_number=10, name="Rebounding Differential", short_name="Rebounds",
        category=FactorCategory.EFFICIENCY, icon="🏀",
        description="Offensive and total rebounding edge",
        logic="points = OREB diff × 1.1 + total REB diff × 0.3; signal = tanh(points / 6)",
        data_source=DataSource.SEASON_STATS,
        data_requirements=["away_oreb", "away_dreb", "home_oreb", "home_dreb"],
        default_weight=0.0, compute=compute_rebounding_diff,
    ),
    _spread(
        key="paceMismatch", factor_number=11, name="Pace Mismatch", short_name="Pace Gap",
        category=FactorCategory.PACE, icon="⏱️",
        description="Tempo clash between the two teams",
        logic="impact = −(awayPaceL10 − homePaceL10) × 0.3; signal = tanh(impact / 3)",
        data_source=DataSource.ODDS_API_SCORES,
        data_requirements=["away_pace_last10", "home_pace_last10"],
        default_weight=0.0, compute=compute_pace_mismatch,
    ),
]
