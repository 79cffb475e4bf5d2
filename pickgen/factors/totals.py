"""
NBA TOTAL factors (F1-F7).  Positive signal = OVER, negative = UNDER.

Each factor is a plain function ``(bundle, ctx) -> FactorResult`` plus a
``FactorDefinition`` in ``DEFINITIONS``; the registry does the score
splitting, so the functions below only care about the signed signal and the
values worth showing on an insight card.

F1  paceIndex           expected possessions vs league pace
F2  offForm             recent offensive rating vs league
F3  defErosion          recent defensive decline + injury defence loss
F4  threeEnv            three-point volume and hot-shooting variance
F5  whistleEnv          free-throw environment
F6  injuryAvailability  deterministic offence/defence lost to injuries
F7  restAdvantage       rest days / back-to-backs

Run tests with::

    pytest tests/test_totals_factors.py -v
"""

import statistics
from typing import Optional

from pickgen.core.factor_types import (
    DataSource,
    FactorCategory,
    FactorDefinition,
    FactorResult,
    NBAStatsBundle,
    RunContext,
)
from pickgen.core.injury_impact import team_injury_impact_totals
from pickgen.core.signal_math import clamp, is_finite_number, pace_harmonic, tanh_signal
from pickgen.core.sport_config import BetType, Sport


def _anchor(bundle: Optional[NBAStatsBundle], ctx: RunContext, key: str, attr: str, default: float) -> float:
    """League anchor from the run context, else the bundle, else ``default``."""
    value = ctx.league_averages.get(key)
    if value is None and bundle is not None:
        value = getattr(bundle, attr)
    return float(value) if value is not None else default


def _or_default(value, default: float) -> float:
    return default if value is None else float(value)


def _split_injuries(ctx: RunContext):
    away_key, home_key = ctx.away.lower(), ctx.home.lower()
    away = [i for i in ctx.injuries if i.team.lower() == away_key]
    home = [i for i in ctx.injuries if i.team.lower() == home_key]
    return away, home


# ---------------------------------------------------------------------------
# F1 - Pace Index
# ---------------------------------------------------------------------------

def compute_pace_index(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    league_pace = _anchor(bundle, ctx, "pace", "league_pace", 100.1)
    away_pace = 0.6 * bundle.away_pace_season + 0.4 * bundle.away_pace_last10
    home_pace = 0.6 * bundle.home_pace_season + 0.4 * bundle.home_pace_last10

    if not is_finite_number(away_pace, home_pace) or away_pace <= 0 or home_pace <= 0:
        return FactorResult(
            signal=0.0,
            raw={"awayPace": away_pace, "homePace": home_pace},
            cap_reason="invalid_input",
            notes="Pace unavailable",
        )

    exp_pace = pace_harmonic(home_pace, away_pace)
    delta = exp_pace - league_pace
    signal, _ = tanh_signal(delta, 4.0)

    return FactorResult(
        signal=signal,
        raw={
            "awayPaceSeason": bundle.away_pace_season,
            "awayPaceLast10": bundle.away_pace_last10,
            "homePaceSeason": bundle.home_pace_season,
            "homePaceLast10": bundle.home_pace_last10,
            "leaguePace": league_pace,
        },
        meta={"expPace": round(exp_pace, 2), "paceDelta": round(delta, 2)},
        notes=f"Expected pace {exp_pace:.1f} vs league {league_pace:.1f} ({delta:+.1f})",
    )


# ---------------------------------------------------------------------------
# F2 - Offensive Form
# ---------------------------------------------------------------------------

def compute_offensive_form(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    league_ortg = _anchor(bundle, ctx, "ORtg", "league_ortg", 110.0)
    away_ortg = _or_default(bundle.away_ortg_last10, 110.0)
    home_ortg = _or_default(bundle.home_ortg_last10, 110.0)

    adv = (away_ortg + home_ortg) / 2.0 - league_ortg
    capped = abs(adv) > 30.0
    adv = clamp(adv, -30.0, 30.0)
    signal, _ = tanh_signal(adv, 10.0)

    return FactorResult(
        signal=signal,
        raw={"awayORtgLast10": away_ortg, "homeORtgLast10": home_ortg, "leagueORtg": league_ortg},
        meta={"combinedAdvantage": round(adv, 2)},
        caps_applied=capped,
        cap_reason="ortg_advantage_capped" if capped else None,
        notes=f"Recent offense {adv:+.1f} ORtg vs league",
    )


# ---------------------------------------------------------------------------
# F3 - Defensive Erosion
# ---------------------------------------------------------------------------

def compute_defensive_erosion(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    league_drtg = _anchor(bundle, ctx, "DRtg", "league_drtg", 110.0)
    dr_delta = (bundle.away_drtg_last10 + bundle.home_drtg_last10) / 2.0 - league_drtg

    away_impact = clamp(float(ctx.defense_impact.get("away", 0.0)), -1.0, 1.0)
    home_impact = clamp(float(ctx.defense_impact.get("home", 0.0)), -1.0, 1.0)
    injury_term = (away_impact + home_impact) / 2.0 * 6.0

    erosion = 0.7 * dr_delta + 0.3 * injury_term
    signal, _ = tanh_signal(erosion, 6.0)

    return FactorResult(
        signal=signal,
        raw={
            "awayDRtgLast10": bundle.away_drtg_last10,
            "homeDRtgLast10": bundle.home_drtg_last10,
            "leagueDRtg": league_drtg,
            "awayDefenseImpact": away_impact,
            "homeDefenseImpact": home_impact,
        },
        meta={
            "drtgDelta": round(dr_delta, 2),
            "injuryTerm": round(injury_term, 2),
            "erosion": round(erosion, 2),
        },
        notes=f"Defensive erosion {erosion:+.1f} (DRtg {dr_delta:+.1f}, injuries {injury_term:+.1f})",
    )


# ---------------------------------------------------------------------------
# F4 - Three-Point Environment
# ---------------------------------------------------------------------------

def compute_three_point_env(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    league_three_par = _anchor(bundle, ctx, "threePAR", "league_three_par", 0.39)
    league_stdev = _anchor(bundle, ctx, "threePstdev", "league_three_pstdev", 0.036)

    env_rate = statistics.mean([
        bundle.away_three_par,
        bundle.home_three_par,
        bundle.away_opp_three_par,
        bundle.home_opp_three_par,
    ])
    rate_delta = (env_rate - league_three_par) * 100.0

    shooting_stdev = statistics.pstdev([bundle.away_three_pct_last10, bundle.home_three_pct_last10])
    hot_variance = max(0.0, shooting_stdev - league_stdev) * 100.0

    z = rate_delta + hot_variance
    signal, _ = tanh_signal(z, 3.0)

    return FactorResult(
        signal=signal,
        raw={
            "away3PAR": bundle.away_three_par,
            "home3PAR": bundle.home_three_par,
            "awayOpp3PAR": bundle.away_opp_three_par,
            "homeOpp3PAR": bundle.home_opp_three_par,
            "away3PctLast10": bundle.away_three_pct_last10,
            "home3PctLast10": bundle.home_three_pct_last10,
            "league3PAR": league_three_par,
        },
        meta={
            "envRate": round(env_rate, 4),
            "rateDelta": round(rate_delta, 2),
            "hotVariance": round(hot_variance, 2),
        },
        notes=f"3PA environment {rate_delta:+.1f} pts vs league, variance {hot_variance:.1f}",
    )


# ---------------------------------------------------------------------------
# F5 - Free-Throw / Whistle Environment
# ---------------------------------------------------------------------------

def compute_whistle_env(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    league_ftr = _anchor(bundle, ctx, "FTr", "league_ftr", 0.22)
    away_ftr = _or_default(bundle.away_ftr, 0.26)
    home_ftr = _or_default(bundle.home_ftr, 0.26)

    ftr_env = (home_ftr + away_ftr) / 2.0
    delta = ftr_env - league_ftr
    signal, _ = tanh_signal(delta, 0.06)

    return FactorResult(
        signal=signal,
        raw={"awayFTr": away_ftr, "homeFTr": home_ftr, "leagueFTr": league_ftr},
        meta={"ftrEnv": round(ftr_env, 4), "ftrDelta": round(delta, 4)},
        notes=f"FT rate {ftr_env:.3f} vs league {league_ftr:.3f}",
    )


# ---------------------------------------------------------------------------
# F6 - Key Injuries & Availability
# ---------------------------------------------------------------------------

def compute_injury_availability_totals(bundle: Optional[NBAStatsBundle], ctx: RunContext) -> FactorResult:
    away_inj, home_inj = _split_injuries(ctx)
    away = team_injury_impact_totals(away_inj)
    home = team_injury_impact_totals(home_inj)

    total = away["net"] + home["net"]
    signal, _ = tanh_signal(total, 8.0)

    if away["count"] == 0 and home["count"] == 0:
        notes = "No significant injuries for either team"
    else:
        direction = "OVER" if total > 0 else "UNDER" if total < 0 else "neutral"
        notes = (
            f"{ctx.away}: {away['count']} out ({away['net']:+.2f}), "
            f"{ctx.home}: {home['count']} out ({home['net']:+.2f}) -> {direction}"
        )

    return FactorResult(
        signal=signal,
        raw={
            "awayInjuries": [i.player for i in away_inj],
            "homeInjuries": [i.player for i in home_inj],
        },
        meta={"awayImpact": away, "homeImpact": home, "totalImpact": round(total, 3)},
        notes=notes,
    )


# ---------------------------------------------------------------------------
# F7 - Rest Advantage
# ---------------------------------------------------------------------------

def rest_score(rest_days: float, back_to_back: bool = False) -> float:
    if back_to_back or rest_days <= 0:
        return -2.0
    if rest_days < 2:
        return 0.0
    if rest_days < 3:
        return 0.5
    return 1.0


def fatigue_level(combined: float) -> str:
    if combined <= -4.0:
        return "SEVERE"
    if combined <= -2.0:
        return "MODERATE"
    if combined < 0.0:
        return "MILD"
    return "NONE"


def compute_rest_advantage(bundle: NBAStatsBundle, ctx: RunContext) -> FactorResult:
    raw = {
        "awayRestDays": bundle.away_rest_days,
        "homeRestDays": bundle.home_rest_days,
        "awayBackToBack": bundle.away_back_to_back,
        "homeBackToBack": bundle.home_back_to_back,
    }
    if not is_finite_number(bundle.away_rest_days, bundle.home_rest_days):
        return FactorResult(signal=0.0, raw=raw, cap_reason="invalid_input", notes="Rest data unavailable")

    away = rest_score(bundle.away_rest_days, bundle.away_back_to_back)
    home = rest_score(bundle.home_rest_days, bundle.home_back_to_back)
    combined = away + home
    signal, _ = tanh_signal(combined, 2.0)
    level = fatigue_level(combined)

    return FactorResult(
        signal=signal,
        raw=raw,
        meta={"awayRestScore": away, "homeRestScore": home, "combined": combined, "fatigueLevel": level},
        notes=f"Rest {combined:+.1f} ({level.lower()} fatigue)",
    )


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------

def _totals(**kwargs) -> FactorDefinition:
    return FactorDefinition(sport=Sport.NBA, bet_type=BetType.TOTAL, **kwargs)


DEFINITIONS = [
    _totals(
        key="paceIndex", factor_number=1, name="Pace Index", short_name="Pace",
        category=FactorCategory.PACE, icon="⏱️",
        description="Expected possessions vs league average",
        logic="expPace = harmonic(0.6·season + 0.4·last10); signal = tanh((expPace − leaguePace) / 4)",
        data_source=DataSource.ODDS_API_SCORES,
        data_requirements=["away_pace_season", "away_pace_last10", "home_pace_season", "home_pace_last10"],
        default_weight=20.0, compute=compute_pace_index,
    ),
    _totals(
        key="offForm", factor_number=2, name="Offensive Form", short_name="ORtg Form",
        category=FactorCategory.OFFENSE, icon="🔥",
        description="Recent offensive efficiency vs league",
        logic="adv = avg(ORtg last10) − leagueORtg, capped ±30; signal = tanh(adv / 10)",
        data_source=DataSource.ODDS_API_SCORES,
        data_requirements=["away_ortg_last10", "home_ortg_last10"],
        default_weight=20.0, compute=compute_offensive_form,
    ),
    _totals(
        key="defErosion", factor_number=3, name="Defensive Erosion", short_name="DRtg/Avail",
        category=FactorCategory.DEFENSE, icon="🛡️",
        description="Recent defensive decline plus defence lost to injuries",
        logic="erosion = 0.7·(avg DRtg last10 − leagueDRtg) + 0.3·(avg defense impact × 6); signal = tanh(erosion / 6)",
        data_source=DataSource.ODDS_API_SCORES,
        data_requirements=["away_drtg_last10", "home_drtg_last10", "defense_impact"],
        default_weight=20.0, compute=compute_defensive_erosion,
    ),
    _totals(
        key="threeEnv", factor_number=4, name="3-Point Environment", short_name="3P Env",
        category=FactorCategory.SHOOTING, icon="🏹",
        description="Three-point attempt volume and shooting variance",
        logic="z = (avg 3PAR for/against − league) × 100 + max(0, σ(3P% last10) − leagueσ) × 100; signal = tanh(z / 3)",
        data_source=DataSource.SEASON_STATS,
        data_requirements=["away_three_par", "home_three_par", "away_opp_three_par", "home_opp_three_par",
                           "away_three_pct_last10", "home_three_pct_last10"],
        default_weight=15.0, compute=compute_three_point_env,
    ),
    _totals(
        key="whistleEnv", factor_number=5, name="Free-Throw Environment", short_name="FT Env",
        category=FactorCategory.EFFICIENCY, icon="🎯",
        description="How often the matchup sends teams to the line",
        logic="ftrEnv = (homeFTr + awayFTr) / 2; signal = tanh((ftrEnv − leagueFTr) / 0.06)",
        data_source=DataSource.SEASON_STATS,
        data_requirements=["away_ftr", "home_ftr"],
        default_weight=10.0, compute=compute_whistle_env,
    ),
    _totals(
        key="injuryAvailability", factor_number=6, name="Key Injuries & Availability", short_name="Injuries",
        category=FactorCategory.INJURY, icon="🏥",
        description="Offence and defence removed by the injury report",
        logic="per player ≥15 MPG: off = PPG/10, def = position × minutes × stocks, × status; "
              "net = def − off (×1.3 / ×1.5 for 2+ / 3+); signal = tanh((away + home) / 8)",
        data_source=DataSource.INJURY_REPORT,
        data_requirements=["injuries"],
        default_weight=10.0, compute=compute_injury_availability_totals,
        needs_bundle=False,
    ),
    _totals(
        key="restAdvantage", factor_number=7, name="Rest Advantage", short_name="Rest",
        category=FactorCategory.SITUATIONAL, icon="😴",
        description="Rest days and back-to-backs for both teams",
        logic="rest score: B2B −2, 1 day 0, 2 days 0.5, 3+ days 1; signal = tanh((away + home) / 2)",
        data_source=DataSource.ODDS_API_SCORES,
        data_requirements=["away_rest_days", "home_rest_days", "away_back_to_back", "home_back_to_back"],
        default_weight=5.0, compute=compute_rest_advantage,
    ),
]
