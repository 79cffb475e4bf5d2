"""
SHIVA wizard: the seven-step pipeline that turns one game into a PICK or PASS.

    Step 1  Game selection        record the matchup
    Step 2  Odds snapshot         consensus total/spread across books
    Step 3  Factor computation    capper profile → sport orchestrator
    Step 4  Predictions           base confidence → predicted total / margin
    Step 5  Market edge           prediction vs consensus line (weight 100 %)
    Step 6  Player predictions    not used for game picks (recorded as skipped)
    Step 7  Pick decision         final confidence → units → selection

Every step writes its output into ``steps`` so a run can be replayed from
the stored record.  Steps raise on missing inputs (no odds, no enabled
factors); ``execute_wizard_pipeline`` turns any exception into a failed
``WizardResult`` instead of propagating it, so the scheduler never dies on
one bad game.

Run tests with::

    pytest tests/test_wizard.py -v
"""

import logging
import math
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pickgen.core.factor_types import ComputedFactor, NBAStatsBundle, PlayerInjury, RunContext
from pickgen.core.injury_impact import defense_impact_score
from pickgen.core.signal_math import clamp, signal_to_scores
from pickgen.core.sport_config import EDGE_FACTOR_KEYS, BetType, LeagueConfig, Sport
from pickgen.services.capper_profiles import enabled_factor_weights, load_capper_profile
from pickgen.services.confidence import calculate_confidence, units_for_confidence
from pickgen.services.odds import build_odds_snapshot
from pickgen.services.orchestrators import compute_spread_factors, compute_totals_factors
from pickgen.services.pick_validation import check_injury_gate, validate_spread_direction

logger = logging.getLogger(__name__)

EDGE_WEIGHT_PCT = 100.0
EDGE_CAP_THRESHOLD = 0.99


@dataclass
class WizardResult:
    success: bool
    run_id: str
    steps: Dict[str, Any] = field(default_factory=dict)
    pick: Optional[Dict[str, Any]] = None
    log: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    execution_time_ms: int = 0

    @property
    def decision(self) -> str:
        if not self.success:
            return "ERROR"
        return "PICK" if self.pick else "PASS"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["decision"] = self.decision
        return data


def format_line(line: float) -> str:
    """``4.5`` → ``"+4.5"``, ``-3.0`` → ``"-3"``, pick'em → ``"+0"``."""
    return f"{line or 0.0:+g}"


def pick_direction(bet_type: BetType, prediction: Dict, snapshot: Dict) -> str:
    """Side of the pick, taken from the prediction.

    Totals: OVER when the predicted total beats the consensus line, else UNDER.
    Spread: AWAY when the predicted margin (away perspective) is positive,
    else HOME.
    """
    if bet_type is BetType.TOTAL:
        return "OVER" if prediction["predicted_total"] > snapshot["total"]["line"] else "UNDER"
    return "AWAY" if prediction["predicted_margin"] > 0 else "HOME"


def _parse_start(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------------

def _load_injuries(home: str, away: str, db) -> List[PlayerInjury]:
    from pickgen.services.injuries import get_injury_service

    try:
        return get_injury_service().get_game_injuries(home, away, db=db)
    except Exception as exc:
        logger.warning("Injury lookup failed for %s @ %s: %s", away, home, exc)
        return []


def _defense_impact(ctx: RunContext, ai_provider: Optional[str], news_window_hours: int, llm_client) -> Dict:
    """LLM availability read, falling back to the deterministic score."""
    if ai_provider or llm_client is not None:
        from pickgen.services.llm import summarize_availability

        summary = summarize_availability(
            ctx, ctx.injuries, client=llm_client,
            provider=ai_provider or "perplexity", news_window_hours=news_window_hours,
        )
        if summary["source"] != "none":
            return summary

    away_inj = [i for i in ctx.injuries if i.team.lower() == ctx.away.lower()]
    home_inj = [i for i in ctx.injuries if i.team.lower() == ctx.home.lower()]
    return {
        "away": defense_impact_score(away_inj),
        "home": defense_impact_score(home_inj),
        "summary": None,
        "source": "deterministic",
    }


def _edge_factor(key: str, name: str, factor_no: int, signal: float, raw: Dict, meta: Dict,
                 positive_side: str, negative_side: str, max_points: float) -> ComputedFactor:
    signal = clamp(signal, -1.0, 1.0)
    scores = signal_to_scores(signal, max_points, positive_side, negative_side)
    capped = abs(signal) >= EDGE_CAP_THRESHOLD
    parsed = dict(meta)
    parsed.update(scores)
    parsed["signal"] = signal
    parsed["points"] = max(scores.values())
    return ComputedFactor(
        factor_no=factor_no,
        key=key,
        name=name,
        normalized_value=signal,
        raw_values_json=raw,
        parsed_values_json=parsed,
        caps_applied=capped,
        cap_reason="edge_saturated" if capped else None,
        notes=f"Edge {meta.get('edge', 0):+.2f} vs market",
        weight_total_pct=EDGE_WEIGHT_PCT,
    )


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def execute_wizard_pipeline(
    game: Dict,
    run_id: Optional[str] = None,
    sport=Sport.NBA,
    bet_type=BetType.TOTAL,
    ai_provider: Optional[str] = "perplexity",
    news_window_hours: int = 24,
    capper_id: str = "shiva",
    db=None,
    fetch_bundle: Optional[Callable[[RunContext], Optional[NBAStatsBundle]]] = None,
    injuries: Optional[List[PlayerInjury]] = None,
    llm_client=None,
    league: Optional[LeagueConfig] = None,
) -> WizardResult:
    """Run all seven steps for ``game``.

    Args:
        game: Dict with ``game_id``, ``home_team``, ``away_team``,
            ``start_time`` and ``odds`` (per-book lines from
            ``services.odds.parse_bookmakers``).
        fetch_bundle: Stats source; defaults to a ``StatsFetcher`` over
            ``db`` and The Odds API.
        injuries: Pre-fetched injury list; looked up when omitted.
        ai_provider: Completion provider for the availability read, or
            None to use the deterministic defense impact only.

    Returns:
        WizardResult; ``success`` is False (with ``error``) when any step
        raised.
    """
    started = time.perf_counter()
    run_id = run_id or f"shiva_{uuid.uuid4().hex[:12]}"
    steps: Dict[str, Any] = {}

    try:
        sport, bet_type = Sport(sport), BetType(bet_type)
        league = league or LeagueConfig.for_sport(sport)
        home, away = game["home_team"], game["away_team"]
        game_id = str(game.get("game_id") or game.get("id"))

        # Step 1: game selection
        steps["step1"] = {
            "game_id": game_id,
            "away_team": away,
            "home_team": home,
            "start_time": game.get("start_time"),
            "sport": sport.value,
            "bet_type": bet_type.value,
        }
        logger.info("[%s] Step 1: %s @ %s (%s)", run_id, away, home, bet_type.value)

        # Step 2: odds snapshot
        snapshot = build_odds_snapshot(game.get("odds") or [], home, away)
        steps["step2"] = snapshot
        logger.info(
            "[%s] Step 2: total %.1f, spread %+.1f across %d books",
            run_id, snapshot["total"]["line"], snapshot["spread"]["line"], len(snapshot["books_considered"]),
        )

        # Step 3: factors
        profile = load_capper_profile(db, capper_id, sport, bet_type)
        if not profile:
            raise ValueError(f"No capper profile for {capper_id} {sport.value} {bet_type.value}")
        weights = enabled_factor_weights(profile, exclude=EDGE_FACTOR_KEYS)
        if not weights:
            raise ValueError(f"Capper profile {profile.get('id')} has no enabled factors")

        if injuries is None:
            injuries = _load_injuries(home, away, db)

        ctx = RunContext(
            game_id=game_id,
            away=away,
            home=home,
            sport=sport,
            bet_type=bet_type,
            league_averages=league.anchors(),
            factor_weights=weights,
            spread_line=snapshot["spread"]["away_line"],
            total_line=snapshot["total"]["line"],
            injuries=list(injuries),
            start_time=_parse_start(game.get("start_time")),
        )

        availability = None
        if bet_type is BetType.TOTAL and "defErosion" in weights:
            availability = _defense_impact(ctx, ai_provider, news_window_hours, llm_client)
            ctx.defense_impact = {"away": availability["away"], "home": availability["home"]}

        if fetch_bundle is None:
            fetch_bundle = _default_fetcher(db, league)

        if bet_type is BetType.TOTAL:
            factor_run = compute_totals_factors(ctx, fetch_bundle, league=league)
        elif bet_type is BetType.SPREAD:
            factor_run = compute_spread_factors(ctx, fetch_bundle, league=league)
        else:
            raise ValueError(f"Unsupported bet type for {sport.value}: {bet_type.value}")

        factors: List[ComputedFactor] = factor_run["factors"]
        steps["step3"] = {
            "profile_id": profile.get("id"),
            "factor_weights": weights,
            "factor_version": factor_run["factor_version"],
            "baseline_avg": factor_run["baseline_avg"],
            "factors": [f.to_dict() for f in factors],
            "factor_errors": factor_run["factor_errors"],
            "injuries": [asdict(i) for i in ctx.injuries],
            "availability": availability,
            "debug": factor_run["debug"],
        }
        logger.info("[%s] Step 3: %d factors (%d errors)", run_id, len(factors), len(factor_run["factor_errors"]))

        # Step 4: predictions
        base = calculate_confidence(factors, weights, bet_type, league.factor_max_points)
        edge_raw = base["edge_raw"]

        if bet_type is BetType.TOTAL:
            predicted_total = clamp(
                factor_run["baseline_avg"] + edge_raw * league.totals_edge_multiplier,
                league.predicted_total_min,
                league.predicted_total_max,
            )
            prediction = {
                "predicted_total": round(predicted_total, 1),
                "home_score": round(predicted_total / 2 + 2, 1),
                "away_score": round(predicted_total / 2 - 2, 1),
                "baseline_avg": factor_run["baseline_avg"],
            }
        else:
            margin = edge_raw * league.spread_edge_multiplier
            prediction = {
                "predicted_margin": round(margin, 2),
                "away_score": round(league.base_team_score + margin / 2, 1),
                "home_score": round(league.base_team_score - margin / 2, 1),
                "winner": away if margin > 0 else home if margin < 0 else None,
            }
        steps["step4"] = {"prediction": prediction, "confidence": base}
        logger.info("[%s] Step 4: base confidence %.2f, %s", run_id, base["conf_score"], prediction)

        # Step 5: market edge
        max_points = league.factor_max_points
        if bet_type is BetType.TOTAL:
            market_total = snapshot["total"]["line"]
            diff = prediction["predicted_total"] - market_total
            edge_pct = diff / market_total if market_total else 0.0
            edge_factor = _edge_factor(
                "edgeVsMarket", "Edge vs Market (Totals)", 8,
                math.tanh(edge_pct * 10.0),
                raw={"predictedTotal": prediction["predicted_total"], "marketTotal": market_total},
                meta={"edge": round(diff, 2), "edgePct": round(edge_pct * 100, 2)},
                positive_side="overScore", negative_side="underScore", max_points=max_points,
            )
        else:
            market_margin = snapshot["spread"]["line"]
            diff = prediction["predicted_margin"] - market_margin
            edge_factor = _edge_factor(
                "edgeVsMarketSpread", "Edge vs Market (Spread)", 12,
                math.tanh(diff / 3.0),
                raw={"predictedMargin": prediction["predicted_margin"], "marketSpread": market_margin,
                     "awayLine": snapshot["spread"]["away_line"]},
                meta={"edge": round(diff, 2)},
                positive_side="awayScore", negative_side="homeScore", max_points=max_points,
            )

        all_factors = factors + [edge_factor]
        final_weights = dict(weights)
        final_weights[edge_factor.key] = EDGE_WEIGHT_PCT
        final = calculate_confidence(all_factors, final_weights, bet_type, max_points)
        market_adj = round(final["conf_score"] - base["conf_score"], 4)
        steps["step5"] = {
            "edge_factor": edge_factor.to_dict(),
            "conf_base": base["conf_score"],
            "conf_final": final["conf_score"],
            "conf_market_adj": market_adj,
        }
        logger.info(
            "[%s] Step 5: edge %+.2f, confidence %.2f → %.2f",
            run_id, diff, base["conf_score"], final["conf_score"],
        )

        # Step 6: player predictions
        steps["step6"] = {"skipped": True, "reason": "Player props are not used for game picks"}

        # Step 7: decision
        units = units_for_confidence(final["conf_score"])
        direction = pick_direction(bet_type, prediction, snapshot)
        pick = None
        blocked_reason = None
        if units > 0:
            pick = _build_pick(bet_type, direction, snapshot, home, away)
            blocked, blocked_reason = check_injury_gate(ctx.injuries, away, home)
            if not blocked and bet_type is BetType.SPREAD:
                _, blocked_reason = validate_spread_direction(
                    prediction["predicted_margin"], pick["selection"], away, home,
                )
            if blocked_reason:
                logger.warning("[%s] Step 7: %s blocked: %s", run_id, pick["selection"], blocked_reason)
                pick = None
        if pick is not None:
            pick.update({
                "units": units,
                "confidence": final["conf_score"],
                "game_id": game_id,
                "capper_id": capper_id,
                "run_id": run_id,
                "game_snapshot": snapshot,
            })
        steps["step7"] = {
            "decision": "PICK" if pick else "PASS",
            "units": units if pick else 0,
            "direction": direction,
            "edge_direction": final["direction"],
            "selection": pick["selection"] if pick else None,
            "blocked_reason": blocked_reason,
        }
        logger.info("[%s] Step 7: %s", run_id, pick["selection"] + f" ({units}u)" if pick else "PASS")

        log = {
            "factors": [f.to_dict() for f in all_factors],
            "finalPrediction": prediction,
            "confidenceBreakdown": {
                "base": base["conf_score"],
                "market_adj": market_adj,
                "final": final["conf_score"],
                "edge_raw": final["edge_raw"],
                "conf_source": final["conf_source"],
                "factor_contributions": final["factor_contributions"],
            },
        }
        return WizardResult(
            success=True,
            run_id=run_id,
            steps=steps,
            pick=pick,
            log=log,
            execution_time_ms=int((time.perf_counter() - started) * 1000),
        )

    except Exception as exc:
        logger.error("[%s] Wizard failed: %s", run_id, exc, exc_info=True)
        return WizardResult(
            success=False,
            run_id=run_id,
            steps=steps,
            error=str(exc),
            execution_time_ms=int((time.perf_counter() - started) * 1000),
        )


def _build_pick(bet_type: BetType, direction: str, snapshot: Dict, home: str, away: str) -> Dict:
    if bet_type is BetType.TOTAL:
        line = snapshot["total"]["line"]
        if direction == "OVER":
            return {"pick_type": "total_over", "selection": f"OVER {line:g}", "line": line,
                    "odds": snapshot["total"]["over_odds"]}
        return {"pick_type": "total_under", "selection": f"UNDER {line:g}", "line": line,
                "odds": snapshot["total"]["under_odds"]}

    if direction == "AWAY":
        line = snapshot["spread"]["away_line"]
        return {"pick_type": "spread", "selection": f"{away} {format_line(line)}", "line": line,
                "odds": snapshot["spread"]["away_odds"], "team": away}
    line = snapshot["spread"]["line"]
    return {"pick_type": "spread", "selection": f"{home} {format_line(line)}", "line": line,
            "odds": snapshot["spread"]["home_odds"], "team": home}


def _default_fetcher(db, league: LeagueConfig):
    from pickgen.services.odds import OddsAPIClient
    from pickgen.services.stats import StatsFetcher

    try:
        client = OddsAPIClient(sport_key=league.odds_api_sport_key)
    except ValueError:
        client = None
    return StatsFetcher(db=db, odds_client=client, league=league).fetch_bundle
