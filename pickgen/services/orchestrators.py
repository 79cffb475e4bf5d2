"""
Sport orchestrators: run a capper's enabled factors for one game.

The wizard hands over a ``RunContext`` whose ``factor_weights`` keys are the
enabled factors, plus a ``fetch_bundle`` callable.  The bundle is only
fetched when at least one enabled factor reads team stats, so an
injury-only profile never hits the stats source.

A failing factor does not abort the run: it is recorded in
``factor_errors`` and contributes a neutral signal.  A missing stats bundle
does abort, since every stats-driven factor would be meaningless.
"""

import logging
from typing import Callable, Dict, List, Optional

from pickgen.core.factor_types import ComputedFactor, NBAStatsBundle, RunContext
from pickgen.core.sport_config import BetType, LeagueConfig
from pickgen.factors.registry import FactorRegistry, get_factor_registry

logger = logging.getLogger(__name__)

BundleFetcher = Callable[[RunContext], Optional[NBAStatsBundle]]

TOTALS_FACTOR_VERSION = "nba_totals_v1"
SPREAD_FACTOR_VERSION = "nba_spread_v1"


def _empty_result(version: str, baseline_avg: float, league: LeagueConfig) -> Dict:
    return {
        "factors": [],
        "factor_version": version,
        "baseline_avg": baseline_avg,
        "factor_errors": [],
        "debug": {"league_anchors": league.anchors(), "enabled_keys": [], "bundle_fetched": False},
    }


def _run_factors(
    ctx: RunContext,
    fetch_bundle: BundleFetcher,
    version: str,
    registry: FactorRegistry,
    league: LeagueConfig,
) -> Dict:
    enabled_keys = list(ctx.factor_weights.keys())
    if not enabled_keys:
        logger.info("No enabled factors for %s (%s)", ctx.game_id, ctx.bet_type.value)
        return _empty_result(version, 0.0, league)

    needs_bundle = False
    for key in enabled_keys:
        definition = registry.get_by_key(key, ctx.sport, ctx.bet_type)
        if definition is None or definition.needs_bundle:
            needs_bundle = True
            break

    bundle = None
    if needs_bundle:
        bundle = fetch_bundle(ctx)
        if bundle is None:
            raise RuntimeError(f"Stats bundle unavailable for {ctx.away} @ {ctx.home}")

    computed: List[ComputedFactor] = registry.compute_many(enabled_keys, bundle, ctx)

    factor_errors = []
    for cf in computed:
        if cf.weight_total_pct is None:
            cf.weight_total_pct = league.default_factor_weight_pct
        if cf.cap_reason == "computation_error":
            factor_errors.append(f"{cf.key}: {cf.notes}")

    if factor_errors:
        logger.warning("%d factor(s) failed for %s: %s", len(factor_errors), ctx.game_id, factor_errors)

    logger.info(
        "Computed %d %s factors for %s @ %s",
        len(computed), ctx.bet_type.value, ctx.away, ctx.home,
    )
    return {
        "factors": computed,
        "factor_version": version,
        "bundle": bundle,
        "factor_errors": factor_errors,
        "debug": {
            "league_anchors": dict(ctx.league_averages) or league.anchors(),
            "enabled_keys": enabled_keys,
            "bundle_fetched": bundle is not None,
        },
    }


def compute_totals_factors(
    ctx: RunContext,
    fetch_bundle: BundleFetcher,
    registry: Optional[FactorRegistry] = None,
    league: Optional[LeagueConfig] = None,
) -> Dict:
    """Run NBA TOTAL factors.

    Returns:
        Dict with ``factors`` (list of ComputedFactor), ``factor_version``,
        ``baseline_avg`` (sum of team PPG, or the league baseline total),
        ``factor_errors`` and a ``debug`` block with the league anchors.
    """
    registry = registry or get_factor_registry()
    league = league or LeagueConfig.for_sport(ctx.sport)
    ctx.bet_type = BetType.TOTAL

    result = _run_factors(ctx, fetch_bundle, TOTALS_FACTOR_VERSION, registry, league)
    if not result["factors"]:
        result["baseline_avg"] = league.baseline_total
        return result

    baseline = league.baseline_total
    bundle = result.pop("bundle", None)
    if bundle is not None and bundle.away_points_per_game and bundle.home_points_per_game:
        baseline = bundle.away_points_per_game + bundle.home_points_per_game
    result["baseline_avg"] = round(baseline, 2)
    result["debug"]["bundle"] = bundle.to_dict() if bundle is not None else None
    return result


def compute_spread_factors(
    ctx: RunContext,
    fetch_bundle: BundleFetcher,
    registry: Optional[FactorRegistry] = None,
    league: Optional[LeagueConfig] = None,
) -> Dict:
    """Run NBA SPREAD factors.  ``baseline_avg`` is always 0 (a margin)."""
    registry = registry or get_factor_registry()
    league = league or LeagueConfig.for_sport(ctx.sport)
    ctx.bet_type = BetType.SPREAD

    result = _run_factors(ctx, fetch_bundle, SPREAD_FACTOR_VERSION, registry, league)
    bundle = result.pop("bundle", None)
    result["baseline_avg"] = 0.0
    if result["factors"]:
        result["debug"]["bundle"] = bundle.to_dict() if bundle is not None else None
    return result
