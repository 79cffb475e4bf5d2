"""
Factor metadata, default capper profiles and weight validation.

``FACTOR_CONFIG`` is what the capper configuration screen and the
``/api/factors/config`` route read: one entry per factor key with the sports
and bet types it supports.  It is derived from the registry definitions so
the two never drift, plus the two market-edge factors the wizard appends in
Step 5 (those carry a fixed weight and are never user-configurable).
"""

import logging
from typing import Dict, List, Optional

from pickgen.core.sport_config import EDGE_FACTOR_KEYS, BetType, LeagueConfig, Sport
from pickgen.factors import spread, totals

logger = logging.getLogger(__name__)

#: Upper bound on the summed weight of a profile's enabled factors (percent).
WEIGHT_BUDGET_PCT = LeagueConfig.nba().weight_budget_pct


def _build_factor_config() -> Dict[str, Dict]:
    config: Dict[str, Dict] = {}
    for definition in totals.DEFINITIONS + spread.DEFINITIONS:
        entry = config.get(definition.key)
        if entry is None:
            entry = {
                "key": definition.key,
                "name": definition.name,
                "short_name": definition.short_name,
                "icon": definition.icon,
                "category": definition.category.value,
                "default_weight": definition.default_weight,
                "max_points": definition.max_points,
                "sports": [],
                "bet_types": [],
                "data_sources": [],
                "scope": "matchup",
                "default_weights": {},
            }
            config[definition.key] = entry
        if definition.sport.value not in entry["sports"]:
            entry["sports"].append(definition.sport.value)
        if definition.bet_type.value not in entry["bet_types"]:
            entry["bet_types"].append(definition.bet_type.value)
        if definition.data_source.value not in entry["data_sources"]:
            entry["data_sources"].append(definition.data_source.value)
        entry["default_weights"][definition.bet_type.value] = definition.default_weight

    config["edgeVsMarket"] = {
        "key": "edgeVsMarket", "name": "Edge vs Market (Totals)", "short_name": "Edge",
        "icon": "⚖️", "category": "market", "default_weight": 100.0, "max_points": 5.0,
        "sports": [Sport.NBA.value], "bet_types": [BetType.TOTAL.value],
        "data_sources": ["market"], "scope": "global",
        "default_weights": {BetType.TOTAL.value: 100.0},
    }
    config["edgeVsMarketSpread"] = {
        "key": "edgeVsMarketSpread", "name": "Edge vs Market (Spread)", "short_name": "Edge",
        "icon": "⚖️", "category": "market", "default_weight": 100.0, "max_points": 5.0,
        "sports": [Sport.NBA.value], "bet_types": [BetType.SPREAD.value],
        "data_sources": ["market"], "scope": "global",
        "default_weights": {BetType.SPREAD.value: 100.0},
    }
    return config


FACTOR_CONFIG: Dict[str, Dict] = _build_factor_config()


def get_factor_meta(key: str) -> Optional[Dict]:
    return FACTOR_CONFIG.get(spread.LEGACY_ALIASES.get(key, key))


def get_available_factors(sport, bet_type, include_edge: bool = False) -> List[Dict]:
    """Factor metadata usable by a capper for ``(sport, bet_type)``.

    Edge factors are excluded unless ``include_edge`` is set; the wizard adds
    them itself.
    """
    sport, bet_type = Sport(sport).value, BetType(bet_type).value
    available = []
    for key, meta in FACTOR_CONFIG.items():
        if key in EDGE_FACTOR_KEYS and not include_edge:
            continue
        if sport in meta["sports"] and bet_type in meta["bet_types"]:
            available.append(meta)
    return available


def get_default_profile(capper_id: str, sport, bet_type) -> Dict:
    """Profile with every available factor enabled at its default weight."""
    sport, bet_type = Sport(sport), BetType(bet_type)
    factors = [
        {
            "key": meta["key"],
            "enabled": True,
            "weight": meta["default_weights"].get(bet_type.value, meta["default_weight"]),
            "data_source": meta["data_sources"][0] if meta["data_sources"] else "none",
        }
        for meta in get_available_factors(sport, bet_type)
    ]
    return {
        "id": f"{capper_id}-{sport.value}-{bet_type.value}-default".lower(),
        "capper_id": capper_id,
        "sport": sport.value,
        "bet_type": bet_type.value,
        "name": f"{capper_id.upper()} {sport.value} {bet_type.value} (default)",
        "is_default": True,
        "factors": factors,
    }


def validate_factor_weights(factors: List[Dict], sport=None, bet_type=None) -> List[str]:
    """Check a profile's factor list.

    Returns a list of error strings; empty means valid.  Rules:
      - every key is a known factor (and, when ``sport``/``bet_type`` are
        given, available for that context);
      - each weight is within [0, 100];
      - enabled weights sum to at most ``WEIGHT_BUDGET_PCT``.
    """
    errors: List[str] = []
    allowed = None
    if sport is not None and bet_type is not None:
        allowed = {m["key"] for m in get_available_factors(sport, bet_type)}

    total = 0.0
    for factor in factors:
        key = factor.get("key")
        meta = get_factor_meta(key) if key else None
        if meta is None:
            errors.append(f"Unknown factor: {key!r}")
            continue
        if key in EDGE_FACTOR_KEYS:
            errors.append(f"{key} is applied automatically and cannot be configured")
            continue
        if allowed is not None and meta["key"] not in allowed:
            errors.append(f"{key} is not available for {Sport(sport).value} {BetType(bet_type).value}")
            continue

        weight = factor.get("weight", 0)
        try:
            weight = float(weight)
        except (TypeError, ValueError):
            errors.append(f"{key}: weight must be a number")
            continue
        if not 0.0 <= weight <= 100.0:
            errors.append(f"{key}: weight {weight} outside 0-100")
        if factor.get("enabled", True):
            total += weight

    if total > WEIGHT_BUDGET_PCT:
        errors.append(f"Enabled weights sum to {total:.0f}%, budget is {WEIGHT_BUDGET_PCT:.0f}%")
    return errors
