"""
Confidence calculator: weighted factor scores → confidence → unit size.

Each computed factor carries one-sided scores (``overScore``/``underScore``
for totals, ``awayScore``/``homeScore`` for spreads), at most ``max_points``
each.  Scores are weighted by the factor's percentage weight and summed per
side; the signed difference is the edge and its magnitude, capped at 10, is
the confidence.

With a capper's factors summing to 100 % a unanimous slate tops out at 5.0;
the Step 5 market-edge factor (weight 100 %) supplies the other half of the
scale, so a pick above 5.0 always needs the market to agree.

Unit thresholds::

    conf > 9 → 5u   > 8 → 4u   > 7 → 3u   > 6 → 2u   > 5 → 1u   else PASS
"""

import logging
from typing import Dict, Iterable, List, Optional, Union

from pickgen.core.factor_types import ComputedFactor
from pickgen.core.signal_math import clamp
from pickgen.core.sport_config import EDGE_FACTOR_KEYS, BetType, LeagueConfig

logger = logging.getLogger(__name__)

CONF_SOURCE = "factor_weighted_v1"
MAX_CONFIDENCE = 10.0

#: (exclusive lower bound, units), checked in order.
UNIT_THRESHOLDS = [
    (9.0, 5),
    (8.0, 4),
    (7.0, 3),
    (6.0, 2),
    (5.0, 1),
]

_SIDES = {
    BetType.TOTAL: ("overScore", "underScore", "OVER", "UNDER"),
    BetType.SPREAD: ("awayScore", "homeScore", "AWAY", "HOME"),
}


def _as_dict(factor: Union[ComputedFactor, Dict]) -> Dict:
    return factor.to_dict() if isinstance(factor, ComputedFactor) else factor


def calculate_confidence(
    factors: Iterable[Union[ComputedFactor, Dict]],
    weights: Optional[Dict[str, float]] = None,
    bet_type=BetType.TOTAL,
    max_points: float = 5.0,
) -> Dict:
    """Combine computed factors into a confidence score.

    Args:
        factors: ComputedFactor objects or their ``to_dict()`` form.
        weights: Factor key → weight percentage.  Falls back to each
            factor's ``weight_total_pct``.
        bet_type: Selects which score keys are read.
        max_points: Side score ceiling; used to rebuild scores from
            ``normalized_value`` when a factor has none.

    Returns:
        Dict with ``conf_score`` (0-10), signed ``edge_raw``, ``direction``,
        per-side totals, ``factor_contributions`` and ``conf_source``.

    Raises:
        ValueError: Non-edge weights exceed the weight budget.
    """
    bet_type = BetType(bet_type)
    weights = weights or {}
    pos_key, neg_key, pos_label, neg_label = _SIDES.get(bet_type, _SIDES[BetType.TOTAL])
    budget = LeagueConfig.nba().weight_budget_pct

    factor_dicts = [_as_dict(f) for f in factors]

    capper_weight = 0.0
    for f in factor_dicts:
        if f["key"] in EDGE_FACTOR_KEYS:
            continue
        w = weights.get(f["key"], f.get("weight_total_pct"))
        capper_weight += float(w or 0.0)
    if capper_weight > budget:
        raise ValueError(f"Factor weights sum to {capper_weight:.1f}%, exceeding the {budget:.0f}% budget")

    total_positive = 0.0
    total_negative = 0.0
    contributions: List[Dict] = []

    for f in factor_dicts:
        weight_pct = float(weights.get(f["key"], f.get("weight_total_pct")) or 0.0)
        parsed = f.get("parsed_values_json") or {}
        signal = float(f.get("normalized_value") or 0.0)

        pos_score = parsed.get(pos_key)
        neg_score = parsed.get(neg_key)
        if pos_score is None or neg_score is None:
            pos_score = abs(signal) * max_points if signal > 0 else 0.0
            neg_score = abs(signal) * max_points if signal < 0 else 0.0

        weighted_pos = float(pos_score) * weight_pct / 100.0
        weighted_neg = float(neg_score) * weight_pct / 100.0
        total_positive += weighted_pos
        total_negative += weighted_neg

        contributions.append({
            "key": f["key"],
            "name": f.get("name", f["key"]),
            "signal": round(signal, 4),
            "weight_pct": weight_pct,
            pos_key: round(weighted_pos, 4),
            neg_key: round(weighted_neg, 4),
        })

    edge_raw = total_positive - total_negative
    conf_score = clamp(abs(edge_raw), 0.0, MAX_CONFIDENCE)

    if edge_raw > 0:
        direction = pos_label
    elif edge_raw < 0:
        direction = neg_label
    else:
        direction = None

    logger.debug(
        "Confidence %.2f (%s) from %d factors: +%.3f / -%.3f",
        conf_score, direction, len(contributions), total_positive, total_negative,
    )
    return {
        "conf_score": round(conf_score, 4),
        "edge_raw": round(edge_raw, 4),
        "direction": direction,
        "total_positive": round(total_positive, 4),
        "total_negative": round(total_negative, 4),
        "factor_contributions": contributions,
        "conf_source": CONF_SOURCE,
    }


def units_for_confidence(conf: float) -> int:
    """Unit size for a confidence score; 0 means PASS."""
    for threshold, units in UNIT_THRESHOLDS:
        if conf > threshold:
            return units
    return 0
