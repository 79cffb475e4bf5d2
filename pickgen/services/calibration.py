"""
Confidence calibration.

Checks whether pick confidence means what it says.  Graded picks are
binned by confidence on the 0-5 display scale (stored confidence / 2):

    [1, 2)  [2, 3)  [3, 4)  [4, 5]

For each sigmoid scaling in 1.0, 1.5, ... 4.0 the expected hit rate of a
pick is ``sigmoid(edge_pct * 2.5 / scaling)`` where ``edge_pct`` is the
display confidence as a fraction of 5.  Each scaling is scored by the
sample-weighted R² between expected and actual bin hit rates; bins with
fewer than 5 picks are ignored.  The best scaling (default 2.5 when no
bin qualifies) is stored as a ``CalibrationRun``.

Each bet type is calibrated separately; TOTAL and SPREAD confidences are
not comparable.  Picks below the first bin (display confidence < 1) are
dropped before anything is counted, and pushes are excluded.

Minimum sample requirement: MIN_CALIBRATION_PICKS (env var, default 20).
"""

import logging
import os
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import numpy as np
from sqlalchemy.orm import Session

from pickgen.core.signal_math import DEFAULT_SIGMOID_SCALE, sigmoid_scaled
from pickgen.core.sport_config import BetType
from pickgen.models import CalibrationRun, Pick

logger = logging.getLogger(__name__)

_MIN_PICKS = int(os.getenv("MIN_CALIBRATION_PICKS", "20"))
_MIN_BIN_SAMPLES = 5

CONFIDENCE_BINS: List[Tuple[float, float]] = [(1.0, 2.0), (2.0, 3.0), (3.0, 4.0), (4.0, 5.0)]
SCALING_GRID: List[float] = [1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0]

_PICK_TYPES = {
    BetType.TOTAL: ("total_over", "total_under"),
    BetType.SPREAD: ("spread",),
}


def display_confidence(confidence: float) -> float:
    """Stored 0-10 confidence → 0-5 display scale."""
    return confidence / 2.0


def _in_bin(value: float, lo: float, hi: float) -> bool:
    # Last bin is closed so a maxed-out pick (5.0) is counted.
    return lo <= value < hi or (hi == CONFIDENCE_BINS[-1][1] and value == hi)


def expected_hit_rate(display_conf: float, scaling: float) -> float:
    edge_pct = display_conf / 5.0
    return sigmoid_scaled(edge_pct * DEFAULT_SIGMOID_SCALE / scaling, 1.0)


def build_bins(records: List[Dict]) -> List[Dict]:
    """Group ``{confidence, won}`` records (display scale) into bins."""
    bins = []
    for lo, hi in CONFIDENCE_BINS:
        members = [r for r in records if _in_bin(r["confidence"], lo, hi)]
        wins = sum(1 for r in members if r["won"])
        bins.append({
            "range": [lo, hi],
            "sample_size": len(members),
            "hit_rate": wins / len(members) if members else 0.0,
            "confidences": [r["confidence"] for r in members],
        })
    return bins


def r_squared(bins: List[Dict], scaling: float, overall_hit_rate: float) -> Optional[float]:
    """Sample-weighted R² of expected vs. actual bin hit rates, or None."""
    usable = [b for b in bins if b["sample_size"] >= _MIN_BIN_SAMPLES]
    if not usable:
        return None

    actual = np.array([b["hit_rate"] for b in usable])
    expected = np.array([
        np.mean([expected_hit_rate(c, scaling) for c in b["confidences"]]) for b in usable
    ])
    weights = np.array([b["sample_size"] for b in usable], dtype=float)

    ss_res = float(np.sum(weights * (actual - expected) ** 2))
    ss_tot = float(np.sum(weights * (actual - overall_hit_rate) ** 2))
    return 1.0 - ss_res / ss_tot if ss_tot > 0 else 0.0


def find_optimal_scaling(bins: List[Dict], overall_hit_rate: float) -> Tuple[float, Dict[str, Optional[float]]]:
    """Grid search; returns (best scaling, {scaling: R²})."""
    results: Dict[str, Optional[float]] = {}
    best_scaling, best_r2 = DEFAULT_SIGMOID_SCALE, None
    for scaling in SCALING_GRID:
        r2 = r_squared(bins, scaling, overall_hit_rate)
        results[f"{scaling:.1f}"] = None if r2 is None else round(r2, 4)
        if r2 is not None and (best_r2 is None or r2 > best_r2):
            best_scaling, best_r2 = scaling, r2
    return best_scaling, results


def _fetch_graded_records(db: Session, bet_type: BetType, limit: int) -> List[Dict]:
    rows = (
        db.query(Pick)
        .filter(
            Pick.status.in_(("won", "lost")),
            Pick.confidence.isnot(None),
            Pick.pick_type.in_(_PICK_TYPES[bet_type]),
        )
        .order_by(Pick.graded_at.desc())
        .limit(limit)
        .all()
    )
    records = [
        {"confidence": display_confidence(p.confidence), "won": p.status == "won"}
        for p in rows
    ]
    return [r for r in records if r["confidence"] >= CONFIDENCE_BINS[0][0]]


def run_calibration(
    db: Session,
    bet_type=BetType.TOTAL,
    min_picks: Optional[int] = None,
    sample_size: int = 200,
) -> Dict:
    """
    Fit the confidence scaling to recent graded picks of ``bet_type`` and
    store the run.

    Returns:
        dict with keys:
            status            "ok" | "insufficient_data"
            bet_type          "TOTAL" | "SPREAD"
            sample_size       int
            optimal_scaling   float
            r_squared         float | None
            bins              per-bin sample size and hit rate
            scaling_results   {scaling: R²}
            timestamp         ISO string
    """
    bet_type = BetType(bet_type)
    if bet_type not in _PICK_TYPES:
        raise ValueError(f"Calibration covers TOTAL and SPREAD picks, not {bet_type.value}")
    required = min_picks if min_picks is not None else _MIN_PICKS
    records = _fetch_graded_records(db, bet_type, limit=max(sample_size, required))

    if len(records) < required:
        logger.info(
            "Calibration skipped for %s: %d graded picks available, %d required",
            bet_type.value, len(records), required,
        )
        return {
            "status": "insufficient_data",
            "bet_type": bet_type.value,
            "message": f"Need {required} graded picks; have {len(records)}.",
            "sample_size": len(records),
            "min_required": required,
            "timestamp": datetime.utcnow().isoformat(),
        }

    overall = sum(1 for r in records if r["won"]) / len(records)
    bins = build_bins(records)
    scaling, scaling_results = find_optimal_scaling(bins, overall)
    best_r2 = scaling_results.get(f"{scaling:.1f}")
    bin_summary = [
        {"range": b["range"], "sample_size": b["sample_size"], "hit_rate": round(b["hit_rate"], 4)}
        for b in bins
    ]

    db.add(CalibrationRun(
        bet_type=bet_type.value,
        sample_size=len(records),
        optimal_scaling=scaling,
        r_squared=best_r2,
        bins=bin_summary,
        scaling_results=scaling_results,
        notes=f"Auto-calibrated from {len(records)} {bet_type.value} picks (overall hit rate {overall:.3f})",
    ))
    db.commit()

    logger.info("Calibration done for %s: scaling=%.1f, R²=%s, n=%d", bet_type.value, scaling, best_r2, len(records))
    return {
        "status": "ok",
        "bet_type": bet_type.value,
        "sample_size": len(records),
        "optimal_scaling": scaling,
        "r_squared": best_r2,
        "bins": bin_summary,
        "scaling_results": scaling_results,
        "timestamp": datetime.utcnow().isoformat(),
    }


def _run_to_dict(row: CalibrationRun) -> Dict:
    return {
        "id": row.id,
        "bet_type": row.bet_type,
        "run_date": row.run_date.isoformat() if row.run_date else None,
        "sample_size": row.sample_size,
        "optimal_scaling": row.optimal_scaling,
        "r_squared": row.r_squared,
        "bins": row.bins,
        "scaling_results": row.scaling_results,
        "notes": row.notes,
    }


def _runs_query(db: Session, bet_type=None):
    query = db.query(CalibrationRun)
    if bet_type is not None:
        query = query.filter(CalibrationRun.bet_type == BetType(bet_type).value)
    return query.order_by(CalibrationRun.run_date.desc())


def get_latest_calibration(db: Session, bet_type=None) -> Optional[Dict]:
    row = _runs_query(db, bet_type).first()
    return _run_to_dict(row) if row else None


def get_calibration_stats(db: Session, window: int = 10, bet_type=None) -> Dict:
    """Summary over the last ``window`` calibration runs."""
    rows = _runs_query(db, bet_type).limit(window).all()
    if not rows:
        return {
            "total_runs": 0,
            "latest_scaling": DEFAULT_SIGMOID_SCALE,
            "avg_r_squared": 0.0,
            "last_calibrated": None,
        }

    r2_values = [r.r_squared for r in rows if r.r_squared is not None]
    return {
        "total_runs": len(rows),
        "latest_scaling": rows[0].optimal_scaling,
        "avg_r_squared": round(float(np.mean(r2_values)), 3) if r2_values else 0.0,
        "last_calibrated": rows[0].run_date.isoformat() if rows[0].run_date else None,
    }
