"""Signal mathematics — the single source of truth for factor arithmetic.

Every function here is **pure**: no I/O, no logging, no side effects.
Factor modules, the confidence calculator and the calibration service import
from this module; none of them reimplement ``tanh`` squashing or odds
conversion locally.

The three pillars exposed are:

1. **Signal shaping** — ``tanh`` normalisation of a raw stat differential
   into ``[-1, 1]`` and conversion of a signal into side scores.
2. **Confidence helpers** — the legacy weighted-magnitude confidence, the
   sigmoid edge confidence used by calibration, and market mismatch.
3. **Basketball identities** — harmonic pace, totals from ratings and score
   splits from a spread/total pair.

Design decisions
----------------
* ``tanh`` is used instead of a hard clamp because it saturates smoothly:
  a 3-point edge and a 30-point edge are both "strong", but the former is
  not clipped at the same value as the latter.
* Side scores are one-sided: a positive signal only ever credits the
  positive side (OVER / AWAY) and a negative signal only the negative side
  (UNDER / HOME).  The confidence calculator relies on this to recover the
  signed edge from two non-negative numbers.

Run tests with::

    pytest tests/test_signal_math.py -v
"""

from __future__ import annotations

import math
from typing import Final, Iterable, Mapping

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Default sigmoid scaling constant for edge confidence.  Calibration runs
#: grid-search around this value.
DEFAULT_SIGMOID_SCALE: Final[float] = 2.5

#: Weighted |signal| sum at which the legacy confidence saturates at 5.0.
_LEGACY_SATURATION: Final[float] = 0.70

#: American-odds magnitude floor.
_MIN_ODDS_MAGNITUDE: Final[int] = 100


# ---------------------------------------------------------------------------
# Basic helpers
# ---------------------------------------------------------------------------


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp ``value`` into ``[lo, hi]``."""
    return min(max(value, lo), hi)


def sigmoid(x: float) -> float:
    """Logistic function, overflow-safe for large negative ``x``."""
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    ex = math.exp(x)
    return ex / (1.0 + ex)


def sigmoid_scaled(x: float, scale: float = DEFAULT_SIGMOID_SCALE) -> float:
    """``sigmoid(x * scale)``."""
    return sigmoid(x * scale)


def is_finite_number(*values: object) -> bool:
    """True when every value is a real, finite number (bools excluded)."""
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return False
        if not math.isfinite(v):
            return False
    return True


# ---------------------------------------------------------------------------
# Signal shaping
# ---------------------------------------------------------------------------


def tanh_signal(value: float, scale: float, cap: float | None = None) -> tuple[float, bool]:
    """Squash a raw differential into a signal in ``[-1, 1]``.

    Args:
        value: Raw differential (points, rating points, rate deltas...).
        scale: Differential at which the signal reaches ``tanh(1) ≈ 0.76``.
        cap: Optional symmetric cap applied to ``value`` before squashing.

    Returns:
        ``(signal, capped)`` where ``capped`` is True when ``cap`` bit.

    Raises:
        ValueError: If ``scale`` is not positive.
    """
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale!r}")
    capped = False
    if cap is not None and abs(value) > cap:
        value = math.copysign(cap, value)
        capped = True
    return clamp(math.tanh(value / scale), -1.0, 1.0), capped


def signal_to_scores(
    signal: float,
    max_points: float,
    positive_side: str,
    negative_side: str,
) -> dict[str, float]:
    """Split a signal into one-sided scores.

    Examples::

        signal_to_scores(0.5, 5.0, "overScore", "underScore")
            → {"overScore": 2.5, "underScore": 0.0}
        signal_to_scores(-0.2, 5.0, "awayScore", "homeScore")
            → {"awayScore": 0.0, "homeScore": 1.0}
    """
    positive = abs(signal) * max_points if signal > 0 else 0.0
    negative = abs(signal) * max_points if signal < 0 else 0.0
    return {positive_side: positive, negative_side: negative}


# ---------------------------------------------------------------------------
# Odds conversion
# ---------------------------------------------------------------------------


def odds_to_probability(american: int | float) -> float:
    """Vig-inclusive implied probability from American odds.

    Raises:
        ValueError: If ``|american| < 100``.
    """
    if abs(american) < _MIN_ODDS_MAGNITUDE:
        raise ValueError(f"Invalid American odds {american!r}: magnitude must be ≥ 100")
    if american > 0:
        return 100.0 / (american + 100.0)
    return abs(american) / (abs(american) + 100.0)


def probability_to_odds(prob: float) -> float:
    """Fair American odds for a probability in ``(0, 1)``.

    Raises:
        ValueError: If ``prob`` is outside ``(0, 1)``.
    """
    if not 0.0 < prob < 1.0:
        raise ValueError(f"probability must be in (0, 1), got {prob!r}")
    if prob >= 0.5:
        return (prob / (1.0 - prob)) * -100.0
    return ((1.0 - prob) / prob) * 100.0


# ---------------------------------------------------------------------------
# Confidence helpers
# ---------------------------------------------------------------------------


def calculate_legacy_confidence(factors: Iterable[Mapping[str, float]]) -> float:
    """Magnitude-only confidence on a 0-5 scale.

    Each factor mapping carries ``normalized_value`` and ``weight`` (a
    fraction, 0.2 for a 20 % weight).  Direction is ignored.
    """
    weighted = sum(f["weight"] * abs(f["normalized_value"]) for f in factors)
    return 5.0 * min(1.0, weighted / _LEGACY_SATURATION)


def calculate_edge_confidence(
    factors: Iterable[Mapping[str, float]],
    scale: float = DEFAULT_SIGMOID_SCALE,
) -> dict[str, float]:
    """Directional confidence on a 0-5 scale.

    ``edge_raw`` is the signed weighted sum of signals, ``edge_pct`` its
    sigmoid and ``conf_score = 5 × edge_pct``.
    """
    edge_raw = sum(f["weight"] * f["normalized_value"] for f in factors)
    edge_pct = sigmoid_scaled(edge_raw, scale)
    return {
        "edge_raw": round(edge_raw, 3),
        "edge_pct": round(edge_pct, 3),
        "conf_score": round(5.0 * edge_pct, 2),
    }


def calculate_market_mismatch(
    predicted_total: float,
    market_line: float,
    confidence: float,
) -> dict[str, float]:
    """Gap between a predicted total and the market, with a coarse unit hint.

    Units are only suggested when the gap exceeds 3 % of the line.
    """
    if market_line == 0:
        raise ValueError("market_line cannot be 0")
    mismatch_points = predicted_total - market_line
    mismatch_pct = mismatch_points / market_line * 100.0

    units = 0
    if abs(mismatch_pct) > 3.0:
        if confidence >= 4.0:
            units = 3
        elif confidence >= 3.0:
            units = 2
        elif confidence >= 2.0:
            units = 1

    return {
        "mismatch_points": round(mismatch_points, 2),
        "mismatch_pct": round(mismatch_pct, 2),
        "units": units,
    }


# ---------------------------------------------------------------------------
# Basketball identities
# ---------------------------------------------------------------------------


def pace_harmonic(home_pace: float, away_pace: float) -> float:
    """Harmonic mean of two paces; the slower team pulls harder."""
    if home_pace <= 0 or away_pace <= 0:
        raise ValueError("pace values must be positive")
    return 2.0 / (1.0 / home_pace + 1.0 / away_pace)


def total_from_ortgs(home_ortg: float, away_ortg: float, pace: float) -> float:
    """Projected game total from two offensive ratings at a shared pace."""
    return (home_ortg + away_ortg) * pace / 200.0


def scores_from_spread_total(spread: float, total: float) -> dict[str, int]:
    """Team scores for a home-perspective margin and a game total."""
    return {
        "home": round((total + spread) / 2.0),
        "away": round((total - spread) / 2.0),
    }
