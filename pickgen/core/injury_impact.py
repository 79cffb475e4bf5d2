"""Deterministic injury impact: how much a team loses to its injury report.

Two views of the same report are used by the factor layer:

* **Totals** (F6) split each absence into the offence it removes (points
  that will not be scored) and the defence it removes (points that will be
  allowed).  A team's net = defence lost − offence lost, so a positive
  value pushes the total OVER.
* **Spread** (S6) collapses each absence into a single "points of team
  strength lost" number.

Only players with a meaningful role count: the totals view ignores anyone
below 15 minutes per game.  Status is discounted by the probability the
player actually sits, and a team missing several rotation players is
penalised more than the sum of its parts.
"""

from __future__ import annotations

from typing import Final, Iterable

from pickgen.core.factor_types import PlayerInjury

#: Probability-of-absence weight per report status.
STATUS_MULTIPLIERS: Final[dict[str, float]] = {
    "OUT": 1.0,
    "DOUBTFUL": 0.75,
    "QUESTIONABLE": 0.5,
    "PROBABLE": 0.25,
}

_STATUS_ALIASES: Final[dict[str, str]] = {
    "DAY-TO-DAY": "QUESTIONABLE",
    "DTD": "QUESTIONABLE",
    "GTD": "QUESTIONABLE",
    "O": "OUT",
    "INACTIVE": "OUT",
    "SUSPENSION": "OUT",
}

#: Defensive value lost (points) for a 36-minute player at each position.
POSITION_DEFENSE_BASE: Final[dict[str, float]] = {
    "C": 2.5,
    "F": 1.5,
    "PF": 1.5,
    "SF": 1.5,
    "G": 1.0,
    "PG": 1.0,
    "SG": 1.0,
}

MIN_ROTATION_MPG: Final[float] = 15.0


def normalize_status(status: str) -> str:
    s = (status or "").strip().upper()
    return _STATUS_ALIASES.get(s, s)


def status_multiplier(status: str) -> float:
    """0.0 for unknown statuses so a bad scrape never invents an absence."""
    return STATUS_MULTIPLIERS.get(normalize_status(status), 0.0)


def multiple_injury_multiplier(count: int) -> float:
    """1.5 with three or more absences, 1.3 with two, else 1.0."""
    if count >= 3:
        return 1.5
    if count >= 2:
        return 1.3
    return 1.0


# ---------------------------------------------------------------------------
# Totals view
# ---------------------------------------------------------------------------


def player_defense_value(inj: PlayerInjury) -> float:
    """Position base, scaled by minutes share and stocks (blocks + steals).

    A player with no recorded stocks contributes no defensive value.
    """
    base = POSITION_DEFENSE_BASE.get((inj.position or "").upper(), 1.0)
    minutes_factor = min(inj.mpg / 36.0, 1.0)
    stocks = (inj.blocks + inj.steals) / 2.0
    stocks_factor = min(stocks / 1.5, 1.5)
    return base * minutes_factor * stocks_factor


def team_injury_impact_totals(injuries: Iterable[PlayerInjury]) -> dict[str, float]:
    """Aggregate one team's report for the totals factor.

    Returns:
        Dict with ``offensive`` and ``defensive`` losses (points, after status
        weighting), ``net`` (defensive − offensive, after the multiple-injury
        multiplier) and ``count`` of rotation players counted.
    """
    offensive = 0.0
    defensive = 0.0
    count = 0
    for inj in injuries:
        if inj.mpg < MIN_ROTATION_MPG:
            continue
        mult = status_multiplier(inj.status)
        if mult == 0.0:
            continue
        offensive += (inj.ppg / 10.0) * mult
        defensive += player_defense_value(inj) * mult
        count += 1

    net = (defensive - offensive) * multiple_injury_multiplier(count)
    return {
        "offensive": round(offensive, 3),
        "defensive": round(defensive, 3),
        "net": round(net, 3),
        "count": count,
    }


# ---------------------------------------------------------------------------
# Spread view
# ---------------------------------------------------------------------------


def player_impact_spread(inj: PlayerInjury) -> float:
    return (inj.ppg / 10.0 + (inj.mpg / 48.0) * 2.0) * status_multiplier(inj.status)


def team_injury_impact_spread(injuries: Iterable[PlayerInjury]) -> float:
    """Points of team strength lost, with the multiple-injury multiplier."""
    impacts = [player_impact_spread(inj) for inj in injuries]
    impacts = [i for i in impacts if i > 0]
    return sum(impacts) * multiple_injury_multiplier(len(impacts))


def defense_impact_score(injuries: Iterable[PlayerInjury]) -> float:
    """Deterministic defensive erosion in ``[0, 1]`` for one team.

    Used for F3 when no availability summary is available from the
    completion model.  Four points of defensive value lost saturates.
    """
    impact = team_injury_impact_totals(injuries)
    return max(0.0, min(1.0, impact["defensive"] / 4.0))
