"""
Guards applied around pick generation.

  * Timing      — never pick a game that has tipped or is about to.
  * Duplicates  — one pick per game per bet type per capper.  OVER and UNDER
                  are the same bet type; a line move is not a new bet.
                  Cancelled picks do not count.
  * Injury gate — a star (>20 PPG or >30 MPG) or two key players (>15 PPG)
                  OUT makes the stats unreliable; the pick is blocked.
  * Spread direction — the side picked must be the side the projected
                  margin favours.
"""

import logging
import os
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from pickgen.core.factor_types import PlayerInjury
from pickgen.core.injury_impact import normalize_status
from pickgen.models import Pick

logger = logging.getLogger(__name__)

GAME_START_BUFFER_MIN = int(os.getenv("GAME_START_BUFFER_MIN", "15"))

#: Pick statuses that count towards duplicate detection.
COUNTED_STATUSES = ("pending", "won", "lost", "push")


# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

def validate_game_timing(
    start_time: datetime,
    now: Optional[datetime] = None,
    buffer_minutes: int = GAME_START_BUFFER_MIN,
) -> Tuple[bool, Optional[str]]:
    """(ok, reason).  Times are naive UTC."""
    now = now or datetime.utcnow()
    minutes_until = (start_time - now).total_seconds() / 60.0

    if minutes_until <= 0:
        return False, f"Game already started {int(-minutes_until)} minutes ago"
    if minutes_until < buffer_minutes:
        return False, f"Game starting in {int(minutes_until)} minutes (< {buffer_minutes} min buffer)"
    return True, None


def filter_eligible_games(games: Iterable, now: Optional[datetime] = None,
                          buffer_minutes: int = GAME_START_BUFFER_MIN) -> List:
    """Games (ORM rows with ``game_date``) that pass the timing check."""
    eligible = []
    for game in games:
        ok, reason = validate_game_timing(game.game_date, now, buffer_minutes)
        if ok:
            eligible.append(game)
        else:
            logger.debug("Skipping %s @ %s: %s", game.away_team, game.home_team, reason)
    return eligible


# ---------------------------------------------------------------------------
# Duplicates
# ---------------------------------------------------------------------------

def base_pick_type(pick_type: str) -> str:
    return "total" if pick_type.startswith("total") else pick_type


def is_duplicate_pick(db, game_id: int, capper_id: str, pick_type: str) -> Tuple[bool, Optional[str]]:
    """(duplicate, reason) for a prospective pick."""
    wanted = base_pick_type(pick_type)
    existing = (
        db.query(Pick)
        .filter(
            Pick.game_id == game_id,
            Pick.capper_id == capper_id,
            Pick.status.in_(COUNTED_STATUSES),
        )
        .all()
    )
    for pick in existing:
        if base_pick_type(pick.pick_type) == wanted:
            return True, f"Already have {wanted} pick on this game: {pick.selection}"
    return False, None


# ---------------------------------------------------------------------------
# Injury gate
# ---------------------------------------------------------------------------

def check_injury_gate(injuries: Iterable[PlayerInjury], away_team: str, home_team: str) -> Tuple[bool, Optional[str]]:
    """(blocked, reason)."""
    out = [i for i in injuries if normalize_status(i.status) == "OUT"]

    for team in (away_team, home_team):
        for inj in out:
            if inj.team.lower() != team.lower():
                continue
            if inj.ppg > 20 or inj.mpg > 30:
                return True, (
                    f"Star player {inj.player} ({inj.ppg:.1f} PPG, {inj.mpg:.1f} MPG) is OUT for {team}"
                )

    for team in (away_team, home_team):
        key_out = [i.player for i in out if i.team.lower() == team.lower() and i.ppg > 15]
        if len(key_out) >= 2:
            return True, f"Multiple key players OUT for {team}: {', '.join(key_out)}"

    return False, None


# ---------------------------------------------------------------------------
# Spread direction
# ---------------------------------------------------------------------------

def validate_spread_direction(
    predicted_margin: float,
    selection: str,
    away_team: str,
    home_team: str,
) -> Tuple[bool, Optional[str]]:
    """The selected side must be the side the margin favours (positive = away)."""
    picking_away = selection.startswith(away_team)
    picking_home = selection.startswith(home_team)

    if not picking_away and not picking_home:
        return False, f'Selection "{selection}" does not name {away_team} or {home_team}'
    if picking_away and predicted_margin < 0:
        return False, f"Predicted margin {predicted_margin:.1f} favors {home_team}, but selection is {away_team}"
    if picking_home and predicted_margin > 0:
        return False, f"Predicted margin {predicted_margin:.1f} favors {away_team}, but selection is {home_team}"
    return True, None
