"""
Pick grading.

Scheduled job:
  grade_completed_games()  - every GRADING_INTERVAL_HOURS: fetch scores,
                             grade pending picks

Picks are graded flat: a win pays ``+units``, a loss costs ``-units`` and a
push is 0, regardless of the odds locked at pick time.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pickgen.models import DataFetch, Game, Pick, SessionLocal

logger = logging.getLogger(__name__)

_TOTAL_RE = re.compile(r"^(OVER|UNDER)\s+(\d+\.?\d*)$", re.IGNORECASE)
_SPREAD_RE = re.compile(r"^(.+?)\s+([+-]?\d+\.?\d*)$")


# ---------------------------------------------------------------------------
# Selection parsing and grading (pure functions, no DB)
# ---------------------------------------------------------------------------

def parse_selection(selection: str) -> Tuple[str, Optional[float]]:
    """
    Parse 'OVER 220.5'          → ('OVER', 220.5).
    Parse 'Boston Celtics -4.5' → ('Boston Celtics', -4.5).
    Parse 'Boston Celtics'      → ('Boston Celtics', None).

    Spread lines are from the perspective of the selected team.
    """
    text = selection.strip()
    match = _TOTAL_RE.match(text)
    if match:
        return match.group(1).upper(), float(match.group(2))
    match = _SPREAD_RE.match(text)
    if match:
        return match.group(1).strip(), float(match.group(2))
    return text, None


@dataclass
class GradeResult:
    result: str             # won, lost, push
    units_delta: float


def grade_pick(
    pick_type: str,
    selection: str,
    units: float,
    home_team: str,
    away_team: str,
    home_score: int,
    away_score: int,
) -> GradeResult:
    """
    Grade one pick against a final score.

    Totals:  combined score vs. line; equal → push.
    Spread:  team_margin + line > 0 → covers, = 0 → push, < 0 → loses.

    Raises:
        ValueError: The selection cannot be parsed or names neither team.
    """
    side, line = parse_selection(selection)
    if line is None:
        raise ValueError(f'Cannot parse line from selection "{selection}"')

    if pick_type.startswith("total"):
        if side not in ("OVER", "UNDER"):
            raise ValueError(f'Total selection "{selection}" is not OVER/UNDER')
        diff = (home_score + away_score) - line
        if side == "UNDER":
            diff = -diff
    elif pick_type == "spread":
        if side.lower() == home_team.lower():
            margin = home_score - away_score
        elif side.lower() == away_team.lower():
            margin = away_score - home_score
        else:
            raise ValueError(f'Selection "{selection}" names neither {away_team} nor {home_team}')
        diff = margin + line
    else:
        raise ValueError(f"Unsupported pick type: {pick_type}")

    if abs(diff) < 0.01:
        return GradeResult(result="push", units_delta=0.0)
    if diff > 0:
        return GradeResult(result="won", units_delta=float(units))
    return GradeResult(result="lost", units_delta=-float(units))


# ---------------------------------------------------------------------------
# Scheduled job
# ---------------------------------------------------------------------------

def grade_completed_games(odds_client=None) -> Dict:
    """
    Fetch completed scores from The Odds API, store them on ``games`` and
    grade every pending pick on those games.

    Called by the scheduler; also exposed as ``POST /api/picks/grade``.
    """
    from pickgen.services.odds import OddsAPIClient, parse_scores

    logger.info("Starting grade_completed_games")
    db = SessionLocal()

    games_updated = 0
    picks_graded = 0
    pushes = 0
    errors: List[str] = []

    try:
        try:
            client = odds_client or OddsAPIClient()
            completed = [g for g in client.get_scores(days_from=3) if g.get("completed")]
            db.add(DataFetch(data_source="odds_api_scores", success=True, records_fetched=len(completed)))
            db.commit()
        except ValueError as exc:
            db.add(DataFetch(
                data_source="odds_api_scores",
                success=False,
                error_message=str(exc)[:500],
                records_fetched=0,
            ))
            db.commit()
            return _summary(0, 0, 0, [f"Scores API unavailable: {exc}"])

        for score_data in completed:
            external_id = score_data.get("id")
            if not external_id:
                continue

            game = db.query(Game).filter(Game.external_id == external_id).first()
            if not game:
                continue

            home_s, away_s = parse_scores(score_data)
            if home_s is None or away_s is None:
                continue

            if not game.completed or game.home_score != home_s or game.away_score != away_s:
                game.home_score = home_s
                game.away_score = away_s
                game.completed = True
                game.status = "final"
                db.flush()
                games_updated += 1
                logger.info(
                    "Score updated: game %d | %s %d – %s %d",
                    game.id, game.away_team, away_s, game.home_team, home_s,
                )

            pending = (
                db.query(Pick)
                .filter(Pick.game_id == game.id, Pick.status == "pending")
                .all()
            )
            for pick in pending:
                try:
                    with db.begin_nested():
                        graded = grade_pick(
                            pick.pick_type, pick.selection, pick.units,
                            game.home_team, game.away_team, home_s, away_s,
                        )
                        pick.status = graded.result
                        pick.units_result = graded.units_delta
                        pick.graded_at = datetime.utcnow()
                except ValueError as exc:
                    errors.append(f"Pick {pick.id} ({pick.selection}): {exc}")
                    logger.error("Error grading pick %d: %s", pick.id, exc)
                    continue

                if graded.result == "push":
                    pushes += 1
                    logger.info("PUSH: pick %d (%s)", pick.id, pick.selection)
                else:
                    picks_graded += 1
                    logger.info(
                        "%s: pick %d (%s) | %+.1fu",
                        graded.result.upper(), pick.id, pick.selection, graded.units_delta,
                    )

            db.commit()

    except Exception as exc:
        logger.error("Fatal error in grade_completed_games: %s", exc, exc_info=True)
        db.rollback()
        errors.append(f"Fatal: {exc}")
    finally:
        db.close()

    summary = _summary(games_updated, picks_graded, pushes, errors)
    logger.info("grade_completed_games done: %s", summary)
    return summary


def _summary(updated: int, graded: int, pushes: int, errors: List[str]) -> Dict:
    return {
        "games_updated": updated,
        "picks_graded": graded,
        "pushes": pushes,
        "errors": errors,
        "timestamp": datetime.utcnow().isoformat(),
    }
