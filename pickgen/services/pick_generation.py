"""
Pick generation orchestration.

Workflow (``run_auto_picks``, called by APScheduler every
AUTO_PICKS_INTERVAL_MIN minutes):
    1. Refresh today's games and per-book lines from The Odds API
    2. For each bet type, find the first eligible game:
         - tips off more than GAME_START_BUFFER_MIN minutes from now
         - no existing pick of that bet type by this capper
         - not in cooldown
    3. Run the wizard on ONE game per cycle and persist the result:
         - every run → ShivaRun row
         - PICK      → Pick row + permanent cooldown
         - PASS      → PICK_COOLDOWN_HOURS cooldown, no Pick row
         - ERROR     → PICK_COOLDOWN_HOURS cooldown
    4. Log DataFetch records for monitoring

Kill switch: AUTO_PICKS_ENABLED=false (or AUTO_PICKS_DISABLE=true) turns the
job into a no-op without redeploying.
"""

import logging
import os
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from pickgen.core.sport_config import BetType, Sport
from pickgen.models import DataFetch, Game, Pick, PickCooldown, SessionLocal, ShivaRun
from pickgen.services.pick_validation import filter_eligible_games, is_duplicate_pick, validate_game_timing
from pickgen.services.wizard import WizardResult, execute_wizard_pipeline

logger = logging.getLogger(__name__)

PICK_COOLDOWN_HOURS = float(os.getenv("PICK_COOLDOWN_HOURS", "2"))
DEFAULT_CAPPER_ID = os.getenv("DEFAULT_CAPPER_ID", "shiva")

# A PICK locks the game for this capper and bet type for good.
PERMANENT_COOLDOWN = datetime(2099, 12, 31)

_BET_TYPE_PICK_TYPE = {BetType.TOTAL: "total", BetType.SPREAD: "spread"}


def auto_picks_enabled() -> bool:
    if os.getenv("AUTO_PICKS_DISABLE", "false").lower() == "true":
        return False
    return os.getenv("AUTO_PICKS_ENABLED", "true").lower() == "true"


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------

def get_or_create_game(db: Session, game_data: Dict) -> Game:
    """Return the Game row for an Odds API game, refreshing its lines."""
    external_id = game_data.get("game_id")
    game = db.query(Game).filter(Game.external_id == external_id).first()

    if game is None:
        commence_time = game_data.get("commence_time")
        if isinstance(commence_time, str):
            game_date = datetime.fromisoformat(commence_time.replace("Z", "+00:00")).replace(tzinfo=None)
        else:
            game_date = datetime.utcnow()
        game = Game(
            external_id=external_id,
            sport=Sport.NBA.value,
            game_date=game_date,
            home_team=game_data.get("home_team"),
            away_team=game_data.get("away_team"),
        )
        db.add(game)

    if game_data.get("bookmakers"):
        game.odds = game_data["bookmakers"]
        game.odds_updated_at = datetime.utcnow()
    db.flush()
    return game


def sync_games(db: Session, odds_client=None) -> int:
    """Upsert today's games from The Odds API.  Returns games synced."""
    from pickgen.services.odds import OddsAPIClient

    try:
        client = odds_client or OddsAPIClient()
        games = client.get_todays_games()
    except ValueError as exc:
        logger.warning("Odds refresh skipped: %s", exc)
        db.add(DataFetch(data_source="the_odds_api", success=False, error_message=str(exc)[:500], records_fetched=0))
        db.commit()
        return 0

    for game_data in games:
        if game_data.get("game_id"):
            get_or_create_game(db, game_data)
    db.add(DataFetch(data_source="the_odds_api", success=True, records_fetched=len(games)))
    db.commit()
    return len(games)


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------

def is_in_cooldown(db: Session, game_id: int, capper_id: str, bet_type, now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    row = (
        db.query(PickCooldown)
        .filter(
            PickCooldown.game_id == game_id,
            PickCooldown.capper_id == capper_id,
            PickCooldown.bet_type == BetType(bet_type).value,
            PickCooldown.cooldown_until > now,
        )
        .first()
    )
    return row is not None


def select_eligible_game(
    db: Session,
    capper_id: str = DEFAULT_CAPPER_ID,
    bet_type=BetType.TOTAL,
    now: Optional[datetime] = None,
) -> Optional[Game]:
    """The soonest upcoming game this capper can still pick for ``bet_type``."""
    bet_type = BetType(bet_type)
    now = now or datetime.utcnow()
    upcoming = (
        db.query(Game)
        .filter(Game.completed.is_(False), Game.game_date > now)
        .order_by(Game.game_date.asc())
        .all()
    )

    for game in filter_eligible_games(upcoming, now):
        if not game.odds:
            continue
        duplicate, _ = is_duplicate_pick(db, game.id, capper_id, _BET_TYPE_PICK_TYPE[bet_type])
        if duplicate:
            continue
        if is_in_cooldown(db, game.id, capper_id, bet_type, now):
            continue
        return game
    return None


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def _persist_run(db: Session, game: Game, capper_id: str, bet_type: BetType, result: WizardResult) -> ShivaRun:
    step3 = result.steps.get("step3", {})
    step4 = result.steps.get("step4", {})
    step5 = result.steps.get("step5", {})
    step7 = result.steps.get("step7", {})
    prediction = step4.get("prediction", {})

    run = ShivaRun(
        run_id=result.run_id,
        game_id=game.id,
        capper_id=capper_id,
        sport=game.sport or Sport.NBA.value,
        bet_type=bet_type.value,
        state="complete" if result.success else "error",
        steps=result.steps,
        factor_contributions=result.log.get("confidenceBreakdown", {}).get("factor_contributions"),
        factor_version=step3.get("factor_version"),
        predicted_total=prediction.get("predicted_total"),
        predicted_margin=prediction.get("predicted_margin"),
        conf_base=step5.get("conf_base"),
        conf_final=step5.get("conf_final"),
        conf_market_adj=step5.get("conf_market_adj"),
        decision=result.decision,
        units=step7.get("units", 0),
        error_message=result.error,
        execution_time_ms=result.execution_time_ms,
    )
    db.add(run)
    db.flush()
    return run


def _persist_cooldown(db: Session, game: Game, capper_id: str, bet_type: BetType, result: WizardResult) -> PickCooldown:
    """Upsert the cooldown row; one row per (game, capper, bet type)."""
    if result.decision == "PICK":
        until = PERMANENT_COOLDOWN
    else:
        until = datetime.utcnow() + timedelta(hours=PICK_COOLDOWN_HOURS)
    units = result.pick["units"] if result.pick else 0

    cooldown = (
        db.query(PickCooldown)
        .filter(
            PickCooldown.game_id == game.id,
            PickCooldown.capper_id == capper_id,
            PickCooldown.bet_type == bet_type.value,
        )
        .first()
    )
    if cooldown is None:
        cooldown = PickCooldown(game_id=game.id, capper_id=capper_id, bet_type=bet_type.value)
        db.add(cooldown)
    cooldown.result = result.decision
    cooldown.units = units
    cooldown.cooldown_until = until
    return cooldown


def run_pick_generation(
    db: Session,
    game: Game,
    capper_id: str = DEFAULT_CAPPER_ID,
    bet_type=BetType.TOTAL,
    **wizard_kwargs,
) -> Dict:
    """
    Run the wizard for ``game`` and persist run, pick and cooldown.

    Raises:
        ValueError: The game has started (or is inside the buffer) or the
            capper already holds a pick of this bet type on it.

    Returns:
        dict with run_id, decision, pick (or None), error and steps.
    """
    bet_type = BetType(bet_type)

    ok, reason = validate_game_timing(game.game_date)
    if not ok:
        raise ValueError(reason)
    duplicate, reason = is_duplicate_pick(db, game.id, capper_id, _BET_TYPE_PICK_TYPE[bet_type])
    if duplicate:
        raise ValueError(reason)

    result = execute_wizard_pipeline(
        game.to_wizard_input(),
        sport=game.sport or Sport.NBA,
        bet_type=bet_type,
        capper_id=capper_id,
        db=db,
        **wizard_kwargs,
    )

    _persist_run(db, game, capper_id, bet_type, result)
    if result.pick:
        db.add(Pick(
            run_id=result.run_id,
            game_id=game.id,
            capper_id=capper_id,
            sport=game.sport or Sport.NBA.value,
            pick_type=result.pick["pick_type"],
            selection=result.pick["selection"],
            line=result.pick["line"],
            odds=int(result.pick["odds"]),
            units=result.pick["units"],
            confidence=result.pick["confidence"],
            game_snapshot=result.pick["game_snapshot"],
            status="pending",
        ))
    _persist_cooldown(db, game, capper_id, bet_type, result)
    db.commit()

    logger.info(
        "%s: %s @ %s (%s) — %s",
        result.decision, game.away_team, game.home_team, bet_type.value,
        result.pick["selection"] if result.pick else result.error or "no edge",
    )
    return {
        "run_id": result.run_id,
        "decision": result.decision,
        "pick": result.pick,
        "error": result.error,
        "steps": result.steps,
    }


# ---------------------------------------------------------------------------
# Scheduled job
# ---------------------------------------------------------------------------

def run_auto_picks(
    capper_id: str = DEFAULT_CAPPER_ID,
    bet_types: Iterable = (BetType.TOTAL, BetType.SPREAD),
    odds_client=None,
) -> Dict:
    """
    One auto-pick cycle.  Processes at most one game.

    Returns a summary dict:
        {
            'status': 'ok' | 'disabled' | 'no_eligible_games',
            'games_synced': int,
            'run': dict | None,
            'errors': List[str],
            'timestamp': str,
        }
    """
    if not auto_picks_enabled():
        logger.info("Auto-picks disabled by environment; skipping cycle")
        return _summary("disabled", 0, None, [])

    db = SessionLocal()
    errors: List[str] = []
    synced = 0
    try:
        synced = sync_games(db, odds_client)

        for bet_type in bet_types:
            game = select_eligible_game(db, capper_id, bet_type)
            if game is None:
                continue
            try:
                run = run_pick_generation(db, game, capper_id, bet_type)
            except ValueError as exc:
                db.rollback()
                errors.append(f"Game {game.id}: {exc}")
                logger.warning("Auto-pick skipped game %d: %s", game.id, exc)
                continue
            return _summary("ok", synced, run, errors)

        logger.info("No eligible games this cycle")
        return _summary("no_eligible_games", synced, None, errors)

    except Exception as exc:
        logger.error("Fatal error in run_auto_picks: %s", exc, exc_info=True)
        db.rollback()
        return _summary("error", synced, None, errors + [f"Fatal: {exc}"])
    finally:
        db.close()


def _summary(status: str, synced: int, run: Optional[Dict], errors: List[str]) -> Dict:
    if run is not None:
        run = {k: v for k, v in run.items() if k != "steps"}
    return {
        "status": status,
        "games_synced": synced,
        "run": run,
        "errors": errors,
        "timestamp": datetime.utcnow().isoformat(),
    }
