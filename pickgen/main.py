"""
FastAPI application for the SHIVA pick engine
Includes REST API, scheduled jobs, and monitoring
"""

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional
import logging
import os

from pickgen.models import get_db, Game, ShivaRun, SessionLocal
from pickgen.core.sport_config import BetType, Sport
from pickgen.factors.config import get_available_factors
from pickgen.factors.registry import get_factor_registry
from pickgen.services.calibration import get_calibration_stats, get_latest_calibration, run_calibration
from pickgen.services.capper_profiles import load_capper_profile, save_capper_profile
from pickgen.services.grading import grade_completed_games
from pickgen.services.pick_generation import run_auto_picks, run_pick_generation
from pickgen.schemas import (
    CalibrationResponse,
    CapperProfileResponse,
    CapperProfileUpdate,
    GeneratePickRequest,
    GeneratePickResponse,
    GradingResponse,
    ShivaRunResponse,
)

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Scheduler instance
scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting SHIVA pick engine")

    timezone = os.getenv("CRON_TIMEZONE", "America/New_York")
    auto_picks_interval = int(os.getenv("AUTO_PICKS_INTERVAL_MIN", "10"))
    grading_interval = int(os.getenv("GRADING_INTERVAL_HOURS", "2"))
    calibration_hour = int(os.getenv("CALIBRATION_CRON_HOUR", "5"))

    # One game per cycle; the job itself honours the kill switch
    scheduler.add_job(
        _auto_picks_job,
        IntervalTrigger(minutes=auto_picks_interval),
        id="auto_picks",
        name="SHIVA Auto Picks",
        replace_existing=True,
    )

    scheduler.add_job(
        _grading_job,
        IntervalTrigger(hours=grading_interval),
        id="grade_picks",
        name="Grade Completed Picks",
        replace_existing=True,
    )

    scheduler.add_job(
        _calibration_job,
        CronTrigger(hour=calibration_hour, minute=0, timezone=timezone),
        id="calibration",
        name="Confidence Calibration",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        "Scheduler started: auto-picks every %dmin, grading every %dh, calibration@%02d:00 %s",
        auto_picks_interval, grading_interval, calibration_hour, timezone,
    )

    yield

    logger.info("Shutting down SHIVA pick engine")
    scheduler.shutdown()


app = FastAPI(
    title="SHIVA Pick Engine",
    description="Factor-weighted NBA totals and spread picks",
    version="1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ============================================================================
# SCHEDULED JOBS
# ============================================================================

def _auto_picks_job():
    """Generate at most one pick — runs every AUTO_PICKS_INTERVAL_MIN."""
    try:
        results = run_auto_picks()
        logger.info("Auto-picks cycle: %s", results)
    except Exception as exc:
        logger.error("Auto-picks job failed: %s", exc, exc_info=True)


def _grading_job():
    """Grade picks on completed games — runs every GRADING_INTERVAL_HOURS."""
    try:
        results = grade_completed_games()
        logger.info("Grading: %s", results)
    except Exception as exc:
        logger.error("Grading job failed: %s", exc, exc_info=True)


def _calibration_job():
    """Refit confidence scaling — runs daily at CALIBRATION_CRON_HOUR."""
    db = SessionLocal()
    try:
        for bet_type in (BetType.TOTAL, BetType.SPREAD):
            results = run_calibration(db, bet_type)
            logger.info("Calibration %s: %s", bet_type.value, results)
    except Exception as exc:
        logger.error("Calibration job failed: %s", exc, exc_info=True)
    finally:
        db.close()


def _parse_context(sport: str, bet_type: str):
    try:
        return Sport(sport.upper()), BetType(bet_type.upper())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    return {
        "app": "SHIVA Pick Engine",
        "version": "1.0",
        "status": "operational",
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint"""
    health = {"status": "healthy", "database": "connected", "scheduler": "running"}

    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Health check database error: %s", e)
        health["status"] = "degraded"
        health["database"] = f"error: {str(e)}"

    if not scheduler.running:
        health["status"] = "degraded"
        health["scheduler"] = "stopped"

    return health


# ============================================================================
# FACTORS
# ============================================================================

@app.get("/api/factors/config")
async def get_factor_config(sport: str = "NBA", bet_type: str = "TOTAL"):
    """Factor metadata available to a capper for (sport, bet_type)."""
    sport_enum, bet_enum = _parse_context(sport, bet_type)
    factors = get_available_factors(sport_enum, bet_enum)
    return {"sport": sport_enum.value, "bet_type": bet_enum.value, "factors": factors}


@app.get("/api/factors/registry")
async def get_factor_registry_details(sport: str = "NBA", bet_type: str = "TOTAL"):
    """Registered factor details grouped by category."""
    sport_enum, bet_enum = _parse_context(sport, bet_type)
    registry = get_factor_registry()
    return {
        "sport": sport_enum.value,
        "bet_type": bet_enum.value,
        "keys": registry.get_keys(sport_enum, bet_enum),
        "categories": registry.get_grouped_by_category(sport_enum, bet_enum),
    }


# ============================================================================
# CAPPER PROFILES
# ============================================================================

@app.get("/api/cappers/{capper_id}/profile", response_model=CapperProfileResponse)
async def get_capper_profile(
    capper_id: str,
    sport: str = "NBA",
    bet_type: str = "TOTAL",
    db: Session = Depends(get_db),
):
    sport_enum, bet_enum = _parse_context(sport, bet_type)
    return load_capper_profile(db, capper_id, sport_enum, bet_enum)


@app.put("/api/cappers/{capper_id}/profile", response_model=CapperProfileResponse)
async def put_capper_profile(
    capper_id: str,
    payload: CapperProfileUpdate,
    db: Session = Depends(get_db),
):
    """Validate and save a capper's factor weights."""
    try:
        return save_capper_profile(
            db,
            capper_id,
            payload.sport,
            payload.bet_type,
            [f.model_dump() for f in payload.factors],
            name=payload.name,
            is_default=payload.is_default,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


# ============================================================================
# SHIVA RUNS
# ============================================================================

@app.post("/api/shiva/generate-pick", response_model=GeneratePickResponse)
async def generate_pick(payload: GeneratePickRequest, db: Session = Depends(get_db)):
    """Run the wizard for one game; persists the run and the pick or cooldown."""
    game = db.query(Game).filter(Game.id == payload.game_id).first()
    if not game:
        raise HTTPException(status_code=404, detail="Game not found")

    logger.info(
        "Manual pick generation: %s @ %s (%s, capper=%s)",
        game.away_team, game.home_team, payload.bet_type, payload.capper_id,
    )
    try:
        return run_pick_generation(
            db,
            game,
            capper_id=payload.capper_id,
            bet_type=payload.bet_type,
            ai_provider=payload.ai_provider,
            news_window_hours=payload.news_window_hours,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.get("/api/shiva/runs", response_model=List[ShivaRunResponse])
async def get_shiva_runs(
    capper_id: Optional[str] = None,
    bet_type: Optional[str] = None,
    decision: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Run history, newest first."""
    query = db.query(ShivaRun)
    if capper_id:
        query = query.filter(ShivaRun.capper_id == capper_id)
    if bet_type:
        query = query.filter(ShivaRun.bet_type == bet_type.upper())
    if decision:
        query = query.filter(ShivaRun.decision == decision.upper())
    return query.order_by(ShivaRun.created_at.desc()).limit(limit).all()


@app.get("/api/shiva/runs/{run_id}")
async def get_shiva_run(run_id: str, db: Session = Depends(get_db)):
    """Full step record of one run."""
    run = db.query(ShivaRun).filter(ShivaRun.run_id == run_id).first()
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")
    return {
        "run_id": run.run_id,
        "decision": run.decision,
        "state": run.state,
        "steps": run.steps,
        "factor_contributions": run.factor_contributions,
        "error_message": run.error_message,
    }


# ============================================================================
# GRADING AND CALIBRATION
# ============================================================================

@app.post("/api/picks/grade", response_model=GradingResponse)
async def grade_picks():
    """Fetch final scores and grade pending picks."""
    results = grade_completed_games()
    return {"message": "Grading complete", **results}


@app.post("/api/calibration/run", response_model=CalibrationResponse)
async def trigger_calibration(bet_type: str = "TOTAL", db: Session = Depends(get_db)):
    _, bet_type = _parse_context("NBA", bet_type)
    try:
        return run_calibration(db, bet_type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.get("/api/calibration/latest")
async def latest_calibration(bet_type: str = "TOTAL", db: Session = Depends(get_db)):
    _, bet_type = _parse_context("NBA", bet_type)
    latest = get_latest_calibration(db, bet_type)
    if latest is None:
        raise HTTPException(status_code=404, detail=f"No {bet_type.value} calibration runs yet")
    return {"latest": latest, "stats": get_calibration_stats(db, bet_type=bet_type)}


@app.get("/admin/scheduler/status")
async def get_scheduler_status():
    """Get scheduler job status"""
    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
        })

    return {
        "running": scheduler.running,
        "jobs": jobs,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("pickgen.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
