"""
Database models for the SHIVA pick engine
SQLAlchemy ORM (PostgreSQL in production, SQLite for local runs)
"""

from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    Float,
    DateTime,
    Boolean,
    JSON,
    Text,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from datetime import datetime
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pickgen.db")

engine = create_engine(DATABASE_URL, pool_pre_ping=True, echo=False)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class Game(Base):
    """NBA game with teams, start time and per-book odds"""

    __tablename__ = "games"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String, unique=True, index=True)  # From odds API
    sport = Column(String, default="NBA", index=True)
    game_date = Column(DateTime, nullable=False, index=True)  # Tip-off (UTC)
    home_team = Column(String, nullable=False)
    away_team = Column(String, nullable=False)
    status = Column(String, default="scheduled", index=True)  # scheduled, in_progress, final

    # Per-book lines as returned by services.odds.parse_bookmakers
    odds = Column(JSON)
    odds_updated_at = Column(DateTime)

    # Actual results (filled after game)
    home_score = Column(Integer)
    away_score = Column(Integer)
    completed = Column(Boolean, default=False)

    runs = relationship("ShivaRun", back_populates="game")
    picks = relationship("Pick", back_populates="game")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_wizard_input(self) -> dict:
        return {
            "id": self.id,
            "game_id": self.external_id or str(self.id),
            "home_team": self.home_team,
            "away_team": self.away_team,
            "start_time": self.game_date.isoformat() if self.game_date else None,
            "odds": self.odds or [],
        }


class CapperProfile(Base):
    """A capper's enabled factors and weights for one sport/bet type"""

    __tablename__ = "capper_profiles"

    id = Column(Integer, primary_key=True, index=True)
    profile_id = Column(String, unique=True, index=True)  # e.g. "shiva-nba-total-default"
    capper_id = Column(String, nullable=False, index=True)
    sport = Column(String, nullable=False)
    bet_type = Column(String, nullable=False)
    name = Column(String)
    is_default = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)

    # [{"key": "paceIndex", "enabled": true, "weight": 20, "data_source": "..."}]
    factors = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ShivaRun(Base):
    """One execution of the SHIVA wizard for a game"""

    __tablename__ = "shiva_runs"

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(String, unique=True, index=True, nullable=False)
    game_id = Column(Integer, ForeignKey("games.id"), index=True)
    capper_id = Column(String, nullable=False, index=True)
    sport = Column(String, default="NBA")
    bet_type = Column(String, nullable=False)
    state = Column(String, default="complete")  # complete, error

    steps = Column(JSON)                  # Step outputs keyed "step1".."step7"
    factor_contributions = Column(JSON)   # Weighted per-factor scores
    factor_version = Column(String)

    predicted_total = Column(Float)
    predicted_margin = Column(Float)      # Positive = away
    conf_base = Column(Float)
    conf_final = Column(Float)
    conf_market_adj = Column(Float)

    decision = Column(String)             # PICK, PASS, ERROR
    units = Column(Integer, default=0)
    error_message = Column(Text)
    execution_time_ms = Column(Integer)

    game = relationship("Game", back_populates="runs")

    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class Pick(Base):
    """A generated pick and its graded outcome"""

    __tablename__ = "picks"

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(String, ForeignKey("shiva_runs.run_id"), index=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    capper_id = Column(String, nullable=False, index=True)
    sport = Column(String, default="NBA")

    pick_type = Column(String, nullable=False)   # total_over, total_under, spread
    selection = Column(String, nullable=False)   # "OVER 220.5", "Boston Celtics -4.5"
    line = Column(Float)
    odds = Column(Integer, default=-110)         # Locked at pick time
    units = Column(Float, nullable=False)
    confidence = Column(Float)
    game_snapshot = Column(JSON)                 # Odds snapshot at pick time

    status = Column(String, default="pending", index=True)  # pending, won, lost, push, cancelled
    units_result = Column(Float)                 # +units / -units / 0
    graded_at = Column(DateTime)

    game = relationship("Game", back_populates="picks")

    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class PickCooldown(Base):
    """Stops the auto-picks job from re-running a game for a capper"""

    __tablename__ = "pick_cooldowns"

    id = Column(Integer, primary_key=True, index=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    capper_id = Column(String, nullable=False, index=True)
    bet_type = Column(String, nullable=False)
    result = Column(String, nullable=False)      # PICK, PASS, ERROR
    units = Column(Float, default=0)
    cooldown_until = Column(DateTime, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (UniqueConstraint('game_id', 'capper_id', 'bet_type', name='_cooldown_game_capper_bet_uc'),)


class CalibrationRun(Base):
    """Confidence calibration results"""

    __tablename__ = "calibration_runs"

    id = Column(Integer, primary_key=True, index=True)
    bet_type = Column(String, nullable=False, default="TOTAL", index=True)
    run_date = Column(DateTime, default=datetime.utcnow, index=True)
    sample_size = Column(Integer, nullable=False)
    optimal_scaling = Column(Float)
    r_squared = Column(Float)
    bins = Column(JSON)              # Per-bin hit rates at the optimal scaling
    scaling_results = Column(JSON)   # R² for every scaling tried
    notes = Column(Text)


class TeamSeasonStats(Base):
    """Season-level team stats for the factors the scores feed can't derive"""

    __tablename__ = "team_season_stats"

    id = Column(Integer, primary_key=True, index=True)
    team = Column(String, nullable=False, index=True)
    season = Column(String, nullable=False)  # "2024-25"

    pace = Column(Float)
    ortg = Column(Float)
    drtg = Column(Float)
    road_ortg = Column(Float)
    road_drtg = Column(Float)
    home_ortg = Column(Float)
    home_drtg = Column(Float)

    three_par = Column(Float)
    opp_three_par = Column(Float)
    three_pct = Column(Float)
    ftr = Column(Float)
    opp_ftr = Column(Float)

    efg = Column(Float)
    tov_pct = Column(Float)
    oreb_pct = Column(Float)

    turnovers = Column(Float)
    oreb = Column(Float)
    dreb = Column(Float)
    steals = Column(Float)
    blocks = Column(Float)
    assists = Column(Float)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (UniqueConstraint('team', 'season', name='_team_season_uc'),)


class PlayerAverage(Base):
    """Per-player season averages joined onto injury reports"""

    __tablename__ = "player_averages"

    id = Column(Integer, primary_key=True, index=True)
    player = Column(String, nullable=False, index=True)
    team = Column(String, nullable=False, index=True)
    position = Column(String)
    season = Column(String)
    ppg = Column(Float, default=0.0)
    mpg = Column(Float, default=0.0)
    blocks = Column(Float, default=0.0)
    steals = Column(Float, default=0.0)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class DataFetch(Base):
    """Track data fetches for monitoring scraper health"""

    __tablename__ = "data_fetches"

    id = Column(Integer, primary_key=True, index=True)
    fetch_time = Column(DateTime, default=datetime.utcnow, index=True)
    data_source = Column(String, nullable=False, index=True)  # "odds_api", "espn_injuries", etc.
    success = Column(Boolean, nullable=False)
    records_fetched = Column(Integer)
    error_message = Column(Text)
    response_time_ms = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow)
