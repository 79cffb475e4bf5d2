"""
Pydantic request/response schemas for the SHIVA pick API.

Using explicit schemas instead of raw dicts keeps ORM models out of request
bodies and generates accurate OpenAPI docs.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from pickgen.core.sport_config import EDGE_FACTOR_KEYS


# ---------------------------------------------------------------------------
# Pick generation
# ---------------------------------------------------------------------------

class GeneratePickRequest(BaseModel):
    """
    Payload for POST /api/shiva/generate-pick.

    ``game_id`` is the games.id primary key.  The wizard reads lines from
    the stored per-book odds on that game.
    """

    game_id: int = Field(..., description="FK to games.id")
    capper_id: str = Field("shiva", min_length=1, max_length=50)
    bet_type: Literal["TOTAL", "SPREAD"] = Field("TOTAL", description="Market to pick")
    ai_provider: Optional[Literal["perplexity", "openai", "xai", "grok"]] = Field(
        "perplexity", description="Completion provider for the availability read; null = deterministic only"
    )
    news_window_hours: int = Field(24, ge=1, le=168)

    model_config = {
        "json_schema_extra": {
            "example": {
                "game_id": 42,
                "capper_id": "shiva",
                "bet_type": "TOTAL",
                "ai_provider": "perplexity",
                "news_window_hours": 24,
            }
        }
    }


class PickResponse(BaseModel):
    pick_type: str
    selection: str
    line: float
    odds: float
    units: int
    confidence: float
    team: Optional[str] = None


class GeneratePickResponse(BaseModel):
    """Response from POST /api/shiva/generate-pick."""
    run_id: str
    decision: Literal["PICK", "PASS", "ERROR"]
    pick: Optional[PickResponse] = None
    error: Optional[str] = None
    steps: dict[str, Any]


# ---------------------------------------------------------------------------
# Capper profiles
# ---------------------------------------------------------------------------

class FactorSetting(BaseModel):
    key: str = Field(..., min_length=1)
    enabled: bool = True
    weight: float = Field(..., ge=0, le=100, description="Percent of the 250% budget")
    data_source: Optional[str] = None

    @field_validator("key")
    @classmethod
    def reject_edge_keys(cls, v: str) -> str:
        if v in EDGE_FACTOR_KEYS:
            raise ValueError(f"{v} is applied automatically and cannot be configured")
        return v


class CapperProfileUpdate(BaseModel):
    """Payload for PUT /api/cappers/{capper_id}/profile."""
    sport: Literal["NBA"] = "NBA"
    bet_type: Literal["TOTAL", "SPREAD"]
    name: Optional[str] = Field(None, max_length=120)
    is_default: bool = True
    factors: list[FactorSetting] = Field(..., min_length=1)

    model_config = {
        "json_schema_extra": {
            "example": {
                "sport": "NBA",
                "bet_type": "TOTAL",
                "factors": [
                    {"key": "paceIndex", "enabled": True, "weight": 40},
                    {"key": "offForm", "enabled": True, "weight": 60},
                ],
            }
        }
    }


class CapperProfileResponse(BaseModel):
    id: str
    capper_id: str
    sport: str
    bet_type: str
    name: Optional[str] = None
    is_default: bool
    factors: list[dict[str, Any]]


# ---------------------------------------------------------------------------
# Run history
# ---------------------------------------------------------------------------

class ShivaRunResponse(BaseModel):
    """One row of GET /api/shiva/runs."""
    run_id: str
    game_id: Optional[int]
    capper_id: str
    bet_type: str
    state: str
    decision: Optional[str]
    units: Optional[int]
    conf_base: Optional[float]
    conf_final: Optional[float]
    conf_market_adj: Optional[float]
    predicted_total: Optional[float]
    predicted_margin: Optional[float]
    factor_version: Optional[str]
    error_message: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Job triggers
# ---------------------------------------------------------------------------

class GradingResponse(BaseModel):
    """Response from POST /api/picks/grade."""
    message: str
    games_updated: int
    picks_graded: int
    pushes: int
    errors: list[str]
    timestamp: str


class CalibrationResponse(BaseModel):
    """Response from POST /api/calibration/run."""
    status: Literal["ok", "insufficient_data"]
    bet_type: Literal["TOTAL", "SPREAD"]
    sample_size: int
    optimal_scaling: Optional[float] = None
    r_squared: Optional[float] = None
    bins: Optional[list[dict[str, Any]]] = None
    scaling_results: Optional[dict[str, Optional[float]]] = None
    message: Optional[str] = None
    timestamp: str
