"""Factor contracts and data-transfer objects for the pick pipeline.

Every factor in :mod:`pickgen.factors` is described by a
:class:`FactorDefinition` whose ``compute`` callable takes an
:class:`NBAStatsBundle` and a :class:`RunContext` and returns a
:class:`FactorResult`.  The registry turns that result into the persisted
:class:`ComputedFactor` row shape.

Design choices
--------------
* Signals are always in ``[-1, 1]``.  The sign convention depends on the bet
  type: for TOTAL a positive signal means OVER, for SPREAD it means AWAY.
  :meth:`FactorDefinition.score_sides` is the single place that mapping
  lives.
* :class:`NBAStatsBundle` carries **all** fields any NBA factor might need,
  each with a league-average default, so factors never guard against
  ``None``.  Fetchers set only the fields they have data for.
* DTOs are slotted dataclasses so a run's factor list can be cached and
  serialised cheaply.

Run tests with::

    pytest tests/test_factor_registry.py -v
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from pickgen.core.sport_config import BetType, Sport


class FactorCategory(str, Enum):
    PACE = "pace"
    OFFENSE = "offense"
    DEFENSE = "defense"
    SHOOTING = "shooting"
    EFFICIENCY = "efficiency"
    SITUATIONAL = "situational"
    MOMENTUM = "momentum"
    INJURY = "injury"


class DataSource(str, Enum):
    """Where a factor's inputs come from."""

    ODDS_API_SCORES = "odds_api_scores"
    SEASON_STATS = "season_stats"
    INJURY_REPORT = "injury_report"
    LLM = "llm"
    MARKET = "market"
    NONE = "none"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class PlayerInjury:
    """One player on an injury report, joined with his season averages."""

    team: str
    player: str
    status: str                  # OUT | DOUBTFUL | QUESTIONABLE | PROBABLE
    position: str = "UNKNOWN"
    ppg: float = 0.0
    mpg: float = 0.0
    blocks: float = 0.0
    steals: float = 0.0
    source: str = "manual"


@dataclass(slots=True)
class NBAStatsBundle:
    """Team statistics for one matchup.

    Defaults are league averages so a partially-populated bundle still
    produces neutral (not garbage) signals.

    Attributes:
        --- Pace ---
        away_pace_season / home_pace_season: Possessions per 48, season.
        away_pace_last10 / home_pace_last10: Possessions per 48, last 10.

        --- Ratings (points per 100 possessions) ---
        away_ortg / home_ortg: Season offensive rating.
        away_drtg / home_drtg: Season defensive rating.
        away_ortg_last10 / home_ortg_last10: Offensive rating, last 10.
        away_ortg_last3 / home_ortg_last3: Offensive rating, last 3.
        away_drtg_last10 / home_drtg_last10: Defensive rating, last 10.
        away_road_ortg / away_road_drtg: Away team's road-only ratings.
        home_home_ortg / home_home_drtg: Home team's home-only ratings.

        --- Shooting ---
        *_three_par: 3PA / FGA.  *_opp_three_par: allowed 3PA / FGA.
        *_three_pct_last10: 3P% over the last 10.
        *_ftr / *_opp_ftr: FTA / FGA for and against.

        --- Four factors ---
        *_efg: Effective FG%.  *_tov_pct: turnovers per possession.
        *_oreb_pct: offensive rebound rate.

        --- Per-game box score ---
        *_tov_last10, *_oreb, *_dreb, *_steals, *_blocks, *_assists.

        --- Form and schedule ---
        *_points_per_game: Recent scoring average (``None`` if unknown).
        *_win_streak: Signed streak (+3 = won three, -2 = lost two).
        *_last10_wins / *_last10_losses: Record over the last 10.
        *_rest_days / *_back_to_back: Days since the previous game.
    """

    # Pace
    away_pace_season: float = 100.1
    away_pace_last10: float = 100.1
    home_pace_season: float = 100.1
    home_pace_last10: float = 100.1

    # Ratings
    away_ortg: float = 110.0
    home_ortg: float = 110.0
    away_drtg: float = 110.0
    home_drtg: float = 110.0
    away_ortg_last10: float = 110.0
    home_ortg_last10: float = 110.0
    away_ortg_last3: float = 110.0
    home_ortg_last3: float = 110.0
    away_drtg_last10: float = 110.0
    home_drtg_last10: float = 110.0
    away_road_ortg: float = 110.0
    away_road_drtg: float = 110.0
    home_home_ortg: float = 110.0
    home_home_drtg: float = 110.0

    # Shooting
    away_three_par: float = 0.39
    home_three_par: float = 0.39
    away_opp_three_par: float = 0.39
    home_opp_three_par: float = 0.39
    away_three_pct_last10: float = 0.35
    home_three_pct_last10: float = 0.35
    away_ftr: float = 0.22
    home_ftr: float = 0.22
    away_opp_ftr: float = 0.22
    home_opp_ftr: float = 0.22

    # Four factors
    away_efg: float = 0.54
    home_efg: float = 0.54
    away_tov_pct: float = 0.13
    home_tov_pct: float = 0.13
    away_oreb_pct: float = 0.25
    home_oreb_pct: float = 0.25

    # Per-game box score
    away_tov_last10: float = 14.0
    home_tov_last10: float = 14.0
    away_oreb: float = 10.5
    home_oreb: float = 10.5
    away_dreb: float = 33.0
    home_dreb: float = 33.0
    away_steals: float = 7.5
    home_steals: float = 7.5
    away_blocks: float = 5.0
    home_blocks: float = 5.0
    away_assists: float = 26.0
    home_assists: float = 26.0

    # Form and schedule
    away_points_per_game: Optional[float] = None
    home_points_per_game: Optional[float] = None
    away_win_streak: int = 0
    home_win_streak: int = 0
    away_last10_wins: int = 5
    away_last10_losses: int = 5
    home_last10_wins: int = 5
    home_last10_losses: int = 5
    away_rest_days: float = 1
    home_rest_days: float = 1
    away_back_to_back: bool = False
    home_back_to_back: bool = False

    # League anchors copied from the run context at fetch time
    league_pace: float = 100.1
    league_ortg: float = 110.0
    league_drtg: float = 110.0
    league_three_par: float = 0.39
    league_ftr: float = 0.22
    league_three_pstdev: float = 0.036

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class RunContext:
    """Everything a factor may read about the game besides the stats bundle.

    ``factor_weights`` maps enabled factor keys to weight percentages; the
    sport orchestrators treat its keys as the enabled set.
    """

    game_id: str
    away: str
    home: str
    sport: Sport = Sport.NBA
    bet_type: BetType = BetType.TOTAL
    league_averages: dict[str, float] = field(default_factory=dict)
    factor_weights: dict[str, float] = field(default_factory=dict)
    spread_line: Optional[float] = None   # away-team perspective, e.g. +4.5
    total_line: Optional[float] = None
    injuries: list[PlayerInjury] = field(default_factory=list)
    defense_impact: dict[str, float] = field(default_factory=lambda: {"away": 0.0, "home": 0.0})
    start_time: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class FactorResult:
    """What a factor's ``compute`` returns.

    ``raw`` holds the inputs the factor read; ``meta`` holds intermediate
    values worth showing on an insight card.
    """

    signal: float
    raw: dict[str, Any] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)
    caps_applied: bool = False
    cap_reason: Optional[str] = None
    notes: str = ""


@dataclass(slots=True)
class ComputedFactor:
    """Persisted per-factor row for a run (``factor_contributions``)."""

    factor_no: int
    key: str
    name: str
    normalized_value: float
    raw_values_json: dict[str, Any] = field(default_factory=dict)
    parsed_values_json: dict[str, Any] = field(default_factory=dict)
    caps_applied: bool = False
    cap_reason: Optional[str] = None
    notes: str = ""
    weight_total_pct: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


FactorCompute = Callable[[Optional[NBAStatsBundle], RunContext], FactorResult]


@dataclass(slots=True)
class FactorDefinition:
    """Registry entry describing one scoring factor.

    Attributes:
        key: Stable identifier stored on capper profiles (``"paceIndex"``).
        factor_number: Display number (F1..F7 for totals, S1..S9 for spread).
        name / short_name / icon: Display metadata.
        description: One-line summary of what the factor measures.
        logic: Human-readable formula, shown in the factor browser.
        data_source: Primary :class:`DataSource`.
        data_requirements: Bundle/context fields the factor reads.
        default_weight: Weight percentage used by default profiles.
        max_points: Side score at ``|signal| == 1``.
        needs_bundle: False for factors that only read the run context.
        compute: ``(bundle, ctx) -> FactorResult``.
    """

    key: str
    factor_number: int
    name: str
    short_name: str
    sport: Sport
    bet_type: BetType
    category: FactorCategory
    icon: str
    description: str
    logic: str
    data_source: DataSource
    data_requirements: list[str]
    default_weight: float
    compute: FactorCompute
    max_points: float = 5.0
    needs_bundle: bool = True

    def score_sides(self) -> tuple[str, str]:
        """(positive-signal side, negative-signal side) score names."""
        if self.bet_type is BetType.SPREAD:
            return "awayScore", "homeScore"
        return "overScore", "underScore"

    def details(self) -> dict[str, Any]:
        """Display metadata without the compute callable."""
        return {
            "key": self.key,
            "factor_number": self.factor_number,
            "name": self.name,
            "short_name": self.short_name,
            "sport": self.sport.value,
            "bet_type": self.bet_type.value,
            "category": self.category.value,
            "icon": self.icon,
            "description": self.description,
            "logic": self.logic,
            "data_source": self.data_source.value,
            "data_requirements": list(self.data_requirements),
            "default_weight": self.default_weight,
            "max_points": self.max_points,
        }
