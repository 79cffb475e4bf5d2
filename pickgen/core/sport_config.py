"""League-level configuration — every sport constant the pick pipeline reads.

Factor modules, the sport orchestrators and the SHIVA wizard never hard-code
league averages or pipeline thresholds.  They receive a :class:`LeagueConfig`
(or the ``anchors()`` dict derived from it) and read values from there.

Architecture
------------
:class:`LeagueConfig` is a frozen dataclass.  Named constructors
(:meth:`LeagueConfig.nba`) return pre-populated instances.  To support a new
league:

1. Add a ``@classmethod`` constructor here.
2. Register factors for the new ``(sport, bet_type)`` pair in
   :mod:`pickgen.factors`.
3. Add a branch to the wizard's Step 3 dispatch.

Typical usage::

    from pickgen.core.sport_config import LeagueConfig

    cfg = LeagueConfig.nba()
    anchors = cfg.anchors()

    # Override a single constant for a late-season pace drift:
    from dataclasses import replace
    slow_cfg = replace(cfg, league_pace=98.7)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final


class Sport(str, Enum):
    """Sport identifiers used in capper profiles, runs and the factor index."""

    NBA = "NBA"
    NFL = "NFL"
    MLB = "MLB"
    NHL = "NHL"
    NCAAB = "NCAAB"
    NCAAF = "NCAAF"


class BetType(str, Enum):
    """Market a capper run targets."""

    TOTAL = "TOTAL"
    SPREAD = "SPREAD"
    MONEYLINE = "MONEYLINE"
    PROP = "PROP"


#: The Odds API sport keys for each supported league.
ODDS_API_SPORT_KEYS: Final[dict[str, str]] = {
    Sport.NBA.value: "basketball_nba",
    Sport.NCAAB.value: "basketball_ncaab",
    Sport.NFL.value: "americanfootball_nfl",
    Sport.NCAAF.value: "americanfootball_ncaaf",
    Sport.MLB.value: "baseball_mlb",
    Sport.NHL.value: "icehockey_nhl",
}

#: Edge factor keys appended by the wizard in Step 5.  They never appear in
#: a capper's Step 3 weights.
EDGE_FACTOR_KEYS: Final[frozenset[str]] = frozenset({"edgeVsMarket", "edgeVsMarketSpread"})


@dataclass(frozen=True)
class LeagueConfig:
    """Immutable configuration bundle for a single league.

    Attributes:
        sport: :class:`Sport` this configuration belongs to.
        sport_name: Human-readable name for logging.

        --- League anchors (per 100 possessions unless noted) ---
        league_pace: Possessions per 48 minutes.  NBA 2024-25 average.
        league_ortg: Points scored per 100 possessions.
        league_drtg: Points allowed per 100 possessions.  Equals ORtg in
            equilibrium; kept separate so factors can anchor defence
            independently.
        league_three_par: Three-point attempt rate (3PA / FGA).
        league_ftr: Free-throw rate (FTA / FGA).
        league_three_pstdev: Standard deviation of team 3P% across the
            league.  F4 uses it as the "normal" shooting variance.
        league_three_pct: League three-point percentage.
        baseline_total: Fallback game total when team scoring averages are
            missing.

        --- Pipeline constants ---
        factor_max_points: Score a factor contributes at ``|signal| = 1``.
        default_factor_weight_pct: Weight applied when a capper profile
            enables a factor without a weight.
        weight_budget_pct: Upper bound on the sum of enabled weights.
        predicted_total_min / predicted_total_max: Clamp on the Step 4
            predicted total.
        totals_edge_multiplier: Points of predicted total per point of
            factor edge.
        spread_edge_multiplier: Points of predicted margin per point of
            factor edge.
        base_team_score: Centre used to derive team scores from a margin.
        default_odds: American price assumed when a book omits the juice.
    """

    sport: Sport
    sport_name: str

    # League anchors
    league_pace: float
    league_ortg: float
    league_drtg: float
    league_three_par: float
    league_ftr: float
    league_three_pstdev: float
    league_three_pct: float
    baseline_total: float

    # Pipeline constants
    factor_max_points: float = 5.0
    default_factor_weight_pct: float = 20.0
    weight_budget_pct: float = 250.0
    predicted_total_min: float = 180.0
    predicted_total_max: float = 280.0
    totals_edge_multiplier: float = 2.0
    spread_edge_multiplier: float = 1.5
    base_team_score: float = 110.0
    default_odds: int = -110

    # ------------------------------------------------------------------ #
    #  Named constructors                                                  #
    # ------------------------------------------------------------------ #

    @classmethod
    def nba(cls) -> LeagueConfig:
        """Return the NBA configuration.

        Sources:
            * Pace / ORtg / DRtg: NBA.com league dashboard, 2024-25.
            * 3PAR, FTr, 3P% stdev: Basketball-Reference team shooting
              splits, 2024-25.
        """
        return cls(
            sport=Sport.NBA,
            sport_name="NBA",
            league_pace=100.1,
            league_ortg=110.0,
            league_drtg=110.0,
            league_three_par=0.39,
            league_ftr=0.22,
            league_three_pstdev=0.036,
            league_three_pct=0.35,
            baseline_total=220.0,
        )

    @classmethod
    def for_sport(cls, sport: Sport | str) -> LeagueConfig:
        """Look up the configuration for ``sport``.

        Raises:
            ValueError: If no configuration exists for the sport yet.
        """
        sport = Sport(sport)
        if sport is Sport.NBA:
            return cls.nba()
        raise ValueError(f"No league configuration for sport {sport.value}")

    # ------------------------------------------------------------------ #
    #  Convenience accessors                                               #
    # ------------------------------------------------------------------ #

    def anchors(self) -> dict[str, float]:
        """League anchors in the shape stored on runs and run contexts."""
        return {
            "pace": self.league_pace,
            "ORtg": self.league_ortg,
            "DRtg": self.league_drtg,
            "threePAR": self.league_three_par,
            "FTr": self.league_ftr,
            "threePstdev": self.league_three_pstdev,
        }

    @property
    def odds_api_sport_key(self) -> str:
        return ODDS_API_SPORT_KEYS[self.sport.value]

    def __repr__(self) -> str:
        return (
            f"LeagueConfig(sport={self.sport.value!r}, "
            f"pace={self.league_pace}, "
            f"ortg={self.league_ortg}, "
            f"baseline_total={self.baseline_total})"
        )
