"""
Stats fetcher: builds the ``NBAStatsBundle`` a factor run reads.

Two sources are merged:

1. **Recent form** from completed game scores (the ``games`` table, topped
   up with The Odds API scores feed).  From the last 10 results per team we
   derive PPG, points allowed, an estimated pace, ORtg / DRtg over the last
   10 and last 3, the last-10 record, the current streak and rest days.

   Pace is estimated from combined points: a 224-point game is a
   league-average 100.1 possessions.

2. **Season stats** from ``team_season_stats`` (shooting splits, four
   factors, box-score averages, home/road ratings).

Any field neither source covers keeps its league-average default, so a
thin bundle produces neutral signals rather than garbage.  A bundle where
neither team has any data at all is an error: the run should not pretend to
have an opinion.

Bundles are cached per matchup for 15 minutes in a module-level cache
shared by every fetcher.  The scores feed is requested once per bundle.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pickgen.core.factor_types import NBAStatsBundle, RunContext
from pickgen.core.sport_config import LeagueConfig

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 15 * 60
RECENT_GAMES = 10
PPG_WINDOW = 5

# Combined points of a league-average game at league-average pace.
_LEAGUE_AVG_COMBINED_POINTS = 224.0

# (away, home) -> (monotonic timestamp, bundle); shared by every StatsFetcher.
_bundle_cache: Dict[Tuple[str, str], Tuple[float, NBAStatsBundle]] = {}


@dataclass
class TeamResult:
    """One completed game from a single team's point of view."""

    date: datetime
    points: int
    opp_points: int
    is_home: bool

    @property
    def won(self) -> bool:
        return self.points > self.opp_points


# ---------------------------------------------------------------------------
# Recent form
# ---------------------------------------------------------------------------

def estimate_pace(points: int, opp_points: int, league_pace: float = 100.1) -> float:
    return (points + opp_points) / _LEAGUE_AVG_COMBINED_POINTS * league_pace


def _avg(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def current_streak(results: List[TeamResult]) -> int:
    """Signed streak from most-recent-first results (+3 = won three)."""
    if not results:
        return 0
    first = results[0].won
    count = 0
    for r in results:
        if r.won != first:
            break
        count += 1
    return count if first else -count


def summarize_recent_form(
    results: List[TeamResult],
    as_of: Optional[datetime] = None,
    league_pace: float = 100.1,
) -> Dict:
    """Derive form stats from most-recent-first results."""
    last10 = results[:RECENT_GAMES]
    if not last10:
        return {}

    paces = [estimate_pace(r.points, r.opp_points, league_pace) for r in last10]
    ortgs = [r.points / p * 100.0 for r, p in zip(last10, paces)]
    drtgs = [r.opp_points / p * 100.0 for r, p in zip(last10, paces)]
    wins = sum(1 for r in last10 if r.won)

    summary = {
        "ppg": _avg([r.points for r in last10[:PPG_WINDOW]]),
        "papg": _avg([r.opp_points for r in last10[:PPG_WINDOW]]),
        "pace_last10": _avg(paces),
        "ortg_last10": _avg(ortgs),
        "ortg_last3": _avg(ortgs[:3]),
        "drtg_last10": _avg(drtgs),
        "wins": wins,
        "losses": len(last10) - wins,
        "streak": current_streak(last10),
        "games": len(last10),
    }

    if as_of is not None:
        days_between = (as_of.date() - last10[0].date.date()).days
        summary["rest_days"] = max(days_between - 1, 0)
        summary["back_to_back"] = days_between <= 1
    return summary


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------

class StatsFetcher:
    """Builds stats bundles from the database and The Odds API scores feed.

    Either collaborator may be None (tests, or a deploy without an API key);
    the fetcher uses whatever it has.
    """

    def __init__(self, db=None, odds_client=None, league: Optional[LeagueConfig] = None, season: str = "2024-25"):
        self.db = db
        self.odds_client = odds_client
        self.league = league or LeagueConfig.nba()
        self.season = season

    # -- sources ----------------------------------------------------------

    def _db_results(self, team: str, before: datetime) -> List[TeamResult]:
        if self.db is None:
            return []
        from pickgen.models import Game

        rows = (
            self.db.query(Game)
            .filter(
                Game.completed.is_(True),
                Game.game_date < before,
                (Game.home_team == team) | (Game.away_team == team),
            )
            .order_by(Game.game_date.desc())
            .limit(RECENT_GAMES)
            .all()
        )
        results = []
        for g in rows:
            if g.home_score is None or g.away_score is None:
                continue
            is_home = g.home_team == team
            results.append(TeamResult(
                date=g.game_date,
                points=g.home_score if is_home else g.away_score,
                opp_points=g.away_score if is_home else g.home_score,
                is_home=is_home,
            ))
        return results

    def _scores_feed(self) -> List[Dict]:
        if self.odds_client is None:
            return []
        return self.odds_client.get_scores(days_from=3)

    def _api_results(self, team: str, before: datetime, scores: List[Dict]) -> List[TeamResult]:
        from pickgen.services.odds import parse_scores

        results = []
        for g in scores:
            if not g.get("completed") or team not in (g.get("home_team"), g.get("away_team")):
                continue
            home_score, away_score = parse_scores(g)
            if home_score is None or away_score is None:
                continue
            try:
                played = datetime.fromisoformat(g["commence_time"].replace("Z", "+00:00")).replace(tzinfo=None)
            except (KeyError, ValueError, AttributeError):
                continue
            if played >= before:
                continue
            is_home = g.get("home_team") == team
            results.append(TeamResult(
                date=played,
                points=home_score if is_home else away_score,
                opp_points=away_score if is_home else home_score,
                is_home=is_home,
            ))
        return results

    def recent_results(self, team: str, before: datetime, scores: Optional[List[Dict]] = None) -> List[TeamResult]:
        """Last 10 results, newest first, deduplicated by date."""
        if scores is None:
            scores = self._scores_feed()
        merged: Dict[str, TeamResult] = {}
        for r in self._db_results(team, before) + self._api_results(team, before, scores):
            merged.setdefault(r.date.date().isoformat(), r)
        ordered = sorted(merged.values(), key=lambda r: r.date, reverse=True)
        return ordered[:RECENT_GAMES]

    def season_stats(self, team: str):
        if self.db is None:
            return None
        from pickgen.models import TeamSeasonStats

        return (
            self.db.query(TeamSeasonStats)
            .filter(TeamSeasonStats.team == team, TeamSeasonStats.season == self.season)
            .first()
        )

    # -- assembly ---------------------------------------------------------

    # team_season_stats column → bundle field suffix
    _SEASON_FIELDS = {
        "pace": "pace_season",
        "ortg": "ortg",
        "drtg": "drtg",
        "three_par": "three_par",
        "opp_three_par": "opp_three_par",
        "three_pct": "three_pct_last10",
        "ftr": "ftr",
        "opp_ftr": "opp_ftr",
        "efg": "efg",
        "tov_pct": "tov_pct",
        "oreb_pct": "oreb_pct",
        "turnovers": "tov_last10",
        "oreb": "oreb",
        "dreb": "dreb",
        "steals": "steals",
        "blocks": "blocks",
        "assists": "assists",
    }

    def _apply_season(self, bundle: NBAStatsBundle, side: str, row) -> None:
        for column, suffix in self._SEASON_FIELDS.items():
            value = getattr(row, column, None)
            if value is not None:
                setattr(bundle, f"{side}_{suffix}", float(value))

        # The bundle only carries road splits for the away team and home
        # splits for the home team.
        venue = "road" if side == "away" else "home"
        for stat in ("ortg", "drtg"):
            value = getattr(row, f"{venue}_{stat}", None)
            if value is not None:
                setattr(bundle, f"{side}_{venue}_{stat}", float(value))

    def _apply_form(self, bundle: NBAStatsBundle, side: str, form: Dict) -> None:
        if form.get("ppg") is not None:
            setattr(bundle, f"{side}_points_per_game", round(form["ppg"], 2))
        for key in ("pace_last10", "ortg_last10", "ortg_last3", "drtg_last10"):
            if form.get(key) is not None:
                setattr(bundle, f"{side}_{key}", round(form[key], 2))
        setattr(bundle, f"{side}_win_streak", form["streak"])
        setattr(bundle, f"{side}_last10_wins", form["wins"])
        setattr(bundle, f"{side}_last10_losses", form["losses"])
        if "rest_days" in form:
            setattr(bundle, f"{side}_rest_days", form["rest_days"])
            setattr(bundle, f"{side}_back_to_back", form["back_to_back"])

    def fetch_bundle(self, ctx: RunContext) -> NBAStatsBundle:
        """Build the bundle for ``ctx.away @ ctx.home``.

        Raises:
            RuntimeError: Neither recent results nor season stats exist for
                either team.
        """
        cache_key = (ctx.away, ctx.home)
        cached = _bundle_cache.get(cache_key)
        if cached and time.monotonic() - cached[0] < CACHE_TTL_SECONDS:
            return cached[1]

        league = self.league
        as_of = ctx.start_time or datetime.utcnow()
        bundle = NBAStatsBundle(
            league_pace=league.league_pace,
            league_ortg=league.league_ortg,
            league_drtg=league.league_drtg,
            league_three_par=league.league_three_par,
            league_ftr=league.league_ftr,
            league_three_pstdev=league.league_three_pstdev,
        )

        scores = self._scores_feed()
        sources = 0
        for side, team in (("away", ctx.away), ("home", ctx.home)):
            season_row = self.season_stats(team)
            if season_row is not None:
                self._apply_season(bundle, side, season_row)
                sources += 1

            form = summarize_recent_form(self.recent_results(team, as_of, scores), as_of, league.league_pace)
            if form:
                self._apply_form(bundle, side, form)
                if season_row is None or season_row.pace is None:
                    setattr(bundle, f"{side}_pace_season", getattr(bundle, f"{side}_pace_last10"))
                    setattr(bundle, f"{side}_ortg", getattr(bundle, f"{side}_ortg_last10"))
                    setattr(bundle, f"{side}_drtg", getattr(bundle, f"{side}_drtg_last10"))
                sources += 1
            else:
                logger.warning("No recent results for %s; using league averages", team)

        if sources == 0:
            raise RuntimeError(f"No stats available for {ctx.away} @ {ctx.home}")

        logger.info("Stats bundle built for %s @ %s from %d source(s)", ctx.away, ctx.home, sources)
        _bundle_cache[cache_key] = (time.monotonic(), bundle)
        return bundle

    def clear_cache(self) -> None:
        clear_bundle_cache()


def clear_bundle_cache() -> None:
    _bundle_cache.clear()
