"""
Injury scraping and roster availability service.

Feeds the injury factors (F6 / S6), the defensive-erosion input of F3 and
the auto-picks injury gate.

Two sources feed it, manual entries beating scraped ones:
    1. Manual overrides via API
    2. ESPN NBA injury report (public, scraped)

Scraped entries carry only name, position and status.  Before they reach a
factor they are joined with per-player season averages from the
``player_averages`` table (PPG, MPG, blocks, steals); a player with no
averages row contributes nothing, which keeps an unknown two-way call-up
from moving a line.

The impact arithmetic itself lives in :mod:`pickgen.core.injury_impact` and
is re-exported here.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup

from pickgen.core.factor_types import PlayerInjury
from pickgen.core.injury_impact import (  # noqa: F401 re-exported
    defense_impact_score,
    normalize_status,
    team_injury_impact_spread,
    team_injury_impact_totals,
)
from pickgen.services.team_mapping import normalize_team_name

logger = logging.getLogger(__name__)

ESPN_NBA_INJURIES_URL = "https://www.espn.com/nba/injuries"
INJURY_CACHE_MINUTES = int(os.getenv("INJURY_CACHE_MINUTES", "30"))

#: Statuses that can keep a player off the floor.
ACTIVE_STATUSES = frozenset({"OUT", "DOUBTFUL", "QUESTIONABLE", "PROBABLE"})


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class InjuryReport:
    """Single scraped or manually-entered injury entry."""

    team: str
    player: str
    status: str  # OUT, DOUBTFUL, QUESTIONABLE, PROBABLE
    position: str = "UNKNOWN"
    comment: str = ""
    source: str = "manual"
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Scraper
# ---------------------------------------------------------------------------

def parse_espn_injuries(html: str) -> List[InjuryReport]:
    """Parse the ESPN NBA injuries page.

    Table columns: NAME, POS, EST. RETURN DATE, STATUS, COMMENT.
    """
    injuries: List[InjuryReport] = []
    soup = BeautifulSoup(html, "lxml")

    for table in soup.select("div.ResponsiveTable"):
        team_header = table.select_one(".Table__Title")
        if not team_header:
            continue
        raw_team = team_header.get_text(strip=True)
        team_name = normalize_team_name(raw_team) or raw_team

        for row in table.select("tbody tr"):
            cols = row.select("td")
            if len(cols) < 4:
                continue

            comment = cols[4].get_text(strip=True) if len(cols) > 4 else ""
            injuries.append(
                InjuryReport(
                    team=team_name,
                    player=cols[0].get_text(strip=True),
                    position=cols[1].get_text(strip=True).upper() or "UNKNOWN",
                    status=normalize_status(cols[3].get_text(strip=True)),
                    comment=comment,
                    source="espn",
                    updated_at=datetime.utcnow(),
                )
            )

    return injuries


def scrape_espn_injuries() -> List[InjuryReport]:
    """
    Scrape the ESPN NBA injury report.

    Returns an empty list if the scrape fails; callers fall back to the
    cached report.
    """
    headers = {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        ),
    }

    try:
        resp = requests.get(ESPN_NBA_INJURIES_URL, headers=headers, timeout=15)
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("ESPN injury scrape failed: %s", exc)
        return []

    injuries = parse_espn_injuries(resp.text)
    logger.info("ESPN injury scrape: %d entries across teams", len(injuries))
    return injuries


# ---------------------------------------------------------------------------
# Player averages
# ---------------------------------------------------------------------------

def load_player_averages(db, teams: List[str]) -> Dict[tuple, Dict]:
    """(team, player lowercased) → averages dict for the given teams."""
    from pickgen.models import PlayerAverage

    rows = db.query(PlayerAverage).filter(PlayerAverage.team.in_(teams)).all()
    return {
        (r.team.lower(), r.player.lower()): {
            "position": r.position,
            "ppg": r.ppg or 0.0,
            "mpg": r.mpg or 0.0,
            "blocks": r.blocks or 0.0,
            "steals": r.steals or 0.0,
        }
        for r in rows
    }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def _report_key(report: InjuryReport) -> Tuple[str, str]:
    return report.team.lower(), report.player.lower()


class InjuryService:
    """
    Holds the latest scraped report plus manual overrides, and turns them
    into the per-matchup ``PlayerInjury`` list the factors consume.

    The scrape is cached for ``INJURY_CACHE_MINUTES``.  A failed or empty
    scrape keeps serving the previous report.
    """

    def __init__(self, cache_minutes: Optional[int] = None):
        self.cache_minutes = (
            cache_minutes if cache_minutes is not None else INJURY_CACHE_MINUTES
        )
        self._reports: Dict[Tuple[str, str], InjuryReport] = {}
        self._scraped_at: Optional[datetime] = None
        self._overrides: Dict[Tuple[str, str], InjuryReport] = {}

    def add_manual_override(self, report: InjuryReport) -> None:
        """Pin a player's status; replaces any scraped or earlier manual entry."""
        report.source = "manual"
        report.status = normalize_status(report.status)
        report.updated_at = datetime.utcnow()
        self._overrides[_report_key(report)] = report

    def clear_manual_overrides(self) -> None:
        self._overrides.clear()

    def _is_fresh(self, max_age_minutes: int) -> bool:
        if self._scraped_at is None:
            return False
        return datetime.utcnow() - self._scraped_at < timedelta(minutes=max_age_minutes)

    def fetch_injuries(self, max_age_minutes: Optional[int] = None) -> List[InjuryReport]:
        """League-wide report with overrides applied, rescraping when stale."""
        max_age = self.cache_minutes if max_age_minutes is None else max_age_minutes
        if not self._is_fresh(max_age):
            scraped = scrape_espn_injuries()
            if scraped:
                self._reports = {_report_key(r): r for r in scraped}
                self._scraped_at = datetime.utcnow()
            else:
                logger.warning(
                    "Empty injury scrape; serving %d cached entries", len(self._reports)
                )

        merged = {k: r for k, r in self._reports.items() if k not in self._overrides}
        merged.update(self._overrides)
        return list(merged.values())

    def get_game_injuries(
        self,
        home_team: str,
        away_team: str,
        db=None,
        max_age_minutes: Optional[int] = None,
    ) -> List[PlayerInjury]:
        """
        Injured players for both teams, joined with season averages.

        Without a db session the averages are zero, so the entries still
        show up in notes but carry no impact.
        """
        matchup = {home_team.lower(): home_team, away_team.lower(): away_team}
        averages: Dict[tuple, Dict] = {}
        if db is not None:
            try:
                averages = load_player_averages(db, [home_team, away_team])
            except Exception as exc:
                logger.warning("Player averages lookup failed: %s", exc)

        result: List[PlayerInjury] = []
        for report in self.fetch_injuries(max_age_minutes):
            team = matchup.get(report.team.lower())
            if team is None or report.status not in ACTIVE_STATUSES:
                continue
            avg = averages.get(_report_key(report), {})
            result.append(
                PlayerInjury(
                    team=team,
                    player=report.player,
                    status=report.status,
                    position=avg.get("position") or report.position,
                    ppg=avg.get("ppg", 0.0),
                    mpg=avg.get("mpg", 0.0),
                    blocks=avg.get("blocks", 0.0),
                    steals=avg.get("steals", 0.0),
                    source=report.source,
                )
            )
        return result


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_service: Optional[InjuryService] = None


def get_injury_service() -> InjuryService:
    global _service
    if _service is None:
        _service = InjuryService()
    return _service
