"""
NBA team name normalization.

The Odds API uses full names ("Boston Celtics"), ESPN's injury page uses
full names but occasionally the old franchise form ("LA Clippers"), and box
scores use three-letter abbreviations.  Everything in the database and on
run contexts uses the canonical full name from ``NBA_TEAMS``.
"""

from __future__ import annotations

import logging
from typing import Optional

from rapidfuzz import fuzz, process

logger = logging.getLogger(__name__)

#: Canonical team name → abbreviation.
NBA_TEAMS: dict[str, str] = {
    "Atlanta Hawks": "ATL",
    "Boston Celtics": "BOS",
    "Brooklyn Nets": "BKN",
    "Charlotte Hornets": "CHA",
    "Chicago Bulls": "CHI",
    "Cleveland Cavaliers": "CLE",
    "Dallas Mavericks": "DAL",
    "Denver Nuggets": "DEN",
    "Detroit Pistons": "DET",
    "Golden State Warriors": "GSW",
    "Houston Rockets": "HOU",
    "Indiana Pacers": "IND",
    "Los Angeles Clippers": "LAC",
    "Los Angeles Lakers": "LAL",
    "Memphis Grizzlies": "MEM",
    "Miami Heat": "MIA",
    "Milwaukee Bucks": "MIL",
    "Minnesota Timberwolves": "MIN",
    "New Orleans Pelicans": "NOP",
    "New York Knicks": "NYK",
    "Oklahoma City Thunder": "OKC",
    "Orlando Magic": "ORL",
    "Philadelphia 76ers": "PHI",
    "Phoenix Suns": "PHX",
    "Portland Trail Blazers": "POR",
    "Sacramento Kings": "SAC",
    "San Antonio Spurs": "SAS",
    "Toronto Raptors": "TOR",
    "Utah Jazz": "UTA",
    "Washington Wizards": "WAS",
}

_ABBREV_TO_TEAM: dict[str, str] = {abbr: team for team, abbr in NBA_TEAMS.items()}

# Forms that fuzzy matching gets wrong or scores too low.  Checked first.
_MANUAL_OVERRIDES: dict[str, str] = {
    "LA Clippers": "Los Angeles Clippers",
    "LA Lakers": "Los Angeles Lakers",
    "Clippers": "Los Angeles Clippers",
    "Lakers": "Los Angeles Lakers",
    "Sixers": "Philadelphia 76ers",
    "76ers": "Philadelphia 76ers",
    "Blazers": "Portland Trail Blazers",
    "Wolves": "Minnesota Timberwolves",
    "Cavs": "Cleveland Cavaliers",
    "Mavs": "Dallas Mavericks",
    "GS Warriors": "Golden State Warriors",
    "NY Knicks": "New York Knicks",
    "NO Pelicans": "New Orleans Pelicans",
    "OKC Thunder": "Oklahoma City Thunder",
    "SA Spurs": "San Antonio Spurs",
    # Common alternate abbreviations
    "GS": "Golden State Warriors",
    "NY": "New York Knicks",
    "NO": "New Orleans Pelicans",
    "SA": "San Antonio Spurs",
    "BRK": "Brooklyn Nets",
    "CHO": "Charlotte Hornets",
    "PHO": "Phoenix Suns",
    "UTAH": "Utah Jazz",
    "WSH": "Washington Wizards",
}


def team_abbreviation(team: str) -> Optional[str]:
    canonical = normalize_team_name(team)
    return NBA_TEAMS.get(canonical) if canonical else None


def normalize_team_name(name: str) -> str | None:
    """
    Map any common form of an NBA team name onto its canonical full name.

    Strategy: manual overrides, exact (case-insensitive) name, abbreviation,
    then rapidfuzz ``token_set_ratio`` against the canonical names with an
    85 cutoff.  Returns None when nothing matches confidently.
    """
    if not name:
        return None
    name = name.strip()
    if not name:
        return None

    if name in _MANUAL_OVERRIDES:
        return _MANUAL_OVERRIDES[name]

    for team in NBA_TEAMS:
        if team.lower() == name.lower():
            return team

    upper = name.upper()
    if upper in _ABBREV_TO_TEAM:
        return _ABBREV_TO_TEAM[upper]
    if upper in _MANUAL_OVERRIDES:
        return _MANUAL_OVERRIDES[upper]

    result = process.extractOne(name, list(NBA_TEAMS), scorer=fuzz.token_set_ratio, score_cutoff=85)
    if result:
        logger.debug("Fuzzy matched '%s' to '%s' with score %s", name, result[0], result[1])
        return result[0]

    # Truncated scraper output ("Timberwolve", "Trail Blaz").
    partial = process.extractOne(name, list(NBA_TEAMS), scorer=fuzz.partial_ratio, score_cutoff=90)
    if partial and len(name) >= 4:
        logger.debug("Partial matched '%s' to '%s' with score %s", name, partial[0], partial[1])
        return partial[0]

    logger.warning("No NBA team match for '%s'", name)
    return None
