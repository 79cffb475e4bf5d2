"""
The Odds API integration for NBA odds and scores.
https://the-odds-api.com/

Two consumers:

  * The auto-picks job lists upcoming games with per-book lines
    (``get_todays_games``) and stores them on ``Game.odds``.
  * The SHIVA wizard turns those per-book lines into a consensus snapshot
    (``build_odds_snapshot``) in Step 2.  Lines are averaged across books and
    rounded to one decimal; a book that omits the juice is assumed to be
    -110.

Scores (``get_scores``) feed both recent-form stats and pick grading.
"""

import requests
import os
import logging
from typing import List, Dict, Optional, Tuple
from datetime import datetime

from pickgen.core.sport_config import LeagueConfig

logger = logging.getLogger(__name__)

API_KEY = os.getenv("THE_ODDS_API_KEY")
BASE_URL = "https://api.the-odds-api.com/v4"

DEFAULT_ODDS = LeagueConfig.nba().default_odds


class OddsAPIClient:
    """Client for The Odds API"""

    def __init__(self, api_key: Optional[str] = None, sport_key: str = "basketball_nba"):
        self.api_key = api_key or API_KEY
        if not self.api_key:
            raise ValueError("THE_ODDS_API_KEY not set in environment")
        self.sport_key = sport_key

    def _get(self, path: str, params: Dict) -> List[Dict]:
        url = f"{BASE_URL}/sports/{self.sport_key}/{path}"
        params = {"apiKey": self.api_key, **params}

        try:
            response = requests.get(url, params=params, timeout=10)
            response.raise_for_status()
            data = response.json()

            logger.info(
                "Odds API %s: %d rows. Quota: %s used, %s remaining",
                path, len(data),
                response.headers.get("x-requests-used"),
                response.headers.get("x-requests-remaining"),
            )
            return data

        except requests.exceptions.RequestException as e:
            logger.error("Odds API error (%s): %s", path, e)
            return []

    def get_nba_odds(
        self,
        markets: str = "h2h,spreads,totals",
        regions: str = os.getenv("ODDS_API_REGIONS", "us"),
        odds_format: str = "american",
    ) -> List[Dict]:
        """Raw upcoming NBA games with odds from multiple bookmakers."""
        return self._get("odds", {"regions": regions, "markets": markets, "oddsFormat": odds_format})

    def get_scores(self, days_from: int = 3) -> List[Dict]:
        """Completed and live games from the last ``days_from`` days (max 3)."""
        return self._get("scores", {"daysFrom": min(max(days_from, 1), 3)})

    def get_todays_games(self) -> List[Dict]:
        """Upcoming NBA games with per-book lines."""
        games = []
        for raw in self.get_nba_odds():
            games.append({
                "game_id": raw.get("id"),
                "commence_time": raw.get("commence_time"),
                "home_team": raw.get("home_team"),
                "away_team": raw.get("away_team"),
                "bookmakers": parse_bookmakers(raw),
            })
        logger.info("Parsed odds for %d NBA games", len(games))
        return games


def parse_bookmakers(game_data: Dict) -> List[Dict]:
    """Flatten a raw Odds API game into one dict per bookmaker.

    Keys per book (missing markets are simply absent):
        name, spread_home, spread_home_odds, spread_away, spread_away_odds,
        total, total_over_odds, total_under_odds, moneyline_home,
        moneyline_away
    """
    home_team = game_data.get("home_team")
    books = []

    for bookmaker in game_data.get("bookmakers", []):
        book_odds: Dict = {"name": bookmaker.get("key", "").lower()}

        for market in bookmaker.get("markets", []):
            market_key = market.get("key")

            if market_key == "spreads":
                for outcome in market.get("outcomes", []):
                    if outcome.get("name") == home_team:
                        book_odds["spread_home"] = outcome.get("point")
                        book_odds["spread_home_odds"] = outcome.get("price")
                    else:
                        book_odds["spread_away"] = outcome.get("point")
                        book_odds["spread_away_odds"] = outcome.get("price")

            elif market_key == "totals":
                for outcome in market.get("outcomes", []):
                    book_odds["total"] = outcome.get("point")
                    if outcome.get("name") == "Over":
                        book_odds["total_over_odds"] = outcome.get("price")
                    else:
                        book_odds["total_under_odds"] = outcome.get("price")

            elif market_key == "h2h":
                for outcome in market.get("outcomes", []):
                    if outcome.get("name") == home_team:
                        book_odds["moneyline_home"] = outcome.get("price")
                    else:
                        book_odds["moneyline_away"] = outcome.get("price")

        books.append(book_odds)

    return books


def _avg_line(books: List[Dict], key: str) -> Optional[float]:
    values = [b[key] for b in books if b.get(key) is not None]
    if not values:
        return None
    return round(sum(values) / len(values), 1)


def _avg_odds(books: List[Dict], key: str) -> int:
    values = [b[key] for b in books if b.get(key) is not None]
    if not values:
        return DEFAULT_ODDS
    return int(round(sum(values) / len(values)))


def build_odds_snapshot(bookmakers: List[Dict], home_team: str, away_team: str) -> Dict:
    """Consensus lines across books for the wizard's Step 2.

    The spread line is the home team's (negative = home favoured).

    Raises:
        ValueError: No book offers a total, or no book offers a spread.
    """
    total_line = _avg_line(bookmakers, "total")
    if total_line is None:
        raise ValueError(f"No total line available for {away_team} @ {home_team}")

    spread_home = _avg_line(bookmakers, "spread_home")
    if spread_home is None:
        away_only = _avg_line(bookmakers, "spread_away")
        spread_home = (-away_only or 0.0) if away_only is not None else None
    if spread_home is None:
        raise ValueError(f"No spread line available for {away_team} @ {home_team}")

    home_favored = spread_home < 0
    books_considered = sorted({b.get("name") for b in bookmakers if b.get("name")})

    return {
        "total": {
            "line": total_line,
            "over_odds": _avg_odds(bookmakers, "total_over_odds"),
            "under_odds": _avg_odds(bookmakers, "total_under_odds"),
        },
        "spread": {
            "line": spread_home,
            "away_line": -spread_home or 0.0,
            "fav_team": home_team if home_favored else away_team,
            "dog_team": away_team if home_favored else home_team,
            "home_odds": _avg_odds(bookmakers, "spread_home_odds"),
            "away_odds": _avg_odds(bookmakers, "spread_away_odds"),
        },
        "moneyline": {
            "home": _avg_odds(bookmakers, "moneyline_home"),
            "away": _avg_odds(bookmakers, "moneyline_away"),
        },
        "books_considered": books_considered,
        "captured_at": datetime.utcnow().isoformat(),
    }


def parse_scores(score_data: Dict) -> Tuple[Optional[int], Optional[int]]:
    """
    Extract (home_score, away_score) from a scores API entry.

    The API returns:
        {"home_team": "Boston Celtics", "scores": [{"name": "Boston Celtics", "score": "112"}, ...]}
    """
    home_name = score_data.get("home_team")
    home_score: Optional[int] = None
    away_score: Optional[int] = None

    for entry in score_data.get("scores") or []:
        try:
            val = int(entry.get("score", 0))
        except (TypeError, ValueError):
            continue
        if entry.get("name") == home_name:
            home_score = val
        else:
            away_score = val

    return home_score, away_score
