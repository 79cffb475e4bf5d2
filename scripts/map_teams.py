# scripts/map_teams.py
import logging
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dotenv import load_dotenv

# 1. Load environment variables from .env in the root directory
load_dotenv()

from rapidfuzz import process
from pickgen.services.injuries import scrape_espn_injuries
from pickgen.services.odds import OddsAPIClient
from pickgen.services.team_mapping import NBA_TEAMS, normalize_team_name

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def run_mapping_exercise():
    """
    Check every team name The Odds API and ESPN currently emit against
    normalize_team_name().  Unmapped names are printed with the closest
    canonical candidate, ready to paste into _MANUAL_OVERRIDES.
    """
    seen = set()

    try:
        odds_client = OddsAPIClient()
        for game in odds_client.get_nba_odds():
            seen.update({game.get("home_team"), game.get("away_team")})
    except ValueError as e:
        logger.warning("Skipping Odds API names: %s", e)

    for report in scrape_espn_injuries():
        seen.add(report.team)

    seen.discard(None)
    print(f"Checking {len(seen)} team names...")

    unmapped = {}
    for name in sorted(seen):
        if normalize_team_name(name) is None:
            best = process.extractOne(name, list(NBA_TEAMS))
            unmapped[name] = best[0] if best else None

    if not unmapped:
        print("All team names map cleanly.")
        return

    print("\n--- COPY THESE INTO _MANUAL_OVERRIDES ---")
    for name, candidate in unmapped.items():
        print(f'    "{name}": "{candidate}",')


if __name__ == "__main__":
    run_mapping_exercise()
