#!/usr/bin/env python3
"""
Database initialization script
Creates all tables and optionally seeds the default SHIVA capper profiles
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Load .env file
from dotenv import load_dotenv
load_dotenv()

from pickgen.models import Base, engine, SessionLocal
from pickgen.core.sport_config import BetType, Sport
from pickgen.factors.config import get_default_profile
from pickgen.services.capper_profiles import save_capper_profile
import logging
from sqlalchemy import text, inspect

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init_database(drop_existing: bool = False):
    """
    Initialize database tables

    Args:
        drop_existing: If True, drops all tables first (DANGER: data loss!)
    """
    logger.info("Initializing pick engine database...")

    if drop_existing:
        logger.warning("Dropping all existing tables!")
        response = input("Are you sure? This will delete all data. Type 'yes' to confirm: ")
        if response.lower() != 'yes':
            logger.info("Aborted.")
            return

        Base.metadata.drop_all(bind=engine)
        logger.info("Existing tables dropped")

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    inspector = inspect(engine)
    tables = inspector.get_table_names()
    logger.info("Tables: %s", ", ".join(tables))

    return True


def seed_profiles(capper_id: str = "shiva"):
    """Save the generated default profile for every NBA bet type."""
    logger.info("Seeding default profiles for %s...", capper_id)

    db = SessionLocal()

    try:
        for bet_type in (BetType.TOTAL, BetType.SPREAD):
            profile = get_default_profile(capper_id, Sport.NBA, bet_type)
            save_capper_profile(db, capper_id, Sport.NBA, bet_type, profile["factors"], is_default=True)
        logger.info("Default profiles seeded")

    except ValueError as e:
        logger.error("Error seeding profiles: %s", e)
        db.rollback()

    finally:
        db.close()


def check_connection():
    """Test database connection"""
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize the pick engine database")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables (DANGER!)")
    parser.add_argument("--seed", action="store_true", help="Seed default capper profiles")
    parser.add_argument("--capper", default="shiva", help="Capper id to seed")
    parser.add_argument("--check", action="store_true", help="Only check connection")

    args = parser.parse_args()

    if args.check:
        check_connection()
    else:
        if check_connection():
            init_database(drop_existing=args.drop)

            if args.seed:
                seed_profiles(args.capper)

            logger.info("Database initialization complete!")
        else:
            logger.error("Cannot initialize database - connection failed")
            sys.exit(1)
