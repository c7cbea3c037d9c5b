#!/usr/bin/env python3
"""
Database initialization script
Creates the kv_store table and optionally seeds bankroll settings
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Load .env file
from dotenv import load_dotenv
load_dotenv()

from backend.models import Base, engine, SessionLocal
from backend.core.errors import BankrollError
from backend.services.bankroll import BankrollLedger
from backend.services.storage import SqlAlchemyStore
import logging
from sqlalchemy import text, inspect
from sqlalchemy.exc import SQLAlchemyError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init_database(drop_existing: bool = False):
    """
    Initialize database tables

    Args:
        drop_existing: If True, drops all tables first (DANGER: data loss!)
    """
    logger.info("Initializing AI Picks database...")

    if drop_existing:
        logger.warning("Dropping all existing tables!")
        response = input("Are you sure? This will delete all data. Type 'yes' to confirm: ")
        if response.lower() != 'yes':
            logger.info("Aborted.")
            return False

        Base.metadata.drop_all(bind=engine)
        logger.info("Existing tables dropped")

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    inspector = inspect(engine)
    tables = inspector.get_table_names()
    logger.info("Tables: %s", ", ".join(tables))

    return True


def seed_settings(starting_bankroll: float, unit_percentage: float, max_daily_risk: float):
    """Write initial bankroll settings."""
    ledger = BankrollLedger(SqlAlchemyStore())
    try:
        settings = ledger.update_settings(starting_bankroll, unit_percentage, max_daily_risk)
    except BankrollError as e:
        logger.error("Error seeding settings: %s", e)
        return False
    logger.info(
        "Bankroll seeded: $%.2f, unit %.1f%%, max daily risk %.0f%%",
        settings.current_bankroll, settings.unit_percentage, settings.max_daily_risk,
    )
    return True


def check_connection():
    """Test database connection"""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except SQLAlchemyError as e:
        logger.error("Database connection failed: %s", e)
        return False
    finally:
        db.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize AI Picks database")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables (DANGER!)")
    parser.add_argument("--check", action="store_true", help="Only check connection")
    parser.add_argument("--bankroll", type=float, help="Seed starting bankroll ($, min 100)")
    parser.add_argument("--unit-pct", type=float, default=1.0, help="Unit size, %% of bankroll")
    parser.add_argument("--max-daily-risk", type=float, default=5.0, help="Daily cap, %% of bankroll")

    args = parser.parse_args()

    if args.check:
        sys.exit(0 if check_connection() else 1)

    if not check_connection():
        logger.error("Cannot initialize database - connection failed")
        sys.exit(1)

    if not init_database(drop_existing=args.drop):
        sys.exit(1)

    if args.bankroll is not None and not seed_settings(args.bankroll, args.unit_pct, args.max_daily_risk):
        sys.exit(1)

    logger.info("Database initialization complete!")
